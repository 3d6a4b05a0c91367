"""
AI Copywriting Endpoints.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from binevo.ai.copywriter import CopyRequest, generate_copy
from binevo.core.audit import record_audit
from binevo.core.models.io.ai import GenerateCopyRequest
from binevo.server.services.deps import SessionDep, TenantContext, client_ip, require_tenant

router = APIRouter(tags=["ai"])


@router.post(
    "/generate",
    summary="Generate Campaign Copy",
    description="Suggest email subjects, an email body or an SMS text for a campaign.",
    responses={
        400: {"description": "AI provider not configured"},
        502: {"description": "AI provider failed"},
    },
)
async def generate(
    payload: GenerateCopyRequest,
    request: Request,
    session: SessionDep,
    ctx: TenantContext = Depends(require_tenant("campaigns:write", feature="ai_generator")),
) -> Dict[str, Any]:
    """
    Generate campaign copy with the configured model.

    The response always carries ``kind`` and ``model``; the remaining keys
    depend on the kind: ``subjects`` for subject suggestions, ``subject``
    and ``body_html`` for an email body, ``text`` for an SMS.
    """
    result = await generate_copy(CopyRequest(ngo_name=ctx.ngo.name, **payload.model_dump()))
    await record_audit(
        session,
        action="AI_COPY_GENERATED",
        entity_type="Campaign",
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"kind": result["kind"], "model": result["model"]},
        ip_address=client_ip(request),
    )
    return result
