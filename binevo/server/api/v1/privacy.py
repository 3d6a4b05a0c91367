"""
GDPR Endpoints.

Right of access (full data export) and right to erasure (anonymisation)
for a single donor.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database import get_session
from binevo.core.models.io.common import MessageResponse
from binevo.crm.privacy import anonymize_donor, export_donor_data
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

router = APIRouter(tags=["gdpr"])


@router.get(
    "/donors/{donor_id}/export",
    response_model=Dict[str, Any],
    summary="Export Donor Data",
    description="Everything stored about the donor, with decrypted contact details. The export is audited.",
    responses={404: {"description": "Donor not found"}},
)
async def export_donor(
    donor_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("gdpr:export", feature="gdpr_tools")),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    return await export_donor_data(
        session, ctx.ngo_id, donor_id, user_id=ctx.user_id, ip_address=client_ip(request)
    )


@router.post(
    "/donors/{donor_id}/anonymize",
    response_model=MessageResponse,
    summary="Anonymise Donor",
    responses={404: {"description": "Donor not found"}},
)
async def anonymize(
    donor_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("gdpr:delete", feature="gdpr_tools")),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """
    Irreversibly erase the donor's personal data.

    Donations stay for accounting but no longer point to identifiable data;
    tag assignments and consent history are removed and message recipient
    addresses are masked.
    """
    await anonymize_donor(session, ctx.ngo_id, donor_id, user_id=ctx.user_id, ip_address=client_ip(request))
    return MessageResponse(message="Donor data anonymised")
