"""
Unsubscribe Endpoints.

``GET`` serves the one-click link placed in campaign emails and answers
with a small HTML page; ``POST`` is the JSON variant used by the web app.
"""

from __future__ import annotations

import html
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database import get_session
from binevo.core.errors import NotFoundError
from binevo.core.models.io.common import MessageResponse
from binevo.core.models.io.public import UnsubscribeRequest
from binevo.crm.subscribers import CHANNEL_EMAIL, unsubscribe_donor
from binevo.server.api.v1.public import get_public_ngo
from binevo.server.services.deps import client_ip

router = APIRouter(tags=["unsubscribe"])

_PAGE = """<!DOCTYPE html>
<html lang="ro">
<head><meta charset="utf-8"><title>{title}</title>
<meta name="viewport" content="width=device-width, initial-scale=1"></head>
<body style="font-family:Arial,sans-serif;background:#f6f7fb;padding:48px">
<div style="max-width:480px;margin:auto;background:#fff;border-radius:8px;padding:32px;text-align:center">
<h1 style="font-size:20px">{title}</h1><p>{message}</p>
</div></body></html>"""


def render_page(title: str, message: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        _PAGE.format(title=html.escape(title), message=html.escape(message)),
        status_code=status_code,
    )


@router.get("", response_class=HTMLResponse, summary="One-click Unsubscribe")
async def unsubscribe_link(
    request: Request,
    ngo: str = Query(..., description="NGO slug"),
    did: str = Query(..., description="Donor id"),
    channel: Optional[str] = Query(None, pattern="^(EMAIL|SMS|ALL)$"),
    session: AsyncSession = Depends(get_session),
) -> HTMLResponse:
    try:
        organisation = await get_public_ngo(session, ngo)
        await unsubscribe_donor(
            session,
            organisation.id,
            did,
            channel or CHANNEL_EMAIL,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except NotFoundError:
        return render_page("Link invalid", "Nu am gasit abonarea asociata acestui link.", 404)
    return render_page(
        "Te-ai dezabonat",
        f"Nu vei mai primi mesaje de la {organisation.name} pe acest canal.",
    )


@router.post("", response_model=MessageResponse, summary="Unsubscribe")
async def unsubscribe(
    payload: UnsubscribeRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    organisation = await get_public_ngo(session, payload.ngo_slug)
    await unsubscribe_donor(
        session,
        organisation.id,
        payload.donor_id,
        payload.channel or CHANNEL_EMAIL,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return MessageResponse(message="Te-ai dezabonat cu succes")
