"""
File Upload Endpoints.

Logos and invoice payment proofs are stored on local disk under ``UPLOAD_DIR`` and served by the app
at ``/uploads``.
"""

from __future__ import annotations

import secrets
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.logging_config import get_logger
from binevo.server.core.config import settings
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

logger = get_logger(__name__)

router = APIRouter(tags=["uploads"])

ALLOWED_IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}


def save_upload(data: bytes, folder: str, stem: str, extension: str) -> str:
    """Write ``data`` under ``UPLOAD_DIR/folder`` and return its public URL."""
    directory = Path(settings.upload_dir) / folder
    directory.mkdir(parents=True, exist_ok=True)
    filename = f"{stem}-{secrets.token_hex(6)}.{extension}"
    (directory / filename).write_bytes(data)
    logger.info(f"Stored {folder}/{filename} ({len(data)} bytes)")
    return f"/uploads/{folder}/{filename}"


class UploadResult(BaseModel):
    url: str
    size: int
    content_type: str


@router.post(
    "/logo",
    response_model=UploadResult,
    status_code=status.HTTP_201_CREATED,
    summary="Upload NGO Logo",
    responses={
        400: {"description": "Unsupported file type"},
        413: {"description": "File larger than the upload limit"},
    },
)
async def upload_logo(
    request: Request,
    file: UploadFile = File(...),
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> UploadResult:
    content_type = (file.content_type or "").lower()
    extension = ALLOWED_IMAGE_TYPES.get(content_type)
    if extension is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported file type. Allowed: PNG, JPEG, WEBP, SVG",
        )
    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large (max 2 MB)")
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    url = save_upload(data, "logos", ctx.ngo_id, extension)
    ctx.ngo.logo_url = url
    ctx.ngo.updated_at = utc_now()
    session.add(ctx.ngo)
    await record_audit(
        session,
        action="LOGO_UPLOADED",
        entity_type="Ngo",
        entity_id=ctx.ngo_id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"url": url, "size": len(data)},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return UploadResult(url=url, size=len(data), content_type=content_type)
