"""
In-app notifications and platform emails to NGO admins and super admins.
"""

from __future__ import annotations

from typing import Any, Awaitable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database.entities import Notification, PLATFORM_SETTINGS_ID, PlatformSettings, User
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import UserRole
from binevo.server.core.config import settings

from .email import SendResult, platform_email_config, send_email

logger = get_logger(__name__)


async def create_notification(
    session: AsyncSession,
    *,
    ngo_id: str,
    type: str,
    title: str,
    message: str,
    action_url: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    commit: bool = True,
) -> Notification:
    notification = Notification(
        ngo_id=ngo_id,
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        action_url=action_url,
        details=details or {},
    )
    session.add(notification)
    if commit:
        await session.commit()
    return notification


async def get_ngo_admin_emails(session: AsyncSession, ngo_id: str) -> List[str]:
    stmt = select(User.email).where(
        (User.ngo_id == ngo_id) & (User.role == UserRole.NGO_ADMIN.value) & (User.is_active == True)  # noqa: E712
    )
    return list((await session.execute(stmt)).scalars().all())


async def get_super_admin_emails(session: AsyncSession) -> List[str]:
    stmt = select(User.email).where(
        (User.role == UserRole.SUPER_ADMIN.value) & (User.is_active == True)  # noqa: E712
    )
    emails = list((await session.execute(stmt)).scalars().all())
    if settings.super_admin_email and settings.super_admin_email not in emails:
        emails.append(settings.super_admin_email)
    return emails


async def send_platform_email(session: Optional[AsyncSession], to: str, subject: str, html_body: str) -> SendResult:
    """Send a platform email, reading provider overrides from the settings row when a session is given."""
    platform = await session.get(PlatformSettings, PLATFORM_SETTINGS_ID) if session is not None else None
    return await send_email(to, subject, html_body, config=platform_email_config(platform))


async def email_ngo_admins(session: AsyncSession, ngo_id: str, subject: str, html_body: str) -> int:
    """Email every active NGO admin; returns how many sends succeeded."""
    sent = 0
    for address in await get_ngo_admin_emails(session, ngo_id):
        result = await send_platform_email(session, address, subject, html_body)
        sent += int(result.success)
    return sent


async def email_super_admins(session: AsyncSession, subject: str, html_body: str) -> int:
    sent = 0
    for address in await get_super_admin_emails(session):
        result = await send_platform_email(session, address, subject, html_body)
        sent += int(result.success)
    return sent


async def run_quietly(awaitable: Awaitable[Any], description: str) -> None:
    """Await a best-effort side effect (background email), logging any failure."""
    try:
        await awaitable
    except Exception as e:
        logger.error(f"Background task '{description}' failed: {e}", exc_info=True)
