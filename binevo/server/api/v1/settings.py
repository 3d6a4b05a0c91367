"""
NGO Settings Endpoints.

Profile, messaging senders, payment preferences, the mini-site and team
management for the caller's NGO.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import ApiToken, Ngo, Notification, PasswordResetToken, User
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import UserRole
from binevo.core.models.io.auth import UserRead
from binevo.core.models.io.settings import (
    EmailSenderUpdate,
    MinisiteUpdate,
    NgoProfileUpdate,
    NgoSettingsRead,
    PaymentPreferencesUpdate,
    SmsSenderUpdate,
    TeamInvite,
    TeamMemberUpdate,
)
from binevo.messaging import templates
from binevo.messaging.notifications import run_quietly, send_platform_email
from binevo.server.core.config import settings as app_settings
from binevo.server.core.security import generate_token, hash_password
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

logger = get_logger(__name__)

router = APIRouter(tags=["settings"])

INVITABLE_ROLES = {UserRole.NGO_ADMIN, UserRole.STAFF, UserRole.VIEWER}


def to_read(ngo: Ngo) -> NgoSettingsRead:
    item = NgoSettingsRead.model_validate(ngo)
    item.sendgrid_api_key_set = bool(ngo.sendgrid_api_key)
    item.twilio_configured = bool(ngo.twilio_account_sid and ngo.twilio_auth_token)
    item.twilio_phone_number = ngo.twilio_phone_number
    return item


async def _save(
    session: AsyncSession,
    ctx: TenantContext,
    request: Request,
    section: str,
    fields: List[str],
) -> NgoSettingsRead:
    ctx.ngo.updated_at = utc_now()
    session.add(ctx.ngo)
    await record_audit(
        session,
        action="SETTINGS_UPDATED",
        entity_type="Ngo",
        entity_id=ctx.ngo_id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"section": section, "fields": sorted(fields)},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return to_read(ctx.ngo)


@router.get("", response_model=NgoSettingsRead, summary="Get NGO Settings")
async def get_settings(ctx: TenantContext = Depends(require_tenant("settings:read"))) -> NgoSettingsRead:
    return to_read(ctx.ngo)


@router.patch("/profile", response_model=NgoSettingsRead, summary="Update NGO Profile")
async def update_profile(
    payload: NgoProfileUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> NgoSettingsRead:
    changes = payload.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(ctx.ngo, key, value)
    return await _save(session, ctx, request, "profile", list(changes))


@router.patch("/email", response_model=NgoSettingsRead, summary="Update Email Sender")
async def update_email_sender(
    payload: EmailSenderUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> NgoSettingsRead:
    changes = payload.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(ctx.ngo, key, value or None)
    return await _save(session, ctx, request, "email", list(changes))


@router.patch("/sms", response_model=NgoSettingsRead, summary="Update SMS Sender")
async def update_sms_sender(
    payload: SmsSenderUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> NgoSettingsRead:
    changes = payload.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(ctx.ngo, key, value or None)
    return await _save(session, ctx, request, "sms", list(changes))


@router.patch("/payment", response_model=NgoSettingsRead, summary="Update Payment Preferences")
async def update_payment_preferences(
    payload: PaymentPreferencesUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> NgoSettingsRead:
    changes = payload.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(ctx.ngo, key, value)
    return await _save(session, ctx, request, "payment", list(changes))


@router.patch("/minisite", response_model=NgoSettingsRead, summary="Update Mini-site")
async def update_minisite(
    payload: MinisiteUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> NgoSettingsRead:
    if payload.config is not None:
        ctx.ngo.minisite_config = payload.config
    if payload.published is not None:
        ctx.ngo.minisite_published = payload.published
    return await _save(session, ctx, request, "minisite", list(payload.model_fields_set))


# Team


@router.get("/team", response_model=List[UserRead], summary="List Team Members")
async def list_team(
    ctx: TenantContext = Depends(require_tenant("settings:read")),
    session: AsyncSession = Depends(get_session),
) -> List[UserRead]:
    stmt = select(User).where(User.ngo_id == ctx.ngo_id).order_by(User.created_at)
    users = (await session.execute(stmt)).scalars().all()
    return [UserRead.model_validate(u) for u in users]


@router.post(
    "/team",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Invite Team Member",
    responses={409: {"description": "A user with this email already exists"}},
)
async def invite_member(
    payload: TeamInvite,
    request: Request,
    background_tasks: BackgroundTasks,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> UserRead:
    """
    Create a dashboard account for a colleague.

    The account gets a random temporary password that is emailed to the
    invitee together with the login link.
    """
    if payload.role not in INVITABLE_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
    email = payload.email.lower()
    if (await session.execute(select(User.id).where(User.email == email))).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    temporary_password = generate_token(6)
    user = User(
        email=email,
        password_hash=hash_password(temporary_password),
        name=payload.name,
        role=payload.role.value,
        ngo_id=ctx.ngo_id,
    )
    session.add(user)
    await record_audit(
        session,
        action="TEAM_MEMBER_INVITED",
        entity_type="User",
        entity_id=user.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"email": email, "role": user.role},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()

    subject, body = templates.team_invite_email(
        user.name, ctx.ngo.name, f"{app_settings.app_url}/login", temporary_password
    )
    background_tasks.add_task(run_quietly, send_platform_email(None, email, subject, body), "team invite email")
    return UserRead.model_validate(user)


async def _team_member_or_404(session: AsyncSession, ctx: TenantContext, user_id: str) -> User:
    user = await session.get(User, user_id)
    if user is None or user.ngo_id != ctx.ngo_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team member not found")
    return user


@router.patch("/team/{user_id}", response_model=UserRead, summary="Update Team Member")
async def update_member(
    user_id: str,
    payload: TeamMemberUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> UserRead:
    user = await _team_member_or_404(session, ctx, user_id)
    if payload.role is not None and payload.role not in INVITABLE_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
    if user.id == ctx.user_id and (payload.is_active is False or payload.role not in (None, UserRole.NGO_ADMIN)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot demote or disable yourself")

    changes = payload.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(user, key, value.value if hasattr(value, "value") else value)
    user.updated_at = utc_now()
    session.add(user)
    await record_audit(
        session,
        action="TEAM_MEMBER_UPDATED",
        entity_type="User",
        entity_id=user.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={k: (v.value if hasattr(v, "value") else v) for k, v in changes.items()},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return UserRead.model_validate(user)


@router.delete(
    "/team/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove Team Member",
    responses={400: {"description": "You cannot remove yourself"}},
)
async def remove_member(
    user_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> None:
    if user_id == ctx.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove yourself")
    user = await _team_member_or_404(session, ctx, user_id)
    await session.execute(update(ApiToken).where(ApiToken.user_id == user.id).values(user_id=None))
    await session.execute(delete(Notification).where(Notification.user_id == user.id))
    await session.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
    await session.delete(user)
    await record_audit(
        session,
        action="TEAM_MEMBER_REMOVED",
        entity_type="User",
        entity_id=user_id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"email": user.email},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
