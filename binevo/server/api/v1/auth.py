"""
Authentication Endpoints.

Registration, login/logout, the current session and the password reset
flow. Session tokens are HS256 JWTs returned in the body and set as an
HTTP-only cookie.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.plans import effective_plan
from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Ngo, PasswordResetToken, User
from binevo.core.logging_config import get_logger
from binevo.core.models.io.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    NgoSummary,
    RegisterRequest,
    ResetPasswordRequest,
    UserRead,
)
from binevo.core.models.io.common import MessageResponse
from binevo.messaging import templates
from binevo.messaging.notifications import get_super_admin_emails, run_quietly, send_platform_email
from binevo.server.core import constant
from binevo.server.core.config import settings
from binevo.server.core.security import create_access_token, generate_token, hash_password, verify_password
from binevo.server.services.deps import CurrentUser, client_ip
from binevo.server.services.tenants import provision_ngo

logger = get_logger(__name__)

router = APIRouter(tags=["auth"])

RESET_TOKEN_TTL = timedelta(hours=1)
RESET_THROTTLE = timedelta(minutes=2)
FORGOT_PASSWORD_MESSAGE = "Daca exista un cont cu acest email, vei primi un link de resetare."


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        constant.SESSION_COOKIE_NAME,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.app_url.startswith("https://"),
    )


def issue_token(user: User, ngo: Ngo | None, **extra_claims) -> str:
    return create_access_token(
        user.id,
        role=user.role,
        ngo_id=user.ngo_id,
        plan=effective_plan(ngo, user.role),
        extra_claims=extra_claims or None,
    )


async def _send_registration_emails(name: str, email: str, ngo_name: str, admin_emails: list[str]) -> None:
    subject, body = templates.welcome_email(name, ngo_name, f"{settings.app_url}/dashboard")
    await send_platform_email(None, email, subject, body)
    subject, body = templates.new_ngo_alert(ngo_name, email)
    for address in admin_emails:
        await send_platform_email(None, address, subject, body)


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an NGO",
    description="Create a new NGO together with its first administrator account.",
    responses={
        201: {"description": "NGO and administrator created"},
        409: {"description": "A user with this email already exists"},
        422: {"description": "Validation failed"},
    },
)
async def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
) -> AuthResponse:
    """
    Register a new organisation.

    The NGO and its NGO_ADMIN user are created in one transaction. The NGO
    slug is derived from its name and suffixed with a base-36 timestamp when
    it is already taken. A welcome email and a super-admin alert are sent in
    the background; their failures are only logged.
    """
    email = payload.email.lower()
    existing = (await session.execute(select(User.id).where(User.email == email))).first()
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    user, ngo = await provision_ngo(
        session, email=email, password=payload.password, name=payload.name, ngo_name=payload.ngo_name
    )
    await record_audit(
        session,
        action="USER_REGISTERED",
        entity_type="User",
        entity_id=user.id,
        ngo_id=ngo.id,
        user_id=user.id,
        details={"email": email, "ngo_name": ngo.name},
        ip_address=client_ip(request),
    )
    logger.info(f"Registered NGO {ngo.slug} ({ngo.id})")

    admin_emails = await get_super_admin_emails(session)
    background_tasks.add_task(
        run_quietly,
        _send_registration_emails(user.name, user.email, ngo.name, admin_emails),
        "registration emails",
    )

    token = issue_token(user, ngo)
    set_session_cookie(response, token)
    return AuthResponse(
        user=UserRead.model_validate(user),
        ngo=NgoSummary.model_validate(ngo),
        token=token,
        plan=effective_plan(ngo, user.role),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in",
    description="Authenticate with email and password and start a session.",
    responses={401: {"description": "Invalid credentials or inactive account"}},
)
async def login(
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> AuthResponse:
    user = (await session.execute(select(User).where(User.email == payload.email.lower()))).scalars().first()
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")

    ngo = await session.get(Ngo, user.ngo_id) if user.ngo_id else None
    user.last_login_at = utc_now()
    session.add(user)
    await session.commit()

    token = issue_token(user, ngo)
    set_session_cookie(response, token)
    return AuthResponse(
        user=UserRead.model_validate(user),
        ngo=NgoSummary.model_validate(ngo) if ngo else None,
        token=token,
        plan=effective_plan(ngo, user.role),
    )


@router.post("/logout", response_model=MessageResponse, summary="Log out")
async def logout(response: Response) -> MessageResponse:
    response.delete_cookie(constant.SESSION_COOKIE_NAME)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=AuthResponse, summary="Current session")
async def me(user: CurrentUser, session: AsyncSession = Depends(get_session)) -> AuthResponse:
    ngo = await session.get(Ngo, user.ngo_id) if user.ngo_id else None
    return AuthResponse(
        user=UserRead.model_validate(user),
        ngo=NgoSummary.model_validate(ngo) if ngo else None,
        plan=effective_plan(ngo, user.role),
    )


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset",
    description="Always answers with the same message so that account existence is not revealed.",
)
async def forgot_password(
    payload: ForgotPasswordRequest,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """
    Start the password reset flow.

    At most one token is issued per user every two minutes. Issuing a new
    token marks all older unused tokens as used.
    """
    answer = MessageResponse(message=FORGOT_PASSWORD_MESSAGE)
    user = (await session.execute(select(User).where(User.email == payload.email.lower()))).scalars().first()
    if user is None or not user.is_active:
        return answer

    now = utc_now()
    recent = await session.execute(
        select(PasswordResetToken.id).where(
            (PasswordResetToken.user_id == user.id) & (PasswordResetToken.created_at >= now - RESET_THROTTLE)
        )
    )
    if recent.first() is not None:
        return answer

    await session.execute(
        update(PasswordResetToken)
        .where((PasswordResetToken.user_id == user.id) & (PasswordResetToken.used_at.is_(None)))
        .values(used_at=now)
    )
    token = generate_token(32)
    session.add(PasswordResetToken(token=token, user_id=user.id, expires_at=now + RESET_TOKEN_TTL, created_at=now))
    await session.commit()

    subject, body = templates.password_reset_email(user.name, f"{settings.app_url}/reset-password?token={token}")
    result = await send_platform_email(session, user.email, subject, body)
    if not result.success:
        logger.warning(f"Password reset email to user {user.id} was not delivered: {result.error}")
    return answer


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset the password",
    responses={400: {"description": "Unknown, used or expired token, or inactive user"}},
)
async def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    record = (
        await session.execute(select(PasswordResetToken).where(PasswordResetToken.token == payload.token))
    ).scalars().first()
    now = utc_now()
    if record is None or record.used_at is not None or record.expires_at < now:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")
    user = await session.get(User, record.user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    user.password_hash = hash_password(payload.password)
    user.updated_at = now
    record.used_at = now
    session.add(user)
    session.add(record)
    await session.execute(
        update(PasswordResetToken)
        .where(
            (PasswordResetToken.user_id == user.id)
            & (PasswordResetToken.used_at.is_(None))
            & (PasswordResetToken.id != record.id)
        )
        .values(used_at=now)
    )
    await record_audit(
        session,
        action="PASSWORD_RESET",
        entity_type="User",
        entity_id=user.id,
        ngo_id=user.ngo_id,
        user_id=user.id,
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return MessageResponse(message="Parola a fost schimbata")
