"""
LinkedIn prospect import for the browser extension.

The extension authenticates with a per-NGO ``ApiToken``. Each NGO may import
``PROSPECT_DAILY_LIMIT`` profiles per UTC day.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from binevo.billing.plans import effective_plan, has_feature
from binevo.core.database.base import utc_now
from binevo.core.database.entities import ApiToken, LinkedInProspect, Ngo
from binevo.core.errors import (
    AuthenticationError,
    InvalidRequestError,
    PlanFeatureUnavailableError,
    QuotaExceededError,
)
from binevo.core.logging_config import get_logger
from binevo.server.core.config import settings

logger = get_logger(__name__)

IMPORT_SOURCE = "chrome_extension"
FEATURE = "linkedin_prospects"


def normalize_profile_url(url: str) -> str:
    """Drop query string, fragment and trailing slash from a profile URL."""
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


def start_of_utc_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def authenticate_api_token(session: AsyncSession, raw_token: Optional[str]) -> ApiToken:
    """Resolve a bearer token to an active ``ApiToken`` and touch ``last_used_at``."""
    if not raw_token:
        raise AuthenticationError("Missing API token")
    stmt = select(ApiToken).where(ApiToken.token == raw_token)
    api_token = (await session.execute(stmt)).scalars().first()
    if api_token is None or not api_token.is_active:
        raise AuthenticationError("Invalid or revoked API token")
    api_token.last_used_at = utc_now()
    session.add(api_token)
    await session.commit()
    return api_token


async def imports_today(session: AsyncSession, ngo_id: str, now: Optional[datetime] = None) -> int:
    since = start_of_utc_day(now or utc_now())
    stmt = (
        select(func.count())
        .select_from(LinkedInProspect)
        .where(
            (LinkedInProspect.ngo_id == ngo_id)
            & (LinkedInProspect.import_source == IMPORT_SOURCE)
            & (LinkedInProspect.created_at >= since)
        )
    )
    return (await session.execute(stmt)).scalar_one()


async def daily_remaining(session: AsyncSession, ngo_id: str, now: Optional[datetime] = None) -> int:
    return max(0, settings.prospect_daily_limit - await imports_today(session, ngo_id, now))


async def import_prospects(
    session: AsyncSession,
    api_token: ApiToken,
    items: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Import profiles captured by the extension, honouring the daily quota."""
    ngo = await session.get(Ngo, api_token.ngo_id)
    if ngo is None or not ngo.is_active:
        raise AuthenticationError("Invalid or revoked API token")
    if not has_feature(effective_plan(ngo), FEATURE):
        raise PlanFeatureUnavailableError("LinkedIn prospecting requires the ELITE plan")
    if not items:
        raise InvalidRequestError("No prospects provided")

    now = now or utc_now()
    remaining = await daily_remaining(session, ngo.id, now)
    if remaining <= 0:
        raise QuotaExceededError(
            f"Daily import limit of {settings.prospect_daily_limit} reached",
            code="DAILY_LIMIT_REACHED",
            extra={"imported": 0, "duplicates": 0, "daily_remaining": 0},
        )

    batch = items[:remaining]
    existing = await _existing_urls(session, ngo.id, batch)
    imported = 0
    duplicates = 0
    errors: List[str] = []

    for index, item in enumerate(batch):
        full_name = (item.get("full_name") or "").strip()
        raw_url = (item.get("profile_url") or "").strip()
        if not full_name or not raw_url:
            errors.append(f"Item {index}: name and profile URL are required")
            continue
        profile_url = normalize_profile_url(raw_url)
        if profile_url in existing:
            duplicates += 1
            continue
        session.add(
            LinkedInProspect(
                ngo_id=ngo.id,
                full_name=full_name[:255],
                headline=item.get("headline"),
                company=item.get("company"),
                location=item.get("location"),
                profile_url=profile_url,
                profile_image_url=item.get("profile_image_url"),
                tags=[str(tag)[:64] for tag in item.get("tags") or []],
                import_source=IMPORT_SOURCE,
                imported_by=api_token.user_id,
                created_at=now,
                updated_at=now,
            )
        )
        existing.add(profile_url)
        imported += 1

    await session.commit()
    logger.info(f"Imported {imported} prospects for NGO {ngo.id} ({duplicates} duplicates)")
    return {
        "imported": imported,
        "duplicates": duplicates,
        "errors": errors,
        "daily_remaining": max(0, remaining - imported),
        "ngo_name": ngo.name,
    }


async def _existing_urls(session: AsyncSession, ngo_id: str, items: Iterable[Dict[str, Any]]) -> set:
    urls = {normalize_profile_url(item["profile_url"]) for item in items if item.get("profile_url")}
    if not urls:
        return set()
    stmt = select(LinkedInProspect.profile_url).where(
        (LinkedInProspect.ngo_id == ngo_id) & (LinkedInProspect.profile_url.in_(urls))
    )
    return set((await session.execute(stmt)).scalars().all())
