"""
Stripe key provider.

Environment variables win; when the secret key is not set there, the keys
configured in the admin back office (platform settings row) are used. The
result is cached in-process for five minutes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database.entities import PLATFORM_SETTINGS_ID, PlatformSettings
from binevo.core.logging_config import get_logger
from binevo.server.core.config import settings

logger = get_logger(__name__)

CACHE_TTL_SECONDS = 300


@dataclass(frozen=True)
class StripeKeys:
    secret_key: Optional[str]
    publishable_key: Optional[str]
    webhook_secret: Optional[str]
    connect_webhook_secret: Optional[str]
    enabled: bool
    source: str

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.secret_key)


class StripeKeyProvider:
    """Resolves Stripe keys with a TTL cache."""

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock=time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached: Optional[StripeKeys] = None
        self._cached_at = 0.0

    def invalidate(self) -> None:
        self._cached = None
        self._cached_at = 0.0

    async def get(self, session: Optional[AsyncSession]) -> StripeKeys:
        if self._cached is not None and self._clock() - self._cached_at < self._ttl:
            return self._cached
        keys = await self._load(session)
        self._cached = keys
        self._cached_at = self._clock()
        return keys

    async def _load(self, session: Optional[AsyncSession]) -> StripeKeys:
        env = settings.stripe
        if env.secret_key:
            return StripeKeys(
                secret_key=env.secret_key,
                publishable_key=env.publishable_key,
                webhook_secret=env.webhook_secret,
                connect_webhook_secret=env.connect_webhook_secret,
                enabled=True,
                source="env",
            )

        platform: Optional[PlatformSettings] = None
        if session is not None:
            try:
                platform = await session.get(PlatformSettings, PLATFORM_SETTINGS_ID)
            except SQLAlchemyError as e:
                logger.error(f"Could not read Stripe keys from platform settings: {e}")

        if platform is None:
            return StripeKeys(None, None, env.webhook_secret, env.connect_webhook_secret, False, "none")

        return StripeKeys(
            secret_key=platform.stripe_secret_key,
            publishable_key=platform.stripe_publishable_key,
            webhook_secret=env.webhook_secret or platform.stripe_webhook_secret,
            connect_webhook_secret=env.connect_webhook_secret or platform.stripe_connect_webhook_secret,
            enabled=platform.stripe_enabled,
            source="database",
        )


stripe_key_provider = StripeKeyProvider()


async def get_stripe_keys(session: Optional[AsyncSession] = None) -> StripeKeys:
    return await stripe_key_provider.get(session)


def invalidate_stripe_keys_cache() -> None:
    stripe_key_provider.invalidate()
