import pytest

from binevo.core.database.entities import PlatformSettings
from binevo.payments.stripe_keys import StripeKeyProvider
from binevo.server.core.config import settings

pytestmark = pytest.mark.asyncio


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def _platform(session, **fields) -> PlatformSettings:
    platform = PlatformSettings(**fields)
    session.add(platform)
    await session.commit()
    return platform


async def test_environment_wins(session, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_env")
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_env")
    await _platform(session, stripe_enabled=True, stripe_secret_key="sk_db")

    keys = await StripeKeyProvider().get(session)

    assert keys.source == "env"
    assert keys.secret_key == "sk_env"
    assert keys.webhook_secret == "whsec_env"
    assert keys.is_configured


async def test_database_fallback(session):
    await _platform(
        session,
        stripe_enabled=True,
        stripe_secret_key="sk_db",
        stripe_publishable_key="pk_db",
        stripe_connect_webhook_secret="whsec_connect_db",
    )

    keys = await StripeKeyProvider().get(session)

    assert keys.source == "database"
    assert keys.secret_key == "sk_db"
    assert keys.publishable_key == "pk_db"
    assert keys.connect_webhook_secret == "whsec_connect_db"


async def test_disabled_in_database_is_not_configured(session):
    await _platform(session, stripe_enabled=False, stripe_secret_key="sk_db")

    keys = await StripeKeyProvider().get(session)

    assert not keys.is_configured


async def test_nothing_configured(session):
    keys = await StripeKeyProvider().get(session)

    assert keys.source == "none"
    assert not keys.is_configured


async def test_cache_respects_ttl(session):
    clock = FakeClock()
    provider = StripeKeyProvider(ttl_seconds=300, clock=clock)
    platform = await _platform(session, stripe_enabled=True, stripe_secret_key="sk_old")

    first = await provider.get(session)
    platform.stripe_secret_key = "sk_new"
    session.add(platform)
    await session.commit()

    clock.now += 299
    cached = await provider.get(session)
    clock.now += 2
    fresh = await provider.get(session)

    assert first.secret_key == "sk_old"
    assert cached.secret_key == "sk_old"
    assert fresh.secret_key == "sk_new"


async def test_invalidate_forces_reload(session):
    provider = StripeKeyProvider(clock=FakeClock())
    platform = await _platform(session, stripe_enabled=True, stripe_secret_key="sk_old")
    await provider.get(session)

    platform.stripe_secret_key = "sk_rotated"
    session.add(platform)
    await session.commit()
    provider.invalidate()

    assert (await provider.get(session)).secret_key == "sk_rotated"
