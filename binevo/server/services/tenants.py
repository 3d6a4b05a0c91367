"""
Tenant provisioning: slug generation and NGO + administrator creation.
"""

from __future__ import annotations

import re
import time
import unicodedata
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database.entities import Ngo, User
from binevo.core.models.domain import UserRole
from binevo.server.core.security import hash_password

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def slugify(value: str) -> str:
    ascii_value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_value.lower()).strip("-")
    return slug[:80] or "ong"


def base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


async def unique_slug(session: AsyncSession, name: str, now_ms: Optional[int] = None) -> str:
    """Slug for ``name``, suffixed with a base-36 timestamp when already taken."""
    slug = slugify(name)
    taken = (await session.execute(select(Ngo.id).where(Ngo.slug == slug))).first()
    if taken is None:
        return slug
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{slug}-{base36(stamp)}"


async def provision_ngo(
    session: AsyncSession,
    *,
    email: str,
    password: str,
    name: str,
    ngo_name: str,
) -> Tuple[User, Ngo]:
    """Create an NGO and its NGO_ADMIN user in one transaction."""
    ngo = Ngo(name=ngo_name, slug=await unique_slug(session, ngo_name))
    session.add(ngo)
    await session.flush()
    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name,
        role=UserRole.NGO_ADMIN.value,
        ngo_id=ngo.id,
    )
    session.add(user)
    await session.commit()
    return user, ngo
