"""
Formular 230: donors redirecting 3.5% of their income tax to an NGO.

Forms are collected from the NGO's mini-site or typed in by staff; the
NGO's name and fiscal code are copied onto each form as they were at
submission time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database.base import utc_now
from binevo.core.database.entities import Formular230, Ngo
from binevo.core.errors import InvalidRequestError
from binevo.core.monitoring import log_business_event
from binevo.server.core.security import encrypt_pii

REDIRECT_PERCENTAGE = 3.5
CNP_WEIGHTS = "279146358279"


def is_valid_cnp(cnp: str) -> bool:
    """Romanian personal numeric code: 13 digits, the last one a weighted checksum."""
    if len(cnp) != 13 or not cnp.isdigit():
        return False
    total = sum(int(digit) * int(weight) for digit, weight in zip(cnp, CNP_WEIGHTS))
    check = total % 11
    return int(cnp[12]) == (1 if check == 10 else check)


async def create_formular_230(
    session: AsyncSession,
    ngo: Ngo,
    data: Dict[str, Any],
    *,
    source: str,
    now: Optional[datetime] = None,
) -> Formular230:
    now = now or utc_now()
    cnp = data.pop("cnp", None)
    if cnp and not is_valid_cnp(cnp):
        raise InvalidRequestError("Invalid CNP", code="INVALID_CNP")
    tax_year = data.pop("tax_year", None) or now.year
    form = Formular230(
        ngo_id=ngo.id,
        cnp_encrypted=encrypt_pii(cnp),
        cnp_last4=cnp[-4:] if cnp else None,
        ngo_name=ngo.name,
        ngo_cui=ngo.cui or "",
        tax_year=tax_year,
        percentage=REDIRECT_PERCENTAGE,
        source=source,
        created_at=now,
        **data,
    )
    session.add(form)
    await session.commit()
    log_business_event("formular_230_submitted", ngo_id=ngo.id, source=source, tax_year=tax_year)
    return form
