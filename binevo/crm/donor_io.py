"""
Donor CSV export and import.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.plans import UNLIMITED, get_donor_limit
from binevo.core.database.entities import Donor
from binevo.core.database.repositories import count_rows
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import Channel, DonorStatus, DonorType
from binevo.server.core.security import encrypt_pii

from .tags import assign_tags

logger = get_logger(__name__)

EXPORT_COLUMNS = [
    "email",
    "name",
    "phone",
    "donor_type",
    "company_name",
    "company_cui",
    "status",
    "preferred_channel",
    "email_consent",
    "sms_consent",
    "total_donated",
    "donation_count",
    "last_donation_at",
    "tags",
    "created_at",
]

_TRUE_VALUES = {"1", "true", "yes", "da", "y"}
MAX_IMPORT_ERRORS = 50


@dataclass
class ImportReport:
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"imported": self.imported, "skipped": self.skipped, "errors": self.errors[:MAX_IMPORT_ERRORS]}


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def export_donors_csv(donors: Sequence[Donor], tags_by_donor: Dict[str, List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for donor in donors:
        writer.writerow(
            {
                "email": donor.email or "",
                "name": donor.name or "",
                "phone": donor.phone or "",
                "donor_type": donor.donor_type,
                "company_name": donor.company_name or "",
                "company_cui": donor.company_cui or "",
                "status": donor.status,
                "preferred_channel": donor.preferred_channel,
                "email_consent": "yes" if donor.email_consent else "no",
                "sms_consent": "yes" if donor.sms_consent else "no",
                "total_donated": f"{donor.total_donated:.2f}",
                "donation_count": donor.donation_count,
                "last_donation_at": donor.last_donation_at.isoformat() if donor.last_donation_at else "",
                "tags": ";".join(tags_by_donor.get(donor.id, [])),
                "created_at": donor.created_at.isoformat(),
            }
        )
    return buffer.getvalue()


async def active_donor_count(session: AsyncSession, ngo_id: str) -> int:
    """Donors that count against the plan limit; anonymised rows free their slot."""
    stmt = select(Donor).where((Donor.ngo_id == ngo_id) & (Donor.status != DonorStatus.DELETED.value))
    return await count_rows(session, stmt)


async def import_donors_csv(session: AsyncSession, ngo_id: str, plan: str, content: str) -> ImportReport:
    """Create donors from CSV rows, deduplicating by email.

    Stops creating donors once the plan's donor limit is reached; the
    remaining rows are reported as skipped.
    """
    report = ImportReport()
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    if not reader.fieldnames:
        report.errors.append("CSV file is empty")
        return report
    reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
    if "email" not in reader.fieldnames and "phone" not in reader.fieldnames:
        report.errors.append("CSV must contain an 'email' or 'phone' column")
        return report

    limit = get_donor_limit(plan)
    current = await active_donor_count(session, ngo_id)
    existing_emails = set(
        (await session.execute(select(Donor.email).where((Donor.ngo_id == ngo_id) & (Donor.email.is_not(None)))))
        .scalars()
        .all()
    )

    for line_number, row in enumerate(reader, start=2):
        email = (row.get("email") or "").strip().lower() or None
        phone = (row.get("phone") or "").strip() or None
        if not email and not phone:
            report.skipped += 1
            report.errors.append(f"Row {line_number}: missing email and phone")
            continue
        if email and ("@" not in email or email in existing_emails):
            report.skipped += 1
            if email in existing_emails:
                report.errors.append(f"Row {line_number}: duplicate email {email}")
            else:
                report.errors.append(f"Row {line_number}: invalid email")
            continue
        if limit != UNLIMITED and current >= limit:
            report.skipped += 1
            report.errors.append(f"Row {line_number}: donor limit of {limit} reached")
            continue

        donor_type = (row.get("donor_type") or "").strip().upper()
        channel = (row.get("preferred_channel") or "").strip().upper()
        donor = Donor(
            ngo_id=ngo_id,
            email=email,
            email_encrypted=encrypt_pii(email),
            phone=phone,
            phone_encrypted=encrypt_pii(phone),
            name=(row.get("name") or "").strip() or None,
            notes=(row.get("notes") or "").strip() or None,
            donor_type=donor_type if donor_type in DonorType.__members__ else DonorType.INDIVIDUAL.value,
            company_name=(row.get("company_name") or "").strip() or None,
            company_cui=(row.get("company_cui") or "").strip() or None,
            preferred_channel=channel if channel in Channel.__members__ else Channel.EMAIL.value,
            status=DonorStatus.ACTIVE.value,
            email_consent=_flag(row.get("email_consent")),
            sms_consent=_flag(row.get("sms_consent")),
            privacy_consent=_flag(row.get("privacy_consent")),
            source="csv_import",
        )
        session.add(donor)
        await session.flush()

        tag_names = [t for t in (row.get("tags") or "").split(";") if t.strip()]
        if tag_names:
            await assign_tags(session, ngo_id, donor.id, tag_names)

        if email:
            existing_emails.add(email)
        current += 1
        report.imported += 1

    await session.commit()
    logger.info(f"CSV import for NGO {ngo_id}: {report.imported} imported, {report.skipped} skipped")
    return report
