"""
Unit tests for donor CSV import and export.
"""

import csv
import io

import pytest
from sqlmodel import select

from binevo.core.database.entities import Donor
from binevo.crm import donor_io
from binevo.crm.donor_io import EXPORT_COLUMNS, export_donors_csv, import_donors_csv
from binevo.crm.tags import tag_names_by_donor
from binevo.server.core.security import decrypt_pii

CSV_HEADER = "Email,Name,Phone,Donor_Type,Email_Consent,Tags\n"


async def _donors(session, ngo):
    stmt = select(Donor).where(Donor.ngo_id == ngo.id).order_by(Donor.email)
    return list((await session.execute(stmt)).scalars().all())


@pytest.mark.asyncio
async def test_import_creates_donors_with_tags(session, ngo):
    content = (
        "\ufeff"
        + CSV_HEADER
        + "Ion@Example.ro,Ion Pop,0722000111,company,da,voluntar;2024\n"
        + ",Fara Email,0733000222,,no,\n"
    )

    report = await import_donors_csv(session, ngo.id, "BASIC", content)

    assert report.as_dict() == {"imported": 2, "skipped": 0, "errors": []}
    donors = await _donors(session, ngo)
    by_name = {d.name: d for d in donors}
    ion = by_name["Ion Pop"]
    assert ion.email == "ion@example.ro"
    assert decrypt_pii(ion.email_encrypted) == "ion@example.ro"
    assert ion.donor_type == "COMPANY"
    assert ion.email_consent is True
    assert ion.source == "csv_import"
    assert (await tag_names_by_donor(session, [ion.id]))[ion.id] == ["2024", "voluntar"]
    assert by_name["Fara Email"].email is None
    assert by_name["Fara Email"].donor_type == "INDIVIDUAL"


@pytest.mark.asyncio
async def test_import_skips_duplicates_and_invalid_rows(session, ngo):
    session.add(Donor(ngo_id=ngo.id, email="existent@example.ro"))
    await session.commit()
    content = (
        CSV_HEADER
        + "existent@example.ro,Dublura,,,,\n"
        + "nu-e-email,Gresit,,,,\n"
        + ",Nimic,,,,\n"
        + "nou@example.ro,Nou,,,,\n"
        + "nou@example.ro,Nou Iar,,,,\n"
    )

    report = await import_donors_csv(session, ngo.id, "BASIC", content)

    assert report.imported == 1
    assert report.skipped == 4
    assert report.errors == [
        "Row 2: duplicate email existent@example.ro",
        "Row 3: invalid email",
        "Row 4: missing email and phone",
        "Row 6: duplicate email nou@example.ro",
    ]


@pytest.mark.asyncio
async def test_import_stops_at_donor_limit(session, ngo, monkeypatch):
    monkeypatch.setattr(donor_io, "get_donor_limit", lambda plan: 2)
    session.add(Donor(ngo_id=ngo.id, email="primul@example.ro"))
    await session.commit()
    content = CSV_HEADER + "a@example.ro,A,,,,\nb@example.ro,B,,,,\n"

    report = await import_donors_csv(session, ngo.id, "BASIC", content)

    assert report.imported == 1
    assert report.skipped == 1
    assert report.errors == ["Row 3: donor limit of 2 reached"]


@pytest.mark.asyncio
async def test_anonymised_donors_free_their_slot(session, ngo, monkeypatch):
    monkeypatch.setattr(donor_io, "get_donor_limit", lambda plan: 2)
    session.add_all(
        [
            Donor(ngo_id=ngo.id, email="primul@example.ro"),
            Donor(ngo_id=ngo.id, name="Anonimizat", status="DELETED", is_anonymized=True),
        ]
    )
    await session.commit()

    report = await import_donors_csv(session, ngo.id, "BASIC", CSV_HEADER + "a@example.ro,A,,,,\n")

    assert report.imported == 1
    assert report.errors == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content, error",
    [
        ("", "CSV file is empty"),
        ("name,city\nIon,Cluj\n", "CSV must contain an 'email' or 'phone' column"),
    ],
)
async def test_import_rejects_unusable_files(session, ngo, content, error):
    report = await import_donors_csv(session, ngo.id, "BASIC", content)

    assert report.imported == 0
    assert report.errors == [error]


def test_export_writes_all_columns():
    donor = Donor(
        id="d1",
        ngo_id="n1",
        email="ion@example.ro",
        name="Ion",
        email_consent=True,
        total_donated=150.5,
        donation_count=2,
    )

    output = export_donors_csv([donor], {"d1": ["a", "b"]})

    rows = list(csv.DictReader(io.StringIO(output)))
    assert list(rows[0].keys()) == EXPORT_COLUMNS
    assert rows[0]["email"] == "ion@example.ro"
    assert rows[0]["email_consent"] == "yes"
    assert rows[0]["sms_consent"] == "no"
    assert rows[0]["total_donated"] == "150.50"
    assert rows[0]["tags"] == "a;b"
    assert rows[0]["last_donation_at"] == ""
