"""
e-Factura: UBL 2.1 invoices in the Romanian CIUS-RO profile and upload to
the ANAF SPV API.
"""

from __future__ import annotations

import unicodedata
import xml.etree.ElementTree as ET
from collections import defaultdict
from typing import Dict, Optional

import httpx

from binevo.core.database.entities import Invoice, PlatformSettings
from binevo.core.errors import InvalidRequestError, ServiceNotConfiguredError
from binevo.core.logging_config import get_logger

from .donation_fee import round_money

logger = get_logger(__name__)

NS_INVOICE = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
NS_CAC = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
NS_CBC = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

CUSTOMIZATION_ID = "urn:cen.eu:en16931:2017#compliant#urn:efactura.mfinante.ro:CIUS-RO:1.0.1"
INVOICE_TYPE_CODE = "380"
PAYMENT_MEANS_CREDIT_TRANSFER = "30"
VAT_EXEMPTION_REASON = "VATE - Scutit de TVA conform art. 292 Cod Fiscal"
UNIT_CODE_MONTH = "MON"

ANAF_API_BASE = {
    "test": "https://api.anaf.ro/test/FCTEL/rest",
    "prod": "https://api.anaf.ro/prod/FCTEL/rest",
}
ANAF_OAUTH_BASE = "https://logincert.anaf.ro/anaf-oauth2/v1"

COUNTY_CODES: Dict[str, str] = {
    "alba": "AB", "arad": "AR", "arges": "AG", "bacau": "BC", "bihor": "BH",
    "bistrita-nasaud": "BN", "botosani": "BT", "braila": "BR", "brasov": "BV",
    "bucuresti": "B", "buzau": "BZ", "calarasi": "CL", "caras-severin": "CS",
    "cluj": "CJ", "constanta": "CT", "covasna": "CV", "dambovita": "DB",
    "dolj": "DJ", "galati": "GL", "giurgiu": "GR", "gorj": "GJ",
    "harghita": "HR", "hunedoara": "HD", "ialomita": "IL", "iasi": "IS",
    "ilfov": "IF", "maramures": "MM", "mehedinti": "MH", "mures": "MS",
    "neamt": "NT", "olt": "OT", "prahova": "PH", "salaj": "SJ",
    "satu mare": "SM", "sibiu": "SB", "suceava": "SV", "teleorman": "TR",
    "timis": "TM", "tulcea": "TL", "valcea": "VL", "vaslui": "VS",
    "vrancea": "VN",
}

ET.register_namespace("", NS_INVOICE)
ET.register_namespace("cac", NS_CAC)
ET.register_namespace("cbc", NS_CBC)


def _cac(parent: ET.Element, tag: str) -> ET.Element:
    return ET.SubElement(parent, f"{{{NS_CAC}}}{tag}")


def _cbc(parent: ET.Element, tag: str, text: object, **attrs: str) -> ET.Element:
    element = ET.SubElement(parent, f"{{{NS_CBC}}}{tag}", attrs)
    element.text = str(text)
    return element


def _amount(parent: ET.Element, tag: str, value: float, currency: str) -> ET.Element:
    return _cbc(parent, tag, f"{round_money(value):.2f}", currencyID=currency)


def county_subentity(county: Optional[str]) -> str:
    """ISO 3166-2:RO code required by CIUS-RO (``RO-CJ``, ``RO-B``)."""
    if not county:
        return "RO-B"
    normalized = unicodedata.normalize("NFKD", county).encode("ascii", "ignore").decode("ascii").lower().strip()
    normalized = normalized.replace("judetul ", "").replace("municipiul ", "")
    if normalized.startswith("bucuresti") or normalized.startswith("sector"):
        return "RO-B"
    return f"RO-{COUNTY_CODES.get(normalized, normalized[:2].upper())}"


def _party(parent: ET.Element, tag: str, *, name: str, cui: Optional[str], address: Optional[str],
           city: Optional[str], county: Optional[str], vat_payer: bool, reg_com: Optional[str] = None) -> None:
    party = _cac(_cac(parent, tag), "Party")

    postal = _cac(party, "PostalAddress")
    _cbc(postal, "StreetName", address or "-")
    _cbc(postal, "CityName", city or "-")
    _cbc(postal, "CountrySubentity", county_subentity(county))
    _cbc(_cac(postal, "Country"), "IdentificationCode", "RO")

    cui_digits = (cui or "").upper().removeprefix("RO").strip()
    if vat_payer and cui_digits:
        tax_scheme = _cac(party, "PartyTaxScheme")
        _cbc(tax_scheme, "CompanyID", f"RO{cui_digits}")
        _cbc(_cac(tax_scheme, "TaxScheme"), "ID", "VAT")

    legal = _cac(party, "PartyLegalEntity")
    _cbc(legal, "RegistrationName", name)
    _cbc(legal, "CompanyID", cui_digits or "-")
    if reg_com:
        _cbc(legal, "CompanyLegalForm", reg_com)


def _tax_category(parent: ET.Element, vat_payer: bool, rate: float) -> None:
    category = _cac(parent, "TaxCategory" if parent.tag.endswith("TaxSubtotal") else "ClassifiedTaxCategory")
    _cbc(category, "ID", "S" if vat_payer else "E")
    _cbc(category, "Percent", f"{rate:.2f}")
    if not vat_payer and parent.tag.endswith("TaxSubtotal"):
        _cbc(category, "TaxExemptionReason", VAT_EXEMPTION_REASON)
    _cbc(_cac(category, "TaxScheme"), "ID", "VAT")


def generate_ubl_xml(invoice: Invoice) -> str:
    """Render ``invoice`` as a UBL 2.1 CIUS-RO XML document."""
    if not invoice.items:
        raise InvalidRequestError("Invoice has no lines")

    currency = invoice.currency
    vat_payer = invoice.seller_vat_payer
    root = ET.Element(f"{{{NS_INVOICE}}}Invoice")

    _cbc(root, "CustomizationID", CUSTOMIZATION_ID)
    _cbc(root, "ID", invoice.invoice_number)
    _cbc(root, "IssueDate", invoice.issue_date.strftime("%Y-%m-%d"))
    _cbc(root, "DueDate", invoice.due_date.strftime("%Y-%m-%d"))
    _cbc(root, "InvoiceTypeCode", INVOICE_TYPE_CODE)
    if invoice.notes:
        _cbc(root, "Note", invoice.notes)
    _cbc(root, "DocumentCurrencyCode", currency)

    _party(
        root,
        "AccountingSupplierParty",
        name=invoice.seller_name,
        cui=invoice.seller_cui,
        address=invoice.seller_address,
        city=invoice.seller_city,
        county=invoice.seller_county,
        vat_payer=vat_payer,
        reg_com=invoice.seller_reg_com,
    )
    _party(
        root,
        "AccountingCustomerParty",
        name=invoice.buyer_name,
        cui=invoice.buyer_cui,
        address=invoice.buyer_address,
        city=invoice.buyer_city,
        county=invoice.buyer_county,
        vat_payer=False,
    )

    if invoice.seller_iban:
        means = _cac(root, "PaymentMeans")
        _cbc(means, "PaymentMeansCode", PAYMENT_MEANS_CREDIT_TRANSFER)
        account = _cac(means, "PayeeFinancialAccount")
        _cbc(account, "ID", invoice.seller_iban.replace(" ", ""))
        if invoice.seller_bank:
            _cbc(account, "Name", invoice.seller_bank)

    taxable_by_rate: Dict[float, float] = defaultdict(float)
    for item in invoice.items:
        rate = float(item.get("vat_rate", invoice.vat_rate)) if vat_payer else 0.0
        taxable_by_rate[rate] += float(item["total"])

    tax_total = _cac(root, "TaxTotal")
    _amount(tax_total, "TaxAmount", invoice.vat_amount, currency)
    for rate, taxable in sorted(taxable_by_rate.items()):
        subtotal = _cac(tax_total, "TaxSubtotal")
        _amount(subtotal, "TaxableAmount", taxable, currency)
        _amount(subtotal, "TaxAmount", taxable * rate / 100, currency)
        _tax_category(subtotal, vat_payer, rate)

    totals = _cac(root, "LegalMonetaryTotal")
    _amount(totals, "LineExtensionAmount", invoice.subtotal, currency)
    _amount(totals, "TaxExclusiveAmount", invoice.subtotal, currency)
    _amount(totals, "TaxInclusiveAmount", invoice.total_amount, currency)
    _amount(totals, "PayableAmount", invoice.total_amount, currency)

    for index, item in enumerate(invoice.items, start=1):
        line = _cac(root, "InvoiceLine")
        _cbc(line, "ID", index)
        _cbc(line, "InvoicedQuantity", f"{float(item.get('quantity', 1)):.2f}", unitCode=UNIT_CODE_MONTH)
        _amount(line, "LineExtensionAmount", float(item["total"]), currency)
        product = _cac(line, "Item")
        _cbc(product, "Name", item["description"])
        _tax_category(product, vat_payer, float(item.get("vat_rate", invoice.vat_rate)) if vat_payer else 0.0)
        price = _cac(line, "Price")
        _amount(price, "PriceAmount", float(item["unit_price"]), currency)

    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body


async def upload_to_anaf(
    invoice: Invoice,
    platform: PlatformSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Upload the UBL document to SPV and return ANAF's upload index."""
    if not platform.anaf_access_token:
        raise ServiceNotConfiguredError("ANAF OAuth token is not configured", code="ANAF_NOT_CONFIGURED")
    cif = (platform.company_cui or "").upper().removeprefix("RO").strip()
    if not cif:
        raise ServiceNotConfiguredError("Platform CUI is not configured", code="ANAF_NOT_CONFIGURED")

    base = ANAF_API_BASE.get(platform.anaf_environment, ANAF_API_BASE["test"])
    xml = generate_ubl_xml(invoice)
    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        response = await client.post(
            f"{base}/upload",
            params={"standard": "UBL", "cif": cif},
            content=xml.encode("utf-8"),
            headers={
                "Authorization": f"Bearer {platform.anaf_access_token}",
                "Content-Type": "text/plain",
            },
        )
    if response.status_code >= 400:
        logger.error(f"ANAF upload for {invoice.invoice_number} failed: {response.status_code}")
        raise InvalidRequestError(f"ANAF upload failed with status {response.status_code}", code="ANAF_UPLOAD_FAILED")

    document = ET.fromstring(response.text)
    upload_index = document.attrib.get("index_incarcare")
    if not upload_index:
        errors = [el.attrib.get("errorMessage", "") for el in document.iter() if "errorMessage" in el.attrib]
        raise InvalidRequestError(f"ANAF rejected the invoice: {'; '.join(errors) or 'unknown error'}")
    logger.info(f"Uploaded invoice {invoice.invoice_number} to ANAF, index {upload_index}")
    return upload_index
