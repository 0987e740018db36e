"""
utils/gst_utils.py

Purpose: GST-specific utilities for e-invoicing

- Two-decimal rounding that matches the IRP's half-up behaviour
- State code / pincode extraction from GSTIN and free-text addresses
- Buyer address parsing and fallback resolution
- SEZ detection (GSTN flags and buyer strings)
- CGST/SGST/IGST split for a single line
"""

import json
import re
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

SEZ_PATTERN = re.compile(r"(^|[^A-Z])SEZ([^A-Z]|$)|SPECIAL\s+ECONOMIC\s+ZONE", re.IGNORECASE)
SEZ_B2B_REJECTION = re.compile(r"Recepient\s+cannot\s+be\s+SEZ\s+for\s*-\s*B2B\s+transaction", re.IGNORECASE)

SEZ_SUPPLY_TYPES = ("SEZWP", "SEZWOP")

DEFAULT_PHONE = "9999999999"
DEFAULT_EMAIL = "accounts@example.com"


def round2(value: Any) -> float:
    """
    Rounds to 2 decimals, half away from zero.

    Python's ``round`` uses banker's rounding which disagrees with the IRP
    validator on values such as 2.675.
    """
    try:
        number = Decimal(str(value or 0))
    except Exception:
        return 0.0
    return float(number.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_number(value: Any) -> float:
    """Coerces loose input ("12.5", None, "") to a float, defaulting to 0."""
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def format_ddmmyyyy(value: Any) -> str:
    """
    Formats a date for the IRP (``dd/mm/yyyy``).
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        dt = datetime.utcnow()
    return dt.strftime("%d/%m/%Y")


def only_digits(value: Any, min_len: int = 6, max_len: int = 12, fallback: str = DEFAULT_PHONE) -> str:
    digits = re.sub(r"\D", "", str(value or ""))
    if len(digits) < min_len or len(digits) > max_len:
        return fallback
    return digits


def email_or_default(value: Any, fallback: str = DEFAULT_EMAIL) -> str:
    if not isinstance(value, str):
        return fallback
    trimmed = value.strip()
    if len(trimmed) < 6 or len(trimmed) > 100:
        return fallback
    return trimmed


def state_code_from_gstin(gstin: Optional[str]) -> str:
    """The first two digits of a GSTIN are the registration state code."""
    match = re.match(r"^(\d{2})", str(gstin or ""))
    return match.group(1) if match else ""


def extract_pincode(*sources: Optional[str]) -> str:
    """Returns the last six-digit group found across the given strings."""
    joined = " ".join(s for s in sources if s)
    matches = re.findall(r"\d{6}", joined)
    return matches[-1] if matches else ""


def first_non_empty(*values: Any) -> str:
    for value in values:
        if value is not None and str(value).strip():
            return str(value)
    return ""


def parse_company_address(address: Optional[str], explicit_pincode: Optional[str] = None) -> Dict[str, str]:
    """
    Splits a free-text address into IRP fields.

    Lines are split on newlines, commas and semicolons. The first line is
    Addr1, the last line that is not a bare pincode is Loc, and anything in
    between becomes Addr2.
    """
    raw = str(address or "")
    lines = [part.strip() for part in re.split(r"\r?\n|,|;", raw) if part.strip()]

    location = ""
    for token in reversed(lines):
        if not re.fullmatch(r"\d{6}", token):
            location = token
            break

    return {
        "address1": lines[0] if lines else "",
        "address2": ", ".join(lines[1:-1]).strip() if len(lines) > 2 else "",
        "location": location,
        "pincode": first_non_empty(explicit_pincode, extract_pincode(raw)),
    }


def build_buyer_basics(
    customer_details: Optional[Dict[str, Any]],
    company: Optional[Dict[str, Any]],
    invoice: Optional[Dict[str, Any]],
) -> Dict[str, str]:
    """
    Resolves buyer fields with priority: saved customer details, then the
    company master, then the invoice's bill-to text.
    """
    saved = customer_details or {}
    company = company or {}
    invoice = invoice or {}
    clients = company.get("clients") or [{}]
    first_client = clients[0] if clients else {}

    gstin = first_non_empty(saved.get("gstin"), company.get("GSTIN"))
    company_addr = parse_company_address(company.get("companyAddress"), company.get("pincode"))
    bill_addr = parse_company_address(invoice.get("billTo"))

    legal_name = first_non_empty(saved.get("legalName"), company.get("companyName"), invoice.get("clientCompanyName"))

    return {
        "gstin": gstin,
        "legalName": legal_name,
        "tradeName": first_non_empty(saved.get("tradeName"), company.get("brandName"), legal_name),
        "address1": first_non_empty(saved.get("address1"), company_addr["address1"], bill_addr["address1"]),
        "address2": first_non_empty(saved.get("address2"), company_addr["address2"], bill_addr["address2"]),
        "location": first_non_empty(saved.get("location"), company_addr["location"], bill_addr["location"]),
        "pincode": first_non_empty(
            saved.get("pincode"), company.get("pincode"), company_addr["pincode"], bill_addr["pincode"]
        ),
        "stateCode": first_non_empty(saved.get("stateCode"), state_code_from_gstin(gstin)),
        "phone": only_digits(first_non_empty(saved.get("phone"), first_client.get("contactNumber"))),
        "email": email_or_default(first_non_empty(saved.get("email"), first_client.get("email"))),
    }


def looks_sez(buyer: Any) -> bool:
    """
    True when the buyer's names or address mention an SEZ.

    Accepts either a raw string or an IRP ``BuyerDtls`` dict.
    """
    if isinstance(buyer, str):
        haystack = buyer
    else:
        buyer = buyer or {}
        haystack = " ".join(str(buyer.get(key) or "") for key in ("LglNm", "TrdNm", "Addr1", "Addr2", "Loc"))
    return bool(SEZ_PATTERN.search(haystack))


def gstn_says_sez(data: Dict[str, Any]) -> bool:
    """SEZ flag as reported by the GSTN taxpayer lookup."""
    flag = str(data.get("IsSezUnit") or data.get("IsSEZ") or data.get("Sez") or data.get("SEZ") or "")
    nature = str(data.get("TaxpayerType") or data.get("Nature") or data.get("RegType") or "")
    return flag.upper() == "Y" or "SEZ" in nature.upper()


def resolve_supply_type(requested: Optional[str], sez_by_gstn: bool, sez_by_strings: bool) -> str:
    """
    B2B for ordinary buyers. SEZ buyers get SEZWP unless SEZWOP was asked for.
    """
    if not (sez_by_gstn or sez_by_strings):
        return "B2B"
    wanted = str(requested or "").upper()
    return wanted if wanted in SEZ_SUPPLY_TYPES else "SEZWP"


def split_tax(
    assessable: float,
    gst_rate: float,
    seller_state: str,
    buyer_state: str,
    is_sez: bool = False,
    stored: Optional[Dict[str, Any]] = None,
) -> Dict[str, float]:
    """
    Splits the GST on one line into CGST/SGST/IGST.

    - SEZ supplies are always IGST.
    - A non-zero split already stored on the invoice line wins.
    - Inter-state supplies are IGST, intra-state are halved into CGST + SGST.
    """
    if is_sez:
        return {"cgst": 0.0, "sgst": 0.0, "igst": round2(assessable * gst_rate / 100)}

    stored = stored or {}
    cgst = to_number(stored.get("cgstAmount"))
    sgst = to_number(stored.get("sgstAmount"))
    igst = to_number(stored.get("igstAmount"))
    if cgst > 0 or sgst > 0 or igst > 0:
        return {"cgst": round2(cgst), "sgst": round2(sgst), "igst": round2(igst)}

    if seller_state and buyer_state and seller_state != buyer_state:
        return {"cgst": 0.0, "sgst": 0.0, "igst": round2(assessable * gst_rate / 100)}

    half = round2(assessable * gst_rate / 200)
    return {"cgst": half, "sgst": half, "igst": 0.0}


def invoice_remark(*candidates: Optional[str]) -> str:
    """IRP remarks must be 3..100 characters."""
    remark = first_non_empty(*[str(c).strip() if c else "" for c in candidates]).strip() or "N/A"
    remark = remark[:100]
    return remark if len(remark) >= 3 else "N/A"


def flatten_status_desc(status_desc: Any) -> Any:
    """
    Whitebooks sometimes returns ``status_desc`` as a JSON array string of
    ``{ErrorCode, ErrorMessage}`` objects. Joins the messages when it does.
    """
    if isinstance(status_desc, str) and status_desc.strip().startswith("["):
        try:
            return "\n".join(str(e.get("ErrorMessage", "")) for e in json.loads(status_desc))
        except (ValueError, AttributeError):
            return status_desc
    return status_desc


def sum_field(items: Iterable[Dict[str, Any]], key: str) -> float:
    return round2(sum(to_number(item.get(key)) for item in items))
