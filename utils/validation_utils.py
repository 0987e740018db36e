"""
utils/validation_utils.py

Purpose: Input validation and sanitisation

- ObjectId parsing
- GSTIN / pincode format checks
- Regex-safe search terms
- Embedded contact list cleanup
"""

import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId

from aceops.core.exceptions import NotFoundError


def parse_object_id(value: Any, label: str = "Resource") -> ObjectId:
    """
    Converts a path parameter to an ObjectId.

    A malformed id can never match a document, so it is reported as 404.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFoundError(f"{label} not found")


def optional_object_id(value: Any) -> Optional[ObjectId]:
    """Returns an ObjectId for valid input, otherwise None."""
    if isinstance(value, ObjectId):
        return value
    if value and ObjectId.is_valid(str(value)):
        return ObjectId(str(value))
    return None


def validate_gstin(gstin: str) -> bool:
    """
    Validates GSTIN format.

    Format: 2 digits (state) + 10 chars (PAN) + 1 entity digit + Z + checksum
    Example: 29AABCU9603R1ZM
    """
    if not gstin:
        return False

    gstin = gstin.strip().upper()

    pattern = r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}[Z]{1}[0-9A-Z]{1}$"
    if not re.match(pattern, gstin):
        return False

    state_code = int(gstin[:2])
    return 1 <= state_code <= 38


def is_valid_pincode(value: Any) -> bool:
    return bool(re.fullmatch(r"\d{6}", str(value or "").strip()))


def escape_regex(value: Any) -> str:
    return re.escape(str(value or ""))


def exact_ci(value: str) -> Dict[str, str]:
    """Mongo filter for a case-insensitive exact string match."""
    return {"$regex": f"^{escape_regex(value.strip())}$", "$options": "i"}


def contains_ci(value: str) -> Dict[str, str]:
    return {"$regex": escape_regex(value.strip()), "$options": "i"}


def sanitize_clients(clients: Any, with_details: bool = True) -> List[Dict[str, str]]:
    """
    Keeps only contacts that have both a name and a contact number.

    Contact numbers are stored as strings so leading zeros survive.
    """
    cleaned = []
    for client in clients or []:
        if not isinstance(client, dict):
            continue
        name = str(client.get("name") or "").strip()
        number = str(client.get("contactNumber") or "").strip()
        if not name or not number:
            continue
        entry = {"name": name, "contactNumber": number}
        if with_details:
            entry["department"] = str(client.get("department") or "").strip()
            entry["email"] = str(client.get("email") or "").strip()
        cleaned.append(entry)
    return cleaned
