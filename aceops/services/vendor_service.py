"""
aceops/services/vendor_service.py

Purpose: Vendor master data

- GST numbers and bank accounts as arrays with exactly one primary
- Legacy single gst / bank fields folded into the arrays
- Soft delete by default, hard delete on request
- Excel bulk import
"""

import json
from datetime import datetime
from typing import Any, Dict, List

from pymongo import DESCENDING

from aceops.core.exceptions import NotFoundError, ValidationError
from aceops.core.logging import get_logger
from aceops.db.mongo import get_vendors_collection
from aceops.services.audit import diff_fields, log_entry
from aceops.services.spreadsheet import cell_text
from utils.validation_utils import is_valid_pincode, parse_object_id, sanitize_clients

logger = get_logger(__name__)

LEGACY_FIELDS = ("gst", "bankName", "accountNumber", "ifscCode")
TRACKED_FIELDS = (
    "vendorName", "vendorCompany", "brandDealing", "location", "clients",
    "postalCode", "reliability", "gstNumbers", "bankAccounts",
)


def normalise_reliability(value: Any) -> str:
    text = str(value or "").strip().lower()
    return "non-reliable" if text in ("non-reliable", "non reliable") else "reliable"


def ensure_primary(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Guarantees exactly one primary entry. Falls back to the first entry.
    """
    if not entries:
        return []
    first_primary = next((i for i, e in enumerate(entries) if e.get("isPrimary")), 0)
    for index, entry in enumerate(entries):
        entry["isPrimary"] = index == first_primary
    return entries


def _text(value: Any) -> str:
    return str(value if value is not None else "").strip()


def normalise_gsts(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    if isinstance(body.get("gstNumbers"), list):
        mapped = [
            {"gst": _text(g.get("gst")), "label": _text(g.get("label")), "isPrimary": bool(g.get("isPrimary"))}
            for g in body["gstNumbers"] if isinstance(g, dict)
        ]
        return ensure_primary([g for g in mapped if g["gst"]])
    if body.get("gst"):
        return ensure_primary([{"gst": _text(body["gst"]), "label": "", "isPrimary": True}])
    return []


def normalise_banks(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    keys = ("bankName", "accountNumber", "ifscCode", "accountHolder", "branch")
    if isinstance(body.get("bankAccounts"), list):
        mapped = [
            {**{key: _text(b.get(key)) for key in keys}, "isPrimary": bool(b.get("isPrimary"))}
            for b in body["bankAccounts"] if isinstance(b, dict)
        ]
        return ensure_primary([b for b in mapped if b["bankName"] or b["accountNumber"] or b["ifscCode"]])
    if body.get("bankName") or body.get("accountNumber") or body.get("ifscCode"):
        legacy = {key: _text(body.get(key)) for key in keys}
        legacy["isPrimary"] = True
        return [legacy]
    return []


def _vendor_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    name = body.get("vendorName")
    if not name or not isinstance(name, str) or not name.strip():
        raise ValidationError("Vendor name is required")

    postal = _text(body.get("postalCode"))
    if postal and not is_valid_pincode(postal):
        raise ValidationError("Postal code must be 6 digits")

    return {
        "vendorName": name.strip(),
        "vendorCompany": body.get("vendorCompany"),
        "brandDealing": body.get("brandDealing"),
        "location": body.get("location"),
        "clients": sanitize_clients(body.get("clients"), with_details=False),
        "postalCode": postal,
        "reliability": normalise_reliability(body.get("reliability")),
        "gstNumbers": normalise_gsts(body),
        "bankAccounts": normalise_banks(body),
    }


async def list_vendors() -> List[Dict[str, Any]]:
    cursor = get_vendors_collection().find({"deleted": False}, {"logs": 0}).sort("createdAt", DESCENDING)
    return await cursor.to_list(length=None)


async def get_vendor(vendor_id: str) -> Dict[str, Any]:
    vendor = await get_vendors_collection().find_one({"_id": parse_object_id(vendor_id, "Vendor")})
    if not vendor:
        raise NotFoundError("Vendor not found")
    return vendor


async def create_vendor(body: Dict[str, Any], user_id: Any, ip: str) -> Dict[str, Any]:
    doc = _vendor_fields(body)
    doc.update({
        "deleted": False,
        "createdBy": user_id,
        "createdAt": datetime.utcnow(),
        "logs": [log_entry("create", user_id, ip)],
    })
    await get_vendors_collection().insert_one(doc)
    logger.info(f"Vendor created: {doc['vendorName']}", extra={"user_id": str(user_id)})
    return doc


async def update_vendor(vendor_id: str, body: Dict[str, Any], user_id: Any, ip: str) -> Dict[str, Any]:
    fields = _vendor_fields(body)
    vendor = await get_vendor(vendor_id)

    _, logs = diff_fields(vendor, fields, TRACKED_FIELDS, user_id, ip)
    update: Dict[str, Any] = {
        "$set": {**fields, "updatedAt": datetime.utcnow(), "updatedBy": user_id},
        # legacy single-value fields are folded into the arrays above
        "$unset": {field: "" for field in LEGACY_FIELDS},
    }
    if logs:
        update["$push"] = {"logs": {"$each": logs}}

    await get_vendors_collection().update_one({"_id": vendor["_id"]}, update)
    return await get_vendor(vendor_id)


async def delete_vendor(vendor_id: str, user_id: Any, ip: str, hard: bool = False) -> Dict[str, str]:
    vendor = await get_vendor(vendor_id)
    vendors = get_vendors_collection()

    if hard:
        await vendors.delete_one({"_id": vendor["_id"]})
        logger.warning(f"Vendor permanently deleted: {vendor.get('vendorName')}", extra={"user_id": str(user_id)})
        return {"message": "Permanently deleted"}

    await vendors.update_one(
        {"_id": vendor["_id"]},
        {
            "$set": {"deleted": True, "deletedAt": datetime.utcnow(), "deletedBy": user_id},
            "$push": {"logs": log_entry("delete", user_id, ip)},
        }
    )
    return {"message": "Soft deleted successfully"}


async def bulk_import(rows: List[Dict[str, Any]], user_id: Any, ip: str) -> Dict[str, Any]:
    """
    Imports vendor rows. The ``clients`` column holds a JSON array string.
    """
    if not rows:
        raise ValidationError("No data found in the file")

    docs = []
    for index, row in enumerate(rows):
        clients = []
        raw_clients = row.get("clients")
        if isinstance(raw_clients, str) and raw_clients.strip():
            try:
                parsed = json.loads(raw_clients)
                if isinstance(parsed, list):
                    clients = sanitize_clients(parsed, with_details=False)
            except ValueError:
                logger.warning(f"Row {index + 2}: invalid clients JSON")

        postal = cell_text(row.get("postalCode"))
        if postal and not is_valid_pincode(postal):
            logger.warning(f"Row {index + 2}: invalid postal code")

        legacy = {key: cell_text(row.get(key)) for key in LEGACY_FIELDS}
        docs.append({
            "vendorName": cell_text(row.get("vendorName")),
            "vendorCompany": cell_text(row.get("vendorCompany")),
            "brandDealing": cell_text(row.get("brandDealing")),
            "location": cell_text(row.get("location")),
            "clients": clients,
            "postalCode": postal,
            "reliability": normalise_reliability(row.get("reliability")),
            "gstNumbers": normalise_gsts(legacy),
            "bankAccounts": normalise_banks(legacy),
            "deleted": False,
            "createdBy": user_id,
            "createdAt": datetime.utcnow(),
            "logs": [log_entry("create", user_id, ip)],
        })

    await get_vendors_collection().insert_many(docs)
    logger.info(f"Bulk imported {len(docs)} vendors", extra={"user_id": str(user_id)})
    return {"message": "Vendors uploaded successfully", "vendors": docs}
