"""
aceops/services/company_service.py

Purpose: Client company master data

- Create / update with case-insensitive name uniqueness
- Per-field audit logs on every change
- Soft delete
- Excel template and bulk import
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from aceops.core.exceptions import DuplicateError, NotFoundError, ValidationError
from aceops.core.logging import get_logger, LogContext
from aceops.db.mongo import get_companies_collection
from aceops.services.audit import diff_fields, log_entry, user_summaries
from aceops.services.spreadsheet import build_workbook, cell_text
from utils.constants import COMPANY_SHEET_HEADERS, MAX_CLIENTS_PER_SHEET_ROW, MSG_COMPANY_EXISTS
from utils.validation_utils import exact_ci, parse_object_id, sanitize_clients

logger = get_logger(__name__)

SCALAR_FIELDS = (
    "companyName", "brandName", "segment", "vendorCode", "portalUpload",
    "paymentTerms", "GSTIN", "companyAddress", "pincode",
)


async def _populate(companies: List[Dict[str, Any]], fields=("createdBy", "updatedBy", "deletedBy")) -> List[Dict[str, Any]]:
    ids = [c.get(f) for c in companies for f in fields]
    people = await user_summaries(ids)
    for company in companies:
        for field in fields:
            if company.get(field) in people:
                company[field] = people[company[field]]
    return companies


async def _name_taken(name: str, exclude_id: Any = None) -> bool:
    query: Dict[str, Any] = {"companyName": exact_ci(name)}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return await get_companies_collection().find_one(query, {"_id": 1}) is not None


async def create_company(data: Dict[str, Any], user_id: Any, ip: str) -> Dict[str, Any]:
    name = str(data.get("companyName") or "").strip()
    pincode = data.get("pincode")
    if not name or pincode in (None, ""):
        raise ValidationError("Company name and pincode are required")

    if await _name_taken(name):
        raise DuplicateError(MSG_COMPANY_EXISTS)

    doc = {field: data.get(field) for field in SCALAR_FIELDS}
    doc.update({
        "companyName": name,
        "pincode": str(pincode),
        "clients": sanitize_clients(data.get("clients")),
        "deleted": False,
        "createdBy": user_id,
        "createdAt": datetime.utcnow(),
        "logs": [log_entry("create", user_id, ip)],
    })

    try:
        await get_companies_collection().insert_one(doc)
    except DuplicateKeyError:
        raise DuplicateError(MSG_COMPANY_EXISTS)

    logger.info("Company created", extra={"company": name, "user_id": str(user_id)})
    return doc


async def list_companies(company_name: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {"deleted": {"$ne": True}}
    if company_name:
        query["companyName"] = exact_ci(company_name)
    cursor = get_companies_collection().find(query).sort("createdAt", DESCENDING)
    return await _populate(await cursor.to_list(length=None))


async def get_company(company_id: str) -> Dict[str, Any]:
    company = await get_companies_collection().find_one({"_id": parse_object_id(company_id, "Company")})
    if not company:
        raise NotFoundError("Company not found")
    return company


async def update_company(company_id: str, changes: Dict[str, Any], user_id: Any, ip: str) -> Dict[str, Any]:
    """
    Applies only the fields that actually changed, logging each one.

    Returns ``{"message", "company", "changes"}``.
    """
    company = await get_company(company_id)

    if "pincode" in changes and changes["pincode"] is not None:
        changes["pincode"] = str(changes["pincode"])
    if "clients" in changes:
        changes["clients"] = sanitize_clients(changes["clients"])
    changes = {key: value for key, value in changes.items() if value is not None}

    new_name = changes.get("companyName")
    if new_name and new_name != company.get("companyName") and await _name_taken(new_name, company["_id"]):
        raise DuplicateError("Company name already exists")

    updates, logs = diff_fields(company, changes, SCALAR_FIELDS + ("clients",), user_id, ip)
    if not updates:
        return {"message": "No changes", "company": company, "changes": []}

    updates["updatedAt"] = datetime.utcnow()
    updates["updatedBy"] = user_id

    with LogContext(company=company.get("companyName")):
        await get_companies_collection().update_one(
            {"_id": company["_id"]},
            {"$set": updates, "$push": {"logs": {"$each": logs}}}
        )
        logger.info(f"Company updated ({len(logs)} field(s))", extra={"user_id": str(user_id)})

    updated = await get_company(company_id)
    await _populate([updated], ("createdBy", "updatedBy"))
    return {"message": "Updated", "company": updated, "changes": logs}


async def delete_company(company_id: str, user_id: Any, ip: str) -> Dict[str, str]:
    company = await get_company(company_id)
    now = datetime.utcnow()
    await get_companies_collection().update_one(
        {"_id": company["_id"]},
        {
            "$set": {"deleted": True, "deletedAt": now, "deletedBy": user_id},
            "$push": {"logs": log_entry("delete", user_id, ip)},
        }
    )
    logger.info("Company soft-deleted", extra={"company": company.get("companyName"), "user_id": str(user_id)})
    return {"message": "Deleted"}


async def company_logs(company_id: str) -> Dict[str, Any]:
    company = await get_company(company_id)
    logs = company.get("logs") or []
    people = await user_summaries(
        [entry.get("performedBy") for entry in logs]
        + [company.get(f) for f in ("createdBy", "updatedBy", "deletedBy")]
    )
    for entry in logs:
        entry["performedBy"] = people.get(entry.get("performedBy"), entry.get("performedBy"))

    summary = {
        key: company.get(key)
        for key in (
            "_id", "companyName", "brandName", "GSTIN", "pincode", "createdAt",
            "createdBy", "updatedAt", "updatedBy", "deleted", "deletedAt", "deletedBy",
        )
    }
    for field in ("createdBy", "updatedBy", "deletedBy"):
        summary[field] = people.get(summary[field], summary[field])
    return {"company": summary, "logs": logs}


async def all_logs() -> Dict[str, List[Dict[str, Any]]]:
    """Every company's audit entries, newest first, tagged with the company name."""
    cursor = get_companies_collection().find({}, {"companyName": 1, "logs": 1})
    logs = []
    async for company in cursor:
        for entry in company.get("logs") or []:
            logs.append({**entry, "companyName": company.get("companyName")})
    logs.sort(key=lambda entry: entry.get("performedAt") or datetime.min, reverse=True)
    return {"logs": logs}


def company_template() -> bytes:
    example = [
        "Example Co", "Example Brand", "22AAAAA0000A1Z5", "123 Main St", "560001",
        "Alice", "Procurement", "alice@example.com", "9876543210",
    ]
    return build_workbook("Companies", COMPANY_SHEET_HEADERS, [example])


async def bulk_import(rows: List[Dict[str, Any]], user_id: Any, ip: str) -> Dict[str, Any]:
    """
    Imports template rows. Any invalid row rejects the whole sheet.

    Row numbers in errors match the spreadsheet (header is row 1).
    """
    to_create = []
    errors = []
    seen = set()

    for index, row in enumerate(rows):
        row_no = index + 2
        name = cell_text(row.get("Company Name*"))
        pincode = cell_text(row.get("Pincode*"))
        if not name or not pincode:
            errors.append(f"Row {row_no}: Company Name and Pincode required")
            continue
        if name.lower() in seen or await _name_taken(name):
            errors.append(f"Row {row_no}: {MSG_COMPANY_EXISTS}")
            continue
        seen.add(name.lower())

        clients = []
        for n in range(1, MAX_CLIENTS_PER_SHEET_ROW + 1):
            contact_name = cell_text(row.get(f"Client {n} Name"))
            contact = cell_text(row.get(f"Client {n} Contact"))
            if contact_name and contact:
                clients.append({
                    "name": contact_name,
                    "department": cell_text(row.get(f"Client {n} Department")),
                    "email": cell_text(row.get(f"Client {n} Email")),
                    "contactNumber": contact,
                })

        to_create.append({
            "companyName": name,
            "brandName": cell_text(row.get("Brand Name")),
            "GSTIN": cell_text(row.get("GSTIN")),
            "companyAddress": cell_text(row.get("Company Address")),
            "pincode": pincode,
            "clients": clients,
            "deleted": False,
            "createdBy": user_id,
            "createdAt": datetime.utcnow(),
            "logs": [log_entry("create", user_id, ip)],
        })

    if errors:
        raise ValidationError("Errors", details={"errors": errors})
    if not to_create:
        raise ValidationError("No rows to import")

    result = await get_companies_collection().insert_many(to_create)
    logger.info(f"Bulk imported {len(result.inserted_ids)} companies", extra={"user_id": str(user_id)})
    return {"message": "Bulk upload done", "count": len(result.inserted_ids)}
