"""
aceops/services/invoice_service.py

Purpose: Sales invoices built from quotations

- Line items and totals are snapshot from the quotation at creation
- Invoice numbers come from a format string and a per-financial-year counter
- Filtered, paginated listing and partial updates
"""

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from aceops.core.exceptions import DuplicateError, NotFoundError, ValidationError
from aceops.core.logging import LogContext, get_logger
from aceops.db.mongo import (
    get_collection,
    get_counters_collection,
    get_invoices_collection,
    get_job_sheets_collection,
    get_quotations_collection,
)
from utils.constants import DEFAULT_INVOICE_NUMBER_FORMAT
from utils.gst_utils import round2, to_number
from utils.time_utils import financial_year, ist_day_bounds, parse_datetime
from utils.validation_utils import contains_ci, optional_object_id, parse_object_id

logger = get_logger(__name__)

SEQ_TOKEN = re.compile(r"\{SEQ(\d+)\}", re.IGNORECASE)

SEARCH_FIELDS = (
    "invoiceDetails.invoiceNumber",
    "invoiceDetails.quotationRefNumber",
    "invoiceDetails.refJobSheetNumber",
    "clientCompanyName",
    "clientName",
    "billTo",
    "shipTo",
    "invoiceDetails.placeOfSupply",
    "invoiceDetails.poNumber",
    "invoiceDetails.eWayBillNumber",
    "createdBy",
)

# query param -> document field, matched as a case-insensitive substring
REGEX_FILTERS = {
    "invoiceNumber": "invoiceDetails.invoiceNumber",
    "quotationRefNumber": "invoiceDetails.quotationRefNumber",
    "refJobSheetNumber": "invoiceDetails.refJobSheetNumber",
    "clientCompanyName": "clientCompanyName",
    "clientName": "clientName",
    "placeOfSupply": "invoiceDetails.placeOfSupply",
    "poNumber": "invoiceDetails.poNumber",
    "eWayBillNumber": "invoiceDetails.eWayBillNumber",
    "createdBy": "createdBy",
}

# field -> (from param, to param)
AMOUNT_RANGES = {
    "subtotalTaxable": ("subtotalMin", "subtotalMax"),
    "grandTotal": ("grandMin", "grandMax"),
}
DATE_RANGES = {
    "invoiceDetails.date": ("dateFrom", "dateTo"),
    "invoiceDetails.quotationDate": ("quotationDateFrom", "quotationDateTo"),
    "invoiceDetails.dueDate": ("dueDateFrom", "dueDateTo"),
    "invoiceDetails.poDate": ("poDateFrom", "poDateTo"),
}

DETAIL_TEXT_FIELDS = (
    "clientOrderIdentification",
    "otherRef",
    "placeOfSupply",
    "poNumber",
    "eWayBillNumber",
    "invoiceNumber",
)

MAX_PAGE_SIZE = 1000


def format_invoice_number(format_str: str, fy: str, seq: int) -> str:
    """
    Expands ``{FY}`` and ``{SEQn}`` (n = zero-padded width, default 4).
    """
    match = SEQ_TOKEN.search(format_str)
    width = int(match.group(1)) if match else 4
    number = format_str.replace("{FY}", fy)
    return SEQ_TOKEN.sub(str(seq).zfill(width), number, count=1)


async def next_invoice_number(format_str: str, now: Optional[datetime] = None) -> str:
    fy = financial_year(now)
    counter = await get_counters_collection().find_one_and_update(
        {"key": f"invoice-{fy}"},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return format_invoice_number(format_str, fy, counter["seq"])


async def _product_hsn_codes(items: List[Dict[str, Any]]) -> Dict[Any, str]:
    ids = [optional_object_id(item.get("productId")) for item in items]
    ids = [i for i in ids if i]
    if not ids:
        return {}
    cursor = get_collection("products").find({"_id": {"$in": ids}}, {"hsnCode": 1})
    return {p["_id"]: str(p.get("hsnCode") or "").strip() async for p in cursor}


def build_line_items(quotation: Dict[str, Any], product_hsn: Dict[Any, str]) -> List[Dict[str, Any]]:
    """
    Converts quotation lines into invoice lines.

    The quotation's GST % is split evenly into CGST and SGST. A line without
    an HSN code (on the line or its product) is rejected.
    """
    items = []
    for idx, line in enumerate(quotation.get("items") or []):
        sl_no = line.get("slNo") or idx + 1
        hsn = str(line.get("hsnCode") or "").strip() or product_hsn.get(optional_object_id(line.get("productId")), "")
        if not hsn:
            raise ValidationError(f"HSN code missing for item #{sl_no}")

        taxable = to_number(line.get("amount"))
        gst_percent = to_number(line.get("productGST") if line.get("productGST") is not None else quotation.get("gst"))
        half_tax = taxable * gst_percent / 100 / 2
        half_pct = round(gst_percent / 2, 3)

        items.append({
            "slNo": sl_no,
            "description": line.get("product") or "",
            "hsnCode": hsn,
            "quantity": to_number(line.get("quantity")),
            "unit": "NOS",
            "rate": to_number(line.get("rate")),
            "taxableAmount": taxable,
            "cgstAmount": round2(half_tax),
            "cgstPercent": half_pct,
            "sgstAmount": round2(half_tax),
            "sgstPercent": half_pct,
            "totalAmount": to_number(line.get("total")),
        })
    return items


async def create_from_quotation(quotation_id: str, format_str: Optional[str], user: Dict[str, Any]) -> Dict[str, Any]:
    quotation = await get_quotations_collection().find_one({"_id": parse_object_id(quotation_id, "Quotation")})
    if not quotation:
        raise NotFoundError("Quotation not found")

    job_sheet = None
    if quotation.get("quotationNumber"):
        job_sheet = await get_job_sheets_collection().find_one(
            {"referenceQuotation": quotation["quotationNumber"]},
            {"jobSheetNumber": 1},
            sort=[("createdAt", DESCENDING)],
        )

    items = build_line_items(quotation, await _product_hsn_codes(quotation.get("items") or []))

    number_format = format_str.strip() if format_str and format_str.strip() else DEFAULT_INVOICE_NUMBER_FORMAT
    invoice_number = await next_invoice_number(number_format)
    now = datetime.utcnow()

    invoice = {
        "quotationId": quotation["_id"],
        "billTo": quotation.get("customerAddress") or "",
        "shipTo": "",
        "clientCompanyName": quotation.get("customerCompany") or "",
        "clientName": quotation.get("customerName") or "",
        "items": items,
        "invoiceDetails": {
            "refJobSheetNumber": (job_sheet or {}).get("jobSheetNumber") or "",
            "quotationRefNumber": quotation.get("quotationNumber") or "",
            "quotationDate": quotation.get("createdAt") or now,
            "clientOrderIdentification": "",
            "discount": 0,
            "otherRef": "",
            "invoiceNumber": invoice_number,
            "invoiceNumberFormat": number_format,
            "date": now,
            "placeOfSupply": "",
            "dueDate": None,
            "poDate": None,
            "poNumber": "",
            "eWayBillNumber": "",
        },
        "subtotalTaxable": round2(sum(i["taxableAmount"] for i in items)),
        "totalCgst": round2(sum(i["cgstAmount"] for i in items)),
        "totalSgst": round2(sum(i["sgstAmount"] for i in items)),
        "grandTotal": round2(sum(i["totalAmount"] for i in items)),
        "createdBy": user.get("email", ""),
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        await get_invoices_collection().insert_one(invoice)
    except DuplicateKeyError:
        raise DuplicateError(f"Invoice number {invoice_number} already exists")

    with LogContext(invoice_id=str(invoice["_id"])):
        logger.info(f"Invoice {invoice_number} created from quotation {quotation.get('quotationNumber')}")
    return {"message": "Invoice created", "invoice": invoice}


def _date_bound(value: str) -> datetime:
    try:
        return parse_datetime(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def _day_bounds(value: str) -> Tuple[datetime, datetime]:
    try:
        return ist_day_bounds(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def build_list_query(params: Dict[str, Any]) -> Dict[str, Any]:
    clauses: List[Dict[str, Any]] = []

    if params.get("search"):
        pattern = contains_ci(params["search"])
        clauses.append({"$or": [{field: pattern} for field in SEARCH_FIELDS]})

    for param, field in REGEX_FILTERS.items():
        if params.get(param):
            clauses.append({field: contains_ci(params[param])})

    for field, (low, high) in AMOUNT_RANGES.items():
        cond = {}
        if params.get(low) is not None:
            cond["$gte"] = params[low]
        if params.get(high) is not None:
            cond["$lte"] = params[high]
        if cond:
            clauses.append({field: cond})

    for field, (start, end) in DATE_RANGES.items():
        cond = {}
        if params.get(start):
            cond["$gte"] = _day_bounds(params[start])[0]
        if params.get(end):
            cond["$lt"] = _day_bounds(params[end])[1]
        if cond:
            clauses.append({field: cond})

    return {"$and": clauses} if clauses else {}


async def list_invoices(params: Dict[str, Any], page: int = 1, limit: int = 100) -> Dict[str, Any]:
    query = build_list_query(params)
    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))

    collection = get_invoices_collection()
    cursor = collection.find(query).sort("createdAt", DESCENDING).skip((page - 1) * limit).limit(limit)
    rows = await cursor.to_list(length=limit)
    total = await collection.count_documents(query)

    return {
        "invoices": rows,
        "totalInvoices": total,
        "currentPage": page,
        "totalPages": max(1, math.ceil(total / limit)),
    }


async def get_invoice(invoice_id: str) -> Dict[str, Any]:
    invoice = await get_invoices_collection().find_one({"_id": parse_object_id(invoice_id, "Invoice")})
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def _detail_updates(details: Dict[str, Any]) -> Dict[str, Any]:
    updates: Dict[str, Any] = {}
    for field in DETAIL_TEXT_FIELDS:
        if field in details:
            updates[f"invoiceDetails.{field}"] = details[field]

    if "refJobSheetNumber" in details:
        ref = details["refJobSheetNumber"]
        updates["invoiceDetails.refJobSheetNumber"] = ref if ref and str(ref).strip() else None
    if "discount" in details:
        discount = details["discount"]
        if discount in ("", None):
            updates["invoiceDetails.discount"] = None
        else:
            try:
                updates["invoiceDetails.discount"] = float(discount)
            except (TypeError, ValueError):
                raise ValidationError("Discount must be a number")
    for field in ("dueDate", "poDate"):
        if field in details:
            updates[f"invoiceDetails.{field}"] = _date_bound(details[field]) if details[field] else None
    return updates


async def update_invoice(invoice_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    object_id = parse_object_id(invoice_id, "Invoice")
    updates = {field: changes[field] for field in ("billTo", "shipTo", "clientCompanyName") if field in changes}
    if changes.get("invoiceDetails"):
        updates.update(_detail_updates(changes["invoiceDetails"]))
    updates["updatedAt"] = datetime.utcnow()

    try:
        invoice = await get_invoices_collection().find_one_and_update(
            {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        raise DuplicateError("Invoice number already exists")
    if not invoice:
        raise NotFoundError("Invoice not found")
    return {"message": "Invoice updated", "invoice": invoice}
