"""
aceops/services/einvoice_service.py

Purpose: GST e-invoicing workflow for a sales invoice

- authenticate -> customer -> reference -> generate (IRN) -> e-way bill
- One active (non-cancelled) EInvoice record per invoice carries the session
  token, buyer details, reference JSON and IRP acknowledgement
- SEZ buyers are detected from GSTN flags or buyer text and billed as SEZWP/SEZWOP
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional

from pymongo import DESCENDING, ReturnDocument

from aceops.core.config import settings
from aceops.core.exceptions import EInvoiceError, ExternalServiceError, NotFoundError, ValidationError
from aceops.core.logging import LogContext, get_logger
from aceops.db.mongo import get_companies_collection, get_einvoices_collection, get_invoices_collection
from aceops.services.whitebooks_client import get_whitebooks_client
from utils.constants import (
    EINVOICE_CANCELLED,
    EINVOICE_GENERATED,
    MSG_EINVOICE_NOT_INITIATED,
    WHITEBOOKS_AUTH_OK,
    WHITEBOOKS_OK,
)
from utils.gst_utils import (
    DEFAULT_EMAIL,
    DEFAULT_PHONE,
    SEZ_B2B_REJECTION,
    SEZ_SUPPLY_TYPES,
    build_buyer_basics,
    email_or_default,
    flatten_status_desc,
    format_ddmmyyyy,
    gstn_says_sez,
    invoice_remark,
    looks_sez,
    only_digits,
    resolve_supply_type,
    round2,
    split_tax,
    sum_field,
    to_number,
)
from utils.time_utils import IST_OFFSET, parse_datetime
from utils.validation_utils import contains_ci, parse_object_id

logger = get_logger(__name__)

REQUIRED_BUYER_FIELDS = ("gstin", "address1", "location", "pincode", "stateCode")
MSG_BUYER_INCOMPLETE = (
    "Customer details incomplete. Please provide GSTIN, StateCode, Address1, Location and Pincode."
)


def _active(invoice_id) -> Dict[str, Any]:
    return {"invoiceId": invoice_id, "cancelled": False}


def _ist_date(value: Any) -> str:
    if isinstance(value, datetime):
        value = value + IST_OFFSET
    return format_ddmmyyyy(value)


def _pin(value: Any) -> int:
    digits = re.sub(r"\D", "", str(value or ""))
    return int(digits) if digits else 0


async def _invoice(invoice_id: str) -> Dict[str, Any]:
    invoice = await get_invoices_collection().find_one({"_id": parse_object_id(invoice_id, "Invoice")})
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


async def _active_einvoice(invoice_id, message: str = MSG_EINVOICE_NOT_INITIATED) -> Dict[str, Any]:
    einvoice = await get_einvoices_collection().find_one(_active(invoice_id))
    if not einvoice:
        raise ValidationError(message)
    return einvoice


async def _matching_company(invoice: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """First non-deleted company (by name) whose name contains the invoice's client name."""
    return await get_companies_collection().find_one(
        {"companyName": contains_ci(invoice.get("clientCompanyName") or ""), "deleted": {"$ne": True}},
        sort=[("companyName", 1)],
    )


async def _save(invoice_id, fields: Dict[str, Any], upsert: bool = False) -> Optional[Dict[str, Any]]:
    update: Dict[str, Any] = {"$set": fields}
    if upsert:
        update["$setOnInsert"] = {"createdAt": datetime.utcnow()}
    return await get_einvoices_collection().find_one_and_update(
        _active(invoice_id), update, upsert=upsert, return_document=ReturnDocument.AFTER
    )


async def authenticate(invoice_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    invoice = await _invoice(invoice_id)
    envelope = await get_whitebooks_client().authenticate()
    if envelope.get("status_cd") != WHITEBOOKS_AUTH_OK:
        raise EInvoiceError("Authentication failed", flatten_status_desc(envelope.get("status_desc")))

    data = envelope.get("data") or {}
    try:
        expiry = parse_datetime(data.get("TokenExpiry"))
    except ValueError:
        expiry = None

    einvoice = await _save(invoice["_id"], {
        "authToken": data.get("AuthToken"),
        "tokenExpiry": expiry,
        "sek": data.get("Sek"),
        "clientId": data.get("ClientId"),
        "createdBy": user.get("email", ""),
    }, upsert=True)

    with LogContext(invoice_id=str(invoice["_id"])):
        logger.info("E-invoice session authenticated")
    return {"message": "Authenticated", "eInvoice": einvoice}


def _details_from_gstn(data: Dict[str, Any], company: Dict[str, Any], invoice: Dict[str, Any]) -> Dict[str, Any]:
    clients = company.get("clients") or [{}]
    legal = data.get("LegalName") or company.get("companyName") or invoice.get("clientCompanyName") or ""
    address1 = " ".join(str(data.get(k) or "") for k in ("AddrBno", "AddrBnm", "AddrFlno")).strip()
    return {
        "gstin": data.get("Gstin"),
        "legalName": legal,
        "tradeName": data.get("TradeName") or data.get("LegalName") or company.get("companyName") or "",
        "address1": re.sub(r"\s+", " ", address1),
        "address2": data.get("AddrSt") or "",
        "location": data.get("AddrLoc") or "",
        "pincode": str(data.get("AddrPncd") or ""),
        "stateCode": str(data.get("StateCode") or ""),
        "phone": clients[0].get("contactNumber") or DEFAULT_PHONE,
        "email": clients[0].get("email") or DEFAULT_EMAIL,
        "isSEZ": gstn_says_sez(data),
    }


async def fetch_customer(invoice_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Resolves the buyer from the GSTN, falling back to local company data.

    Only the GSTN lookup can mark a buyer as SEZ.
    """
    invoice = await _invoice(invoice_id)
    company = await _matching_company(invoice)
    if not company:
        raise NotFoundError("Company not found")
    if not company.get("GSTIN"):
        raise ValidationError("Company GSTIN not provided")
    einvoice = await _active_einvoice(invoice["_id"])

    details = None
    try:
        envelope = await get_whitebooks_client().gstn_details(company["GSTIN"], einvoice.get("authToken") or "")
        if envelope.get("status_cd") == WHITEBOOKS_OK:
            details = _details_from_gstn(envelope.get("data") or {}, company, invoice)
    except ExternalServiceError as e:
        logger.warning(f"GSTN lookup failed, using local data: {e.message}")

    source = "wb"
    if details is None:
        details = dict(build_buyer_basics({}, company, invoice), isSEZ=False)
        source = "local"

    saved = await _save(invoice["_id"], {"customerDetails": details, "createdBy": user.get("email", "")}, upsert=True)
    message = "Customer details fetched from GSTN" if source == "wb" else "Customer details loaded from local DB"
    return {"message": message, "source": source, "customerDetails": details, "eInvoice": saved}


def seller_details() -> Dict[str, Any]:
    return {
        "Gstin": settings.WHITEBOOKS_GSTIN,
        "LglNm": settings.SELLER_LEGAL_NAME,
        "TrdNm": settings.SELLER_TRADE_NAME,
        "Addr1": settings.SELLER_ADDRESS1,
        "Addr2": settings.SELLER_ADDRESS2,
        "Loc": settings.SELLER_LOCATION,
        "Pin": settings.SELLER_PINCODE,
        "Stcd": settings.SELLER_STATE_CODE,
        "Ph": only_digits(settings.SELLER_PHONE),
        "Em": email_or_default(settings.SELLER_EMAIL),
    }


def build_item_list(invoice: Dict[str, Any], seller_state: str, buyer_state: str, is_sez: bool) -> list:
    items = []
    for idx, line in enumerate(invoice.get("items") or []):
        qty = to_number(line.get("quantity"))
        unit_price = to_number(line.get("rate"))
        tot_amt = round2(qty * unit_price)
        ass_amt = to_number(line.get("taxableAmount")) or tot_amt
        gst_rate = sum(to_number(line.get(k)) for k in ("cgstPercent", "sgstPercent", "igstPercent"))

        tax = split_tax(ass_amt, gst_rate, seller_state, buyer_state, is_sez, stored=line)
        total = to_number(line.get("totalAmount")) or round2(ass_amt + tax["cgst"] + tax["sgst"] + tax["igst"])

        items.append({
            "SlNo": str(line.get("slNo") or idx + 1),
            "IsServc": "N",
            "PrdDesc": line.get("description") or line.get("product") or "Item",
            "HsnCd": line.get("hsnCode") or line.get("hsn") or "",
            "BchDtls": {"Nm": str(idx + 1).zfill(3)},
            "Qty": qty,
            "Unit": str(line.get("unit") or "NOS").upper(),
            "UnitPrice": unit_price,
            "TotAmt": tot_amt,
            "Discount": 0,
            "AssAmt": ass_amt,
            "GstRt": round2(gst_rate),
            "SgstAmt": tax["sgst"],
            "IgstAmt": tax["igst"],
            "CgstAmt": tax["cgst"],
            "TotItemVal": total,
        })
    return items


async def build_reference(invoice_id: str, body: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Builds and stores the IRP v1.1 reference JSON for the invoice.
    """
    invoice = await _invoice(invoice_id)
    einvoice = await _active_einvoice(invoice["_id"])
    company = await _matching_company(invoice)

    persisted = einvoice.get("customerDetails") or {}
    basics = build_buyer_basics(persisted, company, invoice)

    missing = {field: not basics.get(field) for field in REQUIRED_BUYER_FIELDS}
    if any(missing.values()):
        raise ValidationError(MSG_BUYER_INCOMPLETE, details={"missing": missing})

    seller = seller_details()
    buyer = {
        "Gstin": basics["gstin"],
        "LglNm": basics["legalName"],
        "TrdNm": basics["tradeName"],
        "Pos": str(basics["stateCode"]),
        "Addr1": basics["address1"],
        "Addr2": basics["address2"],
        "Loc": basics["location"],
        "Pin": _pin(basics["pincode"]),
        "Stcd": str(basics["stateCode"]),
        "Ph": only_digits(basics["phone"]),
        "Em": email_or_default(basics["email"]),
    }

    sup_typ = resolve_supply_type(body.get("supTyp"), persisted.get("isSEZ") is True, looks_sez(buyer))
    items = build_item_list(invoice, seller["Stcd"], buyer["Stcd"], sup_typ in SEZ_SUPPLY_TYPES)

    details = invoice.get("invoiceDetails") or {}
    remark = invoice_remark(body.get("invRemark"), details.get("otherRef"), details.get("otherReference"))

    reference = {
        "Version": "1.1",
        "TranDtls": {"TaxSch": "GST", "SupTyp": sup_typ, "RegRev": "N", "EcmGstin": None, "IgstOnIntra": "N"},
        "DocDtls": {
            "Typ": "INV",
            "No": details.get("invoiceNumber") or "NA",
            "Dt": _ist_date(details.get("date") or invoice.get("createdAt")),
        },
        "SellerDtls": seller,
        "BuyerDtls": buyer,
        "DispDtls": dict(Nm=seller["LglNm"], **{k: seller[k] for k in ("Addr1", "Addr2", "Loc", "Pin", "Stcd")}),
        "ShipDtls": {k: buyer[k] for k in ("Gstin", "LglNm", "TrdNm", "Addr1", "Addr2", "Loc", "Pin", "Stcd")},
        "ItemList": items,
        "ValDtls": {
            "AssVal": sum_field(items, "AssAmt"),
            "CgstVal": sum_field(items, "CgstAmt"),
            "SgstVal": sum_field(items, "SgstAmt"),
            "IgstVal": sum_field(items, "IgstAmt"),
            "TotInvVal": sum_field(items, "TotItemVal"),
        },
        "RefDtls": {
            "InvRm": remark,
            "DocPerdDtls": {
                "InvStDt": _ist_date(invoice.get("createdAt")),
                "InvEndDt": _ist_date(invoice.get("createdAt")),
            },
            "PrecDocDtls": [],
            "ContrDtls": [],
        },
    }

    customer = dict(persisted, **basics, isSEZ=bool(persisted.get("isSEZ")))
    saved = await _save(invoice["_id"], {
        "referenceJson": reference,
        "customerDetails": customer,
        "createdBy": user.get("email", ""),
    })
    logger.info(f"Reference JSON built ({sup_typ})", extra={"invoice_id": str(invoice["_id"])})
    return {"message": "Reference JSON generated", "referenceJson": reference, "eInvoice": saved}


async def generate_irn(invoice_id: str) -> Dict[str, Any]:
    """
    Posts the reference JSON to the IRP.

    A B2B document for an SEZ recipient is rejected upstream with a fixed
    message; the supply type is switched to SEZWP and the post retried once.
    """
    object_id = parse_object_id(invoice_id, "Invoice")
    einvoice = await _active_einvoice(object_id, "E-Invoice not initiated")
    reference = einvoice.get("referenceJson")
    if not reference:
        raise ValidationError("Reference JSON not generated")

    client = get_whitebooks_client()
    token = einvoice.get("authToken") or ""
    tran = reference.setdefault("TranDtls", {})

    if looks_sez(reference.get("BuyerDtls")) and tran.get("SupTyp") not in SEZ_SUPPLY_TYPES:
        tran["SupTyp"] = "SEZWP"
        await _save(object_id, {"referenceJson": reference})

    with LogContext(invoice_id=invoice_id):
        try:
            envelope = await client.generate_irn(reference, token)
            status_desc = envelope.get("status_desc")
            if envelope.get("status_cd") != WHITEBOOKS_OK and SEZ_B2B_REJECTION.search(str(status_desc or "")):
                logger.warning("IRP rejected B2B for SEZ recipient, retrying as SEZWP")
                tran["SupTyp"] = "SEZWP"
                await _save(object_id, {"referenceJson": reference})
                envelope = await client.generate_irn(reference, token)
        except ExternalServiceError as e:
            status_desc = (e.details or {}).get("status_desc")
            raise EInvoiceError("Failed to generate IRN", flatten_status_desc(status_desc), status_code=500)

        if envelope.get("status_cd") != WHITEBOOKS_OK:
            logger.warning(f"IRN generation failed: {envelope.get('status_desc')}")
            raise EInvoiceError("IRN generation failed", flatten_status_desc(envelope.get("status_desc")))

        data = envelope.get("data") or {}
        saved = await _save(object_id, {
            "irp": data.get("irp") or "",
            "irn": data.get("Irn"),
            "ackNo": data.get("AckNo"),
            "ackDt": data.get("AckDt"),
            "signedInvoice": data.get("SignedInvoice") or "",
            "signedQRCode": data.get("SignedQRCode") or "",
            "status": data.get("Status") or EINVOICE_GENERATED,
            "ewbNo": data.get("EwbNo"),
            "ewbDt": data.get("EwbDt"),
            "ewbValidTill": data.get("EwbValidTill"),
            "remarks": data.get("Remarks"),
        })
        logger.info(f"IRN generated: {data.get('Irn')}")
    return {"message": "IRN generated", "eInvoice": saved}


def build_ewaybill_payload(irn: str, body: Dict[str, Any], reference: Dict[str, Any]) -> Dict[str, Any]:
    """Request values win; addresses fall back to the reference JSON."""
    ship_ref = reference.get("ShipDtls") or {}
    disp_ref = reference.get("DispDtls") or {}
    ship = body.get("ExpShipDtls") or {}
    disp = body.get("DispDtls") or {}

    def pick(source, fallback, key):
        return source.get(key) or fallback.get(key) or ""

    return {
        "Irn": irn,
        "Distance": to_number(body.get("Distance")) or 1,
        "TransMode": str(body.get("TransMode") or "1"),
        "TransId": body.get("TransId") or "",
        "TransName": body.get("TransName") or "",
        "TransDocDt": body.get("TransDocDt") or _ist_date(datetime.utcnow()),
        "TransDocNo": body.get("TransDocNo") or "",
        "VehNo": body.get("VehNo") or "",
        "VehType": body.get("VehType") or "R",
        "ExpShipDtls": {
            "Addr1": pick(ship, ship_ref, "Addr1"),
            "Addr2": pick(ship, ship_ref, "Addr2"),
            "Loc": pick(ship, ship_ref, "Loc"),
            "Pin": _pin(ship.get("Pin") or ship_ref.get("Pin")),
            "Stcd": pick(ship, ship_ref, "Stcd"),
        },
        "DispDtls": {
            "Nm": pick(disp, disp_ref, "Nm"),
            "Addr1": pick(disp, disp_ref, "Addr1"),
            "Addr2": pick(disp, disp_ref, "Addr2"),
            "Loc": pick(disp, disp_ref, "Loc"),
            "Pin": _pin(disp.get("Pin") or disp_ref.get("Pin")),
            "Stcd": pick(disp, disp_ref, "Stcd"),
        },
    }


async def generate_ewaybill(invoice_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
    object_id = parse_object_id(invoice_id, "Invoice")
    einvoice = await _active_einvoice(object_id, "E-Invoice not initiated")
    if not einvoice.get("irn"):
        raise ValidationError("IRN not generated for this invoice")
    await _invoice(invoice_id)

    payload = build_ewaybill_payload(einvoice["irn"], body, einvoice.get("referenceJson") or {})
    if not payload["TransDocNo"]:
        raise ValidationError("TransDocNo is required")
    if not payload["VehNo"]:
        raise ValidationError("VehNo is required")

    try:
        envelope = await get_whitebooks_client().generate_ewaybill(payload, einvoice.get("authToken") or "")
    except ExternalServiceError as e:
        status_desc = (e.details or {}).get("status_desc")
        raise EInvoiceError("Failed to generate E-Way Bill", flatten_status_desc(status_desc), status_code=500)

    if envelope.get("status_cd") != WHITEBOOKS_OK:
        raise EInvoiceError("E-Way Bill generation failed", flatten_status_desc(envelope.get("status_desc")))

    data = envelope.get("data") or {}
    saved = await _save(object_id, {
        "ewbNo": data.get("EwbNo") or data.get("ewayBillNo") or data.get("EWayBillNo"),
        "ewbDt": data.get("EwbDt") or data.get("ewayBillDate"),
        "ewbValidTill": data.get("EwbValidTill") or data.get("ewayBillValidTill"),
        "ewbPayload": payload,
    })

    if saved and saved.get("ewbNo"):
        await get_invoices_collection().update_one(
            {"_id": object_id}, {"$set": {"invoiceDetails.eWayBillNumber": str(saved["ewbNo"])}}
        )
    logger.info(f"E-way bill generated: {saved.get('ewbNo') if saved else None}", extra={"invoice_id": invoice_id})

    return {
        "message": "E-Way Bill generated",
        "eInvoice": saved,
        "invoice": await _invoice(invoice_id),
        "payload": payload,
    }


async def cancel(invoice_id: str) -> Dict[str, Any]:
    object_id = parse_object_id(invoice_id, "Invoice")
    updated = await get_einvoices_collection().find_one_and_update(
        _active(object_id),
        {"$set": {"cancelled": True, "status": EINVOICE_CANCELLED}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError("E-Invoice not found")
    logger.info("E-invoice cancelled", extra={"invoice_id": invoice_id})
    return {"message": "E-Invoice cancelled", "eInvoice": updated}


async def list_einvoices() -> list:
    cursor = get_einvoices_collection().find({}).sort("createdAt", DESCENDING)
    return await cursor.to_list(length=None)


async def get_einvoice(einvoice_id: str) -> Dict[str, Any]:
    einvoice = await get_einvoices_collection().find_one({"_id": parse_object_id(einvoice_id, "E-Invoice")})
    if not einvoice:
        raise NotFoundError("E-Invoice not found")
    return einvoice
