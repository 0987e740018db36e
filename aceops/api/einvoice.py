"""
aceops/api/einvoice.py

Purpose: GST e-invoice endpoints (admin only)

Steps run in order per invoice: authenticate, customer, reference, generate,
then optionally ewaybill/generate. cancel closes the active record so the
flow can start over.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from aceops.core.security import require_admin
from aceops.schemas.einvoice import EWayBillRequest, ReferenceRequest
from aceops.services import einvoice_service
from aceops.services.audit import to_json

router = APIRouter(prefix="/admin")


@router.post("/invoices/{invoice_id}/einvoice/authenticate")
async def authenticate(invoice_id: str, admin: dict = Depends(require_admin)):
    return to_json(await einvoice_service.authenticate(invoice_id, admin))


@router.get("/invoices/{invoice_id}/einvoice/customer")
async def customer(invoice_id: str, admin: dict = Depends(require_admin)):
    return to_json(await einvoice_service.fetch_customer(invoice_id, admin))


@router.post("/invoices/{invoice_id}/einvoice/reference")
async def reference(invoice_id: str, body: Optional[ReferenceRequest] = None, admin: dict = Depends(require_admin)):
    payload = body.model_dump(exclude_none=True) if body else {}
    return to_json(await einvoice_service.build_reference(invoice_id, payload, admin))


@router.post("/invoices/{invoice_id}/einvoice/generate")
async def generate(invoice_id: str, admin: dict = Depends(require_admin)):
    return to_json(await einvoice_service.generate_irn(invoice_id))


@router.post("/invoices/{invoice_id}/einvoice/ewaybill/generate")
async def generate_ewaybill(invoice_id: str, body: EWayBillRequest, admin: dict = Depends(require_admin)):
    return to_json(await einvoice_service.generate_ewaybill(invoice_id, body.model_dump(exclude_none=True)))


@router.put("/invoices/{invoice_id}/einvoice/cancel")
async def cancel(invoice_id: str, admin: dict = Depends(require_admin)):
    return to_json(await einvoice_service.cancel(invoice_id))


@router.get("/einvoices")
async def list_einvoices(admin: dict = Depends(require_admin)):
    return to_json(await einvoice_service.list_einvoices())


@router.get("/einvoices/{einvoice_id}")
async def get_einvoice(einvoice_id: str, admin: dict = Depends(require_admin)):
    return to_json(await einvoice_service.get_einvoice(einvoice_id))
