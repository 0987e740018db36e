"""
aceops/api/invoices.py

Purpose: Sales invoice endpoints (admin only)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from aceops.core.security import require_admin
from aceops.schemas.invoices import FromQuotationRequest, InvoiceUpdate
from aceops.services import invoice_service
from aceops.services.audit import to_json

router = APIRouter(prefix="/admin")


@router.post("/invoices/from-quotation/{quotation_id}", status_code=201)
async def create_from_quotation(
    quotation_id: str,
    body: Optional[FromQuotationRequest] = None,
    admin: dict = Depends(require_admin),
):
    return to_json(await invoice_service.create_from_quotation(quotation_id, body.format if body else None, admin))


@router.get("/invoices")
async def list_invoices(
    search: Optional[str] = None,
    invoiceNumber: Optional[str] = None,
    quotationRefNumber: Optional[str] = None,
    refJobSheetNumber: Optional[str] = None,
    clientCompanyName: Optional[str] = None,
    clientName: Optional[str] = None,
    placeOfSupply: Optional[str] = None,
    poNumber: Optional[str] = None,
    eWayBillNumber: Optional[str] = None,
    createdBy: Optional[str] = None,
    subtotalMin: Optional[float] = None,
    subtotalMax: Optional[float] = None,
    grandMin: Optional[float] = None,
    grandMax: Optional[float] = None,
    dateFrom: Optional[str] = None,
    dateTo: Optional[str] = None,
    quotationDateFrom: Optional[str] = None,
    quotationDateTo: Optional[str] = None,
    dueDateFrom: Optional[str] = None,
    dueDateTo: Optional[str] = None,
    poDateFrom: Optional[str] = None,
    poDateTo: Optional[str] = None,
    page: int = Query(1),
    limit: int = Query(100),
    admin: dict = Depends(require_admin),
):
    """
    Filtered, paginated invoice list (newest first).

    Text filters are case-insensitive substrings; ``*Min``/``*Max`` and
    ``*From``/``*To`` pairs are inclusive ranges.
    """
    params = {k: v for k, v in locals().items() if k not in ("page", "limit", "admin")}
    return to_json(await invoice_service.list_invoices(params, page, limit))


@router.get("/invoices/{invoice_id}")
async def get_invoice(invoice_id: str, admin: dict = Depends(require_admin)):
    return to_json(await invoice_service.get_invoice(invoice_id))


@router.put("/invoices/{invoice_id}")
async def update_invoice(invoice_id: str, body: InvoiceUpdate, admin: dict = Depends(require_admin)):
    return to_json(await invoice_service.update_invoice(invoice_id, body.model_dump(exclude_unset=True)))
