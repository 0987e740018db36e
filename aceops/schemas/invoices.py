"""
aceops/schemas/invoices.py

Purpose: Invoice request bodies
"""

from typing import Any, Optional

from pydantic import BaseModel


class FromQuotationRequest(BaseModel):
    format: Optional[str] = None


class InvoiceDetailsUpdate(BaseModel):
    refJobSheetNumber: Optional[str] = None
    clientOrderIdentification: Optional[str] = None
    discount: Optional[Any] = None
    otherRef: Optional[str] = None
    placeOfSupply: Optional[str] = None
    dueDate: Optional[str] = None
    poDate: Optional[str] = None
    poNumber: Optional[str] = None
    eWayBillNumber: Optional[str] = None
    invoiceNumber: Optional[str] = None


class InvoiceUpdate(BaseModel):
    billTo: Optional[str] = None
    shipTo: Optional[str] = None
    clientCompanyName: Optional[str] = None
    invoiceDetails: Optional[InvoiceDetailsUpdate] = None
