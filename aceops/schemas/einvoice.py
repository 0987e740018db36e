"""
aceops/schemas/einvoice.py

Purpose: E-invoice and e-way bill request bodies
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ReferenceRequest(BaseModel):
    supTyp: Optional[str] = None
    invRemark: Optional[str] = None


class EWayBillRequest(BaseModel):
    """Field names follow the IRP e-way bill schema."""
    Distance: Optional[float] = None
    TransMode: Optional[str] = None
    TransId: Optional[str] = None
    TransName: Optional[str] = None
    TransDocDt: Optional[str] = None
    TransDocNo: Optional[str] = None
    VehNo: Optional[str] = None
    VehType: Optional[str] = None
    ExpShipDtls: Optional[Dict[str, Any]] = None
    DispDtls: Optional[Dict[str, Any]] = None
