"""
aceops/schemas/vendors.py

Purpose: Vendor request bodies (current array shape plus legacy single-value fields)
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel


class GstNumber(BaseModel):
    gst: Optional[str] = ""
    label: Optional[str] = ""
    isPrimary: bool = False


class BankAccount(BaseModel):
    bankName: Optional[str] = ""
    accountNumber: Optional[Union[str, int]] = ""
    ifscCode: Optional[str] = ""
    accountHolder: Optional[str] = ""
    branch: Optional[str] = ""
    isPrimary: bool = False


class VendorContact(BaseModel):
    name: Optional[str] = None
    contactNumber: Optional[Union[str, int]] = None


class VendorPayload(BaseModel):
    vendorName: Optional[str] = None
    vendorCompany: Optional[str] = None
    brandDealing: Optional[str] = None
    location: Optional[str] = None
    postalCode: Optional[Union[str, int]] = None
    reliability: Optional[str] = None
    clients: List[VendorContact] = []
    gstNumbers: Optional[List[GstNumber]] = None
    bankAccounts: Optional[List[BankAccount]] = None

    # legacy single-value fields
    gst: Optional[str] = None
    bankName: Optional[str] = None
    accountNumber: Optional[Any] = None
    ifscCode: Optional[str] = None
