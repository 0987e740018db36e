"""
aceops/schemas/companies.py

Purpose: Company (client) request bodies
"""

from typing import List, Optional, Union

from pydantic import BaseModel


class ClientContact(BaseModel):
    name: Optional[str] = None
    department: Optional[str] = ""
    email: Optional[str] = ""
    contactNumber: Optional[Union[str, int]] = None


class CompanyBase(BaseModel):
    companyName: Optional[str] = None
    brandName: Optional[str] = None
    segment: Optional[str] = None
    GSTIN: Optional[str] = None
    vendorCode: Optional[str] = None
    portalUpload: Optional[str] = None
    paymentTerms: Optional[str] = None
    companyAddress: Optional[str] = None
    pincode: Optional[Union[str, int]] = None
    clients: Optional[List[ClientContact]] = None


class CompanyCreate(CompanyBase):
    class Config:
        json_schema_extra = {
            "example": {
                "companyName": "Globex Pvt Ltd",
                "GSTIN": "29AAACG1234A1Z5",
                "companyAddress": "12 MG Road\nBengaluru\n560001",
                "pincode": "560001",
                "clients": [{"name": "Ravi", "contactNumber": "9876543210"}],
            }
        }


class CompanyUpdate(CompanyBase):
    pass
