"""
aceops/api/vendors.py

Purpose: Vendor endpoints (admin only)
"""

from fastapi import APIRouter, Depends, File, Request, UploadFile

from aceops.core.security import client_ip, require_admin
from aceops.schemas.vendors import VendorPayload
from aceops.services import vendor_service
from aceops.services.audit import to_json
from aceops.services.spreadsheet import read_excel_upload

router = APIRouter(prefix="/admin")


@router.get("/vendors")
async def list_vendors(admin: dict = Depends(require_admin)):
    return to_json(await vendor_service.list_vendors())


@router.post("/vendors", status_code=201)
async def create_vendor(body: VendorPayload, request: Request, admin: dict = Depends(require_admin)):
    vendor = await vendor_service.create_vendor(body.model_dump(), admin["_id"], client_ip(request))
    return {"message": "Vendor created", "vendor": to_json(vendor)}


@router.post("/upload-vendors", status_code=201)
async def upload_vendors(request: Request, file: UploadFile = File(...), admin: dict = Depends(require_admin)):
    rows = await read_excel_upload(file)
    return to_json(await vendor_service.bulk_import(rows, admin["_id"], client_ip(request)))


@router.get("/vendors/{vendor_id}")
async def get_vendor(vendor_id: str, admin: dict = Depends(require_admin)):
    return to_json(await vendor_service.get_vendor(vendor_id))


@router.put("/vendors/{vendor_id}")
async def update_vendor(vendor_id: str, body: VendorPayload, request: Request, admin: dict = Depends(require_admin)):
    vendor = await vendor_service.update_vendor(vendor_id, body.model_dump(), admin["_id"], client_ip(request))
    return {"message": "Vendor updated", "vendor": to_json(vendor)}


@router.delete("/vendors/{vendor_id}")
async def delete_vendor(vendor_id: str, request: Request, hard: bool = False, admin: dict = Depends(require_admin)):
    """
    Soft-deletes by default; ``?hard=true`` removes the record.
    """
    return await vendor_service.delete_vendor(vendor_id, admin["_id"], client_ip(request), hard=hard)
