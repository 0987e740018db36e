"""
aceops/api/companies.py

Purpose: Client company endpoints (admin only)
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import Response

from aceops.core.security import client_ip, require_admin
from aceops.schemas.companies import CompanyCreate, CompanyUpdate
from aceops.services import company_service
from aceops.services.audit import to_json
from aceops.services.spreadsheet import XLSX_MEDIA_TYPE, read_excel_upload

router = APIRouter(prefix="/admin")


@router.post("/companies", status_code=201)
async def create_company(body: CompanyCreate, request: Request, admin: dict = Depends(require_admin)):
    company = await company_service.create_company(body.model_dump(), admin["_id"], client_ip(request))
    return {"message": "Company created", "company": to_json(company)}


@router.get("/companies")
async def list_companies(companyName: Optional[str] = None, admin: dict = Depends(require_admin)):
    return to_json(await company_service.list_companies(companyName))


@router.get("/companies/template")
async def download_template(admin: dict = Depends(require_admin)):
    return Response(
        content=company_service.company_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=companies_template.xlsx"},
    )


@router.post("/companies/bulk", status_code=201)
async def bulk_upload(request: Request, file: UploadFile = File(...), admin: dict = Depends(require_admin)):
    """
    Imports companies from the Excel template. All-or-nothing.
    """
    rows = await read_excel_upload(file)
    return await company_service.bulk_import(rows, admin["_id"], client_ip(request))


@router.get("/companies/{company_id}")
async def get_company(company_id: str, admin: dict = Depends(require_admin)):
    return to_json(await company_service.get_company(company_id))


@router.put("/companies/{company_id}")
async def update_company(company_id: str, body: CompanyUpdate, request: Request, admin: dict = Depends(require_admin)):
    result = await company_service.update_company(
        company_id, body.model_dump(exclude_unset=True), admin["_id"], client_ip(request)
    )
    return to_json(result)


@router.delete("/companies/{company_id}")
async def delete_company(company_id: str, request: Request, admin: dict = Depends(require_admin)):
    return await company_service.delete_company(company_id, admin["_id"], client_ip(request))


@router.get("/companies/{company_id}/logs")
async def company_logs(company_id: str, admin: dict = Depends(require_admin)):
    return to_json(await company_service.company_logs(company_id))


@router.get("/logs")
async def all_company_logs(admin: dict = Depends(require_admin)):
    return to_json(await company_service.all_logs())
