"""
aceops/api/leads.py

Purpose: Potential-client (lead) endpoints (admin only)
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request

from aceops.core.security import client_ip, require_admin
from aceops.schemas.crm import PotentialClientCreate, PotentialClientUpdate
from aceops.services import lead_service
from aceops.services.audit import to_json

router = APIRouter(prefix="/admin")


@router.post("/potential-clients", status_code=201)
async def create_potential_client(body: PotentialClientCreate, request: Request, admin: dict = Depends(require_admin)):
    lead = await lead_service.create_lead(body.model_dump(), admin["_id"], client_ip(request))
    return {"message": "Created", "potentialClient": to_json(lead)}


@router.get("/potential-clients")
async def list_potential_clients(
    filter: Literal["my", "team", "all"] = "my",
    searchTerm: Optional[str] = None,
    admin: dict = Depends(require_admin),
):
    return to_json(await lead_service.list_leads(admin["_id"], filter, searchTerm))


@router.get("/potential-clients/{lead_id}")
async def get_potential_client(lead_id: str, admin: dict = Depends(require_admin)):
    return to_json(await lead_service.get_lead(lead_id))


@router.put("/potential-clients/{lead_id}")
async def update_potential_client(
    lead_id: str, body: PotentialClientUpdate, request: Request, admin: dict = Depends(require_admin)
):
    result = await lead_service.update_lead(
        lead_id, body.model_dump(exclude_unset=True), admin["_id"], client_ip(request)
    )
    return to_json(result)


@router.delete("/potential-clients/{lead_id}")
async def delete_potential_client(lead_id: str, admin: dict = Depends(require_admin)):
    return await lead_service.delete_lead(lead_id, admin["_id"])
