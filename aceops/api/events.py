"""
aceops/api/events.py

Purpose: CRM event endpoints (admin only)
"""

from typing import Literal

from fastapi import APIRouter, Depends, Request

from aceops.core.security import client_ip, require_admin
from aceops.schemas.crm import EventCreate, EventUpdate
from aceops.services import event_service
from aceops.services.audit import to_json

router = APIRouter(prefix="/admin")


@router.post("/events", status_code=201)
async def create_event(body: EventCreate, request: Request, admin: dict = Depends(require_admin)):
    event = await event_service.create_event(
        body.model_dump(exclude_none=True), admin["_id"], client_ip(request)
    )
    return {"message": "Created", "event": to_json(event)}


@router.get("/events")
async def list_events(filter: Literal["my", "team", "all"] = "my", admin: dict = Depends(require_admin)):
    return to_json(await event_service.list_events(admin["_id"], filter))


@router.get("/eventscal")
async def calendar(admin: dict = Depends(require_admin)):
    return to_json(await event_service.calendar_events())


@router.put("/events/{event_id}")
async def update_event(event_id: str, body: EventUpdate, request: Request, admin: dict = Depends(require_admin)):
    schedules = [s.model_dump(exclude_none=True) for s in body.schedules]
    event = await event_service.update_event(event_id, schedules, admin["_id"], client_ip(request))
    return {"message": "Updated", "event": to_json(event)}


@router.delete("/events/{event_id}")
async def delete_event(event_id: str, admin: dict = Depends(require_admin)):
    return await event_service.delete_event(event_id, admin["_id"])
