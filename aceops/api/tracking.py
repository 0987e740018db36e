"""
aceops/api/tracking.py

Purpose: Location tracking endpoints

- /android/location: the signed-in user's own samples
- /admin/tracking: admin views over everyone
"""

from typing import Optional

from fastapi import APIRouter, Depends

from aceops.core.security import get_current_user, require_admin
from aceops.schemas.tracking import LocationCreate
from aceops.services import tracking_service
from aceops.services.audit import to_json

android_router = APIRouter(prefix="/android/location")
admin_router = APIRouter(prefix="/admin/tracking")


@android_router.post("", status_code=201)
async def record_location(body: LocationCreate, user: dict = Depends(get_current_user)):
    return to_json(await tracking_service.record_location(user, body.model_dump()))


@android_router.get("/list")
async def my_locations(date: Optional[str] = None, user: dict = Depends(get_current_user)):
    return to_json({"locs": await tracking_service.day_samples(user["_id"], date)})


@android_router.get("/summary")
async def my_summary(date: Optional[str] = None, user: dict = Depends(get_current_user)):
    return await tracking_service.day_summary(user["_id"], date)


@admin_router.get("/users")
async def tracked_users(admin: dict = Depends(require_admin)):
    return to_json({"users": await tracking_service.tracked_users()})


@admin_router.get("/user/{user_id}/live-location")
async def live_location(user_id: str, admin: dict = Depends(require_admin)):
    return to_json({"location": await tracking_service.live_location(user_id)})


@admin_router.get("/user/{user_id}/location-history")
async def location_history(user_id: str, date: Optional[str] = None, admin: dict = Depends(require_admin)):
    return to_json({"locations": await tracking_service.user_history(user_id, date)})


@admin_router.get("/all/locations")
async def all_locations(date: Optional[str] = None, admin: dict = Depends(require_admin)):
    return to_json({"locations": await tracking_service.all_locations(date)})
