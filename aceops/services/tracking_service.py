"""
aceops/services/tracking_service.py

Purpose: Field-staff location tracking

- Stores GPS samples posted by the Android app
- Daily summary: distance travelled, travel time, time spent per place
- Admin views: live location, day history, everyone's latest sample
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from aceops.core.exceptions import NotFoundError, ValidationError
from aceops.core.logging import get_logger
from aceops.db.mongo import get_locations_collection, get_users_collection
from aceops.services.audit import user_summaries
from utils.time_utils import ist_day_bounds, parse_datetime
from utils.validation_utils import parse_object_id

logger = get_logger(__name__)

EARTH_RADIUS_M = 6378137.0


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def summarize(samples: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Walks consecutive samples (ascending by time).

    Each sample's place is credited with the time until the next sample;
    the last one gets zero.
    """
    total_distance = 0.0
    total_travel = 0.0
    per_place: Dict[str, float] = {}

    for current, following in zip(samples, samples[1:] + [None]):
        place = current.get("placeName") or "Unknown"
        if following is None:
            per_place[place] = per_place.get(place, 0.0)
            continue
        duration = (following["timestamp"] - current["timestamp"]).total_seconds()
        per_place[place] = per_place.get(place, 0.0) + duration
        total_distance += haversine(
            current["latitude"], current["longitude"], following["latitude"], following["longitude"]
        )
        total_travel += duration

    return {"totalDistance": total_distance, "totalTravelTime": total_travel, "locationTimeMap": per_place}


def _day(date: Optional[str]) -> Tuple[datetime, datetime]:
    if not date:
        raise ValidationError("date (YYYY-MM-DD) required")
    try:
        return ist_day_bounds(date)
    except ValueError:
        raise ValidationError(f"Invalid date: {date}")


async def record_location(user: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    loc = {
        "user": user["_id"],
        "latitude": data["latitude"],
        "longitude": data["longitude"],
        "placeName": data.get("placeName") or "",
        "timestamp": parse_datetime(data.get("timestamp")) or datetime.utcnow(),
    }
    await get_locations_collection().insert_one(loc)
    logger.debug(f"Location saved for {user['_id']}")
    return {"message": "Location saved", "loc": loc}


async def day_samples(user_id: Any, date: Optional[str]) -> List[Dict[str, Any]]:
    start, end = _day(date)
    cursor = get_locations_collection().find(
        {"user": user_id, "timestamp": {"$gte": start, "$lt": end}}
    ).sort("timestamp", ASCENDING)
    return await cursor.to_list(length=None)


async def day_summary(user_id: Any, date: Optional[str]) -> Dict[str, Any]:
    return summarize(await day_samples(user_id, date))


async def tracked_users() -> List[Dict[str, Any]]:
    ids = await get_locations_collection().distinct("user")
    cursor = get_users_collection().find({"_id": {"$in": ids}}, {"name": 1, "email": 1}).sort("name", ASCENDING)
    return await cursor.to_list(length=None)


async def live_location(user_id: str) -> Dict[str, Any]:
    loc = await get_locations_collection().find_one(
        {"user": parse_object_id(user_id, "User")}, sort=[("timestamp", DESCENDING)]
    )
    if not loc:
        raise NotFoundError("No location found for this user")
    return loc


async def user_history(user_id: str, date: Optional[str]) -> List[Dict[str, Any]]:
    return await day_samples(parse_object_id(user_id, "User"), date)


async def all_locations(date: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Everyone's samples for an IST day, or each user's latest sample when no date is given.
    """
    collection = get_locations_collection()
    if date:
        start, end = _day(date)
        cursor = collection.find({"timestamp": {"$gte": start, "$lt": end}}).sort("timestamp", ASCENDING)
        locations = await cursor.to_list(length=None)
    else:
        locations = []
        for user_id in await collection.distinct("user"):
            latest = await collection.find_one({"user": user_id}, sort=[("timestamp", DESCENDING)])
            if latest:
                locations.append(latest)

    people = await user_summaries(loc["user"] for loc in locations)
    for loc in locations:
        loc["user"] = people.get(loc["user"], loc["user"])
    return locations
