"""
aceops/services/event_service.py

Purpose: CRM events (calls, meetings, follow-ups)

- An event points at a company, vendor or lead via company + companyType
- Schedules are sanitised (only provided fields are stored)
- my / team / all scoping and a calendar feed
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from aceops.core.exceptions import NotFoundError, ValidationError
from aceops.core.logging import get_logger
from aceops.db.mongo import (
    get_companies_collection,
    get_events_collection,
    get_potential_clients_collection,
    get_vendors_collection,
)
from aceops.services.audit import log_entry, user_summaries
from utils.validation_utils import optional_object_id, parse_object_id

logger = get_logger(__name__)

# companyType -> (collection accessor, display-name field)
COMPANY_TYPES = {
    "Company": (get_companies_collection, "companyName"),
    "Vendor": (get_vendors_collection, "vendorName"),
    "PotentialClient": (get_potential_clients_collection, "companyName"),
}

SCHEDULE_FIELDS = ("scheduledOn", "action", "assignedTo", "discussion", "status", "reschedule", "remarks")


def build_schedules(raw: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    schedules = []
    for item in raw or []:
        schedule = {field: item.get(field) for field in SCHEDULE_FIELDS if item.get(field)}
        if "assignedTo" in schedule:
            schedule["assignedTo"] = optional_object_id(schedule["assignedTo"])
        schedules.append(schedule)
    return schedules


async def resolve_company(company_id: Optional[str], company_type: Optional[str]) -> Dict[str, Any]:
    """
    Looks up the referenced record in the collection named by ``company_type``.
    """
    if not company_id:
        return {}
    if company_type not in COMPANY_TYPES:
        raise ValidationError("companyType must be Company, Vendor or PotentialClient")

    accessor, name_field = COMPANY_TYPES[company_type]
    record = await accessor().find_one({"_id": parse_object_id(company_id, company_type)}, {name_field: 1})
    if not record:
        raise NotFoundError(f"{company_type} not found")

    ref = {"company": record["_id"], "companyType": company_type, "companyName": record.get(name_field) or ""}
    if company_type == "PotentialClient":
        ref["potentialClient"] = record["_id"]
        ref["potentialClientName"] = ref["companyName"]
    return ref


async def _populate(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ids = [e.get("createdBy") for e in events]
    ids += [s.get("assignedTo") for e in events for s in e.get("schedules") or []]
    people = await user_summaries(ids)

    def slim(user_id):
        person = people.get(user_id)
        return {"_id": person["_id"], "name": person.get("name")} if person else user_id

    for event in events:
        event["createdBy"] = slim(event.get("createdBy"))
        for schedule in event.get("schedules") or []:
            if "assignedTo" in schedule:
                schedule["assignedTo"] = slim(schedule["assignedTo"])
        if event.get("potentialClient"):
            event["potentialClient"] = {
                "_id": event["potentialClient"],
                "companyName": event.get("potentialClientName", ""),
            }
    return events


async def create_event(data: Dict[str, Any], user_id: Any, ip: str) -> Dict[str, Any]:
    company_id = data.get("company")
    company_type = data.get("companyType")
    if not company_id and data.get("potentialClient"):
        company_id, company_type = data["potentialClient"], "PotentialClient"

    doc = await resolve_company(company_id, company_type)
    doc.update({
        "schedules": build_schedules(data.get("schedules")),
        "createdBy": user_id,
        "createdAt": datetime.utcnow(),
        "logs": [log_entry("create", user_id, ip)],
    })
    await get_events_collection().insert_one(doc)
    logger.info(f"Event created for {doc.get('companyName') or 'no company'}", extra={"user_id": str(user_id)})
    return doc


async def list_events(user_id: Any, scope: str = "my") -> List[Dict[str, Any]]:
    if scope == "team":
        query: Dict[str, Any] = {"schedules.assignedTo": user_id}
    elif scope == "all":
        query = {}
    else:
        query = {"createdBy": user_id}
    cursor = get_events_collection().find(query, {"logs": 0}).sort("createdAt", DESCENDING)
    return await _populate(await cursor.to_list(length=None))


async def calendar_events() -> List[Dict[str, Any]]:
    cursor = get_events_collection().find({}, {"logs": 0}).sort("createdAt", DESCENDING)
    return await _populate(await cursor.to_list(length=None))


async def _get(event_id: str) -> Dict[str, Any]:
    event = await get_events_collection().find_one({"_id": parse_object_id(event_id, "Event")})
    if not event:
        raise NotFoundError("Event not found")
    return event


async def update_event(event_id: str, raw_schedules: List[Dict[str, Any]], user_id: Any, ip: str) -> Dict[str, Any]:
    event = await _get(event_id)
    schedules = build_schedules(raw_schedules)
    await get_events_collection().update_one(
        {"_id": event["_id"]},
        {
            "$set": {"schedules": schedules},
            "$push": {"logs": log_entry("update", user_id, ip, "schedules", event.get("schedules"), schedules)},
        }
    )
    return await _get(event_id)


async def delete_event(event_id: str, user_id: Any) -> Dict[str, str]:
    event = await _get(event_id)
    await get_events_collection().delete_one({"_id": event["_id"]})
    logger.info("Event deleted", extra={"user_id": str(user_id)})
    return {"message": "Deleted"}
