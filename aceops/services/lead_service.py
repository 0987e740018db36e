"""
aceops/services/lead_service.py

Purpose: Potential clients (sales leads)

- my / team / all scoping
- Free-text search across company and contact fields
- Audit logs on create / update; hard delete
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from aceops.core.exceptions import DuplicateError, NotFoundError
from aceops.core.logging import get_logger
from aceops.db.mongo import get_potential_clients_collection
from aceops.services.audit import log_entry, user_summaries
from utils.validation_utils import contains_ci, exact_ci, optional_object_id, parse_object_id

logger = get_logger(__name__)

SEARCH_FIELDS = (
    "companyName",
    "contacts.clientName",
    "contacts.designation",
    "contacts.source",
    "contacts.mobile",
    "contacts.email",
    "contacts.location",
)


def scope_clause(scope: str, user_id: Any, assignee_field: str) -> List[Dict[str, Any]]:
    """
    Query clauses for the my / team / all list filters.

    ``team`` means records assigned to the caller that someone else created.
    """
    if scope == "team":
        return [{assignee_field: user_id}, {"createdBy": {"$ne": user_id}}]
    if scope == "all":
        return []
    return [{"createdBy": user_id}]


def _contacts(raw: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    contacts = []
    for contact in raw or []:
        entry = dict(contact)
        entry["assignedTo"] = optional_object_id(entry.get("assignedTo"))
        contacts.append(entry)
    return contacts


async def _populate(leads: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ids = [lead.get("createdBy") for lead in leads]
    ids += [c.get("assignedTo") for lead in leads for c in lead.get("contacts") or []]
    people = await user_summaries(ids)

    def slim(user_id):
        person = people.get(user_id)
        return {"_id": person["_id"], "name": person.get("name")} if person else user_id

    for lead in leads:
        lead["createdBy"] = slim(lead.get("createdBy"))
        for contact in lead.get("contacts") or []:
            contact["assignedTo"] = slim(contact.get("assignedTo"))
    return leads


async def create_lead(data: Dict[str, Any], user_id: Any, ip: str) -> Dict[str, Any]:
    collection = get_potential_clients_collection()
    name = data["companyName"].strip()
    if await collection.find_one({"companyName": exact_ci(name)}, {"_id": 1}):
        raise DuplicateError("Potential client already exists")

    doc = {
        "companyName": name,
        "contacts": _contacts(data.get("contacts")),
        "createdBy": user_id,
        "createdAt": datetime.utcnow(),
        "logs": [log_entry("create", user_id, ip)],
    }
    try:
        await collection.insert_one(doc)
    except DuplicateKeyError:
        raise DuplicateError("Potential client already exists")
    logger.info(f"Potential client created: {name}", extra={"user_id": str(user_id)})
    return doc


async def list_leads(user_id: Any, scope: str = "my", search: Optional[str] = None) -> List[Dict[str, Any]]:
    clauses = scope_clause(scope, user_id, "contacts.assignedTo")
    if search:
        pattern = contains_ci(search)
        clauses.append({"$or": [{field: pattern} for field in SEARCH_FIELDS]})

    query = {"$and": clauses} if clauses else {}
    cursor = get_potential_clients_collection().find(query).sort("createdAt", DESCENDING)
    return await _populate(await cursor.to_list(length=None))


async def _get(lead_id: str) -> Dict[str, Any]:
    lead = await get_potential_clients_collection().find_one({"_id": parse_object_id(lead_id, "Potential client")})
    if not lead:
        raise NotFoundError("Potential client not found")
    return lead


async def get_lead(lead_id: str) -> Dict[str, Any]:
    return (await _populate([await _get(lead_id)]))[0]


async def update_lead(lead_id: str, changes: Dict[str, Any], user_id: Any, ip: str) -> Dict[str, Any]:
    lead = await _get(lead_id)
    updates: Dict[str, Any] = {}
    logs = []

    new_name = changes.get("companyName")
    if new_name and new_name != lead.get("companyName"):
        logs.append(log_entry("update", user_id, ip, "companyName", lead.get("companyName"), new_name))
        updates["companyName"] = new_name

    if changes.get("contacts") is not None:
        contacts = _contacts(changes["contacts"])
        logs.append(log_entry("update", user_id, ip, "contacts", lead.get("contacts"), contacts))
        updates["contacts"] = contacts

    if updates:
        await get_potential_clients_collection().update_one(
            {"_id": lead["_id"]},
            {"$set": updates, "$push": {"logs": {"$each": logs}}}
        )
    return {"message": "Updated", "potentialClient": await get_lead(lead_id), "logs": logs}


async def delete_lead(lead_id: str, user_id: Any) -> Dict[str, str]:
    lead = await _get(lead_id)
    await get_potential_clients_collection().delete_one({"_id": lead["_id"]})
    logger.info(f"Potential client deleted: {lead.get('companyName')}", extra={"user_id": str(user_id)})
    return {"message": "Deleted"}
