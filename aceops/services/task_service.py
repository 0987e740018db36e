"""
aceops/services/task_service.py

Purpose: Task manager (tickets)

- Tasks optionally point at an open sales opportunity
- All dates are IST calendar days stored as UTC instants (IST midnight)
- Recurring schedules expand into selectedDates
- Calendar feed and opportunity picker
"""

import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING

from aceops.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from aceops.core.logging import get_logger
from aceops.db.mongo import get_opportunities_collection, get_tasks_collection, get_users_collection
from aceops.services.audit import log_entry, user_summaries
from utils.constants import CLOSED_OPPORTUNITY_STATUSES
from utils.time_utils import IST_OFFSET, add_months, ist_date_key, ist_midnight_utc
from utils.validation_utils import contains_ci, parse_object_id

logger = get_logger(__name__)

# schedule -> days between occurrences
STEP_DAYS = {"Daily": 1, "Weekly": 7, "AlternateDays": 2}
RECURRING = ("Daily", "Weekly", "Monthly", "AlternateDays")
DATE_FIELDS = ("toBeClosedBy", "fromDate", "toDate")
TRACKED_FIELDS = ("ticketName", "toBeClosedBy", "completedOn", "schedule", "selectedDates", "assignedTo", "fromDate", "toDate")
OPPORTUNITY_FIELDS = {"opportunityCode": 1, "opportunityName": 1, "account": 1, "opportunityStage": 1, "createdAt": 1}


def expand_schedule(schedule: str, from_date: Optional[datetime], to_date: Optional[datetime]) -> List[datetime]:
    """
    Occurrence dates for a recurring schedule, inclusive of both ends.

    Works on IST calendar days. Monthly series stop at the end of the start
    year. Returns [] for None/SelectedDates or a missing range.
    """
    if schedule not in RECURRING or not from_date or not to_date:
        return []

    current = from_date + IST_OFFSET
    end = to_date + IST_OFFSET
    dates = []

    if schedule == "Monthly":
        end = min(end, datetime(current.year, 12, 31, current.hour, current.minute))
        start, step = current, 0
        while current <= end:
            dates.append(current - IST_OFFSET)
            step += 1
            current = add_months(start, step)
        return dates

    delta = timedelta(days=STEP_DAYS[schedule])
    while current <= end:
        dates.append(current - IST_OFFSET)
        current += delta
    return dates


def _normalise_date(value: Any, field: str) -> Optional[datetime]:
    try:
        return ist_midnight_utc(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date for {field}: {value}")


def _normalise_dates(values: Optional[List[Any]]) -> List[datetime]:
    unique = {_normalise_date(v, "selectedDates") for v in values or [] if v}
    return sorted(unique)


async def _opportunity_code(opportunity_id: Any) -> Optional[Dict[str, Any]]:
    """Returns ``{id, code}`` for a valid id, 404 if it does not exist, None for anything else."""
    if not opportunity_id or not ObjectId.is_valid(str(opportunity_id)):
        return None
    opp = await get_opportunities_collection().find_one({"_id": ObjectId(str(opportunity_id))})
    if not opp:
        raise NotFoundError("Opportunity not found")
    return {"id": opp["_id"], "code": f"{opp.get('opportunityCode')} - {opp.get('opportunityName')}"}


async def _ensure_user(user_id: Any) -> ObjectId:
    object_id = parse_object_id(user_id, "Assigned user")
    if not await get_users_collection().find_one({"_id": object_id}, {"_id": 1}):
        raise NotFoundError("Assigned user not found")
    return object_id


async def _new_task_ref() -> str:
    tasks = get_tasks_collection()
    while True:
        ref = f"#{10000000 + secrets.randbelow(90000000)}"
        if not await tasks.find_one({"taskRef": ref}, {"_id": 1}):
            return ref


async def _populate(tasks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    people = await user_summaries(t.get(f) for t in tasks for f in ("createdBy", "assignedTo", "assignedBy"))
    opp_ids = [t["opportunityId"] for t in tasks if isinstance(t.get("opportunityId"), ObjectId)]
    opportunities = {}
    if opp_ids:
        cursor = get_opportunities_collection().find(
            {"_id": {"$in": opp_ids}}, {"opportunityCode": 1, "opportunityName": 1}
        )
        opportunities = {o["_id"]: o async for o in cursor}

    for task in tasks:
        for field in ("createdBy", "assignedTo", "assignedBy"):
            task[field] = people.get(task.get(field), task.get(field))
        if task.get("opportunityId") in opportunities:
            task["opportunityId"] = opportunities[task["opportunityId"]]
    return tasks


async def _create_one(data: Dict[str, Any], user: Dict[str, Any], ip: str) -> Optional[Dict[str, Any]]:
    opportunity = await _opportunity_code(data.get("opportunityId"))
    assignee = await _ensure_user(data["assignedTo"]) if data.get("assignedTo") else user["_id"]

    due = _normalise_date(data.get("toBeClosedBy"), "toBeClosedBy")
    if due and await get_tasks_collection().find_one({
        "ticketName": data["ticketName"],
        "createdBy": user["_id"],
        "toBeClosedBy": {"$gte": due, "$lt": due + timedelta(days=1)},
    }, {"_id": 1}):
        logger.info(f"Skipping duplicate task {data['ticketName']} due {ist_date_key(due)}")
        return None

    from_date = _normalise_date(data.get("fromDate"), "fromDate")
    to_date = _normalise_date(data.get("toDate"), "toDate")
    schedule = data.get("schedule") or "None"
    selected = expand_schedule(schedule, from_date, to_date) or _normalise_dates(data.get("selectedDates"))

    now = datetime.utcnow()
    task = {
        "taskRef": await _new_task_ref(),
        "ticketName": data["ticketName"],
        "opportunityId": opportunity["id"] if opportunity else None,
        "opportunityCode": opportunity["code"] if opportunity else "",
        "assignedBy": user["_id"],
        "assignedTo": assignee,
        "assignedOn": now,
        "fromDate": from_date,
        "toDate": to_date,
        "toBeClosedBy": due,
        "completedOn": data.get("completedOn") or "Not Done",
        "schedule": schedule,
        "selectedDates": selected,
        "isActive": True,
        "createdBy": user["_id"],
        "createdAt": now,
        "logs": [log_entry("create", user["_id"], ip)],
    }
    await get_tasks_collection().insert_one(task)
    return task


async def create_tasks(payload: List[Dict[str, Any]], user: Dict[str, Any], ip: str) -> Dict[str, Any]:
    created = []
    for data in payload:
        task = await _create_one(data, user, ip)
        if task:
            created.append(task)
    logger.info(f"Created {len(created)} task(s)", extra={"user_id": str(user["_id"])})
    return {"message": "Task(s) created successfully", "tasks": created}


def _visibility(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    if user.get("isSuperAdmin"):
        return []
    return [{"$or": [{"createdBy": user["_id"]}, {"assignedTo": user["_id"]}]}]


async def list_tasks(user: Dict[str, Any], search: Optional[str] = None) -> List[Dict[str, Any]]:
    clauses = _visibility(user)
    if search:
        pattern = contains_ci(search)
        clauses.append({"$or": [{"taskRef": pattern}, {"ticketName": pattern}, {"opportunityCode": pattern}]})
    query = {"$and": clauses} if clauses else {}
    cursor = get_tasks_collection().find(query).sort("createdAt", DESCENDING)
    return await _populate(await cursor.to_list(length=None))


async def calendar(user: Dict[str, Any], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """One calendar event per task, keyed by its IST due date; overdue open tasks are red."""
    clauses = _visibility(user)
    tasks = await _populate(await get_tasks_collection().find(clauses[0] if clauses else {}).to_list(length=None))
    now = now or datetime.utcnow()

    events = []
    for task in tasks:
        due = task.get("toBeClosedBy")
        if not isinstance(due, datetime):
            continue
        overdue = due < now and task.get("completedOn") == "Not Done"
        opportunity = task.get("opportunityId")
        suffix = f" ({opportunity.get('opportunityName')})" if isinstance(opportunity, dict) else ""
        events.append({
            "title": f"{task.get('taskRef')}: {task.get('ticketName')}{suffix}",
            "date": ist_date_key(due),
            "backgroundColor": "red" if overdue else None,
            "borderColor": "red" if overdue else None,
            "extendedProps": {"task": task},
        })
    return events


async def _get_editable(task_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    task = await get_tasks_collection().find_one({"_id": parse_object_id(task_id, "Task")})
    if not task:
        raise NotFoundError("Task not found")
    if not user.get("isSuperAdmin") and user["_id"] not in (task.get("createdBy"), task.get("assignedTo")):
        raise PermissionDeniedError("Unauthorized")
    return task


async def update_task(task_id: str, changes: Dict[str, Any], user: Dict[str, Any], ip: str) -> Dict[str, Any]:
    task = await _get_editable(task_id, user)
    updates: Dict[str, Any] = {}
    logs = []

    if "opportunityId" in changes:
        opportunity = await _opportunity_code(changes["opportunityId"])
        if opportunity and opportunity["id"] != task.get("opportunityId"):
            logs.append(log_entry("update", user["_id"], ip, "opportunityId", task.get("opportunityId"), opportunity["id"]))
            updates.update(opportunityId=opportunity["id"], opportunityCode=opportunity["code"])
        elif not changes["opportunityId"] and task.get("opportunityId"):
            logs.append(log_entry("update", user["_id"], ip, "opportunityId", task.get("opportunityId"), None))
            updates.update(opportunityId=None, opportunityCode="")

    if changes.get("assignedTo"):
        changes["assignedTo"] = await _ensure_user(changes["assignedTo"])
    for field in DATE_FIELDS:
        if changes.get(field):
            changes[field] = _normalise_date(changes[field], field)
    if changes.get("selectedDates") is not None:
        changes["selectedDates"] = _normalise_dates(changes["selectedDates"])

    for field in TRACKED_FIELDS:
        if changes.get(field) is None or changes[field] == task.get(field):
            continue
        logs.append(log_entry("update", user["_id"], ip, field, task.get(field), changes[field]))
        updates[field] = changes[field]

    if task.get("assignedBy") != user["_id"]:
        logs.append(log_entry("update", user["_id"], ip, "assignedBy", task.get("assignedBy"), user["_id"]))
        updates["assignedBy"] = user["_id"]

    merged = dict(task, **updates)
    if merged.get("schedule") in RECURRING:
        if any(field in updates for field in ("schedule", "fromDate", "toDate")):
            updates["selectedDates"] = expand_schedule(
                merged["schedule"], merged.get("fromDate"), merged.get("toDate")
            )
    elif changes.get("schedule") is not None:
        updates["selectedDates"] = changes.get("selectedDates") or []

    update: Dict[str, Any] = {"$set": updates} if updates else {}
    if logs:
        update["$push"] = {"logs": {"$each": logs}}
    if update:
        await get_tasks_collection().update_one({"_id": task["_id"]}, update)

    refreshed = await get_tasks_collection().find_one({"_id": task["_id"]})
    return {"message": "Task updated", "task": (await _populate([refreshed]))[0]}


async def delete_task(task_id: str, user: Dict[str, Any]) -> Dict[str, str]:
    """
    Deletes the whole series the task belongs to.

    A series shares ticket name and creator, plus the same from/to range
    (recurring) or the same due date (one-off).
    """
    task = await _get_editable(task_id, user)
    query: Dict[str, Any] = {"ticketName": task.get("ticketName"), "createdBy": task.get("createdBy")}
    if task.get("fromDate") and task.get("toDate"):
        query.update(fromDate=task["fromDate"], toDate=task["toDate"])
    else:
        query["toBeClosedBy"] = task.get("toBeClosedBy")

    result = await get_tasks_collection().delete_many(query)
    logger.info(f"Deleted {result.deleted_count} task(s) for {task.get('ticketName')}", extra={"user_id": str(user["_id"])})
    return {"message": f"Deleted {result.deleted_count} task(s)"}


async def open_opportunities(search: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {"opportunityStatus": {"$nin": list(CLOSED_OPPORTUNITY_STATUSES)}}
    if search:
        pattern = contains_ci(search)
        query["$or"] = [{"opportunityCode": pattern}, {"opportunityName": pattern}]
    cursor = get_opportunities_collection().find(query, OPPORTUNITY_FIELDS).sort("createdAt", DESCENDING)
    return await cursor.to_list(length=None)
