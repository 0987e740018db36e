"""
aceops/services/audit.py

Purpose: Shared helpers for embedded audit logs and document output

- Builds the log entries pushed onto company / vendor / lead / event / task documents
- Field-level diffing for updates
- Resolves user references to {_id, name, email}
- Converts Mongo documents to JSON-safe dicts
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from fastapi.encoders import jsonable_encoder

from aceops.db.mongo import get_users_collection


def log_entry(
    action: str,
    performed_by: Any,
    ip_address: Optional[str] = None,
    field: Optional[str] = None,
    old_value: Any = None,
    new_value: Any = None,
) -> Dict[str, Any]:
    return {
        "action": action,
        "field": field,
        "oldValue": old_value,
        "newValue": new_value,
        "performedBy": performed_by,
        "performedAt": datetime.utcnow(),
        "ipAddress": ip_address,
    }


def diff_fields(
    current: Dict[str, Any],
    changes: Dict[str, Any],
    fields: Iterable[str],
    performed_by: Any,
    ip_address: Optional[str],
) -> tuple:
    """
    Compares ``changes`` against ``current`` for the given fields.

    Returns ``(updates, logs)``. Keys missing from ``changes`` are ignored.
    """
    updates: Dict[str, Any] = {}
    logs: List[Dict[str, Any]] = []
    for field in fields:
        if field not in changes:
            continue
        new_value = changes[field]
        old_value = current.get(field)
        if new_value == old_value:
            continue
        updates[field] = new_value
        logs.append(log_entry("update", performed_by, ip_address, field, old_value, new_value))
    return updates, logs


async def user_summaries(ids: Iterable[Any]) -> Dict[ObjectId, Dict[str, Any]]:
    """Maps user ids to ``{_id, name, email}`` in one query."""
    wanted = {i for i in ids if isinstance(i, ObjectId)}
    if not wanted:
        return {}
    cursor = get_users_collection().find({"_id": {"$in": list(wanted)}}, {"name": 1, "email": 1})
    return {user["_id"]: user async for user in cursor}


def to_json(doc: Any) -> Any:
    """JSON-safe copy of a Mongo document (ObjectId -> str, datetime -> ISO)."""
    return jsonable_encoder(doc, custom_encoder={ObjectId: str})
