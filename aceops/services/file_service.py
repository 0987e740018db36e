"""
aceops/services/file_service.py

Purpose: Role-gated file storage

- Streams uploads to local disk under a random name, enforcing size and MIME limits
- Removes partially written files whenever an upload is rejected
- Inline HTML documents stored in Mongo
- Visibility by department role; super admins see everything
"""

import json
import os
import secrets
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from pymongo import ASCENDING, DESCENDING

from aceops.core.config import settings
from aceops.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from aceops.core.logging import get_logger
from aceops.db.mongo import get_files_collection
from utils.constants import ALLOWED_UPLOAD_MIME_TYPES, FILE_SORT_FIELDS, ROLE_ENUM, ROLE_GENERAL
from utils.validation_utils import escape_regex, parse_object_id

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024
DOCUMENT_MIME_TYPE = "text/html"


def user_roles(user: Dict[str, Any]) -> List[str]:
    """Roles that can unlock files. GENERAL never does."""
    roles = [user.get("role")] + list(user.get("roles") or [])
    return [r for r in roles if r and r != ROLE_GENERAL and r in ROLE_ENUM]


def can_access(user: Dict[str, Any], file_doc: Dict[str, Any]) -> bool:
    if user.get("isSuperAdmin"):
        return True
    mine = set(user_roles(user))
    return any(role in mine for role in file_doc.get("accessibleRoles") or [])


def parse_roles(raw: Any) -> List[str]:
    """
    Accepts a JSON array string (multipart form) or a list.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Invalid accessibleRoles format")
    if not isinstance(raw, list) or not raw:
        raise ValidationError("At least one accessible role is required")
    if not all(role in ROLE_ENUM for role in raw):
        raise ValidationError("Invalid roles specified")
    return list(raw)


def _remove_quietly(path: Optional[str]):
    if path and os.path.exists(path):
        os.remove(path)
        logger.debug(f"Removed rejected upload {path}")


def _stored_name(original: str) -> str:
    _, ext = os.path.splitext(original or "")
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{ext.lower()}"


async def _write_to_disk(upload: UploadFile, path: str) -> int:
    """
    Streams the upload to ``path``; raises once the size limit is exceeded.

    File I/O runs in the threadpool.
    """
    size = 0
    out = await run_in_threadpool(open, path, "wb")
    try:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > settings.MAX_UPLOAD_BYTES:
                raise ValidationError("File too large. Maximum size is 10MB.")
            await run_in_threadpool(out.write, chunk)
    finally:
        await run_in_threadpool(out.close)
    return size


def _present(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": doc["_id"],
        "fileName": doc.get("fileName"),
        "originalName": doc.get("originalName"),
        "fileSize": doc.get("fileSize"),
        "uploadedBy": doc.get("uploadedByName"),
        "uploadedById": doc.get("uploadedBy"),
        "accessibleRoles": doc.get("accessibleRoles"),
        "uploadedOn": doc.get("createdAt"),
        "description": doc.get("description", ""),
        "fileType": doc.get("fileType"),
        "isDocument": bool(doc.get("isDocument")),
    }


async def upload_file(
    user: Dict[str, Any],
    upload: Optional[UploadFile],
    accessible_roles: Any,
    description: Optional[str] = None,
    file_name: Optional[str] = None,
) -> Dict[str, Any]:
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded")
    if upload.content_type not in ALLOWED_UPLOAD_MIME_TYPES:
        raise ValidationError("Invalid file type. Only PDF, Excel, CSV, text files, and images are allowed.")

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    path = os.path.join(settings.UPLOAD_DIR, _stored_name(upload.filename))

    try:
        size = await _write_to_disk(upload, path)
        roles = parse_roles(accessible_roles)

        now = datetime.utcnow()
        doc = {
            "fileName": file_name or upload.filename,
            "originalName": upload.filename,
            "filePath": path,
            "fileSize": size,
            "fileType": upload.content_type,
            "uploadedBy": user["_id"],
            "uploadedByName": user.get("name", ""),
            "accessibleRoles": roles,
            "description": description or "",
            "documentContent": "",
            "isDocument": False,
            "createdAt": now,
            "updatedAt": now,
        }
        await get_files_collection().insert_one(doc)
    except Exception:
        _remove_quietly(path)
        raise

    logger.info(f"File uploaded: {doc['fileName']} ({size} bytes)", extra={"user_id": str(user["_id"])})
    return {"message": "File uploaded successfully", "file": _present(doc)}


async def create_document(user: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    roles = parse_roles(data.get("accessibleRoles"))
    content = data.get("documentContent") or ""
    now = datetime.utcnow()
    doc = {
        "fileName": data["fileName"],
        "originalName": data["fileName"],
        "filePath": "",
        "fileSize": len(content.encode("utf-8")),
        "fileType": DOCUMENT_MIME_TYPE,
        "uploadedBy": user["_id"],
        "uploadedByName": user.get("name", ""),
        "accessibleRoles": roles,
        "description": data.get("description") or "",
        "documentContent": content,
        "isDocument": True,
        "createdAt": now,
        "updatedAt": now,
    }
    await get_files_collection().insert_one(doc)
    return {"message": "Document created successfully", "file": _present(doc)}


async def _get(file_id: str) -> Dict[str, Any]:
    doc = await get_files_collection().find_one({"_id": parse_object_id(file_id, "File")})
    if not doc:
        raise NotFoundError("File not found")
    return doc


async def update_document(user: Dict[str, Any], file_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    doc = await _get(file_id)
    if not doc.get("isDocument"):
        raise ValidationError("Only documents can be edited")
    if not user.get("isSuperAdmin") and doc.get("uploadedBy") != user["_id"]:
        raise PermissionDeniedError("Only the author or a Super Admin can edit this document")

    updates: Dict[str, Any] = {k: v for k, v in changes.items() if v is not None and k != "accessibleRoles"}
    if changes.get("accessibleRoles") is not None:
        updates["accessibleRoles"] = parse_roles(changes["accessibleRoles"])
    if "documentContent" in updates:
        updates["fileSize"] = len(updates["documentContent"].encode("utf-8"))
    updates["updatedAt"] = datetime.utcnow()

    await get_files_collection().update_one({"_id": doc["_id"]}, {"$set": updates})
    return {"message": "Document updated successfully", "file": _present(await _get(file_id))}


async def list_files(
    user: Dict[str, Any],
    search: Optional[str] = None,
    sort_by: str = "uploadedOn",
    sort_order: str = "desc",
) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if not user.get("isSuperAdmin"):
        roles = user_roles(user)
        if not roles:
            return []
        query["accessibleRoles"] = {"$in": roles}

    if search:
        pattern = {"$regex": escape_regex(search), "$options": "i"}
        query["$or"] = [
            {field: pattern} for field in ("fileName", "originalName", "description", "uploadedByName")
        ]

    sort_field = sort_by if sort_by in FILE_SORT_FIELDS else "createdAt"
    direction = ASCENDING if sort_order == "asc" else DESCENDING
    cursor = get_files_collection().find(query, {"documentContent": 0}).sort(sort_field, direction)
    return [_present(doc) async for doc in cursor]


async def get_viewable(user: Dict[str, Any], file_id: str) -> Dict[str, Any]:
    """
    Returns the file record if the caller may see it.

    Raises 404 when the record or its bytes are gone, 403 without access.
    """
    doc = await _get(file_id)
    if not can_access(user, doc):
        raise PermissionDeniedError("Access denied")
    if not doc.get("isDocument") and not os.path.exists(doc.get("filePath") or ""):
        raise NotFoundError("File not found on server")
    return doc


async def file_url(user: Dict[str, Any], file_id: str) -> Dict[str, Any]:
    doc = await _get(file_id)
    if not can_access(user, doc):
        raise PermissionDeniedError("Access denied")
    return {
        "id": doc["_id"],
        "fileName": doc.get("fileName"),
        "fileType": doc.get("fileType"),
        "viewUrl": f"{settings.API_PREFIX}/files/view/{doc['_id']}",
    }


async def delete_file(user: Dict[str, Any], file_id: str) -> Dict[str, str]:
    if not user.get("isSuperAdmin"):
        raise PermissionDeniedError("Only Super Admin can delete files")
    doc = await _get(file_id)
    _remove_quietly(doc.get("filePath"))
    await get_files_collection().delete_one({"_id": doc["_id"]})
    logger.info(f"File deleted: {doc.get('fileName')}", extra={"user_id": str(user["_id"])})
    return {"message": "File deleted successfully"}


async def file_stats() -> Dict[str, int]:
    pipeline = [{"$group": {"_id": None, "totalFiles": {"$sum": 1}, "totalSize": {"$sum": "$fileSize"}}}]
    results = await get_files_collection().aggregate(pipeline).to_list(length=None)
    if not results:
        return {"totalFiles": 0, "totalSize": 0}
    return {"totalFiles": results[0]["totalFiles"], "totalSize": results[0]["totalSize"]}
