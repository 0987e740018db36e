"""
aceops/services/user_service.py

Purpose: User accounts, authentication and administration

- Signup with e-mail verification token
- Login rules (verification, single-session viewers)
- Profile updates and role / handle / super-admin management
- Sub-admin CRUD
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from aceops.core.config import settings
from aceops.core.exceptions import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    AceOpsError,
)
from aceops.core.logging import get_logger, LogContext
from aceops.core.security import (
    create_access_token,
    create_verification_token,
    decode_token,
    hash_password,
    verify_password,
)
from aceops.db.mongo import get_users_collection
from utils.constants import HANDLES, ROLES, ROLE_ADMIN, ROLE_ENUM, ROLE_GENERAL, ROLE_VIEWER
from utils.validation_utils import optional_object_id, parse_object_id

logger = get_logger(__name__)

NO_PASSWORD = {"password": 0}
LIST_PROJECTION = {
    "name": 1, "dateOfBirth": 1, "address": 1, "email": 1, "phone": 1,
    "role": 1, "roles": 1, "handles": 1, "isSuperAdmin": 1, "permissions": 1,
}


def new_user_document(
    name: str,
    email: str,
    password: str,
    phone: Optional[str] = None,
    role: str = ROLE_GENERAL,
    is_verified: bool = False,
    permissions: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "name": name,
        "email": email.lower(),
        "phone": phone or "",
        "password": hash_password(password),
        "role": role,
        "roles": [],
        "handles": [],
        "isVerified": is_verified,
        "isSuperAdmin": False,
        "permissions": permissions or [],
        "maxLogins": 1,
        "loginCount": 0,
        "singleSession": False,
        "createdAt": datetime.utcnow(),
    }


async def signup(name: str, email: str, password: str, phone: Optional[str] = None, role: Optional[str] = None) -> Dict[str, Any]:
    """
    Registers an unverified user and issues a 24h verification link.

    Mail delivery is not wired up; the link is logged for operators.
    """
    users = get_users_collection()
    if await users.find_one({"email": email.lower()}):
        raise DuplicateError("User already exists.")

    doc = new_user_document(name, email, password, phone, role or ROLE_GENERAL)
    try:
        result = await users.insert_one(doc)
    except DuplicateKeyError:
        raise DuplicateError("User already exists.")

    token = create_verification_token(result.inserted_id)
    link = f"{settings.FRONTEND_URL}/email-verification?token={token}"
    logger.info(
        "User registered, verification link issued",
        extra={"user_id": str(result.inserted_id), "verification_link": link}
    )
    return {"message": "User registered successfully. Please verify your email.", "role": doc["role"]}


async def verify_email(token: str) -> Dict[str, str]:
    try:
        payload = decode_token(token)
    except AceOpsError:
        raise ValidationError("Invalid or expired verification link")

    user_id = optional_object_id(payload.get("sub"))
    if user_id is None:
        raise ValidationError("Invalid or expired verification link")

    result = await get_users_collection().update_one({"_id": user_id}, {"$set": {"isVerified": True}})
    if result.matched_count == 0:
        raise NotFoundError("User not found.")
    return {"message": "Email verified successfully."}


async def login(email: str, password: str) -> Dict[str, Any]:
    users = get_users_collection()
    user = await users.find_one({"email": email.lower()})
    if not user:
        raise NotFoundError("User not found.")

    with LogContext(user_id=str(user["_id"])):
        if not user.get("isVerified"):
            raise ValidationError("Email not verified. Please verify your email before logging in.")

        if user.get("role") == ROLE_VIEWER and user.get("singleSession"):
            raise PermissionDeniedError("Viewer already logged in. Single session allowed.")

        if not verify_password(password, user.get("password")):
            logger.info("Rejected login with bad credentials")
            raise ValidationError("Invalid credentials.")

        if user.get("role") == ROLE_VIEWER:
            await users.update_one(
                {"_id": user["_id"]},
                {"$set": {"singleSession": True}, "$inc": {"loginCount": 1}}
            )

        logger.info("Login successful")
        return {
            "message": "Login successful.",
            "token": create_access_token(user),
            "role": user.get("role", ROLE_GENERAL),
            "isSuperAdmin": bool(user.get("isSuperAdmin")),
            "permissions": user.get("permissions") or [],
        }


async def get_profile(user_id: Any) -> Dict[str, Any]:
    user = await get_users_collection().find_one({"_id": user_id}, NO_PASSWORD)
    if not user:
        raise NotFoundError("User not found")
    return user


async def update_profile(user_id: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
    # Blank name/dob/phone keep the old value; address may be cleared
    updates = {key: changes[key] for key in ("name", "dateOfBirth", "phone") if changes.get(key)}
    if isinstance(changes.get("address"), str):
        updates["address"] = changes["address"]
    if updates:
        await get_users_collection().update_one({"_id": user_id}, {"$set": updates})
    return await get_profile(user_id)


async def list_users(role: Optional[str] = None, sort_name: str = "asc") -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if role in ROLES:
        query["role"] = role
    users = await get_users_collection().find(query, LIST_PROJECTION).to_list(length=None)
    users.sort(key=lambda u: str(u.get("name") or "").lower(), reverse=sort_name == "desc")
    return users


async def _update_user(user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    user = await get_users_collection().find_one_and_update(
        {"_id": parse_object_id(user_id, "User")},
        {"$set": updates},
        projection=NO_PASSWORD,
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFoundError("User not found")
    return user


async def set_role(user_id: str, role: str) -> Dict[str, Any]:
    if role not in ROLES:
        raise ValidationError("Invalid role specified")
    return await _update_user(user_id, {"role": role})


async def set_super_admin(actor: Dict[str, Any], user_id: str, flag: bool) -> Dict[str, Any]:
    if actor.get("isSuperAdmin") is not True:
        raise PermissionDeniedError("Only SuperAdmins can modify SuperAdmin status")
    return await _update_user(user_id, {"isSuperAdmin": bool(flag)})


async def set_handles(user_id: str, handles: List[str]) -> Dict[str, Any]:
    if not all(handle in HANDLES for handle in handles):
        raise ValidationError("Invalid handles specified")
    return await _update_user(user_id, {"handles": handles})


async def set_roles(user_id: str, roles: List[str]) -> Dict[str, Any]:
    if not all(role in ROLE_ENUM for role in roles):
        raise ValidationError("Invalid roles array", details={"allowed": list(ROLE_ENUM)})
    return await _update_user(user_id, {"roles": sorted(set(roles))})


# ============================================================
# SUB-ADMINS
# ============================================================

async def list_sub_admins() -> List[Dict[str, Any]]:
    return await get_users_collection().find({"role": ROLE_ADMIN}, NO_PASSWORD).to_list(length=None)


async def create_sub_admin(data: Dict[str, Any]) -> Dict[str, Any]:
    if not all(data.get(key) for key in ("name", "email", "phone", "password")):
        raise ValidationError("Missing required fields")

    users = get_users_collection()
    if await users.find_one({"email": data["email"].lower()}):
        raise DuplicateError("User already exists.")

    doc = new_user_document(
        data["name"], data["email"], data["password"], data["phone"],
        role=ROLE_ADMIN, is_verified=True, permissions=data.get("permissions") or [],
    )
    await users.insert_one(doc)
    doc.pop("password", None)
    logger.info("Sub-admin created", extra={"user_id": str(doc["_id"])})
    return doc


async def _get_admin(user_id: str) -> Dict[str, Any]:
    user = await get_users_collection().find_one({"_id": parse_object_id(user_id, "Sub-admin user")}, NO_PASSWORD)
    if not user:
        raise NotFoundError("Sub-admin user not found")
    if user.get("role") != ROLE_ADMIN:
        raise ValidationError("User is not an admin")
    return user


async def update_sub_admin_permissions(user_id: str, permissions: List[str]) -> Dict[str, Any]:
    user = await _get_admin(user_id)
    await get_users_collection().update_one({"_id": user["_id"]}, {"$set": {"permissions": permissions or []}})
    user["permissions"] = permissions or []
    return user


async def delete_sub_admin(user_id: str) -> Dict[str, str]:
    user = await _get_admin(user_id)
    await get_users_collection().delete_one({"_id": user["_id"]})
    logger.info("Sub-admin deleted", extra={"user_id": user_id})
    return {"message": "Sub-admin deleted successfully"}
