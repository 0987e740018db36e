"""
aceops/api/users.py

Purpose: Profile and user-administration endpoints

- /user: current profile, edits, user directory, role/handle management
- /admin/sub-admins: admin accounts with scoped permissions
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends

from aceops.core.security import get_current_user, require_admin
from aceops.schemas.users import (
    HandlesUpdate,
    PermissionsUpdate,
    ProfileUpdate,
    RolesUpdate,
    RoleUpdate,
    SubAdminCreate,
    SuperAdminUpdate,
)
from aceops.services import user_service
from aceops.services.audit import to_json
from utils.constants import ROLE_ENUM

router = APIRouter()


@router.get("/user")
async def get_me(user: dict = Depends(get_current_user)):
    return to_json(user)


@router.put("/user/edit")
async def edit_profile(body: ProfileUpdate, user: dict = Depends(get_current_user)):
    updated = await user_service.update_profile(user["_id"], body.model_dump(exclude_unset=True))
    return {"message": "Profile updated successfully", "user": to_json(updated)}


@router.get("/user/users")
async def list_users(
    role: Optional[str] = None,
    sortName: Literal["asc", "desc"] = "asc",
    user: dict = Depends(get_current_user),
):
    """
    User directory, optionally filtered by account role and sorted by name.
    """
    return to_json(await user_service.list_users(role, sortName))


@router.put("/user/users/{user_id}/role")
async def update_role(user_id: str, body: RoleUpdate, user: dict = Depends(get_current_user)):
    updated = await user_service.set_role(user_id, body.role)
    return {"message": "Role updated successfully", "user": to_json(updated)}


@router.put("/user/users/{user_id}/superadmin")
async def update_super_admin(user_id: str, body: SuperAdminUpdate, user: dict = Depends(get_current_user)):
    updated = await user_service.set_super_admin(user, user_id, body.isSuperAdmin)
    return {"message": "SuperAdmin status updated successfully", "user": to_json(updated)}


@router.put("/user/users/{user_id}/handles")
async def update_handles(user_id: str, body: HandlesUpdate, user: dict = Depends(get_current_user)):
    updated = await user_service.set_handles(user_id, body.handles)
    return {"message": "Handles updated successfully", "user": to_json(updated)}


@router.put("/user/users/{user_id}/roles")
async def update_roles(user_id: str, body: RolesUpdate, user: dict = Depends(get_current_user)):
    updated = await user_service.set_roles(user_id, body.roles)
    return {"message": "Roles updated successfully", "user": to_json(updated)}


@router.get("/user/role-enum")
async def role_enum(user: dict = Depends(get_current_user)):
    return {"roles": list(ROLE_ENUM)}


# ============================================================
# SUB-ADMINS
# ============================================================

@router.get("/admin/sub-admins")
async def list_sub_admins(admin: dict = Depends(require_admin)):
    return to_json(await user_service.list_sub_admins())


@router.post("/admin/sub-admins", status_code=201)
async def create_sub_admin(body: SubAdminCreate, admin: dict = Depends(require_admin)):
    return to_json(await user_service.create_sub_admin(body.model_dump()))


@router.put("/admin/sub-admins/{user_id}")
async def update_sub_admin(user_id: str, body: PermissionsUpdate, admin: dict = Depends(require_admin)):
    return to_json(await user_service.update_sub_admin_permissions(user_id, body.permissions))


@router.delete("/admin/sub-admins/{user_id}")
async def delete_sub_admin(user_id: str, admin: dict = Depends(require_admin)):
    return await user_service.delete_sub_admin(user_id)
