"""
aceops/schemas/users.py

Purpose: Request bodies for auth, profile and user administration
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    password: str = Field(..., min_length=6)
    role: Optional[Literal["ADMIN", "GENERAL", "VIEWER"]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Asha Rao",
                "email": "asha@example.com",
                "phone": "9876543210",
                "password": "s3cret!",
            }
        }


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    message: str
    token: str
    role: str
    isSuperAdmin: bool = False
    permissions: List[str] = []


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    dateOfBirth: Optional[str] = None
    address: Optional[str] = None


class RoleUpdate(BaseModel):
    role: str


class SuperAdminUpdate(BaseModel):
    isSuperAdmin: bool


class HandlesUpdate(BaseModel):
    handles: List[str] = []


class RolesUpdate(BaseModel):
    roles: List[str] = []


class SubAdminCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    permissions: List[str] = []


class PermissionsUpdate(BaseModel):
    permissions: List[str] = []
