"""
aceops/api/auth.py

Purpose: Signup, e-mail verification and login endpoints
"""

from fastapi import APIRouter, Query

from aceops.core.logging import get_logger
from aceops.schemas.users import SignupRequest, LoginRequest, LoginResponse
from aceops.services import user_service

logger = get_logger(__name__)
router = APIRouter(prefix="/auth")


@router.post("/signup", status_code=201)
async def signup(body: SignupRequest):
    """
    Registers a new (unverified) account.
    """
    return await user_service.signup(body.name, body.email, body.password, body.phone, body.role)


@router.get("/verify-email")
async def verify_email(token: str = Query(...)):
    return await user_service.verify_email(token)


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    """
    Exchanges e-mail and password for a bearer token.

    Viewer accounts may only log in once.
    """
    return await user_service.login(body.email, body.password)
