"""
Authentication API Router
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from dispatch_admin.api.dependencies import AppServices, get_services, get_session
from dispatch_admin.api.error_handling import handle_api_errors
from dispatch_admin.api.schemas import LoginRequest
from dispatch_admin.core.auth import Session

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/authenticate", response_model=Dict[str, Any])
@handle_api_errors
async def authenticate(request: LoginRequest, services: AppServices = Depends(get_services)):
    """Log in with the admin credentials stored in the email config"""
    token = services.tokens.login(request.username, request.password)
    return {
        "success": True,
        "message": "Authentication successful",
        "token": token,
        "user": {"username": request.username},
    }


@router.get("/authenticate", response_model=Dict[str, Any])
@handle_api_errors
async def verify_token(session: Session = Depends(get_session)):
    """Check a bearer session token"""
    return {"success": True, "user": {"username": session.username}}
