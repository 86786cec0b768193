"""
Configuration API Router
Save and read the encrypted database and email configurations
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dispatch_admin.api.dependencies import AppServices, get_services
from dispatch_admin.api.error_handling import handle_api_errors
from dispatch_admin.api.schemas import DatabaseConfigRequest, EmailConfigRequest
from dispatch_admin.core.models import MASK_SENTINEL

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/save-config", response_model=Dict[str, Any])
@handle_api_errors
async def save_database_config(request: DatabaseConfigRequest,
                               services: AppServices = Depends(get_services)):
    """Validate and store the database connection"""
    envelope = services.database_store.save(request.to_config())
    return {
        "success": True,
        "message": "Configuration saved successfully",
        "timestamp": envelope.timestamp,
    }


@router.get("/save-config", response_model=Dict[str, Any])
@handle_api_errors
async def get_database_config(services: AppServices = Depends(get_services)):
    """Stored database connection without credentials"""
    store = services.database_store
    config = store.load()
    return {
        "success": True,
        "config": {
            "server": config.server,
            "port": config.port,
            "database": config.database,
        },
        "timestamp": store.timestamp(),
    }


@router.post("/save-email-config", response_model=Dict[str, Any])
@handle_api_errors
async def save_email_config(request: EmailConfigRequest,
                            services: AppServices = Depends(get_services)):
    """Store the schedule; a running worker is restarted to pick it up"""
    envelope = services.email_store.save(request.to_config())

    if await services.controller.restart_worker():
        message = "Email service configuration saved and service restarted successfully"
    else:
        message = "Email service configuration saved successfully"

    return {
        "success": True,
        "message": message,
        "timestamp": envelope.timestamp,
    }


@router.get("/save-email-config", response_model=Dict[str, Any])
@handle_api_errors
async def get_email_config(services: AppServices = Depends(get_services)):
    """Stored schedule without the admin login"""
    store = services.email_store
    config = store.load()
    payload = config.to_dict()
    payload.pop("username")
    payload.pop("password")
    return {
        "success": True,
        "config": payload,
        "timestamp": store.timestamp(),
    }


@router.get("/get-current-config", response_model=Dict[str, Any])
@handle_api_errors
async def get_current_config(services: AppServices = Depends(get_services)):
    """Both configurations with passwords replaced by the mask"""
    database = services.database_store.load().to_dict()
    email = services.email_store.load().to_dict()
    database["password"] = MASK_SENTINEL
    email["password"] = MASK_SENTINEL
    return {
        "success": True,
        "config": {
            "database": database,
            "email": email,
        },
    }


@router.get("/check-email-config")
async def check_email_config(services: AppServices = Depends(get_services)):
    """Whether the email configuration has been saved"""
    if services.email_store.exists():
        return {"exists": True}
    return JSONResponse(status_code=404, content={"exists": False})
