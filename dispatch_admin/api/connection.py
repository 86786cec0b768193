"""
Connectivity API Router
Test an unsaved connection tuple or the saved database configuration
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from dispatch_admin.api.dependencies import AppServices, get_services
from dispatch_admin.api.error_handling import handle_api_errors
from dispatch_admin.api.schemas import DatabaseConfigRequest
from dispatch_admin.core.errors import ValidationError
from dispatch_admin.core.models import utc_now_iso

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/test-connection", response_model=Dict[str, Any])
@handle_api_errors
async def test_connection(request: DatabaseConfigRequest,
                          services: AppServices = Depends(get_services)):
    """Probe a connection tuple before it is saved"""
    config = request.to_config()
    config.validate()
    config = services.database_store.resolve_secret(config)
    if not config.password:
        raise ValidationError("All fields are required", field="password")

    result = await services.probe.test(config)
    if result.connected:
        return {
            "success": True,
            "message": "Database connection successful! Ready to proceed.",
            "responseTime": result.response_time_ms,
        }

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": result.message,
            "errorReason": result.error_reason.value if result.error_reason else None,
        },
    )


@router.post("/test-db-status", response_model=Dict[str, Any])
@handle_api_errors
async def test_db_status(services: AppServices = Depends(get_services)):
    """Probe the saved database configuration"""
    config = services.database_store.load()
    result = await services.probe.test(config)

    if result.connected:
        return {
            "success": True,
            "connected": True,
            "responseTime": result.response_time_ms,
            "message": "Database connection successful",
            "timestamp": utc_now_iso(),
        }

    return {
        "success": False,
        "connected": False,
        "error": result.message,
        "errorReason": result.error_reason.value if result.error_reason else None,
        "timestamp": utc_now_iso(),
    }
