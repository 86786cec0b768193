"""
Service Control API Router
Start/stop the email worker and read the persisted intent
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from dispatch_admin.api.dependencies import AppServices, get_services
from dispatch_admin.api.error_handling import handle_api_errors
from dispatch_admin.api.schemas import ServiceAction, ServiceControlRequest
from dispatch_admin.core.errors import ValidationError
from dispatch_admin.core.models import utc_now_iso

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/service-control", response_model=Dict[str, Any])
@handle_api_errors
async def control_service(request: ServiceControlRequest,
                          services: AppServices = Depends(get_services)):
    """Start or stop the email service"""
    try:
        action = ServiceAction(request.action)
    except ValueError:
        raise ValidationError('Invalid action. Must be "start" or "stop"', field="action")

    logger.info(f"Service control requested: {action.value} by {request.user}")
    if action == ServiceAction.START:
        result = await services.controller.start(user=request.user)
    else:
        result = await services.controller.stop()

    payload = result.to_dict()
    payload["timestamp"] = utc_now_iso()
    return payload


@router.get("/service-control", response_model=Dict[str, Any])
@handle_api_errors
async def get_service_control(services: AppServices = Depends(get_services)):
    """Persisted intent; refreshes lastActivity while running"""
    record = await services.controller.current()
    return {"success": True, "status": record.to_dict()}


@router.get("/service-status", response_model=Dict[str, Any])
@handle_api_errors
async def get_service_status(services: AppServices = Depends(get_services)):
    """Persisted intent as stored, defaulting to stopped"""
    record = services.status_store.load()
    return {"success": True, **record.to_dict()}
