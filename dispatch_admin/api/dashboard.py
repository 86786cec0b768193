"""
Dashboard API Router
Reconciled service status, recomputed on every request
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from dispatch_admin.api.dependencies import AppServices, get_services
from dispatch_admin.api.error_handling import handle_api_errors

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/dashboard", response_model=Dict[str, Any])
@handle_api_errors
async def get_dashboard(services: AppServices = Depends(get_services)):
    """Database reachability, schedule window and effective service status"""
    snapshot = await services.reconciler.snapshot()
    logger.debug(f"Dashboard snapshot: service={snapshot.service.status.value}, "
                 f"connected={snapshot.database.connected}")
    return snapshot.to_dict()
