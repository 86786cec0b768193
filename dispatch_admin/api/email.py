"""
Email Worker API Router
Test delivery and manual queue processing, delegated to the worker
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from dispatch_admin.api.dependencies import get_email_worker
from dispatch_admin.api.error_handling import handle_api_errors
from dispatch_admin.api.schemas import TestEmailRequest
from dispatch_admin.core.collaborators import EmailWorker
from dispatch_admin.core.errors import CollaboratorUnavailable, ValidationError
from dispatch_admin.core.models import utc_now_iso

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/email-test", response_model=Dict[str, Any])
@handle_api_errors
async def send_test_email(request: TestEmailRequest, worker: EmailWorker = Depends(get_email_worker)):
    """Send one test email"""
    if not request.email or "@" not in request.email:
        raise ValidationError("Valid email address is required", field="email")

    logger.info(f"Sending test email to {request.email}")
    result = await worker.send_test_email(request.email)

    if not result.success:
        logger.error(f"Test email to {result.recipient} failed: {result.error}")
        raise CollaboratorUnavailable("Email service", "Failed to send test email")

    return {
        "success": True,
        "message": "Test email sent successfully",
        "messageId": result.message_id,
        "recipient": result.recipient,
    }


@router.post("/email-force-process", response_model=Dict[str, Any])
@handle_api_errors
async def force_process(worker: EmailWorker = Depends(get_email_worker)):
    """Process pending emails now, starting the worker if needed"""
    logger.info("Manual email processing triggered")

    worker_status = await worker.get_status()
    if not worker_status.running:
        logger.warning("Email service not running, attempting to auto-start")
        try:
            await worker.start()
        except Exception as e:
            logger.error(f"Failed to auto-start email service: {e}", exc_info=True)
            raise ValidationError(
                "Email service is not running and failed to auto-start. "
                "Please start the service manually."
            )

    await worker.force_process()

    return {
        "success": True,
        "message": "Email processing completed successfully",
        "timestamp": utc_now_iso(),
    }
