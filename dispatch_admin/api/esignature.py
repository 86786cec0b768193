"""
eSignature API Router
Certificate configuration and a signing smoke test, delegated to the signing service
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from dispatch_admin.api.dependencies import get_signing_service
from dispatch_admin.api.error_handling import handle_api_errors
from dispatch_admin.api.schemas import SignatureConfigRequest, SignatureTestRequest
from dispatch_admin.core.collaborators import SigningService
from dispatch_admin.core.errors import CollaboratorUnavailable, ValidationError

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_certificate(certificate: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not certificate:
        raise ValidationError("Missing required field: certificate", field="certificate")
    return certificate


@router.get("/configure-esignature", response_model=Dict[str, Any])
@handle_api_errors
async def get_esignature(signer: SigningService = Depends(get_signing_service)):
    """Signing application availability"""
    info = await signer.get_signing_info()
    return {
        "success": True,
        "eSignature": {
            "available": info.available,
            "info": info.to_dict(),
        },
    }


@router.post("/configure-esignature", response_model=Dict[str, Any])
@handle_api_errors
async def configure_esignature(request: SignatureConfigRequest,
                               signer: SigningService = Depends(get_signing_service)):
    """Select the signing certificate; the PIN is never echoed back"""
    certificate = _require_certificate(request.certificate)
    if not certificate.get("serialNumber") or not certificate.get("type"):
        raise ValidationError("Certificate must have serialNumber and type fields", field="certificate")

    if not await signer.configure_signature({"certificate": certificate}):
        raise CollaboratorUnavailable("Signing service", "Failed to configure eSignature")

    logger.info(f"eSignature configured for certificate {certificate['serialNumber']}")
    return {
        "success": True,
        "message": "eSignature configured successfully",
        "config": {
            "certificate": {
                "serialNumber": certificate["serialNumber"],
                "type": certificate["type"],
                "hasPinCode": bool(certificate.get("pinCode")),
            }
        },
    }


@router.post("/test-esignature", response_model=Dict[str, Any])
@handle_api_errors
async def test_esignature(request: SignatureTestRequest,
                          signer: SigningService = Depends(get_signing_service)):
    """Check availability and optionally sign a test document"""
    certificate = _require_certificate(request.certificate)

    info = await signer.get_signing_info()
    if not info.available:
        logger.error(f"Native signing not available: {info.error}")
        return {
            "success": False,
            "error": "Native signing not available",
            "details": info.error,
        }

    signing_test = None
    if request.test_pdf_path:
        signing_test = await _try_signing(signer, certificate, Path(request.test_pdf_path))

    return {
        "success": True,
        "tests": {
            "signingApp": info.to_dict(),
            "signing": signing_test,
        },
    }


async def _try_signing(signer: SigningService, certificate: Dict[str, Any], document_path: Path) -> Dict[str, Any]:
    if not document_path.exists():
        return {"success": False, "error": "Test PDF file not found"}

    try:
        document = document_path.read_bytes()
        if not await signer.configure_signature({"certificate": certificate}):
            return {"success": False, "error": "Failed to configure eSignature for testing"}

        now = datetime.now()
        await signer.sign(document, {
            "signedBy": "Test User",
            "signedOn": now.strftime("%Y-%m-%d"),
            "signedTm": now.strftime("%H:%M:%S"),
            "eSignature": {"enabled": True, "certificate": certificate},
        })
    except Exception as e:
        logger.error(f"Test signing of {document_path} failed: {e}", exc_info=True)
        return {"success": False, "error": "Signing failed; see server log for details"}

    return {"success": True, "error": None, "outputPath": "PDF signed successfully"}
