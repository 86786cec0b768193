"""
API schemas for the dispatch admin backend
Request bodies keep the camelCase field names the admin UI sends
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from dispatch_admin.core.models import ConnectionConfig, ScheduleConfig


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== ERROR SCHEMAS ====================

class ErrorCode(str, Enum):
    """Standardized error codes for API responses"""
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_FORMAT = "INVALID_FORMAT"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    CONNECTIVITY_ERROR = "CONNECTIVITY_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class APIErrorDetail(BaseModel):
    """Detailed error information"""
    field: Optional[str] = Field(None, description="Field that caused the error")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class APIErrorResponse(BaseModel):
    """Standardized error response schema"""
    success: bool = Field(False, description="Always false for error responses")
    error: str = Field(..., description="Main error message")
    error_code: ErrorCode = Field(..., description="Standardized error code")
    details: Optional[List[APIErrorDetail]] = Field(None, description="Detailed error information")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
    request_id: Optional[str] = Field(None, description="Request tracking ID")


# ==================== REQUEST SCHEMAS ====================

class DatabaseConfigRequest(BaseModel):
    """Connection tuple as submitted by the setup form"""
    server: str = ""
    port: Union[str, int] = ""
    user: str = ""
    password: str = ""
    database: str = ""

    def to_config(self) -> ConnectionConfig:
        return ConnectionConfig.from_dict(self.model_dump())


class EmailConfigRequest(BaseModel):
    """Schedule, DB timeouts and admin login"""
    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field("", alias="startTime")
    end_time: str = Field("", alias="endTime")
    interval: Union[int, str, None] = None
    interval_unit: str = Field("minutes", alias="intervalUnit")
    db_request_timeout: Union[int, str, None] = Field(None, alias="dbRequestTimeout")
    db_connection_timeout: Union[int, str, None] = Field(None, alias="dbConnectionTimeout")
    username: str = ""
    password: str = ""

    def to_config(self) -> ScheduleConfig:
        return ScheduleConfig.from_dict(self.model_dump(by_alias=True))


class ServiceAction(str, Enum):
    START = "start"
    STOP = "stop"


class ServiceControlRequest(BaseModel):
    action: Optional[str] = None
    user: str = "system"


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class TestEmailRequest(BaseModel):
    email: str = ""


class SignatureConfigRequest(BaseModel):
    certificate: Optional[Dict[str, Any]] = None


class SignatureTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    certificate: Optional[Dict[str, Any]] = None
    test_pdf_path: Optional[str] = Field(None, alias="testPdfPath")
