"""
Error taxonomy for the dispatch admin core
Transport-independent; the API layer maps these to HTTP responses
"""

from enum import Enum
from typing import Optional


class ConnectivityReason(str, Enum):
    """Closed set of reasons a connectivity probe can fail"""
    REFUSED = "refused"
    TIMEOUT = "timeout"
    AUTH_FAILURE = "auth_failure"
    NOT_FOUND = "resource_not_found"
    UNKNOWN = "unknown"


class DispatchError(Exception):
    """Base class for all dispatch admin errors"""

    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
        self.message = message


class ConfigNotFound(DispatchError):
    """Configuration file does not exist"""

    error_code = "NOT_FOUND"

    def __init__(self, name: str):
        super().__init__(f"No {name} configuration found")
        self.name = name


class InvalidFormat(DispatchError):
    """Persisted envelope is missing its encrypted/data fields or is not JSON"""

    error_code = "INVALID_FORMAT"

    def __init__(self, name: str):
        super().__init__(f"Invalid {name} configuration format")
        self.name = name


class DecryptionFailure(DispatchError):
    """Ciphertext could not be decrypted into a JSON object"""

    error_code = "DECRYPTION_FAILED"

    def __init__(self, message: str = "Configuration could not be decrypted"):
        super().__init__(message)


class ValidationError(DispatchError):
    """Input failed validation"""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConnectivityError(DispatchError):
    """Configured resource could not be reached"""

    error_code = "CONNECTIVITY_ERROR"

    def __init__(self, reason: ConnectivityReason, message: str = "Connection failed"):
        super().__init__(message)
        self.reason = reason


class AuthenticationError(DispatchError):
    """Login or session token rejected"""

    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class CollaboratorUnavailable(DispatchError):
    """Email worker or signing service is not wired in or failed"""

    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, collaborator: str, message: Optional[str] = None):
        super().__init__(message or f"{collaborator} is not available")
        self.collaborator = collaborator


class InternalError(DispatchError):
    """Unexpected failure"""
