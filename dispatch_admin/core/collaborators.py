"""
Collaborator contracts for the email worker and the document signing service
Implementations live outside this package and are injected at startup
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class WorkerStatus:
    """Live state reported by the email worker"""
    running: bool
    job_scheduled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'running': self.running, 'jobScheduled': self.job_scheduled}


@dataclass
class TestEmailResult:
    """Result of sending a single test email"""
    success: bool
    recipient: str
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SigningInfo:
    """Availability of the external signing application"""
    available: bool
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'available': self.available}
        if self.error:
            payload['error'] = self.error
        if self.details:
            payload['details'] = self.details
        return payload


class EmailWorker(ABC):
    """
    Background worker that sends queued emails during the schedule window

    The admin backend only starts, stops and inspects it; delivery is the
    worker's own business.
    """

    @abstractmethod
    async def start(self):
        """Start the worker on its configured schedule"""
        pass

    @abstractmethod
    async def stop(self):
        """Stop the worker and cancel scheduled jobs"""
        pass

    @abstractmethod
    async def get_status(self) -> WorkerStatus:
        pass

    @abstractmethod
    async def send_test_email(self, address: str) -> TestEmailResult:
        pass

    @abstractmethod
    async def force_process(self):
        """Process the pending queue immediately"""
        pass


class SigningService(ABC):
    """
    Signing delegated to an external native application

    Document bytes pass through untouched; nothing here inspects them.
    """

    @abstractmethod
    async def get_signing_info(self) -> SigningInfo:
        pass

    @abstractmethod
    async def configure_signature(self, options: Dict[str, Any]) -> bool:
        """Configure certificate selection; returns False when rejected"""
        pass

    @abstractmethod
    async def sign(self, document: bytes, options: Dict[str, Any]) -> bytes:
        pass
