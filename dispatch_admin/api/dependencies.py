"""
API Dependencies
Service container built once at startup and handed to routes through app.state
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dispatch_admin.config import AppConfig
from dispatch_admin.core.auth import Session, SessionTokenService
from dispatch_admin.core.collaborators import EmailWorker, SigningService
from dispatch_admin.core.config_store import ConfigStore, EnvelopeCipher
from dispatch_admin.core.connectivity import ConnectivityProbe, ProbeTimeouts
from dispatch_admin.core.errors import AuthenticationError, CollaboratorUnavailable
from dispatch_admin.core.models import ConnectionConfig, ScheduleConfig
from dispatch_admin.core.reconciler import StatusReconciler
from dispatch_admin.core.status_store import ServiceController, ServiceStatusStore

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

EMAIL_CONFIG_TYPE = "email_service"


@dataclass
class AppServices:
    """Everything a request handler may need, wired from one AppConfig"""
    config: AppConfig
    cipher: EnvelopeCipher
    database_store: ConfigStore
    email_store: ConfigStore
    status_store: ServiceStatusStore
    probe: ConnectivityProbe
    controller: ServiceController
    reconciler: StatusReconciler
    tokens: SessionTokenService
    email_worker: Optional[EmailWorker] = None
    signing_service: Optional[SigningService] = None

    @classmethod
    def from_config(cls, config: AppConfig,
                    email_worker: Optional[EmailWorker] = None,
                    signing_service: Optional[SigningService] = None,
                    probe: Optional[ConnectivityProbe] = None) -> 'AppServices':
        storage = config.storage
        cipher = EnvelopeCipher(
            config.security.encryption_key,
            salt=config.security.kdf_salt,
            iterations=config.security.kdf_iterations,
        )
        database_store = ConfigStore(storage.database_config_path, cipher, ConnectionConfig, "database")
        email_store = ConfigStore(storage.email_config_path, cipher, ScheduleConfig, "email",
                                  type_marker=EMAIL_CONFIG_TYPE)
        status_store = ServiceStatusStore(storage.service_status_path)

        if probe is None:
            probe = ConnectivityProbe(
                driver=config.probe.driver,
                driver_options=config.probe.driver_options,
                default_timeouts=ProbeTimeouts(
                    connect_ms=config.probe.connect_timeout_ms,
                    request_ms=config.probe.request_timeout_ms,
                ),
            )

        controller = ServiceController(status_store, worker=email_worker)
        reconciler = StatusReconciler(database_store, email_store, status_store, probe,
                                      timezone=config.schedule_tz)
        tokens = SessionTokenService(cipher, email_store, ttl_hours=config.security.session_ttl_hours)

        return cls(
            config=config,
            cipher=cipher,
            database_store=database_store,
            email_store=email_store,
            status_store=status_store,
            probe=probe,
            controller=controller,
            reconciler=reconciler,
            tokens=tokens,
            email_worker=email_worker,
            signing_service=signing_service,
        )


def get_services(request: Request) -> AppServices:
    """FastAPI dependency for the service container"""
    return request.app.state.services


def get_email_worker(services: AppServices = Depends(get_services)) -> EmailWorker:
    if services.email_worker is None:
        raise CollaboratorUnavailable("Email service")
    return services.email_worker


def get_signing_service(services: AppServices = Depends(get_services)) -> SigningService:
    if services.signing_service is None:
        raise CollaboratorUnavailable("Signing service")
    return services.signing_service


async def get_session(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                      services: AppServices = Depends(get_services)) -> Session:
    """FastAPI dependency verifying the bearer session token"""
    if not credentials:
        raise AuthenticationError("No authorization token provided")
    return services.tokens.verify(credentials.credentials)
