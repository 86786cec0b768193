"""
Pytest configuration and fixtures for dispatch admin tests
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

from fastapi.testclient import TestClient

from dispatch_admin.api.dependencies import AppServices
from dispatch_admin.config.config_manager import (
    AppConfig, EnvironmentType, LoggingConfig, ProbeConfig, SecurityConfig, StorageConfig
)
from dispatch_admin.core.collaborators import (
    EmailWorker, SigningInfo, SigningService, TestEmailResult, WorkerStatus
)
from dispatch_admin.core.config_store import ConfigStore, EnvelopeCipher
from dispatch_admin.core.models import ConnectionConfig, ProbeResult, ScheduleConfig
from dispatch_admin.core.status_store import ServiceStatusStore
from dispatch_admin.main import create_app


TEST_SECRET = "test-deployment-secret"
# Low iteration count keeps key derivation fast in tests
TEST_KDF_ITERATIONS = 1000


class FakeEmailWorker(EmailWorker):
    """In-memory email worker"""

    def __init__(self):
        self.running = False
        self.started = 0
        self.stopped = 0
        self.processed = 0
        self.fail_start = False
        self.send_result = None

    async def start(self):
        if self.fail_start:
            raise RuntimeError("SMTP configuration missing")
        self.running = True
        self.started += 1

    async def stop(self):
        self.running = False
        self.stopped += 1

    async def get_status(self) -> WorkerStatus:
        return WorkerStatus(running=self.running, job_scheduled=self.running)

    async def send_test_email(self, address: str) -> TestEmailResult:
        if self.send_result is not None:
            return self.send_result
        return TestEmailResult(success=True, recipient=address, message_id="<test@dispatch>")

    async def force_process(self):
        self.processed += 1


class FakeSigningService(SigningService):
    """Signing service that echoes documents back"""

    def __init__(self, available: bool = True):
        self.available = available
        self.configured = []
        self.signed = []

    async def get_signing_info(self) -> SigningInfo:
        if not self.available:
            return SigningInfo(available=False, error="Signing application not installed")
        return SigningInfo(available=True)

    async def configure_signature(self, options):
        self.configured.append(options)
        return True

    async def sign(self, document: bytes, options):
        self.signed.append((document, options))
        return document


@pytest.fixture
def fixed_now():
    """Friday 10:15 UTC, inside a 09:00-17:00 window"""
    return datetime(2024, 3, 15, 10, 15, tzinfo=timezone.utc)


@pytest.fixture
def cipher():
    return EnvelopeCipher(TEST_SECRET, iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def config_dir(tmp_path):
    return tmp_path / "config"


@pytest.fixture
def database_store(config_dir, cipher):
    return ConfigStore(config_dir / "database.config", cipher, ConnectionConfig, "database")


@pytest.fixture
def email_store(config_dir, cipher):
    return ConfigStore(config_dir / "email.config", cipher, ScheduleConfig, "email",
                       type_marker="email_service")


@pytest.fixture
def status_store(config_dir):
    return ServiceStatusStore(config_dir / "service.status")


@pytest.fixture
def sample_connection():
    """Connection tuple as the setup form submits it"""
    return {
        'server': 'sql.example.local',
        'port': '1433',
        'user': 'dispatch',
        'password': 's3cret-db-pass',
        'database': 'Mailings',
    }


@pytest.fixture
def sample_schedule():
    """Email schedule as the setup form submits it"""
    return {
        'startTime': '09:00',
        'endTime': '17:00',
        'interval': 30,
        'intervalUnit': 'minutes',
        'dbRequestTimeout': 15000,
        'dbConnectionTimeout': 5000,
        'username': 'admin',
        'password': 'correct-horse',
    }


@pytest.fixture
def saved_configs(database_store, email_store, sample_connection, sample_schedule):
    database_store.save(ConnectionConfig.from_dict(sample_connection))
    email_store.save(ScheduleConfig.from_dict(sample_schedule))


@pytest.fixture
def connected_probe():
    probe = Mock()
    probe.test = AsyncMock(return_value=ProbeResult(connected=True, response_time_ms=12))
    return probe


@pytest.fixture
def app_config(config_dir):
    return AppConfig(
        environment=EnvironmentType.TESTING,
        storage=StorageConfig(config_dir=str(config_dir)),
        security=SecurityConfig(encryption_key=TEST_SECRET, kdf_iterations=TEST_KDF_ITERATIONS),
        probe=ProbeConfig(driver="sqlite+aiosqlite", driver_options={}),
        logging=LoggingConfig(file_enabled=False),
    )


@pytest.fixture
def email_worker():
    return FakeEmailWorker()


@pytest.fixture
def signing_service():
    return FakeSigningService()


@pytest.fixture
def services(app_config, email_worker, signing_service, connected_probe):
    return AppServices.from_config(
        app_config,
        email_worker=email_worker,
        signing_service=signing_service,
        probe=connected_probe,
    )


@pytest.fixture
def client(app_config, services):
    """Test client with fake collaborators wired in"""
    with TestClient(create_app(app_config, services)) as test_client:
        yield test_client
