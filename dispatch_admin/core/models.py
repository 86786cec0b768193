"""
Domain models for the dispatch admin backend
Persisted configuration, service intent and the derived dashboard snapshot
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from dispatch_admin.core.errors import ConnectivityReason, ValidationError


# Placeholder returned instead of a stored secret; seeing it on save means "keep the old one"
MASK_SENTINEL = "•" * 8

ENVELOPE_VERSION = "1.0"

CLOCK_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision"""
    return to_iso(datetime.now(timezone.utc))


def to_iso(moment: datetime) -> str:
    """Serialize a datetime the way persisted records store it"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the trailing Z form"""
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class IntervalUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"


class ServiceIntent(str, Enum):
    """The only two values ever written to the status file"""
    RUNNING = "running"
    STOPPED = "stopped"


class EffectiveStatus(str, Enum):
    """Reconciled status shown on the dashboard"""
    STOPPED = "stopped"
    RUNNING = "running"
    ERROR = "error"


@dataclass
class EncryptedEnvelope:
    """Versioned wrapper around a ciphertext on disk"""
    data: str
    timestamp: str = field(default_factory=utc_now_iso)
    version: str = ENVELOPE_VERSION
    encrypted: bool = True
    type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'encrypted': self.encrypted,
            'timestamp': self.timestamp,
            'version': self.version,
        }
        if self.type:
            payload['type'] = self.type
        payload['data'] = self.data
        return payload


@dataclass
class ConnectionConfig:
    """Connection tuple for the database the email worker reads from"""
    server: str
    port: str
    user: str
    password: str
    database: str

    secret_field = 'password'
    required_fields = ('server', 'port', 'user', 'database')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConnectionConfig':
        return cls(
            server=str(data.get('server') or '').strip(),
            port=str(data.get('port') if data.get('port') is not None else '').strip(),
            user=str(data.get('user') or '').strip(),
            password=str(data.get('password') or ''),
            database=str(data.get('database') or '').strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'server': self.server,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
        }

    def validate(self):
        """Validate the non-secret fields"""
        for name in self.required_fields:
            if not getattr(self, name):
                raise ValidationError("Server, port, user, and database fields are required", field=name)
        if not self.port.isdigit() or not (1 <= int(self.port) <= 65535):
            raise ValidationError("Port must be a number between 1 and 65535", field='port')

    @property
    def port_number(self) -> int:
        return int(self.port)


@dataclass
class ScheduleConfig:
    """Daily dispatch window, run interval, DB timeouts and admin login"""
    start_time: str
    end_time: str
    interval: int
    interval_unit: IntervalUnit
    username: str
    password: str
    db_request_timeout: int = 30000
    db_connection_timeout: int = 30000

    secret_field = 'password'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleConfig':
        unit = data.get('intervalUnit') or IntervalUnit.MINUTES.value
        try:
            unit = IntervalUnit(unit)
        except ValueError:
            raise ValidationError("Interval unit must be 'minutes' or 'hours'", field='intervalUnit')

        return cls(
            start_time=str(data.get('startTime') or '').strip(),
            end_time=str(data.get('endTime') or '').strip(),
            interval=_as_int(data.get('interval'), 'interval', default=0),
            interval_unit=unit,
            username=str(data.get('username') or '').strip(),
            password=str(data.get('password') or ''),
            db_request_timeout=_as_int(data.get('dbRequestTimeout'), 'dbRequestTimeout', default=30000),
            db_connection_timeout=_as_int(data.get('dbConnectionTimeout'), 'dbConnectionTimeout', default=30000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'startTime': self.start_time,
            'endTime': self.end_time,
            'interval': self.interval,
            'intervalUnit': self.interval_unit.value,
            'dbRequestTimeout': self.db_request_timeout,
            'dbConnectionTimeout': self.db_connection_timeout,
            'username': self.username,
            'password': self.password,
        }

    def validate(self):
        """Validate schedule fields; the window must not cross midnight"""
        if not self.username or not self.start_time or not self.end_time:
            raise ValidationError("Username, start time, and end time are required",
                                  field='username' if not self.username else 'startTime')
        for name, value in (('startTime', self.start_time), ('endTime', self.end_time)):
            if not CLOCK_PATTERN.match(value):
                raise ValidationError(f"{name} must use the HH:MM 24-hour format", field=name)
        if self.start_time >= self.end_time:
            raise ValidationError("End time must be after start time", field='endTime')
        if self.interval <= 0:
            raise ValidationError("Interval must be greater than 0", field='interval')
        if self.db_request_timeout <= 0 or self.db_connection_timeout <= 0:
            raise ValidationError("Database timeouts must be positive milliseconds", field='dbRequestTimeout')


def _as_int(value: Any, name: str, default: int) -> int:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", field=name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", field=name)


Number = Union[int, float]


def _number(data: Dict[str, Any], key: str, default: Optional[Number] = None) -> Optional[Number]:
    """Numeric field taken as written; anything but a number is malformed"""
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {value!r}")
    return value


def _text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return value


_STATS_KEYS = ('totalProcessed', 'totalSent', 'totalFailed', 'lastRun', 'nextRun')


@dataclass
class EmailStats:
    """Counters the email worker accumulates in the status file"""
    total_processed: Number = 0
    total_sent: Number = 0
    total_failed: Number = 0
    last_run: Optional[str] = None
    next_run: Optional[str] = None
    # Worker-written keys passed through untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmailStats':
        """Raises ValueError when a known field has the wrong type"""
        return cls(
            total_processed=_number(data, 'totalProcessed', 0),
            total_sent=_number(data, 'totalSent', 0),
            total_failed=_number(data, 'totalFailed', 0),
            last_run=_text(data, 'lastRun'),
            next_run=_text(data, 'nextRun'),
            extra={k: v for k, v in data.items() if k not in _STATS_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'totalProcessed': self.total_processed,
            'totalSent': self.total_sent,
            'totalFailed': self.total_failed,
        }
        if self.last_run:
            payload['lastRun'] = self.last_run
        if self.next_run:
            payload['nextRun'] = self.next_run
        payload.update(self.extra)
        return payload


_STATUS_KEYS = ('status', 'startedAt', 'stoppedAt', 'startedBy', 'lastActivity', 'totalRunTime', 'emailStats')


@dataclass
class ServiceStatusRecord:
    """Persisted operator intent; 'error' is never written here"""
    status: ServiceIntent = ServiceIntent.STOPPED
    started_at: Optional[str] = None
    stopped_at: Optional[str] = None
    started_by: Optional[str] = None
    last_activity: Optional[str] = None
    total_run_time: Optional[Number] = None
    email_stats: Optional[EmailStats] = None
    # Keys written by the worker that this backend does not interpret
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def default(cls) -> 'ServiceStatusRecord':
        return cls(status=ServiceIntent.STOPPED, stopped_at=utc_now_iso())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceStatusRecord':
        """Raises ValueError when a known field has the wrong type"""
        raw_status = data.get('status')
        status = ServiceIntent.RUNNING if raw_status == ServiceIntent.RUNNING.value else ServiceIntent.STOPPED

        stats = data.get('emailStats')
        if stats is not None and not isinstance(stats, dict):
            raise ValueError(f"emailStats must be an object, got {stats!r}")

        return cls(
            status=status,
            started_at=_text(data, 'startedAt'),
            stopped_at=_text(data, 'stoppedAt'),
            started_by=_text(data, 'startedBy'),
            last_activity=_text(data, 'lastActivity'),
            total_run_time=_number(data, 'totalRunTime'),
            email_stats=EmailStats.from_dict(stats) if stats is not None else None,
            extra={k: v for k, v in data.items() if k not in _STATUS_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'status': self.status.value}
        optional = {
            'startedAt': self.started_at,
            'stoppedAt': self.stopped_at,
            'startedBy': self.started_by,
            'lastActivity': self.last_activity,
            'totalRunTime': self.total_run_time,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if self.email_stats is not None:
            payload['emailStats'] = self.email_stats.to_dict()
        payload.update(self.extra)
        return payload


@dataclass
class ProbeResult:
    """Outcome of one connectivity probe"""
    connected: bool
    response_time_ms: Optional[int] = None
    error_reason: Optional[ConnectivityReason] = None
    message: Optional[str] = None


@dataclass
class DatabaseStatus:
    connected: bool
    server: str
    database: str
    last_checked: str
    response_time_ms: Optional[int] = None
    error_reason: Optional[ConnectivityReason] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'connected': self.connected,
            'server': self.server,
            'database': self.database,
            'lastChecked': self.last_checked,
            'responseTime': self.response_time_ms,
        }
        if self.error_reason is not None:
            payload['errorReason'] = self.error_reason.value
        return payload


@dataclass
class ScheduleStatus:
    start_time: str
    end_time: str
    interval: int
    interval_unit: IntervalUnit
    is_active: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'startTime': self.start_time,
            'endTime': self.end_time,
            'interval': self.interval,
            'intervalUnit': self.interval_unit.value,
            'isActive': self.is_active,
        }


@dataclass
class ServiceSnapshot:
    status: EffectiveStatus
    service_file_status: ServiceIntent
    email_stats: EmailStats
    next_run: Optional[str] = None
    last_run: Optional[str] = None
    started_at: Optional[str] = None
    stopped_at: Optional[str] = None
    started_by: Optional[str] = None
    total_run_time: Optional[Number] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'lastRun': self.last_run,
            'nextRun': self.next_run,
            'startedAt': self.started_at,
            'stoppedAt': self.stopped_at,
            'startedBy': self.started_by,
            'totalRunTime': self.total_run_time,
            'serviceFileStatus': self.service_file_status.value,
            'emailStats': self.email_stats.to_dict(),
        }


@dataclass
class DashboardSnapshot:
    """Derived view recomputed on every read, never persisted"""
    database: DatabaseStatus
    schedule: ScheduleStatus
    service: ServiceSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            'database': self.database.to_dict(),
            'schedule': self.schedule.to_dict(),
            'service': self.service.to_dict(),
        }
