"""
Service status persistence and start/stop control
The status file records operator intent only; effective status is derived elsewhere
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dispatch_admin.core.collaborators import EmailWorker
from dispatch_admin.core.config_store import write_json_atomic
from dispatch_admin.core.errors import CollaboratorUnavailable
from dispatch_admin.core.models import (
    EmailStats, ServiceIntent, ServiceStatusRecord, parse_iso, to_iso
)


class ServiceStatusStore:
    """Reads and writes service.status

    Reads never lock: a missing or unreadable file yields the default
    stopped record. Writes replace the file atomically.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        self._write_lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> ServiceStatusRecord:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return ServiceStatusRecord.default()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.logger.warning(f"Unreadable service status file {self.path}, assuming stopped: {e}")
            return ServiceStatusRecord.default()

        if not isinstance(data, dict):
            self.logger.warning(f"Service status file {self.path} is not an object, assuming stopped")
            return ServiceStatusRecord.default()

        try:
            return ServiceStatusRecord.from_dict(data)
        except ValueError as e:
            self.logger.warning(f"Malformed service status file {self.path}, assuming stopped: {e}")
            return ServiceStatusRecord.default()

    def save(self, record: ServiceStatusRecord):
        with self._write_lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(self.path, record.to_dict())


@dataclass
class ControlResult:
    """Outcome of a start/stop request"""
    success: bool
    message: str
    record: ServiceStatusRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'status': self.record.to_dict(),
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ServiceController:
    """Serializes start/stop writes and drives the email worker"""

    def __init__(self, store: ServiceStatusStore, worker: Optional[EmailWorker] = None,
                 clock=_now):
        self.store = store
        self.worker = worker
        self.clock = clock
        self.logger = logging.getLogger(__name__)
        self._lock = asyncio.Lock()

    async def start(self, user: str = "system") -> ControlResult:
        async with self._lock:
            current = self.store.load()
            if current.status == ServiceIntent.RUNNING:
                return ControlResult(False, "Service is already running", current)

            if self.worker is not None:
                try:
                    await self.worker.start()
                except Exception as e:
                    self.logger.error(f"Email worker failed to start: {e}", exc_info=True)
                    raise CollaboratorUnavailable("Email service", "Failed to start email service") from e
            else:
                self.logger.warning("No email worker attached; recording start intent only")

            now = to_iso(self.clock())
            record = ServiceStatusRecord(
                status=ServiceIntent.RUNNING,
                started_at=now,
                started_by=user,
                last_activity=now,
                total_run_time=current.total_run_time or 0,
                email_stats=current.email_stats,
                extra=current.extra,
            )
            self.store.save(record)
            self.logger.info(f"Service started by {user}")
            return ControlResult(True, "Service started successfully", record)

    async def stop(self) -> ControlResult:
        async with self._lock:
            current = self.store.load()
            if current.status == ServiceIntent.STOPPED:
                return ControlResult(False, "Service is already stopped", current)

            if self.worker is not None:
                try:
                    await self.worker.stop()
                except Exception as e:
                    # The intent still flips to stopped
                    self.logger.error(f"Email worker failed to stop cleanly: {e}", exc_info=True)

            moment = self.clock()
            now = to_iso(moment)
            total = current.total_run_time or 0
            if current.started_at:
                try:
                    elapsed = moment - parse_iso(current.started_at)
                    total += max(0, int(elapsed.total_seconds() * 1000))
                except ValueError:
                    self.logger.warning(f"Ignoring unparseable startedAt {current.started_at!r}")

            record = ServiceStatusRecord(
                status=ServiceIntent.STOPPED,
                started_at=current.started_at,
                stopped_at=now,
                started_by=current.started_by,
                last_activity=now,
                total_run_time=total,
                email_stats=current.email_stats,
                extra=current.extra,
            )
            self.store.save(record)
            self.logger.info(f"Service stopped after {total}ms total run time")
            return ControlResult(True, "Service stopped successfully", record)

    async def current(self) -> ServiceStatusRecord:
        """Current record; a running service gets its lastActivity refreshed"""
        record = self.store.load()
        if record.status != ServiceIntent.RUNNING:
            return record

        async with self._lock:
            record = self.store.load()
            if record.status == ServiceIntent.RUNNING:
                record.last_activity = to_iso(self.clock())
                self.store.save(record)
            return record

    async def restart_worker(self) -> bool:
        """Restart a running worker so it picks up a new schedule"""
        if self.worker is None:
            return False
        if self.store.load().status != ServiceIntent.RUNNING:
            return False

        try:
            await self.worker.stop()
            await self.worker.start()
        except Exception as e:
            self.logger.error(f"Failed to restart email worker after schedule change: {e}", exc_info=True)
            return False

        self.logger.info("Email worker restarted with new schedule")
        return True


def email_stats_or_default(record: ServiceStatusRecord) -> EmailStats:
    return record.email_stats if record.email_stats is not None else EmailStats()
