"""
Service status reconciliation
Merges persisted intent, schedule window and live connectivity into one snapshot
"""

import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional

from dispatch_admin.core.config_store import ConfigStore
from dispatch_admin.core.connectivity import ConnectivityProbe, ProbeTimeouts, REASON_MESSAGES
from dispatch_admin.core.errors import ConnectivityReason
from dispatch_admin.core.models import (
    ConnectionConfig, DashboardSnapshot, DatabaseStatus, EffectiveStatus, ProbeResult,
    ScheduleConfig, ScheduleStatus, ServiceIntent, ServiceSnapshot, to_iso
)
from dispatch_admin.core.schedule import ScheduleEvaluator
from dispatch_admin.core.status_store import ServiceStatusStore, email_stats_or_default


def reconcile(connected: bool, intent: ServiceIntent, in_window: bool) -> EffectiveStatus:
    """Effective status; connectivity failure wins over everything else"""
    if not connected:
        return EffectiveStatus.ERROR
    if intent == ServiceIntent.RUNNING and in_window:
        return EffectiveStatus.RUNNING
    return EffectiveStatus.STOPPED


class StatusReconciler:
    """Builds the dashboard snapshot fresh on every call"""

    def __init__(self, database_store: ConfigStore, email_store: ConfigStore,
                 status_store: ServiceStatusStore, probe: ConnectivityProbe,
                 clock: Optional[Callable[[], datetime]] = None,
                 timezone: Optional[tzinfo] = None):
        self.database_store = database_store
        self.email_store = email_store
        self.status_store = status_store
        self.probe = probe
        self.timezone = timezone
        self.clock = clock or self._local_now
        self.logger = logging.getLogger(__name__)

    def _local_now(self) -> datetime:
        if self.timezone is not None:
            return datetime.now(self.timezone)
        return datetime.now().astimezone()

    async def snapshot(self) -> DashboardSnapshot:
        """Load config, probe the database, evaluate the window and reconcile

        Missing or unreadable configuration propagates to the caller. A probe
        that fails in any way only turns the effective status into error.
        """
        database_config: ConnectionConfig = self.database_store.load()
        schedule: ScheduleConfig = self.email_store.load()
        record = self.status_store.load()

        probe_result = await self._probe(database_config, schedule)

        now = self.clock()
        evaluator = ScheduleEvaluator(schedule)
        in_window = evaluator.is_active(now)
        status = reconcile(probe_result.connected, record.status, in_window)

        next_run = None
        if status == EffectiveStatus.RUNNING:
            upcoming = evaluator.next_run(now)
            next_run = to_iso(upcoming) if upcoming is not None else None

        if status == EffectiveStatus.ERROR:
            self.logger.warning(
                f"Database {database_config.server}/{database_config.database} unreachable "
                f"({probe_result.error_reason.value if probe_result.error_reason else 'unknown'}); "
                f"reporting service status as error"
            )

        return DashboardSnapshot(
            database=DatabaseStatus(
                connected=probe_result.connected,
                server=database_config.server,
                database=database_config.database,
                last_checked=to_iso(now),
                response_time_ms=probe_result.response_time_ms,
                error_reason=probe_result.error_reason,
            ),
            schedule=ScheduleStatus(
                start_time=schedule.start_time,
                end_time=schedule.end_time,
                interval=schedule.interval,
                interval_unit=schedule.interval_unit,
                is_active=in_window,
            ),
            service=ServiceSnapshot(
                status=status,
                service_file_status=record.status,
                email_stats=email_stats_or_default(record),
                next_run=next_run,
                last_run=record.last_activity,
                started_at=record.started_at,
                stopped_at=record.stopped_at,
                started_by=record.started_by,
                total_run_time=record.total_run_time,
            ),
        )

    async def _probe(self, database_config: ConnectionConfig, schedule: ScheduleConfig) -> ProbeResult:
        timeouts = ProbeTimeouts(
            connect_ms=schedule.db_connection_timeout,
            request_ms=schedule.db_request_timeout,
        )
        try:
            return await self.probe.test(database_config, timeouts)
        except Exception as e:
            self.logger.error(f"Connectivity probe raised unexpectedly: {e}", exc_info=True)
            return ProbeResult(
                connected=False,
                error_reason=ConnectivityReason.UNKNOWN,
                message=REASON_MESSAGES[ConnectivityReason.UNKNOWN],
            )
