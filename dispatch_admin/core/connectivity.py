"""
Database connectivity probe
Opens one short-lived connection, runs a liveness query, always releases it
"""

import asyncio
import errno
import logging
import re
import socket
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from dispatch_admin.core.errors import ConnectivityReason
from dispatch_admin.core.models import ConnectionConfig, ProbeResult


LIVENESS_QUERY = "SELECT 1 AS test"

REASON_MESSAGES = {
    ConnectivityReason.REFUSED: "Connection refused. Check if the server is running and accessible.",
    ConnectivityReason.TIMEOUT: "Connection timeout. Check server address and network connectivity.",
    ConnectivityReason.AUTH_FAILURE: "Login failed. Check your username and password.",
    ConnectivityReason.NOT_FOUND: "Database not found. Check the database name.",
    ConnectivityReason.UNKNOWN: "Connection failed. Please check your settings.",
}

# Native error numbers reported by the common server drivers
_CODE_REASONS = {
    18456: ConnectivityReason.AUTH_FAILURE,   # SQL Server: login failed
    18452: ConnectivityReason.AUTH_FAILURE,   # SQL Server: untrusted domain login
    1045: ConnectivityReason.AUTH_FAILURE,    # MySQL: access denied
    4060: ConnectivityReason.NOT_FOUND,       # SQL Server: cannot open database
    1049: ConnectivityReason.NOT_FOUND,       # MySQL: unknown database
    2003: ConnectivityReason.REFUSED,         # MySQL: can't connect
}

_MESSAGE_REASONS = (
    (re.compile(r'login failed|password authentication failed|access denied|authentication failed', re.I),
     ConnectivityReason.AUTH_FAILURE),
    (re.compile(r'cannot open database|unknown database|database "[^"]*" does not exist|'
                r'unable to open database file', re.I),
     ConnectivityReason.NOT_FOUND),
    (re.compile(r'timed? ?out|timeout expired', re.I), ConnectivityReason.TIMEOUT),
    (re.compile(r'connection refused|actively refused', re.I), ConnectivityReason.REFUSED),
)


@dataclass
class ProbeTimeouts:
    """Connect and request timeouts in milliseconds"""
    connect_ms: int = 10000
    request_ms: int = 10000

    @property
    def connect_seconds(self) -> float:
        return self.connect_ms / 1000.0

    @property
    def request_seconds(self) -> float:
        return self.request_ms / 1000.0


def _error_chain(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if isinstance(current, DBAPIError) and current.orig is not None and id(current.orig) not in seen:
            current = current.orig
        else:
            current = current.__cause__ or current.__context__


def classify_error(exc: BaseException) -> ConnectivityReason:
    """Map a transport failure onto the closed reason enumeration"""
    chain = list(_error_chain(exc))

    for err in chain:
        if isinstance(err, (asyncio.TimeoutError, socket.timeout, TimeoutError)):
            return ConnectivityReason.TIMEOUT
        if isinstance(err, ConnectionRefusedError):
            return ConnectivityReason.REFUSED
        if isinstance(err, OSError) and err.errno == errno.ECONNREFUSED:
            return ConnectivityReason.REFUSED

    for err in chain:
        for arg in getattr(err, 'args', ()):
            if isinstance(arg, int) and arg in _CODE_REASONS:
                return _CODE_REASONS[arg]

    for err in chain:
        message = str(err)
        for pattern, reason in _MESSAGE_REASONS:
            if pattern.search(message):
                return reason

    return ConnectivityReason.UNKNOWN


class ConnectivityProbe:
    """Tests whether a connection tuple can reach its database"""

    def __init__(self, driver: str = "mssql+aioodbc",
                 driver_options: Optional[Dict[str, Any]] = None,
                 default_timeouts: Optional[ProbeTimeouts] = None,
                 engine_factory: Optional[Callable[[URL], AsyncEngine]] = None):
        self.driver = driver
        self.driver_options = dict(driver_options or {})
        self.default_timeouts = default_timeouts or ProbeTimeouts()
        self._engine_factory = engine_factory or self._create_engine
        self.logger = logging.getLogger(__name__)

    def build_url(self, config: ConnectionConfig) -> URL:
        """Build the SQLAlchemy URL for a connection tuple"""
        if self.driver.startswith('sqlite'):
            # File-based targets only use the database path
            return URL.create(self.driver, database=config.database)

        return URL.create(
            self.driver,
            username=config.user,
            password=config.password,
            host=config.server,
            port=config.port_number,
            database=config.database,
            query=self.driver_options,
        )

    def _create_engine(self, url: URL) -> AsyncEngine:
        return create_async_engine(url, poolclass=NullPool)

    async def test(self, config: ConnectionConfig,
                   timeouts: Optional[ProbeTimeouts] = None) -> ProbeResult:
        """Connect, run the liveness query and report reachability"""
        timeouts = timeouts or self.default_timeouts
        started = time.perf_counter()
        engine = None
        connection = None

        try:
            engine = self._engine_factory(self.build_url(config))
            connection = await asyncio.wait_for(engine.connect().start(), timeout=timeouts.connect_seconds)
            result = await asyncio.wait_for(connection.execute(text(LIVENESS_QUERY)),
                                            timeout=timeouts.request_seconds)
            row = result.first()
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            if row is None:
                self.logger.warning(f"Liveness query on {config.server}/{config.database} returned no rows")
                return ProbeResult(
                    connected=False,
                    response_time_ms=elapsed_ms,
                    error_reason=ConnectivityReason.UNKNOWN,
                    message="Connection established but test query failed",
                )

            self.logger.debug(f"Connectivity probe to {config.server}/{config.database} succeeded in {elapsed_ms}ms")
            return ProbeResult(connected=True, response_time_ms=elapsed_ms)

        except Exception as e:
            reason = classify_error(e)
            # Raw driver text stays in the server log only
            self.logger.error(
                f"Connectivity probe to {config.server}/{config.database} failed "
                f"({reason.value}): {type(e).__name__}: {e}"
            )
            return ProbeResult(connected=False, error_reason=reason, message=REASON_MESSAGES[reason])

        finally:
            await self._release(connection, engine)

    async def _release(self, connection, engine):
        """Close connection and engine; close failures never replace the probe result"""
        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                self.logger.debug(f"Ignoring error while closing probe connection: {e}")
        if engine is not None:
            try:
                await engine.dispose()
            except Exception as e:
                self.logger.debug(f"Ignoring error while disposing probe engine: {e}")
