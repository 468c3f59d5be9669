"""
Readiness detection for database containers.

A started container does not mean PostgreSQL accepts connections yet.
ReadinessProber polls an endpoint until a probe succeeds or a fixed
deadline passes. Clock, sleep and probe are injectable.
"""

import logging
import socket
import time
from typing import Callable, Optional

import psycopg2

from .models import ProbeState, ReadinessResult

logger = logging.getLogger(__name__)

Probe = Callable[[], None]


def postgres_probe(dsn: str, connect_timeout: int = 2) -> Probe:
    """Probe that opens and closes a libpq connection."""

    def probe() -> None:
        conn = psycopg2.connect(dsn, connect_timeout=connect_timeout)
        conn.close()

    return probe


def tcp_probe(host: str, port: int, timeout: float = 1.0) -> Probe:
    """Probe that only checks that something accepts TCP connections."""

    def probe() -> None:
        with socket.create_connection((host, port), timeout=timeout):
            pass

    return probe


class ReadinessProber:
    """
    Polls a probe until it succeeds or the deadline is exceeded.

    States: POLLING -> READY on the first successful probe, or
    POLLING -> TIMED_OUT when a probe fails after the deadline.
    At least one probe is always attempted.
    """

    def __init__(
        self,
        probe: Probe,
        timeout: float = 10.0,
        interval: float = 0.1,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.probe = probe
        self.timeout = timeout
        self.interval = interval
        self.clock = clock or time.monotonic
        self.sleep = sleep or time.sleep

    def wait_ready(self, endpoint: str) -> ReadinessResult:
        """
        Wait for the endpoint to accept connections.

        Args:
            endpoint: Description of the endpoint, used for reporting

        Returns:
            ReadinessResult in state READY or TIMED_OUT
        """
        result = ReadinessResult(endpoint=endpoint)
        start_time = self.clock()

        while result.state == ProbeState.POLLING:
            result.attempts += 1
            try:
                self.probe()
            except Exception as e:
                result.last_error = str(e).strip()
                if self.clock() - start_time >= self.timeout:
                    result.state = ProbeState.TIMED_OUT
                elif self.interval > 0:
                    self.sleep(self.interval)
            else:
                result.state = ProbeState.READY

        result.elapsed = self.clock() - start_time

        if result.passed:
            logger.info(f"PostgreSQL ready at {endpoint} after {result.elapsed:.2f}s")
        else:
            logger.error(f"PostgreSQL not ready after {self.timeout} seconds: {result.last_error}")
        logger.debug(result.get_summary())

        return result
