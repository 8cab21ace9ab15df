### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Health Service -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Health Service

Liveness, readiness and detailed health for load balancers and monitoring.

Thresholds:
- App database round trip: degraded >= 1000 ms, unhealthy >= 5000 ms or error
- Memory in use: degraded >= 80 %, unhealthy >= 90 %
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable

from sqlalchemy import text
from sqlalchemy.orm import Session

from portal.schemas.health import (
    DatabaseCheck,
    HealthChecks,
    HealthResponse,
    MemoryCheck,
    ReadinessChecks,
    ReadinessResponse,
)

logger = logging.getLogger(__name__)

DB_DEGRADED_MS = 1000
DB_UNHEALTHY_MS = 5000
MEMORY_WARNING_PERCENT = 80
MEMORY_CRITICAL_PERCENT = 90

_MEMINFO = Path("/proc/meminfo")


def read_memory_usage() -> tuple[float, float]:
    """
    Host memory as (used_mb, total_mb).

    Uses MemAvailable from /proc/meminfo when present, otherwise free
    physical pages from sysconf.
    """
    if _MEMINFO.exists():
        values = {}
        for line in _MEMINFO.read_text().splitlines():
            key, _, rest = line.partition(":")
            parts = rest.split()
            if parts:
                values[key] = int(parts[0])  # kB
        total_kb = values.get("MemTotal", 0)
        available_kb = values.get("MemAvailable", values.get("MemFree", 0))
        return (total_kb - available_kb) / 1024, total_kb / 1024

    page_size = os.sysconf("SC_PAGE_SIZE")
    total = os.sysconf("SC_PHYS_PAGES") * page_size
    free = os.sysconf("SC_AVPHYS_PAGES") * page_size
    return (total - free) / 1024 / 1024, total / 1024 / 1024


class HealthService:
    """Runs health checks against the app database and the host"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        version: str,
        memory_probe: Callable[[], tuple[float, float]] = read_memory_usage,
    ):
        self._session_factory = session_factory
        self._memory_probe = memory_probe
        self.version = version
        self.started_at = time.monotonic()

    def check_database(self) -> DatabaseCheck:
        start = time.perf_counter()
        db = self._session_factory()
        try:
            db.execute(text("SELECT 1"))
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"Database health check failed: {e}")
            return DatabaseCheck(status="unhealthy", response_time=round(elapsed, 2), message=str(e))
        finally:
            db.close()

        elapsed = (time.perf_counter() - start) * 1000
        if elapsed >= DB_UNHEALTHY_MS:
            return DatabaseCheck(status="unhealthy", response_time=round(elapsed, 2), message="Database response too slow")
        if elapsed >= DB_DEGRADED_MS:
            return DatabaseCheck(status="degraded", response_time=round(elapsed, 2), message="Database response slow")
        return DatabaseCheck(status="healthy", response_time=round(elapsed, 2))

    def check_memory(self) -> MemoryCheck:
        used_mb, total_mb = self._memory_probe()
        percent = round(used_mb / total_mb * 100, 1) if total_mb else 0.0

        status = "healthy"
        if percent >= MEMORY_CRITICAL_PERCENT:
            status = "unhealthy"
            logger.error(f"Memory usage critical: {percent}%")
        elif percent >= MEMORY_WARNING_PERCENT:
            status = "degraded"
            logger.warning(f"Memory usage high: {percent}%")

        return MemoryCheck(
            status=status,
            used_mb=round(used_mb, 1),
            total_mb=round(total_mb, 1),
            percent_used=percent,
        )

    def readiness(self) -> ReadinessResponse:
        database_ok = self.check_database().status != "unhealthy"
        return ReadinessResponse(ready=database_ok, checks=ReadinessChecks(database=database_ok))

    def detailed(self) -> HealthResponse:
        database = self.check_database()
        memory = self.check_memory()

        statuses = {database.status, memory.status}
        if "unhealthy" in statuses:
            overall = "unhealthy"
        elif "degraded" in statuses:
            overall = "degraded"
        else:
            overall = "healthy"

        return HealthResponse(
            status=overall,
            uptime=round(time.monotonic() - self.started_at, 1),
            version=self.version,
            checks=HealthChecks(database=database, memory=memory),
        )
