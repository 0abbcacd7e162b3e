"""DAO Notifier — Health Monitoring.

Tracks fan-out metrics for the health endpoint. Uses in-memory data
structures (deque) for bounded history; nothing is persisted.

Usage:
    monitor = HealthMonitor()
    monitor.record_dispatch("osmosis-1", "dao1abc", destinations=12, delivered=11, duration=0.8)
    status = monitor.get_status()
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _DispatchRecord:
    """Record of a single fan-out."""
    timestamp: float
    chain_id: str
    dao: str
    destinations: int
    delivered: int
    duration: float

    @property
    def failed(self) -> int:
        return self.destinations - self.delivered


@dataclass
class _ErrorRecord:
    """Record of a single error event."""
    timestamp: float
    component: str
    error: str


class HealthMonitor:
    """Tracks fan-out health metrics.

    Attributes:
        start_time: When the monitor was created (app start).
    """

    def __init__(self, max_history: int = 200) -> None:
        """Initialize the health monitor.

        Args:
            max_history: Maximum number of dispatch/error records to keep.
        """
        self.start_time = time.monotonic()
        self._start_datetime = datetime.now()

        self._dispatches: deque[_DispatchRecord] = deque(maxlen=max_history)
        self._errors: deque[_ErrorRecord] = deque(maxlen=max_history)

        # Aggregate counters (never reset)
        self.total_dispatches = 0
        self.total_destinations = 0
        self.total_delivered = 0
        self.total_failed = 0
        self.total_errors = 0

    def record_dispatch(
        self,
        chain_id: str,
        dao: str,
        destinations: int,
        delivered: int,
        duration: float,
    ) -> None:
        """Record the outcome of one completed fan-out.

        Args:
            chain_id: Chain of the notified DAO.
            dao: DAO address.
            destinations: Number of registered destinations.
            delivered: Number of successful deliveries.
            duration: Wall-clock seconds spent delivering.
        """
        record = _DispatchRecord(
            timestamp=time.monotonic(),
            chain_id=chain_id,
            dao=dao,
            destinations=destinations,
            delivered=delivered,
            duration=duration,
        )
        self._dispatches.append(record)

        self.total_dispatches += 1
        self.total_destinations += destinations
        self.total_delivered += delivered
        self.total_failed += record.failed

    def record_error(self, component: str, error: str) -> None:
        """Record an error event.

        Args:
            component: Component name (dispatcher, telegram, webhook, dao_info).
            error: Error description.
        """
        self.total_errors += 1
        self._errors.append(_ErrorRecord(
            timestamp=time.monotonic(),
            component=component,
            error=error[:200],
        ))
        logger.debug("Health: error recorded for %s", component)

    def get_status(self) -> dict[str, Any]:
        """Get current fan-out health status.

        Returns:
            Dict with uptime, totals, recent errors, last dispatch, memory.
        """
        now = time.monotonic()
        one_hour_ago = now - 3600
        recent_errors = sum(1 for e in self._errors if e.timestamp > one_hour_ago)

        last: Optional[dict[str, Any]] = None
        if self._dispatches:
            rec = self._dispatches[-1]
            last = {
                "chain_id": rec.chain_id,
                "dao": rec.dao,
                "destinations": rec.destinations,
                "delivered": rec.delivered,
                "failed": rec.failed,
                "duration": round(rec.duration, 3),
                "seconds_ago": round(now - rec.timestamp, 0),
            }

        return {
            "uptime": self._format_uptime(now - self.start_time),
            "started_at": self._start_datetime.strftime("%Y-%m-%d %H:%M"),
            "total_dispatches": self.total_dispatches,
            "total_destinations": self.total_destinations,
            "total_delivered": self.total_delivered,
            "total_failed": self.total_failed,
            "total_errors": self.total_errors,
            "recent_errors_1h": recent_errors,
            "last_dispatch": last,
            "memory_mb": round(self._get_memory_mb(), 1),
        }

    def _get_memory_mb(self) -> float:
        """Get current process RSS memory in MB."""
        try:
            # /proc/self/status is most reliable on Linux
            with open("/proc/self/status") as f:
                for line in f:
                    if line.startswith("VmRSS:"):
                        return int(line.split()[1]) / 1024  # kB → MB
        except (FileNotFoundError, ValueError, IndexError):
            pass

        try:
            import resource
            usage = resource.getrusage(resource.RUSAGE_SELF)
            return usage.ru_maxrss / 1024  # kB → MB on Linux
        except (ImportError, AttributeError):
            return 0.0

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format seconds into human-readable uptime."""
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        if hours >= 24:
            days = hours // 24
            hours = hours % 24
            return f"{days}d {hours}h {mins}m"
        if hours:
            return f"{hours}h {mins}m"
        return f"{mins}m"
