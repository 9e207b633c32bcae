"""
Memory Monitor
==============

Samples system and process memory while a timeline is being ingested. Every
event stays in memory until the final sort, so large bodyfiles are the one
place timeliner can exhaust a machine; the builder samples periodically and
the monitor escalates to WARNING / CRITICAL log records under pressure.

Author: Timeliner Development Team
Version: 1.0
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, Optional

import psutil

# Configure logger
logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024

STATUS_OK = 'ok'
STATUS_WARNING = 'warning'
STATUS_CRITICAL = 'critical'


@dataclass
class MemorySnapshot:
    """Memory reading taken at one point of the ingestion."""
    system_percent: float
    available_mb: float
    total_mb: float
    process_mb: float
    context: str = ""
    taken_at: datetime = field(default_factory=datetime.now)


class MemoryMonitor:
    """
    Periodic memory sampling with pressure thresholds.

    Args:
        warning_percent: System usage that triggers a warning
        critical_percent: System usage that triggers a critical message
        on_pressure: Optional callback receiving the pressure message
        history: Number of snapshots kept for the summary
    """

    def __init__(self, warning_percent: float = 80.0, critical_percent: float = 90.0,
                 on_pressure: Optional[Callable[[str], None]] = None,
                 history: int = 100):
        if not 0 < warning_percent <= critical_percent <= 100:
            raise ValueError(
                f"Invalid thresholds: warning={warning_percent}, critical={critical_percent}"
            )
        self.warning_percent = warning_percent
        self.critical_percent = critical_percent
        self.on_pressure = on_pressure
        self.snapshots: Deque[MemorySnapshot] = deque(maxlen=history)
        self._process = psutil.Process()

    def status(self, percent: float) -> str:
        if percent >= self.critical_percent:
            return STATUS_CRITICAL
        if percent >= self.warning_percent:
            return STATUS_WARNING
        return STATUS_OK

    def sample(self, context: str = "") -> MemorySnapshot:
        """Take a snapshot and report memory pressure if any."""
        system = psutil.virtual_memory()
        snapshot = MemorySnapshot(
            system_percent=system.percent,
            available_mb=system.available / BYTES_PER_MB,
            total_mb=system.total / BYTES_PER_MB,
            process_mb=self._process.memory_info().rss / BYTES_PER_MB,
            context=context
        )
        self.snapshots.append(snapshot)
        self._report_pressure(snapshot)
        return snapshot

    def _report_pressure(self, snapshot: MemorySnapshot) -> None:
        status = self.status(snapshot.system_percent)
        if status == STATUS_OK:
            return

        message = (
            f"System memory at {snapshot.system_percent:.1f}% "
            f"({snapshot.available_mb:.0f} MB free), timeliner holds {snapshot.process_mb:.0f} MB"
        )
        if status == STATUS_CRITICAL:
            message += ". Narrow the filter or split the bodyfile"
            logger.critical(message)
        else:
            logger.warning(message)

        if self.on_pressure:
            self.on_pressure(message)

    def log_memory_usage(self, context: str = "") -> MemorySnapshot:
        """
        Sample and log memory at INFO.

        Args:
            context: Where in the run the sample was taken
        """
        snapshot = self.sample(context)
        where = f" [{context}]" if context else ""
        logger.info(
            f"Memory{where}: process {snapshot.process_mb:.0f} MB, "
            f"system {snapshot.system_percent:.1f}% of {snapshot.total_mb:.0f} MB"
        )
        return snapshot

    @property
    def peak_process_mb(self) -> float:
        return max((s.process_mb for s in self.snapshots), default=0.0)

    def get_memory_stats(self) -> Dict[str, Any]:
        """
        Summarize the latest sample and the history.

        Returns:
            Dict with 'current', 'status', 'peak_process_mb' and 'samples'
        """
        current = self.sample("stats")
        return {
            'current': {
                'system_percent': current.system_percent,
                'available_mb': current.available_mb,
                'total_mb': current.total_mb,
                'process_mb': current.process_mb,
            },
            'status': self.status(current.system_percent),
            'peak_process_mb': self.peak_process_mb,
            'samples': len(self.snapshots),
        }

    def clear_snapshots(self) -> None:
        self.snapshots.clear()
