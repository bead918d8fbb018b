"""
Ingestion metrics.

Collects per-item outcome and latency during a bulk run and computes
success / failure counts plus latency percentiles and throughput.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class ItemOutcome:
    """One attempted item."""
    key: str
    succeeded: bool
    processing_time_ms: float


@dataclass
class IngestionReport:
    """Aggregated ingestion metrics."""
    label: str = ""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    retries: int = 0
    avg_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    throughput_ips: float = 0.0
    elapsed_sec: float = 0.0


class IngestionMetrics:
    """Collect item outcomes and compute ingestion metrics."""

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._outcomes: List[ItemOutcome] = []
        self._started: Optional[float] = None
        self._finished: Optional[float] = None

    def start(self) -> None:
        self._outcomes.clear()
        self._started = time.perf_counter()
        self._finished = None

    def stop(self) -> None:
        self._finished = time.perf_counter()

    def record(self, key: str, succeeded: bool, processing_time_ms: float) -> None:
        self._outcomes.append(ItemOutcome(key, succeeded, processing_time_ms))

    @property
    def attempted(self) -> int:
        return len(self._outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for o in self._outcomes if not o.succeeded)

    @property
    def elapsed_sec(self) -> float:
        if self._started is None:
            return 0.0
        end = self._finished if self._finished is not None else time.perf_counter()
        return end - self._started

    def compute(self, retries: int = 0) -> IngestionReport:
        """Compute all metrics over the collected outcomes."""
        report = IngestionReport(label=self.label, total=len(self._outcomes), retries=retries)
        report.elapsed_sec = self.elapsed_sec
        if not self._outcomes:
            return report

        report.failed = self.failed
        report.succeeded = report.total - report.failed

        # Latency stats
        arr = np.array([o.processing_time_ms for o in self._outcomes])
        report.avg_latency_ms = float(np.mean(arr))
        report.p95_latency_ms = float(np.percentile(arr, 95))
        report.p99_latency_ms = float(np.percentile(arr, 99))

        # Throughput
        report.throughput_ips = report.total / max(report.elapsed_sec, 0.01)

        return report


def format_report(report: IngestionReport) -> str:
    """Pretty-print an ingestion report."""
    title = f"INGESTION REPORT {report.label.upper()}".strip()
    lines = [
        "╔══════════════════════════════════════════════╗",
        f"║  {title:<44}║",
        "╠══════════════════════════════════════════════╣",
        f"║  Items attempted:     {report.total:>10}             ║",
        f"║  Succeeded:           {report.succeeded:>10}             ║",
        f"║  Failed:              {report.failed:>10}             ║",
        f"║  Write retries:       {report.retries:>10}             ║",
        "╠──────────────────────────────────────────────╣",
        f"║  Avg latency (ms):    {report.avg_latency_ms:>10.2f}             ║",
        f"║  P95 latency (ms):    {report.p95_latency_ms:>10.2f}             ║",
        f"║  P99 latency (ms):    {report.p99_latency_ms:>10.2f}             ║",
        f"║  Throughput (items/s):{report.throughput_ips:>10.1f}             ║",
        f"║  Elapsed (s):         {report.elapsed_sec:>10.2f}             ║",
        "╚══════════════════════════════════════════════╝",
    ]
    return "\n".join(lines)
