"""In-process counters for chat turns and confirmation outcomes."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict


@dataclass
class MetricSnapshot:
    total_requests: int
    intents: Dict[str, int]
    outcomes: Dict[str, int]
    executions: Dict[str, int]
    failure_reasons: Dict[str, int]


class MetricsCollector:
    """Thread-safe counters; one ``record_request`` per chat turn or explicit confirmation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_requests = 0
        self._intents: Counter[str] = Counter()
        self._outcomes: Counter[str] = Counter()
        self._executions: Counter[str] = Counter()
        self._failure_reasons: Counter[str] = Counter()

    def record_request(self, intent: str, outcome: str) -> None:
        with self._lock:
            self._total_requests += 1
            self._intents[intent] += 1
            self._outcomes[outcome] += 1

    def record_resolution(self, action_kind: str | None, status: str, reason: str | None = None) -> None:
        """Count a resolved confirmation, keyed ``<action>:<status>``."""

        with self._lock:
            self._executions[f"{action_kind or 'unknown'}:{status}"] += 1
            if reason:
                self._failure_reasons[reason] += 1

    def snapshot(self) -> MetricSnapshot:
        with self._lock:
            return MetricSnapshot(
                total_requests=self._total_requests,
                intents=dict(self._intents),
                outcomes=dict(self._outcomes),
                executions=dict(self._executions),
                failure_reasons=dict(self._failure_reasons),
            )
