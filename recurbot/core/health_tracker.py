"""Health tracking for background instance generation."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from ..exceptions import GenerationFailure


@dataclass
class FailureRecord:
    """Most recent failure for one definition."""

    definition_id: str
    reason: str
    count: int = 1
    last_failed_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "definition_id": self.definition_id,
            "reason": self.reason,
            "count": self.count,
            "last_failed_age_s": int(time.time() - self.last_failed_at),
        }


@dataclass
class HealthSnapshot:
    """Health status information for the generation engine."""

    status: str  # "ok", "degraded", or "critical"
    uptime_seconds: int
    items_attempted: int
    items_succeeded: int
    items_failed: int
    instances_created: int
    failing_definitions: list[dict[str, Any]]
    last_drain_age_seconds: Optional[int]
    last_sweep_age_seconds: Optional[int]
    last_sweep_enqueued: int


class GenerationHealthTracker:
    """Counts generation outcomes and remembers failing definitions."""

    # Failing definitions at which the engine is considered critical
    CRITICAL_FAILING_DEFINITIONS = 5

    def __init__(self) -> None:
        self._start_time: float = time.time()
        self._items_attempted = 0
        self._items_succeeded = 0
        self._items_failed = 0
        self._instances_created = 0
        self._failures: dict[str, FailureRecord] = {}
        self._last_drain_heartbeat: Optional[float] = None
        self._last_sweep: Optional[float] = None
        self._last_sweep_enqueued = 0

    def record_item_attempt(self, definition_id: str) -> None:
        self._items_attempted += 1

    def record_item_success(self, definition_id: str, instances_created: int) -> None:
        """Record a processed work item; clears any earlier failure for the definition."""
        self._items_succeeded += 1
        self._instances_created += instances_created
        self._failures.pop(definition_id, None)

    def record_failure(self, failure: GenerationFailure) -> None:
        self._items_failed += 1
        existing = self._failures.get(failure.definition_id)
        if existing is None:
            self._failures[failure.definition_id] = FailureRecord(failure.definition_id, failure.reason)
            return
        existing.count += 1
        existing.reason = failure.reason
        existing.last_failed_at = time.time()

    def forget(self, definition_id: str) -> None:
        """Drop failure state for a deleted definition."""
        self._failures.pop(definition_id, None)

    def record_drain_heartbeat(self) -> None:
        self._last_drain_heartbeat = time.time()

    def record_sweep(self, enqueued: int) -> None:
        self._last_sweep = time.time()
        self._last_sweep_enqueued = enqueued

    def failures(self) -> list[FailureRecord]:
        return list(self._failures.values())

    def failure_for(self, definition_id: str) -> Optional[FailureRecord]:
        return self._failures.get(definition_id)

    @property
    def items_failed(self) -> int:
        return self._items_failed

    @property
    def items_succeeded(self) -> int:
        return self._items_succeeded

    @property
    def instances_created(self) -> int:
        return self._instances_created

    def _age(self, timestamp: Optional[float]) -> Optional[int]:
        if timestamp is None:
            return None
        return int(time.time() - timestamp)

    def determine_overall_status(self) -> str:
        """Determine overall health status.

        Returns:
            "ok", "degraded", or "critical"
        """
        if not self._failures:
            return "ok"
        if len(self._failures) >= self.CRITICAL_FAILING_DEFINITIONS:
            return "critical"
        attempted = self._items_attempted
        if attempted and self._items_failed / attempted > 0.5 and self._items_succeeded == 0:
            return "critical"
        return "degraded"

    def get_snapshot(self) -> HealthSnapshot:
        return HealthSnapshot(
            status=self.determine_overall_status(),
            uptime_seconds=int(time.time() - self._start_time),
            items_attempted=self._items_attempted,
            items_succeeded=self._items_succeeded,
            items_failed=self._items_failed,
            instances_created=self._instances_created,
            failing_definitions=[record.to_dict() for record in self._failures.values()],
            last_drain_age_seconds=self._age(self._last_drain_heartbeat),
            last_sweep_age_seconds=self._age(self._last_sweep),
            last_sweep_enqueued=self._last_sweep_enqueued,
        )
