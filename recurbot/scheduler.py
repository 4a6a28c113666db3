"""Periodic sweep that keeps recurring definitions topped up.

The scheduler only decides *which* definitions need attention and hands
them to the generation queue; it never computes dates or writes instances.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .core.config_manager import EngineConfig
from .core.health_tracker import GenerationHealthTracker
from .core.timezone_utils import TimeProvider as _DefaultTimeProvider
from .core.timezone_utils import now_utc
from .engine_logging import log_monitoring_event
from .generation_queue import GenerationQueue
from .protocols import TaskStorage, TimeProvider

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """What a single sweep found and enqueued."""

    today: date
    enqueued: list[str] = field(default_factory=list)
    active_definitions: int = 0
    overdue_instances: int = 0
    upcoming_instances: int = 0
    started_at: datetime = field(default_factory=now_utc)


class Scheduler:
    """Enqueues active definitions and owners of overdue or upcoming instances."""

    def __init__(
        self,
        storage: TaskStorage,
        queue: GenerationQueue,
        config: Optional[EngineConfig] = None,
        *,
        health_tracker: Optional[GenerationHealthTracker] = None,
        time_provider: Optional[TimeProvider] = None,
    ) -> None:
        self.storage = storage
        self.queue = queue
        self.config = config or EngineConfig()
        self.health = health_tracker
        self._today = time_provider or _DefaultTimeProvider()

    def run_sweep(self) -> SweepResult:
        """Run one sweep. Returns immediately; generation happens in the queue."""
        today = self._today()
        result = SweepResult(today=today)
        # dict keeps first-seen order without duplicates
        targets: dict[str, None] = {}

        active = self.storage.list_active_definitions()
        result.active_definitions = len(active)
        for definition in active:
            targets.setdefault(definition.id, None)

        overdue = self.storage.list_overdue_instances(today)
        result.overdue_instances = len(overdue)
        for instance in overdue:
            targets.setdefault(instance.definition_id, None)

        upcoming = self.storage.list_upcoming_instances(today, self.config.look_ahead_days)
        result.upcoming_instances = len(upcoming)
        for instance in upcoming:
            targets.setdefault(instance.definition_id, None)

        for definition_id in targets:
            self.queue.enqueue(definition_id)
        result.enqueued = list(targets)

        if self.health is not None:
            self.health.record_sweep(len(result.enqueued))
        log_monitoring_event(
            "scheduler.sweep.complete",
            f"Sweep enqueued {len(result.enqueued)} definition(s)",
            "INFO",
            {
                "today": today.isoformat(),
                "active_definitions": result.active_definitions,
                "overdue_instances": result.overdue_instances,
                "upcoming_instances": result.upcoming_instances,
                "enqueued": len(result.enqueued),
            },
            component="scheduler",
        )
        return result

    def start_periodic(self, interval_minutes: Optional[float] = None) -> "PeriodicSweep":
        """Sweep now, then every ``interval_minutes`` until the handle is stopped.

        Must be called from a running event loop.
        """
        minutes = interval_minutes if interval_minutes is not None else self.config.sweep_interval_minutes
        handle = PeriodicSweep(self, minutes * 60.0)
        handle.start()
        return handle


class PeriodicSweep:
    """Handle for a background sweep loop.

    ``stop()`` prevents future sweeps; a generation batch already in flight
    in the queue is not cancelled.
    """

    def __init__(self, scheduler: Scheduler, interval_seconds: float) -> None:
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds
        self.sweeps_run = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="recurbot-periodic-sweep"
        )

    def stop(self) -> None:
        self._stop_event.set()

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        logger.debug("Sweep loop starting with interval %.1f seconds", self.interval_seconds)
        while not self._stop_event.is_set():
            try:
                self.scheduler.run_sweep()
                self.sweeps_run += 1
            except Exception:
                logger.exception("Scheduled sweep failed")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
        logger.debug("Sweep loop stopped after %d sweep(s)", self.sweeps_run)
