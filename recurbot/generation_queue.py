"""Background generation queue for recurring task instances.

Work items are coalesced per definition id and drained in batches: items in
a batch run concurrently with ``asyncio.gather`` while batches run one after
another with a short pause between them. The queue moves between two states,
IDLE and DRAINING, and only one drain pass is active at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

from .core.config_manager import EngineConfig
from .core.health_tracker import GenerationHealthTracker
from .core.timezone_utils import TimeProvider as _DefaultTimeProvider
from .core.timezone_utils import now_utc
from .domain.complexity import ComplexityOptimizer
from .domain.instance_store import InstanceStore
from .domain.models import (
    QueueState,
    QueueStatus,
    RecurringDefinition,
    RecurringInstance,
    WorkItem,
    instance_id_for,
)
from .domain.pattern_engine import enumerate_occurrences
from .engine_logging import log_monitoring_event
from .exceptions import DuplicateOccurrence, GenerationFailure
from .protocols import NotificationSink, TaskStorage, TimeProvider

logger = logging.getLogger(__name__)

# Yield to the event loop after this many created instances
YIELD_EVERY = 10


@dataclass
class ItemOutcome:
    """Result of processing one work item."""

    definition_id: str
    created: int = 0
    mode: str = "skipped"  # "regenerate", "top_up" or "skipped"
    failed: bool = False


class GenerationQueue:
    """Coalescing async queue that turns definitions into instances."""

    def __init__(
        self,
        storage: TaskStorage,
        store: InstanceStore,
        optimizer: Optional[ComplexityOptimizer] = None,
        config: Optional[EngineConfig] = None,
        *,
        health_tracker: Optional[GenerationHealthTracker] = None,
        time_provider: Optional[TimeProvider] = None,
        notification_sink: Optional[NotificationSink] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.storage = storage
        self.store = store
        self.optimizer = optimizer or ComplexityOptimizer(self.config)
        self.health = health_tracker or GenerationHealthTracker()
        self._today = time_provider or _DefaultTimeProvider()
        self._sink = notification_sink

        self._items: OrderedDict[str, WorkItem] = OrderedDict()
        self._state = QueueState.IDLE
        self._drain_task: Optional[asyncio.Task] = None
        self._accepting = True
        self._processed_total = 0
        self._failed_total = 0
        self._last_drain_at: Optional[datetime] = None

    @property
    def state(self) -> QueueState:
        return self._state

    def __len__(self) -> int:
        return len(self._items)

    def pending_ids(self) -> list[str]:
        return list(self._items)

    def status(self) -> QueueStatus:
        return QueueStatus(
            state=self._state,
            queue_length=len(self._items),
            pending_ids=self.pending_ids(),
            processed_total=self._processed_total,
            failed_total=self._failed_total,
            last_drain_at=self._last_drain_at,
        )

    def enqueue(self, definition_id: str, force_regenerate: bool = False) -> WorkItem:
        """Queue a definition for generation. Never blocks.

        A definition already waiting in the queue is not queued twice; the
        pending item's ``force_regenerate`` becomes the OR of both requests.
        """
        item = self._items.get(definition_id)
        if item is not None:
            item.force_regenerate = item.force_regenerate or force_regenerate
            logger.debug(
                "Coalesced work item for %s (force_regenerate=%s)",
                definition_id,
                item.force_regenerate,
            )
        else:
            item = WorkItem(definition_id=definition_id, force_regenerate=force_regenerate)
            self._items[definition_id] = item
            logger.debug("Queued %s (force_regenerate=%s)", definition_id, force_regenerate)

        self._ensure_draining()
        return item

    def discard(self, definition_id: str) -> bool:
        """Drop a queued, not yet started item. Returns True if one was removed."""
        return self._items.pop(definition_id, None) is not None

    def _ensure_draining(self) -> None:
        if not self._accepting:
            return
        if self._drain_task is not None and not self._drain_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; %d item(s) wait for drain()", len(self._items))
            return
        self._drain_task = loop.create_task(self._drain_loop(), name="recurbot-generation-drain")

    async def drain(self) -> None:
        """Process queued items until the queue is empty and idle."""
        while True:
            task = self._drain_task
            if task is not None and not task.done():
                await task
                continue
            if not self._items or not self._accepting:
                return
            self._drain_task = asyncio.get_running_loop().create_task(
                self._drain_loop(), name="recurbot-generation-drain"
            )

    run_until_idle = drain

    def start(self) -> None:
        """Accept work again after ``shutdown`` and resume draining."""
        self._accepting = True
        self._ensure_draining()

    async def shutdown(self) -> None:
        """Stop starting new batches; the batch in flight finishes."""
        self._accepting = False
        task = self._drain_task
        if task is not None and not task.done():
            await task

    def _take_batch(self) -> list[WorkItem]:
        size = min(self.config.batch_size, len(self._items))
        return [self._items.popitem(last=False)[1] for _ in range(size)]

    async def _drain_loop(self) -> None:
        self._state = QueueState.DRAINING
        log_monitoring_event(
            "queue.drain.start",
            "Generation queue draining",
            "DEBUG",
            {"queue_length": len(self._items)},
            component="queue",
        )
        processed = 0
        failed = 0
        created = 0
        try:
            while self._items and self._accepting:
                batch = self._take_batch()
                results = await asyncio.gather(
                    *(self._process_item(item) for item in batch), return_exceptions=True
                )
                for item, result in zip(batch, results):
                    if isinstance(result, BaseException):
                        # _process_item handles Exception; anything here is cancellation.
                        logger.warning("Work item %s aborted: %r", item.definition_id, result)
                        failed += 1
                        continue
                    created += result.created
                    if result.failed:
                        failed += 1
                processed += len(batch)
                self._processed_total += len(batch)
                self.health.record_drain_heartbeat()

                if self._items and self._accepting:
                    await asyncio.sleep(self.config.batch_pause_seconds)
        finally:
            self._state = QueueState.IDLE
            self._last_drain_at = now_utc()

        log_monitoring_event(
            "queue.drain.complete",
            "Generation queue idle",
            "INFO" if not failed else "WARNING",
            {"processed": processed, "failed": failed, "instances_created": created},
            component="queue",
        )

    async def _process_item(self, item: WorkItem) -> ItemOutcome:
        definition_id = item.definition_id
        self.health.record_item_attempt(definition_id)
        try:
            outcome = await self._generate(item)
        except Exception as exc:
            failure = GenerationFailure(definition_id, f"{type(exc).__name__}: {exc}")
            self._failed_total += 1
            self.health.record_failure(failure)
            logger.exception("Instance generation failed for %s", definition_id)
            log_monitoring_event(
                "queue.item.failed",
                str(failure),
                "ERROR",
                {"definition_id": definition_id, "reason": failure.reason},
                component="queue",
                rate_limit_key=f"generation-failure:{definition_id}",
            )
            self._notify("generation.failed", {"definition_id": definition_id, "reason": failure.reason})
            return ItemOutcome(definition_id, failed=True)

        self.health.record_item_success(definition_id, outcome.created)
        if outcome.created:
            self._notify(
                "instances.generated",
                {"definition_id": definition_id, "created": outcome.created, "mode": outcome.mode},
            )
        return outcome

    async def _generate(self, item: WorkItem) -> ItemOutcome:
        definition = self.storage.load_definition(item.definition_id)
        if definition is None:
            logger.info("Definition %s no longer exists; dropping work item", item.definition_id)
            return ItemOutcome(item.definition_id)
        if definition.is_paused:
            logger.info("Definition %s is paused; skipping generation", definition.id)
            return ItemOutcome(definition.id)

        today = self._today()
        if item.force_regenerate or self.needs_full_regeneration(definition, today):
            created = await self._regenerate_all(definition, today)
            return ItemOutcome(definition.id, created, "regenerate")
        created = await self._top_up(definition, today)
        return ItemOutcome(definition.id, created, "top_up")

    def needs_full_regeneration(self, definition: RecurringDefinition, today: date) -> bool:
        """Decide between a full regeneration and a top-up.

        Regenerates when there are no instances, when the recurrence spec is complex, or
        when fewer than ``min_future_instances`` open instances lie ahead.
        """
        instances = self.store.list_instances(definition.id)
        if not instances:
            return True
        if self.optimizer.is_complex(definition.recurrence_spec):
            return True
        future_open = sum(
            1 for i in instances if i.is_generated and i.is_open and i.occurrence_date >= today
        )
        return future_open < self.config.min_future_instances

    def _safe_cap(self, definition: RecurringDefinition) -> int:
        spec = definition.recurrence_spec
        return self.optimizer.derive_safe_cap(spec, spec.max_occurrences)

    async def _regenerate_all(self, definition: RecurringDefinition, today: date) -> int:
        """Replace every generated instance with a fresh series.

        The origin instance is never touched.
        """
        doomed = [inst.id for inst in self.store.list_instances(definition.id) if inst.is_generated]
        if doomed:
            self.storage.delete_instance_records(doomed)
            self.store.delete_generated(definition.id)
            logger.debug("Cleared %d generated instance(s) of %s", len(doomed), definition.id)

        start_from = max(definition.recurrence_spec.start_date, today - timedelta(days=1))
        return await self._materialize(definition, start_from, self._safe_cap(definition), today)

    async def _top_up(self, definition: RecurringDefinition, today: date) -> int:
        """Add missing future instances until the generated count reaches the cap."""
        instances = self.store.list_instances(definition.id)
        generated = sum(1 for i in instances if i.is_generated)
        budget = self._safe_cap(definition) - generated
        if budget <= 0:
            return 0
        latest = max(
            (i.occurrence_date for i in instances),
            default=definition.recurrence_spec.start_date,
        )
        start_from = max(latest, today - timedelta(days=1))
        return await self._materialize(definition, start_from, budget, today)

    def _still_wanted(self, definition_id: str) -> bool:
        current = self.storage.load_definition(definition_id)
        return current is not None and not current.is_paused

    async def _materialize(
        self, definition: RecurringDefinition, start_from: date, budget: int, today: date
    ) -> int:
        created = 0
        if budget <= 0:
            return created
        occurrences = enumerate_occurrences(
            start_from,
            definition.recurrence_spec,
            today=today,
            horizon_years=self.config.horizon_years,
        )
        for occurrence in occurrences:
            if created >= budget:
                break
            if occurrence.occurrence_date < today:
                logger.debug(
                    "Skipping past occurrence %s of %s", occurrence.occurrence_date, definition.id
                )
                continue
            instance = RecurringInstance(
                id=instance_id_for(definition.id, occurrence.occurrence_number),
                definition_id=definition.id,
                title=definition.title,
                occurrence_date=occurrence.occurrence_date,
                occurrence_number=occurrence.occurrence_number,
                is_generated=True,
            )
            if self._create_instance(instance):
                created += 1
                if created % YIELD_EVERY == 0:
                    await asyncio.sleep(0)
                    # Deleted or paused while we yielded
                    if not self._still_wanted(definition.id):
                        logger.info(
                            "Stopped generating %s after %d instance(s); definition deleted or paused",
                            definition.id,
                            created,
                        )
                        break

        if created:
            logger.debug("Created %d instance(s) for %s", created, definition.id)
        return created

    def _create_instance(self, instance: RecurringInstance) -> bool:
        """Persist then index one instance. Returns False for a benign duplicate."""
        if (
            self.store.find_by_date(instance.definition_id, instance.occurrence_date) is not None
            or self.store.get(instance.id) is not None
        ):
            return False
        self.storage.create_instance_record(instance)
        try:
            self.store.upsert(instance)
        except DuplicateOccurrence:
            logger.debug("Duplicate occurrence for %s skipped", instance.id)
            return False
        return True

    def _notify(self, event: str, payload: dict[str, Any]) -> None:
        if self._sink is None:
            return
        try:
            self._sink.notify(event, payload)
        except Exception:
            logger.warning("Notification sink failed for %s", event, exc_info=True)
