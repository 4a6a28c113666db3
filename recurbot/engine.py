"""Integration facade for the recurring task engine.

``RecurringTaskEngine`` is the single entry point host applications use. It
validates input, writes through the ``TaskStorage`` collaborator first and
only then updates the in-memory instance store, and hands generation work to
the background queue.
"""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Optional

from .core.config_manager import EngineConfig
from .core.health_tracker import GenerationHealthTracker
from .core.timezone_utils import TimeProvider as _DefaultTimeProvider
from .core.timezone_utils import now_utc
from .domain.complexity import ComplexityOptimizer
from .domain.instance_store import InstanceStore
from .domain.models import (
    DefinitionStats,
    HealthReport,
    InstanceStatus,
    Recommendation,
    RecurrenceSpec,
    RecurringDefinition,
    RecurringInstance,
    SystemStatistics,
    instance_id_for,
)
from .domain.pattern_engine import next_occurrence, preview_occurrences
from .domain.pattern_format import describe
from .domain.validation import ValidationResult, validate_spec
from .engine_logging import log_monitoring_event
from .exceptions import DefinitionNotFound, InstanceNotFound, ValidationError
from .generation_queue import GenerationQueue
from .protocols import NotificationSink, TaskStorage, TimeProvider
from .scheduler import PeriodicSweep, Scheduler
from .storage import InMemoryTaskStorage, JsonTaskStorage

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1

# Fields of a definition that update() may change besides the recurrence spec
_UPDATABLE_FIELDS = ("title",)


class RecurringTaskEngine:
    """Explicitly constructed engine wiring store, optimizer, queue and scheduler."""

    def __init__(
        self,
        storage: TaskStorage,
        config: Optional[EngineConfig] = None,
        *,
        notification_sink: Optional[NotificationSink] = None,
        time_provider: Optional[TimeProvider] = None,
    ) -> None:
        self.config = (config or EngineConfig()).validate()
        self.storage = storage
        self._today = time_provider or _DefaultTimeProvider()
        self.store = InstanceStore()
        self.optimizer = ComplexityOptimizer(self.config)
        self.health = GenerationHealthTracker()
        self.queue = GenerationQueue(
            storage,
            self.store,
            self.optimizer,
            self.config,
            health_tracker=self.health,
            time_provider=self._today,
            notification_sink=notification_sink,
        )
        self.scheduler = Scheduler(
            storage,
            self.queue,
            self.config,
            health_tracker=self.health,
            time_provider=self._today,
        )
        self._periodic: Optional[PeriodicSweep] = None

    @classmethod
    def from_env(
        cls,
        env_file_path: Optional[Path] = None,
        *,
        notification_sink: Optional[NotificationSink] = None,
    ) -> "RecurringTaskEngine":
        """Build an engine from ``RECURBOT_*`` settings.

        Uses JSON-file storage when ``RECURBOT_STORAGE_PATH`` is set and
        in-memory storage otherwise.
        """
        config = EngineConfig.from_env(env_file_path)
        storage: TaskStorage
        if config.storage_path:
            storage = JsonTaskStorage(config.storage_path)
        else:
            logger.info("RECURBOT_STORAGE_PATH not set; using in-memory storage")
            storage = InMemoryTaskStorage()
        return cls(storage, config, notification_sink=notification_sink)

    # ------------------------------------------------------------------ lifecycle

    def hydrate(self) -> int:
        """Load every stored instance record into the instance store.

        Returns:
            Number of records loaded
        """
        loaded = 0
        for definition in self.storage.list_definitions():
            for record in self.storage.list_instance_records(definition.id):
                self.store.upsert(record, overwrite=True)
                loaded += 1
        logger.debug("Hydrated %d instance record(s)", loaded)
        return loaded

    async def start(self, periodic: bool = True) -> None:
        """Hydrate from storage and, optionally, start periodic sweeps."""
        self.hydrate()
        self.queue.start()
        if periodic and self._periodic is None:
            self._periodic = self.scheduler.start_periodic()
        log_monitoring_event(
            "engine.started", "Recurring task engine started", details={"periodic": periodic}
        )

    async def stop(self) -> None:
        """Stop periodic sweeps and let the batch in flight finish."""
        if self._periodic is not None:
            self._periodic.stop()
            await self._periodic.wait_stopped()
            self._periodic = None
        await self.queue.shutdown()
        log_monitoring_event("engine.stopped", "Recurring task engine stopped")

    async def drain(self) -> None:
        """Wait until every queued generation request has been processed."""
        await self.queue.drain()

    async def __aenter__(self) -> "RecurringTaskEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------ helpers

    def _require_definition(self, definition_id: str) -> RecurringDefinition:
        definition = self.storage.load_definition(definition_id)
        if definition is None:
            raise DefinitionNotFound(definition_id)
        return definition

    def _validate(self, spec: RecurrenceSpec) -> ValidationResult:
        result = validate_spec(spec, today=self._today())
        for warning in result.warnings:
            logger.warning("Recurrence spec warning: %s", warning)
        return result

    def _origin_for(self, definition: RecurringDefinition) -> RecurringInstance:
        return RecurringInstance(
            id=instance_id_for(definition.id, 0),
            definition_id=definition.id,
            title=definition.title,
            occurrence_date=definition.recurrence_spec.start_date,
            occurrence_number=0,
            is_generated=False,
        )

    def _reanchor(self, definition: RecurringDefinition) -> None:
        """Move the origin to the new start date and drop generated instances.

        Generated numbers count from the anchor, so none of them survive a move.
        """
        generated = {inst.id for inst in self.store.list_instances(definition.id) if inst.is_generated}
        generated.update(
            rec.id for rec in self.storage.list_instance_records(definition.id) if rec.is_generated
        )
        if generated:
            self.storage.delete_instance_records(sorted(generated))
            self.store.delete_generated(definition.id)

        new_start = definition.recurrence_spec.start_date
        origin = self.store.get(instance_id_for(definition.id, 0))
        if origin is None:
            moved = self._origin_for(definition)
            self.storage.create_instance_record(moved)
        else:
            moved = origin.model_copy(update={"occurrence_date": new_start})
            self.storage.update_instance_record(moved)
        self.store.upsert(moved, overwrite=True)
        logger.info(
            "Moved origin of %s to %s; dropped %d generated instance(s)",
            definition.id,
            new_start,
            len(generated),
        )

    def get_definition(self, definition_id: str) -> RecurringDefinition:
        return self._require_definition(definition_id)

    # ------------------------------------------------------------------ operations

    def create(self, definition: RecurringDefinition) -> RecurringDefinition:
        """Register a recurring definition and its origin instance.

        Raises:
            ValidationError: if the recurrence spec is invalid or the id is taken
        """
        self._validate(definition.recurrence_spec)
        if self.storage.load_definition(definition.id) is not None:
            raise ValidationError({"id": f"definition {definition.id!r} already exists"})

        self.storage.save_definition(definition)
        origin = self._origin_for(definition)
        self.storage.create_instance_record(origin)
        self.store.upsert(origin, overwrite=True)

        logger.info(
            "Created recurring definition %s (%s)",
            definition.id,
            describe(definition.recurrence_spec),
        )
        self.queue.enqueue(definition.id, False)
        return definition

    def update(
        self,
        definition_id: str,
        definition_updates: Optional[dict[str, Any]] = None,
        spec_updates: Optional[dict[str, Any]] = None,
    ) -> RecurringDefinition:
        """Update a definition; a changed spec forces regeneration.

        Raises:
            DefinitionNotFound: if the definition does not exist
            ValidationError: if the merged spec is invalid or a field is not updatable
        """
        current = self._require_definition(definition_id)
        changes: dict[str, Any] = {}

        for key, value in (definition_updates or {}).items():
            if key not in _UPDATABLE_FIELDS:
                raise ValidationError({key: "field cannot be updated"})
            changes[key] = value

        new_spec = current.recurrence_spec
        if spec_updates:
            merged = {**current.recurrence_spec.model_dump(), **spec_updates}
            new_spec = RecurrenceSpec.from_dict(merged)
            self._validate(new_spec)

        spec_changed = new_spec != current.recurrence_spec
        changes["recurrence_spec"] = new_spec
        changes["updated_at"] = now_utc()
        updated = current.model_copy(update=changes)
        self.storage.save_definition(updated)

        if new_spec.start_date != current.recurrence_spec.start_date:
            self._reanchor(updated)
        if spec_changed:
            logger.info("Spec of %s changed; regenerating", definition_id)
            self.queue.enqueue(definition_id, True)
        return updated

    def delete(self, definition_id: str) -> None:
        """Delete a definition together with all of its instances."""
        self._require_definition(definition_id)
        ids = {inst.id for inst in self.store.list_instances(definition_id)}
        ids.update(rec.id for rec in self.storage.list_instance_records(definition_id))

        self.storage.delete_instance_records(sorted(ids))
        self.store.delete_all(definition_id)
        self.storage.delete_definition(definition_id)
        self.queue.discard(definition_id)
        self.health.forget(definition_id)
        logger.info("Deleted recurring definition %s (%d instance(s))", definition_id, len(ids))

    def complete_instance(self, instance_id: str) -> RecurringInstance:
        """Mark an instance completed and top the series up if it can grow.

        Raises:
            InstanceNotFound: if no instance has this id
        """
        instance = self.store.get(instance_id)
        if instance is None:
            raise InstanceNotFound(instance_id)
        if instance.completed:
            return instance

        completed = instance.model_copy(
            update={"status": InstanceStatus.COMPLETED, "completed_at": now_utc()}
        )
        self.storage.update_instance_record(completed)
        self.store.upsert(completed, overwrite=True)

        definition = self.storage.load_definition(instance.definition_id)
        if definition is not None and not definition.is_paused and self._can_grow(definition):
            self.queue.enqueue(definition.id, False)
        return completed

    def _can_grow(self, definition: RecurringDefinition) -> bool:
        """True when the series is unbounded or still has dates left."""
        spec = definition.recurrence_spec
        if spec.is_unbounded:
            return True
        instances = self.store.list_instances(definition.id)
        if not instances:
            return True
        last = instances[-1]
        if spec.max_occurrences is not None and last.occurrence_number >= spec.max_occurrences:
            return False
        nxt = next_occurrence(last.occurrence_date, spec)
        if nxt is None:
            return False
        return spec.end_date is None or nxt <= spec.end_date

    def pause(self, definition_id: str) -> RecurringDefinition:
        """Stop generation for a definition until it is resumed."""
        return self._set_paused(definition_id, True)

    def resume(self, definition_id: str) -> RecurringDefinition:
        """Resume a paused definition and top it up."""
        definition = self._set_paused(definition_id, False)
        self.queue.enqueue(definition_id, False)
        return definition

    def _set_paused(self, definition_id: str, paused: bool) -> RecurringDefinition:
        current = self._require_definition(definition_id)
        if current.is_paused == paused:
            return current
        updated = current.model_copy(update={"is_paused": paused, "updated_at": now_utc()})
        self.storage.save_definition(updated)
        logger.info("%s recurring definition %s", "Paused" if paused else "Resumed", definition_id)
        return updated

    def regenerate_all(self, definition_id: str) -> None:
        """Queue a full regeneration of a definition's generated instances."""
        self._require_definition(definition_id)
        self.queue.enqueue(definition_id, True)

    # ------------------------------------------------------------------ reads

    def list_instances(self, definition_id: str) -> list[RecurringInstance]:
        return self.store.list_instances(definition_id)

    def get_stats(self, definition_id: str) -> DefinitionStats:
        today = self._today()
        instances = self.store.list_instances(definition_id)
        pending = [i for i in instances if i.is_open]
        upcoming = [i.occurrence_date for i in pending if i.occurrence_date >= today]
        return DefinitionStats(
            total=len(instances),
            completed=sum(1 for i in instances if i.completed),
            pending=len(pending),
            next_date=min(upcoming) if upcoming else None,
        )

    def preview_occurrences(self, spec: RecurrenceSpec, count: int = 10) -> list[date]:
        """Preview the first ``count`` dates of a spec without storing anything.

        Raises:
            ValidationError: if the recurrence spec is invalid
        """
        self._validate(spec)
        return preview_occurrences(
            spec, count, today=self._today(), horizon_years=self.config.horizon_years
        )

    def get_system_statistics(self) -> SystemStatistics:
        today = self._today()
        definitions = self.storage.list_definitions()
        stats = SystemStatistics(
            total_definitions=len(definitions),
            active_definitions=sum(1 for d in definitions if not d.is_paused),
            paused_definitions=sum(1 for d in definitions if d.is_paused),
        )
        upcoming: list[date] = []
        for definition in definitions:
            for inst in self.store.list_instances(definition.id):
                stats.total_instances += 1
                if not inst.is_open:
                    continue
                if inst.occurrence_date >= today:
                    stats.future_instances += 1
                    upcoming.append(inst.occurrence_date)
                else:
                    stats.overdue_instances += 1
        stats.next_scheduled_date = min(upcoming) if upcoming else None
        return stats

    def get_recommendations(self) -> list[Recommendation]:
        """Collect actionable observations about definitions and failures."""
        today = self._today()
        recommendations: list[Recommendation] = []

        for failure in self.health.failures():
            recommendations.append(
                Recommendation(
                    definition_id=failure.definition_id,
                    severity="high",
                    message=f"Instance generation failed: {failure.reason}",
                    details={"failures": failure.count},
                )
            )

        for definition in self.storage.list_definitions():
            spec = definition.recurrence_spec
            instances = self.store.list_instances(definition.id)
            count = len(instances)
            score = self.optimizer.score(spec)

            if score >= self.config.complexity_threshold and count > 20:
                recommendations.append(
                    Recommendation(
                        definition_id=definition.id,
                        severity="high",
                        message="Complex pattern with many instances; consider simplifying it",
                        details={"complexity_score": score, "instances": count},
                    )
                )
            if count > 100:
                recommendations.append(
                    Recommendation(
                        definition_id=definition.id,
                        severity="high",
                        message="Large number of instances; consider cleaning up completed ones",
                        details={"instances": count},
                    )
                )
            if spec.is_unbounded and count > 50:
                recommendations.append(
                    Recommendation(
                        definition_id=definition.id,
                        severity="medium",
                        message="Series never ends; consider adding an end condition",
                        details={"instances": count},
                    )
                )
            if spec.is_unbounded and not definition.is_paused:
                future_open = sum(
                    1 for i in instances if i.is_generated and i.is_open and i.occurrence_date >= today
                )
                if future_open < self.config.min_future_instances:
                    recommendations.append(
                        Recommendation(
                            definition_id=definition.id,
                            severity="medium",
                            message="Fewer upcoming instances than expected; regeneration is due",
                            details={
                                "future_instances": future_open,
                                "expected": self.config.min_future_instances,
                            },
                        )
                    )
        return recommendations

    def get_health_report(self) -> HealthReport:
        """Score engine health from 0 to 100 with issues and recommendations."""
        snapshot = self.health.get_snapshot()
        queue_status = self.queue.status()
        recommendations = self.get_recommendations()
        issues: list[str] = []
        score = 100

        if queue_status.queue_length > self.config.queue_backlog_warning:
            score -= 10
            issues.append(f"Generation queue backlog: {queue_status.queue_length} item(s)")

        failing = len(snapshot.failing_definitions)
        if failing:
            score -= min(50, 15 * failing)
            issues.append(f"{failing} definition(s) failing to generate instances")

        other_high = sum(
            1
            for r in recommendations
            if r.severity == "high" and self.health.failure_for(r.definition_id or "") is None
        )
        score -= min(20, 5 * other_high)
        score = max(0, score)

        if score >= 90:
            status = "ok"
        elif score >= 50:
            status = "degraded"
        else:
            status = "critical"
        ranking = {"ok": 0, "degraded": 1, "critical": 2}
        if ranking[snapshot.status] > ranking[status]:
            status = snapshot.status

        return HealthReport(
            health_score=score,
            status=status,
            queue=queue_status.to_dict(),
            counters={
                "items_attempted": snapshot.items_attempted,
                "items_succeeded": snapshot.items_succeeded,
                "items_failed": snapshot.items_failed,
                "instances_created": snapshot.instances_created,
                "instances_stored": self.store.count(),
                "last_drain_age_seconds": snapshot.last_drain_age_seconds,
                "last_sweep_age_seconds": snapshot.last_sweep_age_seconds,
            },
            issues=issues,
            recommendations=recommendations,
        )

    # ------------------------------------------------------------------ maintenance

    def cleanup_completed_instances(self, max_age_days: Optional[int] = None) -> int:
        """Delete completed generated instances older than ``max_age_days``.

        Returns:
            Number of instances deleted
        """
        days = self.config.cleanup_max_age_days if max_age_days is None else max_age_days
        cutoff = self._today() - timedelta(days=days)
        doomed: list[str] = []
        for definition_id in self.store.definition_ids():
            doomed.extend(
                inst.id
                for inst in self.store.list_instances(definition_id)
                if inst.is_generated and inst.completed and inst.occurrence_date < cutoff
            )
        if not doomed:
            return 0
        self.storage.delete_instance_records(doomed)
        removed = self.store.delete_instances(doomed)
        logger.info("Cleaned up %d completed instance(s) older than %s", removed, cutoff)
        return removed

    def export_definition(self, definition_id: str) -> str:
        """Serialize a definition and its spec to a JSON document."""
        definition = self._require_definition(definition_id)
        payload = {
            "version": EXPORT_VERSION,
            "exported_at": now_utc().isoformat(),
            "description": describe(definition.recurrence_spec),
            "definition": definition.model_dump(mode="json"),
        }
        return json.dumps(payload, indent=2)

    def import_spec(self, definition_id: str, payload: str) -> RecurringDefinition:
        """Replace a definition's spec from an exported document and regenerate.

        Accepts a full export, ``{"recurrence_spec": {...}}`` or a bare spec.

        Raises:
            DefinitionNotFound: if the definition does not exist
            ValidationError: if the payload is malformed or the recurrence spec invalid
        """
        current = self._require_definition(definition_id)
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValidationError({"payload": f"invalid JSON: {exc.msg}"}) from exc
        if not isinstance(data, dict):
            raise ValidationError({"payload": "expected a JSON object"})

        if isinstance(data.get("definition"), dict):
            data = data["definition"]
        raw_spec = data.get("recurrence_spec", data)
        if not isinstance(raw_spec, dict):
            raise ValidationError({"recurrence_spec": "expected a JSON object"})

        spec = RecurrenceSpec.from_dict(raw_spec)
        self._validate(spec)
        updated = current.model_copy(update={"recurrence_spec": spec, "updated_at": now_utc()})
        self.storage.save_definition(updated)
        if spec.start_date != current.recurrence_spec.start_date:
            self._reanchor(updated)
        self.queue.enqueue(definition_id, True)
        logger.info("Imported spec for %s (%s)", definition_id, describe(spec))
        return updated
