"""In-memory TaskStorage implementation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Optional

from ..domain.models import RecurringDefinition, RecurringInstance

logger = logging.getLogger(__name__)


class InMemoryTaskStorage:
    """Dict-backed storage for definitions and instance records.

    Suitable for tests and embedding; nothing survives the process.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._definitions: dict[str, RecurringDefinition] = {}
        self._instances: dict[str, RecurringInstance] = {}

    def load_definition(self, definition_id: str) -> Optional[RecurringDefinition]:
        with self._lock:
            return self._definitions.get(definition_id)

    def save_definition(self, definition: RecurringDefinition) -> None:
        with self._lock:
            self._definitions[definition.id] = definition

    def delete_definition(self, definition_id: str) -> None:
        with self._lock:
            self._definitions.pop(definition_id, None)

    def list_definitions(self) -> list[RecurringDefinition]:
        with self._lock:
            return list(self._definitions.values())

    def list_active_definitions(self) -> list[RecurringDefinition]:
        with self._lock:
            return [d for d in self._definitions.values() if not d.is_paused]

    def list_overdue_instances(self, today: date) -> list[RecurringInstance]:
        with self._lock:
            return sorted(
                (i for i in self._instances.values() if i.is_open and i.occurrence_date < today),
                key=lambda i: i.occurrence_date,
            )

    def list_upcoming_instances(self, today: date, window_days: int) -> list[RecurringInstance]:
        until = today + timedelta(days=window_days)
        with self._lock:
            return sorted(
                (
                    i
                    for i in self._instances.values()
                    if i.is_open and today <= i.occurrence_date <= until
                ),
                key=lambda i: i.occurrence_date,
            )

    def list_instance_records(self, definition_id: str) -> list[RecurringInstance]:
        with self._lock:
            return sorted(
                (i for i in self._instances.values() if i.definition_id == definition_id),
                key=lambda i: i.occurrence_date,
            )

    def create_instance_record(self, instance: RecurringInstance) -> None:
        with self._lock:
            self._instances[instance.id] = instance

    def update_instance_record(self, instance: RecurringInstance) -> None:
        with self._lock:
            if instance.id not in self._instances:
                logger.debug("Updating unknown instance record %s; creating it", instance.id)
            self._instances[instance.id] = instance

    def delete_instance_records(self, instance_ids: Iterable[str]) -> None:
        with self._lock:
            for instance_id in instance_ids:
                self._instances.pop(instance_id, None)

    def get_instance_record(self, instance_id: str) -> Optional[RecurringInstance]:
        with self._lock:
            return self._instances.get(instance_id)

    def instance_record_count(self) -> int:
        with self._lock:
            return len(self._instances)
