"""In-memory store of materialized recurring instances.

Indexed by definition and occurrence date, which enforces the
one-instance-per-(definition, date) invariant. Mutations are visible
immediately; persisting them is the caller's job.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import date
from typing import Optional

from ..exceptions import DuplicateOccurrence
from .models import RecurringInstance

logger = logging.getLogger(__name__)


class InstanceStore:
    """Thread-safe instance index keyed by definition id and date."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_definition: dict[str, dict[date, RecurringInstance]] = {}
        self._by_id: dict[str, RecurringInstance] = {}

    def list_instances(self, definition_id: str) -> list[RecurringInstance]:
        """Return a definition's instances ordered by occurrence date."""
        with self._lock:
            by_date = self._by_definition.get(definition_id, {})
            return [by_date[d] for d in sorted(by_date)]

    def find_by_date(self, definition_id: str, occurrence_date: date) -> Optional[RecurringInstance]:
        with self._lock:
            return self._by_definition.get(definition_id, {}).get(occurrence_date)

    def get(self, instance_id: str) -> Optional[RecurringInstance]:
        with self._lock:
            return self._by_id.get(instance_id)

    def upsert(self, instance: RecurringInstance, overwrite: bool = False) -> RecurringInstance:
        """Insert or replace an instance.

        Args:
            instance: Instance to store
            overwrite: Replace whatever occupies the same date or id

        Raises:
            DuplicateOccurrence: if the date or id is taken and overwrite is False
        """
        with self._lock:
            by_date = self._by_definition.setdefault(instance.definition_id, {})
            at_date = by_date.get(instance.occurrence_date)
            same_id = self._by_id.get(instance.id)

            if not overwrite and (at_date is not None or same_id is not None):
                raise DuplicateOccurrence(
                    instance.definition_id, instance.occurrence_date, instance.id
                )

            if at_date is not None and at_date.id != instance.id:
                self._by_id.pop(at_date.id, None)
            if same_id is not None:
                self._remove_locked(same_id)
                by_date = self._by_definition.setdefault(instance.definition_id, {})

            by_date[instance.occurrence_date] = instance
            self._by_id[instance.id] = instance
            return instance

    def delete_generated(self, definition_id: str, keep_completed: bool = False) -> list[str]:
        """Delete generated instances of a definition; the origin is kept.

        Args:
            definition_id: Owning definition
            keep_completed: Keep completed instances as history

        Returns:
            Ids of the deleted instances
        """
        doomed = [
            inst.id
            for inst in self.list_instances(definition_id)
            if inst.is_generated and not (keep_completed and inst.completed)
        ]
        self.delete_instances(doomed)
        return doomed

    def delete_all(self, definition_id: str) -> list[str]:
        """Delete every instance of a definition, origin included."""
        with self._lock:
            by_date = self._by_definition.pop(definition_id, {})
            for inst in by_date.values():
                self._by_id.pop(inst.id, None)
            removed = [inst.id for inst in by_date.values()]
        if removed:
            logger.debug("Removed %d instance(s) of %s", len(removed), definition_id)
        return removed

    def delete_instances(self, instance_ids: Iterable[str]) -> int:
        """Delete instances by id; unknown ids are ignored.

        Returns:
            Number of instances removed
        """
        removed = 0
        with self._lock:
            for instance_id in instance_ids:
                inst = self._by_id.get(instance_id)
                if inst is None:
                    continue
                self._remove_locked(inst)
                removed += 1
        return removed

    def _remove_locked(self, inst: RecurringInstance) -> None:
        self._by_id.pop(inst.id, None)
        by_date = self._by_definition.get(inst.definition_id)
        if by_date is None:
            return
        existing = by_date.get(inst.occurrence_date)
        if existing is not None and existing.id == inst.id:
            del by_date[inst.occurrence_date]
        if not by_date:
            del self._by_definition[inst.definition_id]

    def definition_ids(self) -> list[str]:
        with self._lock:
            return list(self._by_definition)

    def count(self, definition_id: Optional[str] = None) -> int:
        with self._lock:
            if definition_id is None:
                return len(self._by_id)
            return len(self._by_definition.get(definition_id, {}))

    def clear(self) -> None:
        with self._lock:
            self._by_definition.clear()
            self._by_id.clear()
