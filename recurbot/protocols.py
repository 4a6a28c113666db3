"""Protocol definitions for the engine's injected collaborators.

The engine owns no persistence: every durable write goes through a
``TaskStorage`` implementation supplied by the host application.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Optional, Protocol

if TYPE_CHECKING:
    from recurbot.domain.models import RecurringDefinition, RecurringInstance


class TimeProvider(Protocol):
    """Protocol for callables returning today's date."""

    def __call__(self) -> datetime.date:
        """Return today's date.

        Returns:
            Current date used for "today" decisions
        """
        ...


class TaskStorage(Protocol):
    """Persistence collaborator for definitions and instance records."""

    def load_definition(self, definition_id: str) -> Optional[RecurringDefinition]:
        """Return the definition, or None if it does not exist."""
        ...

    def save_definition(self, definition: RecurringDefinition) -> None:
        """Create or replace a definition."""
        ...

    def delete_definition(self, definition_id: str) -> None:
        """Remove a definition; unknown ids are ignored."""
        ...

    def list_definitions(self) -> list[RecurringDefinition]:
        """Return every definition, paused ones included."""
        ...

    def list_active_definitions(self) -> list[RecurringDefinition]:
        """Return definitions that are not paused."""
        ...

    def list_overdue_instances(self, today: datetime.date) -> list[RecurringInstance]:
        """Return open instances dated before ``today``."""
        ...

    def list_upcoming_instances(
        self, today: datetime.date, window_days: int
    ) -> list[RecurringInstance]:
        """Return open instances dated within ``window_days`` from ``today``."""
        ...

    def list_instance_records(self, definition_id: str) -> list[RecurringInstance]:
        """Return every stored instance record of a definition."""
        ...

    def create_instance_record(self, instance: RecurringInstance) -> None:
        """Persist a new instance record."""
        ...

    def update_instance_record(self, instance: RecurringInstance) -> None:
        """Replace the stored record with the same id."""
        ...

    def delete_instance_records(self, instance_ids: Iterable[str]) -> None:
        """Remove instance records by id; unknown ids are ignored."""
        ...


class NotificationSink(Protocol):
    """Optional observer of engine events (e.g. "instances.generated")."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        """Deliver an event.

        Args:
            event: Event name
            payload: JSON-compatible event data
        """
        ...
