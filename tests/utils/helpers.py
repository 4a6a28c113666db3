"""Fakes and builders shared across recurbot tests."""

from datetime import date
from typing import Any, Optional

from recurbot.domain.models import EndCondition, RecurrencePattern, RecurrenceSpec, RecurringDefinition


class FakeClock:
    """Settable TimeProvider for deterministic "today" decisions."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


class RecordingSink:
    """NotificationSink that remembers every event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def make_spec(
    pattern: RecurrencePattern = RecurrencePattern.WEEKLY,
    start: date = date(2024, 1, 1),
    end: Optional[EndCondition] = None,
    **kwargs: Any,
) -> RecurrenceSpec:
    return RecurrenceSpec(
        pattern=pattern,
        start_date=start,
        end_condition=end or EndCondition.none(),
        **kwargs,
    )


def make_definition(definition_id: str = "task-1", **spec_kwargs: Any) -> RecurringDefinition:
    return RecurringDefinition(
        id=definition_id,
        title=f"Task {definition_id}",
        recurrence_spec=make_spec(**spec_kwargs),
    )
