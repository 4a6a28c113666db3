"""Human-readable descriptions of recurrence specs and the built-in presets."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..exceptions import ValidationError
from .models import (
    EndKind,
    MonthPosition,
    RecurrencePattern,
    RecurrenceSpec,
    Weekday,
)

_UNIT_NAMES = {
    RecurrencePattern.DAILY: "day",
    RecurrencePattern.WEEKLY: "week",
    RecurrencePattern.MONTHLY: "month",
    RecurrencePattern.YEARLY: "year",
    RecurrencePattern.CUSTOM: "week",
}

_ADVERBS = {
    RecurrencePattern.DAILY: "Daily",
    RecurrencePattern.WEEKLY: "Weekly",
    RecurrencePattern.MONTHLY: "Monthly",
    RecurrencePattern.YEARLY: "Yearly",
    RecurrencePattern.CUSTOM: "Weekly",
}


def ordinal_suffix(day: int) -> str:
    """Return ``1st``, ``2nd``, ``11th``, ``23rd`` ..."""
    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def _cadence(spec: RecurrenceSpec, pattern: RecurrencePattern) -> str:
    if spec.interval == 1:
        return _ADVERBS[pattern]
    return f"Every {spec.interval} {_UNIT_NAMES[pattern]}s"


def describe_pattern(spec: RecurrenceSpec) -> str:
    """Describe the cadence of a spec, e.g. ``"Weekly on Mon, Wed, Fri"``."""
    pattern = spec.pattern

    if spec.custom_weekdays and pattern in (RecurrencePattern.WEEKLY, RecurrencePattern.CUSTOM):
        days = ", ".join(Weekday(d).short_name for d in sorted(spec.custom_weekdays))
        return f"{_cadence(spec, RecurrencePattern.WEEKLY)} on {days}"

    if pattern in (RecurrencePattern.MONTHLY, RecurrencePattern.CUSTOM):
        monthly = _cadence(spec, RecurrencePattern.MONTHLY)
        if spec.custom_month_days:
            days = ", ".join(ordinal_suffix(d) for d in sorted(spec.custom_month_days))
            return f"{monthly} on the {days}"
        if spec.custom_month_position is not None and spec.custom_month_weekday is not None:
            weekday_name = Weekday(spec.custom_month_weekday).name.title()
            return f"{monthly} on the {spec.custom_month_position.value} {weekday_name}"

    return _cadence(spec, pattern)


def describe_end_condition(spec: RecurrenceSpec) -> str:
    """Describe when a series stops, e.g. ``"Ends after 3 occurrences"``."""
    end = spec.end_condition
    if end.kind == EndKind.ON_DATE and end.end_date is not None:
        d = end.end_date
        return f"Ends on {d:%B} {d.day}, {d.year}"
    if end.kind == EndKind.AFTER_OCCURRENCES and end.max_occurrences is not None:
        noun = "occurrence" if end.max_occurrences == 1 else "occurrences"
        return f"Ends after {end.max_occurrences} {noun}"
    return "Never ends"


def describe(spec: RecurrenceSpec) -> str:
    """Full one-line summary: cadence plus end condition."""
    return f"{describe_pattern(spec)}; {describe_end_condition(spec).lower()}"


@dataclass(frozen=True)
class PatternPreset:
    """A named starting point for common recurrences."""

    preset_id: str
    name: str
    description: str
    fields: dict[str, Any] = field(default_factory=dict)


PATTERN_PRESETS: dict[str, PatternPreset] = {
    preset.preset_id: preset
    for preset in (
        PatternPreset("daily", "Daily", "Every day", {"pattern": RecurrencePattern.DAILY}),
        PatternPreset(
            "weekdays",
            "Weekdays",
            "Monday to Friday",
            {
                "pattern": RecurrencePattern.WEEKLY,
                "custom_weekdays": [
                    Weekday.MONDAY,
                    Weekday.TUESDAY,
                    Weekday.WEDNESDAY,
                    Weekday.THURSDAY,
                    Weekday.FRIDAY,
                ],
            },
        ),
        PatternPreset("weekly", "Weekly", "Every week", {"pattern": RecurrencePattern.WEEKLY}),
        PatternPreset(
            "biweekly",
            "Every two weeks",
            "Every other week",
            {"pattern": RecurrencePattern.WEEKLY, "interval": 2},
        ),
        PatternPreset("monthly", "Monthly", "Every month", {"pattern": RecurrencePattern.MONTHLY}),
        PatternPreset(
            "quarterly",
            "Quarterly",
            "Every three months",
            {"pattern": RecurrencePattern.MONTHLY, "interval": 3},
        ),
        PatternPreset("yearly", "Yearly", "Every year", {"pattern": RecurrencePattern.YEARLY}),
        PatternPreset(
            "custom-weekly",
            "Mon, Wed, Fri",
            "Monday, Wednesday and Friday",
            {
                "pattern": RecurrencePattern.CUSTOM,
                "custom_weekdays": [Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY],
            },
        ),
        PatternPreset(
            "custom-monthly",
            "1st and 15th",
            "The 1st and 15th of every month",
            {"pattern": RecurrencePattern.CUSTOM, "custom_month_days": [1, 15]},
        ),
        PatternPreset(
            "first-monday",
            "First Monday",
            "The first Monday of every month",
            {
                "pattern": RecurrencePattern.MONTHLY,
                "custom_month_position": MonthPosition.FIRST,
                "custom_month_weekday": Weekday.MONDAY,
            },
        ),
    )
}


def build_preset(preset_id: str, start_date: date, **overrides: Any) -> RecurrenceSpec:
    """Build a spec from a preset, anchored at ``start_date``.

    Raises:
        ValidationError: for an unknown preset id or invalid overrides
    """
    preset = PATTERN_PRESETS.get(preset_id)
    if preset is None:
        raise ValidationError({"preset": f"unknown preset {preset_id!r}"})
    data: dict[str, Any] = {**preset.fields, "start_date": start_date, **overrides}
    return RecurrenceSpec.from_dict(data)
