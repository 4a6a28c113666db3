"""Semantic validation of recurrence specs.

Errors are collected per field and raised together as a single
``ValidationError``; softer problems come back as warnings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..exceptions import ValidationError
from .models import EndKind, RecurrencePattern, RecurrenceSpec

logger = logging.getLogger(__name__)

MAX_SENSIBLE_INTERVAL = 365
MAX_SENSIBLE_OCCURRENCES = 1000


@dataclass
class ValidationResult:
    """Outcome of a successful validation."""

    warnings: list[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def validate_spec(spec: RecurrenceSpec, today: Optional[date] = None) -> ValidationResult:
    """Validate a spec.

    Args:
        spec: Spec to check
        today: Reference date for "end date in the past"; skipped when None

    Returns:
        ValidationResult carrying non-fatal warnings

    Raises:
        ValidationError: with every field-level error found
    """
    errors: dict[str, str] = {}
    warnings: list[str] = []

    if spec.interval < 1:
        errors["interval"] = "interval must be at least 1"
    elif spec.interval > MAX_SENSIBLE_INTERVAL:
        warnings.append(f"interval {spec.interval} is unusually large")

    end = spec.end_condition
    if end.kind == EndKind.ON_DATE and end.end_date is not None:
        if end.end_date < spec.start_date:
            errors["end_condition.end_date"] = "end date must not precede the start date"
        elif today is not None and end.end_date < today:
            errors["end_condition.end_date"] = "end date is in the past"
    if end.kind == EndKind.AFTER_OCCURRENCES and end.max_occurrences is not None:
        if end.max_occurrences < 1:
            errors["end_condition.max_occurrences"] = "max occurrences must be at least 1"
        elif end.max_occurrences > MAX_SENSIBLE_OCCURRENCES:
            warnings.append(
                f"max occurrences {end.max_occurrences} is large; generation stays capped"
            )

    if spec.custom_weekdays is not None and not spec.custom_weekdays:
        errors["custom_weekdays"] = "custom weekdays must not be empty"

    if spec.custom_month_days is not None:
        if not spec.custom_month_days:
            errors["custom_month_days"] = "custom month days must not be empty"
        elif any(d < 1 or d > 31 for d in spec.custom_month_days):
            errors["custom_month_days"] = "month days must be between 1 and 31"

    if spec.custom_month_position is not None and spec.custom_month_weekday is None:
        errors["custom_month_weekday"] = "a month position requires a weekday"
    if spec.custom_month_weekday is not None and spec.custom_month_position is None:
        warnings.append("month weekday is ignored without a month position")

    if spec.pattern in (RecurrencePattern.DAILY, RecurrencePattern.YEARLY) and (
        spec.custom_weekdays or spec.custom_month_days or spec.custom_month_position
    ):
        warnings.append(f"custom selectors are ignored for {spec.pattern.value} patterns")
    if spec.pattern == RecurrencePattern.WEEKLY and (
        spec.custom_month_days or spec.custom_month_position
    ):
        warnings.append("month selectors are ignored for weekly patterns")
    if spec.pattern == RecurrencePattern.CUSTOM and not (
        spec.custom_weekdays
        or spec.custom_month_days
        or (spec.custom_month_position and spec.custom_month_weekday is not None)
    ):
        warnings.append("custom pattern has no selectors and falls back to weekly")

    if errors:
        raise ValidationError(errors)

    for warning in warnings:
        logger.debug("Recurrence spec warning: %s", warning)
    return ValidationResult(warnings=warnings)
