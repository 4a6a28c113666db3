"""Custom exception hierarchy for the recurring task engine.

Every error the engine raises derives from RecurbotError so callers can catch
engine failures in one place while still distinguishing validation problems
from missing records and background generation failures.
"""

from __future__ import annotations

from datetime import date
from typing import Optional


class RecurbotError(Exception):
    """Base exception for all recurring task engine errors."""


class ConfigurationError(RecurbotError):
    """Engine configuration is inconsistent or out of range.

    Raised when:
    - A numeric setting is below its minimum (e.g. batch_size < 1)
    - reduced_cap exceeds default_cap
    - complexity_threshold falls outside 0..10
    """


class ValidationError(RecurbotError):
    """A recurrence spec or definition failed validation.

    Carries field-level messages in ``errors`` so callers can report every
    problem at once. Raised synchronously by create/update/preview and never
    queued.
    """

    def __init__(self, errors: dict[str, str], message: Optional[str] = None) -> None:
        self.errors: dict[str, str] = dict(errors)
        if message is None:
            message = "; ".join(f"{field}: {reason}" for field, reason in self.errors.items())
        super().__init__(message or "invalid recurrence")


class DuplicateOccurrence(RecurbotError):
    """An instance already exists for this definition and date (or id).

    The generation queue treats this as a benign skip.
    """

    def __init__(self, definition_id: str, occurrence_date: date, instance_id: Optional[str] = None):
        self.definition_id = definition_id
        self.occurrence_date = occurrence_date
        self.instance_id = instance_id
        super().__init__(
            f"instance for {definition_id} on {occurrence_date.isoformat()} already exists"
        )


class GenerationFailure(RecurbotError):
    """Generation of instances for a definition failed in the background.

    Recorded in the health tracker and surfaced through recommendations and
    the health report. Never propagated to enqueue callers.
    """

    def __init__(self, definition_id: str, reason: str) -> None:
        self.definition_id = definition_id
        self.reason = reason
        super().__init__(f"generation failed for {definition_id}: {reason}")


class DefinitionNotFound(RecurbotError):
    """No recurring definition exists with the requested id."""

    def __init__(self, definition_id: str) -> None:
        self.definition_id = definition_id
        super().__init__(f"recurring definition not found: {definition_id}")


class InstanceNotFound(RecurbotError):
    """No instance exists with the requested id."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"recurring instance not found: {instance_id}")
