"""Data models for recurring task definitions and their generated instances."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.timezone_utils import now_utc as _now_utc
from ..exceptions import ValidationError


class RecurrencePattern(str, Enum):
    """Base recurrence frequency."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class Weekday(IntEnum):
    """Day of week, Monday = 0 (matches ``date.weekday()`` and dateutil)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: Any) -> "Weekday":
        """Coerce an int, a Weekday or a (case-insensitive) day name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            for member in cls:
                if member.name == name or member.name[:3] == name:
                    return member
            raise ValueError(f"unknown weekday {value!r}")
        return cls(int(value))

    @property
    def short_name(self) -> str:
        return self.name[:3].title()


class MonthPosition(str, Enum):
    """Which occurrence of a weekday within a month."""

    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    FOURTH = "fourth"
    LAST = "last"

    @property
    def ordinal(self) -> int:
        """Signed index understood by dateutil (``MO(+1)`` ... ``MO(-1)``)."""
        return {"first": 1, "second": 2, "third": 3, "fourth": 4, "last": -1}[self.value]


class EndKind(str, Enum):
    """How a recurrence series terminates."""

    NEVER = "never"
    ON_DATE = "on_date"
    AFTER_OCCURRENCES = "after_occurrences"


class EndCondition(BaseModel):
    """End condition of a series.

    ``kind`` selects which field is authoritative; the other is ignored.
    """

    model_config = ConfigDict(frozen=True)

    kind: EndKind = EndKind.NEVER
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None

    @model_validator(mode="after")
    def _check_authoritative_field(self) -> "EndCondition":
        if self.kind == EndKind.ON_DATE and self.end_date is None:
            raise ValueError("end_date is required when kind is 'on_date'")
        if self.kind == EndKind.AFTER_OCCURRENCES and self.max_occurrences is None:
            raise ValueError("max_occurrences is required when kind is 'after_occurrences'")
        return self

    @classmethod
    def none(cls) -> "EndCondition":
        return cls(kind=EndKind.NEVER)

    @classmethod
    def on(cls, end_date: date) -> "EndCondition":
        return cls(kind=EndKind.ON_DATE, end_date=end_date)

    @classmethod
    def after(cls, max_occurrences: int) -> "EndCondition":
        return cls(kind=EndKind.AFTER_OCCURRENCES, max_occurrences=max_occurrences)


class RecurrenceSpec(BaseModel):
    """Immutable description of how a task recurs.

    Only structural typing is enforced here; semantic rules such as
    ``interval >= 1`` are checked by ``validate_spec`` so that invalid specs
    can reach the engine and be rejected with field-level errors.
    """

    model_config = ConfigDict(frozen=True)

    pattern: RecurrencePattern
    interval: int = 1
    start_date: date
    end_condition: EndCondition = Field(default_factory=EndCondition.none)
    custom_weekdays: Optional[frozenset[Weekday]] = None
    custom_month_days: Optional[frozenset[int]] = None
    custom_month_position: Optional[MonthPosition] = None
    custom_month_weekday: Optional[Weekday] = None

    @field_validator("custom_weekdays", mode="before")
    @classmethod
    def _parse_weekdays(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (str, int)):
            value = [value]
        return frozenset(Weekday.parse(v) for v in value)

    @field_validator("custom_month_weekday", mode="before")
    @classmethod
    def _parse_month_weekday(cls, value: Any) -> Any:
        if value is None:
            return None
        return Weekday.parse(value)

    @field_serializer("custom_weekdays", "custom_month_days")
    def _serialize_sorted(self, value: Optional[frozenset[int]]) -> Optional[list[int]]:
        if value is None:
            return None
        return sorted(int(v) for v in value)

    @property
    def end_date(self) -> Optional[date]:
        if self.end_condition.kind == EndKind.ON_DATE:
            return self.end_condition.end_date
        return None

    @property
    def max_occurrences(self) -> Optional[int]:
        if self.end_condition.kind == EndKind.AFTER_OCCURRENCES:
            return self.end_condition.max_occurrences
        return None

    @property
    def is_unbounded(self) -> bool:
        return self.end_condition.kind == EndKind.NEVER

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecurrenceSpec":
        """Build a spec from raw input, reporting type errors per field.

        Raises:
            ValidationError: if the input cannot be coerced into a spec
        """
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            errors: dict[str, str] = {}
            for err in exc.errors():
                loc = ".".join(str(part) for part in err.get("loc", ())) or "spec"
                errors.setdefault(loc, err.get("msg", "invalid value"))
            raise ValidationError(errors) from exc


class RecurringDefinition(BaseModel):
    """A recurring task: the origin task plus its recurrence spec."""

    id: str = Field(..., min_length=1, description="Identifier; equals the origin task id")
    title: str = ""
    recurrence_spec: RecurrenceSpec
    is_paused: bool = False
    created_at: datetime = Field(default_factory=_now_utc)
    updated_at: datetime = Field(default_factory=_now_utc)


class InstanceStatus(str, Enum):
    """Lifecycle state of a materialized instance."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class RecurringInstance(BaseModel):
    """One concrete occurrence of a recurring definition."""

    id: str
    definition_id: str
    title: str = ""
    occurrence_date: date
    occurrence_number: int = Field(..., ge=0, description="0 for the origin instance")
    is_generated: bool = True
    status: InstanceStatus = InstanceStatus.ACTIVE
    completed_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.status == InstanceStatus.COMPLETED

    @property
    def is_open(self) -> bool:
        """True when the instance still awaits completion."""
        return self.status == InstanceStatus.ACTIVE


def instance_id_for(definition_id: str, occurrence_number: int) -> str:
    """Deterministic instance id; the origin instance reuses the definition id."""
    if occurrence_number == 0:
        return definition_id
    return f"{definition_id}-instance-{occurrence_number}"


@dataclass(frozen=True)
class Occurrence:
    """A date produced by the pattern engine with its position in the series."""

    occurrence_date: date
    occurrence_number: int


class DefinitionStats(BaseModel):
    """Per-definition instance counts."""

    total: int = 0
    completed: int = 0
    pending: int = 0
    next_date: Optional[date] = None


class SystemStatistics(BaseModel):
    """Engine-wide scheduling statistics."""

    total_definitions: int = 0
    active_definitions: int = 0
    paused_definitions: int = 0
    total_instances: int = 0
    future_instances: int = 0
    overdue_instances: int = 0
    next_scheduled_date: Optional[date] = None


class Recommendation(BaseModel):
    """An actionable observation about a definition or the engine."""

    definition_id: Optional[str] = None
    severity: str = Field(default="medium", description="low, medium or high")
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class HealthReport(BaseModel):
    """Snapshot of generation health for operators."""

    health_score: int
    status: str
    queue: dict[str, Any] = Field(default_factory=dict)
    counters: dict[str, Any] = Field(default_factory=dict)
    issues: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_now_utc)


class QueueState(str, Enum):
    """Generation queue state machine."""

    IDLE = "idle"
    DRAINING = "draining"


@dataclass
class WorkItem:
    """A pending request to generate instances for one definition."""

    definition_id: str
    force_regenerate: bool = False
    enqueued_at: datetime = field(default_factory=_now_utc)


@dataclass
class QueueStatus:
    """Observable state of the generation queue."""

    state: QueueState
    queue_length: int
    pending_ids: list[str]
    processed_total: int
    failed_total: int
    last_drain_at: Optional[datetime] = None

    @property
    def is_draining(self) -> bool:
        return self.state == QueueState.DRAINING

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["is_draining"] = self.is_draining
        data["last_drain_at"] = self.last_drain_at.isoformat() if self.last_drain_at else None
        return data
