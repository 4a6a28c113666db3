"""recurbot - recurring task generation and scheduling engine.

Turns recurrence definitions (daily, weekly, monthly, yearly and custom
patterns) into concrete task instances, keeps them topped up from a periodic
sweep, and bounds growth with a complexity-aware cap.
"""

__version__ = "0.1.0"

from .core.config_manager import EngineConfig
from .domain.complexity import ComplexityOptimizer
from .domain.instance_store import InstanceStore
from .domain.models import (
    DefinitionStats,
    EndCondition,
    EndKind,
    InstanceStatus,
    MonthPosition,
    Occurrence,
    RecurrencePattern,
    RecurrenceSpec,
    RecurringDefinition,
    RecurringInstance,
    Weekday,
)
from .domain.pattern_engine import enumerate_occurrences, next_occurrence, preview_occurrences
from .domain.pattern_format import PATTERN_PRESETS, build_preset, describe_end_condition, describe_pattern
from .domain.validation import validate_spec
from .engine import RecurringTaskEngine
from .engine_logging import configure_engine_logging
from .exceptions import (
    DefinitionNotFound,
    DuplicateOccurrence,
    GenerationFailure,
    InstanceNotFound,
    RecurbotError,
    ValidationError,
)
from .generation_queue import GenerationQueue
from .scheduler import Scheduler
from .storage import InMemoryTaskStorage, JsonTaskStorage

__all__ = [
    "PATTERN_PRESETS",
    "ComplexityOptimizer",
    "DefinitionNotFound",
    "DefinitionStats",
    "DuplicateOccurrence",
    "EndCondition",
    "EndKind",
    "EngineConfig",
    "GenerationFailure",
    "GenerationQueue",
    "InMemoryTaskStorage",
    "InstanceNotFound",
    "InstanceStatus",
    "InstanceStore",
    "JsonTaskStorage",
    "MonthPosition",
    "Occurrence",
    "RecurbotError",
    "RecurrencePattern",
    "RecurrenceSpec",
    "RecurringDefinition",
    "RecurringInstance",
    "RecurringTaskEngine",
    "Scheduler",
    "ValidationError",
    "Weekday",
    "__version__",
    "build_preset",
    "configure_engine_logging",
    "describe_end_condition",
    "describe_pattern",
    "enumerate_occurrences",
    "next_occurrence",
    "preview_occurrences",
    "validate_spec",
]
