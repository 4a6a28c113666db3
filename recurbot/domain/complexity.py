"""Complexity scoring and safe instance caps for recurrence specs."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..core.config_manager import EngineConfig
from .models import RecurrencePattern, RecurrenceSpec

MAX_SCORE = 10

PATTERN_BASE_SCORES: dict[RecurrencePattern, int] = {
    RecurrencePattern.DAILY: 1,
    RecurrencePattern.WEEKLY: 2,
    RecurrencePattern.MONTHLY: 3,
    RecurrencePattern.YEARLY: 4,
    RecurrencePattern.CUSTOM: 5,
}


@dataclass(frozen=True)
class ComplexityAssessment:
    score: int
    cap: int
    is_complex: bool


class ComplexityOptimizer:
    """Scores specs 0..10 and derives how many instances may be generated.

    Deterministic and side-effect free. The cap never grows as the score
    grows.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

    def score(self, spec: RecurrenceSpec) -> int:
        raw = float(PATTERN_BASE_SCORES[spec.pattern])
        raw += 0.5 * (len(spec.custom_weekdays or ()) + len(spec.custom_month_days or ()))
        if spec.custom_month_position is not None:
            raw += 2
        if spec.is_unbounded:
            raw += 2
        if spec.interval == 1:
            raw += 1
        return min(MAX_SCORE, math.ceil(raw))

    def hard_cap_for_score(self, score: int) -> int:
        if score >= self.config.complexity_threshold:
            return self.config.reduced_cap
        return self.config.default_cap

    def derive_safe_cap(self, spec: RecurrenceSpec, requested_max: Optional[int] = None) -> int:
        """Return ``min(requested_max or default_cap, hard cap for the score)``."""
        requested = requested_max if requested_max is not None else self.config.default_cap
        return min(requested, self.hard_cap_for_score(self.score(spec)))

    def is_complex(self, spec: RecurrenceSpec) -> bool:
        return self.score(spec) >= self.config.complexity_threshold

    def assess(self, spec: RecurrenceSpec, requested_max: Optional[int] = None) -> ComplexityAssessment:
        score = self.score(spec)
        return ComplexityAssessment(
            score=score,
            cap=self.derive_safe_cap(spec, requested_max),
            is_complex=score >= self.config.complexity_threshold,
        )
