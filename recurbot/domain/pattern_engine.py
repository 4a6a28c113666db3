"""Pattern engine: pure date math for recurrence specs.

Plain daily/weekly/monthly/yearly series step from the anchor (``start_date``)
with ``relativedelta`` so month-end dates clamp without drifting
(Jan 31 -> Feb 29 -> Mar 31). Weekday sets, month-day sets and positional
weekdays are evaluated with ``dateutil.rrule``.

Occurrence numbers are global to the series: the anchor is the origin
(number 0) and the first matching date after it is number 1.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from dateutil.rrule import MO, MONTHLY, WEEKLY, rrule, weekday

from ..core.timezone_utils import horizon_date
from ..core.timezone_utils import today as _today
from ..exceptions import ValidationError
from .models import Occurrence, RecurrencePattern, RecurrenceSpec

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_YEARS = 5

# Upper bound, in interval steps, when searching selector rules for a next date.
# Feb 29 on a yearly-stepped month is the sparsest rule that can still match.
_RULE_SEARCH_STEPS = 12 * 8 + 12


def _check_interval(spec: RecurrenceSpec) -> None:
    if spec.interval < 1:
        raise ValidationError({"interval": "interval must be at least 1"})


def _uses_rule(spec: RecurrenceSpec) -> bool:
    """Return True when the recurrence needs rrule evaluation instead of plain stepping."""
    if spec.pattern == RecurrencePattern.WEEKLY:
        return bool(spec.custom_weekdays)
    if spec.pattern == RecurrencePattern.MONTHLY:
        return bool(spec.custom_month_days) or _has_position(spec)
    if spec.pattern == RecurrencePattern.CUSTOM:
        return bool(spec.custom_weekdays) or bool(spec.custom_month_days) or _has_position(spec)
    return False


def _has_position(spec: RecurrenceSpec) -> bool:
    return spec.custom_month_position is not None and spec.custom_month_weekday is not None


def _step(spec: RecurrenceSpec, k: int) -> relativedelta:
    """Offset of the k-th plain step from the anchor."""
    n = k * spec.interval
    pattern = spec.pattern
    if pattern == RecurrencePattern.DAILY:
        return relativedelta(days=n)
    if pattern == RecurrencePattern.MONTHLY:
        return relativedelta(months=n)
    if pattern == RecurrencePattern.YEARLY:
        return relativedelta(years=n)
    # weekly, and custom without selectors
    return relativedelta(weeks=n)


def _build_rule(spec: RecurrenceSpec, until: Optional[date]) -> rrule:
    dtstart = datetime.combine(spec.start_date, time())
    until_dt = datetime.combine(until, time()) if until is not None else None

    if spec.custom_weekdays and spec.pattern in (RecurrencePattern.WEEKLY, RecurrencePattern.CUSTOM):
        return rrule(
            WEEKLY,
            dtstart=dtstart,
            interval=spec.interval,
            byweekday=sorted(int(d) for d in spec.custom_weekdays),
            wkst=MO,
            until=until_dt,
        )

    if spec.custom_month_days:
        # rrule skips months that lack a listed day (e.g. the 31st in April).
        return rrule(
            MONTHLY,
            dtstart=dtstart,
            interval=spec.interval,
            bymonthday=sorted(spec.custom_month_days),
            until=until_dt,
        )

    if not _has_position(spec):
        raise ValidationError(
            {"custom_month_weekday": "a month position needs a weekday to build a rule"}
        )
    return rrule(
        MONTHLY,
        dtstart=dtstart,
        interval=spec.interval,
        byweekday=weekday(int(spec.custom_month_weekday), spec.custom_month_position.ordinal),
        until=until_dt,
    )


def _series(spec: RecurrenceSpec, until: Optional[date]) -> Iterator[date]:
    """Yield series dates strictly after the anchor, ascending.

    Plain series are unbounded; callers stop iterating. Rule series stop at
    ``until`` so sparse rules cannot search forever.
    """
    anchor = spec.start_date
    if _uses_rule(spec):
        for dt in _build_rule(spec, until):
            d = dt.date()
            if d > anchor:
                yield d
        return

    if spec.pattern == RecurrencePattern.CUSTOM:
        logger.debug(
            "Custom pattern starting %s has no weekday, month-day or position selector; "
            "stepping by %d week(s)",
            anchor,
            spec.interval,
        )

    k = 1
    while True:
        yield anchor + _step(spec, k)
        k += 1


def next_occurrence(current_date: date, spec: RecurrenceSpec) -> Optional[date]:
    """Return the smallest series date strictly after ``current_date``.

    The series is aligned to ``spec.start_date``; end conditions are not
    applied here. Dates before the anchor resolve to the anchor itself.

    Returns:
        The next date, or None when a selector rule can never match again

    Raises:
        ValidationError: if ``spec.interval`` is below 1
    """
    _check_interval(spec)
    anchor = spec.start_date
    if current_date < anchor:
        return anchor

    if _uses_rule(spec):
        search_until = current_date + relativedelta(months=spec.interval * _RULE_SEARCH_STEPS)
        nxt = _build_rule(spec, search_until).after(datetime.combine(current_date, time()), inc=False)
        return nxt.date() if nxt is not None else None

    if spec.pattern == RecurrencePattern.DAILY:
        step_days = spec.interval
    elif spec.pattern in (RecurrencePattern.WEEKLY, RecurrencePattern.CUSTOM):
        step_days = 7 * spec.interval
    else:
        step_days = 0

    if step_days:
        k = (current_date - anchor).days // step_days + 1
        return anchor + timedelta(days=k * step_days)

    if spec.pattern == RecurrencePattern.MONTHLY:
        elapsed = (current_date.year - anchor.year) * 12 + current_date.month - anchor.month
    else:
        elapsed = current_date.year - anchor.year
    k = max(0, elapsed // spec.interval)
    candidate = anchor + _step(spec, k)
    while candidate <= current_date:
        k += 1
        candidate = anchor + _step(spec, k)
    return candidate


class OccurrenceSequence:
    """Finite, restartable sequence of occurrences.

    Each iteration recomputes the series from the anchor, so the sequence can
    be consumed more than once and always yields the same values.
    """

    def __init__(
        self,
        spec: RecurrenceSpec,
        after: date,
        max_count: Optional[int],
        limit: date,
    ) -> None:
        self.spec = spec
        self.after = after
        self.max_count = max_count
        self.limit = limit

    def __iter__(self) -> Iterator[Occurrence]:
        if self.max_count is not None and self.max_count <= 0:
            return
        max_occurrences = self.spec.max_occurrences
        yielded = 0
        for number, occurrence_date in enumerate(_series(self.spec, self.limit), start=1):
            if max_occurrences is not None and number > max_occurrences:
                break
            if occurrence_date > self.limit:
                break
            if occurrence_date <= self.after:
                continue
            yield Occurrence(occurrence_date, number)
            yielded += 1
            if self.max_count is not None and yielded >= self.max_count:
                break

    def dates(self) -> list[date]:
        return [occ.occurrence_date for occ in self]

    def __repr__(self) -> str:
        return (
            f"OccurrenceSequence(pattern={self.spec.pattern.value}, after={self.after}, "
            f"max_count={self.max_count}, limit={self.limit})"
        )


def enumerate_occurrences(
    start_date: date,
    spec: RecurrenceSpec,
    max_count: Optional[int] = None,
    *,
    today: Optional[date] = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
) -> OccurrenceSequence:
    """Enumerate series dates strictly after ``start_date``.

    Stops at the first of: ``max_count`` yielded, ``end_date`` exceeded,
    ``max_occurrences`` reached (counted from the anchor) or the horizon of
    ``horizon_years`` past today exceeded. A series anchored beyond the
    horizon yields nothing.

    Raises:
        ValidationError: if ``spec.interval`` is below 1
    """
    _check_interval(spec)
    limit = horizon_date(today or _today(), horizon_years)
    if spec.end_date is not None:
        limit = min(limit, spec.end_date)
    return OccurrenceSequence(spec, start_date, max_count, limit)


def preview_occurrences(
    spec: RecurrenceSpec,
    count: int = 10,
    *,
    today: Optional[date] = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
) -> list[date]:
    """Return the first ``count`` dates after the anchor. Pure; nothing is stored."""
    return enumerate_occurrences(
        spec.start_date, spec, count, today=today, horizon_years=horizon_years
    ).dates()
