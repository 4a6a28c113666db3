"""
Unit tests for recurbot.domain.pattern_engine

Covers:
- plain daily/weekly/monthly/yearly stepping with month-end clamping
- weekday sets, month-day sets and positional weekdays
- end conditions, max_count and the generation horizon
- global occurrence numbering and restartable sequences
- next_occurrence alignment to the anchor
"""

from datetime import date

import pytest

from recurbot.domain.models import EndCondition, MonthPosition, RecurrencePattern, Weekday
from recurbot.domain.pattern_engine import (
    _build_rule,
    enumerate_occurrences,
    next_occurrence,
    preview_occurrences,
)
from recurbot.exceptions import ValidationError
from tests.utils.helpers import make_spec

pytestmark = [pytest.mark.unit, pytest.mark.fast]

TODAY = date(2024, 1, 1)


def _dates(spec, start=None, max_count=None, horizon_years=5):
    seq = enumerate_occurrences(
        start or spec.start_date, spec, max_count, today=TODAY, horizon_years=horizon_years
    )
    return seq.dates()


def test_enumerate_when_weekly_after_three_then_origin_excluded() -> None:
    spec = make_spec(RecurrencePattern.WEEKLY, end=EndCondition.after(3))

    occurrences = list(enumerate_occurrences(spec.start_date, spec, today=TODAY))

    assert [o.occurrence_date for o in occurrences] == [
        date(2024, 1, 8),
        date(2024, 1, 15),
        date(2024, 1, 22),
    ]
    assert [o.occurrence_number for o in occurrences] == [1, 2, 3]


def test_enumerate_when_first_monday_then_february_and_march() -> None:
    spec = make_spec(
        RecurrencePattern.MONTHLY,
        end=EndCondition.after(2),
        custom_month_position=MonthPosition.FIRST,
        custom_month_weekday=Weekday.MONDAY,
    )

    assert _dates(spec) == [date(2024, 2, 5), date(2024, 3, 4)]


def test_enumerate_when_last_friday_then_last_friday_of_each_month() -> None:
    spec = make_spec(
        RecurrencePattern.MONTHLY,
        custom_month_position=MonthPosition.LAST,
        custom_month_weekday=Weekday.FRIDAY,
    )

    assert _dates(spec, max_count=3) == [date(2024, 1, 26), date(2024, 2, 23), date(2024, 3, 29)]


def test_enumerate_when_monthly_on_31st_then_clamps_without_drift() -> None:
    spec = make_spec(RecurrencePattern.MONTHLY, start=date(2024, 1, 31))

    assert _dates(spec, max_count=4) == [
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


def test_enumerate_when_yearly_from_leap_day_then_feb_28_until_next_leap() -> None:
    spec = make_spec(RecurrencePattern.YEARLY, start=date(2024, 2, 29))

    assert _dates(spec, max_count=4) == [
        date(2025, 2, 28),
        date(2026, 2, 28),
        date(2027, 2, 28),
        date(2028, 2, 29),
    ]


def test_enumerate_when_weekday_set_with_interval_then_wraps_by_interval_weeks() -> None:
    spec = make_spec(
        RecurrencePattern.CUSTOM,
        interval=2,
        custom_weekdays={Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY},
    )

    assert _dates(spec, max_count=5) == [
        date(2024, 1, 3),
        date(2024, 1, 5),
        date(2024, 1, 15),
        date(2024, 1, 17),
        date(2024, 1, 19),
    ]


def test_enumerate_when_month_day_missing_then_month_skipped() -> None:
    spec = make_spec(RecurrencePattern.MONTHLY, start=date(2024, 1, 31), custom_month_days={31})

    assert _dates(spec, max_count=3) == [date(2024, 3, 31), date(2024, 5, 31), date(2024, 7, 31)]


def test_enumerate_when_daily_interval_three_then_every_third_day() -> None:
    spec = make_spec(RecurrencePattern.DAILY, interval=3)

    assert _dates(spec, max_count=3) == [date(2024, 1, 4), date(2024, 1, 7), date(2024, 1, 10)]


@pytest.mark.parametrize(
    "spec",
    [
        make_spec(RecurrencePattern.DAILY),
        make_spec(RecurrencePattern.WEEKLY, interval=3),
        make_spec(RecurrencePattern.MONTHLY, start=date(2024, 1, 30)),
        make_spec(RecurrencePattern.YEARLY, start=date(2024, 2, 29)),
        make_spec(RecurrencePattern.WEEKLY, custom_weekdays={Weekday.TUESDAY, Weekday.SUNDAY}),
        make_spec(RecurrencePattern.CUSTOM, custom_month_days={1, 15, 31}),
        make_spec(
            RecurrencePattern.MONTHLY,
            interval=2,
            custom_month_position=MonthPosition.THIRD,
            custom_month_weekday=Weekday.THURSDAY,
        ),
    ],
)
def test_enumerate_when_any_spec_then_strictly_increasing_without_duplicates(spec) -> None:
    dates = _dates(spec, max_count=60)

    assert dates
    assert all(a < b for a, b in zip(dates, dates[1:]))
    assert len(set(dates)) == len(dates)
    assert all(d > spec.start_date for d in dates)


@pytest.mark.parametrize(
    "pattern",
    [RecurrencePattern.DAILY, RecurrencePattern.WEEKLY, RecurrencePattern.MONTHLY],
)
def test_enumerate_when_end_date_set_then_never_exceeded(pattern) -> None:
    end = date(2024, 6, 15)
    spec = make_spec(pattern, end=EndCondition.on(end))

    dates = _dates(spec)

    assert dates
    assert max(dates) <= end


@pytest.mark.parametrize("k", [1, 2, 7])
def test_enumerate_when_max_occurrences_then_at_most_k(k) -> None:
    spec = make_spec(RecurrencePattern.DAILY, end=EndCondition.after(k))

    assert len(_dates(spec)) == k


def test_enumerate_when_no_match_before_end_then_empty() -> None:
    spec = make_spec(RecurrencePattern.WEEKLY, end=EndCondition.on(date(2024, 1, 5)))

    assert _dates(spec) == []


def test_enumerate_when_unbounded_daily_then_stops_at_horizon() -> None:
    spec = make_spec(RecurrencePattern.DAILY)

    dates = _dates(spec, horizon_years=1)

    assert max(dates) == date(2025, 1, 1)
    assert len(dates) == 366


def test_enumerate_when_anchor_beyond_horizon_then_empty() -> None:
    spec = make_spec(RecurrencePattern.YEARLY, start=date(2034, 1, 1), interval=2)

    assert _dates(spec) == []


def test_enumerate_when_anchor_in_future_then_horizon_measured_from_today() -> None:
    spec = make_spec(RecurrencePattern.YEARLY, start=date(2026, 1, 1))

    assert _dates(spec) == [date(2027, 1, 1), date(2028, 1, 1), date(2029, 1, 1)]


def test_build_rule_when_no_selector_then_validation_error() -> None:
    spec = make_spec(RecurrencePattern.MONTHLY, custom_month_position=MonthPosition.LAST)

    with pytest.raises(ValidationError) as exc_info:
        _build_rule(spec, None)

    assert "custom_month_weekday" in exc_info.value.errors


def test_enumerate_when_started_mid_series_then_numbering_is_global() -> None:
    spec = make_spec(RecurrencePattern.WEEKLY, end=EndCondition.after(3))

    occurrences = list(enumerate_occurrences(date(2024, 1, 10), spec, today=TODAY))

    assert [(o.occurrence_date, o.occurrence_number) for o in occurrences] == [
        (date(2024, 1, 15), 2),
        (date(2024, 1, 22), 3),
    ]


def test_enumerate_when_iterated_twice_then_same_values() -> None:
    spec = make_spec(RecurrencePattern.WEEKLY, custom_weekdays={Weekday.MONDAY, Weekday.THURSDAY})
    seq = enumerate_occurrences(spec.start_date, spec, 10, today=TODAY)

    assert list(seq) == list(seq)
    assert len(list(seq)) == 10


def test_enumerate_when_max_count_zero_then_empty() -> None:
    spec = make_spec(RecurrencePattern.DAILY)

    assert _dates(spec, max_count=0) == []


def test_enumerate_when_interval_zero_then_validation_error() -> None:
    spec = make_spec(RecurrencePattern.DAILY, interval=0)

    with pytest.raises(ValidationError) as exc_info:
        enumerate_occurrences(spec.start_date, spec, 5, today=TODAY)

    assert "interval" in exc_info.value.errors


def test_next_occurrence_when_daily_interval_then_aligned_to_anchor() -> None:
    spec = make_spec(RecurrencePattern.DAILY, interval=3)

    assert next_occurrence(date(2024, 1, 5), spec) == date(2024, 1, 7)
    assert next_occurrence(date(2024, 1, 7), spec) == date(2024, 1, 10)


def test_next_occurrence_when_before_anchor_then_anchor() -> None:
    spec = make_spec(RecurrencePattern.WEEKLY, start=date(2024, 3, 4))

    assert next_occurrence(date(2024, 1, 1), spec) == date(2024, 3, 4)


def test_next_occurrence_when_monthly_clamped_then_returns_to_anchor_day() -> None:
    spec = make_spec(RecurrencePattern.MONTHLY, start=date(2024, 1, 31))

    assert next_occurrence(date(2024, 2, 29), spec) == date(2024, 3, 31)


def test_next_occurrence_when_weekday_set_then_next_listed_day() -> None:
    spec = make_spec(
        RecurrencePattern.WEEKLY, custom_weekdays={Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY}
    )

    assert next_occurrence(date(2024, 1, 3), spec) == date(2024, 1, 5)
    assert next_occurrence(date(2024, 1, 5), spec) == date(2024, 1, 8)


def test_next_occurrence_when_yearly_then_next_anniversary() -> None:
    spec = make_spec(RecurrencePattern.YEARLY, start=date(2020, 6, 1), interval=2)

    assert next_occurrence(date(2024, 6, 1), spec) == date(2026, 6, 1)


def test_next_occurrence_when_interval_zero_then_validation_error() -> None:
    spec = make_spec(RecurrencePattern.WEEKLY, interval=0)

    with pytest.raises(ValidationError):
        next_occurrence(date(2024, 1, 2), spec)


def test_preview_occurrences_when_count_given_then_first_dates_after_anchor() -> None:
    spec = make_spec(RecurrencePattern.MONTHLY, start=date(2024, 1, 15))

    assert preview_occurrences(spec, 3, today=TODAY) == [
        date(2024, 2, 15),
        date(2024, 3, 15),
        date(2024, 4, 15),
    ]
