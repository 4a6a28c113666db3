"""Unit tests for pattern descriptions and presets."""

from datetime import date

import pytest

from recurbot.domain.models import EndCondition, MonthPosition, RecurrencePattern, Weekday
from recurbot.domain.pattern_format import (
    PATTERN_PRESETS,
    build_preset,
    describe,
    describe_end_condition,
    describe_pattern,
    ordinal_suffix,
)
from recurbot.exceptions import ValidationError
from tests.utils.helpers import make_spec

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "spec,expected",
    [
        (make_spec(RecurrencePattern.DAILY), "Daily"),
        (make_spec(RecurrencePattern.DAILY, interval=3), "Every 3 days"),
        (make_spec(RecurrencePattern.WEEKLY, interval=2), "Every 2 weeks"),
        (
            make_spec(RecurrencePattern.CUSTOM, custom_weekdays={Weekday.FRIDAY, Weekday.MONDAY, Weekday.WEDNESDAY}),
            "Weekly on Mon, Wed, Fri",
        ),
        (make_spec(RecurrencePattern.MONTHLY, custom_month_days={15, 1}), "Monthly on the 1st, 15th"),
        (
            make_spec(
                RecurrencePattern.MONTHLY,
                interval=2,
                custom_month_position=MonthPosition.LAST,
                custom_month_weekday=Weekday.FRIDAY,
            ),
            "Every 2 months on the last Friday",
        ),
        (make_spec(RecurrencePattern.YEARLY), "Yearly"),
    ],
)
def test_describe_pattern_when_spec_then_text(spec, expected) -> None:
    assert describe_pattern(spec) == expected


@pytest.mark.parametrize(
    "end,expected",
    [
        (None, "Never ends"),
        (EndCondition.on(date(2025, 3, 9)), "Ends on March 9, 2025"),
        (EndCondition.after(1), "Ends after 1 occurrence"),
        (EndCondition.after(3), "Ends after 3 occurrences"),
    ],
)
def test_describe_end_condition_when_kind_then_text(end, expected) -> None:
    assert describe_end_condition(make_spec(RecurrencePattern.DAILY, end=end)) == expected


def test_describe_when_combined_then_cadence_and_end() -> None:
    spec = make_spec(RecurrencePattern.WEEKLY, end=EndCondition.after(3))

    assert describe(spec) == "Weekly; ends after 3 occurrences"


@pytest.mark.parametrize("day,expected", [(1, "1st"), (2, "2nd"), (3, "3rd"), (11, "11th"), (22, "22nd"), (31, "31st")])
def test_ordinal_suffix(day, expected) -> None:
    assert ordinal_suffix(day) == expected


@pytest.mark.parametrize("preset_id", sorted(PATTERN_PRESETS))
def test_build_preset_when_known_then_anchored_spec(preset_id) -> None:
    spec = build_preset(preset_id, date(2024, 1, 1))

    assert spec.start_date == date(2024, 1, 1)
    assert describe_pattern(spec)


def test_build_preset_when_weekdays_then_five_days() -> None:
    spec = build_preset("weekdays", date(2024, 1, 1), end_condition=EndCondition.after(10))

    assert len(spec.custom_weekdays) == 5
    assert spec.max_occurrences == 10


def test_build_preset_when_unknown_then_validation_error() -> None:
    with pytest.raises(ValidationError) as exc_info:
        build_preset("hourly", date(2024, 1, 1))

    assert "preset" in exc_info.value.errors
