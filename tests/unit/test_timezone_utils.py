"""Unit tests for recurbot.core.timezone_utils."""

import datetime

import pytest

from recurbot.core.timezone_utils import TimeProvider, horizon_date, today

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def test_today_when_test_time_set_then_overridden(monkeypatch) -> None:
    monkeypatch.setenv("RECURBOT_TEST_TIME", "2024-03-10T23:30:00-05:00")

    # 23:30 at UTC-5 is already the next day in UTC
    assert today() == datetime.date(2024, 3, 11)


def test_now_utc_when_naive_test_time_then_treated_as_utc(monkeypatch) -> None:
    monkeypatch.setenv("RECURBOT_TEST_TIME", "2024-01-01T08:00:00")

    now = TimeProvider().now_utc()

    assert now == datetime.datetime(2024, 1, 1, 8, 0, tzinfo=datetime.timezone.utc)


def test_now_utc_when_unparseable_then_real_time(monkeypatch) -> None:
    monkeypatch.setenv("RECURBOT_TEST_TIME", "yesterday-ish")

    now = TimeProvider().now_utc()

    assert now.tzinfo is not None
    assert now.year >= 2024


def test_time_provider_when_called_then_returns_date(monkeypatch) -> None:
    monkeypatch.setenv("RECURBOT_TEST_TIME", "2024-06-01")

    assert TimeProvider()() == datetime.date(2024, 6, 1)


def test_horizon_date_when_leap_day_then_clamped() -> None:
    assert horizon_date(datetime.date(2024, 2, 29), 5) == datetime.date(2029, 2, 28)
