"""Clock utilities for recurbot with a test-time override."""

from __future__ import annotations

import datetime
import logging
import os

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

TEST_TIME_ENV_VAR = "RECURBOT_TEST_TIME"


class TimeProvider:
    """Provides the current time with test time override support.

    Instances are callable and return today's date, which makes them usable
    wherever the engine accepts a ``TimeProvider`` collaborator.
    """

    def __init__(self, env_var: str = TEST_TIME_ENV_VAR) -> None:
        self.env_var = env_var

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the RECURBOT_TEST_TIME environment
        variable (ISO 8601, e.g. "2024-01-01T09:00:00Z" or "2024-01-01").
        Naive values are treated as UTC.
        """
        test_time = os.environ.get(self.env_var)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                return dt.replace(tzinfo=datetime.timezone.utc)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", self.env_var, test_time, e)

        return datetime.datetime.now(datetime.timezone.utc)

    def today(self) -> datetime.date:
        """Return today's date in UTC."""
        return self.now_utc().date()

    def __call__(self) -> datetime.date:
        return self.today()


_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def today() -> datetime.date:
    """Get today's UTC date (convenience function)."""
    return _time_provider.today()


def horizon_date(from_date: datetime.date, years: int) -> datetime.date:
    """Return the last date inside a generation horizon of ``years`` years."""
    return from_date + relativedelta(years=years)
