from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from signaldesk.market_hours import ET, next_open, next_open_label


@pytest.mark.parametrize(
    ("moment", "expected"),
    [
        (datetime(2026, 10, 14, 8, 0, tzinfo=ET), "Today, 9:30 AM ET"),
        (datetime(2026, 10, 14, 17, 0, tzinfo=ET), "Tomorrow, 9:30 AM ET"),
        (datetime(2026, 10, 16, 17, 0, tzinfo=ET), "Monday, 9:30 AM ET"),
        (datetime(2026, 10, 17, 12, 0, tzinfo=ET), "Monday, 9:30 AM ET"),
        (datetime(2026, 11, 25, 18, 0, tzinfo=ET), "Friday, 9:30 AM ET"),
    ],
)
def test_next_open_label(moment, expected):
    assert next_open_label(moment) == expected


def test_next_open_converts_from_utc():
    opening = next_open(datetime(2026, 10, 14, 12, 0, tzinfo=ZoneInfo("UTC")))
    assert opening == datetime(2026, 10, 14, 9, 30, tzinfo=ET)
