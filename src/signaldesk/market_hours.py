"""US equity session clock used by the market-closed remedy."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

ET = ZoneInfo("America/New_York")

MARKET_OPEN = time(9, 30)
MARKET_HOURS_LABEL = "Mon-Fri: 9:30 AM - 4:00 PM ET"

# Full-day closures (update annually)
US_HOLIDAYS = frozenset(
    {
        date(2026, 1, 1),
        date(2026, 1, 19),
        date(2026, 2, 16),
        date(2026, 4, 3),
        date(2026, 5, 25),
        date(2026, 7, 3),
        date(2026, 9, 7),
        date(2026, 11, 26),
        date(2026, 12, 25),
    }
)


def to_et(moment: datetime | None) -> datetime:
    if moment is None:
        return datetime.now(ET)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=ET)
    return moment.astimezone(ET)


def is_trading_day(day: date) -> bool:
    return day.weekday() < 5 and day not in US_HOLIDAYS


def next_open(moment: datetime | None = None) -> datetime:
    """Next regular-session open strictly after ``moment`` unless it is before today's open."""
    now = to_et(moment)
    day = now.date()
    if not (is_trading_day(day) and now.time() < MARKET_OPEN):
        day += timedelta(days=1)
        while not is_trading_day(day):
            day += timedelta(days=1)
    return datetime.combine(day, MARKET_OPEN, tzinfo=ET)


def next_open_label(moment: datetime | None = None) -> str:
    now = to_et(moment)
    opening = next_open(now)
    if opening.date() == now.date():
        day_label = "Today"
    elif opening.date() == now.date() + timedelta(days=1):
        day_label = "Tomorrow"
    else:
        day_label = opening.strftime("%A")
    return f"{day_label}, 9:30 AM ET"


__all__ = [
    "ET",
    "to_et",
    "MARKET_HOURS_LABEL",
    "is_trading_day",
    "next_open",
    "next_open_label",
]
