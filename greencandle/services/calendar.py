# greencandle/services/calendar.py
"""
IST trading calendar.

A trading day is stored as the absolute instant of 00:00:00 Asia/Kolkata on
that calendar date (e.g. 6 Feb 2026 -> 2026-02-05T18:30:00Z). Every date that
enters the system goes through `normalize_to_trading_day`, and every range
filter is built from `TradingDay.start()` / `TradingDay.end()`, so the server's
own timezone never decides which day a call belongs to.
"""
from __future__ import annotations

import datetime as dt
import re
from functools import total_ordering
from typing import Any, Tuple

import pytz

from greencandle.errors import InvalidDate
from greencandle.settings import settings

IST = pytz.timezone(settings.market_timezone)

_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})")


@total_ordering
class TradingDay:
    """An IST calendar date. Build it through the module functions, not by hand."""

    __slots__ = ("_date",)

    def __init__(self, date: dt.date):
        if isinstance(date, dt.datetime) or not isinstance(date, dt.date):
            raise TypeError("TradingDay wraps a datetime.date; use normalize_to_trading_day()")
        self._date = date

    @classmethod
    def from_instant(cls, instant: dt.datetime) -> "TradingDay":
        """IST day containing an absolute instant. Naive values are read as UTC (Mongo's convention)."""
        if instant.tzinfo is None:
            instant = pytz.utc.localize(instant)
        return cls(instant.astimezone(IST).date())

    @property
    def date(self) -> dt.date:
        return self._date

    @property
    def instant(self) -> dt.datetime:
        """IST midnight as an aware UTC datetime."""
        return self.start()

    def start(self) -> dt.datetime:
        return IST.localize(dt.datetime.combine(self._date, dt.time.min)).astimezone(pytz.utc)

    def end(self) -> dt.datetime:
        """Last millisecond of the IST day (Mongo stores millisecond precision)."""
        last = dt.datetime.combine(self._date, dt.time(23, 59, 59, 999000))
        return IST.localize(last).astimezone(pytz.utc)

    def isoformat(self) -> str:
        return self._date.isoformat()

    def __add__(self, days: int) -> "TradingDay":
        if not isinstance(days, int):
            return NotImplemented
        return TradingDay(self._date + dt.timedelta(days=days))

    def __sub__(self, days: int) -> "TradingDay":
        if not isinstance(days, int):
            return NotImplemented
        return TradingDay(self._date - dt.timedelta(days=days))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TradingDay):
            return NotImplemented
        return self._date == other._date

    def __lt__(self, other: "TradingDay") -> bool:
        if not isinstance(other, TradingDay):
            return NotImplemented
        return self._date < other._date

    def __hash__(self) -> int:
        return hash(self._date)

    def __repr__(self) -> str:
        return f"TradingDay({self._date.isoformat()})"


def normalize_to_trading_day(value: Any) -> TradingDay:
    """
    Map a date-like input onto its trading day.

    Strings and naive datetimes keep only their calendar date:
    "2026-02-06", "2026-02-06T23:10:00Z" and datetime(2026, 2, 6, 4, 0) all
    become 6 Feb 2026. An aware datetime is an absolute instant and lands on
    the IST day containing it, so a stored trading day normalizes to itself.
    Already-normalized values pass through.

    Raises:
        InvalidDate: the input is empty, not date-like, not a real date, or
            outside the range the IST calendar can represent.
    """
    if isinstance(value, TradingDay):
        return value
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None and value.utcoffset() is not None:
            return _checked(TradingDay.from_instant, value, value)
        return _checked(TradingDay, value.date(), value)
    if isinstance(value, dt.date):
        return _checked(TradingDay, value, value)
    if isinstance(value, str):
        m = _ISO_DATE.match(value)
        if not m:
            raise InvalidDate(value)
        y, mo, d = (int(g) for g in m.groups())
        try:
            date = dt.date(y, mo, d)
        except ValueError:
            raise InvalidDate(value) from None
        return _checked(TradingDay, date, value)
    raise InvalidDate(value)


def _checked(build, arg: Any, raw: Any) -> TradingDay:
    # days at the edge of datetime's range have no UTC instant for IST midnight
    try:
        day = build(arg)
        day.start()
        day.end()
    except (OverflowError, ValueError):
        raise InvalidDate(raw) from None
    return day


def day_range(value: Any) -> Tuple[dt.datetime, dt.datetime]:
    """(start, end) of the IST day, both inclusive, as aware UTC datetimes."""
    day = normalize_to_trading_day(value)
    return day.start(), day.end()


def now_ist(now: dt.datetime | None = None) -> dt.datetime:
    now = now or dt.datetime.now(dt.timezone.utc)
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(IST)


def today(now: dt.datetime | None = None) -> TradingDay:
    """Current IST trading day, computed from the absolute clock."""
    return TradingDay(now_ist(now).date())


def days_ago(n: int, now: dt.datetime | None = None) -> TradingDay:
    return today(now) - n


def as_mongo_datetime(value: dt.datetime) -> dt.datetime:
    """Aware -> naive UTC, which is what Motor hands back on reads."""
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value
