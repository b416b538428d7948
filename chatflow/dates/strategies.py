"""Independent parsing strategies tried in order by the date resolver.

Every strategy receives sanitized text and the caller's "today" and either
returns a calendar date or ``None`` so the next strategy gets a chance.
Strategies marked ``relative`` compute their result from today and are not
subject to year-plausibility correction.
"""

from __future__ import annotations

import abc
import calendar
import datetime as dt
import logging
import re
from typing import Iterator, Literal, Optional

import dateparser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}

WEEKDAYS = {
    "monday": 0,
    "mon": 0,
    "tuesday": 1,
    "tue": 1,
    "tues": 1,
    "wednesday": 2,
    "wed": 2,
    "thursday": 3,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "friday": 4,
    "fri": 4,
    "saturday": 5,
    "sat": 5,
    "sunday": 6,
    "sun": 6,
}

_NUMBER = r"\d{1,4}|" + "|".join(NUMBER_WORDS)
_UNIT = r"day|week|month|year"
_WEEKDAY = "|".join(sorted(WEEKDAYS, key=len, reverse=True))
_MONTH = "|".join(
    sorted(
        {name.lower() for name in (*calendar.month_name, *calendar.month_abbr) if name}
        | {"sept"},
        key=len,
        reverse=True,
    )
)


def _to_int(token: str) -> int:
    token = token.lower()
    return NUMBER_WORDS[token] if token in NUMBER_WORDS else int(token)


def offset_date(today: dt.date, amount: int, unit: str) -> Optional[dt.date]:
    """Shift ``today`` by ``amount`` units; ``None`` if the result overflows."""
    unit = unit.lower().rstrip("s")
    try:
        if unit == "day":
            return today + dt.timedelta(days=amount)
        if unit == "week":
            return today + dt.timedelta(weeks=amount)
        if unit == "month":
            return today + relativedelta(months=amount)
        if unit == "year":
            return today + relativedelta(years=amount)
    except (OverflowError, ValueError):
        return None
    return None


class DateStrategy(metaclass=abc.ABCMeta):
    """One way of turning text into a calendar date."""

    name: str = "strategy"
    relative: bool = False

    @abc.abstractmethod
    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        """Return the date ``text`` denotes, or ``None`` if not recognized."""
        raise NotImplementedError

    def recognizes(self, text: str) -> bool:
        """Whether ``text`` has this strategy's shape even if it was rejected."""
        return False


class ExactNumericStrategy(DateStrategy):
    """``MM/DD/YYYY``, ``YYYY-MM-DD`` and ``MM/DD`` (current year)."""

    name = "exact_numeric"

    _PATTERNS = (
        (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$"), ("month", "day", "year")),
        (re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), ("year", "month", "day")),
        (re.compile(r"^(\d{1,2})/(\d{1,2})$"), ("month", "day")),
    )

    def _components(self, text: str, today: dt.date) -> Iterator[dict[str, int]]:
        for pattern, order in self._PATTERNS:
            match = pattern.match(text)
            if match:
                parts = dict(zip(order, (int(g) for g in match.groups())))
                parts.setdefault("year", today.year)
                yield parts

    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        for parts in self._components(text, today):
            try:
                return dt.date(parts["year"], parts["month"], parts["day"])
            except ValueError:
                logger.debug(f"Rejected impossible calendar date: {text}")
        return None

    def recognizes(self, text: str) -> bool:
        return any(pattern.match(text) for pattern, _ in self._PATTERNS)


class NamedDayStrategy(DateStrategy):
    name = "named_day"
    relative = True

    _OFFSETS = {"today": 0, "tomorrow": 1, "yesterday": -1}

    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        offset = self._OFFSETS.get(text.lower())
        if offset is None:
            return None
        return today + dt.timedelta(days=offset)


class WeekdayStrategy(DateStrategy):
    """``this <weekday>``, ``next <weekday>`` or a bare weekday.

    ``this`` (and a bare weekday) is the next occurrence counting today.
    ``next`` is the occurrence one week after that, so it never coincides
    with ``this``.
    """

    name = "weekday"
    relative = True

    _PATTERN = re.compile(rf"^(?:(this|next|on)\s+)?({_WEEKDAY})$", re.IGNORECASE)

    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        match = self._PATTERN.match(text)
        if not match:
            return None
        qualifier, weekday = match.groups()
        days_ahead = (WEEKDAYS[weekday.lower()] - today.weekday()) % 7
        if qualifier and qualifier.lower() == "next":
            days_ahead += 7
        return today + dt.timedelta(days=days_ahead)


class RelativePeriodStrategy(DateStrategy):
    name = "relative_period"
    relative = True

    _PATTERN = re.compile(rf"^next\s+({_UNIT})$", re.IGNORECASE)

    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        match = self._PATTERN.match(text)
        if not match:
            return None
        return offset_date(today, 1, match.group(1))


class QuantifiedOffsetStrategy(DateStrategy):
    """``<N> <unit> from today|now``, ``in <N> <unit>`` and ``<N> <unit> ago``."""

    name = "quantified_offset"
    relative = True

    _PATTERNS = (
        re.compile(
            rf"^({_NUMBER})\s+({_UNIT})s?\s+from\s+(?:today|now)$", re.IGNORECASE
        ),
        re.compile(rf"^in\s+({_NUMBER})\s+({_UNIT})s?$", re.IGNORECASE),
    )
    _AGO = re.compile(rf"^({_NUMBER})\s+({_UNIT})s?\s+ago$", re.IGNORECASE)

    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        for pattern in self._PATTERNS:
            match = pattern.match(text)
            if match:
                amount, unit = match.groups()
                return offset_date(today, _to_int(amount), unit)
        match = self._AGO.match(text)
        if match:
            amount, unit = match.groups()
            return offset_date(today, -_to_int(amount), unit)
        return None


class CalendarParseStrategy(DateStrategy):
    """Free-form calendar text handed to :mod:`dateparser`.

    ``prefer`` decides which occurrence a year-less date such as "June 25"
    maps to: ``"future"`` for events, ``"past"`` for birthdays.

    Durations and offsets ("3 days ago", "about 2 weeks") and bare numbers
    are left to the relative strategies: text mentioning a unit or "ago" is
    only handed to dateparser when it also names a month or holds a numeric
    date.
    """

    name = "calendar"

    _RELATIVE_WORDS = re.compile(
        rf"\b(?:(?:{_UNIT}|fortnight|hour|minute)s?|ago)\b", re.IGNORECASE
    )
    _ANCHOR = re.compile(rf"\b(?:{_MONTH})\b|\d+[/.-]\d+", re.IGNORECASE)
    _BARE_NUMBER = re.compile(r"^\d+$")

    def __init__(
        self, prefer: Literal["future", "past", "current_period"] = "current_period"
    ) -> None:
        self.prefer = prefer

    def is_relative(self, text: str) -> bool:
        if self._BARE_NUMBER.match(text):
            return True
        if self._ANCHOR.search(text):
            return False
        return bool(self._RELATIVE_WORDS.search(text))

    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        if self.is_relative(text):
            return None
        parsed = dateparser.parse(
            text,
            languages=["en"],
            settings={
                "DATE_ORDER": "MDY",
                "PREFER_DATES_FROM": self.prefer,
                "RELATIVE_BASE": dt.datetime.combine(today, dt.time(12)),
                "RETURN_AS_TIMEZONE_AWARE": False,
            },
        )
        if parsed is None:
            return None
        return parsed.date()


class FuzzyUnitStrategy(DateStrategy):
    """Last resort: any text mentioning a unit word, e.g. "about 2 weeks".

    The offset runs forward from today unless the text says "ago".
    """

    name = "fuzzy_unit"
    relative = True

    _UNIT_PATTERN = re.compile(rf"\b({_UNIT})s?\b", re.IGNORECASE)
    _NUMBER_PATTERN = re.compile(rf"\b({_NUMBER})\b", re.IGNORECASE)
    _AGO_PATTERN = re.compile(r"\bago\b", re.IGNORECASE)

    def try_parse(self, text: str, today: dt.date) -> Optional[dt.date]:
        unit = self._UNIT_PATTERN.search(text)
        if not unit:
            return None
        number = self._NUMBER_PATTERN.search(text)
        amount = _to_int(number.group(1)) if number else 1
        if self._AGO_PATTERN.search(text):
            amount = -amount
        return offset_date(today, amount, unit.group(1))


def default_strategies(
    prefer: Literal["future", "past", "current_period"] = "current_period",
) -> list[DateStrategy]:
    """Return the strategy chain in priority order."""
    return [
        ExactNumericStrategy(),
        NamedDayStrategy(),
        WeekdayStrategy(),
        RelativePeriodStrategy(),
        QuantifiedOffsetStrategy(),
        CalendarParseStrategy(prefer=prefer),
        FuzzyUnitStrategy(),
    ]
