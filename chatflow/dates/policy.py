"""Year-plausibility policies applied to absolute (non-relative) dates."""

from __future__ import annotations

import abc
import datetime as dt

from dateutil.relativedelta import relativedelta

from ..constants import DEFAULT_BIRTHDAY_MIN_YEAR, DEFAULT_EVENT_YEAR_WINDOW
from .errors import ImplausibleYear


class YearPolicy(metaclass=abc.ABCMeta):
    """Decides whether a resolved date is plausible for its context."""

    name: str = "policy"

    @abc.abstractmethod
    def bounds(self, today: dt.date) -> tuple[int, int]:
        """Inclusive ``(min_year, max_year)`` accepted relative to ``today``."""
        raise NotImplementedError

    def apply(self, resolved: dt.date, today: dt.date, text: str) -> dt.date:
        """Return ``resolved`` (possibly corrected) or raise ``ImplausibleYear``."""
        min_year, max_year = self.bounds(today)
        if not min_year <= resolved.year <= max_year:
            raise ImplausibleYear(text, resolved.year, min_year, max_year)
        return resolved


class EventYearPolicy(YearPolicy):
    """Events fall between this year and ``window`` years ahead.

    A date in the current year whose month/day has already passed is taken
    to mean the same day next year.
    """

    name = "event"

    def __init__(self, window: int = DEFAULT_EVENT_YEAR_WINDOW) -> None:
        self.window = window

    def bounds(self, today: dt.date) -> tuple[int, int]:
        return today.year, today.year + self.window

    def apply(self, resolved: dt.date, today: dt.date, text: str) -> dt.date:
        min_year, max_year = self.bounds(today)
        if resolved.year < min_year:
            raise ImplausibleYear(text, resolved.year, min_year, max_year)
        if resolved.year == today.year and resolved < today:
            resolved = resolved + relativedelta(years=1)
        return super().apply(resolved, today, text)


class BirthdayYearPolicy(YearPolicy):
    """Birthdays fall between ``min_year`` and the current year."""

    name = "birthday"

    def __init__(self, min_year: int = DEFAULT_BIRTHDAY_MIN_YEAR) -> None:
        self.min_year = min_year

    def bounds(self, today: dt.date) -> tuple[int, int]:
        return self.min_year, today.year
