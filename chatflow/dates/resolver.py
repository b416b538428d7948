"""Free-form date resolution with year-plausibility correction."""

from __future__ import annotations

import calendar
import datetime as dt
import logging
from typing import Literal, Optional, Sequence
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from ..config import ResolverConfig
from ..validation import sanitize_input
from .errors import ImpossibleCalendarDate, UnparseableFormat
from .policy import BirthdayYearPolicy, EventYearPolicy, YearPolicy
from .strategies import DateStrategy, default_strategies

logger = logging.getLogger(__name__)


def noon_timestamp(day: dt.date, tzinfo: Optional[dt.tzinfo] = None) -> int:
    """Milliseconds since epoch at noon of ``day``.

    Without ``tzinfo`` the system local time zone is used.
    """
    moment = dt.datetime.combine(day, dt.time(12), tzinfo=tzinfo)
    return int(moment.timestamp() * 1000)


def format_date(day: dt.date) -> str:
    """``MM/DD/YYYY``."""
    return f"{day.month:02d}/{day.day:02d}/{day.year:04d}"


def display_date(day: dt.date) -> str:
    """Human readable form, e.g. ``March 18, 2025``."""
    return f"{calendar.month_name[day.month]} {day.day}, {day.year}"


def date_from_timestamp(timestamp: int, tzinfo: Optional[dt.tzinfo] = None) -> dt.date:
    return dt.datetime.fromtimestamp(timestamp / 1000, tzinfo).date()


class ParsedDate(BaseModel):
    """Resolver output: a local-noon timestamp and the strategy that found it."""

    timestamp: int
    date: dt.date
    strategy: str

    def to_datetime(self, tzinfo: Optional[dt.tzinfo] = None) -> dt.datetime:
        return dt.datetime.fromtimestamp(self.timestamp / 1000, tzinfo)

    def format(self) -> str:
        return format_date(self.date)

    def display(self) -> str:
        return display_date(self.date)


class DateResolver:
    """Runs the strategy chain and applies the context's year policy."""

    def __init__(
        self,
        policy: YearPolicy,
        strategies: Optional[Sequence[DateStrategy]] = None,
        tzinfo: Optional[dt.tzinfo] = None,
    ) -> None:
        self.policy = policy
        self.strategies = list(strategies or default_strategies())
        self.tzinfo = tzinfo

    def now(self) -> dt.datetime:
        return dt.datetime.now(self.tzinfo)

    def resolve(self, text: str, now: Optional[dt.datetime] = None) -> ParsedDate:
        """Resolve ``text`` to a :class:`ParsedDate`.

        Raises:
            UnparseableFormat: no strategy recognized the text.
            ImpossibleCalendarDate: a numeric format matched but names a day
                that does not exist.
            ImplausibleYear: the year is outside the policy's range.
        """
        raw = "" if text is None else str(text)
        cleaned = sanitize_input(raw)
        if not cleaned:
            raise UnparseableFormat(raw)

        now = now or self.now()
        today = now.date()
        tzinfo = now.tzinfo or self.tzinfo

        for strategy in self.strategies:
            found = strategy.try_parse(cleaned, today)
            if found is None:
                continue
            if not strategy.relative:
                found = self.policy.apply(found, today, raw)
            logger.debug(
                f"Resolved date input via {strategy.name} ({self.policy.name}): {found}"
            )
            return ParsedDate(
                timestamp=noon_timestamp(found, tzinfo),
                date=found,
                strategy=strategy.name,
            )

        if any(strategy.recognizes(cleaned) for strategy in self.strategies):
            raise ImpossibleCalendarDate(raw)
        raise UnparseableFormat(raw)


def _tzinfo(config: Optional[ResolverConfig]) -> Optional[dt.tzinfo]:
    if config is not None and config.timezone:
        return ZoneInfo(config.timezone)
    return None


def _resolver(
    policy: YearPolicy,
    prefer: Literal["future", "past", "current_period"],
    config: Optional[ResolverConfig],
) -> DateResolver:
    return DateResolver(
        policy, strategies=default_strategies(prefer=prefer), tzinfo=_tzinfo(config)
    )


def event_date_resolver(config: Optional[ResolverConfig] = None) -> DateResolver:
    """Resolver for event dates: this year up to the configured window."""
    config = config or ResolverConfig()
    return _resolver(EventYearPolicy(config.event_year_window), "future", config)


def birthday_resolver(config: Optional[ResolverConfig] = None) -> DateResolver:
    """Resolver for birthdays: the configured minimum year up to this year."""
    config = config or ResolverConfig()
    return _resolver(BirthdayYearPolicy(config.birthday_min_year), "past", config)
