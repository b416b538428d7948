"""Natural-language date resolution."""

from __future__ import annotations

from .errors import (
    DateParseError,
    ImplausibleYear,
    ImpossibleCalendarDate,
    UnparseableFormat,
)
from .policy import BirthdayYearPolicy, EventYearPolicy, YearPolicy
from .resolver import (
    DateResolver,
    ParsedDate,
    birthday_resolver,
    date_from_timestamp,
    display_date,
    event_date_resolver,
    format_date,
    noon_timestamp,
)
from .strategies import (
    CalendarParseStrategy,
    DateStrategy,
    ExactNumericStrategy,
    FuzzyUnitStrategy,
    NamedDayStrategy,
    QuantifiedOffsetStrategy,
    RelativePeriodStrategy,
    WeekdayStrategy,
    default_strategies,
)

__all__ = [
    "DateParseError",
    "UnparseableFormat",
    "ImpossibleCalendarDate",
    "ImplausibleYear",
    "YearPolicy",
    "EventYearPolicy",
    "BirthdayYearPolicy",
    "DateResolver",
    "ParsedDate",
    "event_date_resolver",
    "birthday_resolver",
    "noon_timestamp",
    "format_date",
    "display_date",
    "date_from_timestamp",
    "DateStrategy",
    "ExactNumericStrategy",
    "NamedDayStrategy",
    "WeekdayStrategy",
    "RelativePeriodStrategy",
    "QuantifiedOffsetStrategy",
    "CalendarParseStrategy",
    "FuzzyUnitStrategy",
    "default_strategies",
]
