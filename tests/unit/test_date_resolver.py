"""Tests for year policies and the resolver chain."""

import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from chatflow.config import ResolverConfig
from chatflow.dates import (
    BirthdayYearPolicy,
    DateResolver,
    EventYearPolicy,
    ImplausibleYear,
    ImpossibleCalendarDate,
    UnparseableFormat,
    birthday_resolver,
    display_date,
    event_date_resolver,
    format_date,
    noon_timestamp,
)
from chatflow.errors import ErrorKind

TODAY = dt.date(2025, 3, 12)
NOW = dt.datetime(2025, 3, 12, 9, 30)


def test_event_policy_moves_passed_dates_to_next_year():
    policy = EventYearPolicy(window=10)
    assert policy.apply(dt.date(2025, 6, 25), TODAY, "") == dt.date(2025, 6, 25)
    assert policy.apply(dt.date(2025, 1, 5), TODAY, "") == dt.date(2026, 1, 5)
    assert policy.apply(TODAY, TODAY, "") == TODAY
    assert policy.apply(dt.date(2035, 12, 31), TODAY, "") == dt.date(2035, 12, 31)


def test_event_policy_rejects_out_of_range_years():
    policy = EventYearPolicy(window=10)
    with pytest.raises(ImplausibleYear) as past:
        policy.apply(dt.date(2024, 6, 25), TODAY, "06/25/2024")
    assert (past.value.min_year, past.value.max_year) == (2025, 2035)
    assert "2025 and 2035" in past.value.message
    with pytest.raises(ImplausibleYear):
        policy.apply(dt.date(2036, 1, 1), TODAY, "01/01/2036")


def test_birthday_policy_bounds():
    policy = BirthdayYearPolicy(min_year=1900)
    assert policy.bounds(TODAY) == (1900, 2025)
    assert policy.apply(dt.date(1969, 4, 20), TODAY, "") == dt.date(1969, 4, 20)
    with pytest.raises(ImplausibleYear):
        policy.apply(dt.date(1815, 12, 10), TODAY, "12/10/1815")
    with pytest.raises(ImplausibleYear):
        policy.apply(dt.date(2026, 1, 1), TODAY, "01/01/2026")


@pytest.mark.parametrize("text", ["03/18/2025", "12/31/2030", "07/04/2035"])
def test_event_round_trip(text):
    parsed = event_date_resolver().resolve(text, NOW)
    assert parsed.format() == text
    assert parsed.strategy == "exact_numeric"


@pytest.mark.parametrize("text", ["12/10/1815", "02/29/2000", "01/01/1990"])
def test_birthday_round_trip(text):
    assert birthday_resolver().resolve(text, NOW).format() == text


@pytest.mark.parametrize("text", ["01/05/2025", "January 5", "2025-02-01"])
def test_event_year_correction(text):
    parsed = event_date_resolver().resolve(text, NOW)
    assert parsed.date.year == 2026


def test_relative_expressions_skip_year_correction():
    parsed = event_date_resolver().resolve("yesterday", NOW)
    assert parsed.date == dt.date(2025, 3, 11)
    assert parsed.strategy == "named_day"


def test_next_weekday_is_never_this_weekday():
    for offset in range(7):
        now = NOW + dt.timedelta(days=offset)
        today = now.date()
        this_friday = event_date_resolver().resolve("this friday", now).date
        next_friday = event_date_resolver().resolve("next Friday", now).date
        assert next_friday.weekday() == 4
        assert next_friday != this_friday
        assert (next_friday - today).days > (this_friday - today).days
        assert (next_friday - today).days >= 7


def test_implausible_year_in_both_contexts():
    with pytest.raises(ImplausibleYear) as event_error:
        event_date_resolver().resolve("06/25/1500", NOW)
    assert event_error.value.input == "06/25/1500"
    assert event_error.value.kind == ErrorKind.INVALID_DATE

    with pytest.raises(ImplausibleYear):
        birthday_resolver().resolve("06/25/1500", NOW)


def test_birthday_minimum_year_is_configurable():
    resolver = birthday_resolver(ResolverConfig(birthday_min_year=1900))
    with pytest.raises(ImplausibleYear) as exc:
        resolver.resolve("12/10/1815", NOW)
    assert "1900 and 2025" in exc.value.message


def test_impossible_calendar_date():
    with pytest.raises(ImpossibleCalendarDate) as exc:
        birthday_resolver().resolve("13/40/1999", NOW)
    assert exc.value.input == "13/40/1999"


def test_unparseable_input_keeps_original_text():
    with pytest.raises(UnparseableFormat) as exc:
        event_date_resolver().resolve("<purple elephant>", NOW)
    assert exc.value.input == "<purple elephant>"
    assert "<" not in exc.value.message
    assert "MM/DD/YYYY" in exc.value.message

    with pytest.raises(UnparseableFormat):
        event_date_resolver().resolve("   ", NOW)


def test_first_matching_strategy_wins():
    resolver = event_date_resolver()
    assert resolver.resolve("in 3 days", NOW).strategy == "quantified_offset"
    assert resolver.resolve("next week", NOW).strategy == "relative_period"
    assert resolver.resolve("March 18, 2025", NOW).strategy == "calendar"
    assert resolver.resolve("roughly three months out", NOW).strategy == "fuzzy_unit"


def test_timestamps_are_local_noon():
    tz = ZoneInfo("America/New_York")
    resolver = DateResolver(EventYearPolicy(), tzinfo=tz)
    parsed = resolver.resolve("03/09/2025", dt.datetime(2025, 3, 1, 23, 0, tzinfo=tz))
    expected = dt.datetime(2025, 3, 9, 12, tzinfo=tz)
    assert parsed.timestamp == int(expected.timestamp() * 1000)
    assert parsed.to_datetime(tz) == expected


def test_resolver_timezone_from_config():
    resolver = event_date_resolver(ResolverConfig(timezone="Europe/Berlin"))
    assert resolver.tzinfo == ZoneInfo("Europe/Berlin")
    assert resolver.now().tzinfo == ZoneInfo("Europe/Berlin")


def test_formatting_helpers():
    day = dt.date(2025, 3, 18)
    assert format_date(day) == "03/18/2025"
    assert display_date(day) == "March 18, 2025"
    assert noon_timestamp(day, dt.timezone.utc) == int(
        dt.datetime(2025, 3, 18, 12, tzinfo=dt.timezone.utc).timestamp() * 1000
    )


def test_past_offsets_skip_event_year_correction():
    now = dt.datetime(2026, 10, 17, 12)
    resolver = event_date_resolver()
    three_days = resolver.resolve("3 days ago", now)
    assert three_days.date == dt.date(2026, 10, 14)
    assert three_days.strategy == "quantified_offset"
    assert resolver.resolve("a week ago", now).date == dt.date(2026, 10, 10)


def test_vague_durations_count_forward_for_birthdays():
    now = dt.datetime(2026, 10, 17, 12)
    parsed = birthday_resolver().resolve("about 2 weeks", now)
    assert parsed.date == dt.date(2026, 10, 31)
    assert parsed.strategy == "fuzzy_unit"


def test_bare_number_is_not_a_date():
    with pytest.raises(UnparseableFormat):
        event_date_resolver().resolve("5", NOW)
