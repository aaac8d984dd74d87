from datetime import datetime, time
from zoneinfo import ZoneInfo

import pytest

from eventfeed.normalize.dates import DateTimeResolver, UnparseableDateError, clean_date_text

LA = ZoneInfo("America/Los_Angeles")


@pytest.fixture()
def resolver():
    return DateTimeResolver("America/Los_Angeles")


def test_year_rolls_forward_when_date_already_passed(resolver):
    resolved = resolver.parse_date("January 5", datetime(2025, 6, 1, tzinfo=LA))
    assert resolved.date().isoformat() == "2026-01-05"


def test_year_kept_when_date_still_ahead(resolver):
    resolved = resolver.parse_date("January 5", datetime(2025, 1, 1, tzinfo=LA))
    assert resolved.date().isoformat() == "2025-01-05"


def test_same_day_is_not_rolled(resolver, reference):
    assert resolver.parse_date("June 1", reference).date().isoformat() == "2025-06-01"


def test_resolved_dates_are_local_midnight(resolver, reference):
    resolved = resolver.parse_date("July 4th", reference)
    assert resolved.tzinfo == LA
    assert (resolved.hour, resolved.minute) == (0, 0)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("March 7th, 2024", "2024-03-07"),
        ("Sep 12", "2025-09-12"),
        ("12/25/2025", "2025-12-25"),
        ("3/15", "2026-03-15"),
        ("Friday, July 4", "2025-07-04"),
        ("Sat, Aug 9", "2025-08-09"),
        ("5 August", "2025-08-05"),
        ("2025-09-10", "2025-09-10"),
        ("2025-09-10T19:00:00-07:00", "2025-09-10"),
        ("  June   21st  ", "2025-06-21"),
    ],
)
def test_explicit_templates(resolver, reference, text, expected):
    assert resolver.parse_date(text, reference).date().isoformat() == expected


def test_relative_dates(resolver, reference):
    assert resolver.parse_date("today", reference).date().isoformat() == "2025-06-01"
    assert resolver.parse_date("Tomorrow", reference).date().isoformat() == "2025-06-02"
    assert resolver.parse_date("this Friday", reference).date().isoformat() == "2025-06-06"
    assert resolver.parse_date("next Friday", reference).date().isoformat() == "2025-06-13"
    assert resolver.parse_date("Every Thursday", reference).date().isoformat() == "2025-06-05"


def test_weekday_matching_reference_day_moves_to_next_week(resolver, reference):
    assert resolver.parse_date("Sunday", reference).date().isoformat() == "2025-06-08"


@pytest.mark.parametrize(
    "reference_day,expected",
    [
        (datetime(2028, 1, 10, tzinfo=LA), "2028-02-29"),
        (datetime(2028, 3, 1, tzinfo=LA), "2032-02-29"),
        (datetime(2025, 6, 1, tzinfo=LA), "2028-02-29"),
    ],
)
def test_leap_day_resolves_to_next_leap_year(resolver, reference_day, expected):
    assert resolver.parse_date("Feb 29", reference_day).date().isoformat() == expected


def test_weekday_inside_unparsed_date_is_not_guessed(resolver, reference):
    with pytest.raises(UnparseableDateError):
        resolver.parse_date("Friday, 7/4/25 7pm", reference)


@pytest.mark.parametrize("text", ["", "   ", "whenever we feel like it", "TBA"])
def test_unparseable_dates_raise(resolver, reference, text):
    with pytest.raises(UnparseableDateError):
        resolver.parse_date(text, reference)


def test_clean_date_text():
    assert clean_date_text("March 1st — 3rd") == "March 1 - 3"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("7pm", time(19, 0)),
        ("7:30 PM", time(19, 30)),
        ("19:00", time(19, 0)),
        ("12am", time(0, 0)),
        ("12 PM", time(12, 0)),
        ("7 p.m.", time(19, 0)),
        ("Doors at 8pm", time(20, 0)),
    ],
)
def test_parse_time(resolver, text, expected):
    assert resolver.parse_time(text) == expected


@pytest.mark.parametrize("text", [None, "", "TBD"])
def test_parse_time_unrecognised(resolver, text):
    assert resolver.parse_time(text) is None


def test_parse_datetime_applies_time(resolver, reference):
    resolved = resolver.parse_datetime("Every Thursday", "7pm", reference)
    assert resolved == datetime(2025, 6, 5, 19, 0, tzinfo=LA)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Every Monday", "weekly:monday"),
        ("every week", "weekly"),
        ("Every day", "daily"),
        ("every month", "monthly"),
        ("1st and 3rd Thursday", "monthly:1,3:thursday"),
        ("First and third Thursday of the month", "monthly:1,3:thursday"),
        ("Every 2nd Tuesday", "monthly:2:tuesday"),
        ("March 5", None),
        ("June 21st Saturday", None),
        ("Saturday the 12th", None),
        (None, None),
    ],
)
def test_detect_recurring_pattern(resolver, text, expected):
    assert resolver.detect_recurring_pattern(text) == expected
