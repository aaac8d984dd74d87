"""Resolution of free-text listing dates and times into absolute values."""
from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from dateutil import parser as dateparser
from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

DEFAULT_TIMEZONE = "America/Los_Angeles"

# Tried in order; the flag tells whether the template carries a year.
DATE_FORMATS: Tuple[Tuple[str, bool], ...] = (
    ("%B %d, %Y", True),
    ("%B %d %Y", True),
    ("%B %d", False),
    ("%b %d, %Y", True),
    ("%b %d %Y", True),
    ("%b %d", False),
    ("%m/%d/%Y", True),
    ("%m/%d/%y", True),
    ("%m/%d", False),
    ("%A, %B %d, %Y", True),
    ("%A, %B %d", False),
    ("%A %B %d", False),
    ("%a, %b %d", False),
    ("%a %b %d", False),
    ("%d %B %Y", True),
    ("%d %b %Y", True),
    ("%d %B", False),
    ("%d %b", False),
)

_LEAP_PLACEHOLDER_YEAR = 2000

TIME_FORMATS: Tuple[str, ...] = (
    "%I:%M %p",
    "%H:%M",
    "%I %p",
    "%I%p",
    "%I:%M%p",
)

WEEKDAYS = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}

WORD_ORDINALS = {"first": "1", "second": "2", "third": "3", "fourth": "4", "fifth": "5"}

_WEEKDAY_ALT = "|".join(WEEKDAYS)
_ORDINAL_SUFFIX_RE = re.compile(r"(\d+)(st|nd|rd|th)\b", re.IGNORECASE)
_DASH_RE = re.compile(r"[\u2010-\u2015\u2212]")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_EVERY_WEEKDAY_RE = re.compile(rf"every\s*({_WEEKDAY_ALT})")
_RELATIVE_WEEKDAY_RE = re.compile(rf"^(?:(next|this)\s+)?({_WEEKDAY_ALT})$")
_ORDINAL_TOKEN = r"\b(?:[1-5](?:st|nd|rd|th)|first|second|third|fourth|fifth)\b"
_ORDINAL_WEEKDAY_RE = re.compile(
    rf"({_ORDINAL_TOKEN}(?:\s*(?:,|and|&)\s*{_ORDINAL_TOKEN})*)\s+({_WEEKDAY_ALT})"
)
_SIMPLE_TIME_RE = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(AM|PM)?")


class UnparseableDateError(ValueError):
    """Raised when no date rule matches the supplied text."""

    def __init__(self, text: str) -> None:
        super().__init__(f"Could not parse date: {text!r}")
        self.text = text


def clean_date_text(text: str) -> str:
    """Strip ordinal suffixes, unify dashes and collapse whitespace."""
    cleaned = _ORDINAL_SUFFIX_RE.sub(r"\1", text)
    cleaned = _DASH_RE.sub("-", cleaned)
    return " ".join(cleaned.split())


def clean_time_text(text: str) -> str:
    return " ".join(text.upper().replace(".", "").split())


class DateTimeResolver:
    """Turns listing phrases such as "Every Thursday" or "Jan 5th" into dates.

    All resolved dates are midnight in the resolver's timezone. Year-less
    dates are biased towards the future: they resolve to the first year in
    which that month and day falls on or after the reference day.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE) -> None:
        self._tz = ZoneInfo(timezone)

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def localise(self, reference: Optional[datetime]) -> datetime:
        """Return the reference instant expressed in the resolver's timezone."""
        if reference is None:
            return self.now()
        if reference.tzinfo is None:
            return reference.replace(tzinfo=self._tz)
        return reference.astimezone(self._tz)

    def _midnight(self, day: date) -> datetime:
        return datetime(day.year, day.month, day.day, tzinfo=self._tz)

    def parse_date(self, text: str, reference: Optional[datetime] = None) -> datetime:
        """Resolve ``text`` to a calendar date or raise UnparseableDateError."""
        if not text or not text.strip():
            raise UnparseableDateError(text or "")
        cleaned = clean_date_text(text)
        ref = self.localise(reference)

        if _ISO_RE.match(cleaned):
            try:
                parsed = dateparser.isoparse(cleaned)
            except ValueError:
                pass
            else:
                if parsed.tzinfo is not None:
                    parsed = parsed.astimezone(self._tz)
                return self._midnight(parsed.date())

        resolved = self._parse_templates(cleaned, ref)
        if resolved is not None:
            return resolved

        resolved = self._parse_relative(cleaned, ref)
        if resolved is not None:
            return resolved

        raise UnparseableDateError(text)

    def _parse_templates(self, cleaned: str, ref: datetime) -> Optional[datetime]:
        for fmt, has_year in DATE_FORMATS:
            candidate, pattern = cleaned, fmt
            if not has_year:
                # Leap placeholder so "Feb 29" parses; the real year is chosen below.
                candidate, pattern = f"{cleaned} {_LEAP_PLACEHOLDER_YEAR}", f"{fmt} %Y"
            try:
                parsed = datetime.strptime(candidate, pattern).date()
            except ValueError:
                continue
            if not has_year:
                parsed = self._upcoming(parsed.month, parsed.day, ref.date())
            return self._midnight(parsed)
        return None

    @staticmethod
    def _upcoming(month: int, day: int, today: date) -> date:
        """First occurrence of month/day on or after ``today``."""
        year = today.year
        while True:
            try:
                candidate = date(year, month, day)
            except ValueError:
                # Feb 29 outside a leap year.
                year += 1
                continue
            if candidate >= today:
                return candidate
            year += 1

    def _parse_relative(self, cleaned: str, ref: datetime) -> Optional[datetime]:
        lower = cleaned.lower()
        today = ref.date()
        if lower == "today":
            return self._midnight(today)
        if lower == "tomorrow":
            return self._midnight(today + relativedelta(days=1))

        every = _EVERY_WEEKDAY_RE.search(lower)
        if every:
            return self._midnight(self._next_weekday(today, every.group(1)))

        match = _RELATIVE_WEEKDAY_RE.search(lower)
        if match:
            resolved = self._next_weekday(today, match.group(2))
            if match.group(1) == "next":
                resolved = resolved + relativedelta(weeks=1)
            return self._midnight(resolved)
        return None

    @staticmethod
    def _next_weekday(today: date, name: str) -> date:
        # Strictly after today, even when today is the requested weekday.
        return today + relativedelta(days=1, weekday=WEEKDAYS[name](+1))

    def parse_time(self, text: Optional[str]) -> Optional[time]:
        """Parse "7pm", "7:30 PM", "19:00" and similar; None when unrecognised."""
        if not text or not text.strip():
            return None
        cleaned = clean_time_text(text)
        for fmt in TIME_FORMATS:
            try:
                return datetime.strptime(cleaned, fmt).time()
            except ValueError:
                continue

        match = _SIMPLE_TIME_RE.search(cleaned)
        if not match:
            return None
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.group(2) else 0
        period = match.group(3)
        if period == "PM" and hour != 12:
            hour += 12
        if period == "AM" and hour == 12:
            hour = 0
        if hour > 23 or minute > 59:
            return None
        return time(hour, minute)

    def parse_datetime(
        self,
        date_text: str,
        time_text: Optional[str] = None,
        reference: Optional[datetime] = None,
    ) -> datetime:
        """Resolve a date and, when parseable, move it to the given time of day."""
        resolved = self.parse_date(date_text, reference)
        parsed_time = self.parse_time(time_text)
        if parsed_time is not None:
            resolved = resolved.replace(hour=parsed_time.hour, minute=parsed_time.minute)
        return resolved

    def detect_recurring_pattern(self, text: Optional[str]) -> Optional[str]:
        """Return a recurrence tag such as ``weekly:monday`` or ``monthly:1,3:thursday``."""
        if not text:
            return None
        lower = " ".join(text.lower().split())

        if "every" in lower:
            every = _EVERY_WEEKDAY_RE.search(lower)
            if every:
                return f"weekly:{every.group(1)}"

        ordinal = _ORDINAL_WEEKDAY_RE.search(lower)
        if ordinal:
            tokens = re.findall(_ORDINAL_TOKEN, ordinal.group(1))
            numbers = [WORD_ORDINALS.get(token) or re.sub(r"\D", "", token) for token in tokens]
            return f"monthly:{','.join(numbers)}:{ordinal.group(2)}"

        if "every" in lower:
            if re.search(r"\bweek", lower):
                return "weekly"
            if re.search(r"\bmonth", lower):
                return "monthly"
            if re.search(r"\bday\b", lower):
                return "daily"
        return None
