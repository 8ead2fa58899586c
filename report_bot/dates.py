from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .constants import MONTH_NAMES
from .models import DateRange

_RANGE_RE = re.compile(r"\b(from|between)\s+([a-z0-9 ,/-]+?)\s+(to|and)\s+([a-z0-9 ,/-]+)\b")
_BARE_RANGE_RE = re.compile(r"^\s*([a-z0-9 ,/-]+?)\s+(?:to|until|through|-)\s+([a-z0-9 ,/-]+?)\s*$")
_LAST_N_DAYS_RE = re.compile(r"last\s+(\d{1,3})\s+days?")
_QUARTER_RE = re.compile(r"\bq([1-4])\s*(\d{4})\b")
_YEAR_RE = re.compile(r"\b(\d{4})\b")
_BARE_YEAR_RE = re.compile(r"\d{4}")
_MONTH_RES = [(idx + 1, re.compile(rf"\b{name}\b")) for idx, name in enumerate(MONTH_NAMES)]

_N_WEEKS_RE = re.compile(r"(?:for\s+)?\b(\d{1,2})\s+weeks?")
_N_DAYS_RE = re.compile(r"(?:for\s+)?\b(\d{1,3})\s+days?")


def parse_single_date(raw: str, today: date) -> date | None:
    """Parse one calendar date; missing month or day default to ``today``.

    A bare year means its first day. Text without any digit (weekday names,
    a lone month) is not a date.
    """
    cleaned = raw.strip(" ,.")
    if not cleaned or not any(ch.isdigit() for ch in cleaned):
        return None
    if _BARE_YEAR_RE.fullmatch(cleaned):
        return date(int(cleaned), 1, 1)
    try:
        parsed = date_parser.parse(cleaned, default=datetime.combine(today, time.min))
    except (ValueError, OverflowError):
        return None
    return parsed.date()


def month_range(year: int, month: int) -> DateRange:
    start = date(year, month, 1)
    end = start + relativedelta(months=1) - relativedelta(days=1)
    return DateRange(start=start, end=end)


def quarter_range(quarter: int, year: int) -> DateRange:
    start = date(year, 3 * quarter - 2, 1)
    end = start + relativedelta(months=3) - relativedelta(days=1)
    return DateRange(start=start, end=end)


def year_range(year: int) -> DateRange:
    return DateRange(start=date(year, 1, 1), end=date(year, 12, 31))


def trailing_days(n: int, today: date) -> DateRange:
    return DateRange(start=today - timedelta(days=n - 1), end=today)


def _explicit_range(text: str, today: date) -> DateRange | None:
    match = _RANGE_RE.search(text)
    if match:
        start = parse_single_date(match.group(2), today)
        end = parse_single_date(match.group(4), today)
        if start is not None and end is not None:
            return DateRange(start=start, end=end)

    # The whole input may be a range without a lead word: "march 3 2024 to march 9 2024".
    match = _BARE_RANGE_RE.match(text)
    if match:
        start = parse_single_date(match.group(1), today)
        end = parse_single_date(match.group(2), today)
        if start is not None and end is not None:
            return DateRange(start=start, end=end)
    return None


def _first_pass(raw_text: str, text: str, today: date) -> DateRange | None:
    explicit = _explicit_range(text, today)
    if explicit:
        return explicit

    match = _LAST_N_DAYS_RE.search(text)
    if match and int(match.group(1)) >= 1:
        return trailing_days(int(match.group(1)), today)

    if "this week" in text:
        monday = today - timedelta(days=today.weekday())
        return DateRange(start=monday, end=monday + timedelta(days=6))
    if "last week" in text:
        monday = today - timedelta(days=today.weekday())
        return DateRange(start=monday - timedelta(days=7), end=monday - timedelta(days=1))

    if "this month" in text:
        return month_range(today.year, today.month)
    if "last month" in text:
        previous = today.replace(day=1) - relativedelta(months=1)
        return month_range(previous.year, previous.month)

    current_quarter = (today.month - 1) // 3 + 1
    if "this quarter" in text:
        return quarter_range(current_quarter, today.year)
    if "last quarter" in text:
        if current_quarter == 1:
            return quarter_range(4, today.year - 1)
        return quarter_range(current_quarter - 1, today.year)

    match = _QUARTER_RE.search(text)
    if match:
        return quarter_range(int(match.group(1)), int(match.group(2)))

    for month, pattern in _MONTH_RES:
        if pattern.search(text):
            year_match = _YEAR_RE.search(text)
            year = int(year_match.group(1)) if year_match else today.year
            return month_range(year, month)

    if "today" in text:
        return DateRange(start=today, end=today)
    if "yesterday" in text:
        yesterday = today - timedelta(days=1)
        return DateRange(start=yesterday, end=yesterday)

    if _BARE_YEAR_RE.fullmatch(text.strip()):
        return year_range(int(text.strip()))

    single = parse_single_date(raw_text, today)
    if single is not None:
        return DateRange(start=single, end=single)
    return None


def _second_pass(text: str, today: date) -> DateRange | None:
    match = _N_WEEKS_RE.search(text)
    if match and int(match.group(1)) >= 1:
        return trailing_days(int(match.group(1)) * 7, today)

    match = _N_DAYS_RE.search(text)
    if match and int(match.group(1)) >= 1:
        return trailing_days(int(match.group(1)), today)

    if any(phrase in text for phrase in ("a day", "one day", "day report", "daily")):
        return DateRange(start=today, end=today)

    if any(phrase in text for phrase in ("a week", "one week", "weekly", "past week")):
        return trailing_days(7, today)

    if "monthly" in text:
        return month_range(today.year, today.month)

    if "last year" in text:
        return year_range(today.year - 1)
    if any(phrase in text for phrase in ("this year", "year to date", "ytd")):
        return DateRange(start=date(today.year, 1, 1), end=today)

    return None


def resolve_date_range(text: str, today: date | None = None) -> DateRange | None:
    """Resolve free text into an inclusive calendar range.

    The strict grammar runs first (explicit ranges, relative weeks, months and
    quarters, month names, single dates); looser phrasing such as "2 weeks" or
    "ytd" is only tried when it finds nothing. ``None`` means unrecognized and
    the caller falls back to its defaults. Explicit ranges keep the order the
    user typed, so ``end`` may precede ``start``.
    """
    reference = today or date.today()
    raw_text = (text or "").strip()
    if not raw_text:
        return None

    normalized = raw_text.lower()
    return _first_pass(raw_text, normalized, reference) or _second_pass(normalized, reference)
