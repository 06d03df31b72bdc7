# app/core/helpers/date_utils.py
import calendar
import re
from datetime import date, datetime
from typing import Optional, Tuple

from loguru import logger

MONTHS = {name.lower(): index for index, name in enumerate(calendar.month_name) if name}
MONTHS.update({name.lower(): index for index, name in enumerate(calendar.month_abbr) if name})

RELATIVE_UNITS = ("day", "week", "month", "quarter", "year")

_LAST_N = re.compile(r"\b(?:last|past|previous)\s+(\d{1,4})\s+(day|week|month|year)s?\b")
_THIS_LAST = re.compile(r"\b(this|current|last|previous|past)\s+(week|month|quarter|year)\b")


def parse_date_string(date_string: str) -> date:
    """Parse date string handling different formats"""
    try:
        # Try ISO format first (with time)
        return datetime.fromisoformat(date_string).date()
    except ValueError:
        # Try other common formats
        for fmt in ['%Y-%m-%d', '%Y/%m/%d', '%d/%m/%Y', '%d-%m-%Y', '%Y-%m-%d %H:%M:%S']:
            try:
                return datetime.strptime(date_string, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Unable to parse date format: {date_string}")


def normalize_relative(expression: str) -> Optional[str]:
    """
    Canonical form of a relative time expression

    Args:
        expression: Free text such as "past 30 days" or "this month"

    Returns:
        "today", "yesterday", "this <unit>", "last <unit>", "last N <unit>s" or None
    """
    text = expression.strip().lower()
    if re.search(r"\btoday\b", text):
        return "today"
    if re.search(r"\byesterday\b", text):
        return "yesterday"

    match = _LAST_N.search(text)
    if match:
        amount = int(match.group(1))
        if amount < 1:
            return None
        unit = match.group(2)
        return f"last {amount} {unit}{'s' if amount != 1 else ''}"

    match = _THIS_LAST.search(text)
    if match:
        which = "this" if match.group(1) in ("this", "current") else "last"
        return f"{which} {match.group(2)}"
    return None


def split_relative(relative: str) -> Tuple[str, int, str]:
    """
    Break a canonical relative expression into (kind, amount, unit)

    kind is one of "today", "yesterday", "this", "last", "last_n"
    """
    text = relative.strip().lower()
    if text in ("today", "yesterday"):
        return text, 0, "day"
    match = re.fullmatch(r"last (\d+) (day|week|month|year)s?", text)
    if match:
        return "last_n", int(match.group(1)), match.group(2)
    match = re.fullmatch(r"(this|last) (week|month|quarter|year)", text)
    if match:
        return match.group(1), 1, match.group(2)
    raise ValueError(f"Unsupported relative time expression: {relative}")


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def year_bounds(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


_ISO_DATE = r"(\d{4}-\d{2}-\d{2}|\d{4}/\d{2}/\d{2})"
_BETWEEN = re.compile(rf"\bbetween\s+{_ISO_DATE}\s+and\s+{_ISO_DATE}")
_FROM_TO = re.compile(rf"\bfrom\s+{_ISO_DATE}\s+(?:to|until|till)\s+{_ISO_DATE}")
_SINCE = re.compile(rf"\b(?:since|after|from)\s+{_ISO_DATE}")
_BEFORE = re.compile(rf"\b(?:before|until|till)\s+{_ISO_DATE}")
_ON = re.compile(rf"\bon\s+{_ISO_DATE}")
_MONTH_YEAR = re.compile(r"\b(?:in\s+)?(" + "|".join(sorted(MONTHS, key=len, reverse=True)) + r")\.?\s+(\d{4})\b")
_IN_YEAR = re.compile(r"\b(?:in|during)\s+(\d{4})\b")


def extract_absolute_range(text: str) -> Optional[Tuple[Optional[date], Optional[date], str]]:
    """
    Find an absolute date range in a question

    Returns:
        (start, end, matched_text) or None. Either bound may be None.
    """
    lowered = text.lower()
    try:
        for pattern in (_BETWEEN, _FROM_TO):
            match = pattern.search(lowered)
            if match:
                start, end = parse_date_string(match.group(1)), parse_date_string(match.group(2))
                if start > end:
                    start, end = end, start
                return start, end, match.group(0)

        match = _ON.search(lowered)
        if match:
            day = parse_date_string(match.group(1))
            return day, day, match.group(0)

        since = _SINCE.search(lowered)
        before = _BEFORE.search(lowered)
        if since or before:
            start = parse_date_string(since.group(1)) if since else None
            end = parse_date_string(before.group(1)) if before else None
            if start and end and start > end:
                return None
            return start, end, (since or before).group(0)

        match = _MONTH_YEAR.search(lowered)
        if match:
            start, end = month_bounds(int(match.group(2)), MONTHS[match.group(1)])
            return start, end, match.group(0)

        match = _IN_YEAR.search(lowered)
        if match:
            start, end = year_bounds(int(match.group(1)))
            return start, end, match.group(0)
    except ValueError as e:
        logger.debug(f"Ignoring unparseable date in question: {e}")
    return None
