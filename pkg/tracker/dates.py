"""
Date parsing for loosely formatted sheet cells.

Cells come from people typing into a form or a spreadsheet, so the same
column holds "5/10/2024", "2024-05-10", "10.05.2024" and the occasional
"May 10, 2024". Parsing is an ordered list of strategies; the first one that
produces a date wins and a failure never escapes the chain.
"""
import re
from datetime import date, datetime
from typing import Callable, List, Optional

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# (shape, strptime format). The shape check keeps a strategy from
# accepting input meant for a later one.
_FORMATS = [
    (r"\d{1,2}/\d{1,2}/\d{4}", "%m/%d/%Y"),    # M/d/yyyy
    (r"\d{1,2}/\d{1,2}/\d{4}", "%d/%m/%Y"),    # d/M/yyyy
    (r"\d{4}/\d{2}/\d{2}", "%Y/%m/%d"),        # yyyy/MM/dd
    (r"\d{4}-\d{2}-\d{2}", "%Y-%m-%d"),        # yyyy-MM-dd
    (r"\d{2}-\d{2}-\d{4}", "%d-%m-%Y"),        # dd-MM-yyyy
    (r"\d{2}\.\d{2}\.\d{4}", "%d.%m.%Y"),      # dd.MM.yyyy
]

_TEXTUAL_FORMATS = (
    "%B %d, %Y", "%b %d, %Y", "%B %d %Y", "%b %d %Y",
    "%d %B %Y", "%d %b %Y", "%a %b %d %Y",
)


def _pattern(shape: str, fmt: str) -> Callable[[str], Optional[date]]:
    regex = re.compile(shape)

    def parse(value: str) -> Optional[date]:
        if not regex.fullmatch(value):
            return None
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            return None

    parse.__name__ = f"parse_{fmt}"
    return parse


def _parse_iso(value: str) -> Optional[date]:
    """ISO-8601 dates and timestamps, including a trailing "Z"."""
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _parse_textual(value: str) -> Optional[date]:
    """Month-name forms such as "May 10, 2024" or "10 May 2024"."""
    text = " ".join(value.split())
    for fmt in _TEXTUAL_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


STRATEGIES: List[Callable[[str], Optional[date]]] = [
    _pattern(shape, fmt) for shape, fmt in _FORMATS
] + [_parse_iso, _parse_textual]


def parse_date(value: str) -> Optional[date]:
    """Try every strategy in order; None when nothing matches."""
    text = (value or "").strip()
    if not text:
        return None
    for strategy in STRATEGIES:
        parsed = strategy(text)
        if parsed is not None:
            return parsed
    return None


def month_name(value: date) -> str:
    return MONTH_NAMES[value.month - 1]


def month_of(date_reported: str, today: Optional[date] = None) -> str:
    """
    Long month name of a report date.

    An unparseable date is filed under the current month, not dropped.
    """
    parsed = parse_date(date_reported)
    if parsed is None:
        parsed = today or date.today()
    return month_name(parsed)


def days_until(deadline: str, today: Optional[date] = None) -> Optional[int]:
    """Whole days from today to the deadline (negative when overdue)."""
    parsed = parse_date(deadline)
    if parsed is None:
        return None
    return (parsed - (today or date.today())).days


def format_sheet_date(value: date) -> str:
    """M/D/YYYY, the way the sheet's locale writes dates."""
    return f"{value.month}/{value.day}/{value.year}"
