"""
Row store interface and in-memory backend.

A row store is a flat table of string cells. Row 1 is the header; data
starts at row 2. Cells are addressed by column letter and 1-based row
number, the same way a spreadsheet addresses them.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from .schema import Col

logger = logging.getLogger(__name__)

HEADER = [
    "Timestamp", "Email Address", "Date reported", "Reported by",
    "Is it a new feature or bug?", "Urgency / Severity", "Screenshot",
    "Bucket", "Description", "Hours invested", "Resolved on",
    "Est. deadline", "Priority", "Developer", "Board status",
    "Dev status", "Cost",
]


class RowStoreError(Exception):
    """Base class for row store failures."""
    pass


class UpstreamUnavailable(RowStoreError):
    """Raised when the backing store cannot be read or written (auth, timeout, network)."""
    pass


def column_index(letter: str) -> int:
    """"A" -> 0, "AA" -> 26."""
    index = 0
    for ch in letter.strip().upper():
        if not "A" <= ch <= "Z":
            raise ValueError(f"Invalid column letter: {letter!r}")
        index = index * 26 + (ord(ch) - ord("A") + 1)
    if index == 0:
        raise ValueError(f"Invalid column letter: {letter!r}")
    return index - 1


class RowStore(ABC):
    """Abstract flat table. Implementations raise UpstreamUnavailable on I/O failure."""

    @abstractmethod
    def fetch_rows(self) -> List[List[str]]:
        """All rows, header first. Rows may be ragged."""

    @abstractmethod
    def append_row(self, values: Sequence[Any]) -> None:
        """Append one row after the last data row."""

    @abstractmethod
    def write_cell(self, column: str, row_number: int, value: Any) -> None:
        """Point write of a single cell."""

    def describe(self) -> str:
        return type(self).__name__


class MemoryRowStore(RowStore):
    """List-backed row store used for mock mode and tests."""

    def __init__(self, rows: Optional[Sequence[Sequence[Any]]] = None, header: Optional[Sequence[str]] = None):
        self._lock = threading.Lock()
        self._rows: List[List[str]] = [list(header if header is not None else HEADER)]
        for row in rows or []:
            self._rows.append([_cell(v) for v in row])

    def fetch_rows(self) -> List[List[str]]:
        with self._lock:
            return [list(r) for r in self._rows]

    def append_row(self, values: Sequence[Any]) -> None:
        with self._lock:
            self._rows.append([_cell(v) for v in values])

    def write_cell(self, column: str, row_number: int, value: Any) -> None:
        if row_number < 2:
            raise RowStoreError(f"Refusing to write header row {row_number}")
        index = column_index(column)
        with self._lock:
            if row_number > len(self._rows):
                # Writing below the table grows it, as a spreadsheet would
                self._rows.extend([] for _ in range(row_number - len(self._rows)))
            row = self._rows[row_number - 1]
            if len(row) <= index:
                row.extend([""] * (index + 1 - len(row)))
            row[index] = _cell(value)
        logger.debug(f"memory write {column}{row_number} = {value!r}")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def sample_rows() -> List[List[str]]:
    """Seed data served when mock mode is on."""
    def row(ts, email, reported, who, kind, severity, bucket, desc, hours,
            resolved="", deadline="", developer="destinpq", board="", dev=""):
        cells = [""] * Col.WIDTH
        cells[Col.TIMESTAMP] = ts
        cells[Col.EMAIL] = email
        cells[Col.DATE_REPORTED] = reported
        cells[Col.REPORTED_BY] = who
        cells[Col.TYPE] = kind
        cells[Col.SEVERITY] = severity
        cells[Col.BUCKET] = bucket
        cells[Col.DESCRIPTION] = desc
        cells[Col.HOURS] = hours
        cells[Col.RESOLVED_ON] = resolved
        cells[Col.EST_DEADLINE] = deadline
        cells[Col.DEVELOPER] = developer
        cells[Col.BOARD_STATUS] = board
        cells[Col.DEV_STATUS] = dev
        return cells

    return [
        row("2023-05-01T00:00:00Z", "john@example.com", "5/1/2023", "John Doe", "Bug",
            "High", "Frontend", "Login page not working on mobile devices", "3.5",
            resolved="5/5/2023", deadline="5/8/2023", board="done", dev="completed"),
        row("2023-05-15T00:00:00Z", "sarah@example.com", "5/15/2023", "Sarah Smith", "New feature",
            "Medium", "Backend", "Add export to CSV functionality", "5",
            resolved="5/20/2023", deadline="5/30/2023", board="done", dev="completed"),
        row("2023-06-05T00:00:00Z", "mike@example.com", "6/5/2023", "Mike Johnson", "Bug",
            "Critical", "Database", "Data not saving to database intermittently", "8",
            deadline="6/12/2023"),
        row("2023-06-15T00:00:00Z", "lisa@example.com", "6/15/2023", "Lisa Wong", "New feature",
            "Low", "UI/UX", "Improve dashboard layout for mobile", "6.5",
            resolved="6/25/2023", board="done", dev="completed"),
        row("2023-07-01T00:00:00Z", "alex@example.com", "7/1/2023", "Alex Kim", "Bug",
            "Medium", "Authentication", "Password reset emails not sending correctly", "2.5",
            deadline="7/10/2023"),
        row("2023-07-20T00:00:00Z", "jamie@example.com", "7/20/2023", "Jamie Taylor", "New feature",
            "High", "Performance", "Optimize database queries for faster loading", "10",
            deadline="8/1/2023", board="in-progress", dev="pending"),
        row("2023-08-05T00:00:00Z", "chris@example.com", "8/5/2023", "Chris Lee", "Bug",
            "Urgent", "Security", "Security vulnerability in login process", "9",
            deadline="8/7/2023", board="review", dev="pending"),
        row("2023-09-10T00:00:00Z", "pat@example.com", "9/10/2023", "Pat Rivera", "New feature",
            "Medium", "Frontend", "Add dark mode support", "7",
            resolved="9/20/2023", board="done", dev="completed"),
        row("2023-10-05T00:00:00Z", "logo@example.com", "10/5/2023", "Logo Team", "New feature",
            "High", "Design", "Create new company logo for website header", "5",
            deadline="10/20/2023"),
    ]
