"""Shared fixtures for sheet tracker tests."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure the repo root (pkg/, tracker_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.tracker.repository import TaskRepository
from pkg.tracker.rowstore import MemoryRowStore, RowStoreError, UpstreamUnavailable
from pkg.tracker.schema import Col

TODAY = date(2024, 5, 1)


def make_row(**cells) -> list:
    """Full-width row with named cells set, e.g. make_row(TYPE="bug", HOURS="3")."""
    row = [""] * Col.WIDTH
    for name, value in cells.items():
        row[getattr(Col, name)] = value
    return row


# The row used throughout the scenarios: a pending 3h bug due 5/10/2024
LOGIN_BUG = [
    "2024-05-01T00:00:00Z", "a@x.com", "5/1/2024", "Alice", "bug report", "High", "",
    "Frontend", "Login broken", "3", "", "5/10/2024", "", "Bob", "", "",
]


class FlakyRowStore(MemoryRowStore):
    """Memory store whose reads or writes can be made to fail."""

    def __init__(self, rows=None, fail_fetch=False, fail_append=False, fail_writes_after=None):
        super().__init__(rows)
        self.fail_fetch = fail_fetch
        self.fail_append = fail_append
        self.fail_writes_after = fail_writes_after
        self.writes = []

    def fetch_rows(self):
        if self.fail_fetch:
            raise UpstreamUnavailable("fetch timed out")
        return super().fetch_rows()

    def append_row(self, values):
        if self.fail_append:
            raise UpstreamUnavailable("append failed")
        super().append_row(values)

    def write_cell(self, column, row_number, value):
        if self.fail_writes_after is not None and len(self.writes) >= self.fail_writes_after:
            raise RowStoreError(f"write {column}{row_number} rejected")
        self.writes.append((column, row_number, value))
        super().write_cell(column, row_number, value)


@pytest.fixture
def store():
    return FlakyRowStore([
        LOGIN_BUG,
        make_row(TIMESTAMP="2024-05-02T09:00:00Z", DATE_REPORTED="5/2/2024", TYPE="New Feature",
                 BUCKET="Backend", DESCRIPTION="CSV export", HOURS="2", DEVELOPER="Bob"),
        make_row(TIMESTAMP="2024-06-03T10:00:00Z", DATE_REPORTED="6/3/2024", TYPE="Bug",
                 BUCKET="Frontend", DESCRIPTION="Broken footer", HOURS="1.5",
                 RESOLVED_ON="6/4/2024", DEVELOPER="Carol"),
    ])


@pytest.fixture
def repo(store):
    return TaskRepository(store, clock=lambda: TODAY)
