# Sheet tracker: row normalizer
#
# Every spreadsheet row is turned into a Task here before anything else
# touches it.
#
# RULES:
#   - Columns are positional (schema.Col); short rows are padded with ""
#   - Blank cells get defaults, never errors
#   - cost and status are NOT read from the row (Task computes them)
#   - A row that still fails is logged and skipped (None), never fatal
#   - No I/O, no mutation of the input row

import logging
import math
from datetime import date
from typing import List, Optional, Sequence

from .dates import days_until, month_of
from .schema import (
    ACTIVE_STATUSES,
    DEADLINE_MET,
    DEFAULT_BUCKET,
    DEFAULT_DEVELOPER,
    DEFAULT_SEVERITY,
    Col,
    KanbanStatus,
    Task,
    TaskType,
)

logger = logging.getLogger(__name__)


def _cells(row: Sequence) -> List[str]:
    """Copy the row as stripped strings, padded to the full column width."""
    cells = ["" if v is None else str(v).strip() for v in row]
    if len(cells) < Col.WIDTH:
        cells.extend([""] * (Col.WIDTH - len(cells)))
    return cells


def parse_hours(value: str) -> float:
    """Hours cell -> non-negative float; anything unreadable is 0."""
    try:
        hours = float(value.replace(",", "")) if value else 0.0
    except ValueError:
        return 0.0
    if math.isnan(hours) or math.isinf(hours) or hours < 0:
        return 0.0
    return hours


def derive_kanban_status(board_cell: str, dev_cell: str, resolved_on: str) -> KanbanStatus:
    """
    Board status, highest precedence first:
      1. the task has a resolved date -> done
      2. board cell says in-progress/review
      3. dev cell says in-progress/review
      4. either cell says done
      5. todo

    A resolved task is always done; moving a task off done clears the
    resolved date, so the cells only disagree after a manual edit.
    """
    if resolved_on:
        return KanbanStatus.DONE
    board = KanbanStatus.parse(board_cell)
    dev = KanbanStatus.parse(dev_cell)
    if board in ACTIVE_STATUSES:
        return board
    if dev in ACTIVE_STATUSES:
        return dev
    if KanbanStatus.DONE in (board, dev):
        return KanbanStatus.DONE
    return KanbanStatus.TODO


def normalize(row: Sequence, row_index: int, today: Optional[date] = None) -> Optional[Task]:
    """
    Build a Task from one data row.

    row_index is the 0-based position below the header; together with the
    timestamp cell it forms the task id. Returns None (and logs) if the row
    cannot be derived.
    """
    try:
        c = _cells(row)
        resolved_on = c[Col.RESOLVED_ON]
        kanban_status = derive_kanban_status(
            c[Col.BOARD_STATUS], c[Col.DEV_STATUS], resolved_on
        )

        if resolved_on or kanban_status == KanbanStatus.DONE:
            remaining = DEADLINE_MET
        else:
            remaining = days_until(c[Col.EST_DEADLINE], today)

        return Task(
            id=f"{c[Col.TIMESTAMP]}-{row_index}",
            timestamp=c[Col.TIMESTAMP],
            email_address=c[Col.EMAIL],
            date_reported=c[Col.DATE_REPORTED],
            reported_by=c[Col.REPORTED_BY],
            type=TaskType.from_text(c[Col.TYPE]),
            severity=c[Col.SEVERITY] or DEFAULT_SEVERITY,
            screenshot=c[Col.SCREENSHOT],
            bucket=c[Col.BUCKET] or DEFAULT_BUCKET,
            description=c[Col.DESCRIPTION],
            priority=c[Col.PRIORITY],
            developer=c[Col.DEVELOPER] or DEFAULT_DEVELOPER,
            hours_invested=parse_hours(c[Col.HOURS]),
            resolved_on=resolved_on,
            kanban_status=kanban_status,
            month=month_of(c[Col.DATE_REPORTED], today),
            est_deadline=c[Col.EST_DEADLINE],
            days_until_deadline=remaining,
        )
    except Exception as e:
        logger.warning(f"Skipping malformed row {row_index}: {e} (cells={row!r})")
        return None


def normalize_rows(rows: Sequence[Sequence], today: Optional[date] = None) -> List[Task]:
    """Normalize data rows (header already removed), dropping failures."""
    tasks = []
    for index, row in enumerate(rows):
        task = normalize(row, index, today)
        if task is not None:
            tasks.append(task)
    return tasks
