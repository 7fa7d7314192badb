"""
Task repository over a row store.

Reads rebuild every Task from the sheet. Writes use a two-phase protocol:
re-list the sheet to find the row whose derived id matches, then point-write
cells of that row. Nothing locks the sheet between the two phases, so a row
inserted or deleted upstream in that window can shift the target and the
write lands on the wrong row. Multi-cell updates are not atomic: the first
failed write stops the update and earlier writes stay in place.
"""
import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .dates import format_sheet_date
from .normalizer import normalize_rows
from .rowstore import RowStore, RowStoreError
from .schema import Col, KanbanStatus, Task, TaskType, column_letter, compute_cost

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("description", "type", "month", "developer")

# Sheet row of the first data row (row 1 is the header)
FIRST_DATA_ROW = 2


class ValidationError(Exception):
    """Raised when task input is missing required fields or has bad values."""
    pass


def utc_now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def check_hours(hours: Any) -> float:
    """Hours must be a finite, non-negative number (bools are not numbers)."""
    if (isinstance(hours, bool) or not isinstance(hours, (int, float))
            or not math.isfinite(hours) or hours < 0):
        raise ValidationError(f"hours must be a non-negative number, got {hours!r}")
    return hours


def _input_hours(value: Any) -> float:
    """Hours from add-task input: blank means 0, numeric text is accepted."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    if isinstance(value, str):
        try:
            value = float(value.strip().replace(",", ""))
        except ValueError:
            raise ValidationError(f"hours must be a non-negative number, got {value!r}") from None
    return float(check_hours(value))


class TaskRepository:
    """Tasks stored one per row in a RowStore."""

    def __init__(self, store: RowStore, clock: Callable[[], date] = date.today):
        self.store = store
        self.clock = clock

    # ── Reads ────────────────────────────────────────────────────────────

    def list_tasks(self) -> List[Task]:
        """All tasks in sheet order. UpstreamUnavailable propagates."""
        rows = self.store.fetch_rows()
        if len(rows) <= 1:
            logger.info("No data found in sheet (or only headers)")
            return []
        return normalize_rows(rows[1:], today=self.clock())

    def list_by_developer(self, developer: str) -> List[Task]:
        return [t for t in self.list_tasks() if t.developer == developer]

    def _locate(self, task_id: str) -> Optional[Tuple[Task, int]]:
        """
        Phase one of an update: find the task and its sheet row number.

        The row number is only valid until the sheet changes upstream.
        """
        for index, task in enumerate(self.list_tasks()):
            if task.id == task_id:
                return task, index + FIRST_DATA_ROW
        logger.warning(f"Task {task_id} not found")
        return None

    # ── Writes ───────────────────────────────────────────────────────────

    def add_task(self, data: Dict[str, Any]) -> bool:
        """
        Append one task row.

        Raises ValidationError before writing anything if a required field is
        blank or the hours are not a non-negative number. Returns False if
        the append fails.
        """
        missing = [f for f in REQUIRED_FIELDS if not str(data.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        kanban_status = KanbanStatus.parse(data.get("kanban_status") or "todo")
        if kanban_status is None:
            raise ValidationError(f"Invalid kanban status: {data.get('kanban_status')!r}")

        task_type = TaskType.from_text(str(data["type"]))
        hours = _input_hours(data.get("hours_invested"))
        timestamp = utc_now()

        row = [""] * Col.WIDTH
        row[Col.TIMESTAMP] = timestamp
        row[Col.EMAIL] = data.get("email_address") or ""
        row[Col.DATE_REPORTED] = data.get("date_reported") or self.clock().isoformat()
        row[Col.REPORTED_BY] = data.get("reported_by") or "Anonymous"
        row[Col.TYPE] = task_type.value
        row[Col.SEVERITY] = data.get("severity") or "Medium"
        row[Col.SCREENSHOT] = data.get("screenshot") or ""
        row[Col.BUCKET] = data.get("bucket") or "Other"
        row[Col.DESCRIPTION] = str(data["description"]).strip()
        row[Col.HOURS] = hours
        row[Col.RESOLVED_ON] = data.get("resolved_on") or ""
        row[Col.EST_DEADLINE] = data.get("est_deadline") or ""
        row[Col.PRIORITY] = data.get("priority") or ""
        row[Col.DEVELOPER] = str(data["developer"]).strip()
        row[Col.BOARD_STATUS] = kanban_status.value
        row[Col.DEV_STATUS] = "completed" if row[Col.RESOLVED_ON] else "pending"
        row[Col.COST] = compute_cost(task_type, hours)

        try:
            self.store.append_row(row)
        except RowStoreError as e:
            logger.error(f"Error adding task: {e}")
            return False
        logger.info(f"Added {task_type.value} {timestamp} for {row[Col.DEVELOPER]}")
        return True

    def _write(self, task_id: str, row_number: int, col: int, value: Any) -> bool:
        letter = column_letter(col)
        try:
            self.store.write_cell(letter, row_number, value)
            return True
        except RowStoreError as e:
            logger.error(f"Failed to write {letter}{row_number} for task {task_id}: {e}")
            return False

    def update_hours(self, task_id: str, hours: Union[int, float]) -> bool:
        """Set the hours cell. False if the task is missing or the write fails."""
        check_hours(hours)

        found = self._locate(task_id)
        if found is None:
            return False
        _, row_number = found
        if not self._write(task_id, row_number, Col.HOURS, hours):
            return False
        logger.info(f"Updated task {task_id} hours to {hours}")
        return True

    def update_kanban_status(self, task_id: str, status: Union[str, KanbanStatus]) -> bool:
        """
        Move a task on the board.

        Moving to done stamps the resolved date, marks the dev status
        completed and writes the cost. Moving anywhere else clears the
        resolved date and marks it pending.
        """
        target = status if isinstance(status, KanbanStatus) else KanbanStatus.parse(status)
        if target is None:
            raise ValidationError(f"Invalid kanban status: {status!r}")

        found = self._locate(task_id)
        if found is None:
            return False
        task, row_number = found

        if target == KanbanStatus.DONE:
            writes = [
                (Col.BOARD_STATUS, target.value),
                (Col.RESOLVED_ON, format_sheet_date(self.clock())),
                (Col.DEV_STATUS, "completed"),
                (Col.COST, compute_cost(task.type, task.hours_invested)),
            ]
        else:
            writes = [
                (Col.BOARD_STATUS, target.value),
                (Col.RESOLVED_ON, ""),
                (Col.DEV_STATUS, "pending"),
            ]

        for col, value in writes:
            if not self._write(task_id, row_number, col, value):
                return False

        logger.info(f"Updated task {task_id} to status {target.value}")
        return True
