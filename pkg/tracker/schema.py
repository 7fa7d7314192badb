"""
Task schema and sheet column map.

A Task is never stored as a unit: it is rebuilt from one spreadsheet row on
every read (see normalizer.py). Fields that can be derived from other fields
(cost, status) are properties, so they cannot drift from what the row says.
"""
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Any
import math


class TaskType(Enum):
    """Classification of a tracked item."""
    BUG = "bug"
    FEATURE = "feature"

    @classmethod
    def from_text(cls, value: str) -> "TaskType":
        """Classify free text such as "bug report" or "New Feature"."""
        lowered = (value or "").lower()
        if "bug" in lowered:
            return cls.BUG
        if "feature" in lowered:
            return cls.FEATURE
        return cls.FEATURE


class KanbanStatus(Enum):
    """Workflow stages on the board."""
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"

    @classmethod
    def parse(cls, value: str) -> Optional["KanbanStatus"]:
        """Return the matching status, or None for anything else."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None


# Statuses a status cell can force before resolution is considered
ACTIVE_STATUSES = (KanbanStatus.IN_PROGRESS, KanbanStatus.REVIEW)

HOURLY_RATES = {
    TaskType.BUG: 200,
    TaskType.FEATURE: 300,
}

# Reported instead of a day count once a task is resolved or done
DEADLINE_MET = 100

DEFAULT_SEVERITY = "Medium"
DEFAULT_BUCKET = "Other"
DEFAULT_DEVELOPER = "unassigned"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Column map (0-based index, sheet letter)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Col:
    TIMESTAMP     = 0   # A
    EMAIL         = 1   # B
    DATE_REPORTED = 2   # C
    REPORTED_BY   = 3   # D
    TYPE          = 4   # E  free-text classification
    SEVERITY      = 5   # F
    SCREENSHOT    = 6   # G
    BUCKET        = 7   # H
    DESCRIPTION   = 8   # I
    HOURS         = 9   # J
    RESOLVED_ON   = 10  # K
    EST_DEADLINE  = 11  # L
    PRIORITY      = 12  # M  display only
    DEVELOPER     = 13  # N
    BOARD_STATUS  = 14  # O  primary status cell
    DEV_STATUS    = 15  # P  secondary status cell (completed/pending)
    COST          = 16  # Q  written on completion, never read

    WIDTH = 17


def column_letter(index: int) -> str:
    """0 -> "A", 25 -> "Z", 26 -> "AA"."""
    letters = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def hourly_rate(task_type: TaskType) -> int:
    return HOURLY_RATES[task_type]


def compute_cost(task_type: TaskType, hours: float) -> int:
    """Rate times hours, rounded half up to the nearest integer."""
    return int(math.floor(hourly_rate(task_type) * hours + 0.5))


@dataclass
class Task:
    """One tracked bug or feature, derived from a sheet row."""

    # Identity (derived: timestamp + row position, not a stored key)
    id: str
    timestamp: str = ""

    # Report
    email_address: str = ""
    date_reported: str = ""
    reported_by: str = ""
    type: TaskType = TaskType.FEATURE
    severity: str = DEFAULT_SEVERITY
    screenshot: str = ""
    bucket: str = DEFAULT_BUCKET
    description: str = ""
    priority: str = ""

    # Work
    developer: str = DEFAULT_DEVELOPER
    hours_invested: float = 0.0
    resolved_on: str = ""
    kanban_status: KanbanStatus = KanbanStatus.TODO

    # Scheduling
    month: str = ""
    est_deadline: str = ""
    days_until_deadline: Optional[int] = None

    @property
    def cost(self) -> int:
        return compute_cost(self.type, self.hours_invested)

    @property
    def status(self) -> str:
        return "completed" if self.resolved_on else "pending"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the JSON API (camelCase keys, as the board UI reads them)."""
        data = {
            "id": self.id,
            "timestamp": self.timestamp,
            "emailAddress": self.email_address,
            "dateReported": self.date_reported,
            "reportedBy": self.reported_by,
            "type": self.type.value,
            "severity": self.severity,
            "screenshot": self.screenshot,
            "bucket": self.bucket,
            "description": self.description,
            "priority": self.priority,
            "month": self.month,
            "developer": self.developer,
            "hoursInvested": self.hours_invested,
            "resolvedOn": self.resolved_on,
            "cost": self.cost,
            "status": self.status,
            "kanbanStatus": self.kanban_status.value,
            "estDeadline": self.est_deadline,
        }
        if self.days_until_deadline is not None:
            data["daysUntilDeadline"] = self.days_until_deadline
        return data
