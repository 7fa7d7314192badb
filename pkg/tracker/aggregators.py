"""
Grouped views and scalar stats over a task list.

All functions are pure and total: an empty list gives an empty result, and
nothing here touches the row store.
"""
import math
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from .dates import parse_date
from .schema import KanbanStatus, Task, TaskType


def _group(tasks: Iterable[Task], key: Callable[[Task], str]) -> Dict[str, List[Task]]:
    groups: Dict[str, List[Task]] = {}
    for task in tasks:
        groups.setdefault(key(task), []).append(task)
    return groups


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def group_by_month(tasks: Iterable[Task]) -> Dict[str, List[Task]]:
    """Month name -> tasks, months in first-seen order."""
    return _group(tasks, lambda t: t.month)


def group_by_bucket(tasks: Iterable[Task]) -> Dict[str, List[Task]]:
    """Bucket -> tasks, buckets in first-seen order."""
    return _group(tasks, lambda t: t.bucket)


def pending_money(tasks: Iterable[Task]) -> int:
    # NOTE: sums every task, resolved ones included. The name suggests only
    # pending tasks; kept as-is until the intended figure is confirmed.
    return sum(t.cost for t in tasks)


def total_hours(tasks: Iterable[Task]) -> float:
    return sum(t.hours_invested for t in tasks)


def board_stats(tasks: Iterable[Task]) -> Dict[str, Any]:
    """Counts by type, status and kanban column."""
    tasks = list(tasks)
    by_kanban = {s.value: 0 for s in KanbanStatus}
    for t in tasks:
        by_kanban[t.kanban_status.value] += 1
    return {
        "total": len(tasks),
        "by_type": {
            tt.value: sum(1 for t in tasks if t.type == tt) for tt in TaskType
        },
        "by_status": {
            "pending": sum(1 for t in tasks if t.status == "pending"),
            "completed": sum(1 for t in tasks if t.status == "completed"),
        },
        "by_kanban_status": by_kanban,
    }


def developer_efficiency(tasks: Iterable[Task]) -> List[Dict[str, Any]]:
    """
    One row per developer, in first-seen order.

    efficiency is hours per completed task (all hours, not just those of
    completed tasks). avg_completion_days estimates one working day per
    8 hours, at least one day per task, over completed tasks that are done.
    """
    rows = []
    for developer, mine in _group(tasks, lambda t: t.developer).items():
        completed = [t for t in mine if t.status == "completed"]
        hours = sum(t.hours_invested for t in mine)
        finished = [t for t in completed if t.kanban_status == KanbanStatus.DONE]

        avg_days = 0
        if finished:
            days = sum(max(1, math.ceil(t.hours_invested / 8)) for t in finished)
            avg_days = _round_half_up(days / len(finished))

        rows.append({
            "developer": developer,
            "total_tasks": len(mine),
            "completed_tasks": len(completed),
            "bugs_fixed": sum(1 for t in completed if t.type == TaskType.BUG),
            "features_added": sum(1 for t in completed if t.type == TaskType.FEATURE),
            "total_hours": hours,
            "efficiency": round(hours / len(completed), 1) if completed else 0,
            "avg_completion_days": avg_days,
        })
    return rows


def team_overview(tasks: Iterable[Task], today: Optional[date] = None) -> Dict[str, Any]:
    """
    Team totals. completion_rate is a whole percent; avg_task_age is the mean
    age in days of tasks whose report date parses (others are left out).
    """
    tasks = list(tasks)
    today = today or date.today()
    completed = sum(1 for t in tasks if t.status == "completed")

    ages = []
    for t in tasks:
        reported = parse_date(t.date_reported)
        if reported is not None:
            ages.append((today - reported).days)

    return {
        "total_tasks": len(tasks),
        "completed_tasks": completed,
        "total_hours": total_hours(tasks),
        "completion_rate": _round_half_up(completed / len(tasks) * 100) if tasks else 0,
        "avg_task_age": _round_half_up(sum(ages) / len(ages)) if ages else 0,
    }
