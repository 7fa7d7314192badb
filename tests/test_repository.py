"""
Tests for TaskRepository: listing, adding, locate-then-write updates.
"""
import pytest

from conftest import TODAY, FlakyRowStore, LOGIN_BUG, make_row
from pkg.tracker.repository import TaskRepository, ValidationError
from pkg.tracker.rowstore import MemoryRowStore, UpstreamUnavailable
from pkg.tracker.schema import Col, KanbanStatus, TaskType, compute_cost

BUG_ID = "2024-05-01T00:00:00Z-0"
FEATURE_ID = "2024-05-02T09:00:00Z-1"
RESOLVED_ID = "2024-06-03T10:00:00Z-2"


def sheet_row(store, task_index):
    """Data row for a 0-based task index (sheet row index + 2)."""
    return store.fetch_rows()[task_index + 1]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# list_tasks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_list_tasks_in_row_order(repo):
    tasks = repo.list_tasks()
    assert [t.id for t in tasks] == [BUG_ID, FEATURE_ID, RESOLVED_ID]


def test_list_tasks_skips_header_only_sheet():
    assert TaskRepository(MemoryRowStore()).list_tasks() == []


def test_list_tasks_on_empty_table():
    assert TaskRepository(MemoryRowStore(header=[])).list_tasks() == []


def test_list_tasks_propagates_upstream_failure():
    repo = TaskRepository(FlakyRowStore([LOGIN_BUG], fail_fetch=True))
    with pytest.raises(UpstreamUnavailable):
        repo.list_tasks()


def test_resolved_rows_are_completed_and_done(repo, store):
    # Hand-edited rows where the status cells disagree with the resolved date
    store.append_row(make_row(TIMESTAMP="t-review", RESOLVED_ON="6/5/2024", BOARD_STATUS="review"))
    store.append_row(make_row(TIMESTAMP="t-dev", RESOLVED_ON="6/6/2024", DEV_STATUS="in-progress"))
    resolved = [t for t in repo.list_tasks() if t.resolved_on]
    assert len(resolved) == 3
    for task in resolved:
        assert task.status == "completed"
        assert task.kanban_status == KanbanStatus.DONE
        assert task.days_until_deadline == 100


def test_cost_always_follows_pricing_rule(repo):
    for task in repo.list_tasks():
        assert task.cost == compute_cost(task.type, task.hours_invested)


def test_list_by_developer(repo):
    assert [t.id for t in repo.list_by_developer("Bob")] == [BUG_ID, FEATURE_ID]
    assert repo.list_by_developer("Nobody") == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# add_task
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def new_task(**overrides):
    data = {
        "description": "Dark mode",
        "type": "feature",
        "month": "May",
        "developer": "Dana",
        "hours_invested": 4,
        "bucket": "UI/UX",
        "date_reported": "5/1/2024",
    }
    data.update(overrides)
    return data


def test_add_then_list_round_trip(repo):
    assert repo.add_task(new_task())
    added = repo.list_tasks()[-1]
    assert added.description == "Dark mode"
    assert added.developer == "Dana"
    assert added.type == TaskType.FEATURE
    assert added.hours_invested == 4
    assert added.cost == 1200
    assert added.status == "pending"
    assert added.kanban_status == KanbanStatus.TODO
    assert added.id.endswith("-3")


def test_add_writes_full_width_row(repo, store):
    repo.add_task(new_task(type="Bug report", hours_invested="2.5"))
    row = store.fetch_rows()[-1]
    assert len(row) == Col.WIDTH
    assert row[Col.TYPE] == "bug"
    assert row[Col.HOURS] == "2.5"
    assert row[Col.COST] == "500"
    assert row[Col.DEV_STATUS] == "pending"
    assert row[Col.BOARD_STATUS] == "todo"
    assert row[Col.REPORTED_BY] == "Anonymous"
    assert row[Col.SEVERITY] == "Medium"
    assert row[Col.TIMESTAMP].endswith("Z")


def test_add_defaults_report_date_to_today(repo, store):
    repo.add_task(new_task(date_reported=""))
    assert store.fetch_rows()[-1][Col.DATE_REPORTED] == "2024-05-01"


@pytest.mark.parametrize("field", ["description", "type", "month", "developer"])
def test_add_rejects_missing_field_before_writing(repo, store, field):
    before = len(store.fetch_rows())
    with pytest.raises(ValidationError, match=field):
        repo.add_task(new_task(**{field: "  "}))
    assert len(store.fetch_rows()) == before


def test_add_rejects_bad_kanban_status(repo):
    with pytest.raises(ValidationError):
        repo.add_task(new_task(kanban_status="archived"))


@pytest.mark.parametrize("hours", [-2, "-2", "lots", float("nan"), "inf", True])
def test_add_rejects_bad_hours_before_writing(repo, store, hours):
    before = len(store.fetch_rows())
    with pytest.raises(ValidationError, match="hours"):
        repo.add_task(new_task(hours_invested=hours))
    assert len(store.fetch_rows()) == before


@pytest.mark.parametrize("hours,expected", [(None, 0), ("", 0), ("1,500", 1500), ("2.5", 2.5), (3, 3)])
def test_add_accepts_blank_and_numeric_hours(repo, hours, expected):
    assert repo.add_task(new_task(hours_invested=hours))
    assert repo.list_tasks()[-1].hours_invested == expected


def test_add_reports_append_failure():
    repo = TaskRepository(FlakyRowStore(fail_append=True), clock=lambda: TODAY)
    assert repo.add_task(new_task()) is False


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# update_hours
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_update_hours_writes_hours_cell(repo, store):
    assert repo.update_hours(FEATURE_ID, 6.5)
    assert store.writes == [("J", 3, 6.5)]
    feature = repo.list_tasks()[1]
    assert feature.hours_invested == 6.5
    assert feature.cost == 1950


def test_update_hours_unknown_id(repo, store):
    assert repo.update_hours("nope-0", 1) is False
    assert store.writes == []


def test_update_hours_write_failure():
    store = FlakyRowStore([LOGIN_BUG], fail_writes_after=0)
    repo = TaskRepository(store, clock=lambda: TODAY)
    assert repo.update_hours(BUG_ID, 1) is False


def test_update_hours_locate_failure_propagates():
    repo = TaskRepository(FlakyRowStore([LOGIN_BUG], fail_fetch=True))
    with pytest.raises(UpstreamUnavailable):
        repo.update_hours(BUG_ID, 1)


@pytest.mark.parametrize("hours", [-1, "3", None, True, float("nan"), float("inf")])
def test_update_hours_rejects_bad_values(repo, hours):
    with pytest.raises(ValidationError):
        repo.update_hours(BUG_ID, hours)


def test_stale_id_after_upstream_insert_misses(repo, store):
    """Ids embed row position, so a row inserted above shifts them."""
    store._rows.insert(1, make_row(TIMESTAMP="2024-04-30T00:00:00Z"))
    assert repo.update_hours(BUG_ID, 1) is False


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# update_kanban_status
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_move_to_done_completes_and_prices(repo, store):
    assert repo.update_kanban_status(BUG_ID, "done")
    assert store.writes == [
        ("O", 2, "done"),
        ("K", 2, "5/1/2024"),
        ("P", 2, "completed"),
        ("Q", 2, 600),
    ]
    task = repo.list_tasks()[0]
    assert task.kanban_status == KanbanStatus.DONE
    assert task.status == "completed"
    assert task.resolved_on == "5/1/2024"
    assert task.days_until_deadline == 100


def test_move_away_from_done_reopens(repo, store):
    assert repo.update_kanban_status(RESOLVED_ID, KanbanStatus.IN_PROGRESS)
    assert store.writes == [
        ("O", 4, "in-progress"),
        ("K", 4, ""),
        ("P", 4, "pending"),
    ]
    task = repo.list_tasks()[2]
    assert task.status == "pending"
    assert task.resolved_on == ""
    assert task.kanban_status == KanbanStatus.IN_PROGRESS


def test_move_to_review(repo):
    assert repo.update_kanban_status(FEATURE_ID, "review")
    assert repo.list_tasks()[1].kanban_status == KanbanStatus.REVIEW


def test_move_unknown_id(repo, store):
    assert repo.update_kanban_status("missing", "done") is False
    assert store.writes == []


def test_move_rejects_invalid_status(repo):
    with pytest.raises(ValidationError):
        repo.update_kanban_status(BUG_ID, "archived")


def test_partial_write_failure_reports_false_without_rollback():
    store = FlakyRowStore([LOGIN_BUG], fail_writes_after=2)
    repo = TaskRepository(store, clock=lambda: TODAY)
    assert repo.update_kanban_status(BUG_ID, "done") is False
    row = store.fetch_rows()[1]
    assert row[Col.BOARD_STATUS] == "done"
    assert row[Col.RESOLVED_ON] == "5/1/2024"
    assert row[Col.DEV_STATUS] == ""
