#!/usr/bin/env python3
"""
Sheet Tracker Server
--------------------
JSON API over the bug/feature tracking spreadsheet.

Usage:
    python tracker_server.py --port 3000
    USE_MOCK_DATA=true python tracker_server.py      # seeded in-memory sheet

API:
    GET  /api/tasks                      → [task, ...]
    GET  /api/tasks?groupBy=month|bucket → { key: [task, ...] }
    GET  /api/tasks?stats=pending        → { pendingMoney }
    GET  /api/tasks?stats=hours          → { totalHours }
    GET  /api/tasks/developer?key=...    → [task, ...] for one developer
    GET  /api/efficiency                 → { developers, overview }
    GET  /api/stats                      → counts by type / status / column
    POST /api/tasks/add                  → { success, message }
    POST /api/tasks/update-hours         → body { taskId, hours }
    POST /api/tasks/update-status        → body { taskId, kanbanStatus }
    GET  /health

POST routes require an X-API-Key header matching TRACKER_API_SECRET.
"""

import argparse
import hmac
import logging
import sys
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request

from pkg.tracker.aggregators import (
    board_stats,
    developer_efficiency,
    group_by_bucket,
    group_by_month,
    pending_money,
    team_overview,
    total_hours,
)
from pkg.tracker.config import ConfigError, TrackerConfig, build_row_store
from pkg.tracker.repository import TaskRepository, ValidationError
from pkg.tracker.rowstore import UpstreamUnavailable
from pkg.tracker.schema import KanbanStatus

logger = logging.getLogger("tracker_server")

app = Flask(__name__)
# Groupings are returned in first-seen order
app.json.sort_keys = False

_config: Optional[TrackerConfig] = None
_repository: Optional[TaskRepository] = None


# ── Wiring ───────────────────────────────────────────────────────────────────

def get_config() -> TrackerConfig:
    global _config
    if _config is None:
        _config = TrackerConfig.load()
    return _config


def get_repository() -> TaskRepository:
    global _repository
    if _repository is None:
        _repository = TaskRepository(build_row_store(get_config()))
    return _repository


def configure(config: Optional[TrackerConfig] = None, repository: Optional[TaskRepository] = None):
    """Replace the process config and/or repository (startup and tests)."""
    global _config, _repository
    _config = config
    _repository = repository


# ── Auth ─────────────────────────────────────────────────────────────────────

def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = get_config().api_secret
        if not secret:
            return jsonify({"error": "API secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Errors ───────────────────────────────────────────────────────────────────

@app.errorhandler(UpstreamUnavailable)
def handle_upstream(e):
    logger.error(f"Spreadsheet unavailable: {e}")
    return jsonify({"error": "Spreadsheet unavailable", "message": str(e)}), 502


@app.errorhandler(ValidationError)
def handle_validation(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(ConfigError)
def handle_config(e):
    logger.error(f"Configuration error: {e}")
    return jsonify({"error": f"Server misconfigured: {e}"}), 503


@app.after_request
def no_store(response):
    if request.method == "GET" and request.path.startswith("/api/"):
        response.headers["Cache-Control"] = "no-store, max-age=0"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
    return response


def _grouped(groups: dict) -> dict:
    return {key: [t.to_dict() for t in tasks] for key, tasks in groups.items()}


# ── Routes ───────────────────────────────────────────────────────────────────

@app.route("/api/tasks", methods=["GET"])
def api_tasks():
    tasks = get_repository().list_tasks()

    group_by = request.args.get("groupBy")
    if group_by == "month":
        return jsonify(_grouped(group_by_month(tasks)))
    if group_by == "bucket":
        return jsonify(_grouped(group_by_bucket(tasks)))

    stats = request.args.get("stats")
    if stats == "pending":
        return jsonify({"pendingMoney": pending_money(tasks)})
    if stats == "hours":
        return jsonify({"totalHours": total_hours(tasks)})

    return jsonify([t.to_dict() for t in tasks])


@app.route("/api/tasks/developer", methods=["GET"])
def api_developer_tasks():
    key = request.args.get("key", "").strip()
    if not key:
        return jsonify({"error": "Developer key is required"}), 400

    cfg = get_config()
    developer = key
    if cfg.developer_passphrase and hmac.compare_digest(key, cfg.developer_passphrase):
        developer = cfg.default_developer

    tasks = get_repository().list_by_developer(developer)
    return jsonify([t.to_dict() for t in tasks])


@app.route("/api/efficiency", methods=["GET"])
def api_efficiency():
    tasks = get_repository().list_tasks()
    return jsonify({
        "developers": developer_efficiency(tasks),
        "overview": team_overview(tasks, today=get_repository().clock()),
    })


@app.route("/api/stats", methods=["GET"])
def api_stats():
    tasks = get_repository().list_tasks()
    result = board_stats(tasks)
    result["pendingMoney"] = pending_money(tasks)
    result["totalHours"] = total_hours(tasks)
    return jsonify(result)


@app.route("/api/tasks/add", methods=["POST"])
@require_api_key
def api_add_task():
    body = request.get_json(force=True, silent=True) or {}
    if not all(body.get(f) for f in ("month", "description", "type", "developer")):
        return jsonify({"error": "Missing required fields"}), 400

    hours = body.get("hoursInvested", 0)
    if isinstance(hours, bool) or not isinstance(hours, (int, float, str)):
        return jsonify({"error": "hoursInvested must be a number"}), 400

    ok = get_repository().add_task({
        "email_address": body.get("emailAddress", ""),
        "date_reported": body.get("dateReported", ""),
        "reported_by": body.get("reportedBy", ""),
        "type": body["type"],
        "severity": body.get("severity", ""),
        "screenshot": body.get("screenshot", ""),
        "bucket": body.get("bucket", ""),
        "description": body["description"],
        "month": body["month"],
        "developer": body["developer"],
        "hours_invested": hours,
        "est_deadline": body.get("estDeadline", ""),
        "priority": body.get("priority", ""),
        "kanban_status": body.get("kanbanStatus", "todo"),
    })
    if not ok:
        return jsonify({"error": "Failed to add task"}), 500
    return jsonify({"success": True, "message": "Task added successfully"})


@app.route("/api/tasks/update-hours", methods=["POST"])
@require_api_key
def api_update_hours():
    body = request.get_json(force=True, silent=True) or {}
    task_id = body.get("taskId")
    hours = body.get("hours")
    if not task_id or isinstance(hours, bool) or not isinstance(hours, (int, float)):
        return jsonify({"error": "Missing taskId or hours"}), 400

    if not get_repository().update_hours(task_id, hours):
        return jsonify({"error": "Failed to update task hours or task not found"}), 500
    return jsonify({"success": True, "message": "Task hours updated successfully"})


@app.route("/api/tasks/update-status", methods=["POST"])
@require_api_key
def api_update_status():
    body = request.get_json(force=True, silent=True) or {}
    task_id = body.get("taskId")
    raw_status = body.get("kanbanStatus")
    if not task_id or not raw_status:
        return jsonify({"error": "Missing taskId or kanbanStatus"}), 400

    valid = [s.value for s in KanbanStatus]
    if raw_status not in valid:
        return jsonify({
            "error": f"Invalid kanbanStatus. Must be one of: {', '.join(valid)}"
        }), 400

    target = KanbanStatus(raw_status)
    if not get_repository().update_kanban_status(task_id, target):
        return jsonify({"error": "Failed to update task status or task not found"}), 500
    return jsonify({
        "success": True,
        "message": "Task status updated successfully",
        "priceUpdated": target == KanbanStatus.DONE,
    })


@app.route("/health")
def health():
    cfg = get_config()
    return jsonify({
        "status": "ok",
        "store": get_repository().store.describe(),
        "mock": cfg.use_mock_data,
    })


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sheet Tracker Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--config", help="Path to tracker.yaml (overrides TRACKER_CONFIG env var)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [tracker] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        cfg = TrackerConfig.load(args.config)
        configure(cfg, TaskRepository(build_row_store(cfg)))
    except (ConfigError, UpstreamUnavailable) as e:
        logger.error(f"Cannot start: {e}")
        sys.exit(1)

    store = get_repository().store.describe()
    print(f"""
╔═══════════════════════════════════════╗
║  Sheet Tracker Server                 ║
╠═══════════════════════════════════════╣
║  URL:   http://{args.host}:{args.port:<19}║
║  Store: {store[:30]:<30}║
╚═══════════════════════════════════════╝
""")

    app.run(host=args.host, port=args.port, debug=False, threaded=True)
