from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
import logging

from flask import Flask, jsonify, request

from .errors import InvalidPatternError, NodeConfigError
from .node_config import NodeConfigSet, load_node_configs
from .recurrence import timezone_name, to_millis
from .schedule import validate_format
from .squatter import NEVER, next_poll_time

logger = logging.getLogger(__name__)


def create_app(
    config_path: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
) -> Flask:
    app = Flask(__name__)
    config = load_node_configs(config_path) if config_path is not None else NodeConfigSet()
    clock: Callable[[], datetime] = now_provider or (lambda: datetime.now(timezone.utc))

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.post("/api/check-format")
    def check_format() -> Any:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"ok": False, "message": "request body must be a JSON object."}), 400
        text = payload.get("format")
        if not isinstance(text, str):
            return jsonify({"ok": False, "message": "format text is required."}), 400

        result = validate_format(text)
        if not result.ok:
            logger.warning("Rejected reservation format at line %s: %s", result.line, result.message)
        return jsonify(result.to_dict())

    @app.get("/api/nodes")
    def list_nodes() -> Any:
        nodes = [
            {"name": node.name, "executors": node.executors, "entries": len(config.schedule_for(node.name))}
            for node in config.nodes.values()
        ]
        return jsonify({"ok": True, "timezone": timezone_name(config.tz), "nodes": nodes})

    @app.get("/api/nodes/<name>/reservation")
    def node_reservation(name: str) -> Any:
        try:
            node = config.get(name)
        except NodeConfigError as error:
            return jsonify({"ok": False, "message": str(error)}), 404

        raw_at = request.args.get("at")
        if raw_at is None:
            timestamp = to_millis(clock())
        else:
            try:
                timestamp = int(raw_at)
            except ValueError:
                return jsonify({"ok": False, "message": "at must be epoch milliseconds."}), 400

        schedule = config.schedule_for(name)
        try:
            reserved = schedule.size_of_reservation(node, timestamp)
            next_change = schedule.time_of_next_change(node, timestamp)
            requery_at = next_poll_time([schedule], node, timestamp)
        except InvalidPatternError as error:
            return jsonify({"ok": False, "message": str(error)}), 422
        except ValueError as error:
            return jsonify({"ok": False, "message": str(error)}), 400

        return jsonify(
            {
                "ok": True,
                "node": node.name,
                "executors": node.executors,
                "at": timestamp,
                "reserved": reserved,
                "next_change": None if next_change == NEVER else next_change,
                "requery_at": None if requery_at == NEVER else requery_at,
            }
        )

    return app
