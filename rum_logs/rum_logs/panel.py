"""
Settings/debug panel for a running LogCollector.

A small Flask app exposing the runtime-adjustable buffer settings, the
destination flag, manual flush and the HEC connectivity check.

Usage:
    collector = LogCollector(...)
    app = create_panel(collector)
    app.run(port=8765)
"""

import logging
from typing import Optional

from flask import Flask, jsonify, request

from rum_logs.collector import LogCollector
from rum_logs.errors import ConfigurationError
from rum_logs.flags import FeatureFlagManager
from rum_logs.hec import TEST_LOG_MESSAGE

logger = logging.getLogger(__name__)


def create_panel(collector: LogCollector, flags: Optional[FeatureFlagManager] = None) -> Flask:
    """
    Build the panel app.

    Args:
        collector: Collector whose settings the panel controls
        flags: Flag manager (defaults to the collector's)

    Returns:
        Flask application
    """
    flags = flags or collector.flags
    app = Flask(__name__)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    @app.route("/settings", methods=["GET"])
    def get_settings():
        return jsonify(collector.status())

    @app.route("/settings", methods=["PATCH"])
    def update_settings():
        changes = request.get_json(silent=True)
        if not isinstance(changes, dict):
            return jsonify({"error": "expected a JSON object"}), 400
        try:
            collector.config.update(**changes)
        except ConfigurationError as e:
            return jsonify({"error": str(e)}), 400
        logger.info(f"Buffer settings updated: {collector.config.snapshot()}")
        return jsonify(collector.status())

    @app.route("/flush", methods=["POST"])
    def flush():
        return jsonify({"flushed": collector.flush()})

    @app.route("/logs", methods=["POST"])
    def append_log():
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "expected a JSON object"}), 400
        message = data.get("message")
        if not isinstance(message, str) or not message:
            return jsonify({"error": "message must be a non-empty string"}), 400
        collector.append_line(message, is_error=bool(data.get("is_error", True)))
        return jsonify({"buffered_count": collector.buffered_count}), 202

    @app.route("/test-log", methods=["POST"])
    def test_log():
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "expected a JSON object"}), 400
        message = data.get("message") or TEST_LOG_MESSAGE
        result = collector.send_test_log(message=message)
        return jsonify(result.to_dict()), (200 if result.ok else 502)

    @app.route("/flags", methods=["GET"])
    def list_flags():
        return jsonify({
            "flags": [
                {"key": f.key, "description": f.description, "enabled": f.enabled}
                for f in flags.all_flags()
            ]
        })

    @app.route("/flags/<key>/toggle", methods=["POST"])
    def toggle_flag(key):
        value = flags.toggle_flag(key)
        if value is None:
            return jsonify({"error": f"unknown flag {key!r}"}), 404
        return jsonify({"key": key, "enabled": value, "destination": collector.destination})

    return app
