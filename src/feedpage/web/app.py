"""
Flask application serving the latest digest and the front-end build.
"""

from dataclasses import asdict
from pathlib import Path
from typing import Optional

from flask import Flask, abort, jsonify, send_from_directory

from feedpage.config import Config, get_config
from feedpage.core.scheduler import RefreshScheduler
from feedpage.core.state import StateStore
from feedpage.logger import get_logger
from feedpage.web.serializers import serialize_datetime, state_to_dict

logger = get_logger(__name__)


def create_app(
    store: StateStore,
    config: Optional[Config] = None,
    scheduler: Optional[RefreshScheduler] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        store: State store written by the refresh scheduler
        config: Configuration (global config if None)
        scheduler: Running scheduler, reported by the health endpoint

    Returns:
        Configured Flask application
    """
    config = config or get_config()
    static_folder = Path(config.web.static_folder).resolve()

    app = Flask(__name__, static_folder=None)
    app.config["DEBUG"] = config.web.debug
    app.extensions["feedpage_store"] = store

    @app.route("/data")
    def data():
        """Latest published digest."""
        return jsonify(state_to_dict(store.snapshot(), config.name))

    @app.route("/health")
    def health():
        """Scheduler state and cycle statistics."""
        state = store.snapshot()
        payload = {
            "status": state.status.value,
            "lastUpdated": serialize_datetime(state.last_updated),
        }
        if scheduler is not None:
            stats = asdict(scheduler.stats)
            stats["last_run_time"] = serialize_datetime(scheduler.stats.last_run_time)
            payload["stats"] = stats
            payload["nextRun"] = serialize_datetime(scheduler.next_run_time()) if scheduler.is_running() else None
        return jsonify(payload)

    @app.route("/", defaults={"path": "index.html"})
    @app.route("/<path:path>")
    def static_files(path: str):
        """Front-end build files."""
        if not static_folder.is_dir():
            abort(404)
        return send_from_directory(static_folder, path)

    @app.errorhandler(404)
    def not_found(e):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def server_error(e):
        """Handle 500 errors."""
        logger.error(f"Server error: {e}")
        return jsonify({"error": "Internal server error"}), 500

    logger.info(f"Web app created, serving static files from {static_folder}")

    return app
