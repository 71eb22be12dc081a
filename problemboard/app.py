"""Flask application entrypoint."""

from __future__ import annotations

import atexit
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from flask import Flask, jsonify

from .auth import init_auth
from .config import load_config
from .datastore import DataStore
from .errors import StoreError
from .persistence import PersistScheduler
from .routes.admin import register_admin_routes
from .routes.api import register_api_routes

logger = logging.getLogger(__name__)


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Build the app and load durable state.

    A corrupt state file raises :class:`CorruptDurableState` out of this
    function so the process never starts on top of it.
    """
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = Flask(__name__)
    app.config.update(load_config())
    if overrides:
        app.config.update(overrides)

    datastore = DataStore(Path(app.config["DATA_FILE"]), session_ttl_ms=app.config["SESSION_TTL_MS"])
    app.config["DATASTORE"] = datastore

    scheduler = PersistScheduler(datastore, interval=app.config["PERSIST_INTERVAL"])
    app.config["PERSIST_SCHEDULER"] = scheduler
    if app.config["START_SCHEDULER"]:
        scheduler.start()
        atexit.register(scheduler.stop)

    @app.errorhandler(StoreError)
    def handle_store_error(exc: StoreError) -> Any:
        logger.error("Store error: %s", exc.message)
        return jsonify({"error": exc.message}), exc.status_code

    init_auth(app)
    register_api_routes(app)
    register_admin_routes(app)
    return app


if __name__ == "__main__":
    application = create_app()
    application.run(port=application.config["PORT"])
