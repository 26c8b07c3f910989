"""
CareerPulse - Application Factory

Mail sync service that turns job application emails into tracked
application records.
"""

import logging
import os

from flask import Flask
from flask_cors import CORS

from careerpulse.ai.cache import ExtractionCache
from careerpulse.config import get_config
from careerpulse.database import SQLiteStorage

logger = logging.getLogger(__name__)


def create_app(config_path=None, config=None, storage=None, orchestrator=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_path: Optional path to config.yaml file
        config: Preloaded Config (takes precedence over config_path)
        storage: Storage backend; a SQLiteStorage at database.path when omitted
        orchestrator: Prebuilt SyncOrchestrator; wired from config when omitted

    Returns:
        Configured Flask application instance
    """
    from dotenv import load_dotenv

    load_dotenv()

    if config is None:
        try:
            config = get_config(config_path)
        except FileNotFoundError as e:
            logger.error(f"Configuration Error: {e}")
            raise

    if storage is None:
        storage = SQLiteStorage(config.database_path)
        storage.init_db()

    cache = None
    if orchestrator is None:
        from careerpulse.sync import build_orchestrator

        cache = ExtractionCache(config.cache_max_size)
        orchestrator = build_orchestrator(config, storage, cache=cache)
    else:
        cache = orchestrator.extractor.cache

    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY") or os.urandom(32)

    CORS(app)

    app.extensions["careerpulse"] = {
        "config": config,
        "storage": storage,
        "cache": cache,
        "orchestrator": orchestrator,
    }

    register_blueprints(app)

    return app


def register_blueprints(app):
    """Register all Flask blueprints."""
    from careerpulse.routes import register_all_blueprints

    register_all_blueprints(app)
