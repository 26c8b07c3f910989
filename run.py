#!/usr/bin/env python3
"""
CareerPulse - Main Entry Point

Uses the application factory pattern via careerpulse.create_app().

Usage:
    python run.py

Environment Variables:
    FLASK_ENV: development (default), production, testing
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (optional)
    CAREERPULSE_CONFIG: Path to config.yaml (optional)
"""

import os
import sys
from pathlib import Path

APP_DIR = Path(__file__).parent

# Load environment variables from .env file
from dotenv import load_dotenv

load_dotenv(APP_DIR / ".env")

from careerpulse.config import get_config
from careerpulse.logging_config import get_logger, setup_logging

config = get_config()
flask_env = os.environ.get("FLASK_ENV", "development")
setup_logging(level=config.log_level, json_logs=config.json_logs or flask_env == "production")
logger = get_logger(__name__)


def main():
    """Main entry point for CareerPulse."""
    from careerpulse import create_app
    from careerpulse.database import SQLiteStorage
    from careerpulse.startup import run_startup_validation

    logger.info("=" * 60)
    logger.info("CareerPulse - Starting Up")
    logger.info("=" * 60)

    storage = SQLiteStorage(config.database_path)

    logger.info("Running startup validation...")
    validation_passed, _ = run_startup_validation(config, storage, strict=False, log_results=True)
    if not validation_passed:
        logger.error("Startup validation failed. Please fix the errors above.")
        sys.exit(1)

    app = create_app(config=config, storage=storage)

    port = int(os.environ.get("PORT", 5000))
    logger.info("")
    logger.info(f"  Environment: {flask_env}")
    logger.info(f"  AI provider: {config.ai_provider}")
    logger.info(f"  Database: {config.database_path}")
    logger.info(f"  Sync API: http://localhost:{port}/api/email/sync")
    logger.info(f"  Health Check: http://localhost:{port}/api/health")
    logger.info("")

    debug_mode = flask_env != "production"
    app.run(debug=debug_mode, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
