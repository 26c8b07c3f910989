"""
Routes Package - Flask Blueprints for CareerPulse

Blueprint structure:
- email_bp: Mailbox connection and sync (/api/email/*)
- health_bp: Health check (/api/health)
"""

import logging

from .email import email_bp
from .health import health_bp

logger = logging.getLogger(__name__)


def register_all_blueprints(app):
    """
    Register all Flask blueprints with the application.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(email_bp)
    app.register_blueprint(health_bp)
    logger.info("Registered API blueprints")


__all__ = [
    "register_all_blueprints",
    "email_bp",
    "health_bp",
]
