"""
Health Routes Blueprint - liveness and dependency status
"""

from flask import Blueprint, current_app, jsonify

from careerpulse.startup import get_health_status

health_bp = Blueprint("health", __name__)


@health_bp.route("/api/health")
def health():
    services = current_app.extensions["careerpulse"]
    status = get_health_status(services["storage"], services["cache"])
    code = 200 if status["status"] == "healthy" else 503
    return jsonify(status), code
