"""
Email Routes Blueprint - Mailbox connection and sync endpoints

Endpoints:
- POST /api/email/sync: Run a sync for the calling user
- GET /api/email/status: Connection status and last sync time
- GET /api/email/connect: Google consent URL for connecting a mailbox
- GET /api/email/oauth/callback: OAuth redirect target
- POST /api/email/disconnect: Forget the user's mailbox credential

The caller is identified by the X-User-Id header; application auth is
handled upstream.
"""

import logging
from datetime import date
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from careerpulse.errors import CredentialError, MailProviderError, StorageError
from careerpulse.models import SyncOptions, SyncSummary

logger = logging.getLogger(__name__)

email_bp = Blueprint("email", __name__, url_prefix="/api/email")

# OAuth state tokens expire after ten minutes
STATE_MAX_AGE = 600
MAX_RESULTS_LIMIT = 500


def _services() -> Dict[str, Any]:
    return current_app.extensions["careerpulse"]


def _current_user() -> str:
    return request.headers.get("X-User-Id") or _services()["config"].default_user


def _state_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.secret_key, salt="careerpulse-oauth")


def _summary_json(summary: SyncSummary) -> Dict[str, Any]:
    return {
        "success": True,
        "totalEmails": summary.total_emails,
        "jobEmails": summary.job_emails,
        "newApplications": summary.new_applications,
        "duplicates": summary.duplicates,
        "errors": summary.errors,
        "cancelled": summary.cancelled,
        "applications": [
            {
                "company": record.company,
                "role": record.title,
                "status": record.status.value,
                "location": record.location,
                "dateApplied": record.date_applied,
                "confidenceScore": record.confidence,
            }
            for record in summary.created_records
        ],
    }


def _parse_sync_options(payload: Dict[str, Any]) -> SyncOptions:
    """Build SyncOptions from a request body; raises ValueError on bad input."""
    max_results = payload.get("maxResults")
    if max_results is not None:
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results <= 0:
            raise ValueError("maxResults must be a positive integer")
        max_results = min(max_results, MAX_RESULTS_LIMIT)

    after_date = payload.get("afterDate")
    if after_date:
        try:
            after_date = date.fromisoformat(str(after_date)[:10])
        except ValueError:
            raise ValueError("afterDate must be an ISO date (YYYY-MM-DD)")
    else:
        after_date = None

    return SyncOptions(max_results=max_results, after_date=after_date)


@email_bp.errorhandler(StorageError)
def storage_unavailable(e: StorageError):
    logger.error(f"Storage failure on {request.path}: {e}")
    return jsonify({"error": "Storage unavailable", "message": str(e)}), 503


@email_bp.route("/sync", methods=["POST"])
def sync():
    """Sync the caller's mailbox and return the summary."""
    payload = request.get_json(silent=True) or {}
    try:
        options = _parse_sync_options(payload)
    except ValueError as e:
        return jsonify({"error": "Invalid request", "message": str(e)}), 400

    user_id = _current_user()
    try:
        summary = _services()["orchestrator"].sync(user_id, options)
    except CredentialError as e:
        return (
            jsonify(
                {
                    "error": "Gmail not connected",
                    "reason": e.reason,
                    "message": "Please connect your Gmail account",
                }
            ),
            401,
        )
    except MailProviderError as e:
        logger.error(f"Email sync failed for {user_id}: {e}")
        return jsonify({"error": "Email sync failed", "message": str(e)}), 502

    return jsonify(_summary_json(summary))


@email_bp.route("/status", methods=["GET"])
def status():
    """Connection status for the caller."""
    connection = _services()["orchestrator"].status(_current_user())
    return jsonify(
        {
            "connected": connection.connected,
            "email": connection.email,
            "lastSync": connection.last_sync,
        }
    )


@email_bp.route("/connect", methods=["GET"])
def connect():
    """Return the Google consent URL for the caller."""
    state = _state_serializer().dumps(_current_user())
    try:
        url = _services()["orchestrator"].credentials.authorization_url(state)
    except CredentialError as e:
        return jsonify({"error": "OAuth not configured", "message": str(e)}), 503
    return jsonify({"authUrl": url})


@email_bp.route("/oauth/callback", methods=["GET"])
def oauth_callback():
    """Exchange the authorization code and store the credential."""
    if request.args.get("error"):
        return jsonify({"error": "Authorization denied", "message": request.args["error"]}), 400

    code = request.args.get("code")
    state = request.args.get("state")
    if not code or not state:
        return jsonify({"error": "Invalid request", "message": "Missing code or state"}), 400

    try:
        user_id = _state_serializer().loads(state, max_age=STATE_MAX_AGE)
    except SignatureExpired:
        return jsonify({"error": "Invalid state", "message": "Authorization expired"}), 400
    except BadSignature:
        return jsonify({"error": "Invalid state", "message": "State did not verify"}), 400

    try:
        credential = _services()["orchestrator"].credentials.connect(user_id, code)
    except CredentialError as e:
        return jsonify({"error": "Connection failed", "message": str(e)}), 400

    return jsonify({"success": True, "connected": True, "email": credential.email})


@email_bp.route("/disconnect", methods=["POST"])
def disconnect():
    _services()["orchestrator"].credentials.disconnect(_current_user())
    return jsonify({"success": True, "connected": False})
