"""
Startup validation and health checks for CareerPulse.

Validates environment, file system, database and package dependencies
before the server starts.
"""

import importlib
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from careerpulse.errors import StorageError
from careerpulse.logging_config import get_logger
from careerpulse.models import utcnow

logger = get_logger(__name__)

# Env var holding the API key of each inference provider
PROVIDER_KEYS = {
    "claude": ("ANTHROPIC_API_KEY", "Claude/Anthropic"),
    "gemini": ("GOOGLE_API_KEY", "Google Gemini"),
}


class ValidationResult:
    """Result of a validation check."""

    def __init__(
        self,
        name: str,
        passed: bool,
        message: str,
        severity: str = "error",  # error, warning, info
        fix_hint: Optional[str] = None,
    ):
        self.name = name
        self.passed = passed
        self.message = message
        self.severity = severity
        self.fix_hint = fix_hint

    def __str__(self) -> str:
        status = "PASS" if self.passed else self.severity.upper()
        return f"[{status}] {self.name}: {self.message}"


def validate_environment(config) -> List[ValidationResult]:
    """Check API keys and OAuth client settings."""
    results = []

    env_var, provider_name = PROVIDER_KEYS[config.ai_provider]
    if os.environ.get(env_var):
        results.append(
            ValidationResult(
                name=f"AI Provider: {provider_name}",
                passed=True,
                message=f"{provider_name} API key configured",
                severity="info",
            )
        )
    else:
        # Sync still runs without a key, it just extracts nothing
        results.append(
            ValidationResult(
                name=f"AI Provider: {provider_name}",
                passed=False,
                message=f"{env_var} not set, email extraction is disabled",
                severity="warning",
                fix_hint=f"Set {env_var} in your .env file",
            )
        )

    if config.google_client_id and config.google_client_secret:
        results.append(
            ValidationResult(
                name="Google OAuth Client",
                passed=True,
                message=f"OAuth client configured (redirect: {config.google_redirect_uri})",
                severity="info",
            )
        )
    else:
        results.append(
            ValidationResult(
                name="Google OAuth Client",
                passed=False,
                message="GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set",
                severity="warning",
                fix_hint="Create an OAuth web client in Google Cloud Console and add it to .env",
            )
        )

    return results


def validate_file_system(config) -> List[ValidationResult]:
    """Check that the database directory exists and is writable."""
    db_dir = Path(config.database_path).resolve().parent

    if not db_dir.exists():
        return [
            ValidationResult(
                name="Database Directory",
                passed=False,
                message=f"Database directory does not exist: {db_dir}",
                severity="error",
                fix_hint="Create the directory or change database.path in config.yaml",
            )
        ]
    if not os.access(db_dir, os.W_OK):
        return [
            ValidationResult(
                name="Database Directory",
                passed=False,
                message=f"No write permission for database directory: {db_dir}",
                severity="error",
                fix_hint="Fix directory permissions: chmod 755",
            )
        ]
    return [
        ValidationResult(
            name="Database Directory",
            passed=True,
            message="Database directory accessible",
            severity="info",
        )
    ]


def validate_database(storage) -> List[ValidationResult]:
    """Initialize the schema and check the connection."""
    try:
        storage.init_db()
        storage.ping()
    except StorageError as e:
        return [
            ValidationResult(
                name="Database Connection",
                passed=False,
                message=f"Database error: {e}",
                severity="error",
                fix_hint="Check database file permissions and integrity",
            )
        ]
    return [
        ValidationResult(
            name="Database Connection",
            passed=True,
            message="Database initialized successfully",
            severity="info",
        )
    ]


def validate_dependencies(config) -> List[ValidationResult]:
    """Check that required packages import."""
    results = []

    packages = [
        ("flask", "Flask web framework"),
        ("google.oauth2", "Google OAuth"),
        ("googleapiclient", "Gmail API"),
        ("rapidfuzz", "Fuzzy matching"),
        ("bs4", "HTML parsing"),
    ]
    if config.ai_provider == "claude":
        packages.append(("anthropic", "Claude AI SDK"))
    else:
        packages.append(("google.generativeai", "Google Gemini SDK"))

    for package, description in packages:
        try:
            importlib.import_module(package)
        except ImportError:
            results.append(
                ValidationResult(
                    name=f"Package: {package}",
                    passed=False,
                    message=f"{description} not installed",
                    severity="error",
                    fix_hint="Run: pip install -e .",
                )
            )
        else:
            results.append(
                ValidationResult(
                    name=f"Package: {package}",
                    passed=True,
                    message=f"{description} available",
                    severity="info",
                )
            )

    return results


def run_startup_validation(
    config, storage, strict: bool = False, log_results: bool = True
) -> Tuple[bool, List[ValidationResult]]:
    """
    Run all startup validations.

    Args:
        config: Loaded Config
        storage: Storage backend to initialize and check
        strict: If True, treat warnings as errors
        log_results: If True, log validation results

    Returns:
        Tuple of (all_passed, results)
    """
    all_results = []
    all_results.extend(validate_environment(config))
    all_results.extend(validate_file_system(config))
    all_results.extend(validate_database(storage))
    all_results.extend(validate_dependencies(config))

    if log_results:
        logger.info("=" * 60)
        logger.info("STARTUP VALIDATION RESULTS")
        logger.info("=" * 60)

        for result in all_results:
            if result.passed or result.severity == "info":
                logger.info(str(result))
            elif result.severity == "error":
                logger.error(str(result))
                if result.fix_hint:
                    logger.error(f"  Hint: {result.fix_hint}")
            else:
                logger.warning(str(result))
                if result.fix_hint:
                    logger.warning(f"  Hint: {result.fix_hint}")

        logger.info("=" * 60)

    errors = [r for r in all_results if not r.passed and r.severity == "error"]
    warnings = [r for r in all_results if not r.passed and r.severity == "warning"]

    if errors:
        logger.error(f"Startup validation failed with {len(errors)} error(s)")
        return False, all_results

    if strict and warnings:
        logger.error(f"Startup validation failed with {len(warnings)} warning(s) (strict mode)")
        return False, all_results

    logger.info("Startup validation passed")
    return True, all_results


def get_health_status(storage, cache=None) -> Dict:
    """
    Get current health status for the health check endpoint.

    Returns:
        Health status dictionary
    """
    status = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "checks": {},
    }

    try:
        storage.ping()
        status["checks"]["database"] = {"status": "healthy"}
    except StorageError as e:
        status["status"] = "unhealthy"
        status["checks"]["database"] = {"status": "unhealthy", "error": str(e)}

    if cache is not None:
        status["checks"]["extraction_cache"] = {"status": "healthy", **cache.stats()}

    return status
