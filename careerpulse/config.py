"""
Configuration Loader for CareerPulse
Loads and validates sync configuration from config.yaml

Secrets (API keys, OAuth client settings) are read from the environment,
which python-dotenv populates from .env.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

SUPPORTED_PROVIDERS = ("claude", "gemini")

DEFAULTS: Dict[str, Any] = {
    "database": {"path": "careerpulse.db"},
    "sync": {
        "max_results": 100,
        "default_lookback_days": 30,
        "deadline_seconds": 90,
        "fetch_retries": 2,
        "persist_duplicates": False,
    },
    "gmail": {"timeout_seconds": 30, "calls_per_minute": 250},
    "ai": {
        "provider": "claude",
        "model": None,
        "timeout_seconds": 30,
        "max_output_tokens": 500,
        "calls_per_minute": 60,
        "body_char_limit": 2000,
    },
    "extraction": {"heuristic_fallback": False},
    "cache": {"max_size": 1000},
    "credentials": {"expiry_skew_seconds": 60, "refresh_timeout_seconds": 15},
    "duplicates": {"similarity_threshold": 0.85, "lookback_days": 90, "max_candidates": 200},
    "logging": {"level": None, "json": False},
}

# (section, key) pairs that must hold a positive number
_POSITIVE_VALUES = [
    ("sync", "max_results"),
    ("sync", "default_lookback_days"),
    ("sync", "deadline_seconds"),
    ("gmail", "timeout_seconds"),
    ("gmail", "calls_per_minute"),
    ("ai", "timeout_seconds"),
    ("ai", "max_output_tokens"),
    ("ai", "calls_per_minute"),
    ("ai", "body_char_limit"),
    ("cache", "max_size"),
    ("credentials", "refresh_timeout_seconds"),
    ("duplicates", "lookback_days"),
    ("duplicates", "max_candidates"),
]


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Config:
    """Configuration manager for CareerPulse."""

    def __init__(self, config_path: Optional[Path] = None, overrides: Optional[Mapping] = None):
        """
        Initialize configuration from YAML file.

        Args:
            config_path: Path to config.yaml. When given it must exist; when
                omitted, ./config.yaml is used if present and defaults otherwise.
            overrides: Values merged on top of the file contents
        """
        self._explicit_path = config_path is not None
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._overrides = dict(overrides or {})
        self._config = self._load_config()

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "Config":
        """Build a configuration from a mapping, ignoring any config file."""
        config = cls.__new__(cls)
        config._explicit_path = False
        config.config_path = None
        config._overrides = dict(values)
        config._config = _merge(DEFAULTS, values)
        config._validate_config(config._config)
        return config

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and merge it over the defaults."""
        file_values: Dict[str, Any] = {}

        if self.config_path.exists():
            with open(self.config_path, "r") as f:
                file_values = yaml.safe_load(f) or {}
            if not isinstance(file_values, dict):
                raise ValueError(f"Config file must contain a mapping: {self.config_path}")
        elif self._explicit_path:
            raise FileNotFoundError(
                f"Config file not found: {self.config_path}\n"
                f"Copy config.example.yaml to config.yaml and adjust it."
            )

        config = _merge(_merge(DEFAULTS, file_values), self._overrides)
        self._validate_config(config)
        return config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate value ranges and choices."""
        for section in DEFAULTS:
            if not isinstance(config.get(section), dict):
                raise ValueError(f"Config section '{section}' must be a mapping")

        provider = str(config["ai"].get("provider") or "").lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unknown AI provider: '{provider}'. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            )

        for section, key in _POSITIVE_VALUES:
            value = config[section].get(key)
            if not _is_number(value) or value <= 0:
                raise ValueError(f"{section}.{key} must be a positive number, got {value!r}")

        threshold = config["duplicates"].get("similarity_threshold")
        if not _is_number(threshold) or not 0 < threshold <= 1:
            raise ValueError(
                f"duplicates.similarity_threshold must be in (0, 1], got {threshold!r}"
            )

        retries = config["sync"].get("fetch_retries")
        if not _is_number(retries) or retries < 0:
            raise ValueError(f"sync.fetch_retries must be zero or positive, got {retries!r}")

        skew = config["credentials"].get("expiry_skew_seconds")
        if not _is_number(skew) or skew < 0:
            raise ValueError(
                f"credentials.expiry_skew_seconds must be zero or positive, got {skew!r}"
            )

    # ===== STORAGE =====

    @property
    def database_path(self) -> Path:
        return Path(self._config["database"]["path"])

    # ===== SYNC =====

    @property
    def sync_max_results(self) -> int:
        return int(self._config["sync"]["max_results"])

    @property
    def sync_lookback_days(self) -> int:
        """Days searched back when a sync has no afterDate."""
        return int(self._config["sync"]["default_lookback_days"])

    @property
    def sync_deadline_seconds(self) -> float:
        return float(self._config["sync"]["deadline_seconds"])

    @property
    def fetch_retries(self) -> int:
        return int(self._config["sync"]["fetch_retries"])

    @property
    def persist_duplicates(self) -> bool:
        return bool(self._config["sync"]["persist_duplicates"])

    # ===== GMAIL =====

    @property
    def gmail_timeout(self) -> float:
        return float(self._config["gmail"]["timeout_seconds"])

    @property
    def gmail_calls_per_minute(self) -> int:
        return int(self._config["gmail"]["calls_per_minute"])

    # ===== AI =====

    @property
    def ai_provider(self) -> str:
        return str(self._config["ai"]["provider"]).lower()

    @property
    def ai_calls_per_minute(self) -> int:
        return int(self._config["ai"]["calls_per_minute"])

    @property
    def heuristic_fallback(self) -> bool:
        return bool(self._config["extraction"]["heuristic_fallback"])

    @property
    def cache_max_size(self) -> int:
        return int(self._config["cache"]["max_size"])

    # ===== CREDENTIALS =====

    @property
    def expiry_skew_seconds(self) -> float:
        return float(self._config["credentials"]["expiry_skew_seconds"])

    @property
    def refresh_timeout(self) -> float:
        return float(self._config["credentials"]["refresh_timeout_seconds"])

    @property
    def google_client_id(self) -> Optional[str]:
        return os.environ.get("GOOGLE_CLIENT_ID")

    @property
    def google_client_secret(self) -> Optional[str]:
        return os.environ.get("GOOGLE_CLIENT_SECRET")

    @property
    def google_redirect_uri(self) -> str:
        return os.environ.get(
            "GOOGLE_REDIRECT_URI", "http://localhost:5000/api/email/oauth/callback"
        )

    @property
    def default_user(self) -> str:
        return os.environ.get("CAREERPULSE_DEFAULT_USER", "default_user")

    # ===== DUPLICATES =====

    @property
    def similarity_threshold(self) -> float:
        return float(self._config["duplicates"]["similarity_threshold"])

    @property
    def duplicate_lookback_days(self) -> int:
        return int(self._config["duplicates"]["lookback_days"])

    @property
    def duplicate_max_candidates(self) -> int:
        return int(self._config["duplicates"]["max_candidates"])

    # ===== LOGGING =====

    @property
    def log_level(self) -> Optional[str]:
        return os.environ.get("LOG_LEVEL") or self._config["logging"].get("level")

    @property
    def json_logs(self) -> bool:
        return bool(self._config["logging"].get("json"))

    # ===== UTILITY METHODS =====

    def to_dict(self) -> Dict[str, Any]:
        """Return a copy of the merged configuration dictionary (the form AI providers take)."""
        return copy.deepcopy(self._config)


# Global config instance
_config: Optional[Config] = None


def get_config(config_path: Optional[Path] = None) -> Config:
    """
    Get global configuration instance.

    Creates the instance on first call (honouring CAREERPULSE_CONFIG),
    then returns the cached instance.
    """
    global _config
    if config_path is not None:
        _config = Config(config_path)
    elif _config is None:
        env_path = os.environ.get("CAREERPULSE_CONFIG")
        _config = Config(Path(env_path)) if env_path else Config()
    return _config
