"""
Configuration — loads settings from .legacykms.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml

_DEFAULTS = {
    "store_dir": ".legacykms",
    "storage_key": "kms_prototype_data",
    "quota_bytes": 5 * 1024 * 1024,
    "preview_chars": 500,
    "log_level": "WARNING",
    "watch_debounce": 0.5,
}

# Config file search locations
_CONFIG_FILENAMES = [".legacykms.yaml", ".legacykms.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .legacykms.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        self.STORE_DIR = _get("KMS_STORE_DIR", "store_dir", _DEFAULTS["store_dir"])
        self.STORAGE_KEY = _get("KMS_STORAGE_KEY", "storage_key",
                                _DEFAULTS["storage_key"])

        # Snapshot size limit; 0 disables the check
        self.QUOTA_BYTES = _get("KMS_QUOTA_BYTES", "quota_bytes",
                                _DEFAULTS["quota_bytes"], cast=int)

        self.PREVIEW_CHARS = _get("KMS_PREVIEW_CHARS", "preview_chars",
                                  _DEFAULTS["preview_chars"], cast=int)
        self.LOG_LEVEL = _get("KMS_LOG_LEVEL", "log_level",
                              _DEFAULTS["log_level"]).upper()
        self.WATCH_DEBOUNCE = _get("KMS_WATCH_DEBOUNCE", "watch_debounce",
                                   _DEFAULTS["watch_debounce"], cast=float)

    @property
    def quota(self) -> int | None:
        """Quota for the storage medium, or None when disabled."""
        return self.QUOTA_BYTES if self.QUOTA_BYTES > 0 else None

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
