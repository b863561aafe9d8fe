"""
ConfigStore - persisted user defaults.

Stores the user-settable subset of UploadConfig as JSON. Unknown keys in
the file are ignored; a missing or unreadable file yields built-in defaults.
"""
import json
import logging
import os
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import ConfigError
from ..models import UploadConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BUNKR_UPLOADER_CONFIG"
API_URL_ENV_VAR = "BUNKR_API_URL"
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "bunkr_uploader"
DEFAULT_CONFIG_FILE = "config.json"

NONE_VALUES = {"none", "null", ""}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"true", "1", "yes", "on"}:
        return True
    if lowered in {"false", "0", "no", "off"}:
        return False
    raise ValueError(f"expected true/false, got {value!r}")


def _parse_positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f"must be >= 1, got {number}")
    return number


def _parse_non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError(f"must be >= 0, got {number}")
    return number


def _parse_optional_str(value: str) -> Optional[str]:
    return None if value.strip().lower() in NONE_VALUES else value


# key -> parser for ``config set``
CONFIG_KEYS: Dict[str, Callable[[str], Any]] = {
    "default_batch_size": _parse_positive_int,
    "default_album_id": _parse_optional_str,
    "default_album_name": _parse_optional_str,
    "preprocess_videos": _parse_bool,
    "create_missing_album": _parse_bool,
    "max_retries": _parse_non_negative_int,
}


def _render(value: Any) -> str:
    if value is None:
        return "none"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ConfigStore:
    """Load, update and save persisted defaults."""

    def __init__(self, path: Optional[Path] = None):
        if path is None:
            env_path = os.getenv(CONFIG_ENV_VAR)
            path = Path(env_path) if env_path else DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_raw(self) -> Dict[str, Any]:
        if not self._path.exists():
            logger.debug("No config file at %s, using defaults", self._path)
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse config file %s: %s - using defaults", self._path, e)
            return {}
        except OSError as e:
            logger.warning("Failed to read config file %s: %s - using defaults", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Config file %s is not a JSON object - using defaults", self._path)
            return {}
        return {k: v for k, v in data.items() if k in CONFIG_KEYS}

    def load(self) -> UploadConfig:
        """Built-in defaults overlaid with persisted values (and BUNKR_API_URL)."""
        raw = self._read_raw()
        config = UploadConfig()
        values: Dict[str, Any] = {}
        for key, value in raw.items():
            try:
                values[key] = CONFIG_KEYS[key](_render(value))
            except ValueError as e:
                logger.warning("Ignoring invalid config value %s=%r: %s", key, value, e)
        api_url = os.getenv(API_URL_ENV_VAR)
        if api_url:
            values["api_base_url"] = api_url
        # Persisted None must clear the value, so bypass merge()'s None filter
        return replace(config, **values)

    def save(self, config: UploadConfig) -> None:
        data = {k: v for k, v in asdict(config).items() if k in CONFIG_KEYS}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info("Config saved to %s", self._path)

    def get_value(self, key: str) -> str:
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown key: {key}")
        return _render(getattr(self.load(), key))

    def set_value(self, key: str, value: str) -> UploadConfig:
        """Parse, apply and persist one key. Returns the updated config."""
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown key: {key}")
        try:
            parsed = CONFIG_KEYS[key](value)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {key}: {e}") from e

        config = replace(self.load(), **{key: parsed})
        self.save(config)
        return config

    def items(self) -> List[Tuple[str, str, str]]:
        """(key, current, default) rows for display."""
        current = self.load()
        defaults = UploadConfig()
        return [
            (key, _render(getattr(current, key)), _render(getattr(defaults, key)))
            for key in CONFIG_KEYS
        ]
