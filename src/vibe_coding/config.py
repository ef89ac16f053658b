"""Settings for vibe coding."""

import os
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Settings file path
SETTINGS_DIR = os.path.join(os.path.expanduser('~'), '.vibe_coding')
SETTINGS_FILE = os.path.join(SETTINGS_DIR, 'settings.json')

DEFAULT_SETTINGS: Dict[str, Any] = {
    'host': '127.0.0.1',
    'port': 5000,
    # Per-file ceiling for embedded content (1 MB)
    'max_file_size': 1 * 1024 * 1024,
    # Cumulative ceiling for embedded content (10 MB), None disables it
    'max_total_size': 10 * 1024 * 1024,
    'batch_size': 50,
    'biggest_files_count': 10,
    'ignore_file': '.gitignore',
}


class Settings:
    """Resolved settings, defaults merged with the user's settings file."""

    def __init__(self, **overrides: Any):
        values = dict(DEFAULT_SETTINGS)
        for key, value in overrides.items():
            if key not in DEFAULT_SETTINGS:
                logger.warning(f"Ignoring unknown setting: {key}")
                continue
            if value is None and key != 'max_total_size':
                continue
            checked = _validate(key, value)
            if checked is not _INVALID:
                values[key] = checked

        self.host: str = values['host']
        self.port: int = values['port']
        self.max_file_size: int = values['max_file_size']
        self.max_total_size: Optional[int] = values['max_total_size']
        self.batch_size: int = values['batch_size']
        self.biggest_files_count: int = values['biggest_files_count']
        self.ignore_file: str = values['ignore_file']

    def to_dict(self) -> Dict[str, Any]:
        """Return the settings as a plain dictionary."""
        return {key: getattr(self, key) for key in DEFAULT_SETTINGS}

    def replace(self, **overrides: Any) -> 'Settings':
        """Return a copy with the given (non-None) values overridden."""
        values = self.to_dict()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return Settings(**values)

    def __repr__(self) -> str:
        return f"Settings({self.to_dict()})"


_INVALID = object()


def _validate(key: str, value: Any) -> Any:
    """Validate a single setting, returning _INVALID if it should be ignored."""
    try:
        if key == 'port':
            port = int(value)
            if not 1024 <= port <= 65535:
                raise ValueError("Port must be between 1024 and 65535")
            return port
        if key == 'max_total_size':
            if value is None:
                return None
            size = int(value)
            if size <= 0:
                raise ValueError("Size must be positive")
            return size
        if key in ('max_file_size', 'batch_size', 'biggest_files_count'):
            number = int(value)
            if number <= 0:
                raise ValueError("Value must be positive")
            return number
        if key in ('host', 'ignore_file'):
            if not isinstance(value, str) or not value.strip():
                raise ValueError("Value must be a non-empty string")
            return value.strip()
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid value for setting '{key}' ({value!r}): {e}. Using default.")
        return _INVALID
    return value


def _ensure_settings_dir(settings_file: str) -> None:
    """Ensure settings directory exists."""
    settings_dir = os.path.dirname(settings_file)
    if settings_dir and not os.path.exists(settings_dir):
        os.makedirs(settings_dir, exist_ok=True)


def _read_settings_file(settings_file: str) -> Dict[str, Any]:
    if not os.path.exists(settings_file):
        return {}
    try:
        with open(settings_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Error loading settings from {settings_file}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Settings file {settings_file} does not contain a JSON object")
        return {}
    return data


def load_settings(settings_file: Optional[str] = None) -> Settings:
    """
    Load settings from disk.

    Args:
        settings_file: Path to the settings file (defaults to ~/.vibe_coding/settings.json)

    Returns:
        The resolved Settings
    """
    settings_file = settings_file or SETTINGS_FILE
    return Settings(**_read_settings_file(settings_file))


def save_settings(settings: Dict[str, Any], settings_file: Optional[str] = None) -> bool:
    """
    Save settings to disk, merging into any existing settings.

    Args:
        settings: Dictionary of settings to save
        settings_file: Path to the settings file (defaults to ~/.vibe_coding/settings.json)

    Returns:
        True if the settings were written, False otherwise
    """
    settings_file = settings_file or SETTINGS_FILE
    _ensure_settings_dir(settings_file)

    current_settings = _read_settings_file(settings_file)
    current_settings.update(settings)

    try:
        with open(settings_file, 'w', encoding='utf-8') as f:
            json.dump(current_settings, f, indent=2)
    except OSError as e:
        logger.error(f"Error saving settings to {settings_file}: {e}")
        return False
    return True
