import copy
import logging
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    "database": {
        "path": "~/.muezzin/muezzin.db",
        "timeout": 10,
        "batch_size": 100,
    },
    "provider": {
        "type": "diyanet",
        "timeout": 10,
        "user_agent": "muezzin/1.0",
    },
    "sync": {
        "enabled": True,
        "initial_delay": 0,
        "interval": "1 day",
        "month_window": 1,
        # Parent ids whose children are synced; null syncs every stored parent
        "countries": [2],
        "cities": [539],
        "districts": [9541],
    },
    "broom": {
        "enabled": True,
        "initial_delay": 0,
        "interval": "1 day",
        "effect": "7 days",
    },
    "cache": {
        "timeout": "1 hour",
    },
    "api": {
        "enabled": True,
        "host": "127.0.0.1",
        "port": 8765,
    },
    "logging": {
        "level": "INFO",
        "file": "~/.muezzin/muezzin.log",
    },
}

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")
_UNITS = {
    "": 1, "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "week": 604800, "weeks": 604800,
}


def parse_duration(value: Union[int, float, str, timedelta]) -> timedelta:
    """Numbers are seconds; strings look like "30s", "1 hour", "7 days"."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    match = _DURATION.match(str(value))
    if not match or match.group(2).lower() not in _UNITS:
        raise ValueError(f"Invalid duration: {value!r}")
    return timedelta(seconds=float(match.group(1)) * _UNITS[match.group(2).lower()])


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    def __init__(self, config_path: Optional[str] = None):
        logging.debug("Initializing Config class")

        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
            self.config_dir = self.config_file.parent
        else:
            self.config_dir = Path.home() / ".muezzin"
            self.config_file = self.config_dir / "config.yaml"

        logging.debug(f"Using config file: {self.config_file}")

        # Load environment variables from .env file
        self._load_env_file()

        self._ensure_config_exists()
        self._load_config()

    def _ensure_config_exists(self) -> None:
        """Create default config if it doesn't exist"""
        if not self.config_dir.exists():
            logging.info(f"Creating config directory: {self.config_dir}")
            self.config_dir.mkdir(parents=True)

        if not self.config_file.exists():
            logging.info(f"Creating default config file: {self.config_file}")
            self.config_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))

    def _load_env_file(self) -> None:
        """Load environment variables from .env file"""
        env_files = [
            self.config_dir / ".env",
            Path.cwd() / ".env",
        ]
        env_file = next((path for path in env_files if path.exists()), None)
        if not env_file:
            logging.debug("No .env file found, skipping environment variable loading")
            return

        logging.info(f"Loading environment variables from: {env_file}")
        try:
            with open(env_file, "r") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue

                    # KEY=VALUE
                    match = re.match(r"^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$", line)
                    if match:
                        key, value = match.groups()
                        value = value.strip('"').strip("'")
                        # Real environment wins over .env
                        if key not in os.environ:
                            os.environ[key] = value
                            logging.debug(f"Loaded env var: {key}")
        except OSError as e:
            logging.warning(f"Error loading .env file: {e}")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ${VAR_NAME} or $VAR_NAME values"""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            if data.startswith("${") and data.endswith("}"):
                return os.environ.get(data[2:-1], data)
            elif data.startswith("$") and len(data) > 1:
                return os.environ.get(data[1:], data)
            return data
        return data

    def _load_config(self) -> None:
        """Load configuration from file over the defaults"""
        logging.debug(f"Loading config from: {self.config_file}")
        try:
            with open(self.config_file) as f:
                new_data = yaml.safe_load(f) or {}
            if not isinstance(new_data, dict):
                raise ValueError("Invalid config format: root must be a dictionary")
        except (OSError, yaml.YAMLError, ValueError) as e:
            logging.error(f"Error loading config: {e}")
            logging.info("Using default configuration")
            new_data = {}

        self.data = _deep_merge(DEFAULT_CONFIG, self._substitute_env_vars(new_data))

        # Expand ~ in file paths
        if self.data["logging"].get("file"):
            self.data["logging"]["file"] = os.path.expanduser(self.data["logging"]["file"])
        if self.data["database"].get("path"):
            self.data["database"]["path"] = os.path.expanduser(self.data["database"]["path"])

    def section(self, name: str) -> Dict[str, Any]:
        return self.data.get(name) or {}

    def duration(self, section: str, key: str) -> timedelta:
        return parse_duration(self.section(section).get(key, DEFAULT_CONFIG[section][key]))
