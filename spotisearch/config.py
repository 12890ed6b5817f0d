"""
Centralized configuration management for SpotiSearch
Loads and saves the user settings and the runtime state, validated against
the Pydantic schema, with credentials optionally supplied through the
environment or a ``.env`` file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .config_schema import (RuntimeState, SpotiSearchConfig,
                            validate_config_dict, validate_state_dict)
from .constants import COVERS_DIR_NAME

CONFIG_FILE_NAME = "config.json"
STATE_FILE_NAME = "state.json"

# Environment variables that fill credentials missing from config.json
ENV_CREDENTIALS = {
    "client_id": "SPOTIFY_CLIENT_ID",
    "client_secret": "SPOTIFY_CLIENT_SECRET",
    "refresh_token": "SPOTIFY_REFRESH_TOKEN",
}


def get_app_home() -> Path:
    """Get application home directory path-agnostically"""
    home = os.getenv("SPOTISEARCH_HOME")
    return Path(home).expanduser() if home else Path.home() / ".spotisearch"


def _write_json_atomically(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class ConfigManager:
    """Manages configuration loading and validation"""

    def __init__(self, base_path: Optional[str] = None, *, load_env: bool = True):
        self.base_path = Path(base_path) if base_path else get_app_home()
        self.config_file = self.base_path / CONFIG_FILE_NAME
        self.state_file = self.base_path / STATE_FILE_NAME
        self._logger = logging.getLogger("spotisearch.config")

        if load_env:
            env_file = self.base_path / ".env"
            if env_file.exists():
                load_dotenv(dotenv_path=env_file)
            # Also allow a working-directory .env (common in dev setups)
            load_dotenv()

    def _read_json(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            self._logger.warning("Could not read %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            self._logger.warning("Ignoring %s: top-level value is not an object", path)
            return {}
        return data

    def load_config(self) -> SpotiSearchConfig:
        """
        Load and validate the user settings.

        Credentials left empty in the file are taken from the environment.
        An invalid file falls back to defaults with a logged error.
        """
        raw = self._read_json(self.config_file)
        for field_name, env_name in ENV_CREDENTIALS.items():
            if not str(raw.get(field_name) or "").strip():
                env_value = os.getenv(env_name)
                if env_value:
                    raw[field_name] = env_value

        try:
            config, warnings = validate_config_dict(raw)
        except ValueError as e:
            self._logger.error("❌ %s; using defaults", e)
            return SpotiSearchConfig()

        for warning in warnings:
            self._logger.warning("Config validation warning: %s", warning)
        return config

    def save_config(self, config: SpotiSearchConfig) -> bool:
        try:
            _write_json_atomically(self.config_file, config.to_dict())
            return True
        except OSError as e:
            self._logger.error("❌ Could not save %s: %s", self.config_file, e)
            return False

    def load_state(self) -> Dict[str, Any]:
        raw = self._read_json(self.state_file)
        try:
            return validate_state_dict(raw).to_dict()
        except ValueError as e:
            self._logger.warning("%s; starting with empty state", e)
            return RuntimeState().to_dict()

    def save_state(self, state: Dict[str, Any]) -> bool:
        try:
            _write_json_atomically(self.state_file, validate_state_dict(state).to_dict())
            return True
        except (OSError, ValueError) as e:
            self._logger.error("❌ Could not save %s: %s", self.state_file, e)
            return False

    def covers_dir(self, config: SpotiSearchConfig) -> Path:
        """Directory holding one ``<album_id>.jpeg`` per album."""
        if config.covers_dir:
            return Path(config.covers_dir).expanduser()
        return self.base_path / "cache" / COVERS_DIR_NAME


__all__ = ["ConfigManager", "get_app_home"]
