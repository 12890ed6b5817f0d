"""
Pydantic models for SpotiSearch configuration validation

Type-safe schemas for the persisted settings (``config.json``) and the
runtime state (``state.json``), so malformed files are caught at load time.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import DEFAULT_NUMBER_OF_RESULTS, DEFAULT_SPOTIFY_EXECUTABLE


class SpotiSearchConfig(BaseModel):
    """User-facing settings of the search extension."""

    client_id: str = Field(default="", description="Spotify application client id")
    client_secret: str = Field(default="", description="Spotify application client secret")
    refresh_token: str = Field(default="", description="Spotify user refresh token")
    number_of_results: int = Field(
        default=DEFAULT_NUMBER_OF_RESULTS, ge=1, le=50, description="Tracks requested per search"
    )
    allow_explicit: bool = Field(default=True, description="Show tracks flagged as explicit")
    spotify_executable: str = Field(
        default=DEFAULT_SPOTIFY_EXECUTABLE, description="Command launching the local Spotify client"
    )
    covers_dir: str = Field(default="", description="Cover cache directory; empty = <home>/cache/covers")
    log_level: str = Field(default="WARNING", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @field_validator('client_id', 'client_secret', 'refresh_token', 'covers_dir')
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()

    @field_validator('spotify_executable')
    @classmethod
    def default_executable(cls, v: str) -> str:
        """An emptied executable field falls back to the default command."""
        return v.strip() or DEFAULT_SPOTIFY_EXECUTABLE

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


class RuntimeState(BaseModel):
    """State persisted between sessions but never edited by the user."""

    last_device: str = Field(default="", description="Id of the last device playback was sent to")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


def validate_config_dict(config_dict: Dict[str, Any]) -> tuple[SpotiSearchConfig, list[str]]:
    """Validate a config dictionary against the schema.

    Args:
        config_dict: Raw configuration dictionary from JSON

    Returns:
        Tuple of (validated_config, warnings_list)

    Raises:
        ValueError: If config is invalid with detailed error messages
    """
    warnings = []
    known = set(SpotiSearchConfig.model_fields)
    for key in sorted(set(config_dict) - known):
        if not key.startswith("_"):
            warnings.append(f"Unknown config field '{key}' ignored")

    try:
        validated = SpotiSearchConfig(**{k: v for k, v in config_dict.items() if k in known})
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed: {e}") from e
    return validated, warnings


def validate_state_dict(state_dict: Dict[str, Any]) -> RuntimeState:
    try:
        return RuntimeState(**{k: v for k, v in state_dict.items() if k in RuntimeState.model_fields})
    except ValidationError as e:
        raise ValueError(f"State validation failed: {e}") from e
