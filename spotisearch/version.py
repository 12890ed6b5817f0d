"""
SpotiSearch Version Information
Central version management for the SpotiSearch project.
"""

from typing import Dict, Optional, Union

# Semantic Versioning: MAJOR.MINOR.PATCH
VERSION = "0.4.0"

VERSION_INFO: Dict[str, Union[int, Optional[str]]] = {
    "major": 0,
    "minor": 4,
    "patch": 0,
    "pre_release": None,  # e.g., "alpha", "beta", "rc1"
}

APP_NAME = "SpotiSearch"
APP_DESCRIPTION = "Spotify track search and playback for launcher hosts"


def get_version() -> str:
    """Get the current version string.

    Returns:
        str: Version string in format MAJOR.MINOR.PATCH
    """
    return VERSION


def get_full_version() -> str:
    """Get version with pre-release info if available."""
    version = VERSION
    if VERSION_INFO["pre_release"]:
        version += f"-{VERSION_INFO['pre_release']}"
    return version


def get_app_info() -> str:
    """Get application name and version, e.g. ``"SpotiSearch v0.4.0"``."""
    return f"{APP_NAME} v{get_full_version()}"
