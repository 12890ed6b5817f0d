"""Conversion of raw Spotify Web API JSON into domain records."""

import json
import logging
from typing import Any, Dict, List

from ..models import Device, Track

# Album images come largest first; index 2 is the smallest (64px) variant.
COVER_IMAGE_INDEX = 2

_LOGGER = logging.getLogger("spotify.mapping")


def decode_json(raw: bytes) -> Dict[str, Any]:
    """Decode a response body, returning an empty dict for empty or invalid JSON."""
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        _LOGGER.debug("spotify.mapping.invalid_json", extra={"size": len(raw)})
        return {}
    return payload if isinstance(payload, dict) else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def join_artists(artists: Any) -> str:
    """Join artist names with ``", "`` keeping the order the API returned."""
    return ", ".join(_as_str(_as_dict(artist).get("name")) for artist in _as_list(artists))


def _cover_url(album: Dict[str, Any]) -> str:
    images = _as_list(album.get("images"))
    if len(images) <= COVER_IMAGE_INDEX:
        return ""
    return _as_str(_as_dict(images[COVER_IMAGE_INDEX]).get("url"))


def parse_track(data: Dict[str, Any]) -> Track:
    album = _as_dict(data.get("album"))
    return Track(
        id=_as_str(data.get("id")),
        name=_as_str(data.get("name")),
        artists=join_artists(data.get("artists")),
        album_id=_as_str(album.get("id")),
        album_name=_as_str(album.get("name")),
        uri=_as_str(data.get("uri")),
        image_url=_cover_url(album),
        is_explicit=bool(data.get("explicit", False)),
    )


def parse_device(data: Dict[str, Any]) -> Device:
    return Device(
        id=_as_str(data.get("id")),
        name=_as_str(data.get("name")),
        type=_as_str(data.get("type")),
        is_active=bool(data.get("is_active", False)),
    )


def parse_tracks(payload: Dict[str, Any]) -> List[Track]:
    """Parse a search response (``tracks.items[]``) into tracks, preserving order."""
    items = _as_list(_as_dict(payload.get("tracks")).get("items"))
    return [parse_track(_as_dict(item)) for item in items]


def parse_devices(payload: Dict[str, Any]) -> List[Device]:
    """Parse a ``/me/player/devices`` response into devices, preserving order."""
    return [parse_device(_as_dict(item)) for item in _as_list(payload.get("devices"))]


__all__ = [
    "COVER_IMAGE_INDEX",
    "decode_json",
    "join_artists",
    "parse_device",
    "parse_devices",
    "parse_track",
    "parse_tracks",
]
