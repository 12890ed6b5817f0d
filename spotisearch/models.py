"""
Domain records returned by the Spotify client.

Both records are immutable snapshots of what the Web API returned at the time
of the call; they carry no identity beyond the current response.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Track:
    """A playable search result."""
    id: str
    name: str
    artists: str  # "Artist A, Artist B" in API order
    album_id: str
    album_name: str
    uri: str
    image_url: str = ""
    is_explicit: bool = False


@dataclass(frozen=True)
class Device:
    """A Spotify Connect playback endpoint."""
    id: str
    name: str
    type: str
    is_active: bool = False
