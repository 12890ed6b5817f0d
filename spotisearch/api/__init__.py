"""Spotify Web API access: transport, token lifecycle, JSON mapping and client."""

from .spotify import PlaybackActionError, SpotifyApiClient

__all__ = ["PlaybackActionError", "SpotifyApiClient"]
