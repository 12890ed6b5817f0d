"""Central constants for SpotiSearch.

Only put small, stable primitives here – avoid runtime/config dependent values.
"""

TOKEN_URL = "https://accounts.spotify.com/api/token"
API_BASE_URL = "https://api.spotify.com/v1"
SEARCH_URL = f"{API_BASE_URL}/search"
DEVICES_URL = f"{API_BASE_URL}/me/player/devices"
QUEUE_URL = f"{API_BASE_URL}/me/player/queue"
PLAY_URL = f"{API_BASE_URL}/me/player/play"

# Used when a token response omits expires_in
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

DEFAULT_NUMBER_OF_RESULTS = 5
DEFAULT_SPOTIFY_EXECUTABLE = "spotify"
COVERS_DIR_NAME = "covers"
COVER_FILE_SUFFIX = ".jpeg"
