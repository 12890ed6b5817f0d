"""
🔎 Search Service - Launcher Query Handling
===========================================

Turns a typed query into result items with playback actions:
connectivity probe → token refresh → search → cover download →
actions built from the device-selection policy.
"""

import logging
import shlex
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import BaseService, ServiceResult
from ..api.spotify import SpotifyApiClient
from ..config import ConfigManager
from ..config_schema import SpotiSearchConfig
from ..constants import COVER_FILE_SUFFIX
from ..core.device_selection import SelectionOutcome, select_device, transfer_targets
from ..models import Device, Track
from ..utils.logger import log_structured
from ..utils.thread_safety import ThreadSafeStateStore

NO_CONNECTION_TITLE = "Can't get an answer from the server."
NO_CONNECTION_HINT = "Please, check your internet connection."
WRONG_CREDENTIALS_TITLE = "Wrong credentials."
WRONG_CREDENTIALS_HINT = "Please, check the extension settings."
SETUP_OK_MESSAGE = "Everything is set up correctly."


@dataclass
class ResultAction:
    id: str
    text: str
    callback: Callable[[], ServiceResult]

    def __call__(self) -> ServiceResult:
        return self.callback()


@dataclass
class ResultItem:
    """One row in the launcher's result list."""
    id: str
    text: str
    subtext: str
    icon_path: Optional[str] = None
    actions: List[ResultAction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "subtext": self.subtext,
            "icon_path": self.icon_path,
            "actions": [{"id": a.id, "text": a.text} for a in self.actions],
        }


def launch_local_client(command: str) -> bool:
    """Start the local Spotify application detached from this process."""
    args = shlex.split(command)
    if not args:
        return False
    try:
        subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError:
        return False
    return True


class SearchService(BaseService):
    """Query handler shared by launcher hosts and the CLI."""

    def __init__(
        self,
        client: SpotifyApiClient,
        config_manager: ConfigManager,
        config: Optional[SpotiSearchConfig] = None,
        *,
        state_store: Optional[ThreadSafeStateStore] = None,
        launcher: Callable[[str], bool] = launch_local_client,
        on_notice: Optional[Callable[[str], None]] = None,
    ):
        super().__init__("search")
        self.client = client
        self.config_manager = config_manager
        self.config = config or config_manager.load_config()
        self.state = state_store or ThreadSafeStateStore(config_manager)
        self.launcher = launcher
        self.on_notice = on_notice
        self._config_lock = threading.Lock()
        self.client.on_action_failure = self._on_action_failure

    @classmethod
    def create(cls, config_manager: Optional[ConfigManager] = None, **kwargs: Any) -> "SearchService":
        """Build the service and its API client from the persisted configuration."""
        manager = config_manager or ConfigManager()
        config = manager.load_config()
        client = SpotifyApiClient(
            config.client_id,
            config.client_secret,
            config.refresh_token,
            session=kwargs.pop("session", None),
        )
        return cls(client, manager, config, **kwargs)

    def close(self) -> None:
        self.client.close()

    def _on_action_failure(self, action: str, error: Exception) -> None:
        self.logger.warning("search.action.failed", extra={"action": action, "error": str(error)})
        if self.on_notice is not None:
            self.on_notice(f"Spotify {action} failed: {error}")

    @property
    def covers_dir(self) -> Path:
        return self.config_manager.covers_dir(self.config)

    # Query handling

    @staticmethod
    def _info_item(item_id: str, text: str, subtext: str) -> ResultItem:
        return ResultItem(id=item_id, text=text, subtext=subtext)

    def ensure_session(self) -> ServiceResult:
        """Probe connectivity and refresh the access token if it expired."""
        if not self.client.check_server_response():
            self.logger.debug("search.no_connection")
            return self._error_result(
                NO_CONNECTION_TITLE,
                error_code="NO_CONNECTION",
                data=[self._info_item("no_connection", NO_CONNECTION_TITLE, NO_CONNECTION_HINT)],
            )

        if self.client.is_access_token_expired():
            self.logger.debug("search.token_expired")
            if not self.client.refresh_access_token():
                return self._error_result(
                    WRONG_CREDENTIALS_TITLE,
                    error_code="AUTH_FAILED",
                    data=[self._info_item("wrong_credentials", WRONG_CREDENTIALS_TITLE, WRONG_CREDENTIALS_HINT)],
                )
        return self._success_result()

    def handle_query(self, query: str) -> ServiceResult:
        """
        Search tracks for ``query`` and build result items.

        Returns:
            ServiceResult: ``data`` is a list of :class:`ResultItem`. Connectivity
            and credential problems come back as a single informational item.
        """
        if not query or not query.strip():
            return self._success_result(data=[])

        try:
            session = self.ensure_session()
            if not session.success:
                return session

            tracks = self.client.search_tracks(query.strip(), self.config.number_of_results)
            devices = self.client.get_devices() if tracks else []

            covers: Optional[Path] = self.covers_dir
            try:
                covers.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                # Results are still listed, just without artwork
                self.logger.warning("search.covers.unavailable", extra={"path": str(covers), "error": str(e)})
                covers = None

            items = []
            for track in tracks:
                if track.is_explicit and not self.config.allow_explicit:
                    continue
                icon_path = None
                if covers is not None and track.album_id:
                    cover = covers / f"{track.album_id}{COVER_FILE_SUFFIX}"
                    self.client.download_file(track.image_url, cover)
                    icon_path = str(cover)
                items.append(self.build_item(track, devices, icon_path))

            return self._success_result(data=items, message=f"Found {len(items)} tracks")
        except Exception as e:
            return self._handle_error(e, "handle_query")

    def build_item(self, track: Track, devices: Sequence[Device], icon_path: Optional[str] = None) -> ResultItem:
        actions = [
            ResultAction("play", "Play on Spotify", lambda: self.play(track)),
            ResultAction("queue", "Add to the Spotify queue", lambda: self.queue(track)),
        ]
        for device in transfer_targets(devices):
            actions.append(
                ResultAction(
                    f"play_on_{device.id}",
                    f"Play on {device.type} ({device.name})",
                    lambda device=device: self.play_on(track, device),
                )
            )
        return ResultItem(
            id=track.id,
            text=track.name,
            subtext=f"{track.album_name} ({track.artists})",
            icon_path=icon_path,
            actions=actions,
        )

    # Actions

    def play(self, track: Track, *, cancel_event: Optional[threading.Event] = None) -> ServiceResult:
        """Play ``track`` on the device chosen by the selection policy."""
        try:
            devices = self.client.get_devices()
            selection = select_device(devices, self.state.last_device)

            if selection.outcome is SelectionOutcome.NO_DEVICES:
                if not self.launcher(self.config.spotify_executable):
                    return self._error_result(
                        f"Could not start '{self.config.spotify_executable}'",
                        error_code="LAUNCH_FAILED",
                    )
                device = self.client.wait_for_device_and_play(track, cancel_event=cancel_event)
                if device is None:
                    return self._error_result("No Spotify device became available", error_code="NO_DEVICE")
                self.logger.info("search.play.local", extra={"device_id": device.id})
                return self._success_result(
                    data={"device_id": device.id, "outcome": SelectionOutcome.AWAIT_LOCAL.value},
                    message="Playing on local Spotify.",
                )

            device = selection.device
            self.client.play_track(track, device.id)
            if selection.persist:
                self.state.last_device = device.id
            log_structured(
                self.logger, logging.INFO, "search.play",
                device_id=device.id, outcome=selection.outcome.value,
            )
            return self._success_result(
                data={"device_id": device.id, "outcome": selection.outcome.value},
                message=f"Playing on {device.name}",
            )
        except Exception as e:
            return self._handle_error(e, "play")

    def play_on(self, track: Track, device: Device) -> ServiceResult:
        """Play ``track`` on an explicitly chosen device and remember it."""
        self.client.play_track(track, device.id)
        self.state.last_device = device.id
        return self._success_result(data={"device_id": device.id}, message=f"Playing on {device.name}")

    def queue(self, track: Track) -> ServiceResult:
        self.client.add_track_to_queue(track)
        return self._success_result(message=f"Queued {track.name}")

    # Settings

    def test_connection(self) -> ServiceResult:
        """Refresh the token once and describe the outcome for the user."""
        if self.client.refresh_access_token():
            return self._success_result(message=SETUP_OK_MESSAGE)

        error = self.client.last_error_message
        if not error:
            return self._error_result(f"{NO_CONNECTION_TITLE}\n{NO_CONNECTION_HINT}", error_code="NO_CONNECTION")
        return self._error_result(
            f'Spotify Web API returns: "{error}"\nPlease, check all input fields.',
            error_code="API_ERROR",
        )

    def update_credentials(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> ServiceResult:
        """Apply new credentials; persist only those that actually changed."""
        setters = {
            "client_id": (client_id, self.client.set_client_id),
            "client_secret": (client_secret, self.client.set_client_secret),
            "refresh_token": (refresh_token, self.client.set_refresh_token),
        }
        changed = {name: value for name, (value, setter) in setters.items()
                   if value is not None and setter(value)}
        return self._apply_config_changes(changed)

    def update_settings(self, **settings: Any) -> ServiceResult:
        """Apply non-credential settings such as ``number_of_results``."""
        unknown = set(settings) - set(SpotiSearchConfig.model_fields)
        if unknown:
            return self._error_result(f"Unknown settings: {', '.join(sorted(unknown))}", error_code="INVALID_SETTING")
        current = self.config.to_dict()
        changed = {k: v for k, v in settings.items() if v is not None and current.get(k) != v}
        return self._apply_config_changes(changed)

    def _apply_config_changes(self, changed: Dict[str, Any]) -> ServiceResult:
        if not changed:
            return self._success_result(data={"changed": []})
        with self._config_lock:
            try:
                updated = SpotiSearchConfig(**{**self.config.to_dict(), **changed})
            except ValueError as e:
                return self._error_result(str(e), error_code="INVALID_SETTING")
            if not self.config_manager.save_config(updated):
                return self._error_result("Could not save settings", error_code="SAVE_FAILED")
            self.config = updated
        return self._success_result(data={"changed": sorted(changed)}, message="Settings saved")

    def health_check(self) -> ServiceResult:
        reachable = self.client.check_server_response()
        return ServiceResult(
            success=reachable,
            data={
                "status": "healthy" if reachable else "unreachable",
                "service": self.name,
                "credentials_configured": self.config.has_credentials,
                "token_expired": self.client.is_access_token_expired(),
            },
        )
