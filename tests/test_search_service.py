"""
Tests for the SearchService query handler and its playback actions.
"""

import json
from urllib.parse import parse_qs, urlparse

import pytest
from requests.exceptions import ConnectionError

from spotisearch.config_schema import SpotiSearchConfig
from spotisearch.constants import DEVICES_URL, PLAY_URL, QUEUE_URL, SEARCH_URL, TOKEN_URL
from spotisearch.services.search_service import (
    NO_CONNECTION_TITLE,
    SETUP_OK_MESSAGE,
    WRONG_CREDENTIALS_TITLE,
    SearchService,
)
from tests.conftest import (
    FakeResponse,
    device_json,
    devices_payload,
    search_payload,
    token_payload,
    track_json,
)

IMAGE_HOST = "https://i.scdn.co/image/"


class _Launcher:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.commands = []

    def __call__(self, command):
        self.commands.append(command)
        return self.succeed


@pytest.fixture
def launcher():
    return _Launcher()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def service(client, config_manager, launcher, notices):
    config = SpotiSearchConfig(client_id="client-id", client_secret="client-secret", refresh_token="refresh-token")
    svc = SearchService(client, config_manager, config, launcher=launcher, on_notice=notices.append)
    yield svc
    svc.close()


def _online(session, *tracks, devices=()):
    session.add("GET", TOKEN_URL, FakeResponse(405, {"error": "method_not_allowed"}))
    session.add("POST", TOKEN_URL, FakeResponse(200, token_payload()))
    session.add("GET", SEARCH_URL, FakeResponse(200, search_payload(*tracks)))
    session.add("GET", DEVICES_URL, FakeResponse(200, devices_payload(*devices)))
    session.add("GET", IMAGE_HOST, FakeResponse(200, content=b"jpeg-bytes"))
    session.add("PUT", PLAY_URL, FakeResponse(204))
    session.add("POST", QUEUE_URL, FakeResponse(204))
    return session


def _device_param(call):
    return parse_qs(urlparse(call.url).query)["device_id"][0]


class TestHandleQuery:
    """Tests for SearchService.handle_query"""

    def test_blank_query_yields_nothing(self, service, fake_session):
        result = service.handle_query("   ")

        assert result.success is True
        assert result.data == []
        assert fake_session.calls == []

    def test_no_connection_item(self, service, fake_session):
        fake_session.add("GET", TOKEN_URL, ConnectionError("offline"))

        result = service.handle_query("daft punk")

        assert result.success is False
        assert result.error_code == "NO_CONNECTION"
        assert [item.text for item in result.data] == [NO_CONNECTION_TITLE]
        assert fake_session.calls_to("GET", SEARCH_URL) == []

    def test_wrong_credentials_item(self, service, fake_session):
        fake_session.add("GET", TOKEN_URL, FakeResponse(405, {"error": "method_not_allowed"}))
        fake_session.add(
            "POST", TOKEN_URL, FakeResponse(400, {"error": "invalid_client", "error_description": "Invalid client"})
        )

        result = service.handle_query("daft punk")

        assert result.error_code == "AUTH_FAILED"
        assert [item.text for item in result.data] == [WRONG_CREDENTIALS_TITLE]

    def test_items_with_covers_and_actions(self, service, fake_session):
        _online(
            fake_session,
            track_json(1),
            track_json(2),
            devices=(device_json("desk", active=True), device_json("phone", name="Pixel", kind="Smartphone")),
        )

        result = service.handle_query("daft punk")

        assert result.success is True
        items = result.data
        assert [item.text for item in items] == ["Song 1", "Song 2"]
        assert items[0].subtext == "Album 1 (Artist A, Artist B)"
        assert items[0].icon_path == str(service.covers_dir / "album1.jpeg")
        assert (service.covers_dir / "album1.jpeg").read_bytes() == b"jpeg-bytes"
        assert [a.id for a in items[0].actions] == ["play", "queue", "play_on_phone"]
        assert items[0].actions[2].text == "Play on Smartphone (Pixel)"
        assert len(fake_session.calls_to("GET", DEVICES_URL)) == 1

    def test_search_uses_configured_limit(self, service, fake_session):
        _online(fake_session, track_json(1))
        service.config = SpotiSearchConfig(**{**service.config.to_dict(), "number_of_results": 12})

        service.handle_query("x")

        call = fake_session.calls_to("GET", SEARCH_URL)[0]
        assert parse_qs(urlparse(call.url).query)["limit"] == ["12"]

    def test_covers_downloaded_once_per_album(self, service, fake_session):
        _online(fake_session, track_json(1))

        service.handle_query("first")
        service.handle_query("second")

        assert len(fake_session.calls_to("GET", IMAGE_HOST)) == 1
        assert len(fake_session.calls_to("POST", TOKEN_URL)) == 1

    def test_explicit_tracks_filtered(self, service, fake_session):
        _online(fake_session, track_json(1, explicit=True), track_json(2))
        service.config = SpotiSearchConfig(**{**service.config.to_dict(), "allow_explicit": False})

        result = service.handle_query("x")

        assert [item.id for item in result.data] == ["track2"]

    def test_unusable_covers_dir_still_lists_tracks(self, service, fake_session, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("occupied")
        _online(fake_session, track_json(1), track_json(2))
        service.config = SpotiSearchConfig(**{**service.config.to_dict(), "covers_dir": str(blocker)})

        result = service.handle_query("x")

        assert result.success is True
        assert [item.id for item in result.data] == ["track1", "track2"]
        assert all(item.icon_path is None for item in result.data)
        assert fake_session.calls_to("GET", IMAGE_HOST) == []

    def test_to_dict_is_serializable(self, service, fake_session):
        _online(fake_session, track_json(1))

        item = service.handle_query("x").data[0]

        assert json.loads(json.dumps(item.to_dict()))["actions"][0] == {"id": "play", "text": "Play on Spotify"}


class TestPlayback:
    """Tests for play, play_on and queue"""

    def test_play_on_active_device_remembers_it(self, service, fake_session, track):
        _online(fake_session, devices=(device_json("a"), device_json("b", active=True)))

        result = service.play(track)
        service.close()

        assert result.data == {"device_id": "b", "outcome": "active"}
        assert _device_param(fake_session.calls_to("PUT", PLAY_URL)[0]) == "b"
        assert service.config_manager.load_state()["last_device"] == "b"

    def test_play_on_last_used_device(self, service, fake_session, track):
        service.config_manager.save_state({"last_device": "b"})
        _online(fake_session, devices=(device_json("a"), device_json("b")))

        result = service.play(track)
        service.close()

        assert result.data["outcome"] == "last_used"
        assert _device_param(fake_session.calls_to("PUT", PLAY_URL)[0]) == "b"

    def test_play_launches_local_client_when_no_devices(self, service, fake_session, launcher, track):
        fake_session.add(
            "GET",
            DEVICES_URL,
            FakeResponse(200, devices_payload()),
            FakeResponse(200, devices_payload()),
            FakeResponse(200, devices_payload(device_json("local"))),
        )
        fake_session.add("PUT", PLAY_URL, FakeResponse(204))

        result = service.play(track)
        service.close()

        assert launcher.commands == ["spotify"]
        assert result.success is True
        assert result.data == {"device_id": "local", "outcome": "await_local"}
        assert _device_param(fake_session.calls_to("PUT", PLAY_URL)[0]) == "local"

    def test_play_reports_launch_failure(self, service, fake_session, launcher, track):
        launcher.succeed = False
        fake_session.add("GET", DEVICES_URL, FakeResponse(200, devices_payload()))

        result = service.play(track)

        assert result.error_code == "LAUNCH_FAILED"
        assert fake_session.calls_to("PUT", PLAY_URL) == []

    def test_play_on_explicit_device_is_remembered(self, service, fake_session, track, devices):
        fake_session.add("PUT", PLAY_URL, FakeResponse(204))

        service.play_on(track, devices[0])
        service.close()

        assert _device_param(fake_session.calls_to("PUT", PLAY_URL)[0]) == "a"
        assert service.state.last_device == "a"

    def test_queue(self, service, fake_session, track):
        fake_session.add("POST", QUEUE_URL, FakeResponse(204))

        assert service.queue(track).success is True
        service.close()

        assert len(fake_session.calls_to("POST", QUEUE_URL)) == 1

    def test_action_failure_becomes_notice(self, service, fake_session, notices, track):
        fake_session.add("POST", QUEUE_URL, FakeResponse(403, {"error": {"status": 403, "message": "Premium required"}}))

        service.queue(track)
        service.close()

        assert len(notices) == 1
        assert "queue" in notices[0]
        assert "Premium required" in notices[0]


class TestSettings:
    """Tests for connection test and settings updates"""

    def test_connection_ok(self, service, fake_session):
        fake_session.add("POST", TOKEN_URL, FakeResponse(200, token_payload()))

        result = service.test_connection()

        assert result.success is True
        assert result.message == SETUP_OK_MESSAGE

    def test_connection_api_error(self, service, fake_session):
        fake_session.add(
            "POST", TOKEN_URL, FakeResponse(400, {"error": "invalid_client", "error_description": "Invalid client"})
        )

        result = service.test_connection()

        assert result.error_code == "API_ERROR"
        assert result.message == 'Spotify Web API returns: "Invalid client"\nPlease, check all input fields.'

    def test_connection_unreachable(self, service, fake_session):
        fake_session.add("POST", TOKEN_URL, ConnectionError("offline"))

        result = service.test_connection()

        assert result.error_code == "NO_CONNECTION"
        assert result.message.startswith(NO_CONNECTION_TITLE)

    def test_update_credentials_persists_changes(self, service):
        result = service.update_credentials(client_id="client-id", client_secret="new-secret")

        assert result.data == {"changed": ["client_secret"]}
        assert service.client.client_secret == "new-secret"
        assert service.config_manager.load_config().client_secret == "new-secret"

    def test_update_settings_validates(self, service):
        assert service.update_settings(number_of_results=99).error_code == "INVALID_SETTING"
        assert service.update_settings(volume=3).error_code == "INVALID_SETTING"

        result = service.update_settings(number_of_results=20)

        assert result.data == {"changed": ["number_of_results"]}
        assert service.config.number_of_results == 20

    def test_health_check(self, service, fake_session):
        fake_session.add("GET", TOKEN_URL, FakeResponse(405, {"error": "method_not_allowed"}))

        result = service.health_check()

        assert result.success is True
        assert result.data["credentials_configured"] is True
        assert result.data["token_expired"] is True
