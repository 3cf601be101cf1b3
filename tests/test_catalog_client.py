"""
Tests for echoplay.catalog.client.CatalogClient.

Uses httpx.MockTransport so no request leaves the process.
"""

from __future__ import annotations

import json

import httpx
import pytest

from echoplay.catalog.client import CatalogClient
from echoplay.core import (
    AuthenticationError,
    ConflictError,
    RequestRejectedError,
    ResponseFormatError,
    TransportError,
)
from echoplay.core.events import EventBus
from echoplay.core.session import SessionContext

BASE_URL = "https://echo.test"


class Backend:
    """Records requests and answers with a canned handler."""

    def __init__(self, handler) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)


async def make_client(handler, *, logged_in: bool = True) -> tuple[CatalogClient, Backend]:
    session = SessionContext(bus=EventBus())
    if logged_in:
        await session.establish("tok-123", "alice")
    backend = Backend(handler)
    client = CatalogClient(session, base_url=BASE_URL, transport=httpx.MockTransport(backend))
    return client, backend


class TestAuthentication:
    """Tests for login/register."""

    async def test_login_returns_token(self) -> None:
        client, backend = await make_client(
            lambda r: httpx.Response(200, json={"access_token": "abc"}), logged_in=False
        )

        assert await client.login("alice", "secret") == "abc"

        request = backend.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/login"
        assert json.loads(request.content) == {"username": "alice", "password": "secret"}
        assert "authorization" not in request.headers
        await client.close()

    async def test_login_failure_uses_backend_message(self) -> None:
        client, _ = await make_client(
            lambda r: httpx.Response(401, json={"msg": "Bad username or password"}),
            logged_in=False,
        )
        with pytest.raises(AuthenticationError, match="Bad username or password"):
            await client.login("alice", "wrong")
        await client.close()

    async def test_login_without_token_in_response(self) -> None:
        client, _ = await make_client(lambda r: httpx.Response(200, json={}), logged_in=False)
        with pytest.raises(ResponseFormatError):
            await client.login("alice", "secret")
        await client.close()

    async def test_register(self) -> None:
        client, backend = await make_client(
            lambda r: httpx.Response(201, json={"msg": "created"}), logged_in=False
        )

        await client.register("alice", "a@example.com", "secret")

        assert backend.requests[0].url.path == "/register"
        assert json.loads(backend.requests[0].content)["email"] == "a@example.com"
        await client.close()


class TestTracks:
    """Tests for track listing."""

    async def test_list_tracks_sends_bearer_token(self) -> None:
        client, backend = await make_client(
            lambda r: httpx.Response(
                200,
                json=[
                    {"id": 1, "title": "Sun", "artist": "Ray", "url": "https://a/1.mp3"},
                    {"id": 2, "title": "Moon", "artist": "Lux"},
                ],
            )
        )

        tracks = await client.list_tracks()

        assert [t.id for t in tracks] == ["1", "2"]
        assert tracks[0].audio_url == "https://a/1.mp3"
        assert backend.requests[0].headers["authorization"] == "Bearer tok-123"
        assert backend.requests[0].url.path == "/tracks"
        await client.close()

    async def test_list_playlist_tracks(self) -> None:
        client, backend = await make_client(lambda r: httpx.Response(200, json=[{"id": "9"}]))

        tracks = await client.list_playlist_tracks("p1")

        assert [t.id for t in tracks] == ["9"]
        assert backend.requests[0].url.path == "/playlists/p1/tracks"
        await client.close()

    async def test_not_logged_in_makes_no_request(self) -> None:
        client, backend = await make_client(lambda r: httpx.Response(200, json=[]), logged_in=False)
        with pytest.raises(AuthenticationError):
            await client.list_tracks()
        assert backend.requests == []
        await client.close()

    async def test_non_list_body_is_format_error(self) -> None:
        client, _ = await make_client(lambda r: httpx.Response(200, json={"tracks": []}))
        with pytest.raises(ResponseFormatError):
            await client.list_tracks()
        await client.close()

    async def test_invalid_json_is_format_error(self) -> None:
        client, _ = await make_client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(ResponseFormatError):
            await client.list_tracks()
        await client.close()

    async def test_entry_without_id_is_format_error(self) -> None:
        client, _ = await make_client(lambda r: httpx.Response(200, json=[{"title": "?"}]))
        with pytest.raises(ResponseFormatError):
            await client.list_tracks()
        await client.close()


class TestErrorMapping:
    """Tests for status -> exception translation."""

    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_statuses(self, status: int) -> None:
        client, _ = await make_client(lambda r: httpx.Response(status, json={"msg": "expired"}))
        with pytest.raises(AuthenticationError):
            await client.list_tracks()
        await client.close()

    async def test_server_error(self) -> None:
        client, _ = await make_client(lambda r: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(RequestRejectedError) as exc_info:
            await client.list_tracks()
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "boom"
        await client.close()

    async def test_transport_failure(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = await make_client(refuse)
        with pytest.raises(TransportError):
            await client.list_tracks()
        await client.close()


class TestPlaylists:
    """Tests for playlist endpoints."""

    async def test_list_playlists(self) -> None:
        client, _ = await make_client(
            lambda r: httpx.Response(200, json=[{"id": 1, "name": "Road", "track_ids": [3, 4]}])
        )

        playlists = await client.list_playlists()

        assert playlists[0].id == "1"
        assert playlists[0].track_ids == ("3", "4")
        await client.close()

    async def test_create_playlist(self) -> None:
        client, backend = await make_client(lambda r: httpx.Response(201, json={"id": 7, "name": "Mix"}))

        playlist = await client.create_playlist("Mix")

        assert playlist.id == "7"
        assert json.loads(backend.requests[0].content) == {"name": "Mix"}
        await client.close()

    async def test_create_playlist_wrapped_response(self) -> None:
        client, _ = await make_client(
            lambda r: httpx.Response(201, json={"msg": "ok", "playlist": {"id": 8, "name": "Mix"}})
        )
        assert (await client.create_playlist("Mix")).id == "8"
        await client.close()

    async def test_add_track(self) -> None:
        client, backend = await make_client(lambda r: httpx.Response(200, json={"msg": "added"}))

        await client.add_track_to_playlist("p1", "5")

        request = backend.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/playlists/p1/tracks"
        assert json.loads(request.content) == {"track_id": "5"}
        await client.close()

    @pytest.mark.parametrize(
        ("status", "body"),
        [(409, {"msg": "duplicate"}), (400, {"msg": "Track already in playlist"})],
    )
    async def test_add_existing_track_is_conflict(self, status: int, body: dict) -> None:
        client, _ = await make_client(lambda r: httpx.Response(status, json=body))
        with pytest.raises(ConflictError):
            await client.add_track_to_playlist("p1", "5")
        await client.close()

    async def test_other_bad_request_is_not_conflict(self) -> None:
        client, _ = await make_client(lambda r: httpx.Response(400, json={"msg": "bad track id"}))
        with pytest.raises(RequestRejectedError):
            await client.add_track_to_playlist("p1", "x")
        await client.close()

    async def test_remove_track(self) -> None:
        client, backend = await make_client(lambda r: httpx.Response(204))

        await client.remove_track_from_playlist("p1", "5")

        assert backend.requests[0].method == "DELETE"
        assert backend.requests[0].url.path == "/playlists/p1/tracks/5"
        await client.close()

    async def test_ids_are_escaped_as_path_segments(self) -> None:
        client, backend = await make_client(lambda r: httpx.Response(204))

        await client.remove_track_from_playlist("mix/2024", "a?b")

        assert backend.requests[0].url.raw_path == b"/playlists/mix%2F2024/tracks/a%3Fb"
        assert backend.requests[0].url.query == b""
        await client.close()
