import asyncio
import json
import os

import httpx
import pytest

from lms_backend.client import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    AccountInactive,
    FileTokenStore,
    InvalidCredentials,
    MemoryTokenStore,
    NetworkError,
    SessionClient,
    SessionError,
)

USER = {"id": 7, "name": "Alice", "email": "alice@example.com", "role": "tutor", "status": "active"}


class FakeServer:
    """In-process stand-in for the API, driven through ``httpx.MockTransport``."""

    def __init__(self):
        self.calls = []
        self.valid_access = {"access-1"}
        self.refreshable = {"refresh-1": ("access-2", "refresh-2")}
        self.login_status = 200
        self.logout_status = 200
        self.refresh_delay = 0.0
        self.accept_refreshed = True
        self.down = False

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)

        if path == "/api/auth/login":
            if self.login_status != 200:
                return httpx.Response(
                    self.login_status, json={"error": "Nope", "message": f"login {self.login_status}"},
                )
            return httpx.Response(
                200, json={"message": "ok", "user": USER, "accessToken": "access-1", "refreshToken": "refresh-1"},
            )

        if path == "/api/auth/refresh":
            if self.refresh_delay:
                await asyncio.sleep(self.refresh_delay)
            token = json.loads(request.content)["refreshToken"]
            if token not in self.refreshable:
                return httpx.Response(401, json={"error": "Invalid token", "message": "expired"})
            access, refresh = self.refreshable[token]
            if self.accept_refreshed:
                self.valid_access.add(access)
            return httpx.Response(200, json={"message": "ok", "accessToken": access, "refreshToken": refresh})

        if path == "/api/auth/logout":
            return httpx.Response(self.logout_status, json={"message": "bye"})

        bearer = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if bearer not in self.valid_access:
            return httpx.Response(401, json={"error": "Unauthorized", "message": "expired"})
        if path == "/api/users/profile":
            return httpx.Response(200, json=USER)
        return httpx.Response(200, json={"path": path})

    def count(self, path: str) -> int:
        return self.calls.count(path)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def make_client(server, store):
    def _make():
        return SessionClient("http://lms.test", store=store, transport=httpx.MockTransport(server.handler))

    return _make


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_persists_pair(self, make_client, store):
        async with make_client() as client:
            principal = await client.login("alice@example.com", "pw")

            assert principal.id == 7
            assert principal.role == "tutor"
            assert client.current_access_token() == "access-1"
            assert client.principal == principal
        assert store.get(ACCESS_TOKEN_KEY) == "access-1"
        assert store.get(REFRESH_TOKEN_KEY) == "refresh-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error",
        [(401, InvalidCredentials), (403, AccountInactive), (500, SessionError), (409, SessionError)],
    )
    async def test_login_failures(self, make_client, server, store, status, error):
        server.login_status = status
        async with make_client() as client:
            with pytest.raises(error) as exc_info:
                await client.login("alice@example.com", "pw")
        assert exc_info.value.status_code == status
        assert exc_info.value.message == f"login {status}"
        assert store.load() == (None, None)

    @pytest.mark.asyncio
    async def test_login_network_failure(self, make_client, server):
        server.down = True
        async with make_client() as client:
            with pytest.raises(NetworkError):
                await client.login("alice@example.com", "pw")


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_nothing_stored(self, make_client, server):
        async with make_client() as client:
            assert await client.bootstrap() is None
        assert server.calls == []

    @pytest.mark.asyncio
    async def test_valid_access_token(self, make_client, server, store):
        store.save("access-1", "refresh-1")
        async with make_client() as client:
            principal = await client.bootstrap()
        assert principal.email == "alice@example.com"
        assert server.count("/api/auth/refresh") == 0

    @pytest.mark.asyncio
    async def test_expired_access_refreshes_once(self, make_client, server, store):
        store.save("stale", "refresh-1")
        async with make_client() as client:
            principal = await client.bootstrap()
            assert client.current_access_token() == "access-2"

        assert principal.id == 7
        assert server.count("/api/auth/refresh") == 1
        assert server.count("/api/users/profile") == 2
        assert store.load() == ("access-2", "refresh-2")

    @pytest.mark.asyncio
    async def test_refresh_failure_ends_anonymous(self, make_client, server, store):
        store.save("stale", "revoked")
        async with make_client() as client:
            assert await client.bootstrap() is None
            assert client.current_access_token() is None

        assert server.count("/api/auth/refresh") == 1
        assert store.load() == (None, None)

    @pytest.mark.asyncio
    async def test_second_401_clears_without_another_refresh(self, make_client, server, store):
        store.save("stale", "refresh-1")
        server.accept_refreshed = False
        async with make_client() as client:
            assert await client.bootstrap() is None

        assert server.count("/api/auth/refresh") == 1
        assert server.count("/api/users/profile") == 2
        assert store.load() == (None, None)


class TestRefresh:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, make_client, server):
        server.refresh_delay = 0.05
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            results = await asyncio.gather(*(client.refresh() for _ in range(5)))

        assert results == ["access-2"] * 5
        assert server.count("/api/auth/refresh") == 1

    @pytest.mark.asyncio
    async def test_concurrent_401s_share_one_refresh(self, make_client, server):
        server.refresh_delay = 0.05
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            server.valid_access.discard("access-1")
            responses = await asyncio.gather(*(client.request("GET", "/api/roles") for _ in range(3)))

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert server.count("/api/auth/refresh") == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_refresh(self, make_client, server, store):
        server.refresh_delay = 0.1
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            abandoned = asyncio.create_task(client.refresh())
            waiting = asyncio.create_task(client.refresh())
            await asyncio.sleep(0.02)
            abandoned.cancel()

            assert await waiting == "access-2"
            with pytest.raises(asyncio.CancelledError):
                await abandoned
        assert server.count("/api/auth/refresh") == 1
        assert store.load() == ("access-2", "refresh-2")

    @pytest.mark.asyncio
    async def test_logout_during_refresh_wins(self, make_client, server, store):
        server.refresh_delay = 0.1
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            pending = asyncio.create_task(client.refresh())
            await asyncio.sleep(0.02)
            await client.logout()

            assert await pending is None
            assert client.current_access_token() is None
            assert await client.bootstrap() is None
        assert store.load() == (None, None)

    @pytest.mark.asyncio
    async def test_next_expiry_starts_a_new_refresh(self, make_client, server, store):
        server.refreshable["refresh-2"] = ("access-3", "refresh-3")
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            assert await client.refresh() == "access-2"
            assert await client.refresh() == "access-3"
        assert server.count("/api/auth/refresh") == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_clears_session(self, make_client, server, store):
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            server.refreshable.clear()

            assert await client.refresh() is None
            assert client.current_access_token() is None
            assert client.principal is None
        assert store.load() == (None, None)

    @pytest.mark.asyncio
    async def test_refresh_without_token(self, make_client, server):
        async with make_client() as client:
            assert await client.refresh() is None
        assert server.calls == []


class TestRequest:
    @pytest.mark.asyncio
    async def test_retries_once_after_refresh(self, make_client, server):
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            server.valid_access.discard("access-1")

            response = await client.request("GET", "/api/roles")

        assert response.status_code == 200
        assert server.count("/api/roles") == 2
        assert server.count("/api/auth/refresh") == 1

    @pytest.mark.asyncio
    async def test_gives_up_when_refresh_fails(self, make_client, server):
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            server.valid_access.discard("access-1")
            server.refreshable.clear()

            response = await client.request("GET", "/api/roles")

        assert response.status_code == 401
        assert server.count("/api/roles") == 1

    @pytest.mark.asyncio
    async def test_network_error(self, make_client, server):
        server.down = True
        async with make_client() as client:
            with pytest.raises(NetworkError):
                await client.request("GET", "/api/roles")


class TestLogout:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("logout_status", [200, 500])
    async def test_logout_always_clears(self, make_client, server, store, logout_status):
        server.logout_status = logout_status
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            await client.logout()
            assert client.current_access_token() is None
        assert server.count("/api/auth/logout") == 1
        assert store.load() == (None, None)

    @pytest.mark.asyncio
    async def test_logout_when_server_is_down(self, make_client, server, store):
        async with make_client() as client:
            await client.login("alice@example.com", "pw")
            server.down = True
            await client.logout()
        assert store.load() == (None, None)

    @pytest.mark.asyncio
    async def test_logout_uses_stored_tokens(self, make_client, server, store):
        store.save("access-1", "refresh-1")
        async with make_client() as client:
            await client.logout()
        assert server.count("/api/auth/logout") == 1
        assert store.load() == (None, None)


class TestFileTokenStore:
    def test_save_load_clear(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        store = FileTokenStore(path)
        assert store.load() == (None, None)

        store.save("a", "r")
        assert FileTokenStore(path).load() == ("a", "r")
        assert json.loads(path.read_text()) == {ACCESS_TOKEN_KEY: "a", REFRESH_TOKEN_KEY: "r"}
        assert oct(os.stat(path).st_mode & 0o777) == oct(0o600)

        store.clear()
        assert store.load() == (None, None)
        assert not path.exists()

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert FileTokenStore(path).load() == (None, None)

    @pytest.mark.asyncio
    async def test_session_survives_restart(self, tmp_path, server):
        path = tmp_path / "session.json"
        transport = httpx.MockTransport(server.handler)

        async with SessionClient("http://lms.test", store=FileTokenStore(path), transport=transport) as client:
            await client.login("alice@example.com", "pw")

        async with SessionClient("http://lms.test", store=FileTokenStore(path), transport=transport) as client:
            principal = await client.bootstrap()
        assert principal.name == "Alice"
