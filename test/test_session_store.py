"""
Tests for the client session store with mocked HTTP transports.
"""

import json
from collections.abc import AsyncGenerator, Callable

import httpx
import jwt
import pytest
import pytest_asyncio

from etfuel.client import ClientConfig, SessionStore
from etfuel.client.identity import role_from_id_token
from etfuel.client.session import (
    LOGIN_FAILED_ERROR,
    NETWORK_ERROR,
    REGISTRATION_FAILED_ERROR,
    RESET_FAILED_ERROR,
    TOKEN_EXPIRED_ERROR,
)

API_BASE = "http://api.test"


def _id_token(uid: str = "uid-1", **claims) -> str:
    return jwt.encode(
        {"user_id": uid, "sub": uid, **claims},
        "client-test-signing-key-not-verified-here",
        algorithm="HS256",
    )


class FakeBackend:
    """Routes requests for the API, Identity Toolkit and secure-token endpoints."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.login_response = httpx.Response(
            200,
            json={
                "success": True,
                "message": "Login successful",
                "user": {"uid": "uid-1", "email": "alice@example.com", "role": "union"},
                "customToken": "custom-token",
            },
        )
        self.sign_in_response = httpx.Response(
            200,
            json={"idToken": _id_token(), "refreshToken": "refresh-1", "expiresIn": "3600"},
        )
        self.refresh_response = httpx.Response(
            200,
            json={
                "id_token": _id_token(role="station"),
                "refresh_token": "refresh-2",
                "expires_in": "3600",
                "user_id": "uid-1",
            },
        )
        self.user_data_response = httpx.Response(
            200,
            json={"success": True, "userData": {"uid": "uid-1", "name": "Alice", "role": "station"}},
        )
        self.oob_response = httpx.Response(200, json={"email": "alice@example.com"})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/auth/login" or path == "/api/auth/register":
            template = self.login_response
        elif path == "/api/auth/user-data":
            template = self.user_data_response
        elif path.endswith("accounts:signInWithCustomToken"):
            template = self.sign_in_response
        elif path.endswith("accounts:sendOobCode"):
            template = self.oob_response
        elif path == "/v1/token":
            template = self.refresh_response
        else:
            return httpx.Response(404)
        # Fresh response per request; the stored ones are templates.
        return httpx.Response(
            template.status_code,
            content=template.content,
            headers={"Content-Type": "application/json"},
        )

    def find(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(_env_file=None, api_base_url=API_BASE, firebase_api_key="public-key")


def _store_factory(
    config: ClientConfig, handler: Callable[[httpx.Request], httpx.Response]
) -> tuple[SessionStore, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SessionStore(config, http_client=http), http


@pytest_asyncio.fixture
async def store(
    client_config: ClientConfig, backend: FakeBackend
) -> AsyncGenerator[SessionStore, None]:
    session_store, http = _store_factory(client_config, backend)
    async with session_store:
        yield session_store
    await http.aclose()


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_establishes_session(self, store: SessionStore, backend: FakeBackend) -> None:
        result = await store.login("alice@example.com", "Secret123!")

        assert result.success is True
        assert result.error is None
        assert result.user_data["email"] == "alice@example.com"
        assert store.session.uid == "uid-1"
        assert store.session.refresh_token == "refresh-2"
        assert store.role == "station"
        assert store.user_data == {"uid": "uid-1", "name": "Alice", "role": "station"}
        assert store.loading is False

        sign_in = backend.find("accounts:signInWithCustomToken")[0]
        assert sign_in.url.params["key"] == "public-key"
        assert json.loads(sign_in.content) == {"token": "custom-token", "returnSecureToken": True}

        user_data = backend.find("/api/auth/user-data")[0]
        assert user_data.url.params["userId"] == "uid-1"
        assert user_data.headers["Authorization"] == f"Bearer {store.session.id_token}"

    @pytest.mark.asyncio
    async def test_login_rejected(self, store: SessionStore, backend: FakeBackend) -> None:
        backend.login_response = httpx.Response(
            401, json={"success": False, "error": "Invalid email or password"}
        )

        result = await store.login("alice@example.com", "wrong")

        assert result.success is False
        assert result.error == "Invalid email or password"
        assert store.session is None
        assert backend.find("accounts:signInWithCustomToken") == []

    @pytest.mark.asyncio
    async def test_network_error(self, client_config: ClientConfig) -> None:
        def offline(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        session_store, http = _store_factory(client_config, offline)
        async with session_store:
            result = await session_store.login("alice@example.com", "Secret123!")
        await http.aclose()

        assert result.success is False
        assert result.error == NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_expired_exchange_token(self, store: SessionStore, backend: FakeBackend) -> None:
        backend.sign_in_response = httpx.Response(
            400, json={"error": {"code": 400, "message": "INVALID_CUSTOM_TOKEN"}}
        )

        result = await store.login("alice@example.com", "Secret123!")

        assert result.success is False
        assert result.error == TOKEN_EXPIRED_ERROR
        assert store.session is None

    @pytest.mark.asyncio
    async def test_refresh_failure_falls_back_to_baseline_role(
        self, store: SessionStore, backend: FakeBackend
    ) -> None:
        backend.refresh_response = httpx.Response(
            400, json={"error": {"message": "TOKEN_EXPIRED"}}
        )

        result = await store.login("alice@example.com", "Secret123!")

        assert result.success is True
        assert store.role == "union"
        assert store.user_data is not None

    @pytest.mark.asyncio
    async def test_missing_role_claim(self, store: SessionStore, backend: FakeBackend) -> None:
        backend.refresh_response = httpx.Response(
            200, json={"id_token": _id_token(), "refresh_token": "refresh-2", "user_id": "uid-1"}
        )

        await store.login("alice@example.com", "Secret123!")

        assert store.role == "union"

    @pytest.mark.asyncio
    async def test_user_data_failure_keeps_session(
        self, store: SessionStore, backend: FakeBackend
    ) -> None:
        backend.user_data_response = httpx.Response(
            404, json={"success": False, "error": "User not found"}
        )

        result = await store.login("alice@example.com", "Secret123!")

        assert result.success is True
        assert store.session is not None
        assert store.user_data is None

    @pytest.mark.asyncio
    async def test_sign_in_failure_is_generic(self, store: SessionStore, backend: FakeBackend) -> None:
        backend.sign_in_response = httpx.Response(400, json={"error": {"message": "USER_DISABLED"}})

        result = await store.login("alice@example.com", "Secret123!")

        assert result.success is False
        assert result.error == LOGIN_FAILED_ERROR
        assert store.session is None


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_establishes_session(
        self, store: SessionStore, backend: FakeBackend
    ) -> None:
        result = await store.register("alice@example.com", "Secret123!", "Alice")

        assert result.success is True
        assert store.session is not None
        request = backend.find("/api/auth/register")[0]
        assert json.loads(request.content) == {
            "email": "alice@example.com",
            "password": "Secret123!",
            "name": "Alice",
        }

    @pytest.mark.asyncio
    async def test_register_conflict(self, store: SessionStore, backend: FakeBackend) -> None:
        backend.login_response = httpx.Response(
            400, json={"success": False, "error": "Email already registered"}
        )

        result = await store.register("alice@example.com", "Secret123!", "Alice")

        assert result.success is False
        assert result.error == "Email already registered"

    @pytest.mark.asyncio
    async def test_sign_in_failure_is_generic(self, store: SessionStore, backend: FakeBackend) -> None:
        backend.sign_in_response = httpx.Response(400, json={"error": {"message": "USER_DISABLED"}})

        result = await store.register("alice@example.com", "Secret123!", "Alice")

        assert result.success is False
        assert result.error == REGISTRATION_FAILED_ERROR


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_subscribers_notified_and_unsubscribed(self, store: SessionStore) -> None:
        seen: list[tuple[bool, str | None]] = []
        unsubscribe = store.subscribe(lambda s: seen.append((s.session is not None, s.role)))

        await store.login("alice@example.com", "Secret123!")
        assert seen[-1] == (True, "station")

        unsubscribe()
        count = len(seen)
        await store.logout()

        assert len(seen) == count
        assert store.session is None
        assert store.role is None
        assert store.user_data is None

    @pytest.mark.asyncio
    async def test_logout_notifies(self, store: SessionStore) -> None:
        await store.login("alice@example.com", "Secret123!")
        states: list[str | None] = []
        store.subscribe(lambda s: states.append(s.role))

        await store.logout()

        assert states == [None]

    @pytest.mark.asyncio
    async def test_logout_during_refresh_wins(
        self, client_config: ClientConfig, backend: FakeBackend
    ) -> None:
        stores: list[SessionStore] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/token":
                await stores[0].logout()
            return backend(request)

        session_store, http = _store_factory(client_config, handler)
        stores.append(session_store)
        async with session_store:
            await session_store.login("alice@example.com", "Secret123!")

            assert session_store.session is None
            assert session_store.role is None
            assert session_store.user_data is None
            assert session_store.loading is False
        await http.aclose()

        assert backend.find("/api/auth/user-data") == []

    @pytest.mark.asyncio
    async def test_second_login_during_profile_load_wins(
        self, client_config: ClientConfig, backend: FakeBackend
    ) -> None:
        stores: list[SessionStore] = []
        user_data_calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal user_data_calls
            if request.url.path == "/api/auth/user-data":
                user_data_calls += 1
                if user_data_calls == 1:
                    backend.refresh_response = httpx.Response(
                        200,
                        json={
                            "id_token": _id_token("uid-2", role="admin"),
                            "refresh_token": "refresh-3",
                            "user_id": "uid-2",
                        },
                    )
                    backend.user_data_response = httpx.Response(
                        200, json={"success": True, "userData": {"uid": "uid-2"}}
                    )
                    await stores[0].login("bob@example.com", "Secret123!")
                    return httpx.Response(
                        200, json={"success": True, "userData": {"uid": "uid-1"}}
                    )
            return backend(request)

        session_store, http = _store_factory(client_config, handler)
        stores.append(session_store)
        async with session_store:
            await session_store.login("alice@example.com", "Secret123!")

            assert session_store.session.uid == "uid-2"
            assert session_store.role == "admin"
            assert session_store.user_data == {"uid": "uid-2"}
            assert session_store.loading is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_refresh_user_data(self, store: SessionStore, backend: FakeBackend) -> None:
        await store.login("alice@example.com", "Secret123!")
        backend.user_data_response = httpx.Response(
            200, json={"success": True, "userData": {"uid": "uid-1", "name": "Alice B"}}
        )

        await store.refresh_user_data()

        assert store.user_data == {"uid": "uid-1", "name": "Alice B"}

    @pytest.mark.asyncio
    async def test_refresh_user_data_without_session(
        self, store: SessionStore, backend: FakeBackend
    ) -> None:
        await store.refresh_user_data()

        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_not_started(self, client_config: ClientConfig) -> None:
        session_store = SessionStore(client_config)

        assert session_store.loading is True
        with pytest.raises(RuntimeError):
            await session_store.login("alice@example.com", "Secret123!")

    @pytest.mark.asyncio
    async def test_owned_http_client_closed(self, client_config: ClientConfig) -> None:
        session_store = SessionStore(client_config)

        await session_store.start()
        http = session_store._http
        await session_store.aclose()

        assert http.is_closed


class TestResetPassword:
    @pytest.mark.asyncio
    async def test_sends_password_reset_request(
        self, store: SessionStore, backend: FakeBackend
    ) -> None:
        result = await store.reset_password("alice@example.com")

        assert result.success is True
        request = backend.find("accounts:sendOobCode")[0]
        assert json.loads(request.content) == {
            "requestType": "PASSWORD_RESET",
            "email": "alice@example.com",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("code", "message"),
        [
            ("EMAIL_NOT_FOUND", "No account found with this email"),
            ("INVALID_EMAIL", "Invalid email address"),
            ("TOO_MANY_ATTEMPTS_TRY_LATER", RESET_FAILED_ERROR),
        ],
    )
    async def test_provider_codes_mapped(
        self, store: SessionStore, backend: FakeBackend, code: str, message: str
    ) -> None:
        backend.oob_response = httpx.Response(400, json={"error": {"message": code}})

        result = await store.reset_password("nobody@example.com")

        assert result.success is False
        assert result.error == message


class TestRoleFromIdToken:
    def test_role_claim(self) -> None:
        assert role_from_id_token(_id_token(role="admin")) == "admin"

    def test_missing_claim(self) -> None:
        assert role_from_id_token(_id_token()) == "union"

    def test_garbage(self) -> None:
        assert role_from_id_token("not-a-jwt") == "union"
