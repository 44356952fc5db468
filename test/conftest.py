"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport

from etfuel.auth.service import AuthService
from etfuel.config import Settings, get_settings
from etfuel.identity.factory import get_identity_provider, get_profile_store
from etfuel.identity.memory_adapter import InMemoryIdentityProvider, InMemoryProfileStore
from etfuel.main import create_app

TEST_TOKEN_SECRET = "test-memory-identity-provider-signing-secret"


@pytest.fixture
def test_settings() -> Settings:
    """Development settings wired to the in-memory provider."""
    return Settings(
        _env_file=None,
        app_env="dev",
        identity_provider="memory",
        password_hash_rounds=4,
        memory_token_secret=TEST_TOKEN_SECRET,
        app_url="http://localhost:3000",
    )


@pytest.fixture
def prod_settings(test_settings: Settings) -> Settings:
    return test_settings.model_copy(update={"app_env": "prod"})


@pytest.fixture
def identity_provider(test_settings: Settings) -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider(test_settings)


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def auth_service(
    identity_provider: InMemoryIdentityProvider,
    profile_store: InMemoryProfileStore,
    test_settings: Settings,
) -> AuthService:
    return AuthService(identity_provider, profile_store, test_settings)


def _build_app(
    settings: Settings,
    identity_provider: InMemoryIdentityProvider,
    profile_store: InMemoryProfileStore,
) -> FastAPI:
    app = create_app(settings)
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_profile_store] = lambda: profile_store
    app.dependency_overrides[get_settings] = lambda: settings
    return app


@pytest.fixture
def app(
    test_settings: Settings,
    identity_provider: InMemoryIdentityProvider,
    profile_store: InMemoryProfileStore,
) -> FastAPI:
    return _build_app(test_settings, identity_provider, profile_store)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def prod_client(
    prod_settings: Settings,
    identity_provider: InMemoryIdentityProvider,
    profile_store: InMemoryProfileStore,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = _build_app(prod_settings, identity_provider, profile_store)
    async with httpx.AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def registered_user(auth_service: AuthService) -> dict:
    """Alice, registered through the service with the baseline role."""
    response = await auth_service.register("alice@example.com", "Secret123!", "Alice")
    return response.user
