"""Shared test fixtures for the installation broker test suite.

GitHub is replaced by `FakeGitHub`, an `httpx.MockTransport` handler that
serves canned responses per (method, path) and records every request it
sees. Tests assert on `fake_github.requests` to prove which calls were
(or were not) made. RSA keys are generated once per session.
"""

from collections.abc import AsyncGenerator
from typing import Any, Callable, Union

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from fastapi import Depends
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings, get_settings
from app.github.auth import AppIdentity
from app.github.broker import InstallationTokenBroker
from app.github.dependencies import get_broker
from app.main import create_app

TEST_APP_ID = "12345"


def _generate_rsa_private_key() -> str:
    """Generate a valid RSA private key for testing."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    return pem.decode()


def _generate_ec_private_key() -> str:
    key = ec.generate_private_key(ec.SECP256R1())
    pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return pem.decode()


_RSA_PRIVATE_KEY = _generate_rsa_private_key()
_EC_PRIVATE_KEY = _generate_ec_private_key()


# ---------------------------------------------------------------------------
# Fake GitHub API
# ---------------------------------------------------------------------------

Route = Union[Callable[[httpx.Request], Any], tuple[int, Any]]


class FakeGitHub:
    """Call-recording stand-in for api.github.com.

    Routes are registered as (status, json_body) pairs or as callables
    receiving the `httpx.Request`. Unknown routes answer 404 like GitHub.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Route] = {}

    def route(self, method: str, path: str, status_code: int = 200, json: Any = None) -> None:
        self._routes[(method, path)] = (status_code, json)

    def route_handler(self, method: str, path: str, handler: Callable[[httpx.Request], Any]) -> None:
        self._routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handler(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            return route(request)
        status_code, body = route
        if isinstance(body, str):
            return httpx.Response(status_code, text=body)
        return httpx.Response(status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def happy_github(fake_github: FakeGitHub) -> FakeGitHub:
    """One installation (42) with one repository, acme/widgets."""
    fake_github.route("GET", "/app/installations", json=[{"id": 42, "account": {"login": "acme"}}])
    fake_github.route(
        "POST",
        "/app/installations/42/access_tokens",
        status_code=201,
        json={"token": "abc", "expires_at": "2099-01-01T00:00:00Z"},
    )
    fake_github.route(
        "GET",
        "/installation/repositories",
        json={"total_count": 1, "repositories": [{"id": 7, "full_name": "acme/widgets"}]},
    )
    return fake_github


# ---------------------------------------------------------------------------
# Identity / settings
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    return _RSA_PRIVATE_KEY


@pytest.fixture(scope="session")
def ec_private_key_pem() -> str:
    return _EC_PRIVATE_KEY


@pytest.fixture
def identity(private_key_pem: str) -> AppIdentity:
    return AppIdentity.from_pem(TEST_APP_ID, private_key_pem)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "github_app_id": TEST_APP_ID,
        "github_private_key": _RSA_PRIVATE_KEY,
        "github_timeout_seconds": 2.0,
        "sentry_dsn": "",
        "debug": False,
    }
    values.update(overrides)
    # _env_file=None keeps a developer's local .env out of the tests.
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def broker(settings: Settings, happy_github: FakeGitHub) -> InstallationTokenBroker:
    return InstallationTokenBroker.from_settings(settings, transport=happy_github.transport)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------


@pytest.fixture
def app_settings(settings: Settings) -> Settings:
    """Settings served to the app; override in a test module to misconfigure it."""
    return settings


@pytest.fixture
def app(app_settings: Settings, fake_github: FakeGitHub):
    """Create a FastAPI app whose broker talks to `fake_github`.

    The SlowAPI limiter keeps its counters in process memory, so the
    buckets are reset before each test.
    """
    from app.core.limiter import limiter

    limiter.reset()

    test_app = create_app()

    def override_get_broker(
        settings: Settings = Depends(get_settings),
    ) -> InstallationTokenBroker:
        return InstallationTokenBroker.from_settings(settings, transport=fake_github.transport)

    test_app.dependency_overrides[get_settings] = lambda: app_settings
    test_app.dependency_overrides[get_broker] = override_get_broker
    return test_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client wired to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings

