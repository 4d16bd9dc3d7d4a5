"""Shared fixtures for the dbxclient test suite."""

import json
import os

import httpx
import pytest

from dbxclient.auth.base import Authenticator, ResolvedAuth, StaticSigner
from dbxclient.config.settings import ClientConfig, get_config


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's environment and ~/.databrickscfg out of tests."""
    for key in list(os.environ):
        if key.startswith("DATABRICKS_"):
            monkeypatch.delenv(key)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    get_config.cache_clear()
    yield home
    get_config.cache_clear()


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set DATABRICKS_* env vars and clear the config cache.

    Usage:
        override_settings(HOST="abc.cloud.com", TOKEN="t1")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(f"DATABRICKS_{key.upper()}", str(value))
        get_config.cache_clear()

    yield _override
    get_config.cache_clear()


@pytest.fixture
def profile_file(tmp_path):
    """Factory fixture: write an ini profile file and return its path."""
    def _write(content: str, name: str = ".databrickscfg") -> str:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def missing_profile(tmp_path) -> str:
    return str(tmp_path / "nonexistent.cfg")


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class CountingAuthenticator(Authenticator):
    """Test authenticator that records how often the chain entered it."""

    def __init__(self, name: str = "counting", result: ResolvedAuth | None = None,
                 error: Exception | None = None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = 0

    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def bearer_auth(host: str = "https://abc.cloud.com", token: str = "t1") -> ResolvedAuth:
    return ResolvedAuth(auth_type="Bearer", host=host, signer=StaticSigner("Bearer", token))


def json_response(status_code: int, body=None) -> httpx.Response:
    content = b"" if body is None else json.dumps(body).encode()
    return httpx.Response(status_code, content=content, headers={"Content-Type": "application/json"})


@pytest.fixture
def mock_http(monkeypatch):
    """Factory fixture: route every httpx.AsyncClient built by the code under test to a handler.

    Usage:
        requests = mock_http(lambda request: httpx.Response(200, json={...}))
    """
    real_client = httpx.AsyncClient
    seen: list[httpx.Request] = []

    def _install(handler):
        def _handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def _client(*args, **kwargs):
            kwargs["transport"] = httpx.MockTransport(_handler)
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", _client)
        return seen

    return _install
