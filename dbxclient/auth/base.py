"""Abstract base for authenticators in the resolution chain."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from dbxclient.config.settings import ClientConfig

# Refresh federated tokens this many seconds before they expire
TOKEN_REFRESH_MARGIN_SECONDS = 10.0

Signer = Callable[[httpx.Request], Awaitable[None]]
TokenFetcher = Callable[[], Awaitable[tuple[str, float]]]


@dataclass(frozen=True)
class ResolvedAuth:
    auth_type: str     # "Bearer" | "Basic" | "azure-client-secret" | ...
    host: str          # normalized, always carries a scheme
    signer: Signer     # adds proof of identity to an outgoing request


class Authenticator(ABC):
    """One strategy in the resolution chain."""

    name: str = ""

    @abstractmethod
    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        """Try to authenticate with the given configuration.

        Returns:
            ResolvedAuth when this method applies, None to let the next
            authenticator try.

        Raises:
            ConfigurationError: the caller clearly meant this method but
                configured it incompletely, or it failed.
        """
        ...


def fix_host(host: str) -> str:
    """Prefix scheme-less hosts with https://."""
    if host and not (host.startswith("https://") or host.startswith("http://")):
        # some upstream callers hand over bare workspace hostnames
        return f"https://{host}"
    return host


class StaticSigner:
    """Sets one fixed Authorization header."""

    def __init__(self, auth_type: str, credential: str):
        self._header = f"{auth_type} {credential}"

    async def __call__(self, request: httpx.Request) -> None:
        request.headers["Authorization"] = self._header


class CachedToken:
    """Token from a federation endpoint, refreshed shortly before expiry.

    `fetch` returns (token, expires_in_seconds).
    """

    def __init__(self, fetch: TokenFetcher, clock: Callable[[], float] = time.monotonic):
        self._fetch = fetch
        self._clock = clock
        self._token: str = ""
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    def _fresh(self) -> bool:
        return bool(self._token) and self._clock() < self._expires_at - TOKEN_REFRESH_MARGIN_SECONDS

    async def get(self) -> str:
        if self._fresh():
            return self._token
        async with self._lock:
            if not self._fresh():
                token, expires_in = await self._fetch()
                self._token = token
                self._expires_at = self._clock() + expires_in
        return self._token
