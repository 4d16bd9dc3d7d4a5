"""Lazily resolved authentication state owned by one client."""

import asyncio

from dbxclient.auth.base import Authenticator, ResolvedAuth
from dbxclient.auth.chain import default_authenticators, resolve_auth
from dbxclient.config.settings import ClientConfig


class ClientState:
    """Holds the client config and, once resolved, its authentication.

    The chain runs at most once however many tasks ask concurrently.
    Failures are not cached: the next call walks the chain again.
    """

    def __init__(
        self,
        config: ClientConfig,
        authenticators: list[Authenticator] | None = None,
        lock: asyncio.Lock | None = None,
    ):
        self.config = config
        self._authenticators = authenticators if authenticators is not None else default_authenticators()
        self._lock = lock or asyncio.Lock()
        self._resolved: ResolvedAuth | None = None

    @property
    def resolved(self) -> ResolvedAuth | None:
        return self._resolved

    async def authenticate(self) -> ResolvedAuth:
        if self._resolved is not None:
            return self._resolved
        async with self._lock:
            # another task may have finished while we waited
            if self._resolved is None:
                self._resolved = await resolve_auth(self.config, self._authenticators)
        return self._resolved
