"""Single call path for every resource API: authenticate, throttle, sign, send, decode.

Resource modules (SCIM groups, clusters, ...) only need `send`, the cloud
classification helpers and `format_url`.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel

from dbxclient.auth.base import Authenticator, ResolvedAuth
from dbxclient.client.state import ClientState
from dbxclient.config.settings import ClientConfig
from dbxclient.errors import FatalTransportError
from dbxclient.logging.structured import (
    RequestTimer,
    generate_request_id,
    get_logger,
    redact_headers,
    request_id_var,
    truncate_body,
)
from dbxclient.transport.ratelimit import TokenBucket
from dbxclient.transport.retry import RetryingTransport, RetryPolicy

VERSION = "0.1.0"
USER_AGENT = f"dbxclient/{VERSION}"

# httpx defaults, widened: control-plane calls after cloud federation
# have longer cold-start latency than typical web APIs
DEFAULT_KEEPALIVE_EXPIRY = 5.0
DEFAULT_CONNECT_TIMEOUT = 10.0
TRANSPORT_TIMEOUT_MULTIPLIER = 3

logger = get_logger("client")


def format_url(host: str, *parts: str) -> str:
    """Join host and parts, with exactly one "/" after the host."""
    if not host.endswith("/"):
        host += "/"
    return host + "".join(parts)


class DatabricksClient:
    """Authenticated, rate limited and retrying client for the control-plane API."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        authenticators: list[Authenticator] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: TokenBucket | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        # Own copy: resolution blanks the password on it
        self.config = (config or ClientConfig()).model_copy()
        self.state = ClientState(self.config, authenticators)
        self.rate_limiter = rate_limiter or TokenBucket(self.config.rate_limit_per_second)
        self.retry_policy = retry_policy or RetryPolicy()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "DatabricksClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def _build_transport(self) -> httpx.AsyncBaseTransport:
        inner = self._transport or httpx.AsyncHTTPTransport(
            verify=not self.config.insecure_skip_verify,
            limits=httpx.Limits(keepalive_expiry=DEFAULT_KEEPALIVE_EXPIRY * TRANSPORT_TIMEOUT_MULTIPLIER),
        )
        return RetryingTransport(inner, self.retry_policy)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            timeout = float(self.config.http_timeout_seconds)
            self._client = httpx.AsyncClient(
                transport=self._build_transport(),
                timeout=httpx.Timeout(
                    timeout,
                    connect=min(timeout, DEFAULT_CONNECT_TIMEOUT * TRANSPORT_TIMEOUT_MULTIPLIER),
                ),
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def authenticate(self) -> ResolvedAuth:
        """Resolve authentication now instead of on the first request."""
        return await self.state.authenticate()

    @property
    def host(self) -> str:
        resolved = self.state.resolved
        return resolved.host if resolved is not None else self.config.host

    def is_azure(self) -> bool:
        """Configured for Azure, by AAD resource id or by workspace host."""
        return bool(self.config.azure_workspace_resource_id) or ".azuredatabricks.net" in self.host

    def is_gcp(self) -> bool:
        return ".gcp.databricks.com" in self.host

    def is_aws(self) -> bool:
        return not self.is_azure() and not self.is_gcp()

    def format_url(self, *parts: str) -> str:
        return format_url(self.host, *parts)

    async def send(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: dict | None = None,
        response_model: Any = None,
    ) -> Any:
        """Send one authenticated request and decode the JSON response.

        Args:
            method: HTTP method.
            path: Path relative to the host, e.g. "api/2.0/preview/scim/v2/Groups".
            body: JSON-serializable request body, or None.
            params: Query parameters.
            response_model: pydantic model class to validate the payload
                into, or any callable applied to the decoded payload.

        Returns:
            Decoded payload (None for an empty body).

        Raises:
            ConfigurationError: authentication could not be resolved.
            TransientTransportError: retries were exhausted.
            FatalTransportError: non-retryable status or undecodable payload.
        """
        token = request_id_var.set(generate_request_id())
        try:
            resolved = await self.state.authenticate()
            await self.rate_limiter.acquire()

            client = await self._get_client()
            url = format_url(resolved.host, path.lstrip("/"))
            request = client.build_request(method, url, json=body, params=params)
            await resolved.signer(request)
            self._log_request(request)

            with RequestTimer() as timer:
                try:
                    response = await client.send(request)
                except httpx.HTTPError as e:
                    raise FatalTransportError(0, str(e), url) from e
            self._log_response(response, timer.elapsed_ms)
            return _decode(response, response_model)
        finally:
            request_id_var.reset(token)

    def _log_request(self, request: httpx.Request) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug(
            f"{request.method} {request.url}",
            extra={"audit_data": {
                "headers": redact_headers(request.headers, reveal=self.config.debug_headers),
                "body": truncate_body(request.content, self.config.debug_truncate_bytes),
            }},
        )

    def _log_response(self, response: httpx.Response, elapsed_ms: float) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug(
            f"{response.status_code} {response.request.method} {response.request.url}",
            extra={"audit_data": {
                "latency_ms": elapsed_ms,
                "body": truncate_body(response.content, self.config.debug_truncate_bytes),
            }},
        )

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        for key in ("message", "detail", "error_code", "error"):
            if body.get(key):
                return str(body[key])
    return response.text


def _decode(response: httpx.Response, response_model: Any) -> Any:
    url = str(response.request.url)
    if response.status_code >= 400:
        raise FatalTransportError(response.status_code, _error_message(response), url)
    if not response.content:
        return None
    try:
        data = response.json()
    except ValueError as e:
        raise FatalTransportError(response.status_code, f"cannot decode response: {e}", url) from e
    if response_model is None:
        return data
    try:
        if isinstance(response_model, type) and issubclass(response_model, BaseModel):
            return response_model.model_validate(data)
        return response_model(data)
    except (TypeError, ValueError) as e:
        raise FatalTransportError(response.status_code, f"cannot decode response: {e}", url) from e
