"""Google Cloud federation through service account impersonation.

The local gcloud identity impersonates `google_service_account` via the
IAM Credentials API. The accounts API only needs the service account's ID
token; workspaces additionally take its OAuth access token.
"""

import time
from datetime import datetime, timezone

import httpx

from dbxclient.auth.base import Authenticator, CachedToken, ResolvedAuth, fix_host
from dbxclient.auth.commands import CommandExecutor, run_command
from dbxclient.config.settings import ClientConfig
from dbxclient.errors import ConfigurationError, FederationError
from dbxclient.logging.structured import get_logger

logger = get_logger("auth")

IAM_CREDENTIALS_URL = "https://iamcredentials.googleapis.com/v1/projects/-/serviceAccounts"
SA_ACCESS_TOKEN_SCOPES = [
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/compute",
]
FEDERATION_TIMEOUT = 30.0
# Google ID tokens are valid for one hour
ID_TOKEN_LIFETIME = 3600.0


def is_accounts_host(host: str) -> bool:
    return fix_host(host).startswith("https://accounts.")


class GoogleSigner:
    def __init__(self, id_token: CachedToken, access_token: CachedToken | None = None):
        self._id_token = id_token
        self._access_token = access_token

    async def __call__(self, request: httpx.Request) -> None:
        request.headers["Authorization"] = f"Bearer {await self._id_token.get()}"
        if self._access_token is not None:
            request.headers["X-Databricks-GCP-SA-Access-Token"] = await self._access_token.get()


class GoogleImpersonation:
    """Mints tokens for a service account on behalf of the gcloud user."""

    def __init__(self, service_account: str, command_executor: CommandExecutor = run_command):
        self.service_account = service_account
        self._run = command_executor

    async def _caller_token(self) -> str:
        token = (await self._run("gcloud", "auth", "print-access-token")).strip()
        if not token:
            raise FederationError("gcloud returned an empty access token")
        return token

    async def _call(self, method: str, payload: dict) -> dict:
        url = f"{IAM_CREDENTIALS_URL}/{self.service_account}:{method}"
        caller_token = await self._caller_token()
        async with httpx.AsyncClient(timeout=FEDERATION_TIMEOUT) as client:
            try:
                response = await client.post(
                    url, json=payload, headers={"Authorization": f"Bearer {caller_token}"}
                )
            except httpx.HTTPError as e:
                raise FederationError(f"cannot impersonate {self.service_account}: {e}") from e
        if response.status_code != 200:
            raise FederationError(
                f"cannot impersonate {self.service_account}: [{response.status_code}] {response.text}"
            )
        return response.json()

    async def id_token(self, audience: str) -> tuple[str, float]:
        body = await self._call("generateIdToken", {"audience": audience, "includeEmail": True})
        return body["token"], ID_TOKEN_LIFETIME

    async def access_token(self) -> tuple[str, float]:
        body = await self._call("generateAccessToken", {"scope": SA_ACCESS_TOKEN_SCOPES})
        return body["accessToken"], _expires_in(body.get("expireTime", ""))


def _expires_in(expire_time: str) -> float:
    """Seconds until an RFC 3339 UTC `expireTime`, e.g. "2024-01-01T12:00:00.123456789Z"."""
    try:
        # fractional seconds may carry nanoseconds, which datetime cannot parse
        expires_at = datetime.strptime(expire_time[:19], "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return ID_TOKEN_LIFETIME
    return expires_at.replace(tzinfo=timezone.utc).timestamp() - time.time()


class GoogleAccountsAuthenticator(Authenticator):
    """ID token federation for the accounts.* API surface."""

    name = "google-accounts"

    def __init__(self, command_executor: CommandExecutor = run_command):
        self._run = command_executor

    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        if not config.google_service_account or not is_accounts_host(config.host):
            return None
        host = fix_host(config.host)
        impersonation = GoogleImpersonation(config.google_service_account, self._run)
        id_token = CachedToken(lambda: impersonation.id_token(host))
        await id_token.get()
        logger.info(
            "Using Google service account authentication for accounts API",
            extra={"audit_data": {"service_account": config.google_service_account}},
        )
        return ResolvedAuth(auth_type=self.name, host=host, signer=GoogleSigner(id_token))


class GoogleWorkspaceAuthenticator(Authenticator):
    """ID token plus service account access token for workspace APIs."""

    name = "google-workspace"

    def __init__(self, command_executor: CommandExecutor = run_command):
        self._run = command_executor

    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        if not config.google_service_account or is_accounts_host(config.host):
            return None
        if not config.host:
            raise ConfigurationError("host is empty, but is required by google_service_account")
        host = fix_host(config.host)
        impersonation = GoogleImpersonation(config.google_service_account, self._run)
        id_token = CachedToken(lambda: impersonation.id_token(host))
        access_token = CachedToken(impersonation.access_token)
        await id_token.get()
        await access_token.get()
        logger.info(
            "Using Google service account authentication for workspace",
            extra={"audit_data": {"service_account": config.google_service_account}},
        )
        return ResolvedAuth(
            auth_type=self.name,
            host=host,
            signer=GoogleSigner(id_token, access_token),
        )
