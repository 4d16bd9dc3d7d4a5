"""Azure Active Directory federation: service principal secret and Azure CLI."""

import json
import time
from datetime import datetime

import httpx

from dbxclient.auth.base import Authenticator, CachedToken, ResolvedAuth, fix_host
from dbxclient.auth.commands import CommandExecutor, run_command
from dbxclient.config.settings import ClientConfig
from dbxclient.errors import ConfigurationError, FederationError
from dbxclient.logging.structured import get_logger

logger = get_logger("auth")

# Well-known AAD application id of the Azure Databricks resource
AZURE_DATABRICKS_RESOURCE_ID = "2ff814a6-3304-4ab8-85cb-cd0e6f879c1d"
AZURE_MANAGEMENT_RESOURCE = "https://management.core.windows.net/"
AZURE_LOGIN_ENDPOINT = "https://login.microsoftonline.com"
AZURE_RESOURCE_MANAGER = "https://management.azure.com"
ARM_API_VERSION = "2018-04-01"
FEDERATION_TIMEOUT = 30.0
DEFAULT_TOKEN_LIFETIME = 3600.0


class AzureSigner:
    """Bearer AAD token plus the workspace routing headers Databricks expects."""

    def __init__(self, resource_id: str, platform: CachedToken, management: CachedToken | None = None):
        self._resource_id = resource_id
        self._platform = platform
        self._management = management

    async def __call__(self, request: httpx.Request) -> None:
        request.headers["Authorization"] = f"Bearer {await self._platform.get()}"
        if self._resource_id:
            request.headers["X-Databricks-Azure-Workspace-Resource-Id"] = self._resource_id
        if self._management is not None:
            request.headers["X-Databricks-Azure-SP-Management-Token"] = await self._management.get()


async def resolve_workspace_url(resource_id: str, management_token: str) -> str:
    """Read the workspace URL from its Azure Resource Manager resource."""
    url = f"{AZURE_RESOURCE_MANAGER}{resource_id}"
    async with httpx.AsyncClient(timeout=FEDERATION_TIMEOUT) as client:
        try:
            response = await client.get(
                url,
                params={"api-version": ARM_API_VERSION},
                headers={"Authorization": f"Bearer {management_token}"},
            )
        except httpx.HTTPError as e:
            raise FederationError(f"cannot resolve workspace URL for {resource_id}: {e}") from e
    if response.status_code != 200:
        raise FederationError(
            f"cannot resolve workspace URL for {resource_id}: [{response.status_code}] {response.text}"
        )
    workspace_url = response.json().get("properties", {}).get("workspaceUrl", "")
    if not workspace_url:
        raise FederationError(f"{resource_id} has no workspaceUrl")
    return fix_host(workspace_url)


class AzureClientSecretAuthenticator(Authenticator):
    """Exchanges a service principal secret for AAD tokens (client credentials flow)."""

    name = "azure-client-secret"

    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        if not config.azure_client_secret_set:
            return None
        resource_id = config.azure_workspace_resource_id
        if not resource_id and not config.host:
            raise ConfigurationError(
                "azure_workspace_resource_id or host is required for Azure Service Principal authentication"
            )

        platform = CachedToken(lambda: self._fetch_token(config, AZURE_DATABRICKS_RESOURCE_ID))
        management = None
        if resource_id:
            management = CachedToken(lambda: self._fetch_token(config, AZURE_MANAGEMENT_RESOURCE))

        # Fail resolution now rather than on the first request
        await platform.get()
        host = config.host
        if management is not None:
            management_token = await management.get()
            if not host:
                host = await resolve_workspace_url(resource_id, management_token)

        logger.info("Using Azure Service Principal authentication")
        return ResolvedAuth(
            auth_type=self.name,
            host=fix_host(host),
            signer=AzureSigner(resource_id, platform, management),
        )

    @staticmethod
    async def _fetch_token(config: ClientConfig, resource: str) -> tuple[str, float]:
        url = f"{AZURE_LOGIN_ENDPOINT}/{config.azure_tenant_id}/oauth2/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": config.azure_client_id,
            "client_secret": config.azure_client_secret,
            "resource": resource,
        }
        async with httpx.AsyncClient(timeout=FEDERATION_TIMEOUT) as client:
            try:
                response = await client.post(url, data=data)
            except httpx.HTTPError as e:
                raise FederationError(f"cannot obtain AAD token for {resource}: {e}") from e
        if response.status_code != 200:
            raise FederationError(
                f"cannot obtain AAD token for {resource}: [{response.status_code}] {response.text}"
            )
        body = response.json()
        return body["access_token"], float(body.get("expires_in", DEFAULT_TOKEN_LIFETIME))


class AzureCLIAuthenticator(Authenticator):
    """Reuses the token cache of a logged-in Azure CLI."""

    name = "azure-cli"

    def __init__(self, command_executor: CommandExecutor = run_command):
        self._run = command_executor

    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        resource_id = config.azure_workspace_resource_id
        if not resource_id or config.azure_client_secret_set:
            return None

        platform = CachedToken(lambda: self._cli_token(AZURE_DATABRICKS_RESOURCE_ID))
        await platform.get()
        host = config.host
        if not host:
            management_token, _ = await self._cli_token(AZURE_MANAGEMENT_RESOURCE)
            host = await resolve_workspace_url(resource_id, management_token)

        logger.info("Using Azure CLI authentication")
        return ResolvedAuth(
            auth_type=self.name,
            host=fix_host(host),
            signer=AzureSigner(resource_id, platform),
        )

    async def _cli_token(self, resource: str) -> tuple[str, float]:
        output = await self._run(
            "az", "account", "get-access-token", "--resource", resource, "--output", "json"
        )
        try:
            body = json.loads(output)
            token = body["accessToken"]
        except (json.JSONDecodeError, KeyError) as e:
            raise FederationError(f"unexpected Azure CLI output: {e}") from e
        return token, _expires_in(body)


def _expires_in(body: dict) -> float:
    """Seconds until an Azure CLI token expires."""
    if "expires_on" in body:
        return float(body["expires_on"]) - time.time()
    expires_on = body.get("expiresOn")
    if not expires_on:
        return DEFAULT_TOKEN_LIFETIME
    try:
        # local time, e.g. "2024-01-01 12:00:00.000000"
        return datetime.fromisoformat(expires_on).timestamp() - time.time()
    except ValueError:
        return DEFAULT_TOKEN_LIFETIME
