"""Ordered authenticator chain: the first applicable method wins."""

from dbxclient.auth.azure import AzureClientSecretAuthenticator, AzureCLIAuthenticator
from dbxclient.auth.base import Authenticator, ResolvedAuth
from dbxclient.auth.commands import CommandExecutor, run_command
from dbxclient.auth.direct import DirectParamsAuthenticator
from dbxclient.auth.google import GoogleAccountsAuthenticator, GoogleWorkspaceAuthenticator
from dbxclient.auth.profile import ProfileFileAuthenticator
from dbxclient.config.settings import ClientConfig
from dbxclient.errors import ConfigurationError
from dbxclient.logging.structured import get_logger

logger = get_logger("auth")

NOT_CONFIGURED_MESSAGE = (
    "authentication is not configured for provider. Please configure it\n"
    "through one of the following options:\n"
    "1. DATABRICKS_HOST + DATABRICKS_TOKEN environment variables.\n"
    "2. host + token provider arguments.\n"
    "3. host + username + password for basic authentication.\n"
    "4. azure_workspace_resource_id + AZ CLI authentication.\n"
    "5. azure_workspace_resource_id + azure_client_id + azure_client_secret + azure_tenant_id "
    "for Azure Service Principal authentication.\n"
    "6. host + google_service_account for Google service account impersonation.\n"
    "7. Run `databricks configure --token` that will create ~/.databrickscfg file."
)


def default_authenticators(command_executor: CommandExecutor = run_command) -> list[Authenticator]:
    """The chain in precedence order."""
    return [
        DirectParamsAuthenticator(),
        AzureClientSecretAuthenticator(),
        AzureCLIAuthenticator(command_executor),
        GoogleAccountsAuthenticator(command_executor),
        GoogleWorkspaceAuthenticator(command_executor),
        ProfileFileAuthenticator(),
    ]


async def resolve_auth(config: ClientConfig, authenticators: list[Authenticator]) -> ResolvedAuth:
    """Walk the chain once.

    Raises:
        ConfigurationError: an authenticator failed terminally, or none applied.
    """
    for authenticator in authenticators:
        resolved = await authenticator.configure(config)
        if resolved is None:
            continue
        logger.info(
            "Authentication resolved",
            extra={"audit_data": {"authenticator": authenticator.name, "auth_type": resolved.auth_type}},
        )
        return resolved
    raise ConfigurationError(NOT_CONFIGURED_MESSAGE)
