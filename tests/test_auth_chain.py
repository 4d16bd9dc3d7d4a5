"""Tests for dbxclient/auth/chain.py — ordered resolution."""

from unittest.mock import AsyncMock

import pytest

from dbxclient.auth.azure import AzureClientSecretAuthenticator, AzureCLIAuthenticator
from dbxclient.auth.chain import NOT_CONFIGURED_MESSAGE, default_authenticators, resolve_auth
from dbxclient.auth.direct import DirectParamsAuthenticator
from dbxclient.auth.google import GoogleAccountsAuthenticator, GoogleWorkspaceAuthenticator
from dbxclient.auth.profile import ProfileFileAuthenticator
from dbxclient.config.settings import ClientConfig
from dbxclient.errors import ConfigurationError
from tests.conftest import CountingAuthenticator, bearer_auth


class TestDefaultAuthenticators:

    def test_precedence_order(self):
        chain = default_authenticators()
        assert [type(a) for a in chain] == [
            DirectParamsAuthenticator,
            AzureClientSecretAuthenticator,
            AzureCLIAuthenticator,
            GoogleAccountsAuthenticator,
            GoogleWorkspaceAuthenticator,
            ProfileFileAuthenticator,
        ]


class TestResolveAuth:

    async def test_first_match_wins(self):
        first = CountingAuthenticator("first", result=bearer_auth(token="first"))
        second = CountingAuthenticator("second", result=bearer_auth(token="second"))
        resolved = await resolve_auth(ClientConfig(), [first, second])
        assert resolved is first.result
        assert second.calls == 0

    async def test_declines_fall_through(self):
        skip = CountingAuthenticator("skip")
        match = CountingAuthenticator("match", result=bearer_auth())
        resolved = await resolve_auth(ClientConfig(), [skip, match])
        assert resolved is match.result
        assert skip.calls == 1

    async def test_error_stops_the_chain(self):
        broken = CountingAuthenticator("broken", error=ConfigurationError("half configured"))
        later = CountingAuthenticator("later", result=bearer_auth())
        with pytest.raises(ConfigurationError, match="half configured"):
            await resolve_auth(ClientConfig(), [broken, later])
        assert later.calls == 0

    async def test_nothing_configured(self, missing_profile):
        with pytest.raises(ConfigurationError) as exc_info:
            await resolve_auth(ClientConfig(config_file=missing_profile), default_authenticators())
        assert str(exc_info.value) == NOT_CONFIGURED_MESSAGE
        assert "DATABRICKS_HOST + DATABRICKS_TOKEN" in str(exc_info.value)

    async def test_direct_token_never_shells_out(self):
        run = AsyncMock()
        config = ClientConfig(
            host="abc.cloud.com",
            token="t1",
            azure_workspace_resource_id="/subscriptions/s/resourceGroups/r/providers/x/workspaces/w",
            google_service_account="sa@p.iam.gserviceaccount.com",
        )
        resolved = await resolve_auth(config, default_authenticators(run))
        assert resolved.auth_type == "Bearer"
        assert resolved.host == "https://abc.cloud.com"
        run.assert_not_awaited()

    async def test_azure_cli_before_profile(self, profile_file):
        path = profile_file("[DEFAULT]\nhost = https://from-file\ntoken = t-file\n")
        run = AsyncMock(return_value='{"accessToken": "cli", "expires_on": 4102444800}')
        config = ClientConfig(
            host="adb-1.azuredatabricks.net",
            azure_workspace_resource_id="/subscriptions/s/resourceGroups/r/providers/x/workspaces/w",
            config_file=path,
        )
        resolved = await resolve_auth(config, default_authenticators(run))
        assert resolved.auth_type == "azure-cli"

    async def test_falls_back_to_profile(self, profile_file):
        path = profile_file("[DEFAULT]\nhost = from-file\ntoken = t-file\n")
        run = AsyncMock()
        resolved = await resolve_auth(ClientConfig(config_file=path), default_authenticators(run))
        assert resolved.host == "https://from-file"
        run.assert_not_awaited()

    async def test_empty_profile_is_fatal_even_with_file(self, profile_file):
        path = profile_file("[DEFAULT]\n")
        with pytest.raises(ConfigurationError, match="has no DEFAULT profile configured"):
            await resolve_auth(ClientConfig(config_file=path), default_authenticators(AsyncMock()))
