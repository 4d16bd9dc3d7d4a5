"""Host + token and host + username/password authentication."""

import base64

from dbxclient.auth.base import Authenticator, ResolvedAuth, StaticSigner, fix_host
from dbxclient.config.settings import ClientConfig
from dbxclient.errors import ConfigurationError
from dbxclient.logging.structured import get_logger

logger = get_logger("auth")


def encode_basic_auth(username: str, password: str) -> str:
    return base64.b64encode(f"{username}:{password}".encode()).decode()


class DirectParamsAuthenticator(Authenticator):
    """Uses host, token, username and password supplied by the caller."""

    name = "direct"

    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        auth_type = "Bearer"
        credential = config.token
        needs_host_because = ""
        if config.username and config.password:
            auth_type = "Basic"
            needs_host_because = "basic_auth"
            credential = encode_basic_auth(config.username, config.password)
        elif config.token:
            needs_host_because = "token"

        if needs_host_because and not config.host:
            raise ConfigurationError(f"host is empty, but is required by {needs_host_because}")
        if not credential or not config.host:
            return None
        if auth_type == "Basic":
            # discarded only once resolution succeeds
            config.password = ""
            logger.info(
                "Using basic auth",
                extra={"audit_data": {"username": config.username}},
            )

        logger.info(f"Using directly configured host+{needs_host_because} authentication")
        return ResolvedAuth(
            auth_type=auth_type,
            host=fix_host(config.host),
            signer=StaticSigner(auth_type, credential),
        )
