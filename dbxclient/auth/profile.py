"""Authentication from a Databricks CLI style profile file (~/.databrickscfg).

A missing file lets the chain move on, so machines without local config
still work. A present file whose selected profile is empty or lacks host
or credentials is an error: a half-edited config must not be ignored.
"""

import configparser
import os

from dbxclient.auth.base import Authenticator, ResolvedAuth, StaticSigner, fix_host
from dbxclient.auth.direct import encode_basic_auth
from dbxclient.config.settings import ClientConfig
from dbxclient.errors import ConfigurationError
from dbxclient.logging.structured import get_logger

logger = get_logger("auth")

# Treat [DEFAULT] as an ordinary profile: other sections do not inherit its keys
NO_DEFAULT_SECTION = "dbxclient:no-default-section"


class ProfileFileAuthenticator(Authenticator):
    """Reads host and token (or username/password) from a named ini section."""

    name = "profile"

    async def configure(self, config: ClientConfig) -> ResolvedAuth | None:
        config_file = os.path.expanduser(config.config_file)
        if not os.path.isfile(config_file):
            logger.info(
                "Profile file not found on current host",
                extra={"audit_data": {"config_file": config_file}},
            )
            return None

        parser = configparser.ConfigParser(interpolation=None, default_section=NO_DEFAULT_SECTION)
        try:
            with open(config_file, encoding="utf-8") as f:
                parser.read_file(f)
        except (OSError, configparser.Error) as e:
            raise ConfigurationError(f"cannot parse config file {config_file}: {e}") from e

        profile = config.profile_name
        if not config.profile:
            logger.info(f"Using {profile} profile from {config_file}")
        if profile not in parser or len(parser[profile]) == 0:
            raise ConfigurationError(f"{config_file} has no {profile} profile configured")
        section = parser[profile]

        host = section.get("host", "")
        if not host:
            raise ConfigurationError(
                f"config file {config_file} is corrupt: cannot find host in {profile} profile"
            )

        auth_type = "Bearer"
        if "username" in section and "password" in section:
            auth_type = "Basic"
            credential = encode_basic_auth(section["username"], section["password"])
        else:
            credential = section.get("token", "")
        if not credential:
            raise ConfigurationError(
                f"config file {config_file} is corrupt: cannot find token in {profile} profile"
            )

        logger.info(f"Using {auth_type} authentication from {config_file}")
        return ResolvedAuth(
            auth_type=auth_type,
            host=fix_host(host),
            signer=StaticSigner(auth_type, credential),
        )
