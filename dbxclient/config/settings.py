"""Client configuration loaded from keyword arguments and DATABRICKS_* environment variables."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_CONFIG_FILE = "~/.databrickscfg"
DEFAULT_PROFILE = "DEFAULT"
DEFAULT_TRUNCATE_BYTES = 96
DEFAULT_RATE_LIMIT_PER_SECOND = 15
DEFAULT_HTTP_TIMEOUT_SECONDS = 60


class ClientConfig(BaseSettings):
    # Direct parameters
    host: str = ""
    token: str = ""
    username: str = ""
    password: str = ""  # blanked once basic auth is derived from it

    # Profile file
    profile: str = ""  # empty = DEFAULT
    config_file: str = DEFAULT_CONFIG_FILE

    account_id: str = ""

    # Azure federation
    azure_workspace_resource_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: str = ""
    azure_tenant_id: str = ""

    # Google federation
    google_service_account: str = ""

    # Transport
    insecure_skip_verify: bool = False
    http_timeout_seconds: int = DEFAULT_HTTP_TIMEOUT_SECONDS
    rate_limit_per_second: int = DEFAULT_RATE_LIMIT_PER_SECOND

    # Logging
    debug_truncate_bytes: int = DEFAULT_TRUNCATE_BYTES
    debug_headers: bool = False
    log_level: str = "INFO"
    log_file: str = ""  # Empty = stdout only

    model_config = {
        "env_prefix": "DATABRICKS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("http_timeout_seconds", mode="after")
    @classmethod
    def _default_timeout(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_HTTP_TIMEOUT_SECONDS

    @field_validator("rate_limit_per_second", mode="after")
    @classmethod
    def _default_rate_limit(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_RATE_LIMIT_PER_SECOND

    @field_validator("debug_truncate_bytes", mode="after")
    @classmethod
    def _default_truncate(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_TRUNCATE_BYTES

    @property
    def profile_name(self) -> str:
        return self.profile or DEFAULT_PROFILE

    @property
    def azure_client_secret_set(self) -> bool:
        return bool(self.azure_client_id and self.azure_client_secret and self.azure_tenant_id)


@lru_cache
def get_config() -> ClientConfig:
    return ClientConfig()
