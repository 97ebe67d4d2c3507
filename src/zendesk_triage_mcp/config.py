import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from zendesk_triage_mcp.errors import ConfigurationError

LOGGER_NAME = "zendesk-mcp-server"

_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in _FALSE_VALUES


@dataclass(frozen=True)
class ZendeskConfig:
    """Credentials for the Zendesk API"""
    subdomain: Optional[str]
    email: Optional[str]
    token: Optional[str]

    @classmethod
    def from_env(cls) -> "ZendeskConfig":
        return cls(
            subdomain=os.getenv("ZENDESK_SUBDOMAIN"),
            email=os.getenv("ZENDESK_EMAIL"),
            token=os.getenv("ZENDESK_API_KEY"),
        )


@dataclass(frozen=True)
class AuthConfig:
    """Request authorization settings for the HTTP transport"""
    require_auth: bool
    token: Optional[str]

    @classmethod
    def from_env(cls) -> "AuthConfig":
        return cls(
            require_auth=_env_flag("MCP_REQUIRE_AUTH", True),
            token=os.getenv("MCP_AUTH_TOKEN"),
        )

    def validate(self) -> None:
        """Auth can only be enforced when a token is configured"""
        if self.require_auth and not self.token:
            raise ConfigurationError(
                "MCP_AUTH_TOKEN must be set when MCP_REQUIRE_AUTH is enabled. "
                "Set MCP_REQUIRE_AUTH=false to disable authorization."
            )


@dataclass(frozen=True)
class Settings:
    zendesk: ZendeskConfig
    auth: AuthConfig
    agent_directory_path: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"


def load_settings() -> Settings:
    """
    Read settings from the environment, loading a .env file first if present.
    """
    load_dotenv()

    port = os.getenv("MCP_PORT", "8000")
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigurationError(f"MCP_PORT must be an integer, got: {port}")

    return Settings(
        zendesk=ZendeskConfig.from_env(),
        auth=AuthConfig.from_env(),
        agent_directory_path=os.getenv("ZENDESK_AGENT_DIRECTORY") or None,
        host=os.getenv("MCP_HOST", "127.0.0.1"),
        port=port_number,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def setup_logging(level: str = "INFO") -> logging.Logger:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    return logging.getLogger(LOGGER_NAME)
