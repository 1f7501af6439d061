"""Environment configuration for the Google Drive / Gmail MCP server.

Configuration is read from the process environment, optionally seeded from
a ``.env`` file. Every variable is optional on its own; the credential
variables are validated as a group by :func:`validate_credentials`.

Environment Variables:
    GOOGLE_CLIENT_ID: OAuth client ID.
    GOOGLE_CLIENT_SECRET: OAuth client secret.
    GOOGLE_REDIRECT_URI: OAuth redirect URI (default: OAuth playground).
    GOOGLE_REFRESH_TOKEN: OAuth refresh token.
    GOOGLE_SERVICE_ACCOUNT_EMAIL: Service account email.
    GOOGLE_PRIVATE_KEY: Service account PEM key; literal ``\\n`` is unescaped.
    MCP_SERVER_NAME: Server name reported to the client.
    MCP_SERVER_VERSION: Server version reported to the client.
    DEFAULT_FOLDER_ID: Parent folder for uploads and new folders.
    MAX_FILE_SIZE: Largest upload/download in bytes (default: 100 MiB).
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from gdrive_mcp.__version__ import __version__
from gdrive_mcp.errors import ConfigurationError
from gdrive_mcp.logging_config import log_config

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URI = "https://developers.google.com/oauthplayground"
DEFAULT_SERVER_NAME = "gdrive-mcp-server"
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

ENV_VARS = {
    "google_client_id": "GOOGLE_CLIENT_ID",
    "google_client_secret": "GOOGLE_CLIENT_SECRET",
    "google_redirect_uri": "GOOGLE_REDIRECT_URI",
    "google_refresh_token": "GOOGLE_REFRESH_TOKEN",
    "google_service_account_email": "GOOGLE_SERVICE_ACCOUNT_EMAIL",
    "google_private_key": "GOOGLE_PRIVATE_KEY",
    "server_name": "MCP_SERVER_NAME",
    "server_version": "MCP_SERVER_VERSION",
    "default_folder_id": "DEFAULT_FOLDER_ID",
    "max_file_size": "MAX_FILE_SIZE",
}


class ServerConfig(BaseModel):
    """Validated server configuration.

    Attributes:
        google_client_id: OAuth client ID, if configured.
        google_client_secret: OAuth client secret, if configured.
        google_redirect_uri: OAuth redirect URI.
        google_refresh_token: OAuth refresh token, if configured.
        google_service_account_email: Service account email, if configured.
        google_private_key: Service account PEM private key, if configured.
        server_name: Name reported in the MCP initialize handshake.
        server_version: Version reported in the MCP initialize handshake.
        default_folder_id: Default parent folder for created files.
        max_file_size: Transfer size limit in bytes.
    """

    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_redirect_uri: str = Field(default=DEFAULT_REDIRECT_URI)
    google_refresh_token: str | None = None
    google_service_account_email: str | None = None
    google_private_key: str | None = None
    server_name: str = Field(default=DEFAULT_SERVER_NAME)
    server_version: str = Field(default=__version__)
    default_folder_id: str | None = None
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, gt=0)

    @field_validator("google_redirect_uri")
    @classmethod
    def _check_redirect_uri(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("GOOGLE_REDIRECT_URI must be a valid URL")
        return value

    @field_validator("google_private_key")
    @classmethod
    def _unescape_private_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.replace("\\n", "\n")

    @property
    def has_oauth(self) -> bool:
        """True when both OAuth client ID and secret are present."""
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def has_service_account(self) -> bool:
        """True when both service account email and private key are present."""
        return bool(self.google_service_account_email and self.google_private_key)


def find_env_file() -> Path | None:
    """Return the first ``.env`` file found, or None.

    Searches the current working directory, then the project root.
    """
    candidates = [
        Path.cwd() / ".env",
        Path(__file__).resolve().parent.parent.parent / ".env",
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def load_env_file() -> Path | None:
    """Load a ``.env`` file into the process environment.

    Variables already set in the environment are not overridden.

    Returns:
        Path of the loaded file, or None if no file was found.
    """
    env_path = find_env_file()
    if env_path is None:
        log_config(logger, "No .env file found, using system environment variables")
        return None

    load_dotenv(env_path, override=False)
    log_config(logger, "Loaded environment from: %s", env_path)
    return env_path


def load_config(environ: Mapping[str, str] | None = None) -> ServerConfig:
    """Build a :class:`ServerConfig` from environment variables.

    Empty values are treated as unset.

    Args:
        environ: Variable source. Defaults to ``os.environ``.

    Returns:
        Parsed configuration.

    Raises:
        ConfigurationError: If a value fails validation.
    """
    source = os.environ if environ is None else environ

    raw: dict[str, str] = {}
    for field_name, env_name in ENV_VARS.items():
        value = source.get(env_name)
        if value:
            raw[field_name] = value

    try:
        return ServerConfig.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{ENV_VARS.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e


def validate_credentials(config: ServerConfig) -> None:
    """Check that at least one complete credential set is configured.

    Logs which secrets are present (never their values) and warns about
    partial configurations.

    Raises:
        ConfigurationError: If neither OAuth nor service account credentials
            are complete.
    """
    log_config(logger, "Validating credentials...")
    log_config(logger, "Client ID present: %s", bool(config.google_client_id))
    log_config(logger, "Client Secret present: %s", bool(config.google_client_secret))
    log_config(logger, "Refresh Token present: %s", bool(config.google_refresh_token))
    log_config(
        logger,
        "Service Account Email present: %s",
        bool(config.google_service_account_email),
    )
    log_config(logger, "Private Key present: %s", bool(config.google_private_key))

    if not config.has_oauth and not config.has_service_account:
        raise ConfigurationError(
            "Missing Google API credentials. Set one of:\n\n"
            "OAuth2 (required for Gmail):\n"
            "- GOOGLE_CLIENT_ID\n"
            "- GOOGLE_CLIENT_SECRET\n"
            "- GOOGLE_REFRESH_TOKEN (recommended)\n\n"
            "Service account (Google Drive):\n"
            "- GOOGLE_SERVICE_ACCOUNT_EMAIL\n"
            "- GOOGLE_PRIVATE_KEY\n\n"
            f"Current working directory: {Path.cwd()}"
        )

    if not config.has_oauth:
        logger.warning(
            "No OAuth credentials found. Gmail functionality will be disabled. "
            "Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN to enable Gmail."
        )

    if not config.has_service_account:
        logger.warning(
            "No service account credentials found. Google Drive will use OAuth credentials. "
            "Set GOOGLE_SERVICE_ACCOUNT_EMAIL and GOOGLE_PRIVATE_KEY to use a service account."
        )

    if config.has_oauth and not config.google_refresh_token:
        logger.warning(
            "OAuth credentials found but no refresh token provided. "
            "Set GOOGLE_REFRESH_TOKEN to keep access without re-authorization."
        )
