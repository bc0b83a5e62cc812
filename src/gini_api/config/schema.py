"""Configuration schema models for gini-api.

Each model is one section of the YAML configuration file (and of the
``GINI_<SECTION>__<FIELD>`` environment variables).
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - needed at runtime for Pydantic
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gini_api.observability.logging import LogFormat, LogLevel


__all__ = [
    "ApiConfig",
    "ClientConfig",
    "ConfigBaseModel",
    "CredentialsConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "OAuthConfig",
    "ObservabilityConfig",
    "PollingConfig",
    "TimeoutsConfig",
]


# ---------------------------------------------------------------------------
# Base Configuration Model
# ---------------------------------------------------------------------------


class ConfigBaseModel(BaseModel):
    """Base model for all configuration sections.

    Unknown fields are rejected to catch typos in configuration files.
    """

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        validate_default=True,
    )


# ---------------------------------------------------------------------------
# Client Credentials and Endpoints
# ---------------------------------------------------------------------------


class ClientConfig(ConfigBaseModel):
    """OAuth2 client credentials.

    If both ``secret`` and ``secret_file`` are set, ``secret`` wins.

    Attributes:
        id: OAuth2 client id.
        secret: OAuth2 client secret (supports ${VAR} interpolation).
        secret_file: Path to a file containing the client secret.
    """

    id: str | None = Field(default=None, description="OAuth2 client id")
    secret: str | None = Field(
        default=None,
        description="OAuth2 client secret (supports ${VAR} interpolation)",
    )
    secret_file: Path | None = Field(
        default=None,
        description="Path to file containing the client secret",
    )


class OAuthConfig(ConfigBaseModel):
    """Identity provider settings.

    Attributes:
        site: Base URL of the identity provider.
        redirect_uri: Redirect URI for the authorization code flow.
    """

    site: str = Field(default="https://user.gini.net")
    redirect_uri: str = Field(default="http://localhost")

    @field_validator("site")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Remove trailing slash from URL to avoid double slashes."""
        return v.rstrip("/")


class ApiConfig(ConfigBaseModel):
    """API endpoint and content negotiation defaults.

    Attributes:
        url: Base URL of the API.
        version: Default API version for vendor media types.
        type: Default representation.
        product: Product name used in vendor media types.
    """

    url: str = Field(default="https://api.gini.net")
    version: str = Field(default="v1")
    type: Literal["json", "xml"] = Field(default="json")
    product: str = Field(default="gini")

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Remove trailing slash from URL to avoid double slashes."""
        return v.rstrip("/")


class TimeoutsConfig(ConfigBaseModel):
    """Deadlines in seconds.

    Attributes:
        upload: Time allowed for a document upload.
        processing: Time allowed per request and for post-upload polling.
    """

    upload: Annotated[float, Field(gt=0, description="Upload timeout")] = 90.0
    processing: Annotated[
        float,
        Field(gt=0, description="Request and processing timeout"),
    ] = 180.0


class PollingConfig(ConfigBaseModel):
    """Polling of document processing state.

    Attributes:
        interval: Seconds between status fetches.
    """

    interval: Annotated[
        float,
        Field(gt=0, le=60, description="Seconds between status polls"),
    ] = 0.5


class CredentialsConfig(ConfigBaseModel):
    """User credentials for login.

    Leave all unset to authenticate as a trusted gateway.

    Attributes:
        auth_code: OAuth2 authorization code.
        username: API username.
        password: API password (supports ${VAR} interpolation).
        user_identifier: End user to act for in gateway mode.
    """

    auth_code: str | None = None
    username: str | None = None
    password: str | None = None
    user_identifier: str | None = None


# ---------------------------------------------------------------------------
# Observability Configuration
# ---------------------------------------------------------------------------


class LoggingConfig(ConfigBaseModel):
    """Logging configuration.

    Attributes:
        level: Log verbosity level.
        format: Log output format; None picks console or logfmt by TTY.
    """

    level: LogLevel = Field(default=LogLevel.INFO)
    format: LogFormat | None = Field(default=None)

    @field_validator("level", mode="before")
    @classmethod
    def lowercase_level(cls, v: object) -> object:
        """Accept level names in any case."""
        return v.lower() if isinstance(v, str) else v


class ObservabilityConfig(ConfigBaseModel):
    """Observability configuration.

    Attributes:
        logging: Logging configuration.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
