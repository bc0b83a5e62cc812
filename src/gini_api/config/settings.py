"""Settings management for gini-api.

Example:
    >>> from gini_api.config import load_settings
    >>> settings = load_settings()
    >>> print(settings.api.url)
    https://api.gini.net
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import ValidationError, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from gini_api.config.exceptions import (
    ConfigurationError,
    ConfigurationFileNotFoundError,
    ConfigurationValidationError,
)
from gini_api.config.schema import (
    ApiConfig,
    ClientConfig,
    CredentialsConfig,
    OAuthConfig,
    ObservabilityConfig,
    PollingConfig,
    TimeoutsConfig,
)


if TYPE_CHECKING:
    from collections.abc import Sequence


__all__ = [
    "Settings",
    "clear_settings_cache",
    "find_config_file",
    "get_settings",
    "load_settings",
]


# ---------------------------------------------------------------------------
# Environment Variable Interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _interpolate_env_vars(value: object) -> object:
    """Recursively interpolate ${VAR} and ${VAR:-default} in strings.

    Unset variables without a default become the empty string. Dicts and
    lists are processed recursively; other values are returned unchanged.

    Example:
        >>> os.environ["GINI_SECRET"] = "s3cr3t"
        >>> _interpolate_env_vars({"secret": "${GINI_SECRET}"})
        {'secret': 's3cr3t'}
        >>> _interpolate_env_vars("${MISSING:-fallback}")
        'fallback'
    """
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            return match.group(2) or ""

        return _ENV_VAR_PATTERN.sub(replace, value)

    if isinstance(value, dict):
        return {k: _interpolate_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_interpolate_env_vars(item) for item in value]

    return value


class _InterpolatingYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source that interpolates environment variables."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: Path | str | None = None,
    ) -> None:
        if yaml_file is not None:
            super().__init__(settings_cls, yaml_file=yaml_file)
        else:
            super().__init__(settings_cls)

    def _read_files(
        self,
        files: Path | str | Sequence[Path | str] | None,
    ) -> dict[str, Any]:
        interpolated = _interpolate_env_vars(super()._read_files(files))
        if not isinstance(interpolated, dict):  # pragma: no cover
            return {}
        return interpolated


# ---------------------------------------------------------------------------
# Settings Class
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Client settings loaded from a YAML file and environment variables.

    Priority (highest first): constructor arguments, ``GINI_*`` environment
    variables, the YAML file, defaults. Nested fields use ``__`` in
    environment variable names, e.g. ``GINI_CLIENT__SECRET``.

    Attributes:
        client: OAuth2 client credentials.
        oauth: Identity provider settings.
        api: API endpoint and negotiation defaults.
        timeouts: Upload and processing deadlines.
        polling: Processing status polling.
        credentials: User credentials for login.
        observability: Logging settings.
    """

    model_config = SettingsConfigDict(
        yaml_file=None,
        yaml_file_encoding="utf-8",
        env_prefix="GINI_",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    CONFIG_SEARCH_PATHS: ClassVar[list[Path]] = [
        Path("gini.yaml"),
        Path("gini.yml"),
        Path.home() / ".config" / "gini" / "config.yaml",
        Path("/etc/gini/config.yaml"),
    ]

    # Set by load_settings() for the duration of one instantiation
    _yaml_file_override: ClassVar[Path | str | None] = None

    client: ClientConfig = ClientConfig()
    oauth: OAuthConfig = OAuthConfig()
    api: ApiConfig = ApiConfig()
    timeouts: TimeoutsConfig = TimeoutsConfig()
    polling: PollingConfig = PollingConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    observability: ObservabilityConfig = ObservabilityConfig()

    @model_validator(mode="after")
    def resolve_client_secret(self) -> Settings:
        """Read the client secret from ``client.secret_file`` if needed.

        Resolution order: ``client.secret``, then ``client.secret_file``,
        then the ``GINI_CLIENT_SECRET`` environment variable.

        Raises:
            ValueError: If ``secret_file`` is set but does not exist.
        """
        if self.client.secret:
            return self

        if self.client.secret_file:
            secret_path = self.client.secret_file
            if not secret_path.is_file():
                msg = f"Client secret file not found: {secret_path}"
                raise ValueError(msg)
            object.__setattr__(
                self.client,
                "secret",
                secret_path.read_text().strip(),
            )
            return self

        env_secret = os.environ.get("GINI_CLIENT_SECRET")
        if env_secret:
            object.__setattr__(self.client, "secret", env_secret)
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Order sources: init, environment, YAML file, file secrets."""
        return (
            init_settings,
            env_settings,
            _InterpolatingYamlConfigSettingsSource(
                settings_cls, yaml_file=cls._yaml_file_override
            ),
            file_secret_settings,
        )


# ---------------------------------------------------------------------------
# Settings Loading Functions
# ---------------------------------------------------------------------------

_cached_settings: Settings | None = None


def find_config_file(config_path: Path | str | None = None) -> Path | None:
    """Find the configuration file.

    Args:
        config_path: Explicit path to a config file, or None to search the
            default locations.

    Returns:
        Path to the config file if found, None otherwise.
    """
    if config_path is not None:
        path = Path(config_path)
        return path if path.is_file() else None

    for search_path in Settings.CONFIG_SEARCH_PATHS:
        if search_path.is_file():
            return search_path
    return None


def load_settings(
    config_path: Path | str | None = None,
    *,
    require_config_file: bool = False,
) -> Settings:
    """Load and validate settings, caching them for :func:`get_settings`.

    Args:
        config_path: Path to a YAML config file. If None, searches
            ./gini.yaml, ./gini.yml, ~/.config/gini/config.yaml and
            /etc/gini/config.yaml.
        require_config_file: Raise if no config file is found instead of
            using environment variables and defaults only.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationFileNotFoundError: When a config file is required (or
            explicitly given) but not found.
        ConfigurationValidationError: When validation fails.
    """
    global _cached_settings  # noqa: PLW0603

    config_file = find_config_file(config_path)

    if config_file is None and (require_config_file or config_path is not None):
        raise ConfigurationFileNotFoundError(
            path=str(config_path) if config_path else None,
            searched_paths=[str(p) for p in Settings.CONFIG_SEARCH_PATHS],
        )

    try:
        Settings._yaml_file_override = config_file  # noqa: SLF001
        try:
            settings = Settings()
        finally:
            Settings._yaml_file_override = None  # noqa: SLF001
    except ConfigurationError:
        raise
    except ValidationError as exc:
        msg = f"Invalid configuration: {exc}"
        raise ConfigurationValidationError(
            msg,
            errors=[dict(error) for error in exc.errors()],
        ) from exc
    except Exception as exc:
        msg = f"Failed to load configuration: {exc}"
        raise ConfigurationValidationError(msg) from exc

    _cached_settings = settings
    return settings


def get_settings() -> Settings:
    """Return the cached settings, loading them with defaults if needed."""
    global _cached_settings  # noqa: PLW0603

    if _cached_settings is None:
        _cached_settings = load_settings()
    return _cached_settings


def clear_settings_cache() -> None:
    """Clear the cached settings instance (mainly for tests)."""
    global _cached_settings  # noqa: PLW0603
    _cached_settings = None
