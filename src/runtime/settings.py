# SPDX-License-Identifier: MIT
"""Centralised application configuration management.

This module exposes :class:`Settings`, a ``pydantic-settings`` model that
combines values sourced from the YAML configuration file and environment
variables. Environment variables (prefixed ``RP_``) and a ``.env`` file take
precedence over file-based values and the merged configuration is validated
before use.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_SIMULTANEOUS_REQUESTS,
    DEFAULT_TICK_DELAY,
)
from io_utils.loader import load_app_config
from models import AppConfig, PoolConfiguration


class Settings(BaseSettings):
    """Application settings combining file-based and environment configuration."""

    log_level: str = Field("INFO", description="Logging verbosity level.")
    max_simultaneous_requests: int = Field(
        DEFAULT_MAX_SIMULTANEOUS_REQUESTS,
        ge=1,
        description="Global ceiling on concurrent fetches across all classes.",
    )
    max_retries: int = Field(
        DEFAULT_MAX_RETRIES,
        ge=0,
        description="Re-fetch attempts allowed per item after a failure.",
    )
    tick_delay: float = Field(
        DEFAULT_TICK_DELAY,
        ge=0,
        description="Debounce delay in seconds between scheduling passes.",
    )
    logfire_token: str | None = Field(
        None, description="Logfire authentication token, if available.", repr=False
    )
    diagnostics: bool = Field(
        False, description="Enable verbose diagnostics and tracing."
    )

    model_config = SettingsConfigDict(env_prefix="RP_", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; the environment must override them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def pool_configuration(self) -> PoolConfiguration:
        """Return the subset of settings consumed by :class:`pool.RequestPool`."""
        return PoolConfiguration(
            max_retries=self.max_retries, tick_delay=self.tick_delay
        )


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load and validate application settings.

    Configuration values are read from the application configuration file and
    then merged with environment variables using ``pydantic-settings``. When a
    value is provided in both sources the environment variable wins. A ``.env``
    file in the working directory is loaded automatically when present. A
    missing default ``config/app.yaml`` is not an error; defaults apply.

    Args:
        config_path: Optional path to a YAML configuration file. Unlike the
            default location it must exist.

    Returns:
        Settings: Fully validated application configuration.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        RuntimeError: If configuration values are missing or invalid.
    """
    if config_path:
        cfg_path = Path(config_path)
        config = load_app_config(cfg_path.parent, cfg_path.name)
    else:
        try:
            config = load_app_config()
        except FileNotFoundError:
            config = AppConfig()
    env_file_path = Path(".env")
    env_file = env_file_path if env_file_path.exists() else None
    try:
        return Settings(
            log_level=config.log_level,
            max_simultaneous_requests=config.max_simultaneous_requests,
            max_retries=config.max_retries,
            tick_delay=config.tick_delay,
            diagnostics=config.diagnostics,
            _env_file=env_file,
        )
    except ValidationError as exc:
        # Summarise validation issues so the caller receives clear feedback.
        details = "; ".join(
            f"{'.'.join(map(str, error['loc']))}: {error['msg']}"
            for error in exc.errors()
        )
        raise RuntimeError(f"Invalid configuration: {details}") from exc
