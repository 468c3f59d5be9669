"""
Configuration management for Drydock

Handles configuration loading from environment variables, files,
and command-line arguments using Pydantic settings.
"""

import logging
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class InstanceConfig(BaseModel):
    """
    Immutable description of one database instance.

    The port and password are optional: when omitted, a free port is
    allocated and a random password generated at construction time.
    """

    model_config = ConfigDict(frozen=True)

    image: str = Field(..., description="Container image as repository:tag, e.g. postgres:13")
    port: Optional[int] = Field(None, description="Fixed host port (allocated when unset)")
    password: Optional[str] = Field(None, description="Fixed superuser password (generated when unset)")

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        """Ensure image reference is usable."""
        v = v.strip()
        if not v:
            raise ValueError("Docker image name can't be empty")
        if re.search(r"\s", v):
            raise ValueError(f"Docker image name can't contain whitespace: {v!r}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: Optional[int]) -> Optional[int]:
        """Ensure a fixed port is in range."""
        if v is not None and not 1 <= v <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        """Ensure a fixed password is not empty."""
        if v is not None and not v:
            raise ValueError("password can't be empty")
        return v

    @classmethod
    def from_image(cls, image: str) -> "InstanceConfig":
        """Configuration with a free port and a random password."""
        return cls(image=image)


class DrydockSettings(BaseSettings):
    """
    Main configuration class for Drydock.

    Configuration is loaded from:
    1. Environment variables (highest priority)
    2. .env file
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="DRYDOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for log files (file logging disabled when unset)",
    )
    verbose: bool = Field(
        default=False,
        description="Enable verbose console output",
    )

    # Container configuration
    container_runtime: str = Field(
        default="docker",
        description="Container runtime (docker or podman)",
    )
    container_name_prefix: str = Field(
        default="drydock",
        description="Prefix for container names, used to find orphaned containers",
    )
    default_image: str = Field(
        default="postgres:13",
        description="Image used when none is given",
    )
    command_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for list/create/start/remove engine commands",
    )
    pull_timeout: Optional[float] = Field(
        default=None,
        description="Timeout in seconds for image pulls (unbounded when unset)",
    )

    # PostgreSQL configuration
    host: str = Field(
        default="localhost",
        description="Host clients use to reach the published port",
    )
    bind_host: str = Field(
        default="0.0.0.0",
        description="Host interface the container port is published on",
    )
    internal_port: int = Field(
        default=5432,
        description="Port PostgreSQL listens on inside the container",
    )
    superuser: str = Field(
        default="postgres",
        description="PostgreSQL superuser name",
    )
    sslmode: str = Field(
        default="disable",
        description="libpq sslmode for all connections",
    )
    strict_database_names: bool = Field(
        default=True,
        description="Reject database names that are not plain SQL identifiers",
    )

    # Lifecycle configuration
    work_dir_prefix: str = Field(
        default="dock",
        description="Prefix for per-instance temporary directories",
    )
    readiness_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for PostgreSQL to accept connections",
    )
    readiness_interval: float = Field(
        default=0.1,
        description="Seconds between readiness probes",
    )
    connect_timeout: int = Field(
        default=2,
        description="Per-attempt libpq connect timeout in seconds",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator("container_runtime")
    @classmethod
    def validate_container_runtime(cls, v: str) -> str:
        """Validate container runtime is supported."""
        valid_runtimes = ["podman", "docker"]
        if v.lower() not in valid_runtimes:
            raise ValueError(
                f"container_runtime must be one of: {', '.join(valid_runtimes)}"
            )
        return v.lower()

    @field_validator("container_name_prefix")
    @classmethod
    def validate_container_name_prefix(cls, v: str) -> str:
        """Container names only allow [a-zA-Z0-9][a-zA-Z0-9_.-]."""
        if not re.match(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$", v):
            raise ValueError(f"invalid container_name_prefix: {v!r}")
        return v

    @field_validator("readiness_timeout", "readiness_interval")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("pull_timeout", "command_timeout")
    @classmethod
    def validate_positive_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v

    def get_log_dir_path(self) -> Optional[Path]:
        """Get log directory as Path object."""
        return Path(self.log_dir) if self.log_dir else None

    def get_display_values(self) -> dict:
        """
        Get configuration dict for display.

        No setting holds a credential; instance passwords live on the
        instance, so nothing here needs masking.
        """
        return self.model_dump()


def load_config(
    config_file: Optional[str] = None,
    cli_overrides: Optional[dict] = None,
) -> DrydockSettings:
    """
    Load configuration with optional YAML file and CLI overrides.

    Args:
        config_file: Optional YAML configuration file path
        cli_overrides: CLI argument overrides

    Returns:
        Loaded configuration
    """
    config = DrydockSettings()
    config_data = config.model_dump()

    if config_file:
        config_path = Path(config_file)
        with open(config_path, "r") as f:
            file_data = yaml.safe_load(f) or {}

        if not isinstance(file_data, dict):
            raise ValueError(f"Invalid configuration file {config_path}: expected a mapping")

        unknown = set(file_data) - set(config_data)
        if unknown:
            raise ValueError(
                f"Unknown configuration keys in {config_path}: {', '.join(sorted(unknown))}"
            )

        logger.debug(f"Loaded configuration file: {config_path}")
        config_data.update(file_data)

    if cli_overrides:
        config_data.update(cli_overrides)

    if config_file or cli_overrides:
        config = DrydockSettings(**config_data)

    return config


def get_default_config() -> DrydockSettings:
    """
    Get default configuration for development/testing.

    Returns:
        Default configuration instance
    """
    return DrydockSettings(
        log_level="DEBUG",
        verbose=True,
    )
