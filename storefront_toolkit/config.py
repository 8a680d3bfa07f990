"""
Configuration module for Storefront Python Toolkit.

Provides centralized configuration for the database connection, logging and
the catalog service defaults.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class Environment(str, Enum):
    """Deployment environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class StorefrontConfig(BaseModel):
    """Central configuration for the storefront toolkit.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (STOREFRONT_ prefix)
        3. Configuration files (JSON or YAML)
        4. Default values (lowest priority)

    Example:
        >>> config = StorefrontConfig(database_url="postgresql://shop@db/shop")

        Loading from environment:

        >>> import os
        >>> os.environ['STOREFRONT_DATABASE_URL'] = 'sqlite:///./shop.db'
        >>> config = StorefrontConfig.from_env()

        Loading from file:

        >>> config = StorefrontConfig.from_file('storefront.yaml')
    """

    # General settings
    application_name: str = Field(
        "Storefront", description="Name of the application for log records"
    )
    environment: Environment = Field(
        Environment.PRODUCTION, description="Deployment environment"
    )

    # Database settings
    database_url: str = Field(
        "sqlite:///./storefront.db", description="SQLAlchemy database URL"
    )
    echo_sql: bool = Field(False, description="Log every SQL statement")

    # Logging
    log_level: str = Field("INFO", description="Root log level")

    # Soft delete settings
    block_hard_deletes: bool = Field(
        False,
        description="Refuse session.delete() on soft-deletable records",
    )
    trash_report_days: int = Field(
        30, description="Default period of the trash report", gt=0
    )

    # Catalog listing settings
    default_page_size: int = Field(
        20, description="Page size when callers do not ask for one", gt=0
    )
    max_page_size: int = Field(100, description="Largest page size allowed", gt=0)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: Any) -> Any:
        """Accept environment names in any case."""
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is one the logging module knows."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if "://" not in v:
            raise ValueError("database_url must be a SQLAlchemy URL, e.g. sqlite:///shop.db")
        return v

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "StorefrontConfig":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    def page_size(self, take: Optional[int] = None) -> int:
        """Clamp a requested page size to the configured bounds."""
        if take is None or take <= 0:
            return self.default_page_size
        return min(take, self.max_page_size)

    @classmethod
    def from_env(cls, prefix: str = "STOREFRONT_") -> "StorefrontConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]

            field_type = field_info.annotation
            if get_origin(field_type) is Union:
                args = get_args(field_type)
                field_type = next((arg for arg in args if arg is not type(None)), str)

            try:
                if field_type == bool:
                    config_dict[field_name] = value.lower() in ("true", "1", "yes", "on")
                elif field_type == int:
                    config_dict[field_name] = int(value)
                else:
                    config_dict[field_name] = value
            except (ValueError, TypeError):
                # let validation report the raw value
                config_dict[field_name] = value

        return cls.model_validate(config_dict)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StorefrontConfig":
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: File path; ``.json`` is parsed as JSON, anything else as YAML
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        return cls.model_validate(data)


# Global configuration instance
_config: Optional[StorefrontConfig] = None


def get_config() -> StorefrontConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration, loaded from the environment on first use
    """
    global _config

    if _config is None:
        _config = StorefrontConfig.from_env()

    return _config


def set_config(config: Optional[StorefrontConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> StorefrontConfig:
    """
    Configure the toolkit with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = StorefrontConfig(**kwargs)
    else:
        config_dict = _config.to_dict()
        config_dict.update(kwargs)
        _config = StorefrontConfig(**config_dict)

    return _config


def setup_logging(config: Optional[StorefrontConfig] = None) -> None:
    """Apply the configured log level to the root logger."""
    config = config or get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger().setLevel(config.log_level)
    if config.echo_sql:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
