"""
Configuration module for SQLAlchemy Paranoid.

Provides the process-wide defaults that per-type paranoid options fall back to.
"""

import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional, Union, get_args, get_origin

from pydantic import BaseModel, Field, field_validator


class ColumnType(str, Enum):
    """Supported kinds of deletion marker column."""

    TIME = "time"
    BOOLEAN = "boolean"
    STRING = "string"


class ParanoidConfig(BaseModel):
    """Global configuration for paranoid models.

    Every field here is a default. A model's ``__paranoid__`` options override
    any of them for that model only, so a single application can mix
    timestamp, boolean and sentinel-string markers.

    Configuration Sources (in order of precedence):
        1. Programmatic settings via ``configure()`` or ``set_config()``
        2. Environment variables (PARANOID_ prefix)
        3. Default values

    Example:
        >>> config = ParanoidConfig(
        ...     default_recovery_window_seconds=300,
        ...     dependent_destroy_paranoid_only=True,
        ... )

        Loading from environment:

        >>> import os
        >>> os.environ['PARANOID_DEFAULT_COLUMN'] = 'removed_at'
        >>> config = ParanoidConfig.from_env()

    Note:
        Options are read when a paranoid class is defined. Changing the global
        configuration afterwards does not affect classes that already exist.
    """

    default_column: str = Field(
        "deleted_at", description="Marker column used when a model names none"
    )
    default_column_type: ColumnType = Field(
        ColumnType.TIME, description="Marker kind used when a model names none"
    )
    default_recovery_window_seconds: int = Field(
        120,
        description="Window around the parent's deletion time for cascaded recovery",
        ge=0,
    )
    recover_dependent_associations: bool = Field(
        True, description="Recover dependents recursively by default"
    )
    dependent_destroy_paranoid_only: bool = Field(
        False, description="Use the soft_destroy hook chain when deleting"
    )
    double_tap_destroys_fully: bool = Field(
        True, description="Deleting an already deleted record purges it"
    )
    log_level: str = Field("WARNING", description="Level for the paranoid logger")

    @field_validator("default_column")
    @classmethod
    def validate_default_column(cls, v: str) -> str:
        """Ensure the column name is usable as an attribute name."""
        if not v.isidentifier():
            raise ValueError(f"Column name '{v}' is not a valid identifier")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is one the logging module understands."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @property
    def default_recovery_window(self) -> timedelta:
        return timedelta(seconds=self.default_recovery_window_seconds)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_env(cls, prefix: str = "PARANOID_") -> "ParanoidConfig":
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
            if env_var in os.environ:
                value = os.environ[env_var]

                field_type = field_info.annotation

                # Handle Optional types
                if get_origin(field_type) is Union:
                    args = get_args(field_type)
                    field_type = next(
                        (arg for arg in args if arg is not type(None)), str
                    )

                try:
                    if field_type == bool:
                        config_dict[field_name] = value.lower() in (
                            "true",
                            "1",
                            "yes",
                            "on",
                        )
                    elif field_type == int:
                        config_dict[field_name] = int(value)
                    elif isinstance(field_type, type) and issubclass(field_type, Enum):
                        config_dict[field_name] = field_type(value)
                    else:
                        config_dict[field_name] = value
                except (ValueError, TypeError):
                    # Let model validation report the bad value
                    config_dict[field_name] = value

        return cls.model_validate(config_dict)


# Global configuration instance
_config: Optional[ParanoidConfig] = None


def _apply_log_level(config: ParanoidConfig) -> None:
    logging.getLogger("paranoid").setLevel(config.log_level)


def get_config() -> ParanoidConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        _config = ParanoidConfig.from_env()
        _apply_log_level(_config)

    return _config


def set_config(config: ParanoidConfig) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set
    """
    global _config
    _config = config
    _apply_log_level(config)


def configure(**kwargs: Any) -> ParanoidConfig:
    """
    Configure paranoid defaults with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    config_dict = get_config().to_dict()
    config_dict.update(kwargs)
    set_config(ParanoidConfig(**config_dict))
    return get_config()
