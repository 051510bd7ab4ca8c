"""Pool configuration schema and YAML loading.

Example
-------
>>> # config/feed_pool.yaml
>>> # feed_pool:
>>> #   max_connections: 3
>>> #   enable_compression: true
>>> from feedlink.config import load_pool_config
>>> cfg = load_pool_config("config/feed_pool.yaml")  # doctest: +SKIP
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

ENVIRONMENT_VARIABLE = "FEEDLINK_ENV"
PRODUCTION = "production"
CONFIG_SECTION = "feed_pool"


def _default_environment() -> str:
    return os.getenv(ENVIRONMENT_VARIABLE, "development")


class PoolConfig(BaseModel):
    """Runtime settings for :class:`~feedlink.pool.ConnectionPool`.

    Durations are in seconds.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_connections: int = Field(default=5, ge=1)
    reconnect_interval: float = Field(default=1.0, gt=0)
    max_reconnect_attempts: int = Field(default=10, ge=0)
    ping_interval: float = Field(default=30.0, gt=0)
    rate_limit: int = Field(default=100, ge=1)
    rate_limit_duration: float = Field(default=60.0, gt=0)
    enable_compression: bool = False
    environment: str = Field(
        default_factory=_default_environment, validate_default=True
    )

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("environment must not be empty")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION


def build_pool_config(raw: Optional[Mapping[str, Any]] = None) -> PoolConfig:
    """Validate ``raw`` settings, raising :class:`ConfigurationError` on failure."""

    try:
        return PoolConfig.model_validate(dict(raw or {}))
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def load_pool_config(path: Path | str) -> PoolConfig:
    """Load the ``feed_pool`` section of a YAML file.

    A missing section yields the defaults; a missing or malformed file raises
    :class:`ConfigurationError`.
    """

    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        with path.open("r") as f:
            cfg_all = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(cfg_all, Mapping):
        raise ConfigurationError(f"{path} must contain a mapping")
    section = cfg_all.get(CONFIG_SECTION) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"'{CONFIG_SECTION}' must be a mapping")
    return build_pool_config(section)
