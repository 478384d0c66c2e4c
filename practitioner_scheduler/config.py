"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.exceptions import InvalidTimeZone
from .domain.timezones import ensure_timezone

TOKEN_ENV_VAR = "WINDMILL_TOKEN"


class GatewayConfig(BaseModel):
    """Connection settings for the practice-management gateway."""
    base_url: str
    workspace_id: str
    token: str = ""  # Falls back to the WINDMILL_TOKEN environment variable
    request_timeout_seconds: float = 30

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout_seconds must be greater than zero")
        return value

    def resolved_token(self) -> str:
        """Return the configured token, or the one from the environment."""
        return self.token or os.environ.get(TOKEN_ENV_VAR, "")


class DefaultsConfig(BaseModel):
    """Default settings for availability lookups."""
    practitioner_id: Optional[int] = None
    range_days: int = 30

    @field_validator("range_days")
    @classmethod
    def validate_range_days(cls, value: int) -> int:
        """Ensure the lookup range is positive."""
        if value <= 0:
            raise ValueError("range_days must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    gateway: GatewayConfig
    fallback_timezone: Optional[str] = None
    fetch_deadline_seconds: float = 60
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @field_validator("fallback_timezone")
    @classmethod
    def validate_fallback_timezone(cls, value: Optional[str]) -> Optional[str]:
        """Reject unknown IANA identifiers up front."""
        if value is None:
            return value
        try:
            return ensure_timezone(value)
        except InvalidTimeZone as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("fetch_deadline_seconds")
    @classmethod
    def validate_deadline(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("fetch_deadline_seconds must be greater than zero")
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
