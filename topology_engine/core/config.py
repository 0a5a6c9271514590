#topology_engine\core\config.py

import json
from dataclasses import dataclass, field
from typing import Annotated, List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from topology_engine.core.errors import ConfigError


@dataclass(frozen=True)
class StackConfiguration:
    """
    Application configuration injected into the task environment.

    The password and JWT secret defaults are plaintext placeholders,
    not secrets.
    """
    db_username: str = "postgres"
    db_password: str = field(default="password", repr=False)
    db_database: str = "postgres"
    db_schema: str = "public"
    jwt_secret: str = field(default="JWT_SECRET", repr=False)
    jwt_expires_in: str = "1d"


class StackSettings(BaseSettings):
    """Configuration source: DB_* and JWT_* environment variables (or .env)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Unset stays None so fallbacks are applied in one place
    db_username: Optional[str] = None
    db_password: Optional[str] = None
    db_database: Optional[str] = None
    db_schema: Optional[str] = None
    jwt_secret: Optional[str] = None
    jwt_expires_in: Optional[str] = None

    def to_configuration(self, require_credentials: bool = False) -> StackConfiguration:
        """
        Apply documented fallbacks.

        With `require_credentials`, an unset DB_USERNAME or DB_PASSWORD is a
        ConfigError instead of a silent default.
        """
        if require_credentials:
            missing = [
                name for name, value in (
                    ("DB_USERNAME", self.db_username),
                    ("DB_PASSWORD", self.db_password),
                )
                if not value
            ]
            if missing:
                raise ConfigError(f"Required configuration not set: {', '.join(missing)}")

        defaults = StackConfiguration()
        return StackConfiguration(
            db_username=self.db_username or defaults.db_username,
            db_password=self.db_password or defaults.db_password,
            db_database=self.db_database or defaults.db_database,
            db_schema=self.db_schema or defaults.db_schema,
            jwt_secret=self.jwt_secret or defaults.jwt_secret,
            jwt_expires_in=self.jwt_expires_in or defaults.jwt_expires_in,
        )


class EngineSettings(BaseSettings):
    """Engine configuration from TOPOLOGY_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOPOLOGY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Provisioning backend
    backend: Literal["memory", "http"] = "memory"
    provisioning_agent_url: Optional[str] = None
    agent_timeout: int = 30
    agent_poll_interval: float = 2.0
    agent_resolve_timeout: int = 900

    # Region
    aws_region: str = "us-east-1"
    # Comma-separated ("us-east-1a,us-east-1b") or a JSON array
    availability_zones: Annotated[Optional[List[str]], NoDecode] = None

    # Images
    image_builder: Literal["digest", "docker"] = "digest"
    image_repository: str = "app"

    require_explicit_credentials: bool = False
    log_level: str = "INFO"
    event_log_size: int = 1000

    @field_validator("availability_zones", mode="before")
    @classmethod
    def _split_zones(cls, value):
        if not isinstance(value, str):
            return value
        value = value.strip()
        if value.startswith("["):
            return json.loads(value)
        return [zone.strip() for zone in value.split(",") if zone.strip()]

    def zones(self) -> List[str]:
        if self.availability_zones:
            return list(self.availability_zones)
        return [f"{self.aws_region}{suffix}" for suffix in "abc"]
