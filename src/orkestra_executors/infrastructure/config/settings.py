"""
Executor configuration.

Loads configuration once from environment variables using pydantic-settings.
Backends receive the settings at construction and never consult the
environment mid-call.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_KNOWN_HOSTS_FILE = "~/.ssh/known_hosts"


@dataclass(frozen=True)
class SSHDefaults:
    """
    Environment-level fallbacks for the remote-shell backend.

    Attributes:
        strict_host_key_checking: Verify host keys unless a task opts out
        known_hosts_file: Trust store used when a task names none
    """

    strict_host_key_checking: bool = True
    known_hosts_file: str = DEFAULT_KNOWN_HOSTS_FILE


class Settings(BaseSettings):
    """Executor settings loaded from ORKESTRA_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ORKESTRA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    # ============== Logging ==============
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")

    # ============== Timeouts (seconds) ==============
    command_timeout: float = Field(default=60.0, gt=0)
    container_timeout: float = Field(default=300.0, gt=0)
    ssh_timeout: float = Field(default=300.0, gt=0)
    ssh_connect_timeout: float = Field(default=30.0, gt=0)

    # ============== SSH ==============
    ssh_strict_host_key: bool = Field(default=True)
    ssh_known_hosts: str = Field(default=DEFAULT_KNOWN_HOSTS_FILE)

    # ============== Docker ==============
    # None lets the Docker client discover DOCKER_HOST or the default socket.
    docker_host: Optional[str] = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = {"json", "text"}
        if v.lower() not in allowed:
            raise ValueError(f"log_format must be one of {allowed}")
        return v.lower()

    def ssh_defaults(self) -> SSHDefaults:
        return SSHDefaults(
            strict_host_key_checking=self.ssh_strict_host_key,
            known_hosts_file=self.ssh_known_hosts,
        )


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
