"""
Configuration for the calculator service.

Values are read from environment variables prefixed with ``CALCULATOR_``
(e.g. ``CALCULATOR_PORT=9100``) or from a local ``.env`` file.
"""
from typing import Literal, Optional

from pydantic import Field, IPvAnyAddress
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings shared by the server, the client and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="CALCULATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Network settings
    host: IPvAnyAddress = "127.0.0.1"
    port: int = Field(default=9000, ge=1, le=65535)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Worker pool; None means one worker per CPU core
    max_workers: Optional[int] = Field(default=None, ge=1)

    # Seconds the end-to-end runner waits for the server to listen
    startup_delay: float = Field(default=1.0, ge=0)


# Global settings instance
settings = Settings()
