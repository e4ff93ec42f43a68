"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All configuration is driven by ``FLEETCMD_*`` environment variables."""

    # API key
    api_key: str = ""

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # SSH connection
    ssh_connect_timeout_seconds: float = 15.0
    ssh_auth_timeout_seconds: float = 15.0

    # Root elevation over the interactive shell
    elevation_command: str = "sudo su -"
    elevation_read_slice_seconds: float = 0.2
    elevation_max_wait_seconds: float = 5.0
    elevation_poll_interval_seconds: float = 0.1

    # Jobs
    default_job_timeout_seconds: int = 300
    terminal_timeout_seconds: int = 30
    enforce_command_timeout: bool = True

    # File transfer
    transfer_temp_dir: str = "/tmp"
    sshpass_binary: str = "sshpass"
    scp_binary: str = "scp"

    # Async dispatch
    dispatcher_workers: int = Field(default=4, ge=1)

    # Optional JSON file with the target inventory
    targets_file: str = ""

    model_config = SettingsConfigDict(
        env_prefix="FLEETCMD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Singleton – import this from anywhere
settings = Settings()
