"""
Configuration - Settings read from the environment.

All values have sensible defaults so the engine runs without any
environment at all. Variables are prefixed with ROOMSYNC_.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os


# Role that receives the theme's opening media on start and reconstruction.
DEFAULT_PRIMARY_ROLE = "main"

# One window for every reader deciding whether a device is still alive.
DEFAULT_STALE_AFTER_SECONDS = 30.0

DEFAULT_HEARTBEAT_INTERVAL_SECONDS = 15.0
DEFAULT_LIVENESS_TICK_SECONDS = 5.0

JOIN_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
DEFAULT_JOIN_CODE_LENGTH = 4


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


@dataclass
class Settings:
    """
    Runtime settings for the engine, API and CLI.
    """
    env: str = "development"
    primary_role: str = DEFAULT_PRIMARY_ROLE

    # Liveness
    stale_after_seconds: float = DEFAULT_STALE_AFTER_SECONDS
    heartbeat_interval_seconds: float = DEFAULT_HEARTBEAT_INTERVAL_SECONDS
    liveness_tick_seconds: float = DEFAULT_LIVENESS_TICK_SECONDS

    # Sessions
    join_code_length: int = DEFAULT_JOIN_CODE_LENGTH
    max_conflict_retries: int = 3

    # Storage
    store_path: str | None = None
    catalog_path: str | None = None

    # API
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ROOMSYNC_* environment variables."""
        return cls(
            env=os.getenv("ROOMSYNC_ENV", "development"),
            primary_role=os.getenv("ROOMSYNC_PRIMARY_ROLE", DEFAULT_PRIMARY_ROLE),
            stale_after_seconds=_env_float(
                "ROOMSYNC_STALE_AFTER_SECONDS", DEFAULT_STALE_AFTER_SECONDS
            ),
            heartbeat_interval_seconds=_env_float(
                "ROOMSYNC_HEARTBEAT_INTERVAL_SECONDS", DEFAULT_HEARTBEAT_INTERVAL_SECONDS
            ),
            liveness_tick_seconds=_env_float(
                "ROOMSYNC_LIVENESS_TICK_SECONDS", DEFAULT_LIVENESS_TICK_SECONDS
            ),
            join_code_length=_env_int("ROOMSYNC_JOIN_CODE_LENGTH", DEFAULT_JOIN_CODE_LENGTH),
            max_conflict_retries=_env_int("ROOMSYNC_MAX_CONFLICT_RETRIES", 3),
            store_path=os.getenv("ROOMSYNC_STORE_PATH"),
            catalog_path=os.getenv("ROOMSYNC_CATALOG_PATH"),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
        )
