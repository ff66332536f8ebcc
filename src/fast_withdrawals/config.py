"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup — a malformed owner or messenger address fails fast with a
clear error message instead of surfacing on the first greenlight.

Usage:
    from fast_withdrawals.config import get_settings
    settings = get_settings()
    print(settings.owner_address)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from eth_utils import is_address, to_checksum_address
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fast_withdrawals.domain.enums import KeyScheme


class Settings(BaseSettings):
    """Central configuration for the fast-withdrawal desk."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Database ---
    database_url: str = (
        "postgresql+asyncpg://fast_withdrawals:fast_withdrawals_dev"
        "@localhost:5432/fast_withdrawals"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Market Maker Identity ---
    # The owner is the only principal allowed to register tokens and greenlight.
    # The market maker address is the desk's own account on L1: inventories
    # approve it, and relayed withdrawals are credited to it.
    owner_address: str = "0x" + "0" * 39 + "1"
    market_maker_address: str = "0x" + "0" * 39 + "2"

    # --- L1 Chain ---
    l1_rpc_url: str = "http://localhost:8545"
    messenger_address: str = "0x" + "0" * 39 + "3"
    rpc_timeout_seconds: int = 30
    market_maker_private_key: str = ""

    # Use the in-memory token ledger and messenger instead of a live node.
    simulate_chain: bool = True

    # --- Ledger ---
    key_scheme: KeyScheme = KeyScheme.LEGACY

    @field_validator("owner_address", "market_maker_address", "messenger_address")
    @classmethod
    def _checksum(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"not a valid address: {value!r}")
        return to_checksum_address(value)

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
