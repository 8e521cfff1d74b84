"""Service settings, read from the environment and ``.env``."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """venService reservation settings.

    Every field maps to an upper-case environment variable of the same name,
    e.g. ``SEAT_HOLD_MINUTES=10``.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "venService Reservations"
    app_version: str = "2.0.0"
    debug: bool = False
    api_prefix: str = "/api/v1"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Draft persistence
    draft_storage_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    draft_storage_key_prefix: str = "venservice:booking_draft"
    draft_ttl_seconds: int = 60 * 60  # survives a page reload, not a day

    # Route/schedule catalog
    catalog_backend: Literal["memory", "http"] = "memory"
    catalog_api_url: str = "http://localhost:9000/api"

    # Submission gateway
    submission_gateway: Literal["mock", "http"] = "mock"
    booking_api_url: str = "http://localhost:9000/api/bookings"
    gateway_timeout_seconds: float = 15.0
    mock_gateway_delay_seconds: float = 1.2

    # Reservations
    confirmation_prefix: str = "VEN"
    currency: str = "PKR"
    fee_policy: Literal["card_only", "all_methods"] = "card_only"
    seat_hold_minutes: int = 5
    hold_sweep_interval_seconds: int = 30
    session_idle_minutes: int = 60


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
