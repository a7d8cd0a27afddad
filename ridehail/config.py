"""Centralised application settings loaded from environment / .env file."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Entity store (in-memory SQLite unless pointed elsewhere)
    database_url: str = "sqlite+aiosqlite:///:memory:"
    database_echo: bool = False
    seed_demo_data: bool = True

    # Ride lifecycle
    initial_location_jitter: float = 0.02  # degrees around pickup
    delivery_geofence_km: float = 0.05  # 50 m

    # Payments
    payment_backend: str = "simulated"  # "simulated" | "disabled"
    payment_latency_seconds: float = 0.0

    # API
    rate_limit: str = "100/minute"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
