from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "ParkB API"
    debug: bool = False
    environment: str = "production"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./parkb.db"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Capacity
    total_spots: int = 100
    reservation_threshold: float = 0.4

    # Booking policy
    grace_period_minutes: int = 15
    slot_minutes: int = 15
    standard_booking_hours: int = 4
    slot_display_window_hours: int = 1
    min_advance_hours: int = 24
    max_advance_days: int = 7

    # Spontaneous parking
    preferred_window_hours: int = 8
    min_spontaneous_hours: int = 2

    # Extensions
    min_extension_hours: int = 2
    max_extension_hours: int = 4
    max_fixed_extension_hours: int = 4
    extension_request_window_minutes: int = 60

    # Auto-cancellation
    scheduler_enabled: bool = True
    auto_cancel_interval_seconds: float = 60
    scheduler_shutdown_timeout_seconds: float = 5


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
