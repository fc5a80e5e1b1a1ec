# app/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- Feeds (TaM Montpellier) ---
    GTFS_URL: str = "https://data.montpellier3m.fr/TAM_MMM_GTFSRT/GTFS.zip"
    REALTIME_URL: str = "https://data.montpellier3m.fr/TAM_MMM_GTFSRT/VehiclePosition.pb"
    REALTIME_JSON_URL: str | None = None
    HTTP_TIMEOUT: float = 20.0

    # --- Target stop / route ---
    TARGET_STOP_ID: str = "264"
    TARGET_STOP_SEQUENCE: str = "1"
    ROUTE_ID: str = "4-13"
    ROUTE_NAME: str = "Vert-Bois → Université"
    LOCAL_TZ: str = "Europe/Paris"

    # --- Refresh cadence ---
    ENABLE_SCHEDULER: bool = True
    SCHEDULER_TZ: str = "Europe/Paris"
    STATIC_REFRESH_CRON: str = "0 4 * * *"
    REALTIME_POLL_SECONDS: int = 30

    # --- HTTP ---
    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


settings = Settings()
