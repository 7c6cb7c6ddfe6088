from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Load apps/monitor/.env and accept env keys in any case
    _env_file = Path(__file__).resolve().parent.parent / ".env"
    model_config = SettingsConfigDict(env_file=str(_env_file), extra="ignore", case_sensitive=False)

    app_name: str = "Environmental Monitor Hub"
    app_version: str = "0.1.0"
    debug: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:4200"])

    # Storage
    database_path: str = Field(
        default="data/envmonitor.sqlite",
        description="SQLite database path for readings, wildfires and source health.",
    )
    webcam_catalog_path: str | None = Field(
        default=None,
        description="Optional JSON file with the static webcam list. Built-in defaults are used when blank.",
    )

    # Upstream providers
    user_agent: str = Field(
        default="EnvMonitorHub/0.1.0 (ops@example.com)",
        description="User-Agent sent to upstream providers (weather.gov rejects anonymous clients).",
    )
    request_timeout: float = Field(default=10.0, ge=1.0, description="Timeout in seconds for provider HTTP calls")
    weather_gov_base_url: str = Field(default="https://api.weather.gov")
    open_meteo_base_url: str = Field(default="https://api.open-meteo.com/v1")
    marine_base_url: str = Field(
        default="https://api.tidesandcurrents.noaa.gov/api/prod/datagetter",
        description="NOAA CO-OPS data getter endpoint.",
    )
    air_quality_base_url: str = Field(default="https://www.airnowapi.org/aq")
    air_quality_api_key: str = Field(default="", description="AirNow API key.")
    air_quality_distance_miles: int = Field(default=25, ge=1)
    fire_feed_url: str = Field(
        default=(
            "https://services3.arcgis.com/T4QMspbfLg3qTGWY/arcgis/rest/services/"
            "Current_WildlandFire_Perimeters/FeatureServer/0/query"
        ),
        description="NIFC current wildland fire perimeters query endpoint.",
    )

    # Default targets (override with JSON lists in the environment)
    weather_stations: List[str] = Field(
        default_factory=lambda: ["KORD", "KLAX", "KJFK", "KDEN", "KIAH", "KSEA", "KMIA", "KATL"],
    )
    marine_stations: List[str] = Field(
        default_factory=lambda: [
            "8518750",
            "8443970",
            "8452660",
            "8531680",
            "8534720",
            "8551910",
            "8570283",
            "8574680",
            "8638610",
            "8651370",
        ],
    )

    # Scheduler
    scheduler_enabled: bool = Field(default=True, description="Start the polling scheduler on application startup.")
    scheduler_allow_overlap: bool = Field(
        default=True,
        description="Allow a new bulk job to start while the previous one for the same source is still running.",
    )
    weather_interval_seconds: float = Field(default=300.0, gt=0.0)
    meteo_interval_seconds: float = Field(default=300.0, gt=0.0)
    marine_interval_seconds: float = Field(default=600.0, gt=0.0)
    airquality_interval_seconds: float = Field(default=900.0, gt=0.0)
    fire_interval_seconds: float = Field(default=3600.0, gt=0.0)

    # Dashboard
    dashboard_cache_ttl: int = Field(
        default=60,
        ge=0,
        description="Seconds a dashboard snapshot is reused per window size. 0 disables caching.",
    )
    dashboard_branch_timeout: float = Field(
        default=30.0,
        ge=0.0,
        description="Per-branch timeout (seconds) for dashboard queries. 0 waits indefinitely.",
    )

    @field_validator("cors_origins", "weather_stations", "marine_stations", mode="before")
    @classmethod
    def normalize_list(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return json.loads(s)
            if s == "":
                return []
            return [p.strip() for p in s.split(",") if p.strip()]
        return v

settings = Settings()
