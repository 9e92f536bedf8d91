from pathlib import Path
from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

import os

# Load .env for local/dev environments only for values missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from FARMROUTE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FARMROUTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (json or console)")

    # Tuning Configuration
    auto_tune: bool = Field(default=True, description="Tune route radii before planning")
    tune_point_limit: int = Field(
        default=8000, description="Points handed to the tuner are subsampled to this many"
    )

    # Manual Route Defaults
    default_cluster_radius: float = Field(default=80.0, description="Dense classification radius")
    default_max_area_radius: float = Field(default=1200.0, description="Route area radius")
    default_max_step_distance: float = Field(default=350.0, description="Maximum step distance")
    default_max_waypoints: int = Field(default=20, description="Waypoint budget")
    default_waypoint_radius: float = Field(default=60.0, description="Waypoint marker radius")
    default_avoid_dense_travel_radius: float = Field(
        default=120.0, description="Clearance from dense points while travelling"
    )


# Instantiate singleton settings object
settings = Settings()
