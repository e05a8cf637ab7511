"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for SkyLift.

    Args loaded from .env file and environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Postgres
    db_host: str = "127.0.0.1"
    db_port: int = 5432
    db_name: str = "skylift_dev"
    db_user: str = "postgres"
    db_password: str = ""

    # Booking store backend: "memory" or "postgres"
    store_backend: str = "memory"

    # Pricing
    pricing_profile: str = "standard"
    surge_timezone: str = "Asia/Kolkata"

    # Trip simulator
    sim_tick_interval_seconds: float = Field(default=3.0, ge=0)
    sim_step_fraction: float = Field(default=0.1, gt=0, le=1)
    sim_eta_step_min: float = Field(default=0.5, ge=0)
    sim_arrival_epsilon_deg: float = Field(default=0.001, gt=0)

    # CORS
    cors_allowed_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    @property
    def database_url(self) -> str:
        """Build async Postgres connection URL."""
        return (
            f"postgresql+asyncpg://{self.db_user}"
            f":{self.db_password}"
            f"@{self.db_host}:{self.db_port}"
            f"/{self.db_name}"
        )


def get_settings() -> Settings:
    """Return a fresh Settings instance.

    Returns:
        Application settings loaded from env.
    """
    return Settings()
