"""Dashboard client settings, read from the environment."""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class DashboardSettings(BaseSettings):
    """Where the API lives and where the bearer token is kept between runs."""

    model_config = SettingsConfigDict(extra="ignore")

    ADMIN_API_URL: str = "http://localhost:4001"
    ADMIN_DASHBOARD_TOKEN_FILE: Path = Path.home() / ".config" / "admin-dashboard" / "token"
    ADMIN_DASHBOARD_TIMEOUT: float = 10.0


settings = DashboardSettings()
