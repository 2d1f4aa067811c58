"""Application configuration management using Pydantic's BaseSettings."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Defines all configuration settings for the API, loaded from .env file."""

    # API Keys
    gemini_api_key: Optional[str] = None

    # Model settings
    gemini_model: str = "gemini-2.0-flash"
    system_prompt: str = (
        "You are a helpful assistant. When the user asks about the weather, "
        "use the get_weather tool and answer from its result."
    )
    max_tool_iterations: int = 5

    # App settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    cors_allow_origins: str = "*"

    # Open-Meteo settings
    geocoding_base_url: str = "https://geocoding-api.open-meteo.com/v1"
    forecast_base_url: str = "https://api.open-meteo.com/v1"

    # DEV ONLY: skip certificate checks on the Open-Meteo client
    insecure_skip_tls_verify: bool = False

    # Feature flags
    enable_weather_tool: bool = True

    class Config:
        """Pydantic model configuration."""

        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def verify_tls(self) -> bool:
        """Certificate verification can only be relaxed outside production."""
        if self.is_production:
            return True
        return not self.insecure_skip_tls_verify

    @property
    def allowed_origins(self) -> List[str]:
        origins = [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]
        return origins or ["*"]


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
