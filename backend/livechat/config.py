"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Live Chat Relay"
    environment: str = "development"
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 4000

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "livechat"
    conversations_collection: str = "livechat"

    # Conversation index
    inactivity_threshold_seconds: int = 60 * 60
    sweep_interval_seconds: int = 5 * 60
    preload_conversations: bool = False
    preload_limit: int = 100

    # CORS
    frontend_url: str = "http://localhost:3000"
    cors_allow_all: bool = True

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def cors_origins(self) -> list[str]:
        if self.cors_allow_all:
            return ["*"]
        return [self.frontend_url, "http://localhost:3000"]


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
