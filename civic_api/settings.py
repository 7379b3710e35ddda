"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "civic"
    postgres_password: str = "civic_dev_password"
    postgres_db: str = "civic"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    environment: str = "development"
    secret_key: str = "dev-secret-key-change-in-production"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Listing
    default_page_size: int = 20
    max_page_size: int = 100

    # Citizen accounts created on behalf of applicants
    temporary_password_length: int = 12

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    def validate_production_settings(self):
        """Validate settings for production environment."""
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if self.secret_key == "dev-secret-key-change-in-production":
                raise ValueError(
                    "SECRET_KEY must be set in production. "
                    "API key digests are keyed with it."
                )
            if not self.database_url and self.postgres_password == "civic_dev_password":
                raise ValueError(
                    "DATABASE_URL or POSTGRES_PASSWORD is required in production. "
                    "Do not use default credentials."
                )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
