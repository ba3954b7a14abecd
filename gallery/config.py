"""
Configuration management for the gallery API.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "Lounge Gallery API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Backend API for the photo gallery site and its admin panel"
    API_PREFIX: str = "/v1"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    PORT: int = 3001

    # CORS Configuration
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    # Empty value falls back to an in-memory SQLite database
    DATABASE_URL: str = ""
    DB_CREATE_ALL: bool = False

    # Cloudinary Configuration
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    # Optional override of the upload API base, e.g. a regional endpoint
    CLOUDINARY_UPLOAD_URL: str = ""

    # Storage upload retry policy
    STORAGE_MAX_ATTEMPTS: int = 3
    STORAGE_RETRY_BASE_DELAY: float = 1.0
    STORAGE_TIMEOUT_SECONDS: float = 60.0

    # Upload constraints
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024
    ENABLE_WEBP_DERIVATIVES: bool = True

    # Identity provider token verification
    # AUTH_JWT_KEY is the provider's public key (PEM) or shared secret
    AUTH_JWT_KEY: str = ""
    AUTH_JWT_ALGORITHMS: List[str] = ["RS256"]
    AUTH_JWT_ISSUER: str = ""
    AUTH_ADMIN_ROLE_CLAIM: str = ""

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_UPLOAD: str = "60/hour"
    RATE_LIMIT_DELETE: str = "120/hour"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


# Global settings instance
settings = Settings()
