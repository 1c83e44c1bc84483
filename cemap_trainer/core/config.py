"""
Application configuration management with environment-based settings.
"""
from typing import Annotated, List, Optional
from pydantic_settings import BaseSettings, NoDecode
from pydantic import Field, SecretStr, field_validator
from functools import lru_cache

class Settings(BaseSettings):
    """Main application settings."""

    # ============= Application Settings =============
    APP_NAME: str = "CeMAP Trainer"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "CeMAP mortgage exam trainer API"
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    API_PREFIX: str = "/api"
    DOCS_URL: Optional[str] = "/docs"

    # ============= Server Settings =============
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)
    RELOAD: bool = Field(default=False)

    # ============= Security Settings =============
    SECRET_KEY: SecretStr = Field(default="change-me-in-production-use-strong-key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ADMIN_EMAILS: Annotated[List[str], NoDecode] = []

    # CORS Settings
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:5000", "http://localhost:8000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    # ============= Database Settings =============
    DATABASE_URL: str = Field(default="sqlite:///./cemap_trainer.db")
    DATABASE_ECHO: bool = False

    # ============= Question Bank =============
    QUESTION_BANK_PATH: Optional[str] = None  # defaults to the packaged catalog
    RANDOM_SEED: Optional[int] = None

    # ============= Payment Settings =============
    STRIPE_SECRET_KEY: Optional[SecretStr] = None
    PAYMENT_CURRENCY: str = "gbp"
    PRICE_EXAM_PENCE: int = 99
    PRICE_SCENARIO_PENCE: int = 99
    PRICE_BUNDLE_PENCE: int = 149
    BUNDLE_VALIDITY_DAYS: int = 30

    # ============= Leaderboard =============
    LEADERBOARD_WINDOW_DAYS: int = 7

    # ============= Monitoring Settings =============
    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # ============= Logging Settings =============
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", "ADMIN_EMAILS", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @field_validator("ADMIN_EMAILS")
    @classmethod
    def lowercase_admin_emails(cls, v: List[str]) -> List[str]:
        return [email.lower() for email in v]

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT.lower() == "production"

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

# Export settings instance
settings = get_settings()
