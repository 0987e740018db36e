"""
aceops/core/config.py

Purpose: Application configuration

- Loads environment variables (.env supported)
- Centralizes config values (DB URI, JWT secret, Whitebooks credentials)
- Seller identity printed on every e-invoice
- Validates configuration on startup
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="aceops",
        description="MongoDB database name"
    )

    # Application
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(default="/api", description="API route prefix")
    CORS_ORIGINS: list = Field(default=["*"], description="Allowed CORS origins")
    FRONTEND_URL: str = Field(
        default="http://localhost:3000",
        description="Base URL used in e-mail verification links"
    )

    # Security
    JWT_SECRET: str = Field(
        default="change-me-in-production",
        description="Secret used to sign access tokens"
    )
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = Field(
        default=60 * 24 * 365,
        description="Access token lifetime"
    )
    VERIFICATION_TOKEN_MINUTES: int = Field(
        default=60 * 24,
        description="E-mail verification token lifetime"
    )

    # Whitebooks GST e-invoice API
    WHITEBOOKS_API_URL: str = Field(
        default="https://apisandbox.whitebooks.in",
        description="Whitebooks API base URL"
    )
    WHITEBOOKS_EMAIL: Optional[str] = None
    WHITEBOOKS_IP_ADDRESS: str = "127.0.0.1"
    WHITEBOOKS_CLIENT_ID: Optional[str] = None
    WHITEBOOKS_CLIENT_SECRET: Optional[str] = None
    WHITEBOOKS_USERNAME: Optional[str] = None
    WHITEBOOKS_PASSWORD: Optional[str] = None
    WHITEBOOKS_GSTIN: Optional[str] = None
    WHITEBOOKS_TIMEOUT: int = Field(
        default=30,
        description="Whitebooks request timeout in seconds"
    )

    # Seller (supplier) identity. The seller GSTIN is WHITEBOOKS_GSTIN.
    SELLER_LEGAL_NAME: str = "ACE PRINT PACK"
    SELLER_TRADE_NAME: str = "ACE PRINT PACK"
    SELLER_ADDRESS1: str = "R.R.CHAMBERS, NO. 2, 2ND FLOOR"
    SELLER_ADDRESS2: str = "11TH MAIN"
    SELLER_LOCATION: str = "VASANTHNAGAR, BENGALURU"
    SELLER_PINCODE: int = 560052
    SELLER_STATE_CODE: str = "29"
    SELLER_PHONE: str = "9886672192"
    SELLER_EMAIL: str = "neeraj@aceprintpack.com"

    # File storage
    UPLOAD_DIR: str = Field(default="uploads", description="Directory for uploaded files")
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    MAX_SHEET_BYTES: int = 5 * 1024 * 1024

    @validator("JWT_SECRET")
    def validate_jwt_secret(cls, v, values):
        """Ensure the signing secret is changed in production."""
        if values.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("JWT_SECRET must be changed in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.WHITEBOOKS_API_URL:
        errors.append("WHITEBOOKS_API_URL is required")

    if settings.is_production:
        for name in (
            "WHITEBOOKS_EMAIL",
            "WHITEBOOKS_CLIENT_ID",
            "WHITEBOOKS_CLIENT_SECRET",
            "WHITEBOOKS_USERNAME",
            "WHITEBOOKS_PASSWORD",
            "WHITEBOOKS_GSTIN",
        ):
            if not getattr(settings, name):
                errors.append(f"{name} is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
