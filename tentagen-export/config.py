"""
Configuration settings for TentaGen Export
"""
from pydantic_settings import BaseSettings
from pydantic import validator, Field
from typing import Optional
import logging

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    """Export service settings loaded from environment and .env"""

    # App Configuration
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Branding (Word export)
    BRAND_NAME: str = "TentaGen"
    BRAND_URL: str = "tentagen.vercel.app"
    BRAND_AUTHOR: str = "Parviz Mammadzada, MD, PhD"
    LOGO_URL: Optional[str] = Field(default=None, description="Logo embedded in Word exports; empty disables the fetch")
    LOGO_FETCH_TIMEOUT: float = 5.0

    # Export Configuration
    SHORT_TITLE_MAX_LENGTH: int = 60
    QTI_TOOL_NAME: str = "TentaGen"
    QTI_TOOL_VERSION: str = "2.0.0"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra environment variables

    @validator('LOG_LEVEL')
    def validate_log_level(cls, v):
        """Validate log level is a known logging level name"""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {v!r}")
        return level

    @validator('LOGO_FETCH_TIMEOUT')
    def validate_logo_timeout(cls, v):
        """Validate logo timeout is reasonable"""
        if v <= 0 or v > 30:
            raise ValueError("LOGO_FETCH_TIMEOUT must be between 0 and 30 seconds")
        return v

    @validator('SHORT_TITLE_MAX_LENGTH')
    def validate_title_length(cls, v):
        """Validate short title bound is reasonable"""
        if v < 10 or v > 200:
            raise ValueError("SHORT_TITLE_MAX_LENGTH must be between 10 and 200")
        return v

    def is_logo_configured(self) -> bool:
        """Check if a logo URL is configured"""
        return bool(self.LOGO_URL and self.LOGO_URL.strip())

    def __repr__(self):
        """String representation of settings"""
        return (
            f"Settings(\n"
            f"  BRAND_NAME='{self.BRAND_NAME}'\n"
            f"  LOGO_CONFIGURED={self.is_logo_configured()}\n"
            f"  SHORT_TITLE_MAX_LENGTH={self.SHORT_TITLE_MAX_LENGTH}\n"
            f"  DEBUG={self.DEBUG}\n"
            f")"
        )

def create_settings():
    """Create settings instance, falling back to defaults on a bad environment"""
    try:
        return Settings()
    except Exception as e:
        logger.warning(f"Configuration warning: {e}")
        # Ignore .env and environment overrides, keep the built-in defaults
        return Settings.construct()

settings = create_settings()
