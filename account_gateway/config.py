"""Configuration management for the account gateway."""

from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Server configuration
    port: int = 8081
    host: str = "0.0.0.0"

    # Supabase configuration
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Outbound HTTP timeouts (seconds)
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 10.0

    # Legal document versions recorded with each consent
    legal_terms_version: str = "v1"
    legal_privacy_version: str = "v1"

    # Logging configuration
    log_level: str = "INFO"

    # Observability
    observability_enabled: bool = True
    otlp_endpoint: Optional[str] = None
    otel_console_export: bool = False

    @field_validator('supabase_url')
    @classmethod
    def validate_supabase_url(cls, v):
        return v.strip().rstrip('/')

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError('LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL')
        return level

    @field_validator('http_connect_timeout', 'http_read_timeout')
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError('HTTP timeouts must be positive')
        return v


# Global settings instance
settings = Settings()
