"""Configuration management for the phone account service."""

from datetime import datetime, timezone
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
    port: int = 8000
    host: str = "0.0.0.0"

    # Supabase configuration
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = "local-anon-key"
    accounts_table: str = "accounts"

    # Twilio SMS configuration
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    twilio_api_base_url: str = "https://api.twilio.com/2010-04-01"
    sms_country_code: str = "+1"
    sms_timeout_seconds: float = 10.0
    login_rate_limit_per_minute: int = 10

    # Session and verification settings
    session_timeout_minutes: int = 720
    verification_code_length: int = 6
    verification_code_charset: str = "0123456789"
    verification_max_attempts: int = 5
    verification_input_timeout_seconds: float = 300.0
    verification_code_ttl_minutes: int = 10

    # Far-past default so a new account always needs verification
    sentinel_last_login: datetime = datetime(2000, 11, 24, 1, 1, 1, tzinfo=timezone.utc)

    # Observability
    otlp_endpoint: Optional[str] = None
    enable_console_export: bool = False

    # Logging configuration
    log_level: str = "INFO"

    @field_validator('supabase_url')
    @classmethod
    def validate_supabase_url(cls, v):
        if not v:
            raise ValueError('SUPABASE_URL environment variable is required')
        return v

    @field_validator('supabase_anon_key')
    @classmethod
    def validate_supabase_anon_key(cls, v):
        if not v:
            raise ValueError('SUPABASE_ANON_KEY environment variable is required')
        return v

    @field_validator(
        'session_timeout_minutes',
        'verification_code_length',
        'verification_max_attempts',
        'verification_code_ttl_minutes',
        'login_rate_limit_per_minute',
    )
    @classmethod
    def validate_positive_int(cls, v, info):
        if v <= 0:
            raise ValueError(f'{info.field_name.upper()} must be greater than 0')
        return v

    @field_validator('verification_input_timeout_seconds', 'sms_timeout_seconds')
    @classmethod
    def validate_positive_timeout(cls, v, info):
        if v <= 0:
            raise ValueError(f'{info.field_name.upper()} must be greater than 0')
        return v

    @field_validator('verification_code_charset')
    @classmethod
    def validate_code_charset(cls, v):
        if not v or any(c.isspace() for c in v):
            raise ValueError('VERIFICATION_CODE_CHARSET must be non-empty and contain no whitespace')
        return v

    @field_validator('sentinel_last_login')
    @classmethod
    def validate_sentinel_last_login(cls, v):
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v


# Global settings instance
settings = Settings()
