"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator, field_validator
import pytz


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Database
    database_url: str = "sqlite+aiosqlite:///./data/spikebot.db"
    db_connect_attempts: int = 5
    db_connect_initial_delay: float = 2.0  # seconds, doubled after each failure
    
    # Telegram
    telegram_bot_token: str
    
    # Opinion.Trade API
    opinion_api_key: str
    opinion_api_base_url: str = "https://openapi.opinion.trade"
    api_timeout_seconds: float = 15.0
    
    # Monitoring cycle
    poll_interval_seconds: int = 60
    lookback_seconds: int = 60
    lookback_tolerance_seconds: int = 10
    price_retention_minutes: int = 5
    market_workers: int = 4
    
    # Subscription limits
    max_markets_per_user: int = 10
    
    # Chat sessions
    session_ttl_minutes: int = 30
    
    # Display
    display_timezone: str = "UTC"
    
    # Logging
    log_level: str = "INFO"
    
    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v
    
    @field_validator('poll_interval_seconds', 'lookback_seconds', 'market_workers', 'max_markets_per_user', 'db_connect_attempts')
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v
    
    @field_validator('display_timezone')
    @classmethod
    def validate_display_timezone(cls, v: str) -> str:
        """Validate that the display timezone is a known IANA zone."""
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Invalid timezone: {v}")
        return v
    
    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Validate configuration after all fields are set."""
        if not 0 <= self.lookback_tolerance_seconds < self.lookback_seconds:
            raise ValueError("lookback_tolerance_seconds must be between 0 and lookback_seconds")
        if self.price_retention_minutes * 60 <= self.lookback_seconds + self.lookback_tolerance_seconds:
            raise ValueError("price_retention_minutes must outlive the baseline lookup window")
        return self


# Global settings instance
settings = Settings()
