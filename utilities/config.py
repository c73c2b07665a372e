"""
Configuration management using environment variables.
Handles all service settings with proper validation and defaults.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Configuration class for the Bookworm API.
    Uses pydantic BaseSettings for environment variable management.

    Built once at process start and handed to the services that need it.
    """

    # MongoDB Configuration
    mongo_uri: str = Field(default="mongodb://localhost:27017", description="MongoDB connection string")
    mongo_database: str = Field(default="bookworm", description="MongoDB database name")

    # Token Configuration
    jwt_secret: str = Field(default="change-me-jwt-secret", description="Token signing secret")
    jwt_algorithm: str = Field(default="HS256", description="Token signing algorithm")
    token_lifetime_days: int = Field(default=15, description="Token lifetime in days")

    # Password hashing
    bcrypt_rounds: int = Field(default=10, description="bcrypt cost factor")

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    debug: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Keep-alive ping
    api_url: Optional[str] = Field(default=None, description="URL pinged by the keep-alive job")
    keepalive_cron: str = Field(default="*/14 * * * *", description="Crontab for the keep-alive job")
    keepalive_timeout: float = Field(default=10.0)
    timezone: str = Field(default="UTC")

    # Image hosting (S3)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    aws_region: str = Field(default="us-east-1")
    aws_s3_bucket_name: str = Field(default="bookworm-images")
    image_base_url: Optional[str] = Field(default=None, description="Public base URL for hosted images")
    image_fetch_timeout: float = Field(default=30.0)
    image_max_bytes: int = Field(default=5 * 1024 * 1024, gt=0, description="Largest accepted image, in bytes")
    image_fetch_max_redirects: int = Field(default=3, ge=0, description="Redirects followed when fetching an image URL")

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('token_lifetime_days')
    @classmethod
    def validate_token_lifetime(cls, v):
        """Tokens must live at least one day."""
        if v < 1:
            raise ValueError('token_lifetime_days must be at least 1')
        return v

    @field_validator('bcrypt_rounds')
    @classmethod
    def validate_bcrypt_rounds(cls, v):
        """bcrypt accepts cost factors between 4 and 31."""
        if v < 4 or v > 31:
            raise ValueError('bcrypt_rounds must be between 4 and 31')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def keepalive_enabled(self) -> bool:
        return bool(self.api_url)
