import logging
import os
from typing import Literal, Optional, Type

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # App Settings
    app_name: str = Field(default="Telegram Photo Relay", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Telegram Settings
    telegram_api_base_url: str = Field(
        default="https://api.telegram.org", description="Telegram Bot API base URL"
    )
    json_timeout: float = Field(
        default=10.0, description="Timeout in seconds for URL (JSON) submissions"
    )
    upload_timeout: float = Field(
        default=20.0, description="Timeout in seconds for file upload submissions"
    )

    # Upload Settings
    max_file_size_mb: int = Field(default=25, description="Maximum image size in MB")
    default_file_name: str = Field(
        default="chart.png", description="Filename used when the caller gives none"
    )
    default_mime_type: str = Field(
        default="image/png", description="MIME type used when the caller gives none"
    )

    # Server Settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    @field_validator("json_timeout", "upload_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_max_file_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Maximum file size must be positive")
        return v

    @field_validator("telegram_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def get_summary(self) -> dict:
        """Get a summary of configuration (excluding sensitive data)"""
        sensitive_fields = {"bot_token"}

        summary = {}
        for field_name, field_value in self.model_dump().items():
            if field_name in sensitive_fields:
                summary[field_name] = "***HIDDEN***" if field_value else "NOT SET"
            else:
                summary[field_name] = field_value

        return summary


class DevelopmentConfig(BaseConfig):
    """Development environment configuration"""

    model_config = SettingsConfigDict(
        env_file=".env.dev",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "DEBUG"


class ProductionConfig(BaseConfig):
    """Production environment configuration"""

    model_config = SettingsConfigDict(
        env_file=".env.prod",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    host: str = "127.0.0.1"

    @field_validator("telegram_api_base_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v.startswith("https://"):
            raise ValueError("Telegram API URL must use HTTPS in production")
        return v.rstrip("/")


class TestConfig(BaseConfig):
    """Test environment configuration"""

    model_config = SettingsConfigDict(
        env_file=".env.test",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "DEBUG"
    telegram_api_base_url: str = "https://telegram.test"
    max_file_size_mb: int = 1


class DestinationDefaults(BaseSettings):
    """
    Process-wide fallback destination (BOT_TOKEN / CHAT_ID).

    Built fresh for every request so environment changes are picked up
    without a restart. Never mutated after construction.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    bot_token: Optional[str] = Field(default=None, description="Default bot token")
    chat_id: Optional[str] = Field(default=None, description="Default chat ID")

    def get_summary(self) -> dict:
        return {
            "bot_token": "***HIDDEN***" if self.bot_token else "NOT SET",
            "chat_id": self.chat_id or "NOT SET",
        }


# Configuration Error Class
class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails"""

    pass


# Configuration mapping
CONFIG_CLASSES = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "test": TestConfig,
}


def load_config(
    environment: Optional[str] = None, config_class: Optional[Type[BaseConfig]] = None
) -> BaseConfig:
    """Load configuration based on environment or explicit config class."""

    if config_class:
        selected_config_class = config_class
        source = f"explicit class {config_class.__name__}"
    elif environment:
        selected_config_class = CONFIG_CLASSES.get(environment)
        if not selected_config_class:
            raise ConfigurationError(f"Unknown environment: {environment}")
        source = f"environment parameter '{environment}'"
    else:
        env_name = os.getenv("ENVIRONMENT", "development").lower()
        selected_config_class = CONFIG_CLASSES.get(env_name, DevelopmentConfig)
        source = f"ENVIRONMENT variable '{env_name}'"

    try:
        config = selected_config_class()
        logging.info(f"Configuration loaded successfully from {source}")
        return config

    except ValidationError as e:
        error_msg = f"Configuration validation failed when loading from {source}"
        logging.error(f"{error_msg}: {e}")
        raise ConfigurationError(f"{error_msg}. Details: {e}")

    except Exception as e:
        error_msg = f"Unexpected error loading configuration from {source}"
        logging.error(f"{error_msg}: {e}")
        raise ConfigurationError(f"{error_msg}: {e}")


def load_destination_defaults() -> DestinationDefaults:
    """Read BOT_TOKEN / CHAT_ID from the environment. Not cached."""
    try:
        return DestinationDefaults()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid destination defaults: {e}")


# Global configuration instance
_config: Optional[BaseConfig] = None


def get_config() -> BaseConfig:
    """Get the global configuration instance, loading it if necessary"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """Reset the global configuration (useful for testing)"""
    global _config
    _config = None
