"""
Pydantic models for API requests and responses.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.core.errors import ErrorKind


# Export all models
__all__ = [
    'BaseResponse',
    'SubmissionResponse',
    'ErrorResponse',
    'HealthStatus',
    'HealthResponse',
    'ConfigSummary',
    'DetailedHealthResponse',
    'SendPhotoRequest',
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseResponse(BaseModel):
    """
    Base response model with common fields for all API responses.
    Serialized with camelCase keys and without unset optional fields.
    """
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(description="Whether the request succeeded")
    timestamp: str = Field(
        default_factory=_now_iso,
        description="ISO timestamp when the response was generated",
        json_schema_extra={"example": "2024-01-15T14:30:00+00:00"}
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SubmissionResponse(BaseResponse):
    """Response returned after Telegram accepted the photo"""
    success: bool = Field(default=True, description="Always true for delivered photos")
    message_id: int = Field(alias="messageId", description="Telegram message ID")
    chat_id: Union[int, str] = Field(alias="chatId", description="Chat the photo was delivered to")


class ErrorResponse(BaseResponse):
    """Response model for error cases"""
    success: bool = Field(default=False, description="Always false for errors")
    error_kind: ErrorKind = Field(alias="errorKind", description="Machine-readable error kind")
    error_message: str = Field(alias="errorMessage", description="Human-readable error message")
    request_id: Optional[str] = Field(default=None, alias="requestId", description="Optional request ID for tracing")

    def __init__(self, **data):
        # Force success to always be False
        data['success'] = False
        super().__init__(**data)


# Health Check Models

class HealthStatus(str, Enum):
    """Health status enum for health check responses"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    def __str__(self) -> str:
        return self.value


class HealthResponse(BaseResponse):
    """Basic health check response with status and timestamp"""
    health_status: HealthStatus = Field(alias="healthStatus", description="Overall health status of the service")

    def __init__(self, **data):
        status = data.get('health_status', data.get('healthStatus'))
        data['success'] = status == HealthStatus.HEALTHY
        super().__init__(**data)


class ConfigSummary(BaseModel):
    """Safe configuration summary without sensitive data"""
    model_config = ConfigDict(populate_by_name=True)

    app_name: str = Field(alias="appName", description="Application name")
    debug: bool = Field(description="Debug mode status")
    log_level: str = Field(alias="logLevel", description="Current logging level")
    telegram_api_base_url: str = Field(alias="telegramApiBaseUrl", description="Telegram Bot API base URL")
    default_bot_token_configured: bool = Field(
        alias="defaultBotTokenConfigured", description="Whether BOT_TOKEN is set"
    )
    default_chat_id_configured: bool = Field(
        alias="defaultChatIdConfigured", description="Whether CHAT_ID is set"
    )
    max_file_size_mb: int = Field(alias="maxFileSizeMb", description="Maximum image size in MB")

    @classmethod
    def from_config(cls, config, defaults) -> 'ConfigSummary':
        """Create ConfigSummary from a configuration object and destination defaults"""
        return cls(
            app_name=config.app_name,
            debug=config.debug,
            log_level=config.log_level,
            telegram_api_base_url=config.telegram_api_base_url,
            default_bot_token_configured=bool(defaults.bot_token),
            default_chat_id_configured=bool(defaults.chat_id),
            max_file_size_mb=config.max_file_size_mb,
        )


class DetailedHealthResponse(HealthResponse):
    """Health check response with a configuration summary"""
    config: ConfigSummary = Field(description="Safe configuration summary")
    version: Optional[str] = Field(default=None, description="Application version")


# Photo Request Models

class SendPhotoRequest(BaseModel):
    """
    JSON body accepted by the URL/Base64 endpoint.

    Fields are untyped here; the normalizer checks each one in order
    (credentials, then image, then options).
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    bot_token: Optional[Any] = Field(default=None, alias="botToken")
    chat_id: Optional[Any] = Field(default=None, alias="chatId")
    photo_url: Optional[Any] = Field(default=None, alias="photoUrl")
    photo: Optional[Any] = Field(default=None, description="Alias of photoUrl")
    photo_base64: Optional[Any] = Field(default=None, alias="photoBase64")
    file_name: Optional[Any] = Field(default=None, alias="fileName")
    mime_type: Optional[Any] = Field(default=None, alias="mimeType")
    caption: Optional[Any] = Field(default=None)
    parse_mode: Optional[Any] = Field(default=None, alias="parseMode")
    thread_id: Optional[Any] = Field(default=None, alias="threadId")
