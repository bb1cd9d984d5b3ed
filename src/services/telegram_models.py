"""
Data models for photo submissions and their results.

Everything here lives for a single request: built from request data plus
configuration, used once to build the outbound Telegram call, then dropped.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from telegram.constants import ParseMode


class UrlSource(BaseModel):
    """Image Telegram should fetch itself from a remote URL"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["url"] = "url"
    value: str = Field(..., min_length=1, description="Remote image URL")


class BufferSource(BaseModel):
    """Image bytes uploaded to Telegram as a multipart file part"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["buffer"] = "buffer"
    data: bytes = Field(..., description="Raw image bytes")
    filename: str = Field(..., min_length=1, description="Filename sent with the file part")
    mime_type: str = Field(..., min_length=1, description="Content type of the file part")

    @field_validator("data")
    @classmethod
    def validate_not_empty(cls, v: bytes) -> bytes:
        if len(v) == 0:
            raise ValueError("Image buffer must not be empty")
        return v

    def __repr__(self) -> str:
        return (
            f"BufferSource(filename={self.filename!r}, mime_type={self.mime_type!r}, "
            f"size={len(self.data)})"
        )


ImageSource = Annotated[Union[UrlSource, BufferSource], Field(discriminator="kind")]


class Destination(BaseModel):
    """Bot and chat the photo is delivered to"""

    model_config = ConfigDict(frozen=True)

    bot_token: str = Field(..., min_length=1, description="Telegram bot token")
    chat_id: Union[int, str] = Field(..., description="Target chat ID or @channel username")

    def __repr__(self) -> str:
        # Keep the token out of reprs, they end up in logs
        return f"Destination(chat_id={self.chat_id!r})"


class SendOptions(BaseModel):
    """Optional sendPhoto parameters. None means not supplied."""

    model_config = ConfigDict(frozen=True)

    caption: Optional[str] = None
    parse_mode: Optional[ParseMode] = None
    thread_id: Optional[int] = None


class PhotoSubmission(BaseModel):
    """A fully normalized request, ready to be sent upstream"""

    model_config = ConfigDict(frozen=True)

    source: ImageSource
    destination: Destination
    options: SendOptions = Field(default_factory=SendOptions)


class TelegramSendResult(BaseModel):
    """
    Result of a successful sendPhoto call.

    Attributes:
        message_id: ID of the message Telegram created
        chat_id: Chat the message landed in, as reported by Telegram
    """

    message_id: int = Field(..., description="Telegram message ID")
    chat_id: Union[int, str] = Field(..., description="Telegram chat ID")
