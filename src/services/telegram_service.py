"""
Telegram service for delivering photos through the Bot API.

Builds exactly one sendPhoto call per submission: a JSON body when Telegram
should fetch the image from a URL, a multipart upload when we hold the
bytes. The upstream outcome is mapped to a TelegramSendResult or a
RelayError subclass; nothing is retried.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from src.core.config import BaseConfig
from src.core.errors import InternalError, NetworkError, UpstreamRejectedError
from src.core.logging import mask_token
from src.services.telegram_models import (
    BufferSource,
    PhotoSubmission,
    SendOptions,
    TelegramSendResult,
    UrlSource,
)

logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_ERROR = "Telegram API error"

# Human-readable overrides for well-known upstream statuses
STATUS_MESSAGES = {
    401: "Unauthorized: Invalid bot token",
    403: "Forbidden: Bot was blocked by user or kicked from chat",
    404: "Not Found: Chat not found",
}


def build_json_payload(chat_id, photo_url: str, options: SendOptions) -> Dict[str, Any]:
    """
    Build the JSON body for a URL submission.

    Absent options are left out entirely; Telegram rejects some explicit
    nulls. message_thread_id stays numeric.
    """
    payload: Dict[str, Any] = {"chat_id": chat_id, "photo": photo_url}
    if options.caption is not None:
        payload["caption"] = options.caption
    if options.parse_mode is not None:
        payload["parse_mode"] = options.parse_mode.value
    if options.thread_id is not None:
        payload["message_thread_id"] = options.thread_id
    return payload


def build_form_fields(chat_id, options: SendOptions) -> Dict[str, str]:
    """Build the non-file multipart fields for an upload. All values are strings."""
    fields = {"chat_id": str(chat_id)}
    if options.caption is not None:
        fields["caption"] = options.caption
    if options.parse_mode is not None:
        fields["parse_mode"] = options.parse_mode.value
    if options.thread_id is not None:
        fields["message_thread_id"] = str(options.thread_id)
    return fields


def describe_rejection(status_code: int, description: Any) -> str:
    """Map an upstream error status and description to the caller-facing message."""
    if description is not None and not isinstance(description, str):
        description = str(description)
    if status_code == 400:
        detail = description or DEFAULT_UPSTREAM_ERROR
        if detail.startswith("Bad Request"):
            return detail
        return f"Bad Request: {detail}"
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    return description or DEFAULT_UPSTREAM_ERROR


class TelegramService:
    """
    Service for calling the Telegram sendPhoto endpoint.

    A fresh httpx.AsyncClient is opened per call so handlers stay
    stateless. Tests inject an httpx transport to stand in for Telegram.
    """

    def __init__(
        self,
        api_base_url: str = "https://api.telegram.org",
        json_timeout: float = 10.0,
        upload_timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.json_timeout = json_timeout
        self.upload_timeout = upload_timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: BaseConfig, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "TelegramService":
        return cls(
            api_base_url=config.telegram_api_base_url,
            json_timeout=config.json_timeout,
            upload_timeout=config.upload_timeout,
            transport=transport,
        )

    def method_url(self, bot_token: str, method: str = "sendPhoto") -> str:
        return f"{self.api_base_url}/bot{bot_token}/{method}"

    async def send_photo(self, submission: PhotoSubmission) -> TelegramSendResult:
        """
        Send a photo to a Telegram chat.

        Args:
            submission: Normalized image source, destination and options

        Returns:
            TelegramSendResult: message_id and chat_id reported by Telegram

        Raises:
            UpstreamRejectedError: Telegram answered with an error
            NetworkError: Telegram could not be reached or timed out
            InternalError: Telegram answered with something unparseable
        """
        destination = submission.destination
        source = submission.source
        url = self.method_url(destination.bot_token)

        if isinstance(source, UrlSource):
            request_kwargs = {
                "json": build_json_payload(destination.chat_id, source.value, submission.options),
            }
            timeout = self.json_timeout
            mode = "url"
        elif isinstance(source, BufferSource):
            request_kwargs = {
                "data": build_form_fields(destination.chat_id, submission.options),
                "files": {"photo": (source.filename, source.data, source.mime_type)},
            }
            timeout = self.upload_timeout
            mode = f"upload ({len(source.data)} bytes)"
        else:
            raise InternalError()

        logger.info(
            f"Sending photo to chat {destination.chat_id} via {mode} | "
            f"Bot: {mask_token(destination.bot_token)}"
        )

        try:
            # httpx timeouts apply per phase; wait_for caps the whole call
            response = await asyncio.wait_for(self._post(url, timeout, request_kwargs), timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.error(f"Telegram API timed out after {timeout}s: {type(e).__name__}")
            raise NetworkError() from e
        except httpx.RequestError as e:
            # str(e) may include the request URL, which holds the token
            logger.error(f"Network error reaching Telegram API: {type(e).__name__}")
            raise NetworkError() from e

        return self._parse_response(response, destination.chat_id)

    async def _post(self, url: str, timeout: float, request_kwargs: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), transport=self._transport
        ) as client:
            return await client.post(url, **request_kwargs)

    def _parse_response(self, response: httpx.Response, fallback_chat_id) -> TelegramSendResult:
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if response.is_success:
                logger.error(f"Telegram returned a non-JSON success body (status {response.status_code})")
                raise InternalError()
            body = {}

        if response.is_success and body.get("ok", True):
            result = body.get("result") or {}
            message_id = result.get("message_id")
            if message_id is None:
                logger.error("Telegram response has no message_id")
                raise InternalError()
            chat = result.get("chat") or {}
            chat_id = chat.get("id", fallback_chat_id)
            logger.info(f"Photo sent successfully to chat {chat_id}, message_id: {message_id}")
            return TelegramSendResult(message_id=message_id, chat_id=chat_id)

        # 2xx with ok=false: Telegram misbehaved, report as bad gateway
        status_code = response.status_code if response.status_code >= 400 else 502
        description = body.get("description")
        message = describe_rejection(status_code, description)

        logger.warning(
            f"Telegram API rejected sendPhoto | Status: {status_code} | "
            f"Description: {description}"
        )
        raise UpstreamRejectedError(message, status_code=status_code, description=description)
