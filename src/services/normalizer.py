"""
Input normalization for the four inbound encodings.

Each ``normalize_*`` coroutine turns one transport encoding into a
PhotoSubmission (image source + destination + options) or raises a
RelayError. Validation order is the same everywhere once the transport has
been decoded: bot token, chat ID, image, then optional parameters.
"""

import base64
import binascii
import json
import logging
import re
from typing import Any, Optional, Tuple

from telegram.constants import ParseMode

from src.api.models import SendPhotoRequest
from src.core.config import BaseConfig, DestinationDefaults
from src.core.errors import (
    InvalidEncodingError,
    InvalidParameterError,
    MalformedInputError,
    MissingCredentialError,
    MissingImageError,
    PayloadTooLargeError,
)
from src.services.multipart import read_multipart_form
from src.services.telegram_models import (
    BufferSource,
    Destination,
    PhotoSubmission,
    SendOptions,
    UrlSource,
)
from src.services.transport import InboundRequest

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,;]+=[^,;]+)*;base64,", re.IGNORECASE)

# JSON bodies carry base64 images, so allow for the 4/3 expansion plus the other fields
JSON_OVERHEAD_BYTES = 64 * 1024


# ============================================================================
# FIELD CLEANING
# ============================================================================


def clean_text(value: Any) -> Optional[str]:
    """Return a stripped string, or None for missing and whitespace-only values."""
    if value is None or isinstance(value, bool):
        return None
    text = value if isinstance(value, str) else str(value)
    text = text.strip()
    return text or None


def clean_caption(value: Any) -> Optional[str]:
    """Blank captions are absent; non-blank captions keep their whitespace."""
    if value is None or isinstance(value, bool):
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


def clean_chat_id(value: Any):
    """Chat IDs may be numbers or strings (including @channel names)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return clean_text(value)


def parse_thread_id(value: Any) -> Optional[int]:
    """
    Parse a message thread ID.

    Absent or blank values mean "not supplied". Anything present must be an
    integer (or an integral number / numeric string).

    Raises:
        InvalidParameterError: value is present but not numeric
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidParameterError("threadId must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise InvalidParameterError("threadId must be a number")

    text = clean_text(value)
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        raise InvalidParameterError("threadId must be a number")


def parse_parse_mode(value: Any) -> Optional[ParseMode]:
    """Match a parse mode case-insensitively against Telegram's supported modes."""
    if value is not None and not isinstance(value, str):
        raise InvalidParameterError("parseMode must be one of HTML, Markdown, MarkdownV2")
    text = clean_text(value)
    if text is None:
        return None
    for mode in (ParseMode.HTML, ParseMode.MARKDOWN, ParseMode.MARKDOWN_V2):
        if mode.value.lower() == text.lower():
            return mode
    raise InvalidParameterError("parseMode must be one of HTML, Markdown, MarkdownV2")


def text_field(value: Any, name: str) -> Optional[str]:
    """
    Clean a field that must be a string when present.

    Raises:
        InvalidParameterError: value is present but not a string
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidParameterError(f"{name} must be a string")
    return clean_text(value)


def build_options(caption: Any = None, parse_mode: Any = None, thread_id: Any = None) -> SendOptions:
    return SendOptions(
        caption=clean_caption(caption),
        parse_mode=parse_parse_mode(parse_mode),
        thread_id=parse_thread_id(thread_id),
    )


def resolve_destination(bot_token: Any, chat_id: Any, defaults: DestinationDefaults) -> Destination:
    """
    Resolve the destination, request values taking precedence over defaults.

    Raises:
        MissingCredentialError: botToken (checked first) or chatId is missing
    """
    token = clean_text(bot_token) or clean_text(defaults.bot_token)
    if not token:
        raise MissingCredentialError("botToken")

    chat = clean_chat_id(chat_id)
    if chat is None:
        chat = clean_chat_id(defaults.chat_id)
    if chat is None:
        raise MissingCredentialError("chatId")

    return Destination(bot_token=token, chat_id=chat)


# ============================================================================
# IMAGE DECODING
# ============================================================================


def decode_base64_image(
    value: str,
    max_size: Optional[int] = None,
) -> Tuple[bytes, Optional[str]]:
    """
    Strictly decode a standard base64 image, optionally wrapped in a data URI.

    Returns:
        Tuple of the decoded bytes and the MIME type found in a data URI prefix

    Raises:
        InvalidEncodingError: the payload is not valid base64
        MissingImageError: the payload decodes to nothing
        PayloadTooLargeError: the decoded image exceeds max_size
    """
    text = value.strip()
    mime_type = None

    match = _DATA_URI_RE.match(text)
    if match:
        mime_type = match.group("mime")
        text = text[match.end():]

    # Line-wrapped base64 (RFC 2045) is still valid input
    text = "".join(text.split())

    try:
        data = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncodingError("photoBase64 is not valid base64") from e

    if not data:
        raise MissingImageError("photoBase64 decoded to an empty image")
    if max_size is not None and len(data) > max_size:
        raise PayloadTooLargeError(max_size)

    return data, mime_type


# ============================================================================
# TRANSPORT DECODERS
# ============================================================================


async def normalize_json_request(
    request: InboundRequest, defaults: DestinationDefaults, config: BaseConfig
) -> PhotoSubmission:
    """
    URL/Base64 variant: JSON body with either photoUrl (alias photo) or photoBase64.

    photoUrl wins when both are present; the base64 payload is then never decoded.
    """
    max_size = config.max_file_size_bytes
    raw = await request.read_body(max_size=(max_size * 4) // 3 + JSON_OVERHEAD_BYTES)

    try:
        data = json.loads(raw) if raw else None
    except ValueError as e:
        raise MalformedInputError("Invalid JSON in request body") from e
    if not isinstance(data, dict):
        raise MalformedInputError("Invalid JSON in request body")

    body = SendPhotoRequest.model_validate(data)

    destination = resolve_destination(body.bot_token, body.chat_id, defaults)

    photo_url = text_field(body.photo_url, "photoUrl") or text_field(body.photo, "photo")
    if photo_url:
        source = UrlSource(value=photo_url)
    elif text_field(body.photo_base64, "photoBase64"):
        image, data_uri_mime = decode_base64_image(body.photo_base64, max_size=max_size)
        source = BufferSource(
            data=image,
            filename=text_field(body.file_name, "fileName") or config.default_file_name,
            mime_type=text_field(body.mime_type, "mimeType") or data_uri_mime or config.default_mime_type,
        )
    else:
        raise MissingImageError("photoUrl or photoBase64 is required")

    options = build_options(body.caption, body.parse_mode, body.thread_id)
    return PhotoSubmission(source=source, destination=destination, options=options)


async def normalize_multipart_request(
    request: InboundRequest, defaults: DestinationDefaults, config: BaseConfig
) -> PhotoSubmission:
    """Multipart variant: form fields for credentials, file part ``photo`` for the image."""
    form = await read_multipart_form(
        request.content_type,
        request.iter_body(),
        file_field="photo",
        max_file_size=config.max_file_size_bytes,
    )
    fields = form.fields

    destination = resolve_destination(fields.get("botToken"), fields.get("chatId"), defaults)

    if form.file is None or not form.file.data:
        raise MissingImageError("photo file is required")

    source = BufferSource(
        data=form.file.data,
        filename=clean_text(form.file.filename) or config.default_file_name,
        mime_type=clean_text(form.file.content_type) or config.default_mime_type,
    )
    options = build_options(fields.get("caption"), fields.get("parseMode"), fields.get("threadId"))
    return PhotoSubmission(source=source, destination=destination, options=options)


async def _read_raw_image(request: InboundRequest, config: BaseConfig) -> BufferSource:
    data = await request.read_body(max_size=config.max_file_size_bytes)
    if not data:
        raise MissingImageError("Empty file body")
    return BufferSource(
        data=data,
        filename=config.default_file_name,
        mime_type=config.default_mime_type,
    )


async def normalize_binary_request(
    request: InboundRequest, defaults: DestinationDefaults, config: BaseConfig
) -> PhotoSubmission:
    """Raw simple variant: the whole body is the image, credentials from the query."""
    query = request.query
    destination = resolve_destination(query.get("botToken"), query.get("chatId"), defaults)
    source = await _read_raw_image(request, config)
    return PhotoSubmission(source=source, destination=destination)


async def normalize_binary_extended_request(
    request: InboundRequest, defaults: DestinationDefaults, config: BaseConfig
) -> PhotoSubmission:
    """Raw extended variant: as the simple one, plus threadId and caption query parameters."""
    query = request.query
    destination = resolve_destination(query.get("botToken"), query.get("chatId"), defaults)
    source = await _read_raw_image(request, config)
    options = SendOptions(
        caption=clean_caption(query.get("caption")),
        thread_id=parse_thread_id(query.get("threadId")),
    )
    return PhotoSubmission(source=source, destination=destination, options=options)
