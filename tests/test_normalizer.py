"""
Tests for input normalization across the four inbound encodings.
"""

import base64
import json

import pytest
from telegram.constants import ParseMode

from src.core.config import DestinationDefaults
from src.core.errors import (
    ErrorKind,
    InvalidEncodingError,
    InvalidParameterError,
    MalformedInputError,
    MissingCredentialError,
    MissingImageError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
)
from src.services.normalizer import (
    build_options,
    clean_caption,
    decode_base64_image,
    normalize_binary_extended_request,
    normalize_binary_request,
    normalize_json_request,
    normalize_multipart_request,
    parse_parse_mode,
    parse_thread_id,
    resolve_destination,
)
from src.services.telegram_models import BufferSource, UrlSource
from src.services.transport import InboundRequest


def json_request(payload) -> InboundRequest:
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return InboundRequest("POST", headers={"Content-Type": "application/json"}, body=body)


async def chunked(data: bytes, size: int = 7):
    for i in range(0, len(data), size):
        yield data[i:i + size]


class TestFieldParsing:

    @pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
    def test_blank_thread_id_is_absent(self, value):
        assert parse_thread_id(value) is None

    @pytest.mark.parametrize("value,expected", [(7, 7), ("7", 7), (" 12 ", 12), (3.0, 3), ("-5", -5)])
    def test_numeric_thread_id(self, value, expected):
        assert parse_thread_id(value) == expected

    @pytest.mark.parametrize("value", ["abc", "1.5", 2.5, True, "12abc"])
    def test_non_numeric_thread_id_rejected(self, value):
        with pytest.raises(InvalidParameterError) as exc_info:
            parse_thread_id(value)
        assert exc_info.value.message == "threadId must be a number"
        assert exc_info.value.kind == ErrorKind.INVALID_PARAMETER

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_caption_is_absent(self, value):
        assert clean_caption(value) is None

    def test_caption_keeps_inner_whitespace(self):
        assert clean_caption("  Daily chart\n") == "  Daily chart\n"

    @pytest.mark.parametrize("value,expected", [
        ("HTML", ParseMode.HTML),
        ("html", ParseMode.HTML),
        ("Markdown", ParseMode.MARKDOWN),
        ("markdownv2", ParseMode.MARKDOWN_V2),
        ("  ", None),
        (None, None),
    ])
    def test_parse_mode(self, value, expected):
        assert parse_parse_mode(value) == expected

    def test_unknown_parse_mode_rejected(self):
        with pytest.raises(InvalidParameterError):
            parse_parse_mode("BBCode")

    def test_build_options_all_blank(self):
        options = build_options(caption=" ", parse_mode="", thread_id="  ")
        assert options.caption is None
        assert options.parse_mode is None
        assert options.thread_id is None


class TestResolveDestination:

    def test_request_values_win_over_defaults(self):
        defaults = DestinationDefaults(bot_token="env-token", chat_id="999")
        destination = resolve_destination("req-token", "123", defaults)
        assert destination.bot_token == "req-token"
        assert destination.chat_id == "123"

    def test_falls_back_to_defaults(self):
        defaults = DestinationDefaults(bot_token="env-token", chat_id="999")
        destination = resolve_destination(None, "  ", defaults)
        assert destination.bot_token == "env-token"
        assert destination.chat_id == "999"

    def test_numeric_chat_id_kept_as_number(self, no_defaults):
        destination = resolve_destination("T", -100123, no_defaults)
        assert destination.chat_id == -100123

    def test_missing_token_checked_before_chat_id(self, no_defaults):
        with pytest.raises(MissingCredentialError) as exc_info:
            resolve_destination(None, None, no_defaults)
        assert exc_info.value.field == "botToken"
        assert exc_info.value.message == "botToken is required"

    def test_missing_chat_id(self, no_defaults):
        with pytest.raises(MissingCredentialError) as exc_info:
            resolve_destination("T", "", no_defaults)
        assert exc_info.value.field == "chatId"

    def test_token_never_in_repr(self, no_defaults):
        destination = resolve_destination("123456:very-secret", "1", no_defaults)
        assert "very-secret" not in repr(destination)


class TestBase64Decoding:

    def test_plain_base64(self, png_bytes):
        data, mime = decode_base64_image(base64.b64encode(png_bytes).decode())
        assert data == png_bytes
        assert mime is None

    def test_data_uri(self, png_bytes):
        encoded = "data:image/jpeg;base64," + base64.b64encode(png_bytes).decode()
        data, mime = decode_base64_image(encoded)
        assert data == png_bytes
        assert mime == "image/jpeg"

    def test_line_wrapped_base64(self, png_bytes):
        encoded = base64.encodebytes(png_bytes).decode()
        assert "\n" in encoded
        data, _ = decode_base64_image(encoded)
        assert data == png_bytes

    @pytest.mark.parametrize("value", ["not base64!!", "abc", "@@@@"])
    def test_invalid_base64_rejected(self, value):
        with pytest.raises(InvalidEncodingError):
            decode_base64_image(value)

    def test_too_large(self, png_bytes):
        with pytest.raises(PayloadTooLargeError):
            decode_base64_image(base64.b64encode(png_bytes).decode(), max_size=10)


class TestJsonNormalizer:

    @pytest.mark.asyncio
    async def test_url_source(self, no_defaults, test_config):
        request = json_request({"botToken": "T", "chatId": "123", "photoUrl": "https://x/y.png"})
        submission = await normalize_json_request(request, no_defaults, test_config)

        assert submission.source == UrlSource(value="https://x/y.png")
        assert submission.destination.chat_id == "123"
        assert submission.options.caption is None

    @pytest.mark.asyncio
    async def test_photo_alias(self, no_defaults, test_config):
        request = json_request({"botToken": "T", "chatId": "1", "photo": "https://x/alias.png"})
        submission = await normalize_json_request(request, no_defaults, test_config)
        assert submission.source.value == "https://x/alias.png"

    @pytest.mark.asyncio
    async def test_url_wins_over_base64(self, no_defaults, test_config):
        request = json_request({
            "botToken": "T",
            "chatId": "1",
            "photoUrl": "https://x/y.png",
            "photoBase64": "this is not even valid base64",
        })
        submission = await normalize_json_request(request, no_defaults, test_config)
        assert isinstance(submission.source, UrlSource)

    @pytest.mark.asyncio
    async def test_base64_source_uses_given_name_and_type(self, no_defaults, test_config, png_bytes):
        request = json_request({
            "botToken": "T",
            "chatId": "1",
            "photoBase64": base64.b64encode(png_bytes).decode(),
            "fileName": "report.jpg",
            "mimeType": "image/jpeg",
            "caption": "Weekly",
            "parseMode": "HTML",
            "threadId": 5,
        })
        submission = await normalize_json_request(request, no_defaults, test_config)

        assert isinstance(submission.source, BufferSource)
        assert submission.source.data == png_bytes
        assert submission.source.filename == "report.jpg"
        assert submission.source.mime_type == "image/jpeg"
        assert submission.options.caption == "Weekly"
        assert submission.options.parse_mode == ParseMode.HTML
        assert submission.options.thread_id == 5

    @pytest.mark.asyncio
    async def test_base64_source_defaults(self, no_defaults, test_config, png_bytes):
        request = json_request({"botToken": "T", "chatId": "1", "photoBase64": base64.b64encode(png_bytes).decode()})
        submission = await normalize_json_request(request, no_defaults, test_config)
        assert submission.source.filename == "chart.png"
        assert submission.source.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_invalid_json(self, no_defaults, test_config):
        with pytest.raises(MalformedInputError) as exc_info:
            await normalize_json_request(json_request(b"{not json"), no_defaults, test_config)
        assert exc_info.value.message == "Invalid JSON in request body"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"", b"[1, 2]", b'"text"'])
    async def test_non_object_json(self, no_defaults, test_config, body):
        with pytest.raises(MalformedInputError):
            await normalize_json_request(json_request(body), no_defaults, test_config)

    @pytest.mark.asyncio
    async def test_missing_image(self, no_defaults, test_config):
        request = json_request({"botToken": "T", "chatId": "1", "photoUrl": "  "})
        with pytest.raises(MissingImageError):
            await normalize_json_request(request, no_defaults, test_config)

    @pytest.mark.asyncio
    async def test_credentials_checked_before_image(self, no_defaults, test_config):
        request = json_request({"chatId": "1"})
        with pytest.raises(MissingCredentialError) as exc_info:
            await normalize_json_request(request, no_defaults, test_config)
        assert exc_info.value.field == "botToken"

    @pytest.mark.asyncio
    async def test_empty_base64_is_missing_image(self, no_defaults, test_config):
        request = json_request({"botToken": "T", "chatId": "1", "photoBase64": "data:image/png;base64,"})
        with pytest.raises(MissingImageError):
            await normalize_json_request(request, no_defaults, test_config)

    @pytest.mark.asyncio
    async def test_wrong_field_type(self, no_defaults, test_config):
        request = json_request({"botToken": "T", "chatId": "1", "photoUrl": {"href": "x"}})
        with pytest.raises(InvalidParameterError) as exc_info:
            await normalize_json_request(request, no_defaults, test_config)
        assert "photoUrl" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload,field", [
        ({"chatId": "1", "photoUrl": {"href": "x"}}, "botToken"),
        ({"chatId": "1", "photoBase64": 12345}, "botToken"),
        ({"botToken": "T", "photoUrl": ["x"], "fileName": 3}, "chatId"),
    ])
    async def test_field_types_checked_after_credentials(self, no_defaults, test_config, payload, field):
        request = json_request(payload)
        with pytest.raises(MissingCredentialError) as exc_info:
            await normalize_json_request(request, no_defaults, test_config)
        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_wrong_image_type_reported_before_options(self, no_defaults, test_config):
        request = json_request({"botToken": "T", "chatId": "1", "photoBase64": 7, "threadId": "abc"})
        with pytest.raises(InvalidParameterError) as exc_info:
            await normalize_json_request(request, no_defaults, test_config)
        assert exc_info.value.message == "photoBase64 must be a string"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parse_mode", [5, True, {"mode": "HTML"}])
    async def test_non_string_parse_mode(self, no_defaults, test_config, parse_mode):
        request = json_request(
            {"botToken": "T", "chatId": "1", "photoUrl": "https://x/y.png", "parseMode": parse_mode}
        )
        with pytest.raises(InvalidParameterError) as exc_info:
            await normalize_json_request(request, no_defaults, test_config)
        assert exc_info.value.message == "parseMode must be one of HTML, Markdown, MarkdownV2"


class TestMultipartNormalizer:

    @pytest.mark.asyncio
    async def test_fields_and_photo(self, no_defaults, test_config, multipart_body, png_bytes):
        body, content_type = multipart_body(
            fields={"botToken": "T", "chatId": "77", "caption": "From form"},
            files={"photo": ("graph.jpg", png_bytes, "image/jpeg")},
        )
        request = InboundRequest("POST", headers={"Content-Type": content_type}, stream=chunked(body))
        submission = await normalize_multipart_request(request, no_defaults, test_config)

        assert submission.destination.bot_token == "T"
        assert submission.destination.chat_id == "77"
        assert submission.source.data == png_bytes
        assert submission.source.filename == "graph.jpg"
        assert submission.source.mime_type == "image/jpeg"
        assert submission.options.caption == "From form"

    @pytest.mark.asyncio
    async def test_wrong_content_type(self, no_defaults, test_config):
        request = InboundRequest("POST", headers={"Content-Type": "application/json"}, body=b"{}")
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            await normalize_multipart_request(request, no_defaults, test_config)
        assert exc_info.value.status_code == 415

    @pytest.mark.asyncio
    async def test_missing_photo_part(self, no_defaults, test_config, multipart_body):
        body, content_type = multipart_body(fields={"botToken": "T", "chatId": "1"})
        request = InboundRequest("POST", headers={"Content-Type": content_type}, body=body)
        with pytest.raises(MissingImageError):
            await normalize_multipart_request(request, no_defaults, test_config)

    @pytest.mark.asyncio
    async def test_empty_photo_part(self, no_defaults, test_config, multipart_body):
        body, content_type = multipart_body(
            fields={"botToken": "T", "chatId": "1"},
            files={"photo": ("empty.png", b"", "image/png")},
        )
        request = InboundRequest("POST", headers={"Content-Type": content_type}, body=body)
        with pytest.raises(MissingImageError):
            await normalize_multipart_request(request, no_defaults, test_config)

    @pytest.mark.asyncio
    async def test_credentials_from_defaults(self, test_config, multipart_body, png_bytes):
        defaults = DestinationDefaults(bot_token="env-token", chat_id="555")
        body, content_type = multipart_body(files={"photo": ("a.png", png_bytes, "image/png")})
        request = InboundRequest("POST", headers={"Content-Type": content_type}, body=body)
        submission = await normalize_multipart_request(request, defaults, test_config)

        assert submission.destination.bot_token == "env-token"
        assert submission.destination.chat_id == "555"


class TestBinaryNormalizers:

    @pytest.mark.asyncio
    async def test_simple(self, no_defaults, test_config, png_bytes):
        request = InboundRequest("POST", query={"botToken": "T", "chatId": "1"}, stream=chunked(png_bytes, 100))
        submission = await normalize_binary_request(request, no_defaults, test_config)

        assert submission.source.data == png_bytes
        assert submission.source.filename == "chart.png"
        assert submission.source.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_credentials_only_from_query(self, no_defaults, test_config, png_bytes):
        request = InboundRequest("POST", headers={"botToken": "T", "chatId": "1"}, body=png_bytes)
        with pytest.raises(MissingCredentialError):
            await normalize_binary_request(request, no_defaults, test_config)

    @pytest.mark.asyncio
    async def test_empty_body(self, no_defaults, test_config):
        request = InboundRequest("POST", query={"botToken": "T", "chatId": "1"}, body=b"")
        with pytest.raises(MissingImageError) as exc_info:
            await normalize_binary_request(request, no_defaults, test_config)
        assert exc_info.value.message == "Empty file body"

    @pytest.mark.asyncio
    async def test_base64_wrapped_body(self, no_defaults, test_config, png_bytes):
        request = InboundRequest(
            "POST",
            query={"botToken": "T", "chatId": "1"},
            body=base64.b64encode(png_bytes),
            is_base64_encoded=True,
        )
        submission = await normalize_binary_request(request, no_defaults, test_config)
        assert submission.source.data == png_bytes

    @pytest.mark.asyncio
    async def test_body_over_cap(self, no_defaults, test_config):
        oversized = b"x" * (test_config.max_file_size_bytes + 1)
        request = InboundRequest("POST", query={"botToken": "T", "chatId": "1"}, stream=chunked(oversized, 64 * 1024))
        with pytest.raises(PayloadTooLargeError) as exc_info:
            await normalize_binary_request(request, no_defaults, test_config)
        assert exc_info.value.status_code == 413

    @pytest.mark.asyncio
    async def test_extended_options(self, no_defaults, test_config, png_bytes):
        request = InboundRequest(
            "POST",
            query={"botToken": "T", "chatId": "1", "threadId": "17", "caption": "Hi"},
            body=png_bytes,
        )
        submission = await normalize_binary_extended_request(request, no_defaults, test_config)
        assert submission.options.thread_id == 17
        assert submission.options.caption == "Hi"

    @pytest.mark.asyncio
    async def test_extended_blank_options_absent(self, no_defaults, test_config, png_bytes):
        request = InboundRequest(
            "POST",
            query={"botToken": "T", "chatId": "1", "threadId": " ", "caption": "   "},
            body=png_bytes,
        )
        submission = await normalize_binary_extended_request(request, no_defaults, test_config)
        assert submission.options.thread_id is None
        assert submission.options.caption is None

    @pytest.mark.asyncio
    async def test_extended_non_numeric_thread(self, no_defaults, test_config, png_bytes):
        request = InboundRequest(
            "POST",
            query={"botToken": "T", "chatId": "1", "threadId": "abc"},
            body=png_bytes,
        )
        with pytest.raises(InvalidParameterError) as exc_info:
            await normalize_binary_extended_request(request, no_defaults, test_config)
        assert exc_info.value.message == "threadId must be a number"
