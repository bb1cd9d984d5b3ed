"""
Serverless entry points (Netlify Functions / AWS Lambda proxy events).

Each variant gets its own handler so it can be deployed as an independent
function:

    send_photo_handler                  JSON body (URL or base64)
    send_photo_multipart_handler        multipart/form-data upload
    send_photo_binary_handler           raw body, botToken/chatId in query
    send_photo_binary_extended_handler  raw body plus threadId/caption in query
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from src.core.config import get_config, load_destination_defaults
from src.core.errors import InternalError
from src.core.logging import log_exception, setup_logging
from src.services.photo_relay import VARIANTS, PhotoRelay, Variant, build_error_response
from src.services.telegram_service import TelegramService
from src.services.transport import InboundRequest, RelayResponse

logger = logging.getLogger(__name__)

_logging_configured = False


def event_to_request(event: Dict[str, Any]) -> InboundRequest:
    """Translate a proxy event into an InboundRequest."""
    method = event.get("httpMethod")
    if not method:
        # API Gateway HTTP API (payload v2)
        method = event.get("requestContext", {}).get("http", {}).get("method", "GET")

    body = event.get("body") or b""
    if isinstance(body, str):
        body = body.encode("utf-8")

    return InboundRequest(
        method=method,
        headers=event.get("headers") or {},
        query=event.get("queryStringParameters") or {},
        body=body,
        is_base64_encoded=bool(event.get("isBase64Encoded")),
    )


def to_event_response(response: RelayResponse) -> Dict[str, Any]:
    return {
        "statusCode": response.status_code,
        "headers": response.headers,
        "body": response.render_body(),
    }


async def handle_event(
    variant: Variant, event: Dict[str, Any], relay: Optional[PhotoRelay] = None
) -> Dict[str, Any]:
    """
    Handle one proxy event for the given variant.

    Args:
        variant: Inbound encoding served by this function
        event: Netlify/Lambda proxy event
        relay: Relay to use; built from the global config when omitted

    Returns:
        dict: ``statusCode``, ``headers`` and JSON ``body``
    """
    request_id = (event.get("requestContext") or {}).get("requestId")

    try:
        if relay is None:
            config = get_config()
            relay = PhotoRelay(TelegramService.from_config(config), config)
        defaults = load_destination_defaults()
        response = await relay.handle(variant, event_to_request(event), defaults, request_id=request_id)

    except Exception as e:
        log_exception(logger, e, f"Failed to set up {variant} handler")
        response = build_error_response(InternalError(), VARIANTS[variant].allow_methods, request_id)

    return to_event_response(response)


def configure_logging() -> None:
    """Set up logging once per container; later invocations reuse it."""
    global _logging_configured

    if _logging_configured:
        return

    config = get_config()
    setup_logging(log_level=config.log_level, app_name=config.app_name)
    _logging_configured = True


def _run(variant: Variant, event: Dict[str, Any]) -> Dict[str, Any]:
    configure_logging()
    return asyncio.run(handle_event(variant, event))


def send_photo_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    return _run(Variant.JSON, event)


def send_photo_multipart_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    return _run(Variant.MULTIPART, event)


def send_photo_binary_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    return _run(Variant.BINARY, event)


def send_photo_binary_extended_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    return _run(Variant.BINARY_EXTENDED, event)
