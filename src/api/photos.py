"""
Photo relay endpoints.

Each route accepts every method so the relay can answer OPTIONS preflights
and reject other methods itself, keeping CORS headers on every response.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.core.config import BaseConfig, DestinationDefaults, get_config, load_destination_defaults
from src.services.photo_relay import PhotoRelay, Variant
from src.services.telegram_service import TelegramService
from src.services.transport import InboundRequest, RelayResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["photos"])

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


# ============================================================================
# DEPENDENCIES
# ============================================================================

_photo_relay: Optional[PhotoRelay] = None


def get_photo_relay() -> PhotoRelay:
    """
    Get or create the photo relay (lazy initialization).

    The relay holds no per-request state, so one instance serves all requests.
    """
    global _photo_relay

    if _photo_relay is None:
        config: BaseConfig = get_config()
        _photo_relay = PhotoRelay(TelegramService.from_config(config), config)
        logger.info("Photo relay initialized")

    return _photo_relay


def reset_photo_relay():
    """Drop the cached relay (useful for testing)"""
    global _photo_relay
    _photo_relay = None


def get_destination_defaults() -> DestinationDefaults:
    """BOT_TOKEN / CHAT_ID, read from the environment for every request."""
    return load_destination_defaults()


RelayDep = Annotated[PhotoRelay, Depends(get_photo_relay)]
DefaultsDep = Annotated[DestinationDefaults, Depends(get_destination_defaults)]


# ============================================================================
# ADAPTERS
# ============================================================================


def to_inbound_request(request: Request) -> InboundRequest:
    return InboundRequest(
        method=request.method,
        headers=request.headers,
        query=request.query_params,
        stream=request.stream(),
    )


def to_json_response(response: RelayResponse) -> JSONResponse:
    return JSONResponse(
        status_code=response.status_code,
        content=response.body,
        headers=response.headers,
    )


async def _relay(variant: Variant, request: Request, relay: PhotoRelay, defaults: DestinationDefaults) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    response = await relay.handle(variant, to_inbound_request(request), defaults, request_id=request_id)
    return to_json_response(response)


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.api_route("/send-photo", methods=ALL_METHODS, summary="Send photo from URL or base64 JSON")
async def send_photo(request: Request, relay: RelayDep, defaults: DefaultsDep):
    """
    JSON body: botToken, chatId, photoUrl | photo | photoBase64, fileName,
    mimeType, caption, parseMode, threadId.
    """
    return await _relay(Variant.JSON, request, relay, defaults)


@router.api_route("/send-photo-multipart", methods=ALL_METHODS, summary="Send photo from multipart upload")
async def send_photo_multipart(request: Request, relay: RelayDep, defaults: DefaultsDep):
    """multipart/form-data body: fields botToken, chatId and a file part named photo."""
    return await _relay(Variant.MULTIPART, request, relay, defaults)


@router.api_route("/send-photo-binary", methods=ALL_METHODS, summary="Send photo from raw body")
async def send_photo_binary(request: Request, relay: RelayDep, defaults: DefaultsDep):
    """Raw image body; botToken and chatId as query parameters."""
    return await _relay(Variant.BINARY, request, relay, defaults)


@router.api_route(
    "/send-photo-binary-extended", methods=ALL_METHODS, summary="Send photo from raw body with caption/thread"
)
async def send_photo_binary_extended(request: Request, relay: RelayDep, defaults: DefaultsDep):
    """Raw image body; botToken, chatId, threadId and caption as query parameters."""
    return await _relay(Variant.BINARY_EXTENDED, request, relay, defaults)
