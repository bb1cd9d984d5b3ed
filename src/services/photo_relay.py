"""
Photo relay core shared by every handler variant.

Flow for one request:
1. Method dispatch (OPTIONS preflight, POST only)
2. Transport decoding + parameter resolution (variant-specific normalizer)
3. One sendPhoto call to Telegram
4. Response/error normalization

Every outcome, including failures, comes back as a RelayResponse carrying
the CORS headers and a timestamp. Nothing is retried.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from src.api.models import BaseResponse, ErrorResponse, SubmissionResponse
from src.core.config import BaseConfig, DestinationDefaults
from src.core.errors import InternalError, MethodNotAllowedError, RelayError
from src.core.logging import log_exception
from src.services.normalizer import (
    normalize_binary_extended_request,
    normalize_binary_request,
    normalize_json_request,
    normalize_multipart_request,
)
from src.services.telegram_models import PhotoSubmission
from src.services.telegram_service import TelegramService
from src.services.transport import InboundRequest, RelayResponse, cors_headers

logger = logging.getLogger(__name__)

Normalizer = Callable[[InboundRequest, DestinationDefaults, BaseConfig], Awaitable[PhotoSubmission]]


class Variant(str, Enum):
    """Inbound encodings accepted by the relay"""
    JSON = "json"
    MULTIPART = "multipart"
    BINARY = "binary"
    BINARY_EXTENDED = "binary-extended"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class VariantSpec:
    normalizer: Normalizer
    allow_methods: Tuple[str, ...]


VARIANTS: Dict[Variant, VariantSpec] = {
    Variant.JSON: VariantSpec(normalize_json_request, ("GET", "POST", "OPTIONS")),
    Variant.MULTIPART: VariantSpec(normalize_multipart_request, ("POST", "OPTIONS")),
    Variant.BINARY: VariantSpec(normalize_binary_request, ("POST", "OPTIONS")),
    Variant.BINARY_EXTENDED: VariantSpec(normalize_binary_extended_request, ("POST", "OPTIONS")),
}


class PhotoRelay:
    """
    Stateless request handler: one instance can serve any number of requests.

    Args:
        telegram_service: Client for the sendPhoto endpoint
        config: Application configuration (timeouts, size cap, defaults for filenames)
    """

    def __init__(self, telegram_service: TelegramService, config: BaseConfig):
        self.telegram_service = telegram_service
        self.config = config

    async def handle(
        self,
        variant: Variant,
        request: InboundRequest,
        defaults: DestinationDefaults,
        request_id: Optional[str] = None,
    ) -> RelayResponse:
        """
        Handle one request for the given variant.

        Args:
            variant: Which inbound encoding the request uses
            request: The transport-neutral request
            defaults: BOT_TOKEN / CHAT_ID fallbacks, read for this request
            request_id: Optional ID echoed back in error responses

        Returns:
            RelayResponse: Status code, CORS headers and JSON body
        """
        variant_spec = VARIANTS[variant]
        headers = cors_headers(variant_spec.allow_methods)

        if request.method == "OPTIONS":
            return RelayResponse(200, BaseResponse(success=True).to_payload(), headers)

        if request.method != "POST":
            return self.error_response(
                MethodNotAllowedError("Only POST allowed"), variant, request_id
            )

        try:
            submission = await variant_spec.normalizer(request, defaults, self.config)
            result = await self.telegram_service.send_photo(submission)

        except RelayError as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"Photo relay failed | Variant: {variant} | Kind: {e.kind} | "
                f"Status: {e.status_code} | Message: {e.message}"
            )
            return self.error_response(e, variant, request_id)

        except Exception as e:
            log_exception(logger, e, f"Unexpected error relaying photo ({variant})")
            return self.error_response(InternalError(), variant, request_id)

        response = SubmissionResponse(message_id=result.message_id, chat_id=result.chat_id)
        return RelayResponse(200, response.to_payload(), headers)

    def error_response(
        self, error: RelayError, variant: Variant, request_id: Optional[str] = None
    ) -> RelayResponse:
        return build_error_response(error, VARIANTS[variant].allow_methods, request_id)


def build_error_response(
    error: RelayError,
    allow_methods: Tuple[str, ...] = ("POST", "OPTIONS"),
    request_id: Optional[str] = None,
) -> RelayResponse:
    """Render a RelayError as a JSON response with CORS headers."""
    body = ErrorResponse(
        error_kind=error.kind,
        error_message=error.message,
        request_id=request_id,
    )
    return RelayResponse(error.status_code, body.to_payload(), cors_headers(allow_methods))
