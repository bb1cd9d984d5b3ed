"""
Error hierarchy for the photo relay.

Every failure a handler can report is a RelayError carrying a
machine-readable ``kind``, a caller-facing ``message`` and the HTTP
``status_code`` it maps to. Handlers catch these at the boundary and turn
them into structured JSON responses.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Machine-readable error kinds returned to callers"""
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    MALFORMED_INPUT = "MalformedInput"
    MISSING_CREDENTIAL = "MissingCredential"
    MISSING_IMAGE = "MissingImage"
    INVALID_ENCODING = "InvalidEncoding"
    UNSUPPORTED_MEDIA_TYPE = "UnsupportedMediaType"
    INVALID_PARAMETER = "InvalidParameter"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    NOT_FOUND = "NotFound"
    UPSTREAM_REJECTED = "UpstreamRejected"
    NETWORK_ERROR = "NetworkError"
    INTERNAL_ERROR = "InternalError"

    def __str__(self) -> str:
        return self.value


class RelayError(Exception):
    """Base exception for all relay errors"""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, status={self.status_code}, message={self.message!r})"


class MethodNotAllowedError(RelayError):
    kind = ErrorKind.METHOD_NOT_ALLOWED
    status_code = 405


class MalformedInputError(RelayError):
    kind = ErrorKind.MALFORMED_INPUT
    status_code = 400


class MissingCredentialError(RelayError):
    """Raised when botToken or chatId cannot be resolved"""

    kind = ErrorKind.MISSING_CREDENTIAL
    status_code = 400

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is required", context={"field": field})


class MissingImageError(RelayError):
    kind = ErrorKind.MISSING_IMAGE
    status_code = 400


class InvalidEncodingError(RelayError):
    kind = ErrorKind.INVALID_ENCODING
    status_code = 400


class UnsupportedMediaTypeError(RelayError):
    kind = ErrorKind.UNSUPPORTED_MEDIA_TYPE
    status_code = 415


class InvalidParameterError(RelayError):
    kind = ErrorKind.INVALID_PARAMETER
    status_code = 400


class PayloadTooLargeError(RelayError):
    kind = ErrorKind.PAYLOAD_TOO_LARGE
    status_code = 413

    def __init__(self, limit_bytes: int):
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Image exceeds maximum size of {limit_bytes} bytes",
            context={"limit_bytes": limit_bytes},
        )


class NotFoundError(RelayError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class UpstreamRejectedError(RelayError):
    """Telegram answered, but refused the request. Its status is forwarded."""

    kind = ErrorKind.UPSTREAM_REJECTED

    def __init__(self, message: str, status_code: int, description: Optional[str] = None):
        self.description = description
        super().__init__(message, status_code=status_code, context={"description": description})


class NetworkError(RelayError):
    kind = ErrorKind.NETWORK_ERROR
    status_code = 500

    def __init__(self, message: str = "Network error: Unable to reach Telegram API"):
        super().__init__(message)


class InternalError(RelayError):
    kind = ErrorKind.INTERNAL_ERROR
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
