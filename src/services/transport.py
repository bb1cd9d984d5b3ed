"""
Transport-neutral request and response types.

Both hosting surfaces (the FastAPI routes and the serverless event
adapter) translate their native request into an InboundRequest and render
the RelayResponse back, so the relay core never sees a framework object.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import AsyncIterable, AsyncIterator, Dict, Iterable, Mapping, Optional

from src.core.errors import InvalidEncodingError, PayloadTooLargeError

CORS_ALLOW_HEADERS = "Content-Type, Authorization"


def cors_headers(allow_methods: Iterable[str]) -> Dict[str, str]:
    """Headers attached to every response, whatever the outcome."""
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": ", ".join(allow_methods),
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Content-Type": "application/json",
    }


class InboundRequest:
    """
    A single incoming HTTP request.

    The body is either a complete bytes value or a one-shot async stream of
    chunks. ``is_base64_encoded`` marks bodies the hosting platform wrapped
    in base64 (Netlify/Lambda do this for binary payloads); they are
    unwrapped transparently when read.
    """

    def __init__(
        self,
        method: str,
        headers: Optional[Mapping[str, str]] = None,
        query: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
        stream: Optional[AsyncIterable[bytes]] = None,
        is_base64_encoded: bool = False,
    ):
        self.method = method.upper()
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.query = dict(query or {})
        self.is_base64_encoded = is_base64_encoded
        self._body = body
        self._stream = stream

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    def _unwrap(self, raw: bytes) -> bytes:
        try:
            return base64.b64decode(raw)
        except (binascii.Error, ValueError) as e:
            raise InvalidEncodingError("Request body is not valid base64") from e

    async def iter_body(self) -> AsyncIterator[bytes]:
        """Yield body chunks as they arrive."""
        if self.is_base64_encoded:
            yield self._unwrap(await self._read_raw())
            return

        if self._stream is not None:
            stream, self._stream = self._stream, None
            async for chunk in stream:
                yield chunk
        elif self._body:
            yield self._body

    async def _read_raw(self, max_size: Optional[int] = None) -> bytes:
        if self._stream is None:
            if max_size is not None and len(self._body) > max_size:
                raise PayloadTooLargeError(max_size)
            return self._body

        chunks = []
        size = 0
        stream, self._stream = self._stream, None
        async for chunk in stream:
            size += len(chunk)
            if max_size is not None and size > max_size:
                raise PayloadTooLargeError(max_size)
            chunks.append(chunk)
        self._body = b"".join(chunks)
        return self._body

    async def read_body(self, max_size: Optional[int] = None) -> bytes:
        """
        Read the whole body into memory.

        Args:
            max_size: Byte cap on the (unwrapped) body, None for no cap

        Raises:
            PayloadTooLargeError: Body exceeds max_size
            InvalidEncodingError: Base64-wrapped body cannot be unwrapped
        """
        if not self.is_base64_encoded:
            return await self._read_raw(max_size)

        wrapped_limit = None if max_size is None else (max_size * 4) // 3 + 4
        body = self._unwrap(await self._read_raw(wrapped_limit))
        if max_size is not None and len(body) > max_size:
            raise PayloadTooLargeError(max_size)
        return body


@dataclass
class RelayResponse:
    """Status, headers and JSON body produced by a handler"""
    status_code: int
    body: Dict = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    def render_body(self) -> str:
        return json.dumps(self.body, ensure_ascii=False)
