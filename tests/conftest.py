# tests/conftest.py
import os
import sys
from pathlib import Path

import httpx
import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Must be set before src.main is imported: it builds the app at import time
os.environ["ENVIRONMENT"] = "test"

from src.core.config import DestinationDefaults, TestConfig, reset_config  # noqa: E402
from src.services.photo_relay import PhotoRelay  # noqa: E402
from src.services.telegram_service import TelegramService  # noqa: E402


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 4


class TelegramStub:
    """
    Stand-in for the Telegram Bot API, served through httpx.MockTransport.

    Records every request it receives and answers with a fixed status and
    JSON body, or raises ``exc`` to simulate a network failure.
    """

    def __init__(self, status_code=200, json_body=None, exc=None):
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else {
            "ok": True,
            "result": {"message_id": 42, "chat": {"id": "123"}},
        }
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def last_request(self) -> httpx.Request:
        assert self.requests, "Telegram was never called"
        return self.requests[-1]


@pytest.fixture
def test_config():
    """Provide test configuration"""
    reset_config()
    return TestConfig()


@pytest.fixture
def no_defaults():
    """Destination defaults with neither BOT_TOKEN nor CHAT_ID set"""
    return DestinationDefaults(bot_token=None, chat_id=None)


@pytest.fixture
def telegram_stub():
    return TelegramStub()


@pytest.fixture
def make_relay(test_config):
    """Build a PhotoRelay wired to a TelegramStub"""

    def _make(stub: TelegramStub) -> PhotoRelay:
        service = TelegramService.from_config(test_config, transport=stub.transport)
        return PhotoRelay(service, test_config)

    return _make


@pytest.fixture
def relay(make_relay, telegram_stub):
    return make_relay(telegram_stub)


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def multipart_body():
    """
    Build a multipart/form-data body by hand.

    Returns a function taking ``fields`` (name -> str) and ``files``
    (name -> (filename, bytes, content_type)) and returning
    ``(body, content_type_header)``.
    """

    def _build(fields=None, files=None, boundary="----relay-test-boundary"):
        parts = []
        for name, value in (fields or {}).items():
            parts.append(
                f'--{boundary}\r\n'
                f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
                f'{value}\r\n'.encode("utf-8")
            )
        for name, (filename, data, content_type) in (files or {}).items():
            parts.append(
                f'--{boundary}\r\n'
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f'Content-Type: {content_type}\r\n\r\n'.encode("utf-8")
                + data
                + b"\r\n"
            )
        parts.append(f"--{boundary}--\r\n".encode("utf-8"))
        return b"".join(parts), f"multipart/form-data; boundary={boundary}"

    return _build


@pytest.fixture
def make_stub():
    """Factory for TelegramStub instances with custom answers"""
    return TelegramStub
