"""
Streaming multipart/form-data reader.

Feeds the request body chunk by chunk into python-multipart's push parser.
Plain form fields are collected as strings; the one wanted file part is
buffered, every other file part is drained and dropped as it arrives.
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterable, Dict, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from src.core.errors import (
    MalformedInputError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
)

logger = logging.getLogger(__name__)

MULTIPART_CONTENT_TYPE = "multipart/form-data"
MAX_FIELD_SIZE = 64 * 1024


@dataclass
class UploadedFile:
    """A file part held fully in memory"""
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass
class MultipartForm:
    """Result of reading a multipart body"""
    fields: Dict[str, str] = field(default_factory=dict)
    file: Optional[UploadedFile] = None
    discarded_files: List[str] = field(default_factory=list)


class _PartState:
    def __init__(self):
        self.headers: List[Tuple[bytes, bytes]] = []
        self.header_field = b""
        self.header_value = b""
        self.name: Optional[str] = None
        self.filename: Optional[str] = None
        self.content_type: Optional[str] = None
        self.is_file = False
        self.keep = False
        self.chunks: List[bytes] = []
        self.size = 0


class MultipartFormReader:
    """
    Push-parser wrapper that keeps only the file part named ``file_field``.

    Args:
        boundary: Multipart boundary from the Content-Type header
        file_field: Name of the file part to keep
        max_file_size: Byte cap for the kept file part, None for no cap
    """

    def __init__(self, boundary: bytes, file_field: str = "photo", max_file_size: Optional[int] = None):
        self.file_field = file_field
        self.max_file_size = max_file_size
        self.form = MultipartForm()
        self._part: Optional[_PartState] = None
        self._error: Optional[Exception] = None
        self._parser = MultipartParser(
            boundary,
            {
                "on_part_begin": self.on_part_begin,
                "on_part_data": self.on_part_data,
                "on_part_end": self.on_part_end,
                "on_header_field": self.on_header_field,
                "on_header_value": self.on_header_value,
                "on_header_end": self.on_header_end,
                "on_headers_finished": self.on_headers_finished,
            },
        )

    # -- parser callbacks --------------------------------------------------

    def on_part_begin(self) -> None:
        self._part = _PartState()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._part.header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._part.header_value += data[start:end]

    def on_header_end(self) -> None:
        part = self._part
        part.headers.append((part.header_field.lower(), part.header_value))
        part.header_field = b""
        part.header_value = b""

    def on_headers_finished(self) -> None:
        part = self._part
        for header_name, header_value in part.headers:
            if header_name == b"content-disposition":
                _, options = parse_options_header(header_value)
                if b"name" in options:
                    part.name = options[b"name"].decode("utf-8", errors="replace")
                if b"filename" in options:
                    part.is_file = True
                    part.filename = options[b"filename"].decode("utf-8", errors="replace")
            elif header_name == b"content-type":
                part.content_type = header_value.decode("latin-1").strip() or None

        if part.is_file:
            part.keep = part.name == self.file_field and self.form.file is None
        else:
            part.keep = part.name is not None

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        part = self._part
        if not part.keep or self._error is not None:
            return

        part.size += end - start
        if part.is_file:
            if self.max_file_size is not None and part.size > self.max_file_size:
                self._error = PayloadTooLargeError(self.max_file_size)
                part.keep = False
                part.chunks = []
                return
        elif part.size > MAX_FIELD_SIZE:
            self._error = MalformedInputError(f"Form field '{part.name}' is too large")
            part.keep = False
            return

        part.chunks.append(data[start:end])

    def on_part_end(self) -> None:
        part = self._part
        self._part = None
        if part is None:
            return

        if part.is_file:
            if part.keep:
                self.form.file = UploadedFile(
                    filename=part.filename or "",
                    content_type=part.content_type,
                    data=b"".join(part.chunks),
                )
            else:
                self.form.discarded_files.append(part.name or "")
        elif part.keep:
            self.form.fields[part.name] = b"".join(part.chunks).decode("utf-8", errors="replace")

    # -- feeding -----------------------------------------------------------

    def write(self, chunk: bytes) -> None:
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise MalformedInputError("Invalid multipart body") from e
        if self._error is not None:
            raise self._error

    def finalize(self) -> MultipartForm:
        try:
            self._parser.finalize()
        except MultipartParseError as e:
            raise MalformedInputError("Invalid multipart body") from e
        if self._error is not None:
            raise self._error
        return self.form


def get_boundary(content_type: Optional[str]) -> bytes:
    """
    Validate a multipart Content-Type header and return its boundary.

    Raises:
        UnsupportedMediaTypeError: Content type is not multipart/form-data
        MalformedInputError: The boundary parameter is missing
    """
    if not content_type or MULTIPART_CONTENT_TYPE not in content_type.lower():
        raise UnsupportedMediaTypeError("Content-Type must be multipart/form-data")

    _, params = parse_options_header(content_type)
    boundary = params.get(b"boundary")
    if not boundary:
        raise MalformedInputError("Invalid multipart body")
    return boundary


async def read_multipart_form(
    content_type: Optional[str],
    chunks: AsyncIterable[bytes],
    file_field: str = "photo",
    max_file_size: Optional[int] = None,
) -> MultipartForm:
    """
    Consume a multipart body completely and return its fields plus the wanted file.

    Args:
        content_type: Raw Content-Type header value
        chunks: Body chunks as they arrive
        file_field: Name of the file part to keep
        max_file_size: Byte cap for the kept file part

    Returns:
        MultipartForm: Text fields, the kept file (if any), names of dropped file parts
    """
    boundary = get_boundary(content_type)
    reader = MultipartFormReader(boundary, file_field=file_field, max_file_size=max_file_size)

    async for chunk in chunks:
        if chunk:
            reader.write(chunk)

    form = reader.finalize()

    if form.discarded_files:
        logger.debug(f"Discarded file parts: {', '.join(form.discarded_files)}")

    return form
