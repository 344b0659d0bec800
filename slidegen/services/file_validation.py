from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

from slidegen.errors import InvalidSubmissionError


PDF_MIME = "application/pdf"
TEXT_MIME = "text/plain"
BINARY_MIME = "application/octet-stream"

TEXT_EXTENSIONS = {".md", ".markdown", ".txt"}
PDF_EXTENSIONS = {".pdf"}
SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS | PDF_EXTENSIONS

# Only the leading bytes are inspected, like an HTTP content-type sniffer.
SNIFF_LEN = 512

# Control bytes that never occur in text documents.
_BINARY_BYTES = set(range(0x00, 0x09)) | {0x0B} | set(range(0x0E, 0x1A)) | set(range(0x1C, 0x20))


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    data: bytes
    content_type: str


def sniff_mime_type(data: bytes) -> str:
    head = data[:SNIFF_LEN]
    if head.startswith(b"%PDF-"):
        return PDF_MIME
    if head.startswith((b"\xef\xbb\xbf", b"\xfe\xff", b"\xff\xfe")):
        return TEXT_MIME
    if any(byte in _BINARY_BYTES for byte in head):
        return BINARY_MIME
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte sequence cut at the sniff boundary is still text.
        if exc.start < len(head) - 3:
            return BINARY_MIME
    return TEXT_MIME


def is_allowed(filename: str, mime_type: str) -> bool:
    suffix = PurePath(filename).suffix.lower()
    base_type = mime_type.split(";", 1)[0].strip().lower()
    if suffix in PDF_EXTENSIONS:
        return base_type == PDF_MIME
    if suffix in TEXT_EXTENSIONS:
        return base_type.startswith("text/")
    return False


def validate_upload(filename: str, data: bytes, *, max_bytes: int | None = None) -> UploadedFile:
    if max_bytes is not None and len(data) > max_bytes:
        raise InvalidSubmissionError(f"File too large: {filename}. Maximum size is {max_bytes} bytes")

    mime_type = sniff_mime_type(data)
    if not is_allowed(filename, mime_type):
        raise InvalidSubmissionError(
            f"Unsupported file type: {filename}. Only PDF, Markdown, and TXT files are allowed"
        )
    return UploadedFile(filename=filename, data=data, content_type=mime_type)
