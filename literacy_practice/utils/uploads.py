"""Validation of uploaded attachments (passage images and documents)."""

import io
from pathlib import Path
from typing import Optional
from PIL import Image
from ..config import settings

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
}
ALLOWED_DOCUMENT_EXT = {".pdf", ".docx", ".txt"}


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):g} MB"
    if num_bytes >= 1024:
        return f"{num_bytes / 1024:g} KB"
    return f"{num_bytes} bytes"


class UploadRejected(ValueError):
    """Attachment failed validation; `status_code` is the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def validate_filename(filename: Optional[str]) -> str:
    if not filename or len(filename) > 200:
        raise UploadRejected("invalid filename")
    if "/" in filename or "\\" in filename:
        raise UploadRejected("invalid filename path")
    return filename


def validate_image(filename: Optional[str], content_type: Optional[str], payload: bytes) -> str:
    """Check MIME type, size ceiling and actual image content.

    Returns the normalized content type.
    """
    validate_filename(filename)
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype not in ALLOWED_IMAGE_TYPES:
        raise UploadRejected("Please upload a JPEG, PNG, GIF or WebP image", status_code=415)
    if len(payload) > settings.MAX_IMAGE_BYTES:
        raise UploadRejected(f"Image must be smaller than {_format_size(settings.MAX_IMAGE_BYTES)}", status_code=413)
    if not payload:
        raise UploadRejected("image file is empty")
    try:
        with Image.open(io.BytesIO(payload)) as img:
            detected = img.format
            img.verify()
    except Exception:
        raise UploadRejected("unsupported file content; expected an image", status_code=415)
    if detected != ALLOWED_IMAGE_TYPES[ctype]:
        raise UploadRejected("image content does not match its declared type", status_code=415)
    return ctype


def validate_document(filename: Optional[str], payload: bytes) -> str:
    """Check a reading document's extension and size; returns the extension."""
    validate_filename(filename)
    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_DOCUMENT_EXT:
        raise UploadRejected("Documents must be PDF, DOCX or TXT files", status_code=415)
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise UploadRejected("file too large", status_code=413)
    if not payload:
        raise UploadRejected("document file is empty")
    if ext == ".pdf" and payload[:4] != b"%PDF":
        raise UploadRejected("unsupported file content; expected a PDF", status_code=415)
    return ext
