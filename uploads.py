"""Turn an uploaded document into the session's UploadedFile."""

import base64
import logging
import mimetypes

from config import settings
from models import UploadedFile

logger = logging.getLogger(__name__)

# Same set the browser picker offers: image/*,.pdf,.txt,.md,.csv (+ JSON)
ACCEPTED_EXTENSIONS = (".pdf", ".txt", ".md", ".csv", ".json")
ACCEPTED_TYPES = ("application/pdf", "text/plain", "text/markdown", "text/csv", "application/json")

mimetypes.add_type("text/markdown", ".md")


class UnsupportedFileError(Exception):
    """The uploaded file is not an image, PDF or text-like document."""


class FileTooLargeError(Exception):
    """The uploaded file exceeds the inline payload limit."""


def bare_mime_type(content_type: str) -> str:
    """Drop parameters such as charset: "Text/Plain; charset=utf-8" -> "text/plain"."""
    return content_type.split(";", 1)[0].strip().lower()


def guess_mime_type(filename: str, content_type: str | None) -> str:
    declared = bare_mime_type(content_type or "")
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def is_accepted(filename: str, mime_type: str) -> bool:
    return (
        mime_type.startswith("image/")
        or mime_type in ACCEPTED_TYPES
        or filename.lower().endswith(ACCEPTED_EXTENSIONS)
    )


def to_data_url(mime_type: str, content: bytes) -> str:
    encoded = base64.b64encode(content).decode()
    return f"data:{mime_type};base64,{encoded}"


def read_upload(
    filename: str,
    content_type: str | None,
    content: bytes,
    max_bytes: int | None = None,
) -> UploadedFile:
    """Validate an upload and encode it as a data URL."""
    limit = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES
    if len(content) > limit:
        raise FileTooLargeError(f"File is larger than {limit} bytes")

    mime_type = guess_mime_type(filename, content_type)
    if not is_accepted(filename, mime_type):
        raise UnsupportedFileError(f"Unsupported file type: {mime_type}")

    logger.info("Received upload: name=%s type=%s size=%d bytes", filename, mime_type, len(content))

    return UploadedFile(
        name=filename,
        type=mime_type,
        data=to_data_url(mime_type, content),
        is_image=mime_type.startswith("image/"),
        size=len(content),
    )
