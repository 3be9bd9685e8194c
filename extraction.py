"""Extraction client: frame the document, call the service, parse JSON.

Text-like documents are decoded and inlined into the instruction; everything
else travels as a binary attachment tagged with its mime type.
"""

import base64
import binascii
import json
import logging
import time
from typing import Any

from gemini_client import GeminiClient
from models import SchemaField, UploadedFile
from prompts import EXTRACTION_INSTRUCTION, TEXT_CONTENT_HEADER
from schema import build_response_schema

logger = logging.getLogger(__name__)

PARSE_ERROR = "Failed to parse JSON response"

_BASE64_MARKER = "base64,"


class MissingFileError(Exception):
    """No document was provided for extraction."""


def strip_data_url(data: str) -> str:
    """Drop a data URL header, keeping only the base64 payload."""
    if _BASE64_MARKER in data:
        return data.split(_BASE64_MARKER, 1)[1]
    return data


def is_text_file(file: UploadedFile) -> bool:
    mime_type = file.type.split(";", 1)[0].strip().lower()
    return (
        mime_type.startswith("text/")
        or mime_type == "application/json"
        or file.name.endswith(".md")
    )


def decode_text(payload: str) -> str:
    """Decode a base64 payload into UTF-8 text. Raises ValueError on failure."""
    try:
        raw = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 payload: {e}") from e
    return raw.decode("utf-8")


def build_parts(file: UploadedFile) -> list[dict[str, Any]]:
    """Frame a document as request parts, instruction text last."""
    payload = strip_data_url(file.data)
    prompt = EXTRACTION_INSTRUCTION
    parts: list[dict[str, Any]] = []

    if is_text_file(file):
        try:
            prompt += TEXT_CONTENT_HEADER + decode_text(payload)
        except ValueError as e:
            # UnicodeDecodeError is a ValueError too
            logger.warning("Could not decode text file %s (%s), sending as inline data", file.name, e)
            parts.append({
                "inlineData": {"mimeType": file.type or "text/plain", "data": payload},
            })
    else:
        parts.append({
            "inlineData": {"mimeType": file.type, "data": payload},
        })

    parts.append({"text": prompt})
    return parts


def parse_result(raw: str) -> dict[str, Any]:
    """Parse the service's JSON text, or return the sentinel error record."""
    try:
        result = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Failed to parse JSON from extraction response: %s", raw[:200])
        return {"error": PARSE_ERROR, "raw": raw}

    if isinstance(result, dict):
        return result

    logger.error("Extraction response is non-object JSON (%s): %s", type(result).__name__, raw[:200])
    return {"error": PARSE_ERROR, "raw": raw}


def extract(
    file: UploadedFile | None,
    fields: list[SchemaField],
    client: GeminiClient,
) -> dict[str, Any]:
    """Run one extraction attempt for ``file`` against the user's field list."""
    client.ensure_configured()
    if file is None:
        raise MissingFileError("No input file provided.")

    start = time.monotonic()
    parts = build_parts(file)
    response_schema = build_response_schema(fields)

    # Never log document content, only its shape
    logger.info(
        "Extracting %d fields from %s (%s, %d parts)",
        len(fields), file.name, file.type, len(parts),
    )

    raw_text = client.generate(parts, response_schema)
    result = parse_result(raw_text)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info("Extraction completed in %dms (%d chars)", elapsed_ms, len(raw_text))
    return result
