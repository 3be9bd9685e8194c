"""Shared test fixtures for the extraction wizard tests."""

import base64
import json
import sys
from pathlib import Path

import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from gemini_client import GeminiClient
from models import FieldType, SchemaField, UploadedFile


def data_url(mime_type: str, content: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode()}"


def gemini_body(text: str) -> dict:
    """A generateContent response body carrying ``text``."""
    return {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": text}]}, "finishReason": "STOP"},
        ],
    }


@pytest.fixture
def pdf_file() -> UploadedFile:
    content = b"%PDF-1.4\n%fake pdf body\n"
    return UploadedFile(
        name="report.pdf",
        type="application/pdf",
        data=data_url("application/pdf", content),
        is_image=False,
        size=len(content),
    )


@pytest.fixture
def text_file() -> UploadedFile:
    content = "Quarterly Report\nRevenue grew 12%.".encode()
    return UploadedFile(
        name="notes.txt",
        type="text/plain",
        data=data_url("text/plain", content),
        is_image=False,
        size=len(content),
    )


@pytest.fixture
def fields() -> list[SchemaField]:
    return [
        SchemaField(key="title", type=FieldType.STRING, description="Document title"),
        SchemaField(key="tags", type=FieldType.LIST_OF_STRING, description="Topic tags"),
    ]


@pytest.fixture
def gemini_client():
    """Client with a fake credential pointing at a fake host."""
    client = GeminiClient(
        api_key="test-key",
        model="test-model",
        base_url="http://fake-gemini/v1beta",
        thinking_budget=2048,
        timeout=5,
        connect_timeout=2,
    )
    yield client
    client.close()


@pytest.fixture
def unconfigured_client():
    client = GeminiClient(api_key="", base_url="http://fake-gemini/v1beta")
    yield client
    client.close()


@pytest.fixture
def mock_report_response() -> str:
    return json.dumps({"title": "Report", "tags": ["a", "b"]})
