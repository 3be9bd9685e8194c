"""Pydantic models for schema fields, uploaded documents and session views."""

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FieldType(str, Enum):
    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    LIST_OF_STRING = "LIST_OF_STRING"


class ExtractionStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


def new_field_id() -> str:
    return uuid.uuid4().hex


class SchemaField(BaseModel):
    """One user-declared extraction target."""

    id: str = Field(default_factory=new_field_id)
    key: str = ""
    type: FieldType = FieldType.STRING
    description: str = ""


class FieldUpdate(BaseModel):
    """Partial edit of a schema field; unset attributes are left alone."""

    key: str | None = None
    type: FieldType | None = None
    description: str | None = None


class UploadedFile(BaseModel):
    """The single active source document.

    ``data`` holds the content as a data URL (``data:<mime>;base64,<payload>``).
    """

    name: str
    type: str
    data: str
    is_image: bool
    size: int = 0


class FileInfo(BaseModel):
    name: str
    type: str
    is_image: bool
    size: int


class SessionView(BaseModel):
    id: str
    step: int
    file: FileInfo | None
    fields: list[SchemaField]
    status: ExtractionStatus
    result: dict[str, Any] | None
    error: str | None
    can_continue: bool
    can_extract: bool


def default_fields() -> list[SchemaField]:
    """Illustrative fields a fresh session starts with."""
    return [
        SchemaField(key="title", type=FieldType.STRING, description="The main title of the document"),
        SchemaField(key="summary", type=FieldType.STRING, description="A brief summary of the content"),
    ]
