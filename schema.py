"""Translate user-defined schema fields into the extraction service's response schema."""

import copy
from typing import Any

from models import FieldType, SchemaField

# Field type -> service schema (description added per field)
TYPE_SCHEMAS: dict[FieldType, dict[str, Any]] = {
    FieldType.STRING: {"type": "STRING"},
    FieldType.NUMBER: {"type": "NUMBER"},
    FieldType.BOOLEAN: {"type": "BOOLEAN"},
    FieldType.LIST_OF_STRING: {"type": "ARRAY", "items": {"type": "STRING"}},
}


def build_response_schema(fields: list[SchemaField]) -> dict[str, Any]:
    """Build an OBJECT schema with one required property per field.

    Keys are used verbatim. A duplicated key overwrites the earlier property
    but still appears twice in ``required``.
    """
    properties: dict[str, dict[str, Any]] = {}
    required: list[str] = []

    for field in fields:
        required.append(field.key)
        prop = copy.deepcopy(TYPE_SCHEMAS[field.type])
        prop["description"] = field.description
        properties[field.key] = prop

    return {
        "type": "OBJECT",
        "properties": properties,
        "required": required,
    }
