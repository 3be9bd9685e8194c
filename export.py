"""Encode an extracted record as JSON, single-row CSV, or key/value text."""

import json
from enum import Enum
from typing import Any


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    TXT = "txt"

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]

    @property
    def filename(self) -> str:
        return f"extracted_data.{self.value}"


_MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
    ExportFormat.TXT: "text/plain",
}


def encode(record: dict[str, Any], fmt: ExportFormat | str) -> str:
    fmt = ExportFormat(fmt)
    if fmt is ExportFormat.JSON:
        return to_json(record)
    if fmt is ExportFormat.CSV:
        return to_csv(record)
    return to_txt(record)


def to_json(record: dict[str, Any]) -> str:
    return json.dumps(record, indent=2, ensure_ascii=False)


def to_csv(record: dict[str, Any]) -> str:
    """Header line of keys, then one record of quoted values.

    Embedded newlines are kept inside the quotes, so the data record can span
    several physical lines while still parsing as a single CSV row.
    """
    header = ",".join(record.keys())
    values = []
    for value in record.values():
        if isinstance(value, list):
            text = "; ".join(_scalar(v) for v in value)
        else:
            text = _scalar(value)
        values.append('"' + text.replace('"', '""') + '"')
    return header + "\n" + ",".join(values)


def to_txt(record: dict[str, Any]) -> str:
    lines = []
    for key, value in record.items():
        if isinstance(value, list):
            text = ", ".join(_scalar(v) for v in value)
        else:
            text = _scalar(value)
        lines.append(f"{key}: {text}")
    return "\n".join(lines)


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _scalar(value: Any) -> str:
    """Render a value the way it reads in JSON, without quoting strings."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return _compact_json(value)
    return str(value)
