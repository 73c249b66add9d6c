"""
Export formatting.

``format_export`` is the worker entry point. It takes the message an export
node posts, ``{"inputData": ..., "config": {...}}``, and answers
``{"success", "fileContent", "fileName", "mimeType"}`` or
``{"success": False, "error"}``. It only uses picklable inputs and outputs
so it can run in a separate process.
"""

import csv
import html
import io
import json
from datetime import UTC, datetime
from typing import Any

from flowgraph.graph.node import ExportConfig

DEFAULT_FILE_NAME = "exported-data"
TEXT_RECORD_SEPARATOR = "\n\n====================\n\n"
NO_DATA_HTML = "<p>No data available</p>"
NO_DATA_MARKDOWN = "**No data available**"

# format -> (extension, mime type)
EXPORT_FORMATS: dict[str, tuple[str, str]] = {
    "csv": ("csv", "text/csv;charset=utf-8;"),
    "json": ("json", "application/json;charset=utf-8;"),
    "txt": ("txt", "text/plain;charset=utf-8;"),
    "html": ("html", "text/html;charset=utf-8;"),
    "markdown": ("md", "text/markdown;charset=utf-8;"),
}

_HTML_STYLE = (
    "body{font-family:sans-serif;margin:20px}"
    "table{border-collapse:collapse;width:100%}"
    "th,td{border:1px solid #ddd;padding:8px;text-align:left}"
    "th{background-color:#f2f2f2}"
    "tr:nth-child(even){background-color:#f9f9f9}"
)


def flatten_object(obj: dict[str, Any], prefix: str = "", separator: str = ".") -> dict[str, Any]:
    """Flatten nested dicts into ``{"a.b": value}``. Lists are kept as values."""
    flat: dict[str, Any] = {}
    for key, value in obj.items():
        name = f"{prefix}{separator}{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_object(value, name, separator))
        else:
            flat[name] = value
    return flat


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict | list):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _headers(records: list[Any]) -> list[str]:
    """Union of the keys of all dict records, in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        if isinstance(record, dict):
            for key in record:
                seen.setdefault(str(key), None)
    return list(seen)


def _cell(record: Any, header: str) -> Any:
    return record.get(header) if isinstance(record, dict) else record


def to_csv(records: list[Any], separator: str = ",") -> str:
    headers = _headers(records)
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=separator, lineterminator="\r\n")
    if headers:
        writer.writerow(headers)
        for record in records:
            writer.writerow([_scalar_text(_cell(record, h)) for h in headers])
    else:
        for record in records:
            writer.writerow([_scalar_text(record)])
    return buffer.getvalue().rstrip("\r\n")


def to_json(records: list[Any]) -> str:
    return json.dumps(records, indent=2, ensure_ascii=False)


def to_text(records: list[Any]) -> str:
    parts = []
    for record in records:
        if record is None or isinstance(record, dict | list):
            parts.append(json.dumps(record, indent=2, ensure_ascii=False))
        else:
            parts.append(_scalar_text(record))
    return TEXT_RECORD_SEPARATOR.join(parts)


def to_html(records: list[Any]) -> str:
    if not records:
        return NO_DATA_HTML
    headers = _headers(records)
    head = "".join(f"<th>{html.escape(h)}</th>" for h in headers)
    rows = []
    for record in records:
        cells = "".join(
            f"<td>{html.escape(_scalar_text(_cell(record, h)))}</td>" for h in headers
        )
        rows.append(f"<tr>{cells}</tr>")
    return (
        "<!DOCTYPE html><html><head><title>Exported Data</title>"
        f"<style>{_HTML_STYLE}</style></head><body><h1>Exported Data</h1>"
        f"<table><thead><tr>{head}</tr></thead><tbody>{''.join(rows)}</tbody></table>"
        "</body></html>"
    )


def to_markdown(records: list[Any]) -> str:
    if not records:
        return NO_DATA_MARKDOWN
    headers = _headers(records)
    lines = [
        "# Exported Data",
        "",
        f"| {' | '.join(headers)} |",
        f"| {' | '.join('---' for _ in headers)} |",
    ]
    for record in records:
        row = [_scalar_text(_cell(record, h)).replace("|", "\\|") for h in headers]
        lines.append(f"| {' | '.join(row)} |")
    return "\n".join(lines) + "\n"


def build_file_name(
    base_name: str | None,
    extension: str,
    include_timestamp: bool = False,
    now: datetime | None = None,
) -> str:
    """``<base>[-<ISO timestamp, ':' and '.' replaced by '-'>].<extension>``"""
    name = base_name or DEFAULT_FILE_NAME
    if include_timestamp:
        moment = now or datetime.now(UTC)
        stamp = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        name = f"{name}-{stamp.replace(':', '-').replace('.', '-')}"
    return f"{name}.{extension}"


def render(records: list[Any], config: ExportConfig) -> tuple[str, str, str]:
    """Render ``records``. Returns ``(content, file_name, mime_type)``."""
    export_format = config.export_format
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format}")
    extension, mime_type = EXPORT_FORMATS[export_format]

    # JSON keeps nesting; every other format flattens on request
    if config.flatten and export_format != "json":
        records = [flatten_object(r) if isinstance(r, dict) else r for r in records]

    if export_format == "csv":
        content = to_csv(records, config.custom_separator or ",")
    elif export_format == "json":
        content = to_json(records)
    elif export_format == "txt":
        content = to_text(records)
    elif export_format == "html":
        content = to_html(records)
    else:
        content = to_markdown(records)

    file_name = build_file_name(config.file_name, extension, config.include_timestamp)
    return content, file_name, mime_type


def format_export(message: dict[str, Any]) -> dict[str, Any]:
    """Worker entry point: one message in, one response out."""
    try:
        config = ExportConfig.model_validate(message.get("config") or {})
        input_data = message.get("inputData")
        records = input_data if isinstance(input_data, list) else [input_data]
        content, file_name, mime_type = render(records, config)
    except Exception as e:
        return {"success": False, "error": str(e) or "Worker formatting failed"}
    return {
        "success": True,
        "fileContent": content,
        "fileName": file_name,
        "mimeType": mime_type,
    }
