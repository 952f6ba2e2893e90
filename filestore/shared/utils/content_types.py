"""MIME type resolution from file names."""

import os

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: dict[str, str] = {
    ".csv": "text/csv",
    ".tsv": "text/tab-separated-values",
    ".txt": "text/plain",
    ".json": "application/json",
    ".xml": "application/xml",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".parquet": "application/vnd.apache.parquet",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
}


def resolve_content_type(file_name: str | None) -> str:
    """Return the MIME type for a file name, by extension (case-insensitive).

    Unknown or missing extensions resolve to application/octet-stream.
    Never raises.
    """
    if not file_name:
        return DEFAULT_CONTENT_TYPE
    _, ext = os.path.splitext(file_name)
    return CONTENT_TYPES.get(ext.lower(), DEFAULT_CONTENT_TYPE)
