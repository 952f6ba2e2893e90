"""Shared utilities: key layout, content types, clock, ids, and logging.

Used by domain and infrastructure. No storage logic.
"""

from filestore.shared.utils import (
    ensure_utc,
    generate_cuid,
    generate_storage_key,
    original_name_from_key,
    resolve_content_type,
    sanitize_file_name,
    utc_now,
)

__all__ = [
    "ensure_utc",
    "generate_cuid",
    "generate_storage_key",
    "original_name_from_key",
    "resolve_content_type",
    "sanitize_file_name",
    "utc_now",
]
