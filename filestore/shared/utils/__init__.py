"""Shared utilities: datetime, generators, content types, key layout."""

from filestore.shared.utils.content_types import (
    DEFAULT_CONTENT_TYPE,
    resolve_content_type,
)
from filestore.shared.utils.datetime import ensure_utc, utc_now
from filestore.shared.utils.generators import generate_cuid
from filestore.shared.utils.keys import (
    generate_storage_key,
    original_name_from_key,
    sanitize_file_name,
)

__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "resolve_content_type",
    "generate_cuid",
    "utc_now",
    "ensure_utc",
    "generate_storage_key",
    "original_name_from_key",
    "sanitize_file_name",
]
