"""Storage key layout: yyyy/MM/dd/<cuid>_<original file name>."""

from __future__ import annotations

import os
from datetime import datetime

from filestore.shared.utils.datetime import ensure_utc, utc_now
from filestore.shared.utils.generators import generate_cuid

FALLBACK_FILE_NAME = "file"

# <cuid>_<name> must fit a 255-byte path component, with room for temp prefixes.
MAX_FILE_NAME_BYTES = 200
MAX_EXTENSION_BYTES = 16


def _truncate_utf8(text: str, limit: int) -> str:
    return text.encode("utf-8")[:limit].decode("utf-8", "ignore")


def _cap_length(name: str) -> str:
    if len(name.encode("utf-8")) <= MAX_FILE_NAME_BYTES:
        return name
    stem, ext = os.path.splitext(name)
    if len(ext.encode("utf-8")) > MAX_EXTENSION_BYTES:
        stem, ext = name, ""
    stem = _truncate_utf8(stem, MAX_FILE_NAME_BYTES - len(ext.encode("utf-8")))
    return stem.rstrip(". ") + ext


def sanitize_file_name(file_name: str | None) -> str:
    """Strip path separators and dangerous characters from a file name.

    Keeps only the base name, capped at MAX_FILE_NAME_BYTES of UTF-8 with
    the extension preserved. An empty result becomes "file" so a key can
    always be built.
    """
    name = (file_name or "").replace("\\", "/")
    name = os.path.basename(name)
    name = name.replace("\x00", "").strip(". ")
    name = _cap_length(name).strip(". ")
    return name or FALLBACK_FILE_NAME


def date_prefix(now: datetime | None = None) -> str:
    """Return the yyyy/MM/dd partition for now (UTC)."""
    moment = ensure_utc(now) or utc_now()
    return moment.strftime("%Y/%m/%d")


def generate_storage_key(file_name: str | None, now: datetime | None = None) -> str:
    """Build a new, unique storage key for an uploaded file.

    Keys sort lexically by upload date (UTC). The CUID token keeps two
    uploads of the same name in the same second apart.

    Args:
        file_name: Original file name as given by the uploader.
        now: Upload time; defaults to the current UTC time.

    Returns:
        Key of the form yyyy/MM/dd/<uniqueId>_<fileName>.
    """
    return f"{date_prefix(now)}/{generate_cuid()}_{sanitize_file_name(file_name)}"


def original_name_from_key(key: str) -> str:
    """Recover the original file name from a key produced by generate_storage_key."""
    leaf = key.rsplit("/", 1)[-1]
    _, sep, name = leaf.partition("_")
    return name if sep and name else leaf
