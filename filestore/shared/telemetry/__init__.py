"""Shared telemetry: logging setup."""

from filestore.shared.telemetry.logging import setup_logging

__all__ = [
    "setup_logging",
]
