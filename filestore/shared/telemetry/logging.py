"""Logging configuration for the storage service."""

import logging
import sys

from filestore.core.config import get_settings


def setup_logging() -> None:
    """Configure application-wide logging.

    Level is DEBUG when settings.debug is True, otherwise INFO.
    Output goes to stdout.
    """
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # botocore and paramiko are chatty at DEBUG; keep them at WARNING.
    for name in ("botocore", "boto3", "paramiko", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
