"""
config.py
Runtime settings read from the environment, plus logging setup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

APP_TITLE = os.environ.get("SPA_APP_TITLE", "Spa Management System")

DB_FILE = Path(os.environ.get("SPA_DB_FILE", str(Path(__file__).with_name("spa.db"))))

# Page data is refetched from the database at most this often (seconds)
REFRESH_SECONDS = int(os.environ.get("SPA_REFRESH_SECONDS", "30"))

CURRENCY_SYMBOL = os.environ.get("SPA_CURRENCY_SYMBOL", "₹")

PAGE_SIZE = int(os.environ.get("SPA_PAGE_SIZE", "10"))

DEFAULT_ADMIN_PASSWORD = os.environ.get("SPA_DEFAULT_ADMIN_PASSWORD", "admin123")

BCRYPT_ROUNDS = int(os.environ.get("SPA_BCRYPT_ROUNDS", "12"))

LOG_LEVEL = os.environ.get("SPA_LOG_LEVEL", "INFO").upper()

_logging_configured = False


def configure_logging() -> None:
    """Set up root logging once per process (Streamlit reruns the script on every interaction)."""
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _logging_configured = True
