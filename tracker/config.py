"""
Tracker Settings

Environment-driven configuration. Values can come from a local .env file.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


# DATABASE_URL is read by db.py

# JSON mirror for the anonymous key-value store; unset keeps it in memory
LOCAL_STORE_PATH = _optional_path("TRACKER_LOCAL_STORE_PATH")

# Extra attempts for a rejected port write before giving up
WRITE_RETRIES = int(os.getenv("TRACKER_WRITE_RETRIES", "1"))

# Catalog records served by the HTTP layer
CATALOG_PATH = _optional_path("TRACKER_CATALOG_PATH")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ANONYMOUS_USER_ID = "anonymous"
