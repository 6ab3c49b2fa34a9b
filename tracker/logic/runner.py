"""
Tracker Runner

Wires a ProgramTracker to the right persistence port:
- signed-in users get the SQL store
- anonymous sessions get the local key-value store

and keeps one tracker per user for the HTTP layer.

Pure wiring; no tracker rules live here.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from sqlalchemy.orm import sessionmaker

from ..config import ANONYMOUS_USER_ID, CATALOG_PATH, LOCAL_STORE_PATH, WRITE_RETRIES
from .engine import ProgramTracker
from .local_store import LocalTrackerStore
from .ports import InMemoryCatalog, ProgramCatalog
from .sql_store import SqlTrackerStore

logger = logging.getLogger(__name__)


def load_catalog(path: Optional[Path] = None) -> InMemoryCatalog:
    """
    Catalog from a JSON list of program records.

    Without a path (argument or TRACKER_CATALOG_PATH) the catalog is empty.
    """
    path = path or CATALOG_PATH
    if path is None:
        logger.warning("No catalog path configured; serving an empty program catalog")
        return InMemoryCatalog()
    with open(path, "r", encoding="utf-8") as f:
        records = json.load(f)
    catalog = InMemoryCatalog.from_records(records)
    logger.info(f"Loaded {len(catalog.list_programs())} program(s) from {path}")
    return catalog


def build_tracker(
    catalog: ProgramCatalog,
    user_id: Optional[str] = None,
    session_factory: Optional[sessionmaker] = None,
    local_store: Optional[LocalTrackerStore] = None,
    write_retries: int = WRITE_RETRIES,
) -> ProgramTracker:
    """
    Build and load a tracker for ``user_id``.

    Args:
        catalog: Program reference data
        user_id: Signed-in user; None means an anonymous session
        session_factory: SQLAlchemy session factory for the SQL store
        local_store: Store to use for anonymous sessions
        write_retries: Extra attempts for a rejected port write

    Returns:
        A loaded ProgramTracker
    """
    if user_id:
        port = SqlTrackerStore(session_factory)
    else:
        user_id = ANONYMOUS_USER_ID
        port = local_store or LocalTrackerStore(LOCAL_STORE_PATH)

    tracker = ProgramTracker(user_id, port, catalog, write_retries=write_retries)
    return tracker.load()


class TrackerRegistry:
    """
    One loaded tracker per user id.

    Requests for the same user share a tracker, and with it the tracker's
    lock and cache, so overlapping requests are applied one after another.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._trackers: Dict[str, ProgramTracker] = {}

    def get(self, user_id: str, build: Callable[[], ProgramTracker]) -> ProgramTracker:
        with self._lock:
            tracker = self._trackers.get(user_id)
            if tracker is None:
                tracker = build()
                self._trackers[user_id] = tracker
            return tracker

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._trackers

    def __len__(self) -> int:
        return len(self._trackers)
