import logging
import os
import re
import threading
from datetime import datetime
from typing import Dict, List, Optional

from weekmenu.core.config import settings
from weekmenu.core.dates import DateLike, week_range
from weekmenu.store.week_store import WeekMenuStore

logger = logging.getLogger(__name__)

WEEK_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")
STORE_SUFFIX = ".sqlite"

class StoreRegistry:
    """
    Independent week stores addressed by week key, created on first access.

    Stores share nothing but the directory they live in; each one has its own
    SQLite file and its own lock.
    """

    def __init__(self, store_dir: Optional[str] = None, retention_days: Optional[int] = None):
        self.store_dir = store_dir or settings.STORE_DIR
        self.retention_days = retention_days
        self._stores: Dict[str, WeekMenuStore] = {}
        self._lock = threading.Lock()

    def _path(self, week_key: str) -> str:
        if not WEEK_KEY_RE.match(week_key):
            raise ValueError(f"Invalid week key: {week_key!r}")
        return os.path.join(self.store_dir, week_key + STORE_SUFFIX)

    def get(self, week_key: str) -> WeekMenuStore:
        path = self._path(week_key)
        with self._lock:
            store = self._stores.get(week_key)
            if store is None:
                store = WeekMenuStore(week_key, path, self.retention_days)
                self._stores[week_key] = store
            return store

    def find(self, week_key: str) -> Optional[WeekMenuStore]:
        """
        The store for a week key if anything was ever written to it, else None.

        Unlike get() this never registers a new store, so lookups of unknown
        weeks leave nothing behind in memory or on disk.
        """
        path = self._path(week_key)
        with self._lock:
            store = self._stores.get(week_key)
            if store is None and os.path.exists(path):
                store = WeekMenuStore(week_key, path, self.retention_days)
                self._stores[week_key] = store
            return store

    def store_for(self, location: str, day: DateLike) -> WeekMenuStore:
        """Store holding the week that contains the given date for a location."""
        return self.get(week_range(day, location).week_key)

    def find_for(self, location: str, day: DateLike) -> Optional[WeekMenuStore]:
        return self.find(week_range(day, location).week_key)

    def known_week_keys(self) -> List[str]:
        keys = set()
        with self._lock:
            keys.update(self._stores)
        if os.path.isdir(self.store_dir):
            for name in os.listdir(self.store_dir):
                if name.endswith(STORE_SUFFIX):
                    keys.add(name[: -len(STORE_SUFFIX)])
        return sorted(keys)

    def run_due_alarms(self, now: Optional[datetime] = None) -> List[str]:
        """
        Fire every alarm that is due; returns the week keys that expired.

        A week that cannot be opened or expired is logged and skipped so the
        rest of the sweep still runs.
        """
        expired = []
        for week_key in self.known_week_keys():
            try:
                if self.get(week_key).run_alarm(now):
                    expired.append(week_key)
            except Exception:
                logger.exception("Alarm failed for %s", week_key)
        if expired:
            logger.info("Expired weeks: %s", ", ".join(expired))
        return expired
