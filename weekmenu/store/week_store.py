import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

from weekmenu.core.config import settings
from weekmenu.core.dates import day_to_date_map
from weekmenu.schemas import (
    AvailableDate,
    DateRange,
    Menu,
    MenuItemWithContext,
    MenuQueryResult,
    StoredMenuData,
)
from weekmenu.store import query as menu_query

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS menu_document (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        payload TEXT NOT NULL,
        stored_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS store_alarm (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        fire_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS menu_index (
        date TEXT NOT NULL,
        day_name TEXT NOT NULL,
        meal_type TEXT NOT NULL,
        categories_count INTEGER DEFAULT 0,
        items_count INTEGER DEFAULT 0,
        PRIMARY KEY (date, meal_type)
    );

    CREATE TABLE IF NOT EXISTS menu_items (
        id TEXT NOT NULL,
        date TEXT NOT NULL,
        meal_type TEXT NOT NULL,
        category TEXT,
        name TEXT,
        dietary_labels TEXT,
        PRIMARY KEY (id, date, meal_type)
    );

    CREATE INDEX IF NOT EXISTS idx_menu_items_date ON menu_items(date);
    CREATE INDEX IF NOT EXISTS idx_menu_items_dietary ON menu_items(dietary_labels);
"""

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _as_utc(moment: Optional[datetime]) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC already."""
    if moment is None:
        return _utcnow()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)

def menu_fingerprint(menus: List[Menu]) -> str:
    """
    Cheap structural summary used to skip redundant writes.

    Per menu: type, day count, item count, first item id and last day name.
    Two menu sets with the same summary are treated as unchanged even if
    item names differ.
    """
    summary = []
    for menu in menus:
        first_item_id = ""
        if menu.days and menu.days[0].categories and menu.days[0].categories[0].items:
            first_item_id = menu.days[0].categories[0].items[0].id
        summary.append({
            "type": menu.type,
            "day_count": len(menu.days),
            "item_count": sum(len(category.items) for day in menu.days for category in day.categories),
            "first_item_id": first_item_id,
            "last_day": menu.days[-1].day if menu.days else "",
        })
    return json.dumps(summary)

class WeekMenuStore:
    """
    Canonical menu document for one week key plus its derived index.

    All operations on one store are serialized by its lock, and a document
    replacement and the index rebuild that follows it share one transaction,
    so readers never see a document paired with another version's index.

    The SQLite file is only created by the first write; until then every
    read answers "no data" without touching the disk.
    """

    def __init__(self, week_key: str, db_path: str, retention_days: Optional[int] = None):
        self.week_key = week_key
        self.db_path = db_path
        self.retention_days = settings.RETENTION_DAYS if retention_days is None else retention_days
        self._lock = threading.RLock()
        self._initialized = False

    def _init_db(self):
        if self._initialized:
            return
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        try:
            conn.executescript(SCHEMA)
        finally:
            conn.close()
        self._initialized = True

    def exists(self) -> bool:
        return self._initialized or os.path.exists(self.db_path)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    @contextmanager
    def _reading(self) -> Iterator[Optional[sqlite3.Connection]]:
        """Locked connection for reads, or None while nothing has been written."""
        with self._lock:
            if not self.exists():
                yield None
                return
            with self._connection() as conn:
                yield conn

    def _load(self, conn: sqlite3.Connection) -> Optional[StoredMenuData]:
        row = conn.execute("SELECT payload FROM menu_document WHERE id = 1").fetchone()
        if row is None:
            return None
        return StoredMenuData.model_validate_json(row["payload"])

    def _reindex(self, conn: sqlite3.Connection, data: StoredMenuData):
        conn.execute("DELETE FROM menu_index")
        conn.execute("DELETE FROM menu_items")

        day_rows, item_rows = menu_query.index_rows(data)
        # A repeated (date, meal_type) or (id, date, meal_type) keeps its first occurrence
        conn.executemany(
            """INSERT OR IGNORE INTO menu_index (date, day_name, meal_type, categories_count, items_count)
               VALUES (?, ?, ?, ?, ?)""",
            day_rows,
        )
        conn.executemany(
            """INSERT OR IGNORE INTO menu_items (id, date, meal_type, category, name, dietary_labels)
               VALUES (?, ?, ?, ?, ?, ?)""",
            item_rows,
        )

    def set_menu_with_dates(self, menus: List[Menu], week_start_date: str, now: Optional[datetime] = None) -> bool:
        """
        Store the week's menus, unless they match what is already stored.

        Returns True when the document was replaced and the index rebuilt,
        False when the fingerprint matched and nothing was written.
        """
        now = _as_utc(now)
        with self._lock:
            self._init_db()
            with self._connection() as conn:
                existing = self._load(conn)
                if existing is not None and menu_fingerprint(existing.menus) == menu_fingerprint(menus):
                    logger.info("Menu data unchanged for %s (fingerprint match), skipping update", self.week_key)
                    return False

                stored = StoredMenuData(
                    menus=menus,
                    week_start_date=week_start_date,
                    date_map=day_to_date_map(week_start_date),
                    stored_at=now.isoformat(),
                )
                conn.execute(
                    "INSERT OR REPLACE INTO menu_document (id, payload, stored_at) VALUES (1, ?, ?)",
                    (stored.model_dump_json(), stored.stored_at),
                )
                self._reindex(conn, stored)

                fire_at = now + timedelta(days=self.retention_days)
                conn.execute(
                    "INSERT OR REPLACE INTO store_alarm (id, fire_at) VALUES (1, ?)",
                    (fire_at.isoformat(),),
                )

        logger.info("Stored %d menus for %s", len(menus), self.week_key)
        return True

    def get_menu_by_date(self, date: str, meal_type: Optional[str] = None) -> List[MenuQueryResult]:
        """Categories served on a date, one result per indexed meal type. Empty means no data."""
        sql, params = menu_query.build_day_query(date, meal_type)
        with self._reading() as conn:
            if conn is None:
                return []
            rows = conn.execute(sql, params).fetchall()
            if not rows:
                return []
            data = self._load(conn)

        if data is None:
            return []

        results = []
        for row in rows:
            categories = menu_query.resolve_day_categories(data, row["meal_type"], date)
            if categories is not None:
                results.append(MenuQueryResult(
                    date=row["date"],
                    day=row["day_name"],
                    meal_type=row["meal_type"],
                    menu=categories,
                ))
        return results

    def search_menu_items(
        self,
        query: str = "",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        meal_type: Optional[str] = None,
        dietary_label: Optional[str] = None,
    ) -> List[MenuItemWithContext]:
        sql, params = menu_query.build_search_query(query, start_date, end_date, meal_type, dietary_label)
        with self._reading() as conn:
            if conn is None:
                return []
            rows = conn.execute(sql, params).fetchall()
            if not rows:
                return []
            data = self._load(conn)

        if data is None:
            return []

        items = []
        for row in rows:
            item = menu_query.resolve_item(data, row)
            if item is not None:
                items.append(item)
        return items

    def get_available_dates(self) -> List[AvailableDate]:
        with self._reading() as conn:
            if conn is None:
                return []
            rows = conn.execute(
                """SELECT date, GROUP_CONCAT(meal_type) AS meals
                   FROM menu_index
                   GROUP BY date
                   ORDER BY date"""
            ).fetchall()
        return [AvailableDate(date=row["date"], meals=sorted(row["meals"].split(","))) for row in rows]

    def get_all_menus(self) -> Optional[List[Menu]]:
        data = self.get_stored_data()
        return data.menus if data is not None else None

    def get_stored_data(self) -> Optional[StoredMenuData]:
        with self._reading() as conn:
            return self._load(conn) if conn is not None else None

    def get_stored_week_range(self) -> Optional[DateRange]:
        data = self.get_stored_data()
        if data is None or not data.date_map:
            return None
        dates = sorted(data.date_map.values())
        return DateRange(start_date=dates[0], end_date=dates[-1])

    def rebuild_index(self) -> bool:
        """Rebuild both index tables from the stored document, leaving the document untouched."""
        with self._reading() as conn:
            data = self._load(conn) if conn is not None else None
            if data is None:
                logger.info("No stored data to rebuild %s from", self.week_key)
                return False
            self._reindex(conn, data)
        logger.info("Index rebuilt for %s", self.week_key)
        return True

    def alarm_at(self) -> Optional[datetime]:
        with self._reading() as conn:
            if conn is None:
                return None
            row = conn.execute("SELECT fire_at FROM store_alarm WHERE id = 1").fetchone()
        return _as_utc(datetime.fromisoformat(row["fire_at"])) if row else None

    def run_alarm(self, now: Optional[datetime] = None) -> bool:
        """Expire the week if its alarm is due. The alarm fires once and is not retried."""
        now = _as_utc(now)
        with self._lock:
            fire_at = self.alarm_at()
            if fire_at is None or fire_at > now:
                return False
            self.expire()
        return True

    def expire(self):
        """Delete the document, both index tables and the pending alarm. Safe to repeat."""
        with self._reading() as conn:
            if conn is None:
                return
            conn.execute("DELETE FROM menu_document")
            conn.execute("DELETE FROM menu_index")
            conn.execute("DELETE FROM menu_items")
            conn.execute("DELETE FROM store_alarm")
        logger.info("Expired menu data for %s", self.week_key)
