import os
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from conftest import WEEK_KEY, WEEK_START, make_menus
from weekmenu.store.registry import StoreRegistry

class TestStoreRegistry:
    """Keyed, lazily created week stores"""

    def test_same_key_same_store(self, registry):
        assert registry.get(WEEK_KEY) is registry.get(WEEK_KEY)

    def test_store_for_uses_week_key(self, registry):
        assert registry.store_for("london", "2026-01-14").week_key == WEEK_KEY
        assert registry.store_for("dublin", "2026-01-11").week_key == "dublin-2026-01-12-2026-01-16"
        assert registry.store_for("london", "2026-01-10").week_key == "london-2026-01-05-2026-01-09"

    def test_rejects_unsafe_keys(self, registry):
        with pytest.raises(ValueError):
            registry.get("../etc/passwd")

    def test_weeks_and_locations_are_isolated(self, registry):
        registry.get(WEEK_KEY).set_menu_with_dates(make_menus(), WEEK_START)

        assert registry.store_for("dublin", "2026-01-14").get_all_menus() is None
        assert registry.store_for("london", "2026-01-21").search_menu_items("soup") == []
        assert len(registry.store_for("london", "2026-01-14").search_menu_items("soup")) == 10

    def test_known_week_keys_survive_restart(self, registry):
        registry.get(WEEK_KEY).set_menu_with_dates(make_menus(), WEEK_START)

        reopened = StoreRegistry(registry.store_dir)
        assert reopened.known_week_keys() == [WEEK_KEY]
        assert reopened.get(WEEK_KEY).get_all_menus() == make_menus()

    def test_run_due_alarms(self, registry):
        now = datetime(2026, 1, 11, tzinfo=timezone.utc)
        registry.get(WEEK_KEY).set_menu_with_dates(make_menus(), WEEK_START, now=now)
        registry.get("london-2026-01-19-2026-01-23").set_menu_with_dates(
            make_menus(), "2026-01-19", now=now + timedelta(days=7)
        )

        assert registry.run_due_alarms(now + timedelta(days=300)) == []
        assert registry.run_due_alarms(now + timedelta(days=366)) == [WEEK_KEY]
        assert registry.get(WEEK_KEY).get_all_menus() is None
        assert registry.get("london-2026-01-19-2026-01-23").get_all_menus() is not None

    def test_find_unknown_week_registers_nothing(self, registry):
        assert registry.find(WEEK_KEY) is None
        assert registry.find_for("nowhere", "2026-01-14") is None

        assert registry.known_week_keys() == []
        assert not os.path.exists(registry.store_dir)

    def test_find_written_week(self, registry):
        store = registry.get(WEEK_KEY)
        store.set_menu_with_dates(make_menus(), WEEK_START)

        assert registry.find(WEEK_KEY) is store
        assert registry.find_for("london", "2026-01-14") is store
        assert StoreRegistry(registry.store_dir).find(WEEK_KEY).get_all_menus() == make_menus()

    def test_find_rejects_unsafe_keys(self, registry):
        with pytest.raises(ValueError):
            registry.find("../etc/passwd")

    def test_bad_entry_does_not_stop_the_sweep(self, registry):
        now = datetime(2026, 1, 11, tzinfo=timezone.utc)
        registry.get(WEEK_KEY).set_menu_with_dates(make_menus(), WEEK_START, now=now)
        with open(os.path.join(registry.store_dir, "a stray file.sqlite"), "w") as f:
            f.write("not a database")

        assert registry.run_due_alarms(now + timedelta(days=366)) == [WEEK_KEY]
        assert registry.get(WEEK_KEY).get_all_menus() is None

    def test_failing_week_does_not_stop_the_sweep(self, registry):
        now = datetime(2026, 1, 11, tzinfo=timezone.utc)
        other_key = "london-2026-01-19-2026-01-23"
        for key, start in ((WEEK_KEY, WEEK_START), (other_key, "2026-01-19")):
            registry.get(key).set_menu_with_dates(make_menus(), start, now=now)

        with patch.object(registry.get(WEEK_KEY), "expire", side_effect=sqlite3.OperationalError("disk I/O error")):
            assert registry.run_due_alarms(now + timedelta(days=366)) == [other_key]

        assert registry.get(other_key).get_all_menus() is None

class TestSerialization:
    """Concurrent writers and readers on one week"""

    def test_readers_never_see_mixed_versions(self, registry):
        store = registry.get(WEEK_KEY)
        full = make_menus()
        lunch_only = make_menus()[1:]
        errors = []

        def writer():
            for i in range(20):
                store.set_menu_with_dates(full if i % 2 == 0 else lunch_only, WEEK_START)

        def reader():
            for _ in range(40):
                results = store.search_menu_items("soup")
                # 10 hits with breakfast present, 5 without; anything else is a torn read
                if len(results) not in (0, 5, 10):
                    errors.append(len(results))

        threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        data = store.get_stored_data()
        assert len(store.search_menu_items("")) == sum(
            len(c.items) for m in data.menus for d in m.days for c in d.categories
        )
