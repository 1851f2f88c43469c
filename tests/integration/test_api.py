import asyncio
import os
from datetime import date
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from conftest import WEEK_KEY, WEEK_START, make_menus
from weekmenu.api import routes
from weekmenu.core import config
from weekmenu.fetch.base import ExtractionError
from weekmenu.main import app

# Test client
client = TestClient(app)

def _fill_week():
    routes.get_registry().get(WEEK_KEY).set_menu_with_dates(make_menus(), WEEK_START)

class TestMenuQuery:
    """Integration tests for /menu/query"""

    def test_query_by_date_and_meal(self):
        _fill_week()
        response = client.get("/menu/query/london/2026-01-14", params={"meal": "lunch"})

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["day"] == "Wednesday"
        assert data[0]["meal_type"] == "lunch"
        assert [c["name"] for c in data[0]["menu"]] == ["Soup", "Mains"]
        assert data[0]["menu"][1]["items"][0]["name"] == "Mushroom risotto"

    def test_query_all_meals(self):
        _fill_week()
        response = client.get("/menu/query/london/2026-01-12")
        assert response.status_code == 200
        assert len(response.json()) == 2

    def test_no_data_is_not_found(self):
        response = client.get("/menu/query/london/2026-01-14")
        assert response.status_code == 404

    def test_other_location_is_not_found(self):
        _fill_week()
        response = client.get("/menu/query/dublin/2026-01-14")
        assert response.status_code == 404

    def test_invalid_meal_type(self):
        response = client.get("/menu/query/london/2026-01-14", params={"meal": "brunch"})
        assert response.status_code == 400

    def test_invalid_date(self):
        response = client.get("/menu/query/london/14-01-2026")
        assert response.status_code == 400

    def test_misses_leave_nothing_behind(self):
        for i in range(5):
            assert client.get(f"/menu/query/loc{i}/2026-01-14").status_code == 404
        assert client.get("/menu/search/nowhere", params={"startDate": "2026-01-14"}).status_code == 404
        assert client.get("/menu/london-2030-01-07-2030-01-11").status_code == 404
        assert client.get("/menu/london-2030-01-07-2030-01-11/dates").status_code == 404
        assert client.post("/menu/london-2030-01-07-2030-01-11/rebuild").status_code == 404

        store_dir = config.settings.STORE_DIR
        assert not os.path.exists(store_dir) or os.listdir(store_dir) == []
        assert routes.get_registry().known_week_keys() == []

class TestMenuSearch:
    """Integration tests for /menu/search"""

    def test_search_with_dates(self):
        _fill_week()
        response = client.get("/menu/search/london", params={
            "q": "soup", "startDate": "2026-01-12", "endDate": "2026-01-16"
        })
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 10
        assert len(data["items"]) == 10

    @patch("weekmenu.api.routes.today_london")
    def test_search_defaults_to_stored_week(self, mock_today):
        mock_today.return_value = date(2026, 1, 14)
        _fill_week()

        response = client.get("/menu/search/london", params={"dietary": "Vegan", "meal": "breakfast"})
        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 10
        assert all("Vegan" in item["dietary_labels"] for item in items)

    def test_search_result_has_context(self):
        _fill_week()
        response = client.get("/menu/search/london", params={"q": "Lentil", "startDate": "2026-01-12"})
        assert response.status_code == 200
        item = response.json()["items"][0]
        assert item["date"] == "2026-01-14"
        assert item["day"] == "Wednesday"
        assert item["category"] == "Soup"
        assert item["allergens"]["contains"] == ["Celery"]

    def test_no_match_is_not_found(self):
        _fill_week()
        response = client.get("/menu/search/london", params={"q": "sushi", "startDate": "2026-01-12"})
        assert response.status_code == 404

class TestWeekEndpoints:
    """Integration tests for direct week access"""

    def test_get_week(self):
        _fill_week()
        response = client.get(f"/menu/{WEEK_KEY}")
        assert response.status_code == 200
        data = response.json()
        assert data["week_start_date"] == WEEK_START
        assert data["date_map"]["Friday"] == "2026-01-16"
        assert len(data["menus"]) == 2

    def test_missing_week(self):
        response = client.get("/menu/london-2030-01-07-2030-01-11")
        assert response.status_code == 404

    def test_available_dates(self):
        _fill_week()
        response = client.get(f"/menu/{WEEK_KEY}/dates")
        assert response.status_code == 200
        assert len(response.json()) == 5

    def test_rebuild(self):
        _fill_week()
        assert client.post(f"/menu/{WEEK_KEY}/rebuild").status_code == 200
        assert client.post("/menu/london-2030-01-07-2030-01-11/rebuild").status_code == 404

class TestIngestEndpoint:
    """Integration tests for on-demand ingestion"""

    @patch("weekmenu.services.ingest.today_london")
    @patch("weekmenu.fetch.js_scraper.fetch_menus", new_callable=AsyncMock)
    def test_ingest_stores_menu(self, mock_fetch, mock_today):
        mock_fetch.return_value = make_menus()
        mock_today.return_value = date(2026, 1, 10)

        response = client.post("/ingest", json={"url": "https://menus.example.com/london"})

        assert response.status_code == 200
        data = response.json()
        assert data["week_key"] == WEEK_KEY
        assert data["menu_count"] == 2
        assert data["updated"] is True
        mock_fetch.assert_awaited_once_with("https://menus.example.com/london")

        assert client.get("/menu/query/london/2026-01-14", params={"meal": "lunch"}).status_code == 200

    @patch("weekmenu.fetch.js_scraper.fetch_menus", new_callable=AsyncMock)
    def test_extraction_failure(self, mock_fetch):
        mock_fetch.side_effect = ExtractionError("No menu variants found on landing page")

        response = client.post("/ingest", json={"url": "https://menus.example.com/london"})

        assert response.status_code == 502
        assert "extraction failed" in response.json()["detail"].lower()
        assert routes.get_registry().known_week_keys() == []

    def test_url_required(self, monkeypatch):
        monkeypatch.setattr(config.settings, "MENU_SOURCE_URL", None)
        response = client.post("/ingest", json={})
        assert response.status_code == 400

    def test_invalid_url(self):
        response = client.post("/ingest", json={"url": "not-a-url"})
        assert response.status_code == 400
        assert "must start with http" in response.json()["detail"]

class TestHealthEndpoints:
    """Test health and utility endpoints"""

    def test_health_endpoint(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root_endpoint(self):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert "service" in data
        assert "endpoints" in data

class TestLifespan:
    """Startup and shutdown of the background alarm sweep"""

    def test_sweeper_is_cancelled_and_awaited_on_shutdown(self):
        events = []

        async def fake_sweep(interval_seconds):
            events.append("started")
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                events.append("cancelled")
                raise

        with patch("weekmenu.main.sweep_alarms", fake_sweep):
            with TestClient(app) as lifespan_client:
                assert lifespan_client.get("/health").status_code == 200

        assert events == ["started", "cancelled"]
