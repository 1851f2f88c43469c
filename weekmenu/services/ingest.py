import logging
from typing import Optional

from weekmenu.core.config import settings
from weekmenu.core.dates import DateLike, menu_week_range, today_london
from weekmenu.fetch import js_scraper
from weekmenu.schemas import IngestResult
from weekmenu.store.registry import StoreRegistry

logger = logging.getLogger(__name__)

async def ingest_menus(
    url: str,
    registry: StoreRegistry,
    location: Optional[str] = None,
    today: Optional[DateLike] = None,
) -> IngestResult:
    """
    Acquisition pipeline for one source.

    1. Extract every menu variant from the source page
    2. Work out which week the result belongs to
    3. Hand the menus to that week's store (skipped there if unchanged)

    Extraction errors propagate untouched and nothing is written.
    """
    location = location or settings.DEFAULT_LOCATION
    today = today or today_london()

    logger.info("Fetching menus from %s", url)
    try:
        menus = await js_scraper.fetch_menus(url)
    except Exception as e:
        logger.error("Error fetching menus from %s: %s", url, e)
        raise

    week = menu_week_range(today, location)
    logger.info("Saving %d menus for week %s (today is %s)", len(menus), week.week_key, today)

    store = registry.get(week.week_key)
    updated = store.set_menu_with_dates(menus, week.start_date)

    return IngestResult(
        week_key=week.week_key,
        start_date=week.start_date,
        menu_count=len(menus),
        updated=updated,
    )
