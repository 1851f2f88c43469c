import logging
from typing import Dict, List, Optional

from weekmenu.core.config import settings
from weekmenu.fetch import parser
from weekmenu.fetch.base import ExtractionError, MenuSession
from weekmenu.schemas import ItemDetails, Menu, MenuInfo

logger = logging.getLogger(__name__)

async def fetch_item_details(session: MenuSession, days, item_id: str) -> Optional[ItemDetails]:
    """
    Open one item's overlay, read it and close it again.

    Any failure leaves the item without enrichment. Either way the overlay is
    closed on a best-effort basis and the page gets its close settle delay,
    so the next item starts from a clean page.
    """
    item_name = parser.find_item_name(days, item_id)
    logger.debug("Extracting details: %s (%s)", item_name, item_id)
    details = None
    try:
        await session.open_item(item_id)
        html = await session.read_item(item_id)
        details = parser.parse_item_details(html, item_id) if html else None
    except Exception as e:
        logger.warning("Error extracting details for %s (%s): %s", item_name, item_id, e)

    try:
        await session.close_item()
    except Exception as close_error:
        logger.debug("Could not close overlay for %s: %s", item_id, close_error)
    await session.pause(settings.MODAL_CLOSE_SETTLE_MS)
    return details

async def extract_menu(session: MenuSession, info: MenuInfo) -> Menu:
    """Select one menu variant and read it fully, including per-item details."""
    logger.info("Processing menu: %s", info.name)

    await session.select_menu(info.identifier)
    # Content loads asynchronously with nothing to wait on
    await session.pause(settings.MENU_SETTLE_MS)

    days = parser.parse_menu_structure(await session.content(), info.identifier)

    item_ids = parser.collect_item_ids(days)
    logger.info("Found %d unique items in %s", len(item_ids), info.name)

    details_by_id: Dict[str, ItemDetails] = {}
    for item_id in item_ids:
        details = await fetch_item_details(session, days, item_id)
        if details is not None:
            details_by_id[item_id] = details

    parser.apply_item_details(days, details_by_id)

    return Menu(
        identifier=info.identifier,
        name=info.name,
        type=parser.classify_menu_type(info.name),
        days=days,
    )

async def extract_menus(session: MenuSession) -> List[Menu]:
    """
    Read every menu variant from a loaded landing page.

    Raises ExtractionError when no variants can be found; nothing partial is
    returned in that case.
    """
    try:
        html = await session.content()
    except Exception as e:
        raise ExtractionError(f"Failed to read landing page: {e}") from e

    variants = parser.parse_menu_options(html)
    if not variants:
        raise ExtractionError("No menu variants found on landing page")

    logger.info("Found menus: %s", ", ".join(f"{v.name} ({v.identifier})" for v in variants))

    menus = []
    for info in variants:
        menus.append(await extract_menu(session, info))
    return menus
