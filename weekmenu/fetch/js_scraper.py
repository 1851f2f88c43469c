import logging
from typing import List, Optional

from playwright.async_api import Browser, Page, async_playwright, TimeoutError as PlaywrightTimeout

from weekmenu.core.config import settings
from weekmenu.fetch.base import ExtractionError, MenuSession
from weekmenu.fetch.pipeline import extract_menus
from weekmenu.schemas import Menu

logger = logging.getLogger(__name__)

OPEN_MODAL_SCRIPT = """
(id) => {
    const modal = [...document.querySelectorAll(".k10-recipe-modal")].find((el) => el.dataset.recipeId === id)
    if (!modal) return
    if (typeof window.$ !== 'undefined') {
        window.$(modal).modal('show')
    } else {
        modal.classList.add('show', 'in')
        modal.setAttribute('style', 'display: block;')
        const backdrop = document.createElement('div')
        backdrop.className = 'modal-backdrop fade in'
        document.body.appendChild(backdrop)
    }
}
"""

SELECT_MENU_SCRIPT = """
(identifier) => {
    const option = [...document.querySelectorAll(".k10-menu-selector__options-li")]
        .find((el) => el.dataset.menuIdentifier === identifier)
    if (option) option.click()
}
"""

READ_MODAL_SCRIPT = """
(id) => {
    const modal = [...document.querySelectorAll(".k10-recipe-modal")].find((el) => el.dataset.recipeId === id)
    return modal ? modal.outerHTML : null
}
"""

class PlaywrightMenuSession(MenuSession):
    """MenuSession backed by a headless Chromium page."""

    def __init__(self, page: Page, browser: Optional[Browser] = None):
        self.page = page
        self.browser = browser

    async def load(self, url: str) -> None:
        try:
            await self.page.goto(url, timeout=settings.REQUEST_TIMEOUT * 1000, wait_until="networkidle")
        except PlaywrightTimeout as e:
            raise ExtractionError(f"Timeout while loading {url}") from e
        except Exception as e:
            raise ExtractionError(f"Failed to load {url}: {str(e)}") from e

    async def content(self) -> str:
        return await self.page.content()

    async def select_menu(self, identifier: str) -> None:
        await self.page.evaluate(SELECT_MENU_SCRIPT, identifier)

    async def open_item(self, recipe_id: str) -> None:
        await self.page.evaluate(OPEN_MODAL_SCRIPT, recipe_id)
        await self.page.wait_for_timeout(settings.MODAL_OPEN_DELAY_MS)
        await self.page.wait_for_selector(".k10-recipe-modal.show", timeout=settings.MODAL_WAIT_TIMEOUT_MS)

    async def read_item(self, recipe_id: str) -> Optional[str]:
        return await self.page.evaluate(READ_MODAL_SCRIPT, recipe_id)

    async def close_item(self) -> None:
        close_button = await self.page.query_selector(".k10-recipe-modal.show .close")
        if close_button:
            await close_button.click()
        else:
            # No close button rendered: drop the visible state by hand
            modal = await self.page.query_selector(".k10-recipe-modal.show")
            if modal:
                await modal.evaluate("(el) => el.classList.remove('show')")
            backdrop = await self.page.query_selector(".modal-backdrop")
            if backdrop:
                await backdrop.evaluate("(el) => el.remove()")

    async def pause(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)

    async def close(self) -> None:
        if self.browser is not None:
            await self.browser.close()

async def fetch_menus(url: str) -> List[Menu]:
    """
    Render the menu page with Playwright and extract every menu variant.

    Args:
        url: The menu page URL

    Returns:
        One Menu per selectable variant, enriched with item details

    Raises:
        ExtractionError: the page could not be loaded or has no menu variants
    """
    if not url or not url.strip():
        raise ExtractionError("Menu source URL is not set")

    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(
                headless=settings.PLAYWRIGHT_HEADLESS,
                args=[
                    '--no-sandbox',
                    '--disable-dev-shm-usage',
                    '--disable-gpu',
                ]
            )
        except Exception as e:
            raise ExtractionError(f"Failed to start browser: {str(e)}") from e

        page = await browser.new_page()
        await page.set_extra_http_headers({"User-Agent": settings.USER_AGENT})
        session = PlaywrightMenuSession(page, browser)

        try:
            await session.load(url)
            return await extract_menus(session)
        finally:
            await session.close()
