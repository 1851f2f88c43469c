from typing import Optional

class ExtractionError(Exception):
    """The source could not be loaded or no longer looks like a menu page."""

class MenuSession:
    """
    One rendered page driven through the menu interaction sequence.

    Only one detail overlay can be open at a time, so callers must pair every
    open_item() with close_item() before opening the next one.
    """

    async def load(self, url: str) -> None:
        raise NotImplementedError

    async def content(self) -> str:
        raise NotImplementedError

    async def select_menu(self, identifier: str) -> None:
        raise NotImplementedError

    async def open_item(self, recipe_id: str) -> None:
        """Show the detail overlay and wait until it is visible; raise on timeout."""
        raise NotImplementedError

    async def read_item(self, recipe_id: str) -> Optional[str]:
        """HTML of the open overlay, or None if the page has no overlay for this id."""
        raise NotImplementedError

    async def close_item(self) -> None:
        raise NotImplementedError

    async def pause(self, ms: int) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError
