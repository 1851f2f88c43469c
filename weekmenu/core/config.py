import os
from typing import Optional

class Settings:
    # Storage (one SQLite file per week key lives under this directory)
    STORE_DIR: str = os.getenv("STORE_DIR", "data/weeks")
    RETENTION_DAYS: int = int(os.getenv("RETENTION_DAYS", "365"))
    ALARM_SWEEP_SECONDS: int = int(os.getenv("ALARM_SWEEP_SECONDS", "3600"))

    # Source
    MENU_SOURCE_URL: Optional[str] = os.getenv("MENU_SOURCE_URL")
    DEFAULT_LOCATION: str = os.getenv("DEFAULT_LOCATION", "london")

    # Scraping
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    USER_AGENT: str = os.getenv("USER_AGENT", "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36")
    # Playwright / JS rendering
    PLAYWRIGHT_HEADLESS: bool = os.getenv("PLAYWRIGHT_HEADLESS", "1").lower() in ("1", "true", "yes")
    MENU_SETTLE_MS: int = int(os.getenv("MENU_SETTLE_MS", "2000"))
    MODAL_OPEN_DELAY_MS: int = int(os.getenv("MODAL_OPEN_DELAY_MS", "500"))
    MODAL_WAIT_TIMEOUT_MS: int = int(os.getenv("MODAL_WAIT_TIMEOUT_MS", "3000"))
    MODAL_CLOSE_SETTLE_MS: int = int(os.getenv("MODAL_CLOSE_SETTLE_MS", "300"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
