from marketbot.config.settings import (
    BASE_PRICES_PATH,
    CATALOG_PATH,
    DB_PATH,
    DYNAMIC_MARKET_NAME,
    PREVIOUS_STATE_PATH,
    STATE_PATH,
    TOKEN,
    TRANSLATIONS_PATH,
)

__all__ = [
    "BASE_PRICES_PATH",
    "CATALOG_PATH",
    "DB_PATH",
    "DYNAMIC_MARKET_NAME",
    "PREVIOUS_STATE_PATH",
    "STATE_PATH",
    "TOKEN",
    "TRANSLATIONS_PATH",
]
