import os
from pathlib import Path


_ROOT = Path(__file__).resolve().parents[2]
_TOKEN_PATH = _ROOT / "TOKEN"
TOKEN = (
    _TOKEN_PATH.read_text(encoding="utf-8").strip()
    if _TOKEN_PATH.exists()
    else os.environ.get("MARKETBOT_TOKEN", "").strip()
)
DATA_DIR = _ROOT / "data"
DB_PATH = DATA_DIR / "marketbot.db"

# MARKET FILES
CATALOG_PATH = DATA_DIR / "config.yml"                              # Merchant trade config (hand-maintained, keep formatting)
BASE_PRICES_PATH = DATA_DIR / "base-prices.json"                    # Canonical non-rotated prices
TRANSLATIONS_PATH = DATA_DIR / "item-translations.json"             # Optional ITEM -> display name
STATE_PATH = DATA_DIR / "market-state.json"                         # Current rotation
PREVIOUS_STATE_PATH = DATA_DIR / "market-state-previous.json"       # One level of undo

# ROTATION
CATALOG_ROOT_KEY = "pnjs"                                           # Root mapping holding every merchant
DYNAMIC_MARKET_NAME = "§eMarché Dynamique"                          # Merchant whose trades are rewritten each rotation
TRADES_KEY = "trades:"
IGNORED_MERCHANTS = frozenset({DYNAMIC_MARKET_NAME, "§eL’Arboriste"})
EXCLUDED_ITEMS = frozenset({"GOLDEN_APPLE", "ENCHANTED_GOLDEN_APPLE", "ENDER_PEARL", "CAKE"})

# APP CONFIGS
ROTATION_SIZE = 8                           # Items buffed per rotation
DEFAULT_CURRENCY = "GOLD_NUGGET"            # Payment type when the base price record has none
MAX_TRADE_QUANTITY = 64                     # One stack; doubled quantities above this are rejected
CATALOG_CACHE_TTL = 30                      # Seconds a parsed catalog may be reused; 0 disables caching
DISPLAY_TIMEZONE = "Europe/Paris"           # Timezone used to date rotations
AUTO_ROTATE_DAYS = 0                        # Rotate automatically once the current rotation is this old; 0 = manual only
ANNOUNCEMENT_CHANNEL_ID = 0                 # Channel for auto-rotation announcements; 0 = auto-pick
