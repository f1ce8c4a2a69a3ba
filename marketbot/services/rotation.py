from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Callable

from marketbot.config.runtime import get_app_config
from marketbot.config.settings import (
    BASE_PRICES_PATH,
    CATALOG_PATH,
    DYNAMIC_MARKET_NAME,
    PREVIOUS_STATE_PATH,
    STATE_PATH,
    TRADES_KEY,
)
from marketbot.core.document import patch_file_block, read_document, render_trade_lines
from marketbot.core.errors import NoHistoryError
from marketbot.core.pricing import BasePriceRecord, RotationEntry, compute_rotation_entry
from marketbot.db import add_rotation_log, get_connection
from marketbot.services.catalog import Catalog, CatalogCache, load_base_prices, parse_catalog
from marketbot.services.eligibility import build_pool, iter_draw
from marketbot.services.market_state import RotationState, StateHistory, local_today

# rotate()/revert() read-modify-write two files; one caller at a time.
rotation_lock = threading.Lock()


@dataclass(frozen=True)
class RotationResult:
    state: RotationState
    changed_count: int


def market_marker(merchant_name: str = DYNAMIC_MARKET_NAME) -> str:
    return f'"{merchant_name}":'


class RotationEngine:
    def __init__(
        self,
        *,
        catalog_path: str | Path,
        history: StateHistory,
        base_prices: Callable[[], dict[str, BasePriceRecord]],
        rotation_size: int = 8,
        default_currency: str = "GOLD_NUGGET",
        max_quantity: int = 64,
        market_name: str = DYNAMIC_MARKET_NAME,
        cache: CatalogCache | None = None,
        randbelow: Callable[[int], int] = secrets.randbelow,
        today: Callable[[], str] = local_today,
    ) -> None:
        self.catalog_path = Path(catalog_path)
        self.history = history
        self._base_prices = base_prices
        self.rotation_size = max(0, int(rotation_size))
        self.default_currency = default_currency
        self.max_quantity = max_quantity
        self.market_name = market_name
        self._cache = cache
        self._randbelow = randbelow
        self._today = today

    def _catalog(self, text: str) -> Catalog:
        if self._cache is None:
            return parse_catalog(text)
        return self._cache.get(str(self.catalog_path), lambda: parse_catalog(text))

    def _write_section(self, entries: tuple[RotationEntry, ...]) -> None:
        patch_file_block(self.catalog_path, market_marker(self.market_name), TRADES_KEY, render_trade_lines(entries))
        if self._cache is not None:
            self._cache.invalidate(str(self.catalog_path))

    def _pick_entries(self, pool: list[str], base_prices: dict[str, BasePriceRecord]) -> list[RotationEntry]:
        picked: list[RotationEntry] = []
        if self.rotation_size <= 0:
            return picked
        for item in iter_draw(pool, randbelow=self._randbelow):
            entry = compute_rotation_entry(
                item,
                base_prices[item],
                default_currency=self.default_currency,
                max_quantity=self.max_quantity,
            )
            if entry is None:
                print(f"[rotation] skipping {item}: doubled quantity exceeds {self.max_quantity}.")
                continue
            picked.append(entry)
            if len(picked) >= self.rotation_size:
                break
        if len(picked) < self.rotation_size:
            print(f"[rotation] only {len(picked)} of {self.rotation_size} item(s) could be buffed.")
        return picked

    def rotate(self) -> RotationResult:
        """Buff a fresh set of items and retire the current one.

        The document is written before the state is saved. If saving fails the
        document already carries the new trades; nothing is rolled back.
        """
        outgoing = self.history.load()
        text = read_document(self.catalog_path)
        catalog = self._catalog(text)
        base_prices = self._base_prices()
        pool = build_pool(catalog, base_prices, outgoing.active_items)
        entries = tuple(self._pick_entries(pool, base_prices))

        self._write_section(entries)
        state = RotationState(as_of=self._today(), active=entries, retired=outgoing.active)
        self.history.save(state)
        print(f"[rotation] rotated {len(entries)} item(s), retired {len(outgoing.active)} as of {state.as_of}.")
        return RotationResult(state=state, changed_count=len(entries))

    def revert(self) -> RotationState:
        if not self.history.has_previous():
            raise NoHistoryError("No previous market state to revert to.")
        previous = self.history.load_previous()
        entries = tuple(
            entry if entry.currency else replace(entry, currency=self.default_currency)
            for entry in previous.active
        )
        self._write_section(entries)
        restored = self.history.revert()
        print(f"[rotation] reverted to rotation of {restored.as_of}.")
        return restored

    def current_state(self) -> RotationState:
        return self.history.load()

    def previous_state(self) -> RotationState:
        return self.history.load_previous()


def rotation_due(state: RotationState, today: str, every_days: int, *, has_state: bool) -> bool:
    if every_days <= 0:
        return False
    if not has_state:
        return True
    last = state.as_of_date()
    try:
        current = date.fromisoformat(today)
    except ValueError:
        return False
    if last is None:
        return True
    return (current - last).days >= every_days


def build_rotation_engine(cache: CatalogCache | None = None) -> RotationEngine:
    timezone_name = str(get_app_config("DISPLAY_TIMEZONE"))

    def today() -> str:
        return local_today(timezone_name)

    return RotationEngine(
        catalog_path=CATALOG_PATH,
        history=StateHistory(STATE_PATH, PREVIOUS_STATE_PATH, today=today),
        base_prices=lambda: load_base_prices(BASE_PRICES_PATH),
        rotation_size=int(get_app_config("ROTATION_SIZE")),
        default_currency=str(get_app_config("DEFAULT_CURRENCY")),
        max_quantity=int(get_app_config("MAX_TRADE_QUANTITY")),
        cache=cache,
        today=today,
    )


def perform_rotation(
    *,
    actor_id: int = 0,
    engine: RotationEngine | None = None,
    only_if: Callable[[RotationEngine], bool] | None = None,
    connection_factory: Callable = get_connection,
) -> RotationResult | None:
    """Rotate under the process lock and log it.

    ``only_if`` is checked once the lock is held; returning False skips the
    rotation and the call returns None.
    """
    with rotation_lock:
        engine = engine or build_rotation_engine()
        if only_if is not None and not only_if(engine):
            return None
        result = engine.rotate()
        add_rotation_log(
            "rotate",
            result.state.as_of,
            result.changed_count,
            actor_id=actor_id,
            details={
                "active": [entry.item for entry in result.state.active],
                "retired": [entry.item for entry in result.state.retired],
            },
            connection_factory=connection_factory,
        )
        return result


def perform_revert(
    *,
    actor_id: int = 0,
    engine: RotationEngine | None = None,
    connection_factory: Callable = get_connection,
) -> RotationState:
    with rotation_lock:
        engine = engine or build_rotation_engine()
        state = engine.revert()
        add_rotation_log(
            "revert",
            state.as_of,
            len(state.active),
            actor_id=actor_id,
            details={"active": [entry.item for entry in state.active]},
            connection_factory=connection_factory,
        )
        return state
