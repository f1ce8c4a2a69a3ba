from __future__ import annotations

import secrets
from typing import Callable, Collection, Iterator

from marketbot.config.settings import EXCLUDED_ITEMS, IGNORED_MERCHANTS
from marketbot.core.pricing import BasePriceRecord
from marketbot.services.catalog import Catalog


def build_pool(
    catalog: Catalog,
    base_prices: dict[str, BasePriceRecord],
    active_items: Collection[str],
    *,
    excluded_items: Collection[str] = EXCLUDED_ITEMS,
    ignored_merchants: Collection[str] = IGNORED_MERCHANTS,
) -> list[str]:
    seen: set[str] = set()
    pool: list[str] = []
    for merchant, entries in catalog.items():
        if merchant in ignored_merchants:
            continue
        for entry in entries:
            item = entry.item
            if item in seen:
                continue
            seen.add(item)
            if item in excluded_items or item in active_items or item not in base_prices:
                continue
            pool.append(item)
    return pool


def iter_draw(pool: list[str], *, randbelow: Callable[[int], int] = secrets.randbelow) -> Iterator[str]:
    remaining = list(pool)
    while remaining:
        yield remaining.pop(randbelow(len(remaining)))


def draw(pool: list[str], count: int, *, randbelow: Callable[[int], int] = secrets.randbelow) -> list[str]:
    picked: list[str] = []
    if count <= 0:
        return picked
    for item in iter_draw(pool, randbelow=randbelow):
        picked.append(item)
        if len(picked) >= count:
            break
    if len(picked) < count:
        print(f"[rotation] only {len(picked)} eligible item(s) for {count} slot(s).")
    return picked
