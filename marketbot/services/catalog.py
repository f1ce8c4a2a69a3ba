from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import yaml

from marketbot.config.settings import CATALOG_ROOT_KEY
from marketbot.core.errors import ParseError
from marketbot.core.payment_types import normalize_payment_type
from marketbot.core.pricing import BasePriceRecord


@dataclass(frozen=True)
class CatalogEntry:
    merchant: str
    item: str
    quantity: int
    price: int
    currency: str


Catalog = dict[str, list[CatalogEntry]]


def _to_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _parse_offer(raw: object) -> tuple[int, int, str]:
    # [quantity, {CURRENCY: price}]
    if not isinstance(raw, list) or not raw:
        return 1, 0, ""
    quantity = max(1, _to_int(raw[0], 1))
    if len(raw) < 2 or not isinstance(raw[1], dict) or not raw[1]:
        return quantity, 0, ""
    currency, price = next(iter(raw[1].items()))
    return quantity, max(0, _to_int(price, 0)), str(currency or "").strip()


def parse_catalog(text: str | None, *, root_key: str = CATALOG_ROOT_KEY) -> Catalog:
    if not text or not text.strip():
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"Catalog is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError("Catalog root must be a mapping.")
    merchants = data.get(root_key)
    if merchants is None:
        return {}
    if not isinstance(merchants, dict):
        raise ParseError(f"Catalog key '{root_key}' must be a mapping of merchants.")

    catalog: Catalog = {}
    for name, section in merchants.items():
        merchant = str(name)
        entries: list[CatalogEntry] = []
        trades = section.get("trades") if isinstance(section, dict) else None
        for trade in trades if isinstance(trades, list) else []:
            if not isinstance(trade, dict) or not trade:
                continue
            item, offer = next(iter(trade.items()))
            item_name = str(item or "").strip()
            if not item_name:
                continue
            quantity, price, currency = _parse_offer(offer)
            entries.append(
                CatalogEntry(
                    merchant=merchant,
                    item=item_name,
                    quantity=quantity,
                    price=price,
                    currency=currency,
                )
            )
        catalog[merchant] = entries
    return catalog


def read_catalog(path: str | Path) -> Catalog:
    file_path = Path(path)
    if not file_path.exists():
        return {}
    return parse_catalog(file_path.read_bytes().decode("utf-8"))


def _read_json_table(path: str | Path, label: str) -> dict:
    file_path = Path(path)
    if not file_path.exists():
        return {}
    try:
        data = json.loads(file_path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise ParseError(f"{label} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError(f"{label} must be a JSON object.")
    return data


def parse_base_prices(data: dict) -> dict[str, BasePriceRecord]:
    table: dict[str, BasePriceRecord] = {}
    for key, raw in data.items():
        item = str(key or "").strip()
        if not item or not isinstance(raw, dict):
            continue
        base_price = _to_int(raw.get("basePrice"), 0)
        if base_price < 1:
            continue
        table[item] = BasePriceRecord(
            item=item,
            base_price=base_price,
            currency=normalize_payment_type(raw.get("paymentType", raw.get("currency")), default=""),
            quantity=max(1, _to_int(raw.get("quantity"), 1)),
        )
    return table


def load_base_prices(path: str | Path) -> dict[str, BasePriceRecord]:
    return parse_base_prices(_read_json_table(path, "Base price table"))


def load_translations(path: str | Path) -> dict[str, str]:
    data = _read_json_table(path, "Item translations")
    return {str(k): str(v) for k, v in data.items() if str(v or "").strip()}


def translate(item: str, translations: dict[str, str]) -> str:
    return translations.get(item, item)


class CatalogCache:
    """Parsed catalogs per path, reused for at most ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._entries: dict[str, tuple[float, Catalog]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str, loader: Callable[[], Catalog]) -> Catalog:
        now = self._clock()
        cached = self._entries.get(key)
        if cached is not None and now - cached[0] < self._ttl:
            return cached[1]
        catalog = loader()
        if self._ttl > 0:
            self._entries[key] = (now, catalog)
        return catalog

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
