from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

ROTATION_MULTIPLIER = 1.3
EDGE_A_MAX_BASE_PRICE = 2
EDGE_A_PRICE = 3
EDGE_B_PRICE_FLOOR = 5
EDGE_B_MIN_QUANTITY = 16

_UNIT = Decimal("1")


@dataclass(frozen=True)
class BasePriceRecord:
    item: str
    base_price: int
    currency: str = ""
    quantity: int = 1


@dataclass(frozen=True)
class RotationEntry:
    item: str
    quantity: int
    price: int
    currency: str

    def to_dict(self) -> dict:
        return {
            "item": self.item,
            "quantity": self.quantity,
            "price": self.price,
            "currency": self.currency,
        }

    @classmethod
    def from_raw(cls, raw: object) -> RotationEntry | None:
        # Older state files stored bare item names or used "type" for the currency.
        if isinstance(raw, str):
            name = raw.strip()
            return cls(item=name, quantity=1, price=0, currency="") if name else None
        if not isinstance(raw, dict):
            return None
        name = str(raw.get("item", "") or "").strip()
        if not name:
            return None
        try:
            quantity = max(1, int(raw.get("quantity", 1) or 1))
        except (TypeError, ValueError):
            quantity = 1
        try:
            price = max(0, int(raw.get("price", 0) or 0))
        except (TypeError, ValueError):
            price = 0
        currency = str(raw.get("currency", raw.get("type", "")) or "").strip()
        return cls(item=name, quantity=quantity, price=price, currency=currency)


def round_half_up(value: float | int) -> int:
    return int(Decimal(str(value)).quantize(_UNIT, rounding=ROUND_HALF_UP))


def compute_rotation_entry(
    item: str,
    record: BasePriceRecord,
    *,
    default_currency: str,
    max_quantity: int = 64,
) -> RotationEntry | None:
    """Buffed offer for one item, or None when the item cannot be buffed.

    Cheap items whose price would not move (base 1-2) get a doubled stack for 3
    instead, and are rejected if that stack would exceed ``max_quantity``.
    Other items priced under 5 are sold by at least 16, repriced from the
    unit base price.
    """
    base_price = record.base_price
    base_quantity = max(1, record.quantity)
    quantity = base_quantity
    price = round_half_up(base_price * ROTATION_MULTIPLIER)

    if price == base_price and base_price <= EDGE_A_MAX_BASE_PRICE:
        if quantity * 2 > max_quantity:
            return None
        quantity *= 2
        price = EDGE_A_PRICE
    elif price < EDGE_B_PRICE_FLOOR:
        quantity = max(quantity, EDGE_B_MIN_QUANTITY)
        price = round_half_up(base_price / base_quantity * quantity * ROTATION_MULTIPLIER)

    return RotationEntry(
        item=item,
        quantity=quantity,
        price=max(price, 1),
        currency=record.currency or default_currency,
    )
