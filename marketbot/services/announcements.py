from __future__ import annotations

from discord import Embed

from marketbot.core.payment_types import payment_color, payment_emoji
from marketbot.core.pricing import BasePriceRecord, RotationEntry
from marketbot.services.catalog import translate
from marketbot.services.market_state import RotationState

_EMBED_FIELD_LIMIT = 1024


def _qty_prefix(quantity: int) -> str:
    return f"{quantity}x " if quantity > 1 else ""


def _base_label(record: BasePriceRecord | None) -> str:
    return str(record.base_price) if record is not None else "?"


def buffed_line(entry: RotationEntry, base: BasePriceRecord | None, translations: dict[str, str]) -> str:
    name = translate(entry.item, translations)
    return f"**{_qty_prefix(entry.quantity)}{name}**: {_base_label(base)} ➔ **{entry.price}** {entry.currency}"


def _reset_text(entry: RotationEntry, base: BasePriceRecord | None, translations: dict[str, str]) -> str:
    name = translate(entry.item, translations)
    prev_price = str(entry.price) if entry.price > 0 else "?"
    base_qty = base.quantity if base is not None else 1
    if entry.quantity != base_qty:
        qty = f"{entry.quantity}x ➔ {base_qty}x "
    else:
        qty = _qty_prefix(base_qty)
    return f"**{qty}{name}**: {prev_price} ➔ {_base_label(base)}"


def reset_line(entry: RotationEntry, base: BasePriceRecord | None, translations: dict[str, str]) -> str:
    currency = base.currency if base is not None and base.currency else "?"
    return f"{_reset_text(entry, base, translations)} {currency}"


def _clip(lines: list[str]) -> str:
    out: list[str] = []
    size = 0
    for line in lines:
        if size + len(line) + 1 > _EMBED_FIELD_LIMIT - 4:
            out.append("…")
            break
        out.append(line)
        size += len(line) + 1
    return "\n".join(out)


def build_rotation_embed(
    state: RotationState,
    base_prices: dict[str, BasePriceRecord],
    translations: dict[str, str],
    *,
    title: str = "🔄 Market Rotation",
) -> Embed:
    first_currency = state.active[0].currency if state.active else None
    embed = Embed(title=title, color=payment_color(first_currency))
    if state.active:
        lines = [f"• {buffed_line(e, base_prices.get(e.item), translations)}" for e in state.active]
        embed.add_field(name="🟢 Buffed (Active)", value=_clip(lines), inline=False)
    if state.retired:
        lines = [f"• {reset_line(e, base_prices.get(e.item), translations)}" for e in state.retired]
        embed.add_field(name="🟡 Reset (Back to Base)", value=_clip(lines), inline=False)
    if not state.active and not state.retired:
        embed.description = "_No rotation data_"
    embed.set_footer(text=f"Update: {state.as_of}")
    return embed


def build_patch_notes(
    state: RotationState,
    base_prices: dict[str, BasePriceRecord],
    translations: dict[str, str],
) -> str:
    parts = [f"# 📅 Rotation of {state.as_of}"]
    if state.active:
        lines = []
        for entry in state.active:
            name = translate(entry.item, translations)
            base = base_prices.get(entry.item)
            lines.append(
                f"> **{_qty_prefix(entry.quantity)}{name}** : {_base_label(base)} ➔ "
                f"**{entry.price}** {payment_emoji(entry.currency)}"
            )
        parts.append("## 🟢 Buffs (Active)\n" + "\n".join(lines))
    if state.retired:
        lines = []
        for entry in state.retired:
            base = base_prices.get(entry.item)
            emoji = payment_emoji(base.currency if base is not None else None)
            lines.append(f"> {_reset_text(entry, base, translations)} {emoji}")
        parts.append("## 🟡 Reset (Back to Base)\n" + "\n".join(lines))
    return "\n\n".join(parts)
