from io import BytesIO

import matplotlib
from discord import File
from matplotlib import pyplot as plt

from marketbot.core.pricing import BasePriceRecord
from marketbot.services.catalog import translate
from marketbot.services.market_state import RotationState

matplotlib.use("Agg")


def unit_prices(
    state: RotationState,
    base_prices: dict[str, BasePriceRecord],
) -> list[tuple[str, float, float]]:
    # (item, base price per unit, rotated price per unit); items without a base record are left out.
    rows: list[tuple[str, float, float]] = []
    for entry in state.active:
        base = base_prices.get(entry.item)
        if base is None:
            continue
        rows.append(
            (
                entry.item,
                base.base_price / max(1, base.quantity),
                entry.price / max(1, entry.quantity),
            )
        )
    return rows


def build_rotation_chart(
    state: RotationState,
    base_prices: dict[str, BasePriceRecord],
    translations: dict[str, str],
) -> File | None:
    rows = unit_prices(state, base_prices)
    if not rows:
        return None

    labels = [translate(item, translations) for item, _base, _rotated in rows]
    base_values = [base for _item, base, _rotated in rows]
    rotated_values = [rotated for _item, _base, rotated in rows]
    positions = list(range(len(rows)))
    width = 0.38

    fig, ax = plt.subplots(figsize=(8.4, 4.8))
    ax.bar([p - width / 2 for p in positions], base_values, width=width, color="#95a5a6", label="Base")
    ax.bar([p + width / 2 for p in positions], rotated_values, width=width, color="#2ecc71", label="Rotation")
    ax.set_xticks(positions)
    ax.set_xticklabels(labels, rotation=30, ha="right", fontsize=9)
    ax.set_title(f"Unit Prices, Rotation of {state.as_of}")
    ax.set_ylabel("Price per item")
    ax.grid(True, axis="y", alpha=0.2)
    ax.legend(loc="upper left")

    buf = BytesIO()
    fig.tight_layout()
    fig.savefig(buf, format="png", dpi=140)
    plt.close(fig)
    buf.seek(0)
    return File(buf, filename=f"rotation_{state.as_of}.png")
