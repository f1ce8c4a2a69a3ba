PAYMENT_EMOJIS = {
    "GOLD_NUGGET": ":gold_nugget:",
    "IRON_NUGGET": ":iron_nugget:",
    "IRON_INGOT": ":Iron_Ingot:",
    "DIAMOND": ":diamond:",
    "EMERALD": ":emerald:",
}

PAYMENT_COLORS = {
    "GOLD_NUGGET": 0xF1C40F,
    "IRON_NUGGET": 0xBDC3C7,
    "IRON_INGOT": 0x95A5A6,
    "GOLD_INGOT": 0xF39C12,
    "DIAMOND": 0x1ABC9C,
    "EMERALD": 0x2ECC71,
}


def normalize_payment_type(value: object, default: str = "GOLD_NUGGET") -> str:
    text = str(value or "").strip().upper()
    return text or default


def payment_emoji(value: object) -> str:
    text = str(value or "").strip().upper()
    return PAYMENT_EMOJIS.get(text, text or "?")


def payment_color(value: object) -> int:
    return PAYMENT_COLORS.get(str(value or "").strip().upper(), 0x95A5A6)
