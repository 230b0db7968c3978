from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation


def _to_decimal(value: str | int | float | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    return Decimal(str(value).strip().replace("_", ""))


def to_erc20_raw(amount_tokens: str | int | float | Decimal, decimals: int) -> int:
    try:
        amt = _to_decimal(amount_tokens)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid token amount: {amount_tokens}") from exc
    if amt < 0:
        raise ValueError("Amount must be non-negative")
    scale = Decimal(10) ** int(decimals)
    return int((amt * scale).to_integral_value(rounding=ROUND_DOWN))


def from_erc20_raw(amount_raw: int, decimals: int) -> Decimal:
    return Decimal(int(amount_raw)) / (Decimal(10) ** int(decimals))


def parse_token_amount(value: str | int, decimals: int) -> int:
    """Accept either a raw integer (``2500000000``, ``"raw:2500000000"``) or a
    human amount string (``"25"``, ``"2_500_000"``) and return base units."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid token amount: {value}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("Amount must be non-negative")
        return value
    text = str(value).strip()
    if text.lower().startswith("raw:"):
        raw = int(text[4:].strip().replace("_", ""), 0)
        if raw < 0:
            raise ValueError("Amount must be non-negative")
        return raw
    return to_erc20_raw(text, decimals)
