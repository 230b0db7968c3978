"""Concentrated-liquidity math shared by the planner and the v4 adapter.

Integer ports of the pieces of v4-core / v4-periphery the bootstrap flow needs:
``TickMath.getSqrtPriceAtTick``, ``LiquidityAmounts.getLiquidityForAmounts`` and
``SqrtPriceMath.getAmount{0,1}Delta``. Everything here must agree bit-for-bit
with on-chain accounting, so no floats are used on the liquidity path.
"""

from __future__ import annotations

import math
from decimal import Decimal
from fractions import Fraction

from pool_bootstrap.core.constants.base import MAX_UINT128

Q96 = 1 << 96
Q32 = 1 << 32
MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_PRICE = 4295128739
MAX_SQRT_PRICE = 1461446703485210103287273052203988822378723970342
MAX_TICK_SPACING = 32767
MIN_TICK_SPACING = 1


def mul_div(a: int, b: int, denominator: int) -> int:
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    return (a * b) // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    result = mul_div(a, b, denominator)
    if (a * b) % denominator:
        result += 1
    return result


def div_rounding_up(a: int, b: int) -> int:
    return -(-a // b)


def to_uint128(value: int) -> int:
    if value < 0 or value > MAX_UINT128:
        raise OverflowError(f"value {value} does not fit in uint128")
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Ticks
# ─────────────────────────────────────────────────────────────────────────────


def sqrt_price_x96_from_tick(
    tick: int, *, min_tick: int = MIN_TICK, max_tick: int = MAX_TICK
) -> int:
    if tick < min_tick or tick > max_tick:
        raise ValueError(f"tick {tick} out of range [{min_tick}, {max_tick}]")

    abs_tick = tick if tick >= 0 else -tick
    ratio = (
        0xFFFCB933BD6FAD37AA2D162D1A594001
        if abs_tick & 0x1
        else 0x100000000000000000000000000000000
    )

    for bit, factor in _TICK_FACTORS:
        if abs_tick & bit:
            ratio = (ratio * factor) >> 128

    if tick > 0:
        ratio = ((1 << 256) - 1) // ratio

    # Round up so that getTickAtSqrtPrice(getSqrtPriceAtTick(t)) == t.
    sqrt_price_x96 = ratio >> 32
    if ratio & (Q32 - 1):
        sqrt_price_x96 += 1
    return int(sqrt_price_x96)


_TICK_FACTORS = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)


def tick_from_sqrt_price_x96(sqrt_price_x96: int) -> int:
    """Greatest tick whose sqrt price is <= *sqrt_price_x96* (TickMath.getTickAtSqrtPrice)."""
    if sqrt_price_x96 < MIN_SQRT_PRICE or sqrt_price_x96 >= MAX_SQRT_PRICE:
        raise ValueError(
            f"sqrtPriceX96 {sqrt_price_x96} out of range [{MIN_SQRT_PRICE}, {MAX_SQRT_PRICE})"
        )
    lo, hi = MIN_TICK, MAX_TICK
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if sqrt_price_x96_from_tick(mid) <= sqrt_price_x96:
            lo = mid
        else:
            hi = mid - 1
    return lo


def is_valid_sqrt_price(sqrt_price_x96: int) -> bool:
    return MIN_SQRT_PRICE <= int(sqrt_price_x96) < MAX_SQRT_PRICE


def full_range_ticks(tick_spacing: int) -> tuple[int, int]:
    if tick_spacing <= 0:
        raise ValueError("tick_spacing must be > 0")
    # Mirror Solidity's int24 division behavior (truncate toward 0).
    lower = math.trunc(MIN_TICK / tick_spacing) * tick_spacing
    upper = math.trunc(MAX_TICK / tick_spacing) * tick_spacing
    return int(lower), int(upper)


# ─────────────────────────────────────────────────────────────────────────────
# Prices
# ─────────────────────────────────────────────────────────────────────────────


def price_to_sqrt_price_x96(
    price: str | int | Decimal | Fraction,
    decimals0: int = 0,
    decimals1: int = 0,
) -> int:
    """Encode ``price`` (token1 per token0, human units) as a floor sqrtPriceX96."""
    ratio = Fraction(str(price)) if not isinstance(price, Fraction) else price
    if ratio <= 0:
        raise ValueError("price must be positive")
    ratio *= Fraction(10) ** (int(decimals1) - int(decimals0))
    return math.isqrt((ratio.numerator << 192) // ratio.denominator)


def sqrt_price_x96_to_price(sqrt_price_x96: int, decimals0: int = 0, decimals1: int = 0) -> Decimal:
    if sqrt_price_x96 <= 0:
        return Decimal(0)
    raw = Fraction(sqrt_price_x96 * sqrt_price_x96, 1 << 192)
    raw /= Fraction(10) ** (int(decimals1) - int(decimals0))
    return Decimal(raw.numerator) / Decimal(raw.denominator)


# ─────────────────────────────────────────────────────────────────────────────
# LiquidityAmounts
# ─────────────────────────────────────────────────────────────────────────────


def _sorted_bounds(sqrt_a: int, sqrt_b: int) -> tuple[int, int]:
    return (sqrt_a, sqrt_b) if sqrt_a <= sqrt_b else (sqrt_b, sqrt_a)


def liq_for_amt0(sqrt_a: int, sqrt_b: int, amount0: int) -> int:
    a, b = _sorted_bounds(int(sqrt_a), int(sqrt_b))
    intermediate = mul_div(a, b, Q96)
    return to_uint128(mul_div(int(amount0), intermediate, b - a))


def liq_for_amt1(sqrt_a: int, sqrt_b: int, amount1: int) -> int:
    a, b = _sorted_bounds(int(sqrt_a), int(sqrt_b))
    return to_uint128(mul_div(int(amount1), Q96, b - a))


def liq_for_amounts(
    sqrt_p: int, sqrt_a: int, sqrt_b: int, amount0: int, amount1: int
) -> int:
    a, b = _sorted_bounds(int(sqrt_a), int(sqrt_b))
    p = int(sqrt_p)
    if p <= a:
        return liq_for_amt0(a, b, amount0)
    if p < b:
        return min(liq_for_amt0(p, b, amount0), liq_for_amt1(a, p, amount1))
    return liq_for_amt1(a, b, amount1)


# ─────────────────────────────────────────────────────────────────────────────
# SqrtPriceMath
# ─────────────────────────────────────────────────────────────────────────────


def amount0_delta(sqrt_a: int, sqrt_b: int, liquidity: int, *, round_up: bool) -> int:
    a, b = _sorted_bounds(int(sqrt_a), int(sqrt_b))
    if a == 0:
        raise ValueError("sqrt price must be > 0")
    numerator1 = int(liquidity) << 96
    numerator2 = b - a
    if round_up:
        return div_rounding_up(mul_div_rounding_up(numerator1, numerator2, b), a)
    return mul_div(numerator1, numerator2, b) // a


def amount1_delta(sqrt_a: int, sqrt_b: int, liquidity: int, *, round_up: bool) -> int:
    a, b = _sorted_bounds(int(sqrt_a), int(sqrt_b))
    if round_up:
        return mul_div_rounding_up(int(liquidity), b - a, Q96)
    return mul_div(int(liquidity), b - a, Q96)


def amounts_for_liquidity(
    sqrt_p: int,
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
    *,
    round_up: bool = True,
) -> tuple[int, int]:
    """Token amounts a pool charges for minting *liquidity* at the given price.

    Follows ``Pool.modifyLiquidity``: the current tick, not the raw sqrt price,
    decides which side of the range is funded.
    """
    tick = tick_from_sqrt_price_x96(int(sqrt_p))
    sqrt_lower = sqrt_price_x96_from_tick(int(tick_lower))
    sqrt_upper = sqrt_price_x96_from_tick(int(tick_upper))
    if tick < tick_lower:
        return amount0_delta(sqrt_lower, sqrt_upper, liquidity, round_up=round_up), 0
    if tick < tick_upper:
        return (
            amount0_delta(sqrt_p, sqrt_upper, liquidity, round_up=round_up),
            amount1_delta(sqrt_lower, sqrt_p, liquidity, round_up=round_up),
        )
    return 0, amount1_delta(sqrt_lower, sqrt_upper, liquidity, round_up=round_up)


# ─────────────────────────────────────────────────────────────────────────────
# Slippage
# ─────────────────────────────────────────────────────────────────────────────


def slippage_max(amount: int, slippage_bps: int) -> int:
    bps = max(0, int(slippage_bps))
    return (int(amount) * (10_000 + bps)) // 10_000
