"""Pure derivations between the on-chain steps of a bootstrap run.

Nothing here touches the network: given descriptors and settings it returns
the values the orchestrator passes to its collaborators. Keeping these pure is
what lets the orchestrator's step sequence be tested against a fake ledger.
"""

from __future__ import annotations

from eth_utils import to_checksum_address

from pool_bootstrap.bootstrap.types import (
    AssetDescriptor,
    CanonicalPair,
    LiquidityRequest,
    PoolIdentity,
)
from pool_bootstrap.core.errors import LiquidityDerivationFailure
from pool_bootstrap.core.utils.liquidity_math import (
    MAX_TICK,
    MIN_TICK,
    amounts_for_liquidity,
    is_valid_sqrt_price,
    liq_for_amounts,
    slippage_max,
    sqrt_price_x96_from_tick,
)
from pool_bootstrap.core.utils.uniswap_v4 import (
    build_mint_and_settle_pair_unlock_data,
)


def split_supply(total_supply: int) -> tuple[int, int]:
    """Return ``(issuer_share, partner_share)``; the partner takes the odd unit."""
    total_supply = int(total_supply)
    if total_supply < 0:
        raise ValueError("total_supply must be non-negative")
    issuer = total_supply // 2
    return issuer, total_supply - issuer


def canonicalize(
    first: tuple[AssetDescriptor, int],
    second: tuple[AssetDescriptor, int],
) -> CanonicalPair:
    """Order two ``(asset, amount)`` pairs by numeric address value."""
    (asset_a, amount_a), (asset_b, amount_b) = first, second
    key_a = int(asset_a.address, 16)
    key_b = int(asset_b.address, 16)
    if key_a == key_b:
        raise ValueError(f"cannot pair {asset_a.address} with itself")
    if key_a < key_b:
        return CanonicalPair(asset_a, asset_b, int(amount_a), int(amount_b))
    return CanonicalPair(asset_b, asset_a, int(amount_b), int(amount_a))


def build_pool_identity(
    pair: CanonicalPair, *, fee: int, tick_spacing: int, hooks: str
) -> PoolIdentity:
    return PoolIdentity(
        currency0=to_checksum_address(pair.currency0),
        currency1=to_checksum_address(pair.currency1),
        fee=int(fee),
        tick_spacing=int(tick_spacing),
        hooks=to_checksum_address(hooks),
    )


def _check_range(tick_lower: int, tick_upper: int, tick_spacing: int) -> None:
    if tick_lower >= tick_upper:
        raise LiquidityDerivationFailure(
            f"tick_lower {tick_lower} must be below tick_upper {tick_upper}"
        )
    if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
        raise LiquidityDerivationFailure(
            f"range [{tick_lower}, {tick_upper}] exceeds [{MIN_TICK}, {MAX_TICK}]"
        )
    if tick_spacing > 0 and (tick_lower % tick_spacing or tick_upper % tick_spacing):
        raise LiquidityDerivationFailure(
            f"range [{tick_lower}, {tick_upper}] is not aligned to spacing {tick_spacing}"
        )


def derive_liquidity_request(
    pair: CanonicalPair,
    *,
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
    tick_spacing: int,
    recipient: str,
    slippage_bps: int,
) -> LiquidityRequest:
    """Largest liquidity both canonical deposits can fund at ``sqrt_price_x96``.

    Uses the pool's own conversion (``getSqrtPriceAtTick`` and
    ``getLiquidityForAmounts``) so the mint is consistent with on-chain
    accounting. Maxima are the deposits inflated by ``slippage_bps``.
    """
    tick_lower, tick_upper = int(tick_lower), int(tick_upper)
    _check_range(tick_lower, tick_upper, int(tick_spacing))
    if not is_valid_sqrt_price(sqrt_price_x96):
        raise LiquidityDerivationFailure(
            f"starting sqrtPriceX96 {sqrt_price_x96} is outside the representable range"
        )

    sqrt_lower = sqrt_price_x96_from_tick(tick_lower)
    sqrt_upper = sqrt_price_x96_from_tick(tick_upper)
    try:
        liquidity = liq_for_amounts(
            int(sqrt_price_x96), sqrt_lower, sqrt_upper, pair.amount0, pair.amount1
        )
    except OverflowError as exc:
        raise LiquidityDerivationFailure(f"liquidity overflows uint128: {exc}") from exc
    if liquidity <= 0:
        raise LiquidityDerivationFailure(
            f"deposits ({pair.amount0}, {pair.amount1}) fund zero liquidity "
            f"in [{tick_lower}, {tick_upper}] at sqrtPriceX96 {sqrt_price_x96}"
        )

    expected0, expected1 = amounts_for_liquidity(
        int(sqrt_price_x96), tick_lower, tick_upper, liquidity, round_up=True
    )
    amount0_max = slippage_max(pair.amount0, slippage_bps)
    amount1_max = slippage_max(pair.amount1, slippage_bps)
    if expected0 > amount0_max or expected1 > amount1_max:
        raise LiquidityDerivationFailure(
            f"required amounts ({expected0}, {expected1}) exceed maxima "
            f"({amount0_max}, {amount1_max})"
        )

    return LiquidityRequest(
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        liquidity=liquidity,
        amount0_max=amount0_max,
        amount1_max=amount1_max,
        recipient=to_checksum_address(recipient),
        amount0_expected=expected0,
        amount1_expected=expected1,
    )


def build_unlock_data(identity: PoolIdentity, request: LiquidityRequest) -> bytes:
    """``[MINT_POSITION, SETTLE_PAIR]`` for ``modifyLiquidities``; no hook data."""
    return build_mint_and_settle_pair_unlock_data(
        key=identity.as_tuple(),
        tick_lower=request.tick_lower,
        tick_upper=request.tick_upper,
        liquidity=request.liquidity,
        amount0_max=request.amount0_max,
        amount1_max=request.amount1_max,
        recipient=request.recipient,
        hook_data=b"",
    )
