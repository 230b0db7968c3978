"""Validated run parameters for a bootstrap run.

Built from the ``bootstrap`` section of ``config.json``::

    {
      "chain": "base-sepolia",
      "partner": "0x...",
      "asset_a": {"name": "Wrapped Bitcoin Test", "symbol": "tBTC", "decimals": 8,
                  "total_supply": "100", "deposit": "25"},
      "asset_b": {"name": "USD Test", "symbol": "tUSD", "decimals": 6,
                  "total_supply": "10_000_000", "deposit": "2_500_000"},
      "fee": 3000,
      "tick_spacing": 60,
      "sqrt_price_x96": 79228162514264337593543950336
    }

Amounts accept human strings (scaled by ``decimals``) or raw integers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from eth_utils import is_hex_address, to_checksum_address

from pool_bootstrap.bootstrap.planner import split_supply
from pool_bootstrap.bootstrap.types import AssetSpec
from pool_bootstrap.core.constants.base import (
    DEFAULT_DEADLINE_SECONDS,
    DEFAULT_FEE,
    DEFAULT_SLIPPAGE_BPS,
    DEFAULT_TICK_SPACING,
    ZERO_ADDRESS,
)
from pool_bootstrap.core.constants.chains import resolve_chain_id
from pool_bootstrap.core.constants.contracts import (
    PERMIT2,
    UNISWAP_V4_POOL_MANAGER,
    UNISWAP_V4_POSITION_MANAGER,
    UNISWAP_V4_STATE_VIEW,
)
from pool_bootstrap.core.utils.liquidity_math import (
    Q96,
    full_range_ticks,
    price_to_sqrt_price_x96,
)
from pool_bootstrap.core.utils.units import parse_token_amount

MAX_LP_FEE = 1_000_000


def _address(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not is_hex_address(value):
        raise ValueError(f"{field_name} must be a 0x address, got {value!r}")
    return to_checksum_address(value)


def _asset_spec(raw: Any, field_name: str) -> AssetSpec:
    if not isinstance(raw, dict):
        raise ValueError(f"{field_name} must be an object")
    try:
        decimals = int(raw["decimals"])
        symbol = str(raw["symbol"])
        total_supply = parse_token_amount(raw["total_supply"], decimals)
        deposit = parse_token_amount(raw.get("deposit", 0), decimals)
    except KeyError as exc:
        raise ValueError(f"{field_name}.{exc.args[0]} is required") from exc
    if not 0 <= decimals <= 255:
        raise ValueError(f"{field_name}.decimals must fit in uint8")
    if total_supply <= 0:
        raise ValueError(f"{field_name}.total_supply must be > 0")
    issuer_share, _ = split_supply(total_supply)
    if deposit > issuer_share:
        raise ValueError(
            f"{field_name}.deposit {deposit} exceeds the signer's share {issuer_share} "
            f"of total_supply {total_supply}"
        )
    return AssetSpec(
        name=str(raw.get("name") or symbol),
        symbol=symbol,
        decimals=decimals,
        total_supply=total_supply,
        deposit=deposit,
    )


def _protocol_address(
    section: dict[str, Any], key: str, defaults: dict[int, str], chain_id: int
) -> str:
    value = section.get(key) or defaults.get(chain_id)
    if not value:
        raise ValueError(
            f"{key} is required for chain {chain_id} (no known deployment)"
        )
    return _address(value, key)


@dataclass(frozen=True)
class BootstrapSettings:
    chain_id: int
    asset_a: AssetSpec
    asset_b: AssetSpec
    partner: str
    recipient: str
    fee: int
    tick_spacing: int
    hooks: str
    sqrt_price_x96: int
    tick_lower: int
    tick_upper: int
    slippage_bps: int
    deadline_seconds: int
    pool_manager: str
    position_manager: str
    permit2: str
    state_view: str | None = None

    @classmethod
    def from_config(
        cls,
        section: dict[str, Any],
        *,
        wallet_address: str | None = None,
    ) -> BootstrapSettings:
        if "chain" not in section and "chain_id" not in section:
            raise ValueError("bootstrap.chain (or chain_id) is required")
        chain_id = resolve_chain_id(section.get("chain_id", section.get("chain")))

        partner = _address(section.get("partner"), "partner")
        recipient_raw = section.get("recipient") or wallet_address
        recipient = _address(recipient_raw, "recipient")

        fee = int(section.get("fee", DEFAULT_FEE))
        if not 0 <= fee <= MAX_LP_FEE:
            raise ValueError(f"fee must be within [0, {MAX_LP_FEE}], got {fee}")
        tick_spacing = int(section.get("tick_spacing", DEFAULT_TICK_SPACING))
        if tick_spacing <= 0:
            raise ValueError("tick_spacing must be > 0")

        if "sqrt_price_x96" in section:
            sqrt_price_x96 = int(section["sqrt_price_x96"])
        elif "starting_price" in section:
            # currency1 per currency0 in raw units
            sqrt_price_x96 = price_to_sqrt_price_x96(section["starting_price"])
        else:
            sqrt_price_x96 = Q96

        # Range validity is checked when liquidity is derived, not here.
        default_lower, default_upper = full_range_ticks(tick_spacing)
        tick_lower = int(section.get("tick_lower", default_lower))
        tick_upper = int(section.get("tick_upper", default_upper))

        slippage_bps = int(section.get("slippage_bps", DEFAULT_SLIPPAGE_BPS))
        if slippage_bps < 0:
            raise ValueError("slippage_bps must be >= 0")
        deadline_seconds = int(
            section.get("deadline_seconds", DEFAULT_DEADLINE_SECONDS)
        )
        if deadline_seconds <= 0:
            raise ValueError("deadline_seconds must be > 0")

        state_view = section.get("state_view") or UNISWAP_V4_STATE_VIEW.get(chain_id)

        return cls(
            chain_id=chain_id,
            asset_a=_asset_spec(section.get("asset_a"), "asset_a"),
            asset_b=_asset_spec(section.get("asset_b"), "asset_b"),
            partner=partner,
            recipient=recipient,
            fee=fee,
            tick_spacing=tick_spacing,
            hooks=_address(section.get("hooks", ZERO_ADDRESS), "hooks"),
            sqrt_price_x96=sqrt_price_x96,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            slippage_bps=slippage_bps,
            deadline_seconds=deadline_seconds,
            pool_manager=_protocol_address(
                section, "pool_manager", UNISWAP_V4_POOL_MANAGER, chain_id
            ),
            position_manager=_protocol_address(
                section, "position_manager", UNISWAP_V4_POSITION_MANAGER, chain_id
            ),
            permit2=_protocol_address(section, "permit2", PERMIT2, chain_id),
            state_view=_address(state_view, "state_view") if state_view else None,
        )

    def with_overrides(
        self,
        *,
        slippage_bps: int | None = None,
        deadline_seconds: int | None = None,
    ) -> BootstrapSettings:
        changes: dict[str, int] = {}
        if slippage_bps is not None:
            if int(slippage_bps) < 0:
                raise ValueError("slippage_bps must be >= 0")
            changes["slippage_bps"] = int(slippage_bps)
        if deadline_seconds is not None:
            if int(deadline_seconds) <= 0:
                raise ValueError("deadline_seconds must be > 0")
            changes["deadline_seconds"] = int(deadline_seconds)
        return replace(self, **changes) if changes else self
