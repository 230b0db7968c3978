from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol, runtime_checkable

from pool_bootstrap.core.utils.uniswap_v4 import PoolKeyTuple, pool_id

# ─────────────────────────────────────────────────────────────────────────────
# ASSETS
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AssetSpec:
    """What to issue: constructor inputs plus the amount to deposit later."""

    name: str
    symbol: str
    decimals: int
    total_supply: int  # raw units
    deposit: int  # raw units, before canonicalization


@dataclass(frozen=True)
class AssetDescriptor:
    address: str
    decimals: int
    total_supply: int
    issuer_share: int
    partner_share: int
    symbol: str = ""
    tx_hash: str | None = None

    def __post_init__(self) -> None:
        if self.issuer_share + self.partner_share != self.total_supply:
            raise ValueError(
                f"{self.symbol or self.address}: issuer share {self.issuer_share} + "
                f"partner share {self.partner_share} != total supply {self.total_supply}"
            )


@dataclass(frozen=True)
class CanonicalPair:
    # asset0 always has the numerically lower address; amounts travel with
    # their asset, never with the slot they were configured in.
    asset0: AssetDescriptor
    asset1: AssetDescriptor
    amount0: int
    amount1: int

    def __post_init__(self) -> None:
        if int(self.asset0.address, 16) >= int(self.asset1.address, 16):
            raise ValueError(
                f"asset0 {self.asset0.address} must sort strictly below "
                f"asset1 {self.asset1.address}"
            )

    @property
    def currency0(self) -> str:
        return self.asset0.address

    @property
    def currency1(self) -> str:
        return self.asset1.address


# ─────────────────────────────────────────────────────────────────────────────
# POOL
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PoolIdentity:
    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str

    def as_tuple(self) -> PoolKeyTuple:
        return (
            self.currency0,
            self.currency1,
            int(self.fee),
            int(self.tick_spacing),
            self.hooks,
        )

    @property
    def pool_id(self) -> str:
        return pool_id(self.as_tuple())


@dataclass(frozen=True)
class LiquidityRequest:
    tick_lower: int
    tick_upper: int
    liquidity: int
    amount0_max: int
    amount1_max: int
    recipient: str
    amount0_expected: int = 0  # what the pool charges at the starting price
    amount1_expected: int = 0
    deadline: int | None = None  # set at submission time

    def with_deadline(self, deadline: int) -> LiquidityRequest:
        return replace(self, deadline=int(deadline))


@dataclass(frozen=True)
class PositionReceipt:
    tx_hash: str
    token_id: int | None = None
    liquidity: int | None = None


# ─────────────────────────────────────────────────────────────────────────────
# RUN STATE
# ─────────────────────────────────────────────────────────────────────────────


class RunState(Enum):
    NOT_STARTED = 0
    ASSETS_ISSUED = 1
    PAIR_CANONICALIZED = 2
    POOL_INITIALIZED = 3
    ALLOWANCES_GRANTED = 4
    LIQUIDITY_DERIVED = 5
    LIQUIDITY_SUBMITTED = 6
    FAILED = -1

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.LIQUIDITY_SUBMITTED, RunState.FAILED)

    def next(self) -> RunState:
        if self.is_terminal:
            raise ValueError(f"{self.name} is terminal")
        return RunState(self.value + 1)


STEP_LABELS: dict[RunState, str] = {
    RunState.ASSETS_ISSUED: "A: issue assets",
    RunState.PAIR_CANONICALIZED: "B: canonicalize pair",
    RunState.POOL_INITIALIZED: "C/D: build pool identity and initialize",
    RunState.ALLOWANCES_GRANTED: "E: grant allowances",
    RunState.LIQUIDITY_DERIVED: "F: derive liquidity",
    RunState.LIQUIDITY_SUBMITTED: "G: submit liquidity",
}


@dataclass
class RunReport:
    chain_id: int
    state: RunState = RunState.NOT_STARTED
    assets: list[AssetDescriptor] = field(default_factory=list)
    pair: CanonicalPair | None = None
    identity: PoolIdentity | None = None
    sqrt_price_x96: int | None = None
    starting_tick: int | None = None
    allowance_txs: list[str] = field(default_factory=list)
    request: LiquidityRequest | None = None
    receipt: PositionReceipt | None = None
    failed_step: RunState | None = None
    failure: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.LIQUIDITY_SUBMITTED


# ─────────────────────────────────────────────────────────────────────────────
# COLLABORATORS
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class TokenIssuer(Protocol):
    async def issue(self, spec: AssetSpec) -> AssetDescriptor: ...


@runtime_checkable
class PoolProtocol(Protocol):
    @property
    def liquidity_spender(self) -> str: ...

    async def initialize_pool(
        self, identity: PoolIdentity, sqrt_price_x96: int
    ) -> int: ...

    async def grant_allowance(
        self, asset: str, spender: str, amount: int, expiration: int
    ) -> str | None: ...

    async def latest_timestamp(self) -> int: ...

    async def submit_liquidity(
        self, unlock_data: bytes, deadline: int
    ) -> PositionReceipt: ...
