"""Deployment orchestrator: the seven-step bootstrap run as a linear state machine.

    NOT_STARTED -> ASSETS_ISSUED -> PAIR_CANONICALIZED -> POOL_INITIALIZED
      -> ALLOWANCES_GRANTED -> LIQUIDITY_DERIVED -> LIQUIDITY_SUBMITTED

Any step failure moves the run to ``FAILED`` and raises ``BootstrapFailed``.
Nothing is retried: a resubmitted write could issue assets twice or hit an
already-initialized pool.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from pool_bootstrap.bootstrap.planner import (
    build_pool_identity,
    build_unlock_data,
    canonicalize,
    derive_liquidity_request,
    split_supply,
)
from pool_bootstrap.bootstrap.settings import BootstrapSettings
from pool_bootstrap.bootstrap.types import (
    STEP_LABELS,
    AssetDescriptor,
    AssetSpec,
    CanonicalPair,
    LiquidityRequest,
    PoolIdentity,
    PoolProtocol,
    PositionReceipt,
    RunReport,
    RunState,
    TokenIssuer,
)
from pool_bootstrap.core.constants import MAX_UINT48, MAX_UINT160
from pool_bootstrap.core.errors import (
    AllowanceFailure,
    AtomicSubmissionFailure,
    BootstrapError,
    BootstrapFailed,
    InvalidPriceOrIdentity,
    IssuanceFailure,
    LiquidityDerivationFailure,
)

T = TypeVar("T")


class DeploymentOrchestrator:
    def __init__(
        self,
        settings: BootstrapSettings,
        token_issuer: TokenIssuer,
        pool_protocol: PoolProtocol,
    ) -> None:
        self.settings = settings
        self.token_issuer = token_issuer
        self.pool_protocol = pool_protocol

        self.state = RunState.NOT_STARTED
        self.failed_step: RunState | None = None
        self.failure: BootstrapError | None = None
        self.report = RunReport(chain_id=settings.chain_id)

    # ─────────────────────────────────────────────────────────────────────
    # State machine
    # ─────────────────────────────────────────────────────────────────────

    def _advance(self, target: RunState) -> None:
        expected = self.state.next()
        if target is not expected:
            raise RuntimeError(
                f"illegal transition {self.state.name} -> {target.name} "
                f"(expected {expected.name})"
            )
        self.state = target
        self.report.state = target
        logger.info(f"[{STEP_LABELS[target]}] -> {target.name}")

    def _fail(self, step: RunState, cause: BootstrapError) -> BootstrapFailed:
        self.failed_step = step
        self.failure = cause
        self.state = RunState.FAILED
        self.report.state = RunState.FAILED
        self.report.failed_step = step
        self.report.failure = f"{type(cause).__name__}: {cause}"
        logger.error(
            f"Bootstrap failed at [{STEP_LABELS[step]}]: {type(cause).__name__}: {cause}"
        )
        return BootstrapFailed(step, cause, self.report)

    async def _run_step(
        self,
        target: RunState,
        error_cls: type[BootstrapError],
        body: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            result = await body()
        except BootstrapError as exc:
            raise self._fail(target, exc) from exc
        except Exception as exc:
            wrapped = error_cls(f"{type(exc).__name__}: {exc}")
            wrapped.__cause__ = exc
            raise self._fail(target, wrapped) from exc
        self._advance(target)
        return result

    # ─────────────────────────────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────────────────────────────

    async def _issue_one(self, spec: AssetSpec) -> AssetDescriptor:
        descriptor = await self.token_issuer.issue(spec)
        if descriptor.decimals != spec.decimals:
            raise IssuanceFailure(
                f"{spec.symbol}: issued with {descriptor.decimals} decimals, "
                f"expected {spec.decimals}"
            )
        if descriptor.total_supply != spec.total_supply:
            raise IssuanceFailure(
                f"{spec.symbol}: issued supply {descriptor.total_supply}, "
                f"expected {spec.total_supply}"
            )
        expected_split = split_supply(spec.total_supply)
        if (descriptor.issuer_share, descriptor.partner_share) != expected_split:
            raise IssuanceFailure(
                f"{spec.symbol}: shares ({descriptor.issuer_share}, "
                f"{descriptor.partner_share}) != {expected_split}"
            )
        logger.info(
            f"Issued {spec.symbol} at {descriptor.address} "
            f"(supply={descriptor.total_supply}, decimals={descriptor.decimals})"
        )
        return descriptor

    async def _issue_assets(self) -> tuple[AssetDescriptor, AssetDescriptor]:
        asset_a = await self._issue_one(self.settings.asset_a)
        self.report.assets.append(asset_a)
        asset_b = await self._issue_one(self.settings.asset_b)
        self.report.assets.append(asset_b)
        return asset_a, asset_b

    async def _canonicalize(
        self, asset_a: AssetDescriptor, asset_b: AssetDescriptor
    ) -> CanonicalPair:
        pair = canonicalize(
            (asset_a, self.settings.asset_a.deposit),
            (asset_b, self.settings.asset_b.deposit),
        )
        self.report.pair = pair
        logger.info(
            f"Canonical order: currency0={pair.asset0.symbol or pair.currency0} "
            f"(amount0={pair.amount0}), currency1={pair.asset1.symbol or pair.currency1} "
            f"(amount1={pair.amount1})"
        )
        return pair

    async def _initialize_pool(self, pair: CanonicalPair) -> tuple[PoolIdentity, int]:
        identity = build_pool_identity(
            pair,
            fee=self.settings.fee,
            tick_spacing=self.settings.tick_spacing,
            hooks=self.settings.hooks,
        )
        self.report.identity = identity
        self.report.sqrt_price_x96 = self.settings.sqrt_price_x96
        logger.info(
            f"Initializing pool {identity.pool_id} at sqrtPriceX96={self.settings.sqrt_price_x96}"
        )
        tick = await self.pool_protocol.initialize_pool(
            identity, self.settings.sqrt_price_x96
        )
        self.report.starting_tick = int(tick)
        logger.info(f"Pool initialized, starting tick {tick}")
        return identity, int(tick)

    async def _grant_allowances(self, pair: CanonicalPair) -> None:
        spender = self.pool_protocol.liquidity_spender
        for asset in (pair.asset0, pair.asset1):
            tx_hash = await self.pool_protocol.grant_allowance(
                asset.address, spender, MAX_UINT160, MAX_UINT48
            )
            if tx_hash:
                self.report.allowance_txs.append(tx_hash)
            logger.info(f"Allowance granted for {asset.symbol or asset.address} -> {spender}")

    async def _derive(self, pair: CanonicalPair) -> LiquidityRequest:
        request = derive_liquidity_request(
            pair,
            sqrt_price_x96=self.settings.sqrt_price_x96,
            tick_lower=self.settings.tick_lower,
            tick_upper=self.settings.tick_upper,
            tick_spacing=self.settings.tick_spacing,
            recipient=self.settings.recipient,
            slippage_bps=self.settings.slippage_bps,
        )
        self.report.request = request
        logger.info(
            f"Derived liquidity {request.liquidity} in [{request.tick_lower}, {request.tick_upper}] "
            f"(expected {request.amount0_expected}/{request.amount1_expected}, "
            f"max {request.amount0_max}/{request.amount1_max})"
        )
        return request

    async def _submit(
        self, identity: PoolIdentity, request: LiquidityRequest
    ) -> PositionReceipt:
        now = await self.pool_protocol.latest_timestamp()
        request = request.with_deadline(int(now) + self.settings.deadline_seconds)
        self.report.request = request
        unlock_data = build_unlock_data(identity, request)
        logger.info(f"Submitting mint + settle with deadline {request.deadline}")
        receipt = await self.pool_protocol.submit_liquidity(
            unlock_data, int(request.deadline)
        )
        self.report.receipt = receipt
        logger.info(
            f"Liquidity submitted in {receipt.tx_hash} "
            f"(token_id={receipt.token_id}, liquidity={receipt.liquidity})"
        )
        return receipt

    # ─────────────────────────────────────────────────────────────────────
    # Entry point
    # ─────────────────────────────────────────────────────────────────────

    async def run(self) -> RunReport:
        if self.state is not RunState.NOT_STARTED:
            raise RuntimeError(f"Orchestrator already ran (state={self.state.name})")

        asset_a, asset_b = await self._run_step(
            RunState.ASSETS_ISSUED, IssuanceFailure, self._issue_assets
        )
        pair = await self._run_step(
            RunState.PAIR_CANONICALIZED,
            BootstrapError,
            lambda: self._canonicalize(asset_a, asset_b),
        )
        identity, _tick = await self._run_step(
            RunState.POOL_INITIALIZED,
            InvalidPriceOrIdentity,
            lambda: self._initialize_pool(pair),
        )
        await self._run_step(
            RunState.ALLOWANCES_GRANTED,
            AllowanceFailure,
            lambda: self._grant_allowances(pair),
        )
        request = await self._run_step(
            RunState.LIQUIDITY_DERIVED,
            LiquidityDerivationFailure,
            lambda: self._derive(pair),
        )
        await self._run_step(
            RunState.LIQUIDITY_SUBMITTED,
            AtomicSubmissionFailure,
            lambda: self._submit(identity, request),
        )
        return self.report

