from __future__ import annotations

from dataclasses import replace

import pytest
from eth_utils import to_checksum_address

from pool_bootstrap.bootstrap.orchestrator import DeploymentOrchestrator
from pool_bootstrap.bootstrap.types import (
    AssetDescriptor,
    PoolProtocol,
    RunState,
    TokenIssuer,
)
from pool_bootstrap.core.constants import MAX_UINT48, MAX_UINT160
from pool_bootstrap.core.errors import (
    AllowanceFailure,
    AlreadyInitialized,
    BootstrapError,
    BootstrapFailed,
    DeadlineExpired,
    InvalidPriceOrIdentity,
    IssuanceFailure,
    LiquidityDerivationFailure,
    SlippageExceeded,
)
from pool_bootstrap.testing.fake_ledger import (
    OWNER,
    POSITION_MANAGER,
    START_TIME,
    FakeLedger,
)

ADDR_X = to_checksum_address("0x1111111111111111111111111111111111111111")
ADDR_Y = to_checksum_address("0x3333333333333333333333333333333333333333")
HAPPY_CALLS = [
    "issue",
    "issue",
    "initialize_pool",
    "grant_allowance",
    "grant_allowance",
    "latest_timestamp",
    "submit_liquidity",
]


async def _run_expecting_failure(orchestrator: DeploymentOrchestrator) -> BootstrapFailed:
    with pytest.raises(BootstrapFailed) as exc_info:
        await orchestrator.run()
    failed = exc_info.value
    assert orchestrator.state is RunState.FAILED
    assert failed.report is orchestrator.report
    assert failed.report.state is RunState.FAILED
    assert failed.report.failed_step is failed.step
    return failed


def test_fake_ledger_satisfies_both_collaborators(fake_ledger):
    assert isinstance(fake_ledger, TokenIssuer)
    assert isinstance(fake_ledger, PoolProtocol)


def test_run_state_walks_forward_only():
    assert RunState.NOT_STARTED.next() is RunState.ASSETS_ISSUED
    assert RunState.LIQUIDITY_DERIVED.next() is RunState.LIQUIDITY_SUBMITTED
    assert RunState.LIQUIDITY_SUBMITTED.is_terminal
    assert RunState.FAILED.is_terminal
    with pytest.raises(ValueError):
        RunState.FAILED.next()


# ─────────────────────────────────────────────────────────────────────────────
# Happy path
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reference_run_reaches_liquidity_submitted(reference_settings):
    ledger = FakeLedger(address_sequence=[ADDR_X, ADDR_Y])
    orchestrator = DeploymentOrchestrator(reference_settings, ledger, ledger)

    report = await orchestrator.run()

    assert report.succeeded
    assert orchestrator.state is RunState.LIQUIDITY_SUBMITTED
    assert orchestrator.failed_step is None
    assert ledger.calls == HAPPY_CALLS

    btc, usd = report.assets
    assert (btc.symbol, btc.decimals, btc.total_supply) == ("tBTC", 8, 100 * 10**8)
    assert (usd.symbol, usd.decimals, usd.total_supply) == ("tUSD", 6, 10_000_000 * 10**6)
    assert btc.issuer_share + btc.partner_share == btc.total_supply

    assert report.pair.asset0.symbol == "tBTC"
    assert (report.pair.amount0, report.pair.amount1) == (25 * 10**8, 2_500_000 * 10**6)
    assert report.identity.as_tuple()[:4] == (ADDR_X, ADDR_Y, 3000, 60)
    assert report.starting_tick == 0
    assert len(report.allowance_txs) == 2

    request = report.request
    assert request.deadline == START_TIME + 3600
    assert request.liquidity == 25 * 10**8
    assert (request.tick_lower, request.tick_upper) == (-887220, 887220)

    (position,) = ledger.positions
    assert position.owner == OWNER
    assert position.liquidity == request.liquidity
    assert position.pool_id == report.identity.pool_id
    assert position.amount0 <= request.amount0_max
    assert position.amount1 <= request.amount1_max
    assert report.receipt.token_id == position.token_id
    assert ledger.balance_of(ADDR_X, OWNER) == 50 * 10**8 - position.amount0

    for token in (ADDR_X, ADDR_Y):
        key = (OWNER.lower(), token.lower(), POSITION_MANAGER.lower())
        assert ledger.permit2_allowances[key] == (MAX_UINT160, MAX_UINT48)


@pytest.mark.asyncio
async def test_reversed_addresses_swap_amounts_with_assets(reference_settings):
    # tBTC is issued at the higher address, so tUSD becomes currency0.
    ledger = FakeLedger(address_sequence=[ADDR_Y, ADDR_X])
    report = await DeploymentOrchestrator(reference_settings, ledger, ledger).run()

    assert report.pair.asset0.symbol == "tUSD"
    assert report.pair.currency0 == ADDR_X
    assert (report.pair.amount0, report.pair.amount1) == (2_500_000 * 10**6, 25 * 10**8)
    assert report.request.amount0_max == 2_750_000 * 10**6
    assert report.request.amount1_max == 275 * 10**7
    assert ledger.positions[0].liquidity == 25 * 10**8


@pytest.mark.asyncio
async def test_run_cannot_be_repeated(reference_settings, fake_ledger):
    orchestrator = DeploymentOrchestrator(reference_settings, fake_ledger, fake_ledger)
    await orchestrator.run()
    with pytest.raises(RuntimeError):
        await orchestrator.run()
    assert fake_ledger.calls.count("issue") == 2


# ─────────────────────────────────────────────────────────────────────────────
# Failures stop the run at the failing step
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_second_run_on_same_pool_fails_already_initialized(reference_settings):
    ledger = FakeLedger(address_sequence=[ADDR_X, ADDR_Y, ADDR_X, ADDR_Y])
    await DeploymentOrchestrator(reference_settings, ledger, ledger).run()
    calls_before = len(ledger.calls)

    second = DeploymentOrchestrator(reference_settings, ledger, ledger)
    failed = await _run_expecting_failure(second)

    assert failed.step is RunState.POOL_INITIALIZED
    assert isinstance(failed.cause, AlreadyInitialized)
    assert second.failed_step is RunState.POOL_INITIALIZED
    assert ledger.calls[calls_before:] == ["issue", "issue", "initialize_pool"]
    assert len(ledger.positions) == 1


@pytest.mark.asyncio
async def test_invalid_starting_price_fails_initialization(reference_settings, fake_ledger):
    settings = replace(reference_settings, sqrt_price_x96=0)
    orchestrator = DeploymentOrchestrator(settings, fake_ledger, fake_ledger)
    failed = await _run_expecting_failure(orchestrator)
    assert failed.step is RunState.POOL_INITIALIZED
    assert isinstance(failed.cause, InvalidPriceOrIdentity)
    assert "grant_allowance" not in fake_ledger.calls


@pytest.mark.asyncio
async def test_identical_addresses_fail_canonicalization(reference_settings):
    ledger = FakeLedger(address_sequence=[ADDR_X, ADDR_X])
    failed = await _run_expecting_failure(
        DeploymentOrchestrator(reference_settings, ledger, ledger)
    )
    assert failed.step is RunState.PAIR_CANONICALIZED
    assert isinstance(failed.cause, BootstrapError)
    assert isinstance(failed.cause.__cause__, ValueError)
    assert ledger.calls == ["issue", "issue"]


@pytest.mark.asyncio
async def test_expired_deadline_mints_nothing(reference_settings):
    ledger = FakeLedger(submission_delay=3601)
    orchestrator = DeploymentOrchestrator(reference_settings, ledger, ledger)
    failed = await _run_expecting_failure(orchestrator)

    assert failed.step is RunState.LIQUIDITY_SUBMITTED
    assert isinstance(failed.cause, DeadlineExpired)
    assert failed.cause.deadline == START_TIME + 3600
    assert orchestrator.report.receipt is None
    assert ledger.positions == []


@pytest.mark.asyncio
async def test_deadline_at_exact_boundary_is_accepted(reference_settings):
    ledger = FakeLedger(submission_delay=3600)
    report = await DeploymentOrchestrator(reference_settings, ledger, ledger).run()
    assert report.succeeded


@pytest.mark.asyncio
async def test_price_drift_beyond_margin_is_slippage(reference_settings):
    ledger = FakeLedger(address_sequence=[ADDR_X, ADDR_Y], drift_sqrt_price_x96=2**95)
    orchestrator = DeploymentOrchestrator(reference_settings, ledger, ledger)
    failed = await _run_expecting_failure(orchestrator)

    assert failed.step is RunState.LIQUIDITY_SUBMITTED
    assert isinstance(failed.cause, SlippageExceeded)
    assert failed.cause.maximum == orchestrator.report.request.amount0_max
    assert ledger.positions == []
    assert ledger.balance_of(ADDR_X, OWNER) == 50 * 10**8


@pytest.mark.asyncio
async def test_allowance_failure_never_submits(reference_settings):
    ledger = FakeLedger(fail_on={"grant_allowance": AllowanceFailure("permit2 reverted")})
    orchestrator = DeploymentOrchestrator(reference_settings, ledger, ledger)
    failed = await _run_expecting_failure(orchestrator)

    assert failed.step is RunState.ALLOWANCES_GRANTED
    assert isinstance(failed.cause, AllowanceFailure)
    assert "latest_timestamp" not in ledger.calls
    assert "submit_liquidity" not in ledger.calls
    assert orchestrator.report.request is None


@pytest.mark.asyncio
async def test_unexpected_issuer_error_is_wrapped(reference_settings):
    boom = RuntimeError("rpc down")
    ledger = FakeLedger(fail_on={"issue": boom})
    failed = await _run_expecting_failure(
        DeploymentOrchestrator(reference_settings, ledger, ledger)
    )
    assert failed.step is RunState.ASSETS_ISSUED
    assert isinstance(failed.cause, IssuanceFailure)
    assert failed.cause.__cause__ is boom
    assert ledger.calls == ["issue"]


@pytest.mark.asyncio
async def test_issuer_with_wrong_split_is_rejected(reference_settings, fake_ledger):
    class _LopsidedIssuer:
        async def issue(self, spec):
            issuer = spec.total_supply // 2 + 1
            return AssetDescriptor(
                address=ADDR_X,
                decimals=spec.decimals,
                total_supply=spec.total_supply,
                issuer_share=issuer,
                partner_share=spec.total_supply - issuer,
                symbol=spec.symbol,
            )

    orchestrator = DeploymentOrchestrator(reference_settings, _LopsidedIssuer(), fake_ledger)
    failed = await _run_expecting_failure(orchestrator)
    assert failed.step is RunState.ASSETS_ISSUED
    assert isinstance(failed.cause, IssuanceFailure)
    assert orchestrator.report.assets == []
    assert fake_ledger.calls == []


@pytest.mark.asyncio
async def test_misordered_range_fails_before_submission(reference_settings, fake_ledger):
    settings = replace(reference_settings, tick_lower=600, tick_upper=-600)
    orchestrator = DeploymentOrchestrator(settings, fake_ledger, fake_ledger)
    failed = await _run_expecting_failure(orchestrator)

    assert failed.step is RunState.LIQUIDITY_DERIVED
    assert isinstance(failed.cause, LiquidityDerivationFailure)
    assert fake_ledger.calls == HAPPY_CALLS[:5]
