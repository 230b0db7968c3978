from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from eth_abi import encode as abi_encode
from eth_utils import to_checksum_address

from pool_bootstrap.adapters.uniswap_v4_adapter.adapter import UniswapV4Adapter
from pool_bootstrap.bootstrap.types import PoolIdentity
from pool_bootstrap.core.constants import MAX_UINT48, MAX_UINT160, MAX_UINT256, ZERO_ADDRESS
from pool_bootstrap.core.errors import (
    AllowanceFailure,
    AlreadyInitialized,
    AtomicSubmissionFailure,
    DeadlineExpired,
    InvalidPriceOrIdentity,
    PoolInitializationError,
    SlippageExceeded,
)
from pool_bootstrap.core.utils.liquidity_math import Q96
from pool_bootstrap.core.utils.revert import error_selector
from pool_bootstrap.core.utils.transaction import TransactionRevertedError
from pool_bootstrap.core.utils.uniswap_v4 import ERC721_TRANSFER_TOPIC

MODULE = "pool_bootstrap.adapters.uniswap_v4_adapter.adapter"
WALLET = to_checksum_address("0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa")
TOKEN = to_checksum_address("0x1111111111111111111111111111111111111111")
IDENTITY = PoolIdentity(
    currency0=TOKEN,
    currency1=to_checksum_address("0x3333333333333333333333333333333333333333"),
    fee=3000,
    tick_spacing=60,
    hooks=ZERO_ADDRESS,
)
TX = {"chainId": 84532, "from": WALLET, "to": TOKEN, "data": "0x", "value": 0}


class _ContractCustomError(Exception):
    """Shape of web3's custom-error exception: message plus raw payload."""

    def __init__(self, data: str):
        super().__init__("execution reverted", data)
        self.data = data


def _revert(signature: str, types: list[str] | None = None, args: list | None = None):
    data = error_selector(signature)
    if types:
        data += abi_encode(types, args).hex()
    return _ContractCustomError(data)


async def _sign(tx: dict) -> bytes:
    return b""


def _make_adapter(**overrides) -> UniswapV4Adapter:
    kwargs = {"sign_callback": _sign, "wallet_address": WALLET}
    kwargs.update(overrides)
    return UniswapV4Adapter({"chain_id": 84532}, **kwargs)


def _transfer_log(address: str, sender: str, recipient: str, token_id: int) -> dict:
    return {
        "address": address,
        "topics": [
            ERC721_TRANSFER_TOPIC,
            bytes.fromhex(sender[2:].rjust(64, "0")),
            bytes.fromhex(recipient[2:].rjust(64, "0")),
            token_id.to_bytes(32, "big"),
        ],
    }


def _mint_receipt(position_manager: str, token_id: int) -> dict:
    return {"status": 1, "logs": [_transfer_log(position_manager, ZERO_ADDRESS, WALLET, token_id)]}


def test_defaults_resolve_per_chain():
    adapter = _make_adapter()
    assert adapter.liquidity_spender == adapter.position_manager
    assert adapter.permit2 == to_checksum_address("0x000000000022d473030f116ddee9f6b43ac78ba3")
    assert adapter.state_view is not None


def test_unknown_chain_without_addresses_is_rejected():
    with pytest.raises(ValueError, match="pool_manager"):
        UniswapV4Adapter({"chain_id": 31337})


@pytest.mark.asyncio
async def test_writes_require_a_signer():
    adapter = _make_adapter(sign_callback=None)
    with pytest.raises(ValueError, match="sign callback"):
        await adapter.initialize_pool(IDENTITY, Q96)


# ─────────────────────────────────────────────────────────────────────────────
# initialize_pool
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_initialize_returns_tick_and_checks_slot0():
    adapter = _make_adapter()
    with (
        patch(f"{MODULE}.build_initialize_transaction", AsyncMock(return_value=TX)) as build,
        patch(f"{MODULE}.simulate_transaction", AsyncMock(return_value=abi_encode(["int24"], [0]))),
        patch(f"{MODULE}.send_transaction_and_wait", AsyncMock(return_value=("0xinit", {}))) as send,
        patch(f"{MODULE}.get_slot0", AsyncMock(return_value={"sqrtPriceX96": Q96, "tick": 0})),
    ):
        tick = await adapter.initialize_pool(IDENTITY, Q96)

    assert tick == 0
    assert build.await_args.kwargs["key"] == IDENTITY.as_tuple()
    assert build.await_args.kwargs["sqrt_price_x96"] == Q96
    send.assert_awaited_once()


@pytest.mark.asyncio
async def test_initialize_rejects_unexpected_slot0():
    adapter = _make_adapter()
    with (
        patch(f"{MODULE}.build_initialize_transaction", AsyncMock(return_value=TX)),
        patch(f"{MODULE}.simulate_transaction", AsyncMock(return_value=abi_encode(["int24"], [0]))),
        patch(f"{MODULE}.send_transaction_and_wait", AsyncMock(return_value=("0xinit", {}))),
        patch(f"{MODULE}.get_slot0", AsyncMock(return_value={"sqrtPriceX96": 2 * Q96, "tick": 13863})),
    ):
        with pytest.raises(InvalidPriceOrIdentity):
            await adapter.initialize_pool(IDENTITY, Q96)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc,expected",
    [
        (_revert("PoolAlreadyInitialized()"), AlreadyInitialized),
        (_revert("InvalidSqrtPrice(uint160)", ["uint160"], [0]), InvalidPriceOrIdentity),
        (
            _revert("CurrenciesOutOfOrderOrEqual(address,address)", ["address", "address"], [TOKEN, TOKEN]),
            InvalidPriceOrIdentity,
        ),
        (_revert("TickSpacingTooLarge(int24)", ["int24"], [40000]), InvalidPriceOrIdentity),
        (RuntimeError("connection reset"), PoolInitializationError),
    ],
)
async def test_initialize_simulation_errors_are_classified(exc, expected):
    adapter = _make_adapter()
    send = AsyncMock()
    with (
        patch(f"{MODULE}.build_initialize_transaction", AsyncMock(return_value=TX)),
        patch(f"{MODULE}.simulate_transaction", AsyncMock(side_effect=exc)),
        patch(f"{MODULE}.send_transaction_and_wait", send),
    ):
        with pytest.raises(expected) as exc_info:
            await adapter.initialize_pool(IDENTITY, Q96)

    assert type(exc_info.value) is expected
    assert exc_info.value.__cause__ is exc
    send.assert_not_awaited()
    if expected is AlreadyInitialized:
        assert exc_info.value.pool_id == IDENTITY.pool_id


# ─────────────────────────────────────────────────────────────────────────────
# grant_allowance
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_grant_allowance_approves_permit2_then_spender():
    adapter = _make_adapter()
    ensure = AsyncMock(return_value="0xerc20")
    build = AsyncMock(return_value=TX)
    with (
        patch(f"{MODULE}.ensure_allowance", ensure),
        patch(f"{MODULE}.get_permit2_allowance", AsyncMock(return_value=(0, 0))),
        patch(f"{MODULE}.build_permit2_approve_transaction", build),
        patch(f"{MODULE}.simulate_transaction", AsyncMock(return_value=b"")),
        patch(f"{MODULE}.send_transaction_and_wait", AsyncMock(return_value=("0xpermit2", {}))),
    ):
        tx_hash = await adapter.grant_allowance(
            TOKEN, adapter.position_manager, MAX_UINT160, MAX_UINT48
        )

    assert tx_hash == "0xpermit2"
    assert ensure.await_args.kwargs["spender"] == adapter.permit2
    assert ensure.await_args.kwargs["approval_amount"] == MAX_UINT256
    assert build.await_args.kwargs["spender"] == adapter.position_manager
    assert build.await_args.kwargs["amount"] == MAX_UINT160
    assert build.await_args.kwargs["expiration"] == MAX_UINT48


@pytest.mark.asyncio
async def test_grant_allowance_skips_existing_permit2_allowance():
    adapter = _make_adapter()
    build = AsyncMock()
    with (
        patch(f"{MODULE}.ensure_allowance", AsyncMock(return_value=None)),
        patch(f"{MODULE}.get_permit2_allowance", AsyncMock(return_value=(MAX_UINT160, MAX_UINT48))),
        patch(f"{MODULE}.build_permit2_approve_transaction", build),
    ):
        tx_hash = await adapter.grant_allowance(
            TOKEN, adapter.position_manager, MAX_UINT160, MAX_UINT48
        )
    assert tx_hash is None
    build.assert_not_awaited()


@pytest.mark.asyncio
async def test_grant_allowance_failures_are_allowance_failures():
    adapter = _make_adapter()
    with patch(f"{MODULE}.ensure_allowance", AsyncMock(side_effect=RuntimeError("reverted"))):
        with pytest.raises(AllowanceFailure):
            await adapter.grant_allowance(TOKEN, adapter.position_manager, 1, 1)

    with (
        patch(f"{MODULE}.ensure_allowance", AsyncMock(return_value=None)),
        patch(f"{MODULE}.get_permit2_allowance", AsyncMock(return_value=(0, 0))),
        patch(f"{MODULE}.build_permit2_approve_transaction", AsyncMock(return_value=TX)),
        patch(f"{MODULE}.simulate_transaction", AsyncMock(side_effect=RuntimeError("nope"))),
    ):
        with pytest.raises(AllowanceFailure):
            await adapter.grant_allowance(TOKEN, adapter.position_manager, 1, 1)


# ─────────────────────────────────────────────────────────────────────────────
# submit_liquidity
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_submit_liquidity_reports_minted_position():
    adapter = _make_adapter()
    with (
        patch(f"{MODULE}.build_modify_liquidities_transaction", AsyncMock(return_value=TX)) as build,
        patch(f"{MODULE}.simulate_transaction", AsyncMock(return_value=b"")),
        patch(
            f"{MODULE}.send_transaction_and_wait",
            AsyncMock(return_value=("0xmint", _mint_receipt(adapter.position_manager, 41))),
        ),
        patch(f"{MODULE}.posm_get_position_liquidity", AsyncMock(return_value=2_500_000_000)) as liq,
    ):
        receipt = await adapter.submit_liquidity(b"\x01", 1_700_003_600)

    assert receipt.tx_hash == "0xmint"
    assert receipt.token_id == 41
    assert receipt.liquidity == 2_500_000_000
    assert build.await_args.kwargs["deadline"] == 1_700_003_600
    assert liq.await_args.kwargs["token_id"] == 41


@pytest.mark.asyncio
async def test_submit_liquidity_ignores_transfers_that_are_not_its_mint():
    adapter = _make_adapter()
    receipt = {
        "status": 1,
        "logs": [
            # ERC20 pulls carry three topics
            {"address": TOKEN, "topics": [ERC721_TRANSFER_TOPIC, b"\x00" * 32, b"\x00" * 32]},
            _transfer_log(TOKEN, ZERO_ADDRESS, WALLET, 7),
            _transfer_log(adapter.position_manager, WALLET, TOKEN, 8),
        ],
    }
    liq = AsyncMock()
    with (
        patch(f"{MODULE}.build_modify_liquidities_transaction", AsyncMock(return_value=TX)),
        patch(f"{MODULE}.simulate_transaction", AsyncMock(return_value=b"")),
        patch(f"{MODULE}.send_transaction_and_wait", AsyncMock(return_value=("0xmint", receipt))),
        patch(f"{MODULE}.posm_get_position_liquidity", liq),
    ):
        position = await adapter.submit_liquidity(b"\x01", 1)

    assert position.token_id is None
    assert position.liquidity is None
    liq.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_deadline_passed_is_deadline_expired():
    adapter = _make_adapter()
    with (
        patch(f"{MODULE}.build_modify_liquidities_transaction", AsyncMock(return_value=TX)),
        patch(
            f"{MODULE}.simulate_transaction",
            AsyncMock(side_effect=_revert("DeadlinePassed(uint256)", ["uint256"], [1_700_003_600])),
        ),
    ):
        with pytest.raises(DeadlineExpired) as exc_info:
            await adapter.submit_liquidity(b"\x01", 1_700_003_600)
    assert exc_info.value.deadline == 1_700_003_600


@pytest.mark.asyncio
async def test_submit_maximum_exceeded_is_slippage():
    adapter = _make_adapter()
    with (
        patch(f"{MODULE}.build_modify_liquidities_transaction", AsyncMock(return_value=TX)),
        patch(
            f"{MODULE}.simulate_transaction",
            AsyncMock(
                side_effect=_revert(
                    "MaximumAmountExceeded(uint128,uint128)",
                    ["uint128", "uint128"],
                    [2_750_000_000, 5_000_000_000],
                )
            ),
        ),
    ):
        with pytest.raises(SlippageExceeded) as exc_info:
            await adapter.submit_liquidity(b"\x01", 1)
    assert exc_info.value.maximum == 2_750_000_000
    assert exc_info.value.required == 5_000_000_000


@pytest.mark.asyncio
async def test_submit_mined_revert_is_atomic_failure():
    adapter = _make_adapter()
    with (
        patch(f"{MODULE}.build_modify_liquidities_transaction", AsyncMock(return_value=TX)),
        patch(f"{MODULE}.simulate_transaction", AsyncMock(return_value=b"")),
        patch(
            f"{MODULE}.send_transaction_and_wait",
            AsyncMock(side_effect=TransactionRevertedError("0xdead", {"status": 0})),
        ),
    ):
        with pytest.raises(AtomicSubmissionFailure) as exc_info:
            await adapter.submit_liquidity(b"\x01", 1)
    assert not isinstance(exc_info.value, (SlippageExceeded, DeadlineExpired))
    assert "0xdead" in str(exc_info.value)
