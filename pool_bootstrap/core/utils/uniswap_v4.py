"""Uniswap v4 pool keys, ``unlockData`` payloads, and PoolManager/PositionManager calls."""

from __future__ import annotations

from typing import Any

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

from pool_bootstrap.core.constants.base import MAX_UINT48, MAX_UINT160
from pool_bootstrap.core.constants.uniswap_v4_abi import (
    PERMIT2_ABI,
    POOL_MANAGER_ABI,
    POSITION_MANAGER_ABI,
    STATE_VIEW_ABI,
)
from pool_bootstrap.core.utils.transaction import encode_call
from pool_bootstrap.core.utils.web3 import web3_from_chain_id

# (currency0, currency1, fee, tickSpacing, hooks)
PoolKeyTuple = tuple[str, str, int, int, str]

# v4-periphery Actions.sol
ACTION_MINT_POSITION = 0x02
ACTION_SETTLE_PAIR = 0x0D

ERC721_TRANSFER_TOPIC = keccak(text="Transfer(address,address,uint256)")

POOL_KEY_FIELD_TYPES = ["address", "address", "uint24", "int24", "address"]
POOL_KEY_ABI_TYPE = f"({','.join(POOL_KEY_FIELD_TYPES)})"
MINT_POSITION_ABI_TYPES = [
    POOL_KEY_ABI_TYPE,
    "int24",  # tickLower
    "int24",  # tickUpper
    "uint256",  # liquidity
    "uint128",  # amount0Max
    "uint128",  # amount1Max
    "address",  # owner
    "bytes",  # hookData
]


def _checked_key(key: PoolKeyTuple) -> list[Any]:
    currency0, currency1, fee, tick_spacing, hooks = key
    return [
        to_checksum_address(currency0),
        to_checksum_address(currency1),
        int(fee),
        int(tick_spacing),
        to_checksum_address(hooks),
    ]


def pool_id(key: PoolKeyTuple) -> str:
    """keccak256 of the ABI-encoded key, as ``PoolIdLibrary.toId`` computes it."""
    return "0x" + keccak(abi_encode(POOL_KEY_FIELD_TYPES, _checked_key(key))).hex()


def encode_actions_router_params(*, actions: bytes, params: list[bytes]) -> bytes:
    """``abi.encode(bytes actions, bytes[] params)``, one blob per action byte."""
    if len(actions) != len(params):
        raise ValueError(f"{len(actions)} actions but {len(params)} parameter blobs")
    return abi_encode(["bytes", "bytes[]"], [bytes(actions), [bytes(p) for p in params]])


def build_mint_and_settle_pair_unlock_data(
    *,
    key: PoolKeyTuple,
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
    amount0_max: int,
    amount1_max: int,
    recipient: str,
    hook_data: bytes = b"",
) -> bytes:
    checked = _checked_key(key)
    mint = abi_encode(
        MINT_POSITION_ABI_TYPES,
        [
            tuple(checked),
            int(tick_lower),
            int(tick_upper),
            int(liquidity),
            int(amount0_max),
            int(amount1_max),
            to_checksum_address(recipient),
            bytes(hook_data),
        ],
    )
    settle = abi_encode(["address", "address"], checked[:2])
    return encode_actions_router_params(
        actions=bytes([ACTION_MINT_POSITION, ACTION_SETTLE_PAIR]),
        params=[mint, settle],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Unsigned writes
# ─────────────────────────────────────────────────────────────────────────────


async def build_initialize_transaction(
    *,
    chain_id: int,
    pool_manager_address: str,
    key: PoolKeyTuple,
    sqrt_price_x96: int,
    from_address: str,
) -> dict[str, Any]:
    return await encode_call(
        target=pool_manager_address,
        abi=POOL_MANAGER_ABI,
        fn_name="initialize",
        args=[tuple(_checked_key(key)), int(sqrt_price_x96)],
        from_address=from_address,
        chain_id=int(chain_id),
    )


async def build_permit2_approve_transaction(
    *,
    chain_id: int,
    permit2_address: str,
    token_address: str,
    spender: str,
    from_address: str,
    amount: int = MAX_UINT160,
    expiration: int = MAX_UINT48,
) -> dict[str, Any]:
    """``Permit2.approve(token, spender, amount, expiration)``; unlimited by default."""
    return await encode_call(
        target=permit2_address,
        abi=PERMIT2_ABI,
        fn_name="approve",
        args=[
            to_checksum_address(token_address),
            to_checksum_address(spender),
            int(amount),
            int(expiration),
        ],
        from_address=from_address,
        chain_id=int(chain_id),
    )


async def build_modify_liquidities_transaction(
    *,
    chain_id: int,
    position_manager_address: str,
    unlock_data: bytes,
    deadline: int,
    from_address: str,
) -> dict[str, Any]:
    return await encode_call(
        target=position_manager_address,
        abi=POSITION_MANAGER_ABI,
        fn_name="modifyLiquidities",
        args=[bytes(unlock_data), int(deadline)],
        from_address=from_address,
        chain_id=int(chain_id),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Views
# ─────────────────────────────────────────────────────────────────────────────


async def _view(chain_id: int, address: str, abi: list[dict], fn_name: str, *args: Any):
    async with web3_from_chain_id(int(chain_id)) as w3:
        contract = w3.eth.contract(address=to_checksum_address(address), abi=abi)
        return await contract.functions[fn_name](*args).call(block_identifier="latest")


async def get_permit2_allowance(
    *,
    chain_id: int,
    permit2_address: str,
    owner: str,
    token_address: str,
    spender: str,
) -> tuple[int, int]:
    """``(amount, expiration)`` that *spender* may pull from *owner* via Permit2."""
    amount, expiration, _nonce = await _view(
        chain_id,
        permit2_address,
        PERMIT2_ABI,
        "allowance",
        to_checksum_address(owner),
        to_checksum_address(token_address),
        to_checksum_address(spender),
    )
    return int(amount), int(expiration)


def _topic_bytes(topic: Any) -> bytes:
    if isinstance(topic, str):
        return bytes.fromhex(topic.removeprefix("0x"))
    return bytes(topic)


def minted_token_id(receipt: dict[str, Any], position_manager_address: str) -> int | None:
    """Token id of the position minted in *receipt*, read from its ERC721 ``Transfer`` log."""
    manager = to_checksum_address(position_manager_address)
    for log in receipt.get("logs") or []:
        topics = [_topic_bytes(t) for t in log.get("topics") or []]
        if len(topics) != 4 or topics[0] != ERC721_TRANSFER_TOPIC:
            continue
        if to_checksum_address(log["address"]) != manager:
            continue
        if int.from_bytes(topics[1], "big") != 0:
            continue
        return int.from_bytes(topics[3], "big")
    return None


async def posm_get_position_liquidity(
    *, chain_id: int, position_manager_address: str, token_id: int
) -> int:
    return int(
        await _view(
            chain_id,
            position_manager_address,
            POSITION_MANAGER_ABI,
            "getPositionLiquidity",
            int(token_id),
        )
    )


async def get_slot0(*, chain_id: int, state_view_address: str, pool_id_: str) -> dict[str, int]:
    values = await _view(chain_id, state_view_address, STATE_VIEW_ABI, "getSlot0", pool_id_)
    return dict(
        zip(("sqrtPriceX96", "tick", "protocolFee", "lpFee"), map(int, values), strict=True)
    )


async def latest_block_timestamp(chain_id: int) -> int:
    async with web3_from_chain_id(int(chain_id)) as w3:
        return int((await w3.eth.get_block("latest"))["timestamp"])
