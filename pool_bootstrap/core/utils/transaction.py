"""Writes: encode, simulate, fill, sign, broadcast, wait.

Gas limit, nonce and fee inputs are read from every configured RPC and the
maximum answer is used.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Any

from eth_account import Account
from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from pool_bootstrap.core.constants.base import (
    DEFAULT_TRANSACTION_TIMEOUT,
    GAS_BUFFER_MULTIPLIER,
    MAX_BASE_FEE_GROWTH_MULTIPLIER,
    SUGGESTED_GAS_PRICE_MULTIPLIER,
    SUGGESTED_PRIORITY_FEE_MULTIPLIER,
)
from pool_bootstrap.core.constants.chains import PRE_EIP_1559_CHAIN_IDS
from pool_bootstrap.core.utils.web3 import (
    get_transaction_chain_id,
    web3_from_chain_id,
    web3s_from_chain_id,
)

SignCallback = Callable[[dict], Awaitable[bytes]]

FEE_HISTORY_BLOCKS = 10
FEE_HISTORY_PERCENTILE = 80
_FILLED_FIELDS = ("gas", "nonce", "gasPrice", "maxFeePerGas", "maxPriorityFeePerGas")


class TransactionRevertedError(RuntimeError):
    def __init__(
        self,
        txn_hash: str,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.txn_hash = txn_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction reverted: {txn_hash}")


def make_sign_callback(private_key: str) -> SignCallback:
    account = Account.from_key(private_key)

    async def sign_callback(transaction: dict) -> bytes:
        return account.sign_transaction(transaction).raw_transaction

    return sign_callback


def _hex_hash(value: Any) -> str:
    text = value if isinstance(value, str) else bytes(value).hex()
    return text if text.startswith("0x") else f"0x{text}"


# ─────────────────────────────────────────────────────────────────────────────
# Filling gas, nonce and fees
# ─────────────────────────────────────────────────────────────────────────────


async def _estimate_gas_limit(web3s: list[AsyncWeb3], transaction: dict) -> int:
    results = await asyncio.gather(
        *[web3.eth.estimate_gas(transaction, block_identifier="latest") for web3 in web3s],
        return_exceptions=True,
    )
    estimates = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, Exception)]
    for web3, failure in zip(web3s, results, strict=True):
        if isinstance(failure, Exception):
            logger.info(
                f"Gas estimate failed on {web3.provider.endpoint_uri}: {failure}"
            )
    if not estimates or max(estimates) == 0:
        logger.error("Gas estimation failed on all RPCs")
        raise RuntimeError("Gas estimation failed on all RPCs") from (
            failures[-1] if failures else None
        )
    return int(math.ceil(max(estimates) * GAS_BUFFER_MULTIPLIER))


async def _pending_nonce(web3s: list[AsyncWeb3], address: str) -> int:
    counts = await asyncio.gather(
        *[
            web3.eth.get_transaction_count(address, block_identifier="pending")
            for web3 in web3s
        ]
    )
    return max(counts)


async def _priority_fee(web3: AsyncWeb3) -> int:
    history = await web3.eth.fee_history(
        FEE_HISTORY_BLOCKS, "latest", [FEE_HISTORY_PERCENTILE]
    )
    tips = [reward[0] for reward in history.reward]
    return sum(tips) // len(tips) if tips else 0


async def _base_fee(web3: AsyncWeb3) -> int:
    block = await web3.eth.get_block("latest")
    return block.get("baseFeePerGas") or 0


async def _fee_fields(web3s: list[AsyncWeb3], chain_id: int) -> dict[str, int]:
    if chain_id in PRE_EIP_1559_CHAIN_IDS:
        prices = await asyncio.gather(*[web3.eth.gas_price for web3 in web3s])
        return {"gasPrice": int(max(prices) * SUGGESTED_GAS_PRICE_MULTIPLIER)}

    base_fee = max(await asyncio.gather(*[_base_fee(web3) for web3 in web3s]))
    tip = max(await asyncio.gather(*[_priority_fee(web3) for web3 in web3s]))
    priority = int(tip * SUGGESTED_PRIORITY_FEE_MULTIPLIER)
    return {
        "maxFeePerGas": int(base_fee * MAX_BASE_FEE_GROWTH_MULTIPLIER) + priority,
        "maxPriorityFeePerGas": priority,
    }


async def prepare_transaction(transaction: dict) -> dict:
    """Return a copy of *transaction* with gas, nonce and fee fields filled in."""
    if "from" not in transaction:
        raise ValueError("Transaction does not contain from address")
    chain_id = get_transaction_chain_id(transaction)
    filled = {k: v for k, v in transaction.items() if k not in _FILLED_FIELDS}
    sender = AsyncWeb3.to_checksum_address(filled["from"])

    async with web3s_from_chain_id(chain_id) as web3s:
        filled["gas"] = await _estimate_gas_limit(web3s, filled)
        filled["nonce"] = await _pending_nonce(web3s, sender)
        filled.update(await _fee_fields(web3s, chain_id))
    return filled


# ─────────────────────────────────────────────────────────────────────────────
# Simulation, broadcast, receipts
# ─────────────────────────────────────────────────────────────────────────────


async def simulate_transaction(transaction: dict) -> bytes:
    """Run *transaction* as an ``eth_call`` against the latest block.

    Reverts surface as web3 exceptions (``ContractCustomError`` carries the raw
    custom-error payload), so a failure can be classified before gas is spent.
    """
    call = {k: v for k, v in transaction.items() if k in ("from", "to", "data", "value")}
    async with web3_from_chain_id(get_transaction_chain_id(transaction)) as web3:
        return await web3.eth.call(call, block_identifier="latest")


async def wait_for_transaction_receipt(
    chain_id: int,
    txn_hash: str,
    poll_interval: float = 0.5,
    timeout: int = DEFAULT_TRANSACTION_TIMEOUT,
) -> dict[str, Any]:
    """First receipt any RPC returns; raises ``TransactionRevertedError`` on status 0."""
    txn_hash = _hex_hash(txn_hash)
    async with web3s_from_chain_id(chain_id) as web3s:
        waiters = [
            asyncio.ensure_future(
                web3.eth.wait_for_transaction_receipt(
                    txn_hash, timeout=timeout, poll_latency=poll_interval
                )
            )
            for web3 in web3s
        ]
        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
        receipt = dict(next(iter(done)).result())

    if receipt.get("status") == 0:
        raise TransactionRevertedError(txn_hash, receipt)
    return receipt


async def _sign_and_broadcast(
    transaction: dict, sign_callback: SignCallback
) -> tuple[str, dict]:
    if sign_callback is None:
        raise ValueError("sign_callback must be provided to send transaction")

    chain_id = get_transaction_chain_id(transaction)
    prepared = await prepare_transaction(transaction)
    signed = await sign_callback(prepared)
    async with web3_from_chain_id(chain_id) as web3:
        txn_hash = _hex_hash(await web3.eth.send_raw_transaction(signed))
    logger.info(f"Broadcast {txn_hash} to={prepared.get('to')} chain={chain_id}")
    return txn_hash, prepared


async def send_transaction_and_wait(
    transaction: dict, sign_callback: SignCallback
) -> tuple[str, dict[str, Any]]:
    """Broadcast *transaction* and return ``(tx hash, receipt)`` once it is mined."""
    txn_hash, prepared = await _sign_and_broadcast(transaction, sign_callback)
    try:
        receipt = await wait_for_transaction_receipt(
            get_transaction_chain_id(prepared), txn_hash
        )
    except TransactionRevertedError as exc:
        gas_used = int(exc.receipt.get("gasUsed") or 0)
        hint = " (likely out of gas)" if gas_used >= prepared["gas"] else ""
        raise TransactionRevertedError(
            txn_hash,
            exc.receipt,
            message=(
                f"Transaction reverted (status=0): {txn_hash} "
                f"gasUsed={gas_used} gasLimit={prepared['gas']}{hint}"
            ),
        ) from exc
    return txn_hash, receipt


async def send_transaction(
    transaction: dict, sign_callback: SignCallback, wait_for_receipt: bool = True
) -> str:
    if wait_for_receipt:
        txn_hash, _ = await send_transaction_and_wait(transaction, sign_callback)
        return txn_hash
    txn_hash, _ = await _sign_and_broadcast(transaction, sign_callback)
    return txn_hash


async def encode_call(
    *,
    target: str,
    abi: list[dict[str, Any]],
    fn_name: str,
    args: list[Any],
    from_address: str,
    chain_id: int,
    value: int = 0,
) -> dict[str, Any]:
    """Unsigned call transaction: ``chainId``, ``from``, ``to``, ``data``, ``value``."""
    target = AsyncWeb3.to_checksum_address(target)
    async with web3_from_chain_id(chain_id) as web3:
        try:
            data = web3.eth.contract(address=target, abi=abi).encode_abi(fn_name, args)
        except (ValueError, TypeError, Web3Exception) as exc:
            raise ValueError(f"Failed to encode {fn_name}: {exc}") from exc

    return {
        "chainId": int(chain_id),
        "from": AsyncWeb3.to_checksum_address(from_address),
        "to": target,
        "data": data,
        "value": int(value),
    }
