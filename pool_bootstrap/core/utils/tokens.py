from typing import Any

from loguru import logger
from web3 import AsyncWeb3

from pool_bootstrap.core.constants.erc20_abi import ERC20_ABI
from pool_bootstrap.core.utils.transaction import (
    SignCallback,
    encode_call,
    send_transaction,
)
from pool_bootstrap.core.utils.web3 import web3_from_chain_id


async def _erc20_view(
    token_address: str,
    chain_id: int,
    fn_name: str,
    *args: str,
    block_identifier: str | int = "latest",
) -> Any:
    async with web3_from_chain_id(chain_id) as web3:
        token = web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token_address), abi=ERC20_ABI
        )
        call_args = [AsyncWeb3.to_checksum_address(a) for a in args]
        return await token.functions[fn_name](*call_args).call(
            block_identifier=block_identifier
        )


async def get_token_balance(
    token_address: str, chain_id: int, wallet_address: str
) -> int:
    return int(await _erc20_view(token_address, chain_id, "balanceOf", wallet_address))


async def get_token_decimals(token_address: str, chain_id: int) -> int:
    return int(await _erc20_view(token_address, chain_id, "decimals"))


async def get_token_allowance(
    token_address: str, chain_id: int, owner_address: str, spender_address: str
) -> int:
    # "pending" so an approval still in the mempool counts
    return int(
        await _erc20_view(
            token_address,
            chain_id,
            "allowance",
            owner_address,
            spender_address,
            block_identifier="pending",
        )
    )


async def build_approve_transaction(
    from_address: str,
    chain_id: int,
    token_address: str,
    spender_address: str,
    amount: int,
) -> dict:
    return await encode_call(
        target=token_address,
        abi=ERC20_ABI,
        fn_name="approve",
        args=[AsyncWeb3.to_checksum_address(spender_address), int(amount)],
        from_address=from_address,
        chain_id=chain_id,
    )


async def ensure_allowance(
    *,
    token_address: str,
    owner: str,
    spender: str,
    amount: int,
    chain_id: int,
    signing_callback: SignCallback,
    approval_amount: int | None = None,
) -> str | None:
    """Approve *spender* if the current ERC20 allowance is below *amount*.

    Returns the approval tx hash, or ``None`` when no approval was needed.
    """
    allowance = await get_token_allowance(token_address, chain_id, owner, spender)
    if allowance >= amount:
        logger.debug(f"Allowance {allowance} of {token_address} to {spender} already covers {amount}")
        return None

    approve_tx = await build_approve_transaction(
        from_address=owner,
        chain_id=chain_id,
        token_address=token_address,
        spender_address=spender,
        amount=amount if approval_amount is None else approval_amount,
    )
    return await send_transaction(approve_tx, signing_callback)
