"""Compile-and-deploy for the bundled Solidity sources."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger
from web3 import AsyncWeb3

from pool_bootstrap.core.utils.solidity import compile_contract
from pool_bootstrap.core.utils.transaction import (
    SignCallback,
    send_transaction_and_wait,
)
from pool_bootstrap.core.utils.web3 import web3_from_chain_id


@dataclass(frozen=True)
class DeployedContract:
    address: str
    abi: list[dict[str, Any]]
    tx_hash: str
    block_number: int | None = None


async def build_deploy_transaction(
    *,
    abi: list[dict[str, Any]],
    bytecode: str,
    constructor_args: list[Any] | None = None,
    from_address: str,
    chain_id: int,
) -> dict[str, Any]:
    """Unsigned contract creation: no ``to``, constructor args appended to *bytecode*."""
    async with web3_from_chain_id(chain_id) as w3:
        factory = w3.eth.contract(abi=abi, bytecode=bytecode)
        data = factory.constructor(*(constructor_args or [])).data_in_transaction
    return {
        "chainId": int(chain_id),
        "from": AsyncWeb3.to_checksum_address(from_address),
        "data": data,
        "value": 0,
    }


async def deploy_contract(
    *,
    source_path: str | Path,
    contract_name: str,
    constructor_args: list[Any] | None = None,
    from_address: str,
    chain_id: int,
    sign_callback: SignCallback,
    project_root: str | Path | None = None,
) -> DeployedContract:
    path = Path(source_path)
    abi, bytecode = compile_contract(
        path.read_text(encoding="utf-8"),
        contract_name=contract_name,
        source_filename=path.name,
        project_root=project_root,
    )
    tx = await build_deploy_transaction(
        abi=abi,
        bytecode=bytecode,
        constructor_args=constructor_args,
        from_address=from_address,
        chain_id=chain_id,
    )
    tx_hash, receipt = await send_transaction_and_wait(tx, sign_callback)

    created = receipt.get("contractAddress")
    if not created:
        raise RuntimeError(f"Deploy tx {tx_hash} mined without a contractAddress")
    logger.info(f"Deployed {contract_name} at {created} in {tx_hash}")

    block = receipt.get("blockNumber")
    return DeployedContract(
        address=AsyncWeb3.to_checksum_address(created),
        abi=abi,
        tx_hash=tx_hash,
        block_number=None if block is None else int(block),
    )
