from contextlib import asynccontextmanager

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3

from pool_bootstrap.core.config import get_rpc_url_override, get_rpc_urls


def rpc_urls_for_chain(chain_id: int) -> list[str]:
    """``POOL_BOOTSTRAP_RPC_URL`` if set, else ``rpc_urls[chain_id]`` from config."""
    override = get_rpc_url_override()
    if override:
        return [override]
    configured = get_rpc_urls()
    urls = configured.get(str(chain_id), configured.get(chain_id))
    if isinstance(urls, str):
        urls = [urls]
    if not urls:
        raise ValueError(f"No RPCs configured for chain ID {chain_id}")
    return list(urls)


def _connect(url: str) -> AsyncWeb3:
    headers = AsyncHTTPProvider.get_request_headers()
    return AsyncWeb3(AsyncHTTPProvider(url, request_kwargs={"headers": headers}))


def get_transaction_chain_id(transaction: dict) -> int:
    if "chainId" not in transaction:
        raise ValueError("Transaction does not contain chainId")
    return int(transaction["chainId"])


@asynccontextmanager
async def web3s_from_chain_id(chain_id: int):
    """One ``AsyncWeb3`` per configured RPC, disconnected on exit."""
    urls = rpc_urls_for_chain(chain_id)
    logger.debug(f"Using {len(urls)} RPC(s) for chain {chain_id}")
    web3s = [_connect(url) for url in urls]
    try:
        yield web3s
    finally:
        for web3 in web3s:
            await web3.provider.disconnect()


@asynccontextmanager
async def web3_from_chain_id(chain_id: int):
    """The first configured RPC only."""
    web3 = _connect(rpc_urls_for_chain(chain_id)[0])
    try:
        yield web3
    finally:
        await web3.provider.disconnect()
