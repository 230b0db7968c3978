from pool_bootstrap.adapters.uniswap_v4_adapter.adapter import UniswapV4Adapter

__all__ = ["UniswapV4Adapter"]
