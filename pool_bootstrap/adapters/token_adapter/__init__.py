from pool_bootstrap.adapters.token_adapter.adapter import TokenAdapter

__all__ = ["TokenAdapter"]
