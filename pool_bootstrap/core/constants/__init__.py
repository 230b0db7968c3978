from pool_bootstrap.core.constants.base import (
    MAX_UINT48,
    MAX_UINT128,
    MAX_UINT160,
    MAX_UINT256,
    ZERO_ADDRESS,
)
from pool_bootstrap.core.constants.chains import SUPPORTED_CHAINS

__all__ = [
    "MAX_UINT48",
    "MAX_UINT128",
    "MAX_UINT160",
    "MAX_UINT256",
    "SUPPORTED_CHAINS",
    "ZERO_ADDRESS",
]
