from pool_bootstrap.bootstrap.orchestrator import DeploymentOrchestrator
from pool_bootstrap.bootstrap.settings import BootstrapSettings
from pool_bootstrap.bootstrap.types import (
    AssetDescriptor,
    AssetSpec,
    CanonicalPair,
    LiquidityRequest,
    PoolIdentity,
    PoolProtocol,
    PositionReceipt,
    RunReport,
    RunState,
    TokenIssuer,
)

__all__ = [
    "AssetDescriptor",
    "AssetSpec",
    "BootstrapSettings",
    "CanonicalPair",
    "DeploymentOrchestrator",
    "LiquidityRequest",
    "PoolIdentity",
    "PoolProtocol",
    "PositionReceipt",
    "RunReport",
    "RunState",
    "TokenIssuer",
]
