# Uniswap v4 deployments (https://docs.uniswap.org/contracts/v4/deployments)
from pool_bootstrap.core.constants.chains import (
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_BASE,
    CHAIN_ID_BASE_SEPOLIA,
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_SEPOLIA,
)

# Permit2 lives at the same address on every chain it is deployed to.
PERMIT2_ADDRESS = "0x000000000022D473030F116dDEE9F6B43aC78BA3"

PERMIT2: dict[int, str] = {
    CHAIN_ID_ETHEREUM: PERMIT2_ADDRESS,
    CHAIN_ID_BASE: PERMIT2_ADDRESS,
    CHAIN_ID_ARBITRUM: PERMIT2_ADDRESS,
    CHAIN_ID_SEPOLIA: PERMIT2_ADDRESS,
    CHAIN_ID_BASE_SEPOLIA: PERMIT2_ADDRESS,
}

UNISWAP_V4_POOL_MANAGER: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "0x000000000004444c5dc75cB358380D2e3dE08A90",
    CHAIN_ID_BASE: "0x498581fF718922c3f8e6A244956aF099B2652b2b",
    CHAIN_ID_ARBITRUM: "0x360E68faCcca8cA495c1B759Fd9EEe466db9FB32",
    CHAIN_ID_SEPOLIA: "0xE03A1074c86CFeDd5C142C4F04F1a1536e203543",
    CHAIN_ID_BASE_SEPOLIA: "0x05E73354cFDd6745C338b50BcFDfA3Aa6fA03408",
}

UNISWAP_V4_POSITION_MANAGER: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "0xbD216513d74C8cf14cf4747E6AaA6420FF64ee9e",
    CHAIN_ID_BASE: "0x7C5f5A4bBd8fD63184577525326123B519429bDc",
    CHAIN_ID_ARBITRUM: "0xd88F38F930b7952f2DB2432Cb002E7abbF3dD869",
    CHAIN_ID_SEPOLIA: "0x429ba70129df741B2Ca2a85BC3A2a3328e5c09b4",
    CHAIN_ID_BASE_SEPOLIA: "0x4B2C77d209D3405F41a037Ec6c77F7F5b8e2ca80",
}

UNISWAP_V4_STATE_VIEW: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "0x7fFE42C4a5DEeA5b0feC41C94C136Cf115597227",
    CHAIN_ID_BASE: "0xA3c0c9b65baD0b08107Aa264b0f3dB444b867A71",
    CHAIN_ID_ARBITRUM: "0x76Fd297e2D437cd7f76d50F01AfE6160f86e9990",
    CHAIN_ID_SEPOLIA: "0xE1Dd9c3fA50EDB962E442f60DfBc432e24537E4C",
    CHAIN_ID_BASE_SEPOLIA: "0x571291b572ed32ce6751a2Cb2486EbEe8DEfB9B4",
}
