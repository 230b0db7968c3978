CHAIN_ID_ETHEREUM = 1
CHAIN_ID_BASE = 8453
CHAIN_ID_ARBITRUM = 42161
CHAIN_ID_SEPOLIA = 11155111
CHAIN_ID_BASE_SEPOLIA = 84532
CHAIN_ID_ANVIL = 31337

CHAIN_CODE_TO_ID = {
    "ethereum": CHAIN_ID_ETHEREUM,
    "mainnet": CHAIN_ID_ETHEREUM,
    "base": CHAIN_ID_BASE,
    "arbitrum": CHAIN_ID_ARBITRUM,
    "arbitrum-one": CHAIN_ID_ARBITRUM,
    "sepolia": CHAIN_ID_SEPOLIA,
    "base-sepolia": CHAIN_ID_BASE_SEPOLIA,
    "anvil": CHAIN_ID_ANVIL,
    "local": CHAIN_ID_ANVIL,
}

CHAIN_ID_TO_CODE: dict[int, str] = {
    v: k
    for k, v in CHAIN_CODE_TO_ID.items()
    if k not in ("arbitrum-one", "mainnet", "local")
}

SUPPORTED_CHAINS = [
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_BASE,
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_SEPOLIA,
    CHAIN_ID_BASE_SEPOLIA,
    CHAIN_ID_ANVIL,
]

PRE_EIP_1559_CHAIN_IDS: set[int] = {
    CHAIN_ID_ARBITRUM,
}

CHAIN_EXPLORER_URLS: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "https://etherscan.io/",
    CHAIN_ID_ARBITRUM: "https://arbiscan.io/",
    CHAIN_ID_BASE: "https://basescan.org/",
    CHAIN_ID_SEPOLIA: "https://sepolia.etherscan.io/",
    CHAIN_ID_BASE_SEPOLIA: "https://sepolia.basescan.org/",
}


def resolve_chain_id(value: int | str) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text in CHAIN_CODE_TO_ID:
        return CHAIN_CODE_TO_ID[text]
    try:
        return int(text, 0)
    except ValueError as exc:
        raise ValueError(f"Unknown chain: {value}") from exc
