ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

GAS_BUFFER_MULTIPLIER = 1.1
SUGGESTED_PRIORITY_FEE_MULTIPLIER = 1.5
SUGGESTED_GAS_PRICE_MULTIPLIER = 1.5
MAX_BASE_FEE_GROWTH_MULTIPLIER = 2

# Some RPCs on Base take over two minutes to return receipts for mined transactions.
DEFAULT_TRANSACTION_TIMEOUT = 180  # Transaction receipt timeout (seconds)

MAX_UINT48 = 2**48 - 1
MAX_UINT128 = 2**128 - 1
MAX_UINT160 = 2**160 - 1
MAX_UINT256 = 2**256 - 1

# Run defaults (overridable from config / CLI)
DEFAULT_SLIPPAGE_BPS = 1_000  # +10% on top of the desired deposit
DEFAULT_DEADLINE_SECONDS = 3_600
DEFAULT_FEE = 3_000
DEFAULT_TICK_SPACING = 60
