"""Decoding of Solidity custom errors raised by the v4 contracts.

web3 surfaces custom-error reverts as ``ContractCustomError`` with the raw
payload in ``.data``; we match the 4-byte selector against the errors the
bootstrap flow can hit and decode their arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

KNOWN_ERROR_SIGNATURES = (
    # PoolManager / Pool / TickMath
    "PoolAlreadyInitialized()",
    "PoolNotInitialized()",
    "CurrenciesOutOfOrderOrEqual(address,address)",
    "TickSpacingTooLarge(int24)",
    "TickSpacingTooSmall(int24)",
    "LPFeeTooLarge(uint24)",
    "HookAddressNotValid(address)",
    "InvalidSqrtPrice(uint160)",
    "InvalidTick(int24)",
    "TicksMisordered(int24,int24)",
    "TickLowerOutOfBounds(int24)",
    "TickUpperOutOfBounds(int24)",
    "TickLiquidityOverflow(int24)",
    "CurrencyNotSettled()",
    # PositionManager
    "DeadlinePassed(uint256)",
    "MaximumAmountExceeded(uint128,uint128)",
    "NotApproved(address)",
    # Permit2
    "AllowanceExpired(uint256)",
    "InsufficientAllowance(uint256)",
)


def error_selector(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


def _arg_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : -1]
    return [t for t in inner.split(",") if t]


_SELECTORS: dict[str, str] = {
    error_selector(sig): sig for sig in KNOWN_ERROR_SIGNATURES
}


@dataclass(frozen=True)
class DecodedRevert:
    name: str
    signature: str
    args: tuple[Any, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        if not self.args:
            return f"{self.name}()"
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


def revert_data(exc: BaseException) -> str | None:
    """Pull the hex revert payload out of a web3 exception, if it has one."""
    for candidate in (getattr(exc, "data", None), *getattr(exc, "args", ())):
        if isinstance(candidate, (bytes, bytearray)):
            return "0x" + bytes(candidate).hex()
        if isinstance(candidate, str) and candidate.startswith("0x") and len(candidate) >= 10:
            return candidate.lower()
    return None


def decode_revert_data(data: str) -> DecodedRevert | None:
    selector = data[:10].lower()
    signature = _SELECTORS.get(selector)
    if signature is None:
        return None
    name = signature[: signature.index("(")]
    types = _arg_types(signature)
    if not types:
        return DecodedRevert(name=name, signature=signature)
    try:
        args = abi_decode(types, bytes.fromhex(data[10:]))
    except (DecodingError, ValueError):
        # Selector matched but the payload is truncated; keep the name.
        return DecodedRevert(name=name, signature=signature)
    return DecodedRevert(name=name, signature=signature, args=tuple(args))


def decode_revert(exc: BaseException) -> DecodedRevert | None:
    data = revert_data(exc)
    if data is None:
        return None
    return decode_revert_data(data)
