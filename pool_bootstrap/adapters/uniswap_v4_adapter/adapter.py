from __future__ import annotations

from collections.abc import Callable
from typing import Any

from eth_abi import decode as abi_decode
from eth_utils import to_checksum_address

from pool_bootstrap.bootstrap.types import PoolIdentity, PositionReceipt
from pool_bootstrap.core.adapters.BaseAdapter import BaseAdapter, require_signer
from pool_bootstrap.core.constants import MAX_UINT256
from pool_bootstrap.core.constants.contracts import (
    PERMIT2,
    UNISWAP_V4_POOL_MANAGER,
    UNISWAP_V4_POSITION_MANAGER,
    UNISWAP_V4_STATE_VIEW,
)
from pool_bootstrap.core.errors import (
    AllowanceFailure,
    AlreadyInitialized,
    AtomicSubmissionFailure,
    BootstrapError,
    DeadlineExpired,
    InvalidPriceOrIdentity,
    PoolInitializationError,
    SlippageExceeded,
)
from pool_bootstrap.core.utils.revert import decode_revert
from pool_bootstrap.core.utils.tokens import ensure_allowance
from pool_bootstrap.core.utils.transaction import (
    TransactionRevertedError,
    send_transaction_and_wait,
    simulate_transaction,
)
from pool_bootstrap.core.utils.uniswap_v4 import (
    build_initialize_transaction,
    build_modify_liquidities_transaction,
    build_permit2_approve_transaction,
    get_permit2_allowance,
    get_slot0,
    latest_block_timestamp,
    minted_token_id,
    posm_get_position_liquidity,
)

# Reverts from PoolManager.initialize that mean the key or price is unusable.
INVALID_INITIALIZE_ERRORS = frozenset(
    {
        "InvalidSqrtPrice",
        "TickSpacingTooLarge",
        "TickSpacingTooSmall",
        "CurrenciesOutOfOrderOrEqual",
        "LPFeeTooLarge",
        "HookAddressNotValid",
    }
)

Classifier = Callable[[Exception], BootstrapError]


def _resolve(config: dict[str, Any], key: str, defaults: dict[int, str], chain_id: int) -> str:
    value = config.get(key) or defaults.get(chain_id)
    if not value:
        raise ValueError(f"No {key} configured for chain {chain_id}")
    return to_checksum_address(str(value))


class UniswapV4Adapter(BaseAdapter):
    """Pool protocol backed by Uniswap v4 PoolManager, PositionManager and Permit2.

    Every write is first run as an ``eth_call`` so custom errors (which a
    mined revert does not expose) can be decoded into bootstrap errors.
    """

    adapter_type = "UNISWAP_V4"

    def __init__(
        self,
        config: dict[str, Any],
        *,
        sign_callback=None,
        wallet_address: str | None = None,
    ) -> None:
        super().__init__("uniswap_v4_adapter", config)
        self.chain_id: int = int(config["chain_id"])
        self.pool_manager = _resolve(
            config, "pool_manager", UNISWAP_V4_POOL_MANAGER, self.chain_id
        )
        self.position_manager = _resolve(
            config, "position_manager", UNISWAP_V4_POSITION_MANAGER, self.chain_id
        )
        self.permit2 = _resolve(config, "permit2", PERMIT2, self.chain_id)
        state_view = config.get("state_view") or UNISWAP_V4_STATE_VIEW.get(self.chain_id)
        self.state_view = to_checksum_address(state_view) if state_view else None

        self.sign_callback = sign_callback
        self.wallet_address = (
            to_checksum_address(wallet_address) if wallet_address else None
        )

    @property
    def liquidity_spender(self) -> str:
        return self.position_manager

    async def _simulate_and_send(
        self, tx: dict[str, Any], classify: Classifier
    ) -> tuple[bytes, str, dict[str, Any]]:
        try:
            output = await simulate_transaction(tx)
        except Exception as exc:
            raise classify(exc) from exc
        try:
            tx_hash, receipt = await send_transaction_and_wait(tx, self.sign_callback)
        except Exception as exc:
            raise classify(exc) from exc
        return bytes(output), tx_hash, receipt

    # ─────────────────────────────────────────────────────────────────────
    # Pool initialization
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def _initialize_classifier(identity: PoolIdentity) -> Classifier:
        def classify(exc: Exception) -> BootstrapError:
            decoded = decode_revert(exc)
            if decoded is None:
                return PoolInitializationError(f"initialize failed: {exc}")
            if decoded.name == "PoolAlreadyInitialized":
                return AlreadyInitialized(
                    identity.pool_id,
                    f"Pool {identity.pool_id} is already initialized",
                )
            if decoded.name in INVALID_INITIALIZE_ERRORS:
                return InvalidPriceOrIdentity(f"initialize rejected: {decoded}")
            return PoolInitializationError(f"initialize reverted: {decoded}")

        return classify

    @require_signer
    async def initialize_pool(self, identity: PoolIdentity, sqrt_price_x96: int) -> int:
        tx = await build_initialize_transaction(
            chain_id=self.chain_id,
            pool_manager_address=self.pool_manager,
            key=identity.as_tuple(),
            sqrt_price_x96=sqrt_price_x96,
            from_address=self.wallet_address,
        )
        output, tx_hash, _ = await self._simulate_and_send(
            tx, self._initialize_classifier(identity)
        )
        (tick,) = abi_decode(["int24"], output)
        self.logger.info(f"PoolManager.initialize {identity.pool_id} in {tx_hash}")

        if self.state_view:
            slot0 = await get_slot0(
                chain_id=self.chain_id,
                state_view_address=self.state_view,
                pool_id_=identity.pool_id,
            )
            if slot0["sqrtPriceX96"] != int(sqrt_price_x96):
                raise InvalidPriceOrIdentity(
                    f"pool {identity.pool_id} reports sqrtPriceX96 {slot0['sqrtPriceX96']} "
                    f"after initializing at {sqrt_price_x96}"
                )
            tick = slot0["tick"]
        return int(tick)

    # ─────────────────────────────────────────────────────────────────────
    # Allowances
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def _allowance_classify(exc: Exception) -> BootstrapError:
        decoded = decode_revert(exc)
        return AllowanceFailure(f"Permit2 approve failed: {decoded or exc}")

    @require_signer
    async def grant_allowance(
        self, asset: str, spender: str, amount: int, expiration: int
    ) -> str | None:
        """ERC20-approve Permit2, then Permit2-approve ``spender``.

        Returns the Permit2 approval tx hash, or ``None`` if an allowance at
        least as large and as long-lived already exists.
        """
        asset = to_checksum_address(asset)
        spender = to_checksum_address(spender)
        try:
            await ensure_allowance(
                token_address=asset,
                owner=self.wallet_address,
                spender=self.permit2,
                amount=int(amount),
                approval_amount=MAX_UINT256,
                chain_id=self.chain_id,
                signing_callback=self.sign_callback,
            )
            current_amount, current_expiration = await get_permit2_allowance(
                chain_id=self.chain_id,
                permit2_address=self.permit2,
                owner=self.wallet_address,
                token_address=asset,
                spender=spender,
            )
        except Exception as exc:
            raise AllowanceFailure(f"approving Permit2 for {asset} failed: {exc}") from exc

        if current_amount >= int(amount) and current_expiration >= int(expiration):
            self.logger.info(f"Permit2 allowance for {asset} -> {spender} already set")
            return None

        tx = await build_permit2_approve_transaction(
            chain_id=self.chain_id,
            permit2_address=self.permit2,
            token_address=asset,
            spender=spender,
            from_address=self.wallet_address,
            amount=int(amount),
            expiration=int(expiration),
        )
        _, tx_hash, _ = await self._simulate_and_send(tx, self._allowance_classify)
        return tx_hash

    # ─────────────────────────────────────────────────────────────────────
    # Liquidity
    # ─────────────────────────────────────────────────────────────────────

    async def latest_timestamp(self) -> int:
        return await latest_block_timestamp(self.chain_id)

    @staticmethod
    def _submission_classifier(deadline: int) -> Classifier:
        def classify(exc: Exception) -> BootstrapError:
            decoded = decode_revert(exc)
            if decoded is not None and decoded.name == "DeadlinePassed":
                return DeadlineExpired(
                    int(decoded.args[0]) if decoded.args else deadline,
                    f"modifyLiquidities deadline {deadline} has passed",
                )
            if decoded is not None and decoded.name == "MaximumAmountExceeded":
                maximum, required = (decoded.args + (None, None))[:2]
                return SlippageExceeded(
                    maximum,
                    required,
                    f"pool requires {required}, above the maximum {maximum}",
                )
            if isinstance(exc, TransactionRevertedError):
                return AtomicSubmissionFailure(str(exc))
            return AtomicSubmissionFailure(
                f"modifyLiquidities failed: {decoded or exc}"
            )

        return classify

    @require_signer
    async def submit_liquidity(self, unlock_data: bytes, deadline: int) -> PositionReceipt:
        tx = await build_modify_liquidities_transaction(
            chain_id=self.chain_id,
            position_manager_address=self.position_manager,
            unlock_data=unlock_data,
            deadline=deadline,
            from_address=self.wallet_address,
        )
        _, tx_hash, receipt = await self._simulate_and_send(
            tx, self._submission_classifier(int(deadline))
        )

        token_id = minted_token_id(receipt, self.position_manager)
        liquidity = (
            await posm_get_position_liquidity(
                chain_id=self.chain_id,
                position_manager_address=self.position_manager,
                token_id=token_id,
            )
            if token_id is not None
            else None
        )
        self.logger.info(
            f"modifyLiquidities {tx_hash}: token_id={token_id} liquidity={liquidity}"
        )
        return PositionReceipt(tx_hash=tx_hash, token_id=token_id, liquidity=liquidity)
