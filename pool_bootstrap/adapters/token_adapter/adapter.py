from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from eth_utils import to_checksum_address

from pool_bootstrap.bootstrap.planner import split_supply
from pool_bootstrap.bootstrap.types import AssetDescriptor, AssetSpec
from pool_bootstrap.core.adapters.BaseAdapter import BaseAdapter, require_signer
from pool_bootstrap.core.errors import IssuanceFailure
from pool_bootstrap.core.utils.contracts import deploy_contract
from pool_bootstrap.core.utils.tokens import get_token_balance, get_token_decimals

FIXED_SUPPLY_TOKEN_SOURCE = (
    Path(__file__).resolve().parents[2] / "contracts" / "FixedSupplyToken.sol"
)
FIXED_SUPPLY_TOKEN_NAME = "FixedSupplyToken"


class TokenAdapter(BaseAdapter):
    """Issues fixed-supply ERC20s by compiling and deploying ``FixedSupplyToken``."""

    adapter_type: str = "TOKEN"

    def __init__(
        self,
        config: dict[str, Any],
        *,
        sign_callback=None,
        wallet_address: str | None = None,
    ):
        super().__init__("token_adapter", config)
        self.chain_id: int = int(config["chain_id"])
        partner = config.get("partner")
        if not partner:
            raise ValueError("partner address is required for TokenAdapter")
        self.partner: str = to_checksum_address(str(partner))
        self.sign_callback = sign_callback
        self.wallet_address = (
            to_checksum_address(wallet_address) if wallet_address else None
        )
        self.source_path = Path(config.get("source_path") or FIXED_SUPPLY_TOKEN_SOURCE)

    async def _verify(self, spec: AssetSpec, address: str) -> None:
        issuer_share, partner_share = split_supply(spec.total_supply)
        decimals, issuer_balance, partner_balance = await asyncio.gather(
            get_token_decimals(address, self.chain_id),
            get_token_balance(address, self.chain_id, self.wallet_address),
            get_token_balance(address, self.chain_id, self.partner),
        )
        if decimals != spec.decimals:
            raise IssuanceFailure(
                f"{spec.symbol} at {address} reports {decimals} decimals, expected {spec.decimals}"
            )
        if int(self.wallet_address, 16) == int(self.partner, 16):
            expected = {"issuer": spec.total_supply}
            actual = {"issuer": issuer_balance}
        else:
            expected = {"issuer": issuer_share, "partner": partner_share}
            actual = {"issuer": issuer_balance, "partner": partner_balance}
        if actual != expected:
            raise IssuanceFailure(
                f"{spec.symbol} at {address}: balances {actual} != expected {expected}"
            )

    @require_signer
    async def issue(self, spec: AssetSpec) -> AssetDescriptor:
        issuer_share, partner_share = split_supply(spec.total_supply)
        self.logger.info(
            f"Deploying {FIXED_SUPPLY_TOKEN_NAME} {spec.symbol} "
            f"(supply={spec.total_supply}, decimals={spec.decimals}, partner={self.partner})"
        )
        try:
            deployed = await deploy_contract(
                source_path=self.source_path,
                contract_name=FIXED_SUPPLY_TOKEN_NAME,
                constructor_args=[
                    spec.name,
                    spec.symbol,
                    int(spec.decimals),
                    int(spec.total_supply),
                    self.partner,
                ],
                from_address=self.wallet_address,
                chain_id=self.chain_id,
                sign_callback=self.sign_callback,
            )
        except Exception as exc:
            self.logger.error(f"Deploying {spec.symbol} failed: {exc}")
            raise IssuanceFailure(f"deploying {spec.symbol} failed: {exc}") from exc

        try:
            await self._verify(spec, deployed.address)
        except IssuanceFailure:
            raise
        except Exception as exc:
            raise IssuanceFailure(
                f"verifying {spec.symbol} at {deployed.address} failed: {exc}"
            ) from exc

        self.logger.info(f"{spec.symbol} deployed at {deployed.address} ({deployed.tx_hash})")
        return AssetDescriptor(
            address=deployed.address,
            decimals=spec.decimals,
            total_supply=spec.total_supply,
            issuer_share=issuer_share,
            partner_share=partner_share,
            symbol=spec.symbol,
            tx_hash=deployed.tx_hash,
        )
