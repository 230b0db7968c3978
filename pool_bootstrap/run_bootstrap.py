#!/usr/bin/env python3

# Allow running as a script: `python pool_bootstrap/run_bootstrap.py ...`
if __name__ == "__main__" and __package__ is None:
    import sys
    from pathlib import Path

    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import argparse
import asyncio
import sys

from eth_account import Account
from loguru import logger

from pool_bootstrap.adapters.token_adapter import TokenAdapter
from pool_bootstrap.adapters.uniswap_v4_adapter import UniswapV4Adapter
from pool_bootstrap.bootstrap.orchestrator import DeploymentOrchestrator
from pool_bootstrap.bootstrap.report import format_report, write_report_json
from pool_bootstrap.bootstrap.settings import BootstrapSettings
from pool_bootstrap.core.config import (
    get_bootstrap_config,
    get_private_key,
    get_wallet_address,
    load_config,
)
from pool_bootstrap.core.constants.chains import CHAIN_ID_TO_CODE
from pool_bootstrap.core.errors import BootstrapFailed
from pool_bootstrap.core.utils.transaction import make_sign_callback
from pool_bootstrap.core.utils.units import from_erc20_raw


def describe_plan(settings: BootstrapSettings, wallet_address: str) -> str:
    chain = CHAIN_ID_TO_CODE.get(settings.chain_id, str(settings.chain_id))
    lines = [f"Bootstrap plan on {chain} ({settings.chain_id}) from {wallet_address}:"]
    for label, spec in (("A", settings.asset_a), ("B", settings.asset_b)):
        lines.append(
            f"  asset {label}: {spec.name} ({spec.symbol}) decimals={spec.decimals} "
            f"supply={from_erc20_raw(spec.total_supply, spec.decimals)} "
            f"deposit={from_erc20_raw(spec.deposit, spec.decimals)}"
        )
    lines += [
        f"  partner {settings.partner}, position recipient {settings.recipient}",
        f"  fee={settings.fee} tickSpacing={settings.tick_spacing} hooks={settings.hooks}",
        f"  sqrtPriceX96={settings.sqrt_price_x96} range=[{settings.tick_lower}, {settings.tick_upper}]",
        f"  slippage={settings.slippage_bps}bps deadline=+{settings.deadline_seconds}s",
        f"  PoolManager={settings.pool_manager} PositionManager={settings.position_manager}",
        f"  Permit2={settings.permit2}",
    ]
    return "\n".join(lines)


async def run_bootstrap(
    settings: BootstrapSettings,
    *,
    private_key: str,
    report_path: str | None = None,
) -> int:
    wallet_address = Account.from_key(private_key).address
    sign_callback = make_sign_callback(private_key)

    token_adapter = TokenAdapter(
        {"chain_id": settings.chain_id, "partner": settings.partner},
        sign_callback=sign_callback,
        wallet_address=wallet_address,
    )
    pool_adapter = UniswapV4Adapter(
        {
            "chain_id": settings.chain_id,
            "pool_manager": settings.pool_manager,
            "position_manager": settings.position_manager,
            "permit2": settings.permit2,
            "state_view": settings.state_view,
        },
        sign_callback=sign_callback,
        wallet_address=wallet_address,
    )
    orchestrator = DeploymentOrchestrator(settings, token_adapter, pool_adapter)

    try:
        report = await orchestrator.run()
        exit_code = 0
    except BootstrapFailed as exc:
        report = exc.report or orchestrator.report
        logger.error(f"{exc} (no further steps were attempted)")
        exit_code = 1
    finally:
        await token_adapter.close()
        await pool_adapter.close()

    print(format_report(report))
    if report_path:
        out = write_report_json(report, report_path)
        logger.info(f"Report written to {out}")
    return exit_code


def main() -> int:
    p = argparse.ArgumentParser(
        description="Issue two fixed-supply tokens and bootstrap a Uniswap v4 pool for them."
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to config JSON (default: config.json in the project root)",
    )
    p.add_argument("--chain", default=None, help="Chain code or id (overrides bootstrap.chain)")
    p.add_argument(
        "--slippage-bps",
        type=int,
        default=None,
        help="Margin added to each deposit for amount0Max/amount1Max (bps)",
    )
    p.add_argument(
        "--deadline-seconds",
        type=int,
        default=None,
        help="Offset from the latest block timestamp for the liquidity deadline",
    )
    p.add_argument("--report-path", default=None, help="Write the run report as JSON here")
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    p.add_argument(
        "--yes",
        action="store_true",
        help="Broadcast transactions. Without it the plan is printed and nothing is sent.",
    )
    args = p.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=args.log_level)

    try:
        load_config(args.config, require_exists=bool(args.config))
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc

    private_key = get_private_key()
    if not private_key:
        raise SystemExit(
            "No signer: set POOL_BOOTSTRAP_PRIVATE_KEY or wallet.private_key_hex in config.json"
        )
    wallet_address = Account.from_key(private_key).address
    configured = get_wallet_address()
    if configured and configured.lower() != wallet_address.lower():
        raise SystemExit(
            f"wallet.address {configured} does not match the private key ({wallet_address})"
        )

    section = get_bootstrap_config()
    if args.chain:
        section["chain"] = args.chain
        section.pop("chain_id", None)
    try:
        settings = BootstrapSettings.from_config(
            section, wallet_address=wallet_address
        ).with_overrides(
            slippage_bps=args.slippage_bps,
            deadline_seconds=args.deadline_seconds,
        )
    except ValueError as exc:
        raise SystemExit(f"Invalid bootstrap config: {exc}") from exc

    print(describe_plan(settings, wallet_address))
    if not args.yes:
        print("Dry run only. Re-run with --yes to broadcast.")
        return 0

    return asyncio.run(
        run_bootstrap(settings, private_key=private_key, report_path=args.report_path)
    )


if __name__ == "__main__":
    raise SystemExit(main())
