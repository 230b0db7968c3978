from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from pool_bootstrap.bootstrap.types import RunReport, RunState
from pool_bootstrap.core.constants.chains import CHAIN_EXPLORER_URLS
from pool_bootstrap.core.utils.liquidity_math import sqrt_price_x96_to_price


def report_to_dict(report: RunReport) -> dict[str, Any]:
    data: dict[str, Any] = {
        "chain_id": report.chain_id,
        "state": report.state.name,
        "succeeded": report.succeeded,
        "assets": [asdict(a) for a in report.assets],
        "pair": None,
        "pool": None,
        "starting_tick": report.starting_tick,
        "sqrt_price_x96": report.sqrt_price_x96,
        "allowance_txs": list(report.allowance_txs),
        "liquidity_request": asdict(report.request) if report.request else None,
        "receipt": asdict(report.receipt) if report.receipt else None,
        "failed_step": report.failed_step.name if report.failed_step else None,
        "failure": report.failure,
    }
    if report.pair is not None:
        data["pair"] = {
            "currency0": report.pair.currency0,
            "currency1": report.pair.currency1,
            "amount0": report.pair.amount0,
            "amount1": report.pair.amount1,
        }
    if report.identity is not None:
        data["pool"] = {
            **asdict(report.identity),
            "pool_id": report.identity.pool_id,
        }
    return data


def write_report_json(report: RunReport, path: str | Path) -> Path:
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(report_to_dict(report), indent=2) + "\n")
    return out


def _tx_link(chain_id: int, tx_hash: str) -> str:
    base = CHAIN_EXPLORER_URLS.get(chain_id)
    return f"{base}tx/{tx_hash}" if base else tx_hash


def format_report(report: RunReport) -> str:
    """Human-readable summary for operators. Not a stable format."""
    lines = [f"Bootstrap run on chain {report.chain_id}: {report.state.name}"]

    for asset in report.assets:
        lines.append(
            f"  asset {asset.symbol or '?'}: {asset.address} decimals={asset.decimals} "
            f"supply={asset.total_supply} (issuer {asset.issuer_share} / partner {asset.partner_share})"
        )

    if report.pair is not None:
        pair = report.pair
        lines.append(
            f"  canonical order: currency0={pair.asset0.symbol or pair.currency0} "
            f"currency1={pair.asset1.symbol or pair.currency1}"
        )
        lines.append(f"  deposits: amount0={pair.amount0} amount1={pair.amount1}")

    if report.identity is not None:
        ident = report.identity
        lines.append(
            f"  pool {ident.pool_id} fee={ident.fee} tickSpacing={ident.tick_spacing} hooks={ident.hooks}"
        )

    if report.starting_tick is not None and report.sqrt_price_x96 is not None:
        price = sqrt_price_x96_to_price(report.sqrt_price_x96)
        lines.append(
            f"  starting tick {report.starting_tick} (sqrtPriceX96={report.sqrt_price_x96}, raw price {price:.6g})"
        )

    if report.request is not None:
        req = report.request
        lines.append(
            f"  liquidity {req.liquidity} in [{req.tick_lower}, {req.tick_upper}] -> {req.recipient}"
        )
        lines.append(
            f"  amounts: expected {req.amount0_expected}/{req.amount1_expected}, "
            f"max {req.amount0_max}/{req.amount1_max}"
        )
        if req.deadline is not None:
            lines.append(f"  deadline {req.deadline}")

    if report.receipt is not None:
        rec = report.receipt
        lines.append(f"  receipt: {_tx_link(report.chain_id, rec.tx_hash)}")
        if rec.token_id is not None:
            lines.append(f"  position token id {rec.token_id} liquidity {rec.liquidity}")

    if report.state is RunState.FAILED:
        step = report.failed_step.name if report.failed_step else "?"
        lines.append(f"  FAILED at {step}: {report.failure}")

    return "\n".join(lines)
