from __future__ import annotations

import json
import sys
from unittest.mock import patch

import pytest
from eth_account import Account

from pool_bootstrap import run_bootstrap as cli
from pool_bootstrap.core import config as cfg
from pool_bootstrap.testing.fake_ledger import FakeLedger, reference_bootstrap_config

PRIVATE_KEY = "0x" + "11" * 32


@pytest.fixture(autouse=True)
def _restore_config(monkeypatch):
    monkeypatch.delenv("POOL_BOOTSTRAP_PRIVATE_KEY", raising=False)
    saved = dict(cfg.CONFIG)
    yield
    cfg.set_config(saved)


def _write_config(tmp_path, **wallet) -> str:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "wallet": {"private_key_hex": PRIVATE_KEY, **wallet},
                "bootstrap": reference_bootstrap_config(),
            }
        )
    )
    return str(path)


def test_describe_plan_lists_assets_and_protocol(reference_settings):
    text = cli.describe_plan(reference_settings, "0xabc")
    assert text.startswith("Bootstrap plan on base-sepolia (84532) from 0xabc:")
    assert "Test Bitcoin (tBTC) decimals=8 supply=100 deposit=25" in text
    assert "fee=3000 tickSpacing=60" in text
    assert "range=[-887220, 887220]" in text
    assert f"PositionManager={reference_settings.position_manager}" in text


def test_main_without_yes_only_prints_plan(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(
        sys, "argv", ["pool-bootstrap", "--config", _write_config(tmp_path), "--slippage-bps", "250"]
    )
    with patch.object(cli, "run_bootstrap") as run:
        assert cli.main() == 0
    run.assert_not_called()
    out = capsys.readouterr().out
    assert "slippage=250bps" in out
    assert "Dry run only" in out


def test_main_rejects_mismatched_wallet(tmp_path, monkeypatch):
    config_path = _write_config(
        tmp_path, address="0xcccccccccccccccccccccccccccccccccccccccc"
    )
    monkeypatch.setattr(sys, "argv", ["pool-bootstrap", "--config", config_path])
    with pytest.raises(SystemExit, match="does not match"):
        cli.main()


def test_main_rejects_invalid_bootstrap_section(tmp_path, monkeypatch):
    monkeypatch.setattr(
        sys,
        "argv",
        ["pool-bootstrap", "--config", _write_config(tmp_path), "--deadline-seconds", "0"],
    )
    with pytest.raises(SystemExit, match="Invalid bootstrap config"):
        cli.main()


def test_main_requires_existing_config(tmp_path, monkeypatch):
    monkeypatch.setattr(
        sys, "argv", ["pool-bootstrap", "--config", str(tmp_path / "missing.json")]
    )
    with pytest.raises(SystemExit, match="not found"):
        cli.main()


@pytest.mark.asyncio
async def test_run_bootstrap_success_writes_report(reference_settings, tmp_path, capsys):
    ledger = FakeLedger(owner=Account.from_key(PRIVATE_KEY).address)
    with (
        patch.object(cli, "TokenAdapter", return_value=ledger),
        patch.object(cli, "UniswapV4Adapter", return_value=ledger) as pool_cls,
    ):
        code = await cli.run_bootstrap(
            reference_settings,
            private_key=PRIVATE_KEY,
            report_path=str(tmp_path / "report.json"),
        )

    assert code == 0
    config = pool_cls.call_args.args[0]
    assert config["position_manager"] == reference_settings.position_manager
    assert pool_cls.call_args.kwargs["wallet_address"] == ledger.owner
    data = json.loads((tmp_path / "report.json").read_text())
    assert data["state"] == "LIQUIDITY_SUBMITTED"
    assert "LIQUIDITY_SUBMITTED" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_run_bootstrap_failure_exits_nonzero(reference_settings, capsys):
    ledger = FakeLedger(submission_delay=10_000)
    with (
        patch.object(cli, "TokenAdapter", return_value=ledger),
        patch.object(cli, "UniswapV4Adapter", return_value=ledger),
    ):
        code = await cli.run_bootstrap(reference_settings, private_key=PRIVATE_KEY)

    assert code == 1
    assert "FAILED at LIQUIDITY_SUBMITTED" in capsys.readouterr().out
