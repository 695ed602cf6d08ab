"""
Tests for the btc-wallet command line.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from loguru import logger
from typer.testing import CliRunner

from btcwallet.cli import app
from btcwallet.errors import HttpStatusError, InsufficientFunds
from btcwallet.indexer import IndexerClient
from btcwallet.models import UTXO
from btcwallet.orchestrator import REASON_BROADCAST_DISABLED, RunResult
from btcwallet.signing import verify_message

runner = CliRunner()

KEY_ONE_HEX = "00" * 31 + "01"
KEY_ONE_PUBKEY = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)
KEY_ONE_ADDRESS = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"

ENV_VARS = (
    "BTC_NODE_API_URL",
    "BTC_PRIVATE_KEY",
    "BTC_ADDRESS",
    "BTC_NETWORK",
    "BTC_CONFIG_FILE",
    "BTC_BROADCAST",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # The CLI points loguru at the runner's captured stderr
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def wallet_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BTC_PRIVATE_KEY", KEY_ONE_HEX)
    monkeypatch.setenv("BTC_ADDRESS", KEY_ONE_ADDRESS)


def sample_result() -> RunResult:
    return RunResult(
        address=KEY_ONE_ADDRESS,
        network="testnet",
        signature="3044",
        unspent_count=1,
        balance=5000,
        txid="ab" * 32,
        raw_tx="0200",
        fee=1000,
        reason=REASON_BROADCAST_DISABLED,
    )


class TestGenerate:
    def test_default(self) -> None:
        result = runner.invoke(app, ["generate"])

        assert result.exit_code == 0
        assert "Private key (hex):" in result.output
        assert "Address (p2wpkh): tb1q" in result.output

    def test_mainnet_p2pkh(self) -> None:
        result = runner.invoke(app, ["generate", "--network", "mainnet", "--type", "p2pkh"])

        assert result.exit_code == 0
        assert "Address (p2pkh): 1" in result.output


class TestSignMessage:
    def test_sign(self) -> None:
        result = runner.invoke(app, ["sign-message", "Hello BTC", "--private-key", KEY_ONE_HEX])

        assert result.exit_code == 0
        signature = result.output.strip().splitlines()[-1]
        assert verify_message(KEY_ONE_PUBKEY, b"Hello BTC", signature)

    def test_key_from_env(self, wallet_env: None) -> None:
        result = runner.invoke(app, ["sign-message", "Hello BTC"])
        assert result.exit_code == 0

    def test_missing_key(self) -> None:
        result = runner.invoke(app, ["sign-message", "Hello BTC"])
        assert result.exit_code == 1

    def test_invalid_key(self) -> None:
        result = runner.invoke(app, ["sign-message", "hi", "--private-key", "00" * 32])

        assert result.exit_code == 1
        assert "InvalidKey" in result.output


class TestRun:
    """Tests for the run command and its exit codes."""

    def test_missing_credentials(self) -> None:
        result = runner.invoke(app, ["run", "--log-level", "ERROR"])

        assert result.exit_code == 1
        assert "BTC_PRIVATE_KEY" in result.output

    def test_success(self, wallet_env: None) -> None:
        with patch("btcwallet.cli.run_wallet", return_value=sample_result()) as run_wallet:
            result = runner.invoke(app, ["run", "--amount", "2000", "--fee", "600"])

        assert result.exit_code == 0
        assert "ab" * 32 in result.output
        assert REASON_BROADCAST_DISABLED in result.output
        kwargs = run_wallet.call_args.kwargs
        assert kwargs["amount"] == 2000
        assert kwargs["fee"] == 600
        assert kwargs["broadcast"] is False
        assert kwargs["message"] == b"Hello BTC"

    def test_json(self, wallet_env: None) -> None:
        with patch("btcwallet.cli.run_wallet", return_value=sample_result()):
            result = runner.invoke(app, ["run", "--json", "--log-level", "ERROR"])

        assert result.exit_code == 0
        payload = json.loads(result.output[result.output.index("{") :])
        assert payload["txid"] == "ab" * 32
        assert payload["broadcast"] is False

    def test_broadcast_flag(self, wallet_env: None) -> None:
        with patch("btcwallet.cli.run_wallet", return_value=sample_result()) as run_wallet:
            runner.invoke(app, ["run", "--broadcast"])
        assert run_wallet.call_args.kwargs["broadcast"] is True

    def test_broadcast_from_env_file(self, wallet_env: None, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("BTC_BROADCAST=true\n")
        with patch("btcwallet.cli.run_wallet", return_value=sample_result()) as run_wallet:
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 0
        assert run_wallet.call_args.kwargs["broadcast"] is True

    def test_no_broadcast_overrides_env(
        self, wallet_env: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("BTC_BROADCAST", "1")
        with patch("btcwallet.cli.run_wallet", return_value=sample_result()) as run_wallet:
            runner.invoke(app, ["run", "--no-broadcast"])
        assert run_wallet.call_args.kwargs["broadcast"] is False

    def test_log_level_from_env_file(self, wallet_env: None, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("LOG_LEVEL=debug\n")
        with (
            patch("btcwallet.cli.run_wallet", return_value=sample_result()),
            patch("btcwallet.cli.setup_logging") as setup_logging,
        ):
            runner.invoke(app, ["run"])

        assert setup_logging.call_args_list[-1].args == ("DEBUG",)

    def test_log_level_option_wins(self, wallet_env: None, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("LOG_LEVEL=debug\n")
        with (
            patch("btcwallet.cli.run_wallet", return_value=sample_result()),
            patch("btcwallet.cli.setup_logging") as setup_logging,
        ):
            runner.invoke(app, ["run", "--log-level", "WARNING"])

        assert [c.args for c in setup_logging.call_args_list] == [("WARNING",)]

    def test_insufficient_funds(self, wallet_env: None) -> None:
        error = InsufficientFunds(required=2000, available=100)
        with patch("btcwallet.cli.run_wallet", side_effect=error):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 3
        assert "error: InsufficientFunds: need 2000 sats, have 100 sats" in result.output

    def test_indexer_error(self, wallet_env: None) -> None:
        with patch("btcwallet.cli.run_wallet", side_effect=HttpStatusError(503, "down")):
            result = runner.invoke(app, ["run", "--log-level", "ERROR"])
        assert result.exit_code == 2

    def test_unexpected_error(self, wallet_env: None) -> None:
        with patch("btcwallet.cli.run_wallet", side_effect=RuntimeError("boom")):
            result = runner.invoke(app, ["run", "--log-level", "CRITICAL"])

        assert result.exit_code == 4
        assert "error: boom" in result.output

    def test_unexpected_error_single_line(self, wallet_env: None) -> None:
        with patch("btcwallet.cli.run_wallet", side_effect=RuntimeError("boom")):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 4
        assert result.output.strip().splitlines() == ["error: boom"]

    def test_indexer_failure_single_line(self, wallet_env: None) -> None:
        def failing_run(*args, **kwargs):
            transport = httpx.MockTransport(lambda request: httpx.Response(404, text="gone"))
            with IndexerClient("https://indexer.test/api", transport=transport) as indexer:
                indexer.list_unspent(KEY_ONE_ADDRESS)

        with patch("btcwallet.cli.run_wallet", side_effect=failing_run):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 2
        lines = result.output.strip().splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("error: ") and "HttpStatus(404)" in lines[0]

    def test_bad_yaml(self, wallet_env: None, tmp_path: Path) -> None:
        path = tmp_path / "broken.yml"
        path.write_text("wallet_node: [\n")

        result = runner.invoke(app, ["run", "--config", str(path), "--log-level", "ERROR"])
        assert result.exit_code == 1


class TestUnspent:
    def test_lists_utxos(self) -> None:
        indexer = MagicMock()
        indexer.__enter__.return_value = indexer
        indexer.list_unspent.return_value = [
            UTXO(txid="ab" * 32, vout=0, value=5000, confirmed=True),
            UTXO(txid="cd" * 32, vout=2, value=700),
        ]

        with patch("btcwallet.cli.IndexerClient.from_config", return_value=indexer):
            result = runner.invoke(app, ["unspent", KEY_ONE_ADDRESS])

        assert result.exit_code == 0
        assert f"{'ab' * 32}:0" in result.output
        assert "unconfirmed" in result.output
        assert "2 UTXO(s), 5,700 sats total" in result.output
        indexer.list_unspent.assert_called_once_with(KEY_ONE_ADDRESS)
