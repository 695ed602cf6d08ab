"""
Tests for the end-to-end wallet run.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from btcwallet.config import ConfigSource, WalletConfig, default_node_config
from btcwallet.errors import (
    ConfigError,
    HttpStatusError,
    InsufficientFunds,
    InvalidAddress,
    InvalidKey,
)
from btcwallet.indexer import IndexerClient
from btcwallet.keys import WalletKey
from btcwallet.models import UTXO
from btcwallet.network import TESTNET
from btcwallet.orchestrator import (
    REASON_BROADCAST_DISABLED,
    REASON_NO_UTXOS,
    load_key_and_address,
    run_wallet,
)
from btcwallet.signing import verify_message
from btcwallet.transaction import deserialize_transaction

KEY_ONE_HEX = "00" * 31 + "01"
KEY_ONE_ADDRESS = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"
KEY_ONE_P2PKH = "mrCDrCybB6J1vRfbwM5hemdJz73FwDBC8r"
DESTINATION = str(WalletKey.from_hex("00" * 31 + "02").address(TESTNET))
BROADCAST_TXID = "ef" * 32


def make_config(private_key: str = KEY_ONE_HEX, address: str = KEY_ONE_ADDRESS) -> WalletConfig:
    return WalletConfig(
        node=default_node_config(),
        source=ConfigSource.DEFAULTS,
        private_key_hex=private_key,
        address=address,
    )


def make_indexer(utxos: list[UTXO]) -> MagicMock:
    indexer = MagicMock(spec=IndexerClient)
    indexer.list_unspent.return_value = utxos
    indexer.submit.return_value = BROADCAST_TXID
    return indexer


@pytest.fixture
def funded() -> list[UTXO]:
    return [
        UTXO(txid="aa" * 32, vout=0, value=3000, confirmed=False),
        UTXO(txid="bb" * 32, vout=1, value=10000, confirmed=True, block_height=10),
    ]


class TestLoadKey:
    def test_loads(self) -> None:
        key, address = load_key_and_address(make_config())
        assert str(address) == KEY_ONE_ADDRESS
        assert key.controls(address)

    def test_legacy_address(self) -> None:
        _, address = load_key_and_address(make_config(address=KEY_ONE_P2PKH))
        assert address.kind.value == "p2pkh"

    @pytest.mark.parametrize("private_key,address", [("", KEY_ONE_ADDRESS), (KEY_ONE_HEX, "")])
    def test_missing(self, private_key: str, address: str) -> None:
        with pytest.raises(ConfigError):
            load_key_and_address(make_config(private_key, address))

    def test_mismatch(self) -> None:
        with pytest.raises(InvalidKey, match="does not match"):
            load_key_and_address(make_config("00" * 31 + "02", KEY_ONE_ADDRESS))

    def test_bad_address(self) -> None:
        with pytest.raises(InvalidAddress):
            load_key_and_address(make_config(address="bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"))


class TestRunWallet:
    """Tests for run_wallet."""

    def test_no_utxos(self) -> None:
        indexer = make_indexer([])

        result = run_wallet(make_config(), indexer=indexer)

        assert result.reason == REASON_NO_UTXOS
        assert result.txid is None
        assert result.unspent_count == 0
        indexer.list_unspent.assert_called_once_with(KEY_ONE_ADDRESS)
        indexer.submit.assert_not_called()

    def test_signature(self) -> None:
        result = run_wallet(make_config(), message=b"Hello BTC", indexer=make_indexer([]))

        key = WalletKey.from_hex(KEY_ONE_HEX)
        assert verify_message(key.public_key, b"Hello BTC", result.signature)

    def test_broadcast_disabled(self, funded: list[UTXO]) -> None:
        indexer = make_indexer(funded)

        result = run_wallet(make_config(), destination=DESTINATION, indexer=indexer)

        assert result.reason == REASON_BROADCAST_DISABLED
        assert not result.broadcast
        assert result.unspent_count == 2
        assert result.balance == 13000
        assert result.fee == 1000
        assert deserialize_transaction(bytes.fromhex(result.raw_tx)).txid == result.txid
        indexer.submit.assert_not_called()

    def test_broadcast(self, funded: list[UTXO]) -> None:
        indexer = make_indexer(funded)

        result = run_wallet(make_config(), destination=DESTINATION, broadcast=True, indexer=indexer)

        indexer.submit.assert_called_once_with(result.raw_tx)
        assert result.broadcast
        assert result.txid == BROADCAST_TXID
        assert result.reason is None

    def test_confirmed_only(self, funded: list[UTXO]) -> None:
        result = run_wallet(make_config(), confirmed_only=True, indexer=make_indexer(funded))

        assert result.unspent_count == 1
        assert result.balance == 10000
        tx = deserialize_transaction(bytes.fromhex(result.raw_tx))
        assert [inp.prevout.txid for inp in tx.inputs] == ["bb" * 32]

    def test_insufficient_funds(self, funded: list[UTXO]) -> None:
        with pytest.raises(InsufficientFunds) as exc_info:
            run_wallet(make_config(), amount=50000, indexer=make_indexer(funded))

        assert str(exc_info.value).startswith("build_transaction(to=")
        assert exc_info.value.exit_code == 3

    def test_indexer_error_propagates(self) -> None:
        indexer = make_indexer([])
        indexer.list_unspent.side_effect = HttpStatusError(503, "unavailable")

        with pytest.raises(HttpStatusError) as exc_info:
            run_wallet(make_config(), indexer=indexer)
        assert exc_info.value.exit_code == 2

    def test_key_wiped(self, funded: list[UTXO]) -> None:
        key = WalletKey.from_hex(KEY_ONE_HEX)
        address = key.address(TESTNET)

        with patch(
            "btcwallet.orchestrator.load_key_and_address", return_value=(key, address)
        ):
            run_wallet(make_config(), indexer=make_indexer(funded))

        assert key.wiped

    def test_key_wiped_on_error(self) -> None:
        key = WalletKey.from_hex(KEY_ONE_HEX)
        indexer = make_indexer([])
        indexer.list_unspent.side_effect = HttpStatusError(500)

        with patch(
            "btcwallet.orchestrator.load_key_and_address",
            return_value=(key, key.address(TESTNET)),
        ):
            with pytest.raises(HttpStatusError):
                run_wallet(make_config(), indexer=indexer)

        assert key.wiped


class TestIndexerLifecycle:
    def test_owned_indexer_closed(self) -> None:
        indexer = make_indexer([])
        with patch(
            "btcwallet.orchestrator.IndexerClient.from_config", return_value=indexer
        ) as from_config:
            run_wallet(make_config())

        from_config.assert_called_once()
        indexer.close.assert_called_once()

    def test_passed_indexer_left_open(self) -> None:
        indexer = make_indexer([])
        run_wallet(make_config(), indexer=indexer)
        indexer.close.assert_not_called()
