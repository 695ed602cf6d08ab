"""
Shared fixtures for wallet tests.
"""

from __future__ import annotations

import pytest

from btcwallet.address import Address, AddressType
from btcwallet.keys import WalletKey
from btcwallet.models import UTXO
from btcwallet.network import TESTNET

# Private key scalar 1 (not for production use!)
KEY_ONE_HEX = "00" * 31 + "01"
KEY_TWO_HEX = "00" * 31 + "02"


@pytest.fixture
def key_one() -> WalletKey:
    """Wallet key with scalar 1."""
    return WalletKey.from_hex(KEY_ONE_HEX)


@pytest.fixture
def key_two() -> WalletKey:
    return WalletKey.from_hex(KEY_TWO_HEX)


@pytest.fixture
def p2wpkh_address(key_one: WalletKey) -> Address:
    return key_one.address(TESTNET, AddressType.P2WPKH)


@pytest.fixture
def p2pkh_address(key_one: WalletKey) -> Address:
    return key_one.address(TESTNET, AddressType.P2PKH)


@pytest.fixture
def destination(key_two: WalletKey) -> Address:
    """A testnet P2WPKH destination not controlled by key_one."""
    return key_two.address(TESTNET, AddressType.P2WPKH)


@pytest.fixture
def sample_utxos() -> list[UTXO]:
    """Three coins of 100, 200 and 300 sats in indexer order."""
    return [
        UTXO(txid="11" * 32, vout=0, value=100, confirmed=True, block_height=100),
        UTXO(txid="22" * 32, vout=1, value=200, confirmed=False),
        UTXO(txid="33" * 32, vout=2, value=300, confirmed=True, block_height=102),
    ]
