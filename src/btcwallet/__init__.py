"""
btcwallet - Minimal Bitcoin testnet wallet client

Generates and imports secp256k1 keys, encodes P2PKH/P2WPKH addresses, signs
messages, and builds, signs and broadcasts transactions through an
Esplora-compatible indexer.
"""

__version__ = "0.1.0"

from btcwallet.address import Address, AddressType, hash160
from btcwallet.coin_selection import select_coins
from btcwallet.config import WalletConfig, load_config
from btcwallet.errors import (
    ConfigError,
    IndexerError,
    InsufficientFunds,
    InvalidAddress,
    InvalidKey,
    WalletError,
)
from btcwallet.indexer import IndexerClient
from btcwallet.keys import WalletKey, generate_wallet, import_key
from btcwallet.models import UTXO, CoinSelection
from btcwallet.network import MAINNET, REGTEST, SIGNET, TESTNET, NetworkParams, NetworkType
from btcwallet.orchestrator import RunResult, run_wallet
from btcwallet.signing import sign_message, verify_message
from btcwallet.transaction import Transaction, deserialize_transaction
from btcwallet.tx_builder import SignedTransaction, build_transaction

__all__ = [
    "__version__",
    # Keys and addresses
    "Address",
    "AddressType",
    "WalletKey",
    "generate_wallet",
    "hash160",
    "import_key",
    # Networks
    "MAINNET",
    "NetworkParams",
    "NetworkType",
    "REGTEST",
    "SIGNET",
    "TESTNET",
    # Signing and transactions
    "CoinSelection",
    "SignedTransaction",
    "Transaction",
    "UTXO",
    "build_transaction",
    "deserialize_transaction",
    "select_coins",
    "sign_message",
    "verify_message",
    # Indexer, config and orchestration
    "IndexerClient",
    "RunResult",
    "WalletConfig",
    "load_config",
    "run_wallet",
    # Errors
    "ConfigError",
    "IndexerError",
    "InsufficientFunds",
    "InvalidAddress",
    "InvalidKey",
    "WalletError",
]
