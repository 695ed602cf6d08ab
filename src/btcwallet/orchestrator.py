"""
End-to-end wallet run: import key, sign a message, fetch coins, build, broadcast.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from loguru import logger

from btcwallet.address import Address
from btcwallet.coin_selection import confirmed_only as filter_confirmed
from btcwallet.config import WalletConfig
from btcwallet.constants import DEFAULT_AMOUNT, DEFAULT_DESTINATION, DEFAULT_FEE, DEFAULT_MESSAGE
from btcwallet.errors import ConfigError, InvalidKey, WalletError
from btcwallet.indexer import IndexerClient
from btcwallet.keys import WalletKey
from btcwallet.signing import sign_message
from btcwallet.tx_builder import build_transaction

REASON_NO_UTXOS = "no unspent outputs"
REASON_BROADCAST_DISABLED = "broadcast disabled"


@dataclass
class RunResult:
    """Outcome of a wallet run, suitable for printing or JSON output."""

    address: str
    network: str
    signature: str
    unspent_count: int = 0
    balance: int = 0
    txid: str | None = None
    raw_tx: str | None = None
    fee: int | None = None
    broadcast: bool = False
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_key_and_address(config: WalletConfig) -> tuple[WalletKey, Address]:
    """
    Import the operator's key and address from configuration.

    Raises:
        ConfigError: BTC_PRIVATE_KEY or BTC_ADDRESS missing
        InvalidKey: malformed key, or key does not control the address
        InvalidAddress, UnsupportedScriptType: unusable address
    """
    if not config.private_key_hex or not config.address:
        raise ConfigError("BTC_PRIVATE_KEY or BTC_ADDRESS not set", field="environment")

    key = WalletKey.from_hex(config.private_key_hex)
    try:
        address = Address.decode(config.address, config.network_params)
        if not key.controls(address):
            raise InvalidKey(
                f"BTC_PRIVATE_KEY does not match BTC_ADDRESS {config.address}",
                field="address",
            )
    except WalletError:
        key.wipe()
        raise
    return key, address


def run_wallet(
    config: WalletConfig,
    destination: str = DEFAULT_DESTINATION,
    amount: int = DEFAULT_AMOUNT,
    fee: int = DEFAULT_FEE,
    message: bytes = DEFAULT_MESSAGE,
    broadcast: bool = False,
    confirmed_only: bool = False,
    indexer: IndexerClient | None = None,
) -> RunResult:
    """
    Run the wallet flow once.

    Broadcasting is opt-in; without it the signed transaction is only reported.
    The key is wiped before returning, on success or failure.

    Raises:
        WalletError: the first failure; its ``exit_code`` gives the process status
    """
    network = config.network_params
    key, address = load_key_and_address(config)
    owns_indexer = indexer is None

    with key:
        if indexer is None:
            indexer = IndexerClient.from_config(config.node)
        try:
            logger.info(f"Loaded address: {address} ({network.name}, {address.kind.value})")

            signature = sign_message(key, message)
            logger.info(f"Signature for {message!r}: {signature}")
            result = RunResult(address=str(address), network=network.name, signature=signature)

            logger.info("Fetching UTXOs...")
            utxos = indexer.list_unspent(str(address))
            if confirmed_only:
                utxos = filter_confirmed(utxos)
            result.unspent_count = len(utxos)
            result.balance = sum(utxo.value for utxo in utxos)
            logger.info(f"Found {result.unspent_count} UTXOs ({result.balance} sats)")

            if not utxos:
                logger.info("No UTXOs found, skipping transaction creation")
                result.reason = REASON_NO_UTXOS
                return result

            try:
                signed = build_transaction(
                    key, address, destination, amount, utxos, fee=fee, network=network
                )
            except WalletError as e:
                e.add_context(f"build_transaction(to={destination}, amount={amount})")
                raise

            result.txid = signed.txid
            result.raw_tx = signed.raw_hex
            result.fee = signed.fee_paid
            logger.info("Transaction created and signed")

            if not broadcast:
                logger.info("Broadcast disabled, not submitting transaction")
                result.reason = REASON_BROADCAST_DISABLED
                return result

            result.txid = indexer.submit(signed.raw_hex)
            result.broadcast = True
            return result
        finally:
            if owns_indexer:
                indexer.close()
