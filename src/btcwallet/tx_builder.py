"""
Transaction builder for single-sender payments.

Builds and signs a transaction from:
- the sender's key and address (all spent coins are locked to it)
- the indexer's unspent outputs for that address
- a destination address, amount and flat fee
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from btcwallet.address import Address
from btcwallet.coin_selection import select_coins
from btcwallet.constants import (
    DEFAULT_FEE,
    DEFAULT_LOCKTIME,
    DEFAULT_SEQUENCE,
    DEFAULT_TX_VERSION,
    MAX_OUTPUT_VALUE,
    MIN_FEE,
    STANDARD_DUST_LIMIT,
)
from btcwallet.errors import InvalidAddress, InvalidAmount, InvalidKey, SigningFailed
from btcwallet.keys import WalletKey
from btcwallet.models import UTXO, CoinSelection
from btcwallet.network import TESTNET, NetworkParams
from btcwallet.signing import sign_input, verify_input
from btcwallet.transaction import OutPoint, Transaction, TxIn, TxOut


@dataclass
class SignedTransaction:
    """A fully signed transaction with the selection that funded it."""

    tx: Transaction
    selection: CoinSelection
    amount: int
    fee: int
    change: int

    @property
    def fee_paid(self) -> int:
        """Actual miner fee, including change dropped as dust."""
        return self.selection.total_value - sum(out.value for out in self.tx.outputs)

    @property
    def raw_bytes(self) -> bytes:
        return self.tx.serialize()

    @property
    def raw_hex(self) -> str:
        return self.tx.to_hex()

    @property
    def txid(self) -> str:
        return self.tx.txid

    @property
    def vsize(self) -> int:
        return self.tx.vsize


def build_transaction(
    key: WalletKey,
    from_address: Address,
    to_address: str | Address,
    amount: int,
    utxos: Sequence[UTXO],
    fee: int = DEFAULT_FEE,
    network: NetworkParams = TESTNET,
    version: int = DEFAULT_TX_VERSION,
    dust_limit: int = STANDARD_DUST_LIMIT,
    min_fee: int = MIN_FEE,
) -> SignedTransaction:
    """
    Build and sign a payment of ``amount`` sats to ``to_address``.

    Change above the dust limit returns to ``from_address``; smaller change is
    left to miners.

    Args:
        key: Sender's private key; must control ``from_address``
        from_address: Address holding ``utxos``; its kind selects the signing path
        to_address: Destination, as a string or decoded Address
        amount: Payment value in sats (must exceed the dust limit)
        utxos: Candidate coins, in indexer order
        fee: Flat fee in sats (at least ``min_fee``)
        network: Network the destination must belong to
        version: Transaction version
        dust_limit: Smallest output value worth creating
        min_fee: Smallest fee accepted

    Raises:
        InvalidAddress, UnsupportedScriptType, InvalidKey, InvalidAmount,
        InsufficientFunds, SigningFailed, SerializationError
    """
    if isinstance(to_address, Address):
        destination = to_address
        if destination.network != network:
            raise InvalidAddress(
                f"{destination} is not a {network.name} address", field="to_address"
            )
    else:
        destination = Address.decode(to_address, network)

    if not key.controls(from_address):
        raise InvalidKey(f"private key does not control {from_address}", field="from_address")
    if amount <= dust_limit:
        raise InvalidAmount(
            f"amount {amount} is not above dust limit {dust_limit}", field="amount"
        )
    if fee < min_fee:
        raise InvalidAmount(f"fee {fee} is below the minimum of {min_fee}", field="fee")
    if amount + fee > MAX_OUTPUT_VALUE:
        raise InvalidAmount(f"amount plus fee exceeds {MAX_OUTPUT_VALUE}", field="amount")
    for utxo in utxos:
        if not 0 <= utxo.value <= MAX_OUTPUT_VALUE:
            raise InvalidAmount(f"UTXO {utxo.outpoint} has out-of-range value {utxo.value}")

    selection = select_coins(utxos, amount, fee)
    if selection.total_value > MAX_OUTPUT_VALUE:
        raise InvalidAmount(f"selected inputs total more than {MAX_OUTPUT_VALUE} sats")

    tx = Transaction(version=version, locktime=DEFAULT_LOCKTIME)
    for utxo in selection.utxos:
        tx.inputs.append(TxIn(OutPoint(utxo.txid, utxo.vout), sequence=DEFAULT_SEQUENCE))

    tx.outputs.append(TxOut(amount, destination.script_pubkey()))

    change = selection.total_value - amount - fee
    if change > dust_limit:
        tx.outputs.append(TxOut(change, from_address.script_pubkey()))
    else:
        if change > 0:
            logger.info(f"Change of {change} sats is dust, adding it to the fee")
        change = 0

    for index, utxo in enumerate(selection.utxos):
        sign_input(tx, index, key, from_address, utxo.value)

    for index, utxo in enumerate(selection.utxos):
        if not verify_input(tx, index, from_address, utxo.value):
            raise SigningFailed(f"signature for input {index} ({utxo.outpoint}) does not verify")

    signed = SignedTransaction(tx=tx, selection=selection, amount=amount, fee=fee, change=change)
    logger.info(
        f"Built transaction {signed.txid}: {len(tx.inputs)} input(s), "
        f"{len(tx.outputs)} output(s), fee {signed.fee_paid} sats, vsize {signed.vsize}"
    )
    return signed
