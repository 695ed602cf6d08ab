"""
Greedy first-fit coin selection.

Coins are taken in the order the indexer returned them until the running
total covers amount plus fee. This is deterministic for a given listing but
makes no attempt to minimise change or input count.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from btcwallet.errors import InsufficientFunds
from btcwallet.models import UTXO, CoinSelection


def confirmed_only(utxos: Iterable[UTXO]) -> list[UTXO]:
    return [utxo for utxo in utxos if utxo.confirmed]


def select_coins(utxos: Iterable[UTXO], target_amount: int, fee: int) -> CoinSelection:
    """
    Select the shortest prefix of ``utxos`` whose value covers ``target_amount + fee``.

    Raises:
        InsufficientFunds: if the whole listing does not cover the target
        ValueError: on negative amount or fee
    """
    if target_amount < 0 or fee < 0:
        raise ValueError(f"amount and fee must be non-negative: {target_amount}, {fee}")

    required = target_amount + fee
    selected: list[UTXO] = []
    total = 0
    if required == 0:
        return CoinSelection(utxos=selected, total_value=total)

    for utxo in utxos:
        selected.append(utxo)
        total += utxo.value
        if total >= required:
            logger.debug(f"Selected {len(selected)} UTXO(s) totalling {total} sats for {required}")
            return CoinSelection(utxos=selected, total_value=total)

    raise InsufficientFunds(required=required, available=total)
