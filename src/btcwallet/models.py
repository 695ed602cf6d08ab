"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UTXO:
    """Unspent output snapshot as reported by the indexer"""

    txid: str
    vout: int
    value: int
    confirmed: bool = False
    block_height: int | None = None

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


@dataclass
class CoinSelection:
    """Result of coin selection"""

    utxos: list[UTXO]
    total_value: int
