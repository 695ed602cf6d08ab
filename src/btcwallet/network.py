"""
Chain parameters for the networks the wallet can address.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"


@dataclass(frozen=True)
class NetworkParams:
    """Address encoding parameters of a chain. All use hash160 for key hashes."""

    name: str
    p2pkh_version: int
    p2sh_version: int
    bech32_hrp: str


MAINNET = NetworkParams(name="mainnet", p2pkh_version=0x00, p2sh_version=0x05, bech32_hrp="bc")
TESTNET = NetworkParams(name="testnet", p2pkh_version=0x6F, p2sh_version=0xC4, bech32_hrp="tb")
SIGNET = NetworkParams(name="signet", p2pkh_version=0x6F, p2sh_version=0xC4, bech32_hrp="tb")
REGTEST = NetworkParams(name="regtest", p2pkh_version=0x6F, p2sh_version=0xC4, bech32_hrp="bcrt")

_PARAMS = {
    NetworkType.MAINNET: MAINNET,
    NetworkType.TESTNET: TESTNET,
    NetworkType.SIGNET: SIGNET,
    NetworkType.REGTEST: REGTEST,
}


def get_network_params(network: NetworkType | str | NetworkParams) -> NetworkParams:
    """Resolve a network name or enum member to its parameters."""
    if isinstance(network, NetworkParams):
        return network
    return _PARAMS[NetworkType(network)]
