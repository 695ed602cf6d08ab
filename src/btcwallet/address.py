"""
Bitcoin address encoding for the two script types the wallet spends from.

An address is a tagged variant: the ``kind`` selects both the output script
and the signing path used for coins locked to it.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum

import base58
import bech32

from btcwallet.errors import AddressEncode, InvalidAddress, UnsupportedScriptType
from btcwallet.network import NetworkParams


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


class AddressType(str, Enum):
    P2PKH = "p2pkh"
    P2WPKH = "p2wpkh"


@dataclass(frozen=True)
class Address:
    kind: AddressType
    hash160: bytes
    network: NetworkParams

    def __post_init__(self) -> None:
        if len(self.hash160) != 20:
            raise InvalidAddress(
                f"key hash must be 20 bytes, got {len(self.hash160)}", field="address"
            )

    @classmethod
    def from_public_key(
        cls, pubkey: bytes, kind: AddressType, network: NetworkParams
    ) -> Address:
        if len(pubkey) != 33:
            raise InvalidAddress(f"Invalid compressed pubkey length: {len(pubkey)}")
        return cls(kind=AddressType(kind), hash160=hash160(pubkey), network=network)

    @classmethod
    def decode(cls, text: str, network: NetworkParams) -> Address:
        """
        Parse an address string for ``network``.

        Raises:
            InvalidAddress: malformed, bad checksum, or belongs to another network
            UnsupportedScriptType: well-formed but neither P2PKH nor P2WPKH
        """
        text = text.strip()
        hrp = network.bech32_hrp

        if text.lower().startswith(hrp + "1"):
            witver, witprog = bech32.decode(hrp, text)
            if witver is None or witprog is None:
                # A checksum-valid string for a newer witness version is well-formed
                decoded_hrp, data = bech32.bech32_decode(text)[:2]
                if decoded_hrp == hrp and data and 0 < data[0] <= 16:
                    raise UnsupportedScriptType(
                        f"witness v{data[0]} address not supported: {text}"
                    )
                raise InvalidAddress(f"Invalid bech32 address: {text}", field="address")
            if witver == 0 and len(witprog) == 20:
                return cls(AddressType.P2WPKH, bytes(witprog), network)
            raise UnsupportedScriptType(
                f"witness v{witver} program of {len(witprog)} bytes not supported: {text}"
            )

        try:
            payload = base58.b58decode_check(text)
        except ValueError as e:
            raise InvalidAddress(
                f"Invalid address for {network.name}: {text} ({e})", field="address"
            ) from e

        if len(payload) != 21:
            raise InvalidAddress(f"Invalid base58 payload length: {len(payload)}", field="address")

        version = payload[0]
        if version == network.p2pkh_version:
            return cls(AddressType.P2PKH, payload[1:], network)
        if version == network.p2sh_version:
            raise UnsupportedScriptType(f"P2SH address not supported: {text}")
        raise InvalidAddress(
            f"Address version 0x{version:02x} is not valid on {network.name}", field="address"
        )

    def encode(self) -> str:
        if self.kind == AddressType.P2WPKH:
            result = bech32.encode(self.network.bech32_hrp, 0, self.hash160)
            if result is None:
                raise AddressEncode(f"Failed to encode P2WPKH address: {self.hash160.hex()}")
            return result
        return base58.b58encode_check(bytes([self.network.p2pkh_version]) + self.hash160).decode(
            "ascii"
        )

    def script_pubkey(self) -> bytes:
        if self.kind == AddressType.P2WPKH:
            # OP_0 <20-byte-hash>
            return bytes([0x00, 0x14]) + self.hash160
        return self.script_code()

    def script_code(self) -> bytes:
        """
        OP_DUP OP_HASH160 <20-byte-hash> OP_EQUALVERIFY OP_CHECKSIG

        This is the P2PKH output script and, for P2WPKH, the BIP 143 scriptCode.
        """
        return b"\x76\xa9\x14" + self.hash160 + b"\x88\xac"

    def __str__(self) -> str:
        return self.encode()
