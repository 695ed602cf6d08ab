"""
secp256k1 key generation and import.
"""

from __future__ import annotations

import secrets

from coincurve import PrivateKey
from loguru import logger

from btcwallet.address import Address, AddressType, hash160
from btcwallet.constants import SECP256K1_ORDER
from btcwallet.errors import InvalidKey, RngFailure
from btcwallet.network import NetworkParams


def _validate_scalar(secret: bytes) -> None:
    if len(secret) != 32:
        raise InvalidKey(f"private key must be 32 bytes, got {len(secret)}", field="private_key")
    scalar = int.from_bytes(secret, "big")
    if not 0 < scalar < SECP256K1_ORDER:
        raise InvalidKey("private key scalar out of range [1, n-1]", field="private_key")


class WalletKey:
    """
    A secp256k1 private key with its compressed public key.

    The secret is held in a mutable buffer so it can be zeroed by ``wipe()``.
    Use as a context manager to wipe on scope exit. Signing from several
    threads with the same key is safe; wiping while signing is not.
    """

    def __init__(self, secret: bytes):
        _validate_scalar(secret)
        self._secret = bytearray(secret)
        self._key: PrivateKey | None = PrivateKey(bytes(self._secret))
        self.public_key: bytes = self._key.public_key.format(compressed=True)

    @classmethod
    def generate(cls) -> WalletKey:
        """Draw a uniformly random scalar in [1, n-1] from the OS CSPRNG."""
        while True:
            try:
                candidate = secrets.token_bytes(32)
            except (OSError, NotImplementedError) as e:
                raise RngFailure(f"system random source unavailable: {e}") from e
            if 0 < int.from_bytes(candidate, "big") < SECP256K1_ORDER:
                return cls(candidate)
            logger.debug("Random scalar out of range, drawing again")

    @classmethod
    def from_hex(cls, private_key_hex: str) -> WalletKey:
        text = private_key_hex.strip()
        if text.lower().startswith("0x"):
            text = text[2:]
        try:
            secret = bytes.fromhex(text)
        except ValueError as e:
            raise InvalidKey("private key is not valid hex", field="private_key") from e
        return cls(secret)

    @property
    def private_key(self) -> PrivateKey:
        """The coincurve key; raises once the key has been wiped."""
        if self._key is None:
            raise InvalidKey("key material has been wiped", field="private_key")
        return self._key

    @property
    def pubkey_hash(self) -> bytes:
        return hash160(self.public_key)

    @property
    def wiped(self) -> bool:
        return self._key is None

    def to_hex(self) -> str:
        if self.wiped:
            raise InvalidKey("key material has been wiped", field="private_key")
        return self._secret.hex()

    def address(
        self, network: NetworkParams, kind: AddressType = AddressType.P2WPKH
    ) -> Address:
        return Address.from_public_key(self.public_key, kind, network)

    def controls(self, address: Address) -> bool:
        return self.pubkey_hash == address.hash160

    def wipe(self) -> None:
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._key = None

    def __enter__(self) -> WalletKey:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return f"WalletKey(pubkey={self.public_key.hex()})"


def generate_wallet(
    network: NetworkParams, kind: AddressType = AddressType.P2WPKH
) -> tuple[WalletKey, Address]:
    key = WalletKey.generate()
    return key, key.address(network, kind)


def import_key(
    private_key_hex: str, network: NetworkParams, kind: AddressType = AddressType.P2WPKH
) -> tuple[WalletKey, Address]:
    key = WalletKey.from_hex(private_key_hex)
    return key, key.address(network, kind)
