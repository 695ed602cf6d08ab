"""
Bitcoin transaction model and consensus serialization (BIP 141/144).
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field

from btcwallet.constants import DEFAULT_LOCKTIME, DEFAULT_SEQUENCE, DEFAULT_TX_VERSION
from btcwallet.errors import SerializationError

WITNESS_SCALE_FACTOR = 4


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise SerializationError(f"varint cannot encode negative value {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read a CompactSize integer, returning (value, new_offset)."""
    first = _take(data, offset, 1)[0]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return struct.unpack("<H", _take(data, offset, 2))[0], offset + 2
    if first == 0xFE:
        return struct.unpack("<I", _take(data, offset, 4))[0], offset + 4
    return struct.unpack("<Q", _take(data, offset, 8))[0], offset + 8


def _take(data: bytes, offset: int, length: int) -> bytes:
    chunk = data[offset : offset + length]
    if len(chunk) != length:
        raise SerializationError(
            f"unexpected end of data: wanted {length} bytes at offset {offset}"
        )
    return chunk


def encode_bytes(data: bytes) -> bytes:
    return encode_varint(len(data)) + data


@dataclass(frozen=True)
class OutPoint:
    """Reference to a previous output. ``txid`` is in display (big-endian) hex."""

    txid: str
    vout: int

    def serialize(self) -> bytes:
        try:
            txid_bytes = bytes.fromhex(self.txid)
        except ValueError as e:
            raise SerializationError(f"Invalid txid hex: {self.txid}") from e
        if len(txid_bytes) != 32:
            raise SerializationError(f"txid must be 32 bytes, got {len(txid_bytes)}")
        # txid is in RPC format (big-endian), reversed on the wire
        return txid_bytes[::-1] + struct.pack("<I", self.vout)


@dataclass
class TxIn:
    prevout: OutPoint
    script_sig: bytes = b""
    sequence: int = DEFAULT_SEQUENCE
    witness: list[bytes] = field(default_factory=list)

    def serialize(self) -> bytes:
        return self.prevout.serialize() + encode_bytes(self.script_sig) + struct.pack(
            "<I", self.sequence
        )


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<q", self.value) + encode_bytes(self.script_pubkey)


@dataclass
class Transaction:
    version: int = DEFAULT_TX_VERSION
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)
    locktime: int = DEFAULT_LOCKTIME

    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize to wire format; the witness marker is written only when needed."""
        try:
            segwit = include_witness and self.has_witness()
            result = struct.pack("<i", self.version)
            if segwit:
                result += b"\x00\x01"

            result += encode_varint(len(self.inputs))
            for inp in self.inputs:
                result += inp.serialize()

            result += encode_varint(len(self.outputs))
            for out in self.outputs:
                result += out.serialize()

            if segwit:
                for inp in self.inputs:
                    result += encode_varint(len(inp.witness))
                    for item in inp.witness:
                        result += encode_bytes(item)

            result += struct.pack("<I", self.locktime)
            return result
        except struct.error as e:
            raise SerializationError(f"Failed to serialize transaction: {e}") from e

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, in display order."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @property
    def wtxid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize())
        return base_size * (WITNESS_SCALE_FACTOR - 1) + total_size

    @property
    def vsize(self) -> int:
        return (self.weight + WITNESS_SCALE_FACTOR - 1) // WITNESS_SCALE_FACTOR


def deserialize_transaction(tx_bytes: bytes) -> Transaction:
    """
    Parse a transaction in either legacy or BIP 144 witness form.

    Raises:
        SerializationError: on truncated input, trailing bytes, or a bad witness flag
    """
    try:
        offset = 0
        version = struct.unpack("<i", _take(tx_bytes, offset, 4))[0]
        offset += 4

        segwit = False
        if _take(tx_bytes, offset, 1) == b"\x00":
            flag = _take(tx_bytes, offset + 1, 1)
            if flag != b"\x01":
                raise SerializationError(f"Invalid witness flag: 0x{flag.hex()}")
            segwit = True
            offset += 2

        input_count, offset = read_varint(tx_bytes, offset)
        inputs: list[TxIn] = []
        for _ in range(input_count):
            txid = _take(tx_bytes, offset, 32)[::-1].hex()
            offset += 32
            vout = struct.unpack("<I", _take(tx_bytes, offset, 4))[0]
            offset += 4
            script_len, offset = read_varint(tx_bytes, offset)
            script_sig = _take(tx_bytes, offset, script_len)
            offset += script_len
            sequence = struct.unpack("<I", _take(tx_bytes, offset, 4))[0]
            offset += 4
            inputs.append(TxIn(OutPoint(txid, vout), script_sig, sequence))

        output_count, offset = read_varint(tx_bytes, offset)
        outputs: list[TxOut] = []
        for _ in range(output_count):
            value = struct.unpack("<q", _take(tx_bytes, offset, 8))[0]
            offset += 8
            script_len, offset = read_varint(tx_bytes, offset)
            outputs.append(TxOut(value, _take(tx_bytes, offset, script_len)))
            offset += script_len

        if segwit:
            for inp in inputs:
                item_count, offset = read_varint(tx_bytes, offset)
                for _ in range(item_count):
                    item_len, offset = read_varint(tx_bytes, offset)
                    inp.witness.append(_take(tx_bytes, offset, item_len))
                    offset += item_len

        locktime = struct.unpack("<I", _take(tx_bytes, offset, 4))[0]
        offset += 4
        if offset != len(tx_bytes):
            raise SerializationError(f"{len(tx_bytes) - offset} trailing bytes after locktime")

        return Transaction(version, inputs, outputs, locktime)

    except SerializationError:
        raise
    except struct.error as e:
        raise SerializationError(f"Failed to parse transaction: {e}") from e
