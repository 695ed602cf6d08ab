"""
ECDSA signing for messages and transaction inputs.

coincurve wraps libsecp256k1, which derives nonces with RFC 6979, so signing
the same digest with the same key always yields the same signature.
"""

from __future__ import annotations

import struct

from coincurve import PublicKey
from loguru import logger

from btcwallet.address import Address, AddressType, hash160
from btcwallet.constants import SECP256K1_HALF_ORDER, SECP256K1_ORDER, SIGHASH_ALL
from btcwallet.errors import InvalidKey, SigningFailed, UnsupportedScriptType
from btcwallet.keys import WalletKey
from btcwallet.transaction import Transaction, TxIn, encode_bytes, hash256

OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D


def parse_der_signature(der: bytes) -> tuple[int, int]:
    """Split a strict DER ECDSA signature into (r, s)."""
    try:
        if der[0] != 0x30 or der[1] != len(der) - 2:
            raise ValueError("bad sequence header")
        if der[2] != 0x02:
            raise ValueError("missing r marker")
        r_len = der[3]
        r = int.from_bytes(der[4 : 4 + r_len], "big")
        s_offset = 4 + r_len
        if der[s_offset] != 0x02:
            raise ValueError("missing s marker")
        s_len = der[s_offset + 1]
        s_bytes = der[s_offset + 2 : s_offset + 2 + s_len]
        if len(s_bytes) != s_len or s_offset + 2 + s_len != len(der):
            raise ValueError("length mismatch")
        return r, int.from_bytes(s_bytes, "big")
    except (IndexError, ValueError) as e:
        raise SigningFailed(f"Malformed DER signature: {e}") from e


def _der_int(value: int) -> bytes:
    raw = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
    if raw[0] & 0x80:
        raw = b"\x00" + raw
    return b"\x02" + bytes([len(raw)]) + raw


def encode_der_signature(r: int, s: int) -> bytes:
    body = _der_int(r) + _der_int(s)
    return b"\x30" + bytes([len(body)]) + body


def normalize_low_s(der: bytes) -> bytes:
    """Return the signature with ``s`` in the lower half of the group order (BIP 62)."""
    r, s = parse_der_signature(der)
    if s <= SECP256K1_HALF_ORDER:
        return der
    return encode_der_signature(r, SECP256K1_ORDER - s)


def sign_digest(key: WalletKey, digest: bytes) -> bytes:
    """Sign a 32-byte digest, returning a low-S DER signature."""
    if len(digest) != 32:
        raise SigningFailed(f"digest must be 32 bytes, got {len(digest)}")
    try:
        # The digest is already SHA256d; hasher=None skips hashing
        signature = key.private_key.sign(digest, hasher=None)
    except InvalidKey:
        raise
    except Exception as e:
        raise SigningFailed(f"ECDSA signing failed: {e}") from e
    return normalize_low_s(signature)


def verify_digest(pubkey: bytes, digest: bytes, der: bytes) -> bool:
    try:
        return PublicKey(pubkey).verify(der, digest, hasher=None)
    except Exception as e:
        logger.debug(f"Signature verification error: {e}")
        return False


def sign_message(key: WalletKey, message: bytes) -> str:
    """Sign SHA256d(message) and return the DER signature as hex."""
    return sign_digest(key, hash256(message)).hex()


def verify_message(pubkey: bytes, message: bytes, signature_hex: str) -> bool:
    try:
        der = bytes.fromhex(signature_hex)
    except ValueError:
        return False
    return verify_digest(pubkey, hash256(message), der)


def push_data(data: bytes) -> bytes:
    """Minimal script push of ``data``."""
    if len(data) < OP_PUSHDATA1:
        return bytes([len(data)]) + data
    if len(data) <= 0xFF:
        return bytes([OP_PUSHDATA1, len(data)]) + data
    return bytes([OP_PUSHDATA2]) + struct.pack("<H", len(data)) + data


def legacy_sighash(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """
    Legacy (pre-segwit) signature hash.

    Every input's scriptSig is emptied except the one being signed, which is
    replaced by the script of the output it spends. Witnesses are excluded.
    """
    if not 0 <= input_index < len(tx.inputs):
        raise SigningFailed(f"Input index {input_index} out of range")

    template = Transaction(
        version=tx.version,
        inputs=[
            TxIn(
                prevout=inp.prevout,
                script_sig=script_code if i == input_index else b"",
                sequence=inp.sequence,
            )
            for i, inp in enumerate(tx.inputs)
        ],
        outputs=tx.outputs,
        locktime=tx.locktime,
    )
    preimage = template.serialize(include_witness=False) + struct.pack("<I", sighash_type)
    return hash256(preimage)


def segwit_sighash(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP 143 signature hash for SIGHASH_ALL."""
    if not 0 <= input_index < len(tx.inputs):
        raise SigningFailed(f"Input index {input_index} out of range")
    if sighash_type != SIGHASH_ALL:
        raise SigningFailed(f"Unsupported sighash type: {sighash_type}")

    hash_prevouts = hash256(b"".join(inp.prevout.serialize() for inp in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))

    target = tx.inputs[input_index]
    preimage = (
        struct.pack("<i", tx.version)
        + hash_prevouts
        + hash_sequence
        + target.prevout.serialize()
        + encode_bytes(script_code)
        + struct.pack("<q", value)
        + struct.pack("<I", target.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )
    return hash256(preimage)


def sign_p2pkh_input(
    tx: Transaction,
    input_index: int,
    key: WalletKey,
    prev_script: bytes,
    sighash_type: int = SIGHASH_ALL,
) -> None:
    """Set scriptSig = <sig||hashtype> <compressed pubkey>."""
    sighash = legacy_sighash(tx, input_index, prev_script, sighash_type)
    signature = sign_digest(key, sighash) + bytes([sighash_type])
    tx.inputs[input_index].script_sig = push_data(signature) + push_data(key.public_key)
    tx.inputs[input_index].witness = []


def sign_p2wpkh_input(
    tx: Transaction,
    input_index: int,
    key: WalletKey,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> None:
    """Set the witness to [sig||hashtype, compressed pubkey]; scriptSig stays empty."""
    sighash = segwit_sighash(tx, input_index, script_code, value, sighash_type)
    signature = sign_digest(key, sighash) + bytes([sighash_type])
    tx.inputs[input_index].script_sig = b""
    tx.inputs[input_index].witness = create_witness_stack(signature, key.public_key)


def create_witness_stack(signature: bytes, pubkey_bytes: bytes) -> list[bytes]:
    return [signature, pubkey_bytes]


def sign_input(
    tx: Transaction, input_index: int, key: WalletKey, spent: Address, value: int
) -> None:
    """Sign one input spending an output locked to ``spent``."""
    if spent.kind == AddressType.P2PKH:
        sign_p2pkh_input(tx, input_index, key, spent.script_pubkey())
    elif spent.kind == AddressType.P2WPKH:
        sign_p2wpkh_input(tx, input_index, key, spent.script_code(), value)
    else:
        raise UnsupportedScriptType(f"Cannot sign input locked to {spent.kind}")


def _split_pushes(script: bytes) -> list[bytes]:
    items = []
    offset = 0
    while offset < len(script):
        opcode = script[offset]
        offset += 1
        if opcode < OP_PUSHDATA1:
            length = opcode
        elif opcode == OP_PUSHDATA1:
            length = script[offset]
            offset += 1
        elif opcode == OP_PUSHDATA2:
            length = struct.unpack("<H", script[offset : offset + 2])[0]
            offset += 2
        else:
            raise ValueError(f"unexpected opcode 0x{opcode:02x}")
        items.append(script[offset : offset + length])
        offset += length
    return items


def verify_input(tx: Transaction, input_index: int, spent: Address, value: int) -> bool:
    """
    Check that input ``input_index`` carries a valid signature for ``spent``.

    Only the P2PKH and P2WPKH spend templates produced by this wallet are
    recognized; anything else is reported as invalid.
    """
    inp = tx.inputs[input_index]
    try:
        if spent.kind == AddressType.P2WPKH:
            if inp.script_sig or len(inp.witness) != 2:
                return False
            signature, pubkey = inp.witness
            sighash = segwit_sighash(tx, input_index, spent.script_code(), value, signature[-1])
        else:
            items = _split_pushes(inp.script_sig)
            if inp.witness or len(items) != 2:
                return False
            signature, pubkey = items
            sighash = legacy_sighash(tx, input_index, spent.script_pubkey(), signature[-1])
    except (ValueError, IndexError, SigningFailed) as e:
        logger.debug(f"Input {input_index} verification failed: {e}")
        return False

    if hash160(pubkey) != spent.hash160:
        return False
    return verify_digest(pubkey, sighash, signature[:-1])
