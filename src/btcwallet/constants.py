"""
Bitcoin consensus and wallet policy constants.
"""

from __future__ import annotations

# Standard P2PKH dust limit in Bitcoin Core
STANDARD_DUST_LIMIT = 546  # satoshis

# Smallest flat fee the builder accepts
MIN_FEE = STANDARD_DUST_LIMIT  # satoshis

# Output values are serialized as signed 64-bit integers
MAX_OUTPUT_VALUE = 2**63 - 1  # satoshis

# Flat fee paid by every transaction the wallet builds
DEFAULT_FEE = 1000  # satoshis

DEFAULT_TX_VERSION = 2
DEFAULT_LOCKTIME = 0

# Enables locktime without signalling RBF
DEFAULT_SEQUENCE = 0xFFFFFFFE

SIGHASH_ALL = 0x01

# secp256k1 group order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_ORDER = SECP256K1_ORDER // 2

# Defaults for the demonstration run
DEFAULT_MESSAGE = b"Hello BTC"
DEFAULT_DESTINATION = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"
DEFAULT_AMOUNT = 1000  # satoshis
