"""
Wallet error taxonomy.

Every failure raised by the wallet is a ``WalletError`` subclass. Callers add
context with :meth:`WalletError.add_context` while keeping its class,
so the CLI can still map the failure to a process exit code.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_INDEXER = 2
EXIT_INSUFFICIENT_FUNDS = 3
EXIT_UNEXPECTED = 4


class WalletError(Exception):
    """Base class for all wallet failures."""

    kind = "WalletError"
    exit_code = EXIT_UNEXPECTED

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.context: list[str] = []

    def add_context(self, context: str) -> WalletError:
        """Prefix the error with the calling operation, outermost first."""
        self.context.insert(0, context)
        return self

    def describe(self) -> str:
        if self.field:
            return f"{self.kind}({self.field}): {self.message}"
        return f"{self.kind}: {self.message}"

    def __str__(self) -> str:
        return ": ".join([*self.context, self.describe()])


class ConfigError(WalletError):
    kind = "Config"
    exit_code = EXIT_CONFIG


class InvalidKey(WalletError):
    kind = "InvalidKey"
    exit_code = EXIT_CONFIG


class InvalidAddress(WalletError):
    kind = "InvalidAddress"
    exit_code = EXIT_CONFIG


class AddressEncode(WalletError):
    kind = "AddressEncode"


class RngFailure(WalletError):
    kind = "RngFailure"


class InvalidAmount(WalletError):
    kind = "InvalidAmount"


class UnsupportedScriptType(WalletError):
    kind = "UnsupportedScriptType"


class SigningFailed(WalletError):
    kind = "SigningFailed"


class SerializationError(WalletError):
    kind = "SerializationError"


class InsufficientFunds(WalletError):
    kind = "InsufficientFunds"
    exit_code = EXIT_INSUFFICIENT_FUNDS

    def __init__(self, required: int, available: int):
        super().__init__(f"need {required} sats, have {available} sats")
        self.required = required
        self.available = available


class IndexerError(WalletError):
    """Failure talking to the block-explorer indexer."""

    exit_code = EXIT_INDEXER

    @property
    def retryable(self) -> bool:
        return False


class NetworkError(IndexerError):
    kind = "Network"

    @property
    def retryable(self) -> bool:
        return True


class HttpStatusError(IndexerError):
    kind = "HttpStatus"

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(body.strip() or f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500

    def describe(self) -> str:
        return f"HttpStatus({self.status_code}): {self.message}"


class DecodeError(IndexerError):
    kind = "Decode"


def exit_code_for(error: BaseException) -> int:
    """Map an exception to the process exit code."""
    if isinstance(error, WalletError):
        return error.exit_code
    return EXIT_UNEXPECTED
