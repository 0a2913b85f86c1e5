from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deposit_scanner.app.application.services.fetch_with_retry import FetchOutcome


class DepositScannerError(Exception):
    """Base error for the deposit scanner."""


class PermanentLedgerError(DepositScannerError):
    """
    Raised by ledger client adapters when a call can never succeed
    (malformed request, invalid params). Never retried.
    """


class BlockFetchError(DepositScannerError):
    """A block or receipt could not be fetched within the retry budget."""

    def __init__(
        self,
        message: str,
        *,
        block_number: int,
        outcome: FetchOutcome,
        tx_hash: bytes | None = None,
    ) -> None:
        super().__init__(message)
        self.block_number = block_number
        self.tx_hash = tx_hash
        self.outcome = outcome


class DepositDecodeError(DepositScannerError):
    """Call input or DepositEvent log of a deposit transaction could not be decoded."""

    def __init__(self, message: str, *, tx_hash: bytes | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class OutputWriteError(DepositScannerError):
    """Serializing or persisting the deposit dataset failed."""
