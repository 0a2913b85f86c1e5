from __future__ import annotations

from typing import Protocol

from deposit_scanner.app.domain.models import (
    BlockResult,
    CandidateTransaction,
    DepositRecord,
    LedgerBlock,
    TransactionReceipt,
)


class LedgerClient(Protocol):
    """
    Port for reading blocks and receipts from an EVM JSON-RPC endpoint.

    Implementations must be safe for concurrent use by many tasks.

    Errors:
      - PermanentLedgerError for requests that can never succeed,
      - any other exception is treated by callers as transient.
    """

    async def get_block(self, number: int) -> LedgerBlock:
        ...

    async def get_transaction_receipt(self, tx_hash: bytes) -> TransactionReceipt:
        ...

    async def get_latest_block_number(self) -> int:
        ...

    async def close(self) -> None:
        ...


class DepositDecoder(Protocol):
    def decode(self, tx: CandidateTransaction) -> DepositRecord:
        """
        Combine the deposit() call input and the DepositEvent log of a
        transaction into one DepositRecord.

        Raises DepositDecodeError when either side cannot be decoded.
        """
        ...


class ScanProgress(Protocol):
    """
    Observer notified once per scanned block.

    Purely informational: the scheduler ignores anything it raises.
    """

    def advance(self, result: BlockResult) -> None:
        ...

    def close(self) -> None:
        ...


class DepositWriter(Protocol):
    def write(self, deposits: list[DepositRecord]) -> None:
        ...
