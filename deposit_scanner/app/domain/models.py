from __future__ import annotations

from dataclasses import dataclass


# ---------------------------------------------------------------------
# Ledger view (what the ledger client port hands back)
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerTransaction:
    """
    A transaction as seen inside a block.

    hash is 32-byte bytes, to is 20-byte bytes (None for contract creation),
    input is the raw call data including the 4-byte selector.
    """

    hash: bytes
    to: bytes | None
    input: bytes


@dataclass(frozen=True)
class LedgerBlock:
    number: int
    transactions: tuple[LedgerTransaction, ...] = ()


@dataclass(frozen=True)
class LogEntry:
    address: bytes
    topics: tuple[bytes, ...]
    data: bytes
    log_index: int = 0

    @property
    def topic0(self) -> bytes | None:
        return self.topics[0] if self.topics else None


@dataclass(frozen=True)
class TransactionReceipt:
    transaction_hash: bytes
    status: int
    logs: tuple[LogEntry, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == 1


# ---------------------------------------------------------------------
# Scan results
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class CandidateTransaction:
    """Successful transaction addressed to the deposit contract."""

    hash: bytes
    input: bytes
    logs: tuple[LogEntry, ...]


@dataclass(frozen=True)
class BlockResult:
    block_number: int
    transactions: tuple[CandidateTransaction, ...] = ()


@dataclass(frozen=True)
class DepositRecord:
    pubkey: bytes
    withdrawal_credentials: bytes
    amount: int
    signature: bytes
    deposit_data_root: bytes

    def to_json_dict(self) -> dict[str, object]:
        # Key order is part of the output format.
        return {
            "pubkey": "0x" + self.pubkey.hex(),
            "withdrawal_credentials": "0x" + self.withdrawal_credentials.hex(),
            "amount": self.amount,
            "signature": "0x" + self.signature.hex(),
            "deposit_data_root": "0x" + self.deposit_data_root.hex(),
        }


@dataclass(frozen=True)
class SkippedDeposit:
    tx_hash: bytes
    block_number: int
    reason: str


@dataclass(frozen=True)
class ScanReport:
    from_block: int
    to_block: int
    deposits: tuple[DepositRecord, ...] = ()
    skipped: tuple[SkippedDeposit, ...] = ()

    @property
    def blocks_scanned(self) -> int:
        return self.to_block - self.from_block
