from __future__ import annotations

import asyncio
from collections import Counter
from typing import Callable

import pytest
from eth_abi import encode as abi_encode
from eth_utils import keccak, to_canonical_address

from deposit_scanner.app.domain.models import (
    LedgerBlock,
    LedgerTransaction,
    LogEntry,
    TransactionReceipt,
)

DEPOSIT_CONTRACT = "0x00000000219ab540356cBB839Cbe05303d7705Fa"
DEPOSIT_CONTRACT_BYTES = to_canonical_address(DEPOSIT_CONTRACT)
OTHER_CONTRACT_BYTES = bytes.fromhex("11" * 20)

DEPOSIT_SELECTOR = keccak(text="deposit(bytes,bytes,bytes,bytes32)")[:4]
DEPOSIT_EVENT_TOPIC0 = keccak(text="DepositEvent(bytes,bytes,bytes,bytes,bytes)")


class FakeLedgerClient:
    """
    In-memory LedgerClient.

    - blocks not registered are returned empty,
    - `fail_block` / `fail_receipt` make the next N calls raise ConnectionError,
    - `delays` lets tests force an out-of-order completion,
    - tracks in-flight calls to check the concurrency ceiling.
    """

    def __init__(self) -> None:
        self.blocks: dict[int, LedgerBlock] = {}
        self.receipts: dict[bytes, TransactionReceipt] = {}
        self.delays: dict[int, float] = {}
        self.default_delay = 0.0
        self.latest = 0
        self.latest_calls = 0

        self.block_failures: Counter[int] = Counter()
        self.receipt_failures: Counter[bytes] = Counter()
        self.block_errors: dict[int, Exception] = {}

        self.block_calls: list[int] = []
        self.receipt_calls: list[bytes] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    # -- setup helpers --------------------------------------------------

    def add_block(self, number: int, *entries: tuple[LedgerTransaction, TransactionReceipt | None]) -> None:
        txs = []
        for tx, receipt in entries:
            txs.append(tx)
            if receipt is not None:
                self.receipts[tx.hash] = receipt
        self.blocks[number] = LedgerBlock(number=number, transactions=tuple(txs))

    def fail_block(self, number: int, times: int) -> None:
        self.block_failures[number] = times

    def fail_receipt(self, tx_hash: bytes, times: int) -> None:
        self.receipt_failures[tx_hash] = times

    # -- LedgerClient ---------------------------------------------------

    async def get_block(self, number: int) -> LedgerBlock:
        self.block_calls.append(number)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(number, self.default_delay))
            if number in self.block_errors:
                raise self.block_errors[number]
            if self.block_failures[number] > 0:
                self.block_failures[number] -= 1
                raise ConnectionError(f"simulated timeout for block {number}")
            return self.blocks.get(number, LedgerBlock(number=number))
        finally:
            self.in_flight -= 1

    async def get_transaction_receipt(self, tx_hash: bytes) -> TransactionReceipt:
        self.receipt_calls.append(tx_hash)
        await asyncio.sleep(0)
        if self.receipt_failures[tx_hash] > 0:
            self.receipt_failures[tx_hash] -= 1
            raise ConnectionError("simulated receipt timeout")
        return self.receipts[tx_hash]

    async def get_latest_block_number(self) -> int:
        self.latest_calls += 1
        return self.latest

    async def close(self) -> None:
        self.closed = True


def tx_hash_for(block_number: int, index: int) -> bytes:
    return keccak(text=f"tx-{block_number}-{index}")


def encode_deposit_input(
    *,
    pubkey: bytes,
    withdrawal_credentials: bytes,
    signature: bytes,
    deposit_data_root: bytes,
) -> bytes:
    return DEPOSIT_SELECTOR + abi_encode(
        ["bytes", "bytes", "bytes", "bytes32"],
        [pubkey, withdrawal_credentials, signature, deposit_data_root],
    )


def encode_deposit_event(
    *,
    pubkey: bytes,
    withdrawal_credentials: bytes,
    amount: bytes,
    signature: bytes,
    index: bytes,
    log_index: int = 0,
) -> LogEntry:
    return LogEntry(
        address=DEPOSIT_CONTRACT_BYTES,
        topics=(DEPOSIT_EVENT_TOPIC0,),
        data=abi_encode(
            ["bytes", "bytes", "bytes", "bytes", "bytes"],
            [pubkey, withdrawal_credentials, amount, signature, index],
        ),
        log_index=log_index,
    )


DepositTxFactory = Callable[..., tuple[LedgerTransaction, TransactionReceipt]]


@pytest.fixture
def fake_client() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def make_deposit_tx() -> DepositTxFactory:
    """
    Build a (transaction, receipt) pair for a deposit.

    Fields derive from block_number/index so every deposit is distinct.
    """

    def _make(
        block_number: int,
        index: int = 0,
        *,
        amount_gwei: int = 32_000_000_000,
        status: int = 1,
        to: bytes | None = DEPOSIT_CONTRACT_BYTES,
        extra_logs: tuple[LogEntry, ...] = (),
    ) -> tuple[LedgerTransaction, TransactionReceipt]:
        seed = f"{block_number}-{index}"
        pubkey = keccak(text="pk" + seed) + keccak(text="pk2" + seed)[:16]
        creds = b"\x00" + keccak(text="wc" + seed)[1:]
        signature = (keccak(text="sig" + seed) * 3)[:96]
        root = keccak(text="root" + seed)
        tx_hash = tx_hash_for(block_number, index)

        tx = LedgerTransaction(
            hash=tx_hash,
            to=to,
            input=encode_deposit_input(
                pubkey=pubkey,
                withdrawal_credentials=creds,
                signature=signature,
                deposit_data_root=root,
            ),
        )
        event = encode_deposit_event(
            pubkey=pubkey,
            withdrawal_credentials=creds,
            amount=amount_gwei.to_bytes(8, "little"),
            signature=signature,
            index=index.to_bytes(8, "little"),
        )
        receipt = TransactionReceipt(
            transaction_hash=tx_hash,
            status=status,
            logs=extra_logs + ((event,) if status == 1 else ()),
        )
        return tx, receipt

    return _make
