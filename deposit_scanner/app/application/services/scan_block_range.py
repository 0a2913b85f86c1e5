from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from deposit_scanner.app.application.services.fetch_with_retry import (
    RetryPolicy,
    fetch_with_retry,
)
from deposit_scanner.app.domain.errors import BlockFetchError
from deposit_scanner.app.domain.models import BlockResult, CandidateTransaction
from deposit_scanner.app.domain.ports.out import LedgerClient, ScanProgress

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 80


@dataclass(frozen=True)
class BlockRange:
    """[from_block, to_block) - to_block is exclusive."""

    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")

    def __len__(self) -> int:
        return self.to_block - self.from_block


async def scan_block(
    *,
    client: LedgerClient,
    block_number: int,
    contract_address: bytes,
    retry_policy: RetryPolicy,
) -> BlockResult:
    """
    Fetch one block and keep the successful transactions sent to `contract_address`.

    contract_address is 20-byte bytes. Contract creations (to=None) never match.
    """
    outcome = await fetch_with_retry(
        lambda: client.get_block(block_number),
        policy=retry_policy,
        description=f"get_block({block_number})",
    )
    if not outcome.ok:
        raise BlockFetchError(
            f"Could not fetch block {block_number} ({outcome.status.value})",
            block_number=block_number,
            outcome=outcome,
        )
    block = outcome.value

    matching = [tx for tx in block.transactions if tx.to is not None and tx.to == contract_address]

    candidates: list[CandidateTransaction] = []
    for tx in matching:
        rcpt_outcome = await fetch_with_retry(
            lambda tx_hash=tx.hash: client.get_transaction_receipt(tx_hash),
            policy=retry_policy,
            description=f"get_transaction_receipt(0x{tx.hash.hex()})",
        )
        if not rcpt_outcome.ok:
            raise BlockFetchError(
                f"Could not fetch receipt 0x{tx.hash.hex()} in block {block_number} "
                f"({rcpt_outcome.status.value})",
                block_number=block_number,
                tx_hash=tx.hash,
                outcome=rcpt_outcome,
            )
        receipt = rcpt_outcome.value

        if not receipt.succeeded:
            logger.debug(
                "Skipping reverted transaction 0x%s in block %s",
                tx.hash.hex(),
                block_number,
            )
            continue

        candidates.append(
            CandidateTransaction(hash=tx.hash, input=tx.input, logs=receipt.logs)
        )

    return BlockResult(block_number=block_number, transactions=tuple(candidates))


class RangeScanner:
    """
    Bounded-parallelism scan of a block range.

    Strategy:
    - min(max_concurrency, len(range)) workers pull block offsets from a queue
      (ascending order).
    - Each worker writes its BlockResult into the pre-sized slot for that offset,
      so results[i] is always block from_block + i whatever the completion order.
    - The first failing block cancels the remaining workers and the error
      propagates; no partial result list is returned.
    """

    def __init__(
        self,
        *,
        client: LedgerClient,
        contract_address: bytes,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        retry_policy: RetryPolicy | None = None,
        progress: ScanProgress | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._client = client
        self._contract_address = contract_address
        self._max_concurrency = max_concurrency
        self._retry_policy = retry_policy or RetryPolicy()
        self._progress = progress

        self._active = 0
        self._peak_active = 0

    @property
    def active(self) -> int:
        return self._active

    @property
    def peak_active(self) -> int:
        """Highest number of simultaneously running block scans seen so far."""
        return self._peak_active

    async def scan(self, block_range: BlockRange) -> list[BlockResult]:
        block_range.validate()
        runs = len(block_range)
        if runs == 0:
            return []

        logger.info(
            "Scanning blocks %s..%s (%s blocks, concurrency=%s)",
            block_range.from_block,
            block_range.to_block,
            runs,
            self._max_concurrency,
        )

        results: list[BlockResult | None] = [None] * runs
        queue: asyncio.Queue[int] = asyncio.Queue()
        for i in range(runs):
            queue.put_nowait(i)

        workers = [
            asyncio.create_task(self._worker(queue, block_range.from_block, results))
            for _ in range(min(self._max_concurrency, runs))
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        missing = [block_range.from_block + i for i, r in enumerate(results) if r is None]
        if missing:
            raise RuntimeError(f"Scan finished with unfilled block slots: {missing[:10]}")

        return results  # type: ignore[return-value]

    async def _worker(
        self,
        queue: asyncio.Queue[int],
        from_block: int,
        results: list[BlockResult | None],
    ) -> None:
        while True:
            try:
                i = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            # Single event loop: the counter only changes between awaits.
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
            try:
                result = await scan_block(
                    client=self._client,
                    block_number=from_block + i,
                    contract_address=self._contract_address,
                    retry_policy=self._retry_policy,
                )
            finally:
                self._active -= 1

            results[i] = result
            self._notify(result)

    def _notify(self, result: BlockResult) -> None:
        if self._progress is None:
            return
        try:
            self._progress.advance(result)
        except Exception:
            # progress display must not break the scan
            logger.warning("Progress observer failed", exc_info=True)
