from __future__ import annotations

import logging
from collections.abc import Sequence

from deposit_scanner.app.domain.errors import DepositDecodeError
from deposit_scanner.app.domain.models import BlockResult, DepositRecord, SkippedDeposit
from deposit_scanner.app.domain.ports.out import DepositDecoder

logger = logging.getLogger(__name__)


def decode_deposits(
    *,
    decoder: DepositDecoder,
    block_results: Sequence[BlockResult],
    strict: bool = True,
) -> tuple[list[DepositRecord], list[SkippedDeposit]]:
    """
    Decode every candidate transaction, keeping block and in-block order.

    strict=True: the first DepositDecodeError aborts the run.
    strict=False: failing transactions are logged and reported as skipped.
    """
    deposits: list[DepositRecord] = []
    skipped: list[SkippedDeposit] = []

    for block in block_results:
        for tx in block.transactions:
            try:
                deposits.append(decoder.decode(tx))
            except DepositDecodeError as exc:
                if strict:
                    raise
                logger.error(
                    "Skipping undecodable deposit 0x%s in block %s: %s",
                    tx.hash.hex(),
                    block.block_number,
                    exc,
                )
                skipped.append(
                    SkippedDeposit(
                        tx_hash=tx.hash,
                        block_number=block.block_number,
                        reason=str(exc),
                    )
                )

    return deposits, skipped
