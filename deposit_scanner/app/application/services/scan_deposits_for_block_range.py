from __future__ import annotations

import logging
from dataclasses import dataclass, field

from eth_utils import is_address, to_canonical_address

from deposit_scanner.app.application.services.decode_deposits import decode_deposits
from deposit_scanner.app.application.services.fetch_with_retry import RetryPolicy
from deposit_scanner.app.application.services.scan_block_range import (
    DEFAULT_MAX_CONCURRENCY,
    BlockRange,
    RangeScanner,
)
from deposit_scanner.app.domain.models import ScanReport
from deposit_scanner.app.domain.ports.out import DepositDecoder, LedgerClient, ScanProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanConfig:
    """Everything a scan needs, passed explicitly at call time."""

    contract_address: str
    block_range: BlockRange
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    strict: bool = True

    def validate(self) -> None:
        validate_contract_address(self.contract_address)
        self.block_range.validate()
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")


def validate_contract_address(address: str) -> str:
    if not is_address(address):
        raise ValueError(f"Invalid deposit contract address: {address!r}")
    return address


async def scan_deposits_for_block_range(
    *,
    client: LedgerClient,
    decoder: DepositDecoder,
    config: ScanConfig,
    progress: ScanProgress | None = None,
) -> ScanReport:
    """
    Application-level use case: scan a block range and decode its deposits.

    Orchestrates validation, the concurrent range scan and decoding.
    Output is ordered by block number, then by position inside the block.
    """
    try:
        config.validate()
        scanner = RangeScanner(
            client=client,
            contract_address=to_canonical_address(config.contract_address),
            max_concurrency=config.max_concurrency,
            retry_policy=config.retry_policy,
            progress=progress,
        )
        block_results = await scanner.scan(config.block_range)
    finally:
        if progress is not None:
            progress.close()

    deposits, skipped = decode_deposits(
        decoder=decoder,
        block_results=block_results,
        strict=config.strict,
    )

    logger.info(
        "Finished deposit scan",
        extra={
            "from_block": config.block_range.from_block,
            "to_block": config.block_range.to_block,
            "deposits": len(deposits),
            "skipped": len(skipped),
            "peak_active": scanner.peak_active,
        },
    )

    return ScanReport(
        from_block=config.block_range.from_block,
        to_block=config.block_range.to_block,
        deposits=tuple(deposits),
        skipped=tuple(skipped),
    )
