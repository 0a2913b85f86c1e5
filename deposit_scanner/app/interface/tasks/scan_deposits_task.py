from __future__ import annotations

from pathlib import Path

from deposit_scanner.app.application.services.block_bounds import (
    BlockSelector,
    resolve_block_bounds,
)
from deposit_scanner.app.application.services.fetch_with_retry import RetryPolicy
from deposit_scanner.app.application.services.scan_block_range import BlockRange
from deposit_scanner.app.application.services.scan_deposits_for_block_range import (
    ScanConfig,
    scan_deposits_for_block_range,
    validate_contract_address,
)
from deposit_scanner.app.config import settings
from deposit_scanner.app.domain.models import ScanReport
from deposit_scanner.app.domain.ports.out import LedgerClient, ScanProgress
from deposit_scanner.app.infrastructure.decoders.deposit_contract.deposit_decoder import (
    DepositContractDecoder,
)
from deposit_scanner.app.infrastructure.factories.ledger_client_factory import (
    ledger_client_factory,
)
from deposit_scanner.app.infrastructure.progress.tqdm_progress import (
    NullScanProgress,
    TqdmScanProgress,
)
from deposit_scanner.app.infrastructure.writers.json_deposit_writer import (
    JsonFileDepositWriter,
)


async def scan_deposits_task(
    *,
    from_block: BlockSelector,
    to_block: BlockSelector,
    output_path: str | None = None,
    contract_address: str | None = None,
    rpc_url: str | None = None,
    max_concurrency: int | None = None,
    strict: bool | None = None,
    show_progress: bool | None = None,
    retry_policy: RetryPolicy | None = None,
    backend: str = "web3",
    client: LedgerClient | None = None,
) -> ScanReport:
    """
    Task: rebuild deposit data for a block range and write it as JSON.

    from_block / to_block can be:
    - int (a specific block number; to_block is exclusive),
    - "earliest" (the deposit contract deployment block),
    - "latest" (the current chain head, exclusive).

    Unset arguments fall back to settings. The output file is only written
    when the whole range was scanned and decoded.
    """
    contract = validate_contract_address(contract_address or settings.deposit_contract_address)

    owns_client = client is None
    if client is None:
        client = ledger_client_factory(
            backend=backend,
            rpc_url=rpc_url or str(settings.rpc_url),
            timeout=settings.rpc_timeout,
        )

    try:
        resolved_from_block, resolved_to_block = await resolve_block_bounds(
            client=client,
            from_block=from_block,
            to_block=to_block,
            earliest_block=settings.deposit_contract_deployment_block,
        )

        config = ScanConfig(
            contract_address=contract,
            block_range=BlockRange(
                from_block=resolved_from_block,
                to_block=resolved_to_block,
            ),
            max_concurrency=max_concurrency or settings.max_concurrency,
            retry_policy=retry_policy or settings.retry_policy(),
            strict=settings.strict_decoding if strict is None else strict,
        )
        config.validate()

        progress_enabled = settings.show_progress if show_progress is None else show_progress
        progress: ScanProgress = (
            TqdmScanProgress(total=len(config.block_range))
            if progress_enabled
            else NullScanProgress()
        )

        report = await scan_deposits_for_block_range(
            client=client,
            decoder=DepositContractDecoder(),
            config=config,
            progress=progress,
        )
    finally:
        if owns_client:
            await client.close()

    writer = JsonFileDepositWriter(path=Path(output_path or settings.output_path))
    writer.write(list(report.deposits))

    return report
