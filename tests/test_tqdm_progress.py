from __future__ import annotations

import importlib

from conftest import DEPOSIT_CONTRACT, DEPOSIT_CONTRACT_BYTES
from deposit_scanner.app.application.services.fetch_with_retry import RetryPolicy
from deposit_scanner.app.application.services.scan_block_range import BlockRange, RangeScanner
from deposit_scanner.app.infrastructure.progress.tqdm_progress import TqdmScanProgress
from deposit_scanner.app.interface.tasks import scan_deposits_task

task_module = importlib.import_module("deposit_scanner.app.interface.tasks.scan_deposits_task")


async def test_bar_ticks_once_per_block(fake_client, make_deposit_tx) -> None:
    fake_client.add_block(3, make_deposit_tx(3))
    progress = TqdmScanProgress(total=6, description="test")

    scanner = RangeScanner(
        client=fake_client,
        contract_address=DEPOSIT_CONTRACT_BYTES,
        max_concurrency=3,
        retry_policy=RetryPolicy(max_attempts=1, base_delay=0.0),
        progress=progress,
    )
    results = await scanner.scan(BlockRange(0, 6))
    progress.close()

    assert len(results) == 6
    assert progress.total == 6
    assert progress.count == 6


async def test_task_drives_progress_bar(tmp_path, fake_client, make_deposit_tx, monkeypatch) -> None:
    fake_client.add_block(11, make_deposit_tx(11))
    bars: list[TqdmScanProgress] = []

    class RecordingProgress(TqdmScanProgress):
        def __init__(self, **kwargs) -> None:
            super().__init__(**kwargs)
            self.closed = False
            bars.append(self)

        def close(self) -> None:
            self.closed = True
            super().close()

    monkeypatch.setattr(task_module, "TqdmScanProgress", RecordingProgress)

    report = await scan_deposits_task(
        from_block=10,
        to_block=14,
        output_path=str(tmp_path / "out.json"),
        show_progress=True,
        contract_address=DEPOSIT_CONTRACT,
        retry_policy=RetryPolicy(max_attempts=1, base_delay=0.0),
        client=fake_client,
    )

    assert len(report.deposits) == 1
    (bar,) = bars
    assert bar.total == 4
    assert bar.count == 4
    assert bar.closed
