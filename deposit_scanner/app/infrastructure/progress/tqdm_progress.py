from __future__ import annotations

from tqdm import tqdm

from deposit_scanner.app.domain.models import BlockResult
from deposit_scanner.app.domain.ports.out import ScanProgress


class TqdmScanProgress(ScanProgress):
    """Console progress bar, one tick per scanned block."""

    def __init__(self, *, total: int, description: str = "scanning blocks...") -> None:
        self._bar = tqdm(total=total, desc=description, unit="block")
        self._deposits = 0

    @property
    def total(self) -> int:
        return self._bar.total

    @property
    def count(self) -> int:
        return self._bar.n

    def advance(self, result: BlockResult) -> None:
        self._deposits += len(result.transactions)
        self._bar.set_postfix(deposits=self._deposits, refresh=False)
        self._bar.update(1)

    def close(self) -> None:
        self._bar.close()


class NullScanProgress(ScanProgress):
    def advance(self, result: BlockResult) -> None:
        pass

    def close(self) -> None:
        pass
