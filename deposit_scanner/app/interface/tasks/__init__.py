from __future__ import annotations

from collections.abc import Awaitable, Callable

from deposit_scanner.app.domain.models import ScanReport

from .scan_deposits_task import scan_deposits_task

TaskFn = Callable[..., Awaitable[ScanReport]]

TASKS: dict[str, TaskFn] = {
    "scan_deposits_task": scan_deposits_task,
}
