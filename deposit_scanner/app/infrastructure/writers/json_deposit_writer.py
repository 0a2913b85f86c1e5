from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from deposit_scanner.app.domain.errors import OutputWriteError
from deposit_scanner.app.domain.models import DepositRecord
from deposit_scanner.app.domain.ports.out import DepositWriter

logger = logging.getLogger(__name__)

_FILE_MODE = 0o600


class JsonFileDepositWriter(DepositWriter):
    """
    Writes deposits as one compact JSON array.

    The file is written to a temp file in the same directory and renamed into
    place, so a failed run never leaves a partial output file behind.
    """

    def __init__(self, *, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, deposits: list[DepositRecord]) -> None:
        payload = [d.to_json_dict() for d in deposits]

        try:
            encoded = json.dumps(payload, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            logger.error("failed to marshal data, data: %r", payload)
            raise OutputWriteError(f"Could not serialize {len(payload)} deposits") from exc

        directory = self._path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(encoded)
            os.chmod(tmp_name, _FILE_MODE)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            logger.error("failed to write to file %s, data: %s", self._path, encoded)
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise OutputWriteError(f"Could not write deposits to {self._path}") from exc

        logger.info("Wrote %s deposits to %s", len(payload), self._path)
