from __future__ import annotations

from typing import Literal

from deposit_scanner.app.domain.ports.out import LedgerClient


BlockSelector = int | str
_EARLIEST: Literal["earliest"] = "earliest"
_LATEST: Literal["latest"] = "latest"


def parse_block_selector(value: BlockSelector) -> BlockSelector:
    """Turn CLI/prompt input ("123", "latest") into an int or a keyword."""
    if isinstance(value, int):
        return value
    stripped = value.strip().lower()
    if stripped.isdigit():
        return int(stripped)
    return stripped


async def resolve_block_bounds(
    *,
    client: LedgerClient,
    from_block: BlockSelector,
    to_block: BlockSelector,
    earliest_block: int,
) -> tuple[int, int]:
    """
    Resolve from_block / to_block into a concrete [from, to) range.

    - If both are ints -> they are returned as-is.
    - If from_block is "earliest" / "" -> earliest_block (deposit contract deployment).
    - If to_block is "latest" / ""     -> chain head, exclusive, so the head block is not scanned.
    """
    if isinstance(from_block, int) and isinstance(to_block, int):
        return from_block, to_block

    if isinstance(from_block, int):
        fb = from_block
    else:
        fb_str = from_block.strip().lower()
        if fb_str in ("", _EARLIEST):
            fb = earliest_block
        else:
            raise ValueError(f"Unsupported from_block value: {from_block!r}")

    if isinstance(to_block, int):
        tb = to_block
    else:
        tb_str = to_block.strip().lower()
        if tb_str in ("", _LATEST):
            tb = await client.get_latest_block_number()
        else:
            raise ValueError(f"Unsupported to_block value: {to_block!r}")

    return fb, tb
