from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Mapping

from eth_utils import to_bytes, to_canonical_address
from web3 import AsyncWeb3
from web3.exceptions import Web3RPCError, Web3ValidationError

from deposit_scanner.app.domain.errors import PermanentLedgerError
from deposit_scanner.app.domain.models import (
    LedgerBlock,
    LedgerTransaction,
    LogEntry,
    TransactionReceipt,
)
from deposit_scanner.app.domain.ports.out import LedgerClient

# JSON-RPC codes for requests that will fail the same way on every attempt
_PERMANENT_RPC_CODES = frozenset({-32600, -32601, -32602})


class Web3LedgerClient(LedgerClient):
    """
    LedgerClient using AsyncWeb3.

    One AsyncWeb3 instance (and its HTTP session) is shared by every scan task.
    Responses are mapped into frozen domain models with raw bytes for
    hashes and addresses.
    """

    def __init__(self, *, w3: AsyncWeb3) -> None:
        self._w3 = w3

    async def get_block(self, number: int) -> LedgerBlock:
        with _classify_errors():
            raw = await self._w3.eth.get_block(number, full_transactions=True)
        return block_from_rpc(raw)

    async def get_transaction_receipt(self, tx_hash: bytes) -> TransactionReceipt:
        with _classify_errors():
            raw = await self._w3.eth.get_transaction_receipt(tx_hash)
        return receipt_from_rpc(raw)

    async def get_latest_block_number(self) -> int:
        with _classify_errors():
            return int(await self._w3.eth.block_number)

    async def close(self) -> None:
        await self._w3.provider.disconnect()


@contextmanager
def _classify_errors() -> Iterator[None]:
    """Re-raise non-retryable web3 errors as PermanentLedgerError."""
    try:
        yield
    except Web3ValidationError as exc:
        raise PermanentLedgerError(str(exc)) from exc
    except Web3RPCError as exc:
        if rpc_error_code(exc) in _PERMANENT_RPC_CODES:
            raise PermanentLedgerError(str(exc)) from exc
        raise


def rpc_error_code(exc: Web3RPCError) -> int | None:
    response = getattr(exc, "rpc_response", None) or {}
    error = response.get("error") if isinstance(response, Mapping) else None
    if isinstance(error, Mapping) and isinstance(error.get("code"), int):
        return error["code"]
    return None


# ---------------------------------------------------------------------
# RPC payload -> domain models
# ---------------------------------------------------------------------


def _as_bytes(value: Any) -> bytes:
    # HexBytes, bytes or 0x-hex str
    if isinstance(value, str):
        return to_bytes(hexstr=value)
    return bytes(value)


def transaction_from_rpc(raw: Mapping[str, Any]) -> LedgerTransaction:
    to = raw.get("to")
    return LedgerTransaction(
        hash=_as_bytes(raw["hash"]),
        to=to_canonical_address(to) if to else None,
        input=_as_bytes(raw.get("input", b"")),
    )


def block_from_rpc(raw: Mapping[str, Any]) -> LedgerBlock:
    txs = []
    for tx in raw.get("transactions", []):
        if not isinstance(tx, Mapping):
            raise ValueError("Block was fetched without full transactions")
        txs.append(transaction_from_rpc(tx))
    return LedgerBlock(number=int(raw["number"]), transactions=tuple(txs))


def log_from_rpc(raw: Mapping[str, Any]) -> LogEntry:
    return LogEntry(
        address=to_canonical_address(raw["address"]),
        topics=tuple(_as_bytes(t) for t in raw.get("topics", [])),
        data=_as_bytes(raw.get("data", b"")),
        log_index=int(raw.get("logIndex", 0)),
    )


def receipt_from_rpc(raw: Mapping[str, Any]) -> TransactionReceipt:
    return TransactionReceipt(
        transaction_hash=_as_bytes(raw["transactionHash"]),
        status=int(raw.get("status", 0)),
        logs=tuple(log_from_rpc(log) for log in raw.get("logs", [])),
    )
