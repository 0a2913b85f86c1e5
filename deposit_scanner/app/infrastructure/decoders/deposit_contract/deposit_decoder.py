from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from deposit_scanner.app.domain.errors import DepositDecodeError
from deposit_scanner.app.domain.models import CandidateTransaction, DepositRecord, LogEntry
from deposit_scanner.app.domain.ports.out import DepositDecoder

logger = logging.getLogger(__name__)

DEFAULT_ABI_PATH = Path(__file__).resolve().parents[3] / "registry" / "abi" / "DepositContract.json"

_SELECTOR_SIZE = 4
_AMOUNT_SIZE = 8


class DepositContractDecoder(DepositDecoder):
    """
    ABI-based decoder for the beacon chain deposit contract.

    deposit contract ABI:
      function deposit(
          bytes pubkey,
          bytes withdrawal_credentials,
          bytes signature,
          bytes32 deposit_data_root
      ) payable

      event DepositEvent(
          bytes pubkey,
          bytes withdrawal_credentials,
          bytes amount,          // little-endian uint64
          bytes signature,
          bytes index            // little-endian uint64
      )

    Nothing is indexed, so topic0 identifies the event and every field is in `data`.

    The deposit_data_root comes from the call input (it is not emitted),
    everything else from the event.
    """

    def __init__(
        self,
        *,
        abi_path: Path = DEFAULT_ABI_PATH,
        function_name: str = "deposit",
        event_name: str = "DepositEvent",
    ) -> None:
        self._abi = self._load_abi(abi_path)

        self._function_abi = self._find_entry(self._abi, "function", function_name)
        self._function_signature = self._signature(self._function_abi)
        self._selector = keccak(text=self._function_signature)[:_SELECTOR_SIZE]
        self._function_types = [i["type"] for i in self._function_abi.get("inputs", [])]
        self._function_names = [i["name"] for i in self._function_abi.get("inputs", [])]

        self._event_abi = self._find_entry(self._abi, "event", event_name)
        self._event_signature = self._signature(self._event_abi)
        self._topic0 = keccak(text=self._event_signature)
        self._event_types = [i["type"] for i in self._event_abi.get("inputs", [])]
        self._event_names = [i["name"] for i in self._event_abi.get("inputs", [])]

        if any(i.get("indexed") for i in self._event_abi.get("inputs", [])):
            raise ValueError(
                f"{event_name} has indexed inputs; this decoder expects all fields in log data."
            )

    @property
    def selector(self) -> bytes:
        return self._selector

    @property
    def topic0(self) -> bytes:
        return self._topic0

    @property
    def function_signature(self) -> str:
        return self._function_signature

    @property
    def event_signature(self) -> str:
        return self._event_signature

    def decode(self, tx: CandidateTransaction) -> DepositRecord:
        call = self.decode_call_input(tx.input, tx_hash=tx.hash)

        data_root = call["deposit_data_root"]
        if not isinstance(data_root, (bytes, bytearray)) or len(data_root) != 32:
            raise DepositDecodeError(
                f"got invalid type for data root in tx 0x{tx.hash.hex()}",
                tx_hash=tx.hash,
            )

        events = [e for e in (self.decode_event(log) for log in tx.logs) if e is not None]
        if not events:
            raise DepositDecodeError(
                f"No {self._event_abi['name']} log found in tx 0x{tx.hash.hex()}",
                tx_hash=tx.hash,
            )
        if len(events) > 1:
            # Only the first is used; batched deposits would lose the rest.
            logger.warning(
                "Transaction 0x%s emitted %s deposit events, using the first",
                tx.hash.hex(),
                len(events),
            )
        event = events[0]

        return DepositRecord(
            pubkey=event["pubkey"],
            withdrawal_credentials=event["withdrawal_credentials"],
            amount=self.decode_amount(event["amount"], tx_hash=tx.hash),
            signature=event["signature"],
            deposit_data_root=bytes(data_root),
        )

    # ---------------------------------------------------------------------
    # Call input / log decoding
    # ---------------------------------------------------------------------

    def decode_call_input(self, data: bytes, *, tx_hash: bytes | None = None) -> dict[str, Any]:
        if len(data) < _SELECTOR_SIZE or data[:_SELECTOR_SIZE] != self._selector:
            raise DepositDecodeError(
                f"Call input does not start with {self._function_signature} selector "
                f"0x{self._selector.hex()}",
                tx_hash=tx_hash,
            )
        try:
            values = abi_decode(self._function_types, data[_SELECTOR_SIZE:])
        except (DecodingError, ValueError) as exc:
            raise DepositDecodeError(
                f"Could not decode {self._function_signature} input: {exc}",
                tx_hash=tx_hash,
            ) from exc

        return {
            name: self._normalize_abi_value(typ, val)
            for name, typ, val in zip(self._function_names, self._function_types, values, strict=True)
        }

    def decode_event(self, log: LogEntry) -> dict[str, Any] | None:
        """
        Decode a log as DepositEvent.

        Return:
          - dict of event fields
          - None if the log is not a DepositEvent or its data is malformed
        """
        if log.topic0 is None or log.topic0 != self._topic0:
            return None
        try:
            values = abi_decode(self._event_types, log.data)
        except (DecodingError, ValueError):
            return None

        return {
            name: self._normalize_abi_value(typ, val)
            for name, typ, val in zip(self._event_names, self._event_types, values, strict=True)
        }

    @staticmethod
    def decode_amount(raw: bytes, *, tx_hash: bytes | None = None) -> int:
        # solc: bytes memory amount = to_little_endian_64(uint64(deposit_amount));
        if len(raw) != _AMOUNT_SIZE:
            raise DepositDecodeError(
                f"Deposit amount must be {_AMOUNT_SIZE} bytes, got {len(raw)}",
                tx_hash=tx_hash,
            )
        return int.from_bytes(raw, byteorder="little", signed=False)

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    def _load_abi(self, abi_path: Path) -> list[dict[str, Any]]:
        if not abi_path.exists():
            raise FileNotFoundError(f"ABI file not found: {abi_path}")
        data = json.loads(abi_path.read_text(encoding="utf-8"))

        # Common formats:
        # - [ ... ] (ABI list)
        # - { "abi": [ ... ] } (artifact)
        if isinstance(data, list):
            abi = data
        elif isinstance(data, dict) and isinstance(data.get("abi"), list):
            abi = data["abi"]
        else:
            raise ValueError(
                f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
            )
        return [x for x in abi if isinstance(x, dict)]

    def _find_entry(self, abi: list[dict[str, Any]], kind: str, name: str) -> dict[str, Any]:
        entries = [x for x in abi if x.get("type") == kind and x.get("name") == name]
        if not entries:
            names = sorted({x.get("name") for x in abi if x.get("type") == kind})
            raise ValueError(f"{kind.capitalize()} {name!r} not found in ABI. Available: {names}")
        if len(entries) > 1:
            raise ValueError(
                f"Multiple {kind}s named {name!r} found in ABI. "
                "Disambiguation by full signature is required."
            )
        return entries[0]

    def _signature(self, entry: Mapping[str, Any]) -> str:
        name = entry.get("name")
        inputs = entry.get("inputs", [])
        if not isinstance(name, str) or not isinstance(inputs, list):
            raise ValueError("Invalid ABI entry: missing name/inputs")
        types = []
        for inp in inputs:
            if not isinstance(inp, dict) or "type" not in inp:
                raise ValueError("Invalid ABI inputs")
            types.append(inp["type"])
        return f"{name}({','.join(types)})"

    def _normalize_abi_value(self, typ: str, val: Any) -> Any:
        if typ.startswith("bytes") and isinstance(val, (bytes, bytearray, memoryview)):
            return bytes(val)
        return val
