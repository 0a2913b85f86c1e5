from __future__ import annotations

from typing import Callable, Dict

from web3 import AsyncHTTPProvider, AsyncWeb3

from deposit_scanner.app.domain.ports.out import LedgerClient
from deposit_scanner.app.infrastructure.fetchers.web3_ledger_client import Web3LedgerClient

LedgerClientFactory = Callable[[str, float], LedgerClient]

_DEFAULT_TIMEOUT = 30.0


def _make_web3_client(rpc_url: str, timeout: float) -> LedgerClient:
    """
    Wire dependencies for the web3 backend:
    - AsyncWeb3 over HTTP (one shared session for all scan tasks)
    - Web3LedgerClient adapter mapping RPC payloads into domain models
    """
    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": timeout},
        )
    )
    return Web3LedgerClient(w3=w3)


_LEDGER_CLIENT_REGISTRY: Dict[str, LedgerClientFactory] = {
    "web3": _make_web3_client,
}


def ledger_client_factory(
    *,
    backend: str,
    rpc_url: str,
    timeout: float = _DEFAULT_TIMEOUT,
) -> LedgerClient:
    try:
        factory = _LEDGER_CLIENT_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported ledger client backend: {backend!r}")

    return factory(rpc_url, timeout)
