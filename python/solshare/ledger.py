"""
Location: python/solshare/ledger.py

Summary:
    Balance and activity queries for a payment address. Two adapters are
    provided: HttpLedgerClient for the app's wallet API, which may report
    the balance either in SOL or in lamports, and SolanaRpcLedgerClient
    which talks JSON-RPC to a Solana node directly.

Usage:
    Used by engine.py on every polling tick. Both adapters normalise to
    the same contract: balances in native units as Decimal, signatures
    as SignatureInfo most recent first. Any failure is raised as
    LedgerQueryError so the engine can treat it as transient.

Example:
    from solshare.ledger import SolanaRpcLedgerClient

    async with SolanaRpcLedgerClient("https://api.mainnet-beta.solana.com") as ledger:
        balance = await ledger.get_balance("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin")
        signatures = await ledger.get_signatures("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin")
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from .errors import LedgerQueryError
from .types import ShareConfig, SignatureInfo


logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000


@runtime_checkable
class BalanceAndActivityClient(Protocol):
    """
    Protocol for read-only ledger queries keyed by address.

    Both calls are idempotent and may fail independently.
    """

    async def get_balance(self, address: str) -> Decimal:
        """
        Get the balance of an address in native units (SOL).

        Raises:
            LedgerQueryError: On network, HTTP or parse failure
        """
        ...

    async def get_signatures(self, address: str) -> list[SignatureInfo]:
        """
        Get recent transaction signatures for an address, most recent first.

        Raises:
            LedgerQueryError: On network, HTTP or parse failure
        """
        ...


def normalize_balance(data: Any, lamports_per_sol: int = LAMPORTS_PER_SOL) -> Decimal:
    """
    Normalise a balance payload to native units.

    Accepts {"solana": <SOL>}, {"lamports": <lamports>} or a bare number
    (taken as SOL). The native field wins when both are present.

    Raises:
        LedgerQueryError: If no usable balance is present
    """
    try:
        if isinstance(data, dict):
            if data.get("solana") is not None:
                return Decimal(str(data["solana"]))
            if data.get("lamports") is not None:
                return Decimal(str(data["lamports"])) / Decimal(lamports_per_sol)
        elif isinstance(data, (int, float, str)) and not isinstance(data, bool):
            return Decimal(str(data))
    except InvalidOperation as exc:
        raise LedgerQueryError(f"Balance is not numeric: {data!r}") from exc

    raise LedgerQueryError(f"Balance response has no balance field: {data!r}")


def parse_signatures(data: Any) -> list[SignatureInfo]:
    """
    Parse a signatures payload into SignatureInfo entries.

    The payload may be a list, an object with a "signatures" list, or an
    object whose first list-valued field holds the entries. Entries may be
    objects or plain signature strings; entries without a signature are
    dropped. Order is preserved (most recent first).
    """
    entries: Any = data
    if isinstance(data, dict):
        if isinstance(data.get("signatures"), list):
            entries = data["signatures"]
        else:
            entries = next((v for v in data.values() if isinstance(v, list)), [])

    if not isinstance(entries, list):
        raise LedgerQueryError(f"Signatures response is not a list: {data!r}")

    result = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"signature": entry}
        try:
            result.append(SignatureInfo.model_validate(entry))
        except ValidationError:
            logger.warning("Skipping malformed signature entry: %r", entry)
    return result


class HttpLedgerClient:
    """
    Ledger client backed by the app's wallet API.

    Attributes:
        base_url: Base URL of the API (trailing slash removed)
        timeout: Request timeout in seconds
        lamports_per_sol: Conversion factor for sub-unit balances
    """

    BALANCE_PATH = "/api/wallet/{address}/balance"
    SIGNATURES_PATH = "/api/wallet/{address}/signatures"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        headers: Optional[dict[str, str]] = None,
        lamports_per_sol: int = LAMPORTS_PER_SOL,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.lamports_per_sol = lamports_per_sol
        self._http = httpx.AsyncClient(timeout=timeout, headers=headers or {})

    @classmethod
    def from_config(cls, base_url: str, config: ShareConfig, **kwargs) -> "HttpLedgerClient":
        """Build a client that converts sub-units with config.lamports_per_sol."""
        return cls(base_url, lamports_per_sol=config.lamports_per_sol, **kwargs)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HttpLedgerClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def get_balance(self, address: str) -> Decimal:
        data = await self._get(self.BALANCE_PATH.format(address=address))
        return normalize_balance(data, self.lamports_per_sol)

    async def get_signatures(self, address: str) -> list[SignatureInfo]:
        data = await self._get(self.SIGNATURES_PATH.format(address=address))
        return parse_signatures(data)

    async def _get(self, path: str) -> Any:
        try:
            response = await self._http.request("GET", f"{self.base_url}{path}")
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LedgerQueryError(f"Ledger request {path} failed: {exc}") from exc


class SolanaRpcLedgerClient:
    """
    Ledger client speaking Solana JSON-RPC (getBalance,
    getSignaturesForAddress). Balances arrive in lamports.

    Attributes:
        rpc_url: JSON-RPC endpoint
        commitment: Commitment level passed with every query
        signature_limit: Maximum number of signatures fetched per query
        lamports_per_sol: Conversion factor for getBalance results
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        signature_limit: int = 10,
        timeout: float = 10.0,
        lamports_per_sol: int = LAMPORTS_PER_SOL,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.signature_limit = signature_limit
        self.timeout = timeout
        self.lamports_per_sol = lamports_per_sol
        self._http = httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    @classmethod
    def from_config(cls, rpc_url: str, config: ShareConfig, **kwargs) -> "SolanaRpcLedgerClient":
        return cls(rpc_url, lamports_per_sol=config.lamports_per_sol, **kwargs)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "SolanaRpcLedgerClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def get_balance(self, address: str) -> Decimal:
        result = await self._call("getBalance", [address, {"commitment": self.commitment}])
        if isinstance(result, dict):
            result = result.get("value")
        if result is None:
            raise LedgerQueryError("getBalance returned no value")
        return normalize_balance({"lamports": result}, self.lamports_per_sol)

    async def get_signatures(self, address: str) -> list[SignatureInfo]:
        result = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": self.signature_limit, "commitment": self.commitment}],
        )
        return parse_signatures(result or [])

    async def _call(self, method: str, params: list) -> Any:
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            response = await self._http.request("POST", self.rpc_url, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LedgerQueryError(f"RPC {method} failed: {exc}") from exc

        if not isinstance(data, dict):
            raise LedgerQueryError(f"RPC {method} returned a non-object response")
        if data.get("error"):
            raise LedgerQueryError(f"RPC {method} error: {data['error']}")
        return data.get("result")
