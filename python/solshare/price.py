"""
Location: python/solshare/price.py

Summary:
    Price feed client. Fetches the current asset/fiat exchange rate used
    to turn a fiat share fee into an asset amount.

Usage:
    Used by engine.py once per session. This client only reports the
    rate or raises PriceUnavailableError; the fallback to a cached price
    is the engine's job.

Example:
    from solshare.price import HttpPriceOracle

    async with HttpPriceOracle("https://api.solbox.cloud") as oracle:
        rate = await oracle.get_price()
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Protocol, runtime_checkable

import httpx

from .errors import PriceUnavailableError


logger = logging.getLogger(__name__)

# Response fields that may carry the rate, in order of preference
RATE_FIELDS = ("solPriceUsd", "assetFiatRate")


@runtime_checkable
class PriceOracleClient(Protocol):
    """Protocol for fetching the asset/fiat exchange rate."""

    async def get_price(self) -> Decimal:
        """
        Get the current rate (fiat units per asset unit).

        Raises:
            PriceUnavailableError: On network, HTTP or parse failure
        """
        ...


class HttpPriceOracle:
    """
    Price oracle backed by the app's HTTP API.

    Attributes:
        base_url: Base URL of the API (trailing slash removed)
        path: Endpoint returning the rate JSON
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        path: str = "/api/sol-price",
        timeout: float = 10.0,
        headers: Optional[dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.path = path
        self.timeout = timeout
        self._http = httpx.AsyncClient(timeout=timeout, headers=headers or {})

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HttpPriceOracle":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def get_price(self) -> Decimal:
        try:
            response = await self._http.request("GET", f"{self.base_url}{self.path}")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PriceUnavailableError(f"Price feed request failed: {exc}") from exc

        return parse_rate(data)


def parse_rate(data: object) -> Decimal:
    """
    Extract a positive rate from a price feed payload.

    Args:
        data: Decoded JSON, either an object with a known rate field
              or a bare number

    Returns:
        The rate as Decimal

    Raises:
        PriceUnavailableError: If no positive numeric rate is present
    """
    raw = data
    if isinstance(data, dict):
        raw = next((data[f] for f in RATE_FIELDS if data.get(f) is not None), None)

    if raw is None or isinstance(raw, bool):
        raise PriceUnavailableError(f"Price feed response has no rate: {data!r}")

    try:
        rate = Decimal(str(raw))
    except InvalidOperation as exc:
        raise PriceUnavailableError(f"Price feed rate is not numeric: {raw!r}") from exc

    if not rate.is_finite() or rate <= 0:
        raise PriceUnavailableError(f"Price feed rate must be positive, got {rate}")
    return rate
