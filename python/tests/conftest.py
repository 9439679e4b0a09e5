"""
Shared pytest fixtures for solshare tests.

Provides a controllable clock, mocked leaf clients, sample file metadata
and a ready-to-use engine wired to all of them.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from solshare.engine import PaymentConfirmationEngine
from solshare.repository import MemoryShareRepository
from solshare.types import FileMetadata, ShareConfig, SignatureInfo, WalletKeypair


PAY_ADDRESS = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


class FakeClock:
    """Wall clock that only moves when the engine sleeps."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


async def drain(rounds: int = 20) -> None:
    """Let pending tasks run for a few event loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_signature(signature: str = "5sigAbc123", **kwargs) -> SignatureInfo:
    fields = {"block_time": 1_700_000_100, "slot": 250_000_000, "confirmation_status": "finalized"}
    fields.update(kwargs)
    return SignatureInfo(signature=signature, **fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_file():
    """A shared PDF."""
    return FileMetadata(
        file_id="file_001",
        name="report.pdf",
        file_type="application/pdf",
        size_bytes=204_800,
        url="https://solbox.cloud/ipfs/bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi",
    )


@pytest.fixture
def wallet_generator():
    generator = MagicMock()
    generator.generate = MagicMock(return_value=WalletKeypair(
        address=PAY_ADDRESS,
        private_material="ab" * 64,
    ))
    return generator


@pytest.fixture
def price_oracle():
    oracle = MagicMock()
    oracle.get_price = AsyncMock(return_value=Decimal("150"))
    return oracle


@pytest.fixture
def ledger():
    client = MagicMock()
    client.get_balance = AsyncMock(return_value=Decimal(0))
    client.get_signatures = AsyncMock(return_value=[])
    return client


@pytest.fixture
def notifier():
    sink = MagicMock()
    sink.notify = AsyncMock(return_value=None)
    return sink


@pytest.fixture
def repository():
    return MemoryShareRepository(share_ids={"bob042", "alice01"})


@pytest.fixture
def config():
    return ShareConfig()


@pytest.fixture
def engine(wallet_generator, price_oracle, ledger, notifier, repository, config, clock):
    return PaymentConfirmationEngine(
        wallet_generator=wallet_generator,
        price_oracle=price_oracle,
        ledger=ledger,
        notifier=notifier,
        repository=repository,
        config=config,
        clock=clock,
        sleep=clock.sleep,
    )


def make_response(data, status_code: int = 200) -> MagicMock:
    """Mock httpx response returning data from json()."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data
    response.raise_for_status = MagicMock()
    return response


def make_error_response(status_code: int = 500) -> MagicMock:
    """Mock httpx response whose raise_for_status() fails."""
    request = httpx.Request("GET", "https://api.example.com")
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status = MagicMock(side_effect=httpx.HTTPStatusError(
        f"HTTP {status_code}",
        request=request,
        response=httpx.Response(status_code, request=request),
    ))
    return response
