"""
Tests for solshare.price module.
"""

from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest

from conftest import make_error_response, make_response
from solshare.errors import PriceUnavailableError
from solshare.price import HttpPriceOracle, parse_rate


class TestParseRate:
    """Tests for parse_rate."""

    def test_sol_price_field(self):
        assert parse_rate({"solPriceUsd": 152.5}) == Decimal("152.5")

    def test_generic_rate_field(self):
        assert parse_rate({"assetFiatRate": "99.1"}) == Decimal("99.1")

    def test_bare_number(self):
        assert parse_rate(140) == Decimal(140)

    def test_missing_rate(self):
        with pytest.raises(PriceUnavailableError):
            parse_rate({"price": None})

    def test_zero_rate_rejected(self):
        """Test that a zero rate cannot become a divisor."""
        with pytest.raises(PriceUnavailableError):
            parse_rate({"solPriceUsd": 0})

    def test_negative_rate_rejected(self):
        with pytest.raises(PriceUnavailableError):
            parse_rate({"solPriceUsd": -3})

    def test_non_numeric_rejected(self):
        with pytest.raises(PriceUnavailableError):
            parse_rate({"solPriceUsd": "n/a"})


class TestHttpPriceOracle:
    """Tests for HttpPriceOracle."""

    @pytest.fixture
    def oracle(self):
        return HttpPriceOracle("https://api.solbox.cloud/")

    async def test_get_price(self, oracle):
        with patch.object(oracle._http, "request") as mock_request:
            mock_request.return_value = make_response({"solPriceUsd": 148.25})
            assert await oracle.get_price() == Decimal("148.25")
            assert mock_request.call_args[0] == ("GET", "https://api.solbox.cloud/api/sol-price")

    async def test_custom_path(self):
        oracle = HttpPriceOracle("https://prices.example.com", path="/v1/sol-usd")
        with patch.object(oracle._http, "request") as mock_request:
            mock_request.return_value = make_response({"assetFiatRate": 150})
            await oracle.get_price()
            assert mock_request.call_args[0][1] == "https://prices.example.com/v1/sol-usd"

    async def test_http_error(self, oracle):
        with patch.object(oracle._http, "request") as mock_request:
            mock_request.return_value = make_error_response(500)
            with pytest.raises(PriceUnavailableError):
                await oracle.get_price()

    async def test_network_error(self, oracle):
        with patch.object(oracle._http, "request") as mock_request:
            mock_request.side_effect = httpx.ConnectError("offline")
            with pytest.raises(PriceUnavailableError):
                await oracle.get_price()

    async def test_async_context_manager(self):
        async with HttpPriceOracle("https://api.solbox.cloud") as oracle:
            assert oracle.base_url == "https://api.solbox.cloud"
