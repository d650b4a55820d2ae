"""Unit tests for the WooCommerce API client.

Tests verify that:
- Orders are fetched page by page using the total pages header
- Bulk fetches keep the pages fetched before a failure
- The stream skips empty pages and surfaces fetch errors
- Rate limits are retried with backoff
- An unconfigured client returns nothing instead of failing
"""

import re

import httpx
import pytest

from erpsync.config import Settings
from erpsync.errors import AuthError, RateLimitError, RemoteAPIError
from erpsync.woocommerce_client import WooCommerceClient

from tests.fixtures.woocommerce_fixtures import (
    WOOCOMMERCE_ERROR_AUTH,
    WOOCOMMERCE_ERROR_RATE_LIMIT,
    WOOCOMMERCE_SYSTEM_STATUS,
    make_orders_response,
    make_woocommerce_order,
    pages_headers,
)


def page_url(page: int) -> re.Pattern:
    return re.compile(rf"https://shop\.example\.com/wp-json/wc/v3/orders\?page={page}&per_page=\d+$")


def add_orders_page(httpx_mock, page, orders, total_pages, status_code=200):
    httpx_mock.add_response(
        method="GET",
        url=page_url(page),
        json=orders,
        headers=pages_headers(total_pages),
        status_code=status_code,
    )


class TestWooCommerceClientInit:
    """Tests for WooCommerceClient initialization."""

    def test_client_init(self, mock_settings):
        """Test client initializes with the wc/v3 base URL."""
        client = WooCommerceClient(mock_settings)

        assert client.base_url == "https://shop.example.com/wp-json/wc/v3"
        assert client.is_initialized is False

    @pytest.mark.asyncio
    async def test_context_manager(self, mock_settings):
        """Test the HTTP client is opened and closed."""
        async with WooCommerceClient(mock_settings) as client:
            assert client.is_initialized is True

        assert client.is_initialized is False

    @pytest.mark.asyncio
    async def test_unconfigured_client_stays_closed(self, mock_env_vars_unconfigured):
        """Test missing credentials leave the client uninitialized."""
        async with WooCommerceClient(Settings()) as client:
            assert client.is_initialized is False
            assert client.base_url is None

    @pytest.mark.asyncio
    async def test_get_without_context_manager(self, mock_settings):
        """Test calling the API before opening the client fails clearly."""
        client = WooCommerceClient(mock_settings)

        with pytest.raises(RemoteAPIError, match="not initialized"):
            await client.get("orders")


class TestValidateConnection:
    """Tests for validate_connection."""

    @pytest.mark.asyncio
    async def test_valid(self, mock_settings, httpx_mock):
        httpx_mock.add_response(
            method="GET",
            url="https://shop.example.com/wp-json/wc/v3/system_status",
            json=WOOCOMMERCE_SYSTEM_STATUS,
        )

        async with WooCommerceClient(mock_settings) as client:
            assert await client.validate_connection() is True

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, mock_settings, httpx_mock):
        """Test a 401 is reported as False, not raised."""
        httpx_mock.add_response(
            method="GET",
            url="https://shop.example.com/wp-json/wc/v3/system_status",
            json=WOOCOMMERCE_ERROR_AUTH,
            status_code=401,
        )

        async with WooCommerceClient(mock_settings) as client:
            assert await client.validate_connection() is False

    @pytest.mark.asyncio
    async def test_unconfigured(self, mock_env_vars_unconfigured):
        async with WooCommerceClient(Settings()) as client:
            assert await client.validate_connection() is False


class TestGetOrders:
    """Tests for get_orders."""

    @pytest.mark.asyncio
    async def test_single_page(self, mock_settings, httpx_mock):
        """Test an explicit page fetches exactly that page."""
        add_orders_page(httpx_mock, 2, make_orders_response(), total_pages=5)

        async with WooCommerceClient(mock_settings) as client:
            orders = await client.get_orders(page=2)

        assert [o.id for o in orders] == [1001, 1002, 1003]
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_sends_auth_and_page_size(self, mock_settings, httpx_mock):
        """Test basic auth and per_page are sent."""
        httpx_mock.add_response(
            method="GET",
            url=re.compile(r".*/orders\?page=1&per_page=25$"),
            json=[],
            headers=pages_headers(1),
        )

        async with WooCommerceClient(mock_settings) as client:
            await client.get_orders(page=1, per_page=25)

        request = httpx_mock.get_request()
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_all_pages(self, mock_settings, httpx_mock):
        """Test every page is fetched and concatenated in order."""
        add_orders_page(httpx_mock, 1, [make_woocommerce_order(id=1)], total_pages=2)
        add_orders_page(httpx_mock, 2, [make_woocommerce_order(id=2)], total_pages=2)

        async with WooCommerceClient(mock_settings) as client:
            orders = await client.get_orders()

        assert [o.id for o in orders] == [1, 2]

    @pytest.mark.asyncio
    async def test_missing_pages_header(self, mock_settings, httpx_mock):
        """Test a missing total pages header means a single page."""
        httpx_mock.add_response(method="GET", url=page_url(1), json=[make_woocommerce_order(id=1)])

        async with WooCommerceClient(mock_settings) as client:
            orders = await client.get_orders()

        assert len(orders) == 1

    @pytest.mark.asyncio
    async def test_partial_result_on_failure(self, mock_settings, httpx_mock):
        """Test a failing page ends the fetch with the pages already fetched."""
        add_orders_page(httpx_mock, 1, [make_woocommerce_order(id=1)], total_pages=3)
        add_orders_page(httpx_mock, 2, {"message": "boom"}, total_pages=3, status_code=500)

        async with WooCommerceClient(mock_settings) as client:
            orders = await client.get_orders()

        assert [o.id for o in orders] == [1]

    @pytest.mark.asyncio
    async def test_single_page_error_propagates(self, mock_settings, httpx_mock):
        add_orders_page(httpx_mock, 1, WOOCOMMERCE_ERROR_AUTH, total_pages=1, status_code=401)

        async with WooCommerceClient(mock_settings) as client:
            with pytest.raises(AuthError):
                await client.get_orders(page=1)

    @pytest.mark.asyncio
    async def test_invalid_records_dropped(self, mock_settings, httpx_mock):
        """Test records that fail validation are skipped."""
        add_orders_page(
            httpx_mock, 1, [make_woocommerce_order(id=1), {"billing": {}}], total_pages=1,
        )

        async with WooCommerceClient(mock_settings) as client:
            orders = await client.get_orders()

        assert [o.id for o in orders] == [1]

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self, mock_settings, httpx_mock):
        """Test a 429 is retried and the page still arrives."""
        add_orders_page(httpx_mock, 1, WOOCOMMERCE_ERROR_RATE_LIMIT, total_pages=1, status_code=429)
        add_orders_page(httpx_mock, 1, [make_woocommerce_order(id=1)], total_pages=1)

        async with WooCommerceClient(mock_settings) as client:
            orders = await client.get_orders(page=1)

        assert [o.id for o in orders] == [1]
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, mock_settings, httpx_mock):
        """Test the rate limit error surfaces after all retries."""
        for _ in range(mock_settings.max_retries + 1):
            add_orders_page(httpx_mock, 1, WOOCOMMERCE_ERROR_RATE_LIMIT, total_pages=1, status_code=429)

        async with WooCommerceClient(mock_settings) as client:
            with pytest.raises(RateLimitError):
                await client.get_orders(page=1)

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self, mock_settings, httpx_mock):
        """Test transport timeouts become RemoteAPIError."""
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=page_url(1))

        async with WooCommerceClient(mock_settings) as client:
            with pytest.raises(RemoteAPIError, match="timeout"):
                await client.get_orders(page=1)

    @pytest.mark.asyncio
    async def test_unconfigured_returns_empty(self, mock_env_vars_unconfigured):
        async with WooCommerceClient(Settings()) as client:
            assert await client.get_orders() == []
            assert await client.get_orders(page=1) == []


class TestGetOrdersStream:
    """Tests for get_orders_stream."""

    @pytest.mark.asyncio
    async def test_streams_pages_skipping_empty(self, mock_settings, httpx_mock):
        """Test one batch per non-empty page, in page order."""
        add_orders_page(httpx_mock, 1, [make_woocommerce_order(id=1)], total_pages=3)
        add_orders_page(httpx_mock, 2, [], total_pages=3)
        add_orders_page(httpx_mock, 3, [make_woocommerce_order(id=3)], total_pages=3)

        async with WooCommerceClient(mock_settings) as client:
            batches = [batch async for batch in client.get_orders_stream()]

        assert [[o.id for o in batch] for batch in batches] == [[1], [3]]

    @pytest.mark.asyncio
    async def test_lazy_paging(self, mock_settings, httpx_mock):
        """Test the next page is requested only when the consumer asks."""
        add_orders_page(httpx_mock, 1, [make_woocommerce_order(id=1)], total_pages=2)
        add_orders_page(httpx_mock, 2, [make_woocommerce_order(id=2)], total_pages=2)

        async with WooCommerceClient(mock_settings) as client:
            stream = client.get_orders_stream()
            first = await stream.__anext__()
            assert len(httpx_mock.get_requests()) == 1
            second = await stream.__anext__()
            await stream.aclose()

        assert first[0].id == 1
        assert second[0].id == 2

    @pytest.mark.asyncio
    async def test_error_propagates_after_earlier_pages(self, mock_settings, httpx_mock):
        """Test a failing page raises after the earlier batches were yielded."""
        add_orders_page(httpx_mock, 1, [make_woocommerce_order(id=1)], total_pages=2)
        add_orders_page(httpx_mock, 2, {"message": "boom"}, total_pages=2, status_code=503)

        received = []
        async with WooCommerceClient(mock_settings) as client:
            with pytest.raises(RemoteAPIError):
                async for batch in client.get_orders_stream():
                    received.append(batch)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_yields_nothing(self, mock_env_vars_unconfigured):
        async with WooCommerceClient(Settings()) as client:
            batches = [batch async for batch in client.get_orders_stream()]

        assert batches == []
