"""WooCommerce REST API client.

Handles authentication, error classification and pagination for
fetching orders from WooCommerce. An unconfigured integration is not an
error: every fetch then returns nothing.
"""

import logging
from typing import Any, AsyncIterator, List, Optional, Tuple

import httpx

from .config import Settings
from .constants import CONNECTION_CHECK_RESOURCE, DEFAULT_PAGE_SIZE, TOTAL_PAGES_HEADER
from .errors import RemoteAPIError, error_from_status, parse_retry_after
from .models import WooCommerceOrder
from .retry import execute_with_retry

logger = logging.getLogger(__name__)


class WooCommerceClient:
    """Async client for the WooCommerce REST API (wc/v3)."""

    def __init__(self, settings: Settings):
        """Initialize WooCommerce client.

        Args:
            settings: Application settings with WooCommerce credentials
        """
        self.settings = settings
        self.base_url = settings.woocommerce_api_url if settings.woocommerce_configured else None
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    async def __aenter__(self) -> "WooCommerceClient":
        """Async context manager entry."""
        if not self.settings.woocommerce_configured:
            logger.warning(
                "WooCommerce not configured. Customer sync is disabled. Set WOOCOMMERCE_URL, "
                "WOOCOMMERCE_CONSUMER_KEY, and WOOCOMMERCE_CONSUMER_SECRET to enable."
            )
            return self

        self._client = httpx.AsyncClient(
            auth=(
                self.settings.woocommerce_consumer_key,
                self.settings.woocommerce_consumer_secret,
            ),
            headers={"Accept": "application/json"},
            timeout=self.settings.http_timeout,
        )
        logger.info("WooCommerce API client initialized")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        resource: str,
        params: Optional[dict] = None,
    ) -> Tuple[Any, httpx.Headers]:
        """GET a WooCommerce resource.

        Args:
            resource: Resource path relative to the API root (e.g., "orders")
            params: Query parameters

        Returns:
            Tuple of (decoded JSON body, response headers)

        Raises:
            RateLimitError: On 429
            AuthError: On 401/403
            NotFoundError: On 404
            RemoteAPIError: On other failures
        """
        if not self._client:
            raise RemoteAPIError("WooCommerce API not initialized")

        url = f"{self.base_url}/{resource}"

        try:
            response = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise RemoteAPIError(f"Request timeout for {resource}: {e}") from e
        except httpx.RequestError as e:
            raise RemoteAPIError(f"Request failed for {resource}: {e}") from e

        logger.debug(f"WooCommerce API call: GET {resource} -> {response.status_code}")

        if response.status_code in (200, 201):
            return response.json(), response.headers

        raise error_from_status(
            response.status_code,
            f"API error {response.status_code} for {resource}: {response.text[:200]}",
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )

    async def validate_connection(self) -> bool:
        """Verify API connection is working.

        Returns:
            True if connection is successful
        """
        if not self._client:
            logger.warning("Cannot validate connection: WooCommerce API not initialized")
            return False

        try:
            await self.get(CONNECTION_CHECK_RESOURCE)
            logger.info("WooCommerce connection validated successfully")
            return True
        except Exception as e:
            logger.error(f"WooCommerce connection validation failed: {e}")
            return False

    # =========================================================================
    # ORDERS
    # =========================================================================

    @staticmethod
    def _parse_orders(data: Any) -> List[WooCommerceOrder]:
        orders = []
        for order_data in data or []:
            try:
                orders.append(WooCommerceOrder.model_validate(order_data))
            except Exception as e:
                order_id = order_data.get("id") if isinstance(order_data, dict) else None
                logger.error(f"Failed to parse order {order_id}: {e}")
                continue
        return orders

    async def _get_orders_page(
        self,
        page: int,
        per_page: int,
    ) -> Tuple[List[WooCommerceOrder], int]:
        """Fetch one page of orders.

        Returns:
            Tuple of (orders, total page count reported by the server)
        """
        params = {"page": page, "per_page": per_page}
        try:
            data, headers = await execute_with_retry(
                lambda: self.get("orders", params=params),
                self.settings.max_retries,
                self.settings.retry_delay,
            )
        except Exception as e:
            logger.error(f"Failed to fetch orders page {page}: {e}")
            raise

        try:
            total_pages = int(headers.get(TOTAL_PAGES_HEADER) or 1)
        except ValueError:
            total_pages = 1

        orders = self._parse_orders(data)
        logger.debug(f"Fetched {len(orders)} orders (page {page}/{total_pages})")
        return orders, total_pages

    async def get_orders(
        self,
        page: Optional[int] = None,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> List[WooCommerceOrder]:
        """Fetch orders from WooCommerce.

        With ``page`` set, fetches exactly that page and propagates errors.
        Without it, fetches every page and returns them all; a failing page
        ends the fetch and the pages already fetched are returned.

        Args:
            page: Optional page number (1-indexed)
            per_page: Orders per page

        Returns:
            List of WooCommerceOrder objects
        """
        if not self._client:
            logger.warning("Cannot fetch orders: WooCommerce API not initialized")
            return []

        if page is not None:
            orders, _ = await self._get_orders_page(page, per_page)
            return orders

        logger.info("Fetching all orders from WooCommerce...")
        all_orders: List[WooCommerceOrder] = []
        current_page = 1
        while True:
            try:
                orders, total_pages = await self._get_orders_page(current_page, per_page)
            except Exception as e:
                logger.error(
                    f"Stopped fetching orders at page {current_page}, "
                    f"returning {len(all_orders)} orders fetched so far: {e}"
                )
                break

            all_orders.extend(orders)
            if current_page >= total_pages:
                break
            current_page += 1

        logger.info(f"Fetched {len(all_orders)} orders from WooCommerce")
        return all_orders

    async def get_orders_stream(
        self,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[List[WooCommerceOrder]]:
        """Stream orders page by page.

        The next page is requested only after the consumer has taken the
        previous one. Empty pages are not emitted. Fetch errors propagate
        to the consumer.

        Yields:
            Lists of WooCommerceOrder objects, one per page
        """
        if not self._client:
            logger.warning("Cannot fetch orders: WooCommerce API not initialized")
            return

        logger.info("Starting order stream from WooCommerce...")

        page = 1
        while True:
            orders, total_pages = await self._get_orders_page(page, per_page)
            if orders:
                yield orders
            if page >= total_pages:
                break
            page += 1
