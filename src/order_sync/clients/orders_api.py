"""Remote order API client.

The engine never talks to the remote system directly; the sync task hands it
pages obtained through an ``OrderFetcher``. ``OrdersApiClient`` is the httpx
implementation. Authentication, rate limiting and response caching belong to
the remote system's gateway and are not handled here.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from order_sync.config import Settings, get_settings
from order_sync.exceptions import OrdersApiError

logger = structlog.get_logger()


@dataclass(frozen=True)
class PagingState:
    page: int = 1
    page_size: int = 200

    def next(self) -> "PagingState":
        return PagingState(page=self.page + 1, page_size=self.page_size)


@dataclass(frozen=True)
class OrderPage:
    orders: list[dict[str, Any]]
    paging: PagingState

    @property
    def is_last(self) -> bool:
        return len(self.orders) < self.paging.page_size


class OrderFetcher(ABC):
    """Source of raw remote order pages."""

    @abstractmethod
    def fetch_orders(self, paging: PagingState) -> OrderPage:
        pass


class OrdersApiClient(OrderFetcher):
    """``GET {base}/orders?page=&pageSize=`` over httpx."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ):
        self.settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        if self.settings.orders_api_key:
            headers[self.settings.orders_api_key_header] = self.settings.orders_api_key
        self._client = client or httpx.Client(
            base_url=self.settings.orders_api_base_url.rstrip("/"),
            headers=headers,
            timeout=self.settings.orders_api_timeout,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "OrdersApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch_orders(self, paging: PagingState) -> OrderPage:
        try:
            response = self._client.get(
                "/orders", params={"page": paging.page, "pageSize": paging.page_size}
            )
        except httpx.HTTPError as e:
            raise OrdersApiError(f"Order API request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(
                "Order API returned an error",
                status_code=response.status_code,
                page=paging.page,
            )
            raise OrdersApiError(
                f"Order API returned {response.status_code} for page {paging.page}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise OrdersApiError("Order API returned invalid JSON", response.status_code) from e

        return OrderPage(orders=_extract_orders(payload), paging=paging)


def _extract_orders(payload: Any) -> list[dict[str, Any]]:
    """Accept a bare list or a wrapper object holding the list."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("Data", "data", "Orders", "orders"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise OrdersApiError("Order API response does not contain an order list")


def iter_pages(
    fetcher: OrderFetcher,
    page_size: int,
    max_pages: int = 0,
    start_page: int = 1,
) -> Iterator[OrderPage]:
    """Yield pages until an empty or short page (or ``max_pages``) is reached."""
    paging = PagingState(page=start_page, page_size=page_size)
    fetched = 0
    while True:
        page = fetcher.fetch_orders(paging)
        fetched += 1
        if page.orders:
            yield page
        if page.is_last or (max_pages and fetched >= max_pages):
            return
        paging = paging.next()
