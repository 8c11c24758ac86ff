"""Unit tests for the remote order API client."""

import httpx
import pytest

from order_sync.clients.orders_api import (
    OrderFetcher,
    OrderPage,
    OrdersApiClient,
    PagingState,
    iter_pages,
)
from order_sync.config import Settings
from order_sync.exceptions import OrdersApiError


def client_for(settings: Settings, handler) -> OrdersApiClient:
    http = httpx.Client(
        base_url=settings.orders_api_base_url,
        headers={settings.orders_api_key_header: settings.orders_api_key},
        transport=httpx.MockTransport(handler),
    )
    return OrdersApiClient(settings, client=http)


class TestOrdersApiClient:
    def test_sends_paging_params_and_key(self, test_settings: Settings) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[{"OrderId": "a"}])

        page = client_for(test_settings, handler).fetch_orders(PagingState(page=3, page_size=50))

        assert seen["url"].path == "/api/orders"
        assert seen["url"].params["page"] == "3"
        assert seen["url"].params["pageSize"] == "50"
        assert seen["auth"] == "test-key"
        assert page.orders == [{"OrderId": "a"}]

    @pytest.mark.parametrize("key", ["Data", "orders"])
    def test_wrapped_payload(self, test_settings: Settings, key: str) -> None:
        client = client_for(test_settings, lambda r: httpx.Response(200, json={key: [{"OrderId": "w"}]}))
        assert client.fetch_orders(PagingState()).orders == [{"OrderId": "w"}]

    def test_error_status_raises(self, test_settings: Settings) -> None:
        client = client_for(test_settings, lambda r: httpx.Response(503, text="down"))
        with pytest.raises(OrdersApiError) as exc_info:
            client.fetch_orders(PagingState())
        assert exc_info.value.status_code == 503

    def test_invalid_json_raises(self, test_settings: Settings) -> None:
        client = client_for(test_settings, lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(OrdersApiError):
            client.fetch_orders(PagingState())

    def test_unexpected_shape_raises(self, test_settings: Settings) -> None:
        client = client_for(test_settings, lambda r: httpx.Response(200, json={"total": 0}))
        with pytest.raises(OrdersApiError):
            client.fetch_orders(PagingState())

    def test_transport_error_raises(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(OrdersApiError):
            client_for(test_settings, handler).fetch_orders(PagingState())


class FakeFetcher(OrderFetcher):
    def __init__(self, pages: list[list[dict]]):
        self.pages = pages
        self.requested: list[int] = []

    def fetch_orders(self, paging: PagingState) -> OrderPage:
        self.requested.append(paging.page)
        index = paging.page - 1
        orders = self.pages[index] if index < len(self.pages) else []
        return OrderPage(orders=orders, paging=paging)


class TestIterPages:
    def test_stops_on_short_page(self) -> None:
        fetcher = FakeFetcher([[{"n": 1}, {"n": 2}], [{"n": 3}]])
        pages = list(iter_pages(fetcher, page_size=2))
        assert [len(p.orders) for p in pages] == [2, 1]
        assert fetcher.requested == [1, 2]

    def test_stops_on_empty_page(self) -> None:
        fetcher = FakeFetcher([[{"n": 1}, {"n": 2}]])
        pages = list(iter_pages(fetcher, page_size=2))
        assert len(pages) == 1
        assert fetcher.requested == [1, 2]

    def test_max_pages(self) -> None:
        fetcher = FakeFetcher([[{"n": i}, {"n": i}] for i in range(10)])
        assert len(list(iter_pages(fetcher, page_size=2, max_pages=3))) == 3
        assert fetcher.requested == [1, 2, 3]
