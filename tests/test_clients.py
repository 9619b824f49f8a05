"""Tests for the catalog and user directory adapters."""

from decimal import Decimal

import httpx
import pytest

from payments.clients.catalog_client import HttpCatalog, SqlCatalog
from payments.clients.users_client import HttpUserDirectory, SqlUserDirectory
from payments.exceptions import BusinessException, CatalogUnavailable

from conftest import USER_ID


def mock_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestSqlCatalog:
    def test_returns_known_prices_only(self, seeded):
        prices = SqlCatalog().get_prices(seeded, {"p-100", "p-50", "p-404"})
        assert prices == {"p-100": Decimal("100"), "p-50": Decimal("50")}

    def test_no_ids(self, seeded):
        assert SqlCatalog().get_prices(seeded, []) == {}


class TestHttpCatalog:
    def test_fetches_prices_with_token(self):
        seen = {}

        def handler(request):
            seen["ids"] = request.url.params["ids"]
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[{"id": "a", "price": "9.99"}, {"id": "b", "price": 5}])

        catalog = HttpCatalog("http://catalog", token="t0k", client=mock_client(handler))
        prices = catalog.get_prices(None, ["b", "a"])

        assert prices == {"a": Decimal("9.99"), "b": Decimal("5")}
        assert seen == {"ids": "a,b", "auth": "Bearer t0k"}

    def test_numeric_ids_are_matched(self):
        response = httpx.Response(200, json=[{"id": 7, "price": "12.50"}])
        catalog = HttpCatalog("http://catalog", client=mock_client(lambda request: response))
        assert catalog.get_prices(None, ["7"]) == {"7": Decimal("12.50")}

    def test_error_response_is_unavailable(self):
        catalog = HttpCatalog("http://catalog", client=mock_client(lambda request: httpx.Response(500)))
        with pytest.raises(CatalogUnavailable):
            catalog.get_prices(None, ["a"])

    def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        catalog = HttpCatalog("http://catalog", client=mock_client(handler))
        with pytest.raises(CatalogUnavailable) as exc_info:
            catalog.get_prices(None, ["a"])
        assert exc_info.value.status_code == 503


class TestUserDirectories:
    def test_sql_directory(self, seeded):
        assert SqlUserDirectory().resolve_user(seeded, USER_ID).email == "buyer@example.com"
        assert SqlUserDirectory().resolve_user(seeded, "user-404") is None

    def test_http_directory(self):
        def handler(request):
            if request.url.path == "/user-1":
                return httpx.Response(200, json={"id": "user-1"})
            return httpx.Response(404)

        users = HttpUserDirectory("http://users", client=mock_client(handler))
        assert users.resolve_user(None, "user-1") == {"id": "user-1"}
        assert users.resolve_user(None, "user-404") is None

    def test_http_directory_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        users = HttpUserDirectory("http://users", client=mock_client(handler))
        with pytest.raises(BusinessException) as exc_info:
            users.resolve_user(None, "user-1")
        assert exc_info.value.status_code == 503

    def test_http_directory_error_status_is_not_a_missing_user(self):
        users = HttpUserDirectory("http://users", client=mock_client(lambda request: httpx.Response(500)))
        with pytest.raises(BusinessException) as exc_info:
            users.resolve_user(None, "user-1")
        assert exc_info.value.status_code == 503
