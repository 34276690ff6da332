from datetime import date

import httpx
import pytest
from fastapi.testclient import TestClient

from jit_dashboard.client import (
    DashboardClient,
    DashboardFetchError,
    DashboardFilters,
    fetch_or_last,
)


def mock_client(handler) -> DashboardClient:
    http = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(handler))
    return DashboardClient(http=http)


def test_filters_to_params() -> None:
    filters = DashboardFilters(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31), machine_id=3)
    assert filters.to_params() == {
        "startDate": "2024-01-01",
        "endDate": "2024-01-31",
        "machineIds": "3",
    }
    assert "machineIds" not in filters.to_params(include_machine=False)
    assert DashboardFilters().to_params() == {}


def test_client_against_api(client: TestClient) -> None:
    api = DashboardClient(http=client)
    january = DashboardFilters(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))

    assert len(api.production(january)) == 3
    assert api.production_kpis(january)["totalPieces"] == 195
    assert len(api.trs(january)) == 2
    assert [r["fiscauxCode"] for r in api.balanced()] == ["FX-1000", "FX-2000"]
    assert api.material(january)[0]["materialCode"] == "TOLE-S235"
    assert "productionEfficiency" in api.analytics(january)
    assert len(api.filters()["machines"]) == 2
    assert api.health()["status"] == "ok"


def test_client_sends_filter_params() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json=[])

    api = mock_client(handler)
    api.trs(DashboardFilters(start_date=date(2024, 1, 1), machine_id=2))
    assert seen == {"startDate": "2024-01-01", "machineIds": "2"}


def test_server_error_returns_default(caplog: pytest.LogCaptureFixture) -> None:
    api = mock_client(
        lambda request: httpx.Response(500, json={"error": "Failed to fetch TRS data"})
    )
    assert api.trs() == []
    assert api.analytics() == {}
    assert api.filters() == {"machines": [], "articles": []}
    assert "HTTP 500" in caplog.text


def test_transport_error_returns_default() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api = mock_client(handler)
    assert api.production() == []
    assert api.health() == {"status": "error"}


def test_bad_json_returns_default() -> None:
    api = mock_client(lambda request: httpx.Response(200, content=b"<html>"))
    assert api.balanced() == []


def test_strict_client_raises_instead_of_default(caplog: pytest.LogCaptureFixture) -> None:
    http = httpx.Client(
        base_url="http://api.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, json={})),
    )
    api = DashboardClient(http=http, raise_errors=True)

    with pytest.raises(DashboardFetchError, match="HTTP 500"):
        api.trs()
    assert "HTTP 500" in caplog.text


def html_page(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"<html>")


def refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.mark.parametrize("handler", [html_page, refuse], ids=["bad-json", "connect-error"])
def test_strict_client_raises_on_unusable_response(handler) -> None:
    http = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(handler))
    api = DashboardClient(http=http, raise_errors=True)
    with pytest.raises(DashboardFetchError):
        api.balanced()


def test_fetch_or_last_keeps_previous_result_on_failure() -> None:
    store = {}
    responses = iter([[{"trs": 0.8}], DashboardFetchError("/api/trs: HTTP 500"), [{"trs": 0.9}]])

    def fetch():
        item = next(responses)
        if isinstance(item, Exception):
            raise item
        return item

    assert fetch_or_last(store, "trs", fetch, []) == ([{"trs": 0.8}], None)

    value, error = fetch_or_last(store, "trs", fetch, [])
    assert value == [{"trs": 0.8}]
    assert isinstance(error, DashboardFetchError)

    assert fetch_or_last(store, "trs", fetch, []) == ([{"trs": 0.9}], None)


def test_fetch_or_last_without_history_returns_default() -> None:
    def failing():
        raise DashboardFetchError("/api/filters: refused")

    store = {}
    value, error = fetch_or_last(store, "filters", failing, {"machines": [], "articles": []})
    assert value == {"machines": [], "articles": []}
    assert error is not None
    assert "filters" not in store
