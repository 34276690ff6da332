import pandas as pd
import pytest
from fastapi.testclient import TestClient

from jit_dashboard import config
from jit_dashboard.api import create_app, records
from jit_dashboard.warehouse import create_sqlite_warehouse

ENDPOINTS = [
    "/api/production",
    "/api/trs",
    "/api/balanced",
    "/api/material",
    "/api/analytics",
    "/api/filters",
    "/api/health",
]

JANUARY = {"startDate": "2024-01-01", "endDate": "2024-01-31"}


# ---------------------------------------------------------------------------
# /api/production
# ---------------------------------------------------------------------------

def test_production_returns_all_rows_newest_first(client: TestClient) -> None:
    r = client.get("/api/production")
    assert r.status_code == 200
    rows = r.json()
    assert len(rows) == 4
    assert [row["date"] for row in rows] == sorted((row["date"] for row in rows), reverse=True)
    assert rows[0]["date"] == "2024-02-01"


def test_production_row_shape(client: TestClient) -> None:
    row = client.get("/api/production", params={"startDate": "2024-02-01"}).json()[0]
    assert row == {
        "date": "2024-02-01",
        "machine": "Presse 01",
        "machine_key": 1,
        "article": "PS-1001",
        "article_key": 2,
        "operator": "A. Martin",
        "goodPieces": 200,
        "rejectedPieces": 0,
        "totalPieces": 200,
        "productionCount": 1,
    }


def test_production_date_range_is_inclusive(client: TestClient) -> None:
    rows = client.get(
        "/api/production", params={"startDate": "2024-01-15", "endDate": "2024-01-15"}
    ).json()
    assert len(rows) == 2
    assert {row["date"] for row in rows} == {"2024-01-15"}


def test_production_rows_fall_within_range(client: TestClient) -> None:
    rows = client.get("/api/production", params=JANUARY).json()
    assert len(rows) == 3
    assert all("2024-01-01" <= row["date"] <= "2024-01-31" for row in rows)


def test_production_missing_operator_is_null(client: TestClient) -> None:
    rows = client.get("/api/production", params={"machineIds": "2", **JANUARY}).json()
    operators = {row["date"]: row["operator"] for row in rows}
    assert operators["2024-01-15"] is None
    assert operators["2024-01-14"] == "A. Martin"


def test_production_machine_filter(client: TestClient) -> None:
    rows = client.get("/api/production", params={"machineIds": "1"}).json()
    assert len(rows) == 2
    assert {row["machine"] for row in rows} == {"Presse 01"}


def test_production_machine_filter_ignores_bad_tokens(client: TestClient) -> None:
    rows = client.get("/api/production", params={"machineIds": "1,,abc,0"}).json()
    assert {row["machine_key"] for row in rows} == {1}


def test_production_article_filter(client: TestClient) -> None:
    rows = client.get("/api/production", params={"articleIds": "1"}).json()
    assert len(rows) == 1
    assert rows[0]["article"] == "FX-1000"


def test_production_kpis(client: TestClient) -> None:
    kpis = client.get("/api/production", params={"kpisOnly": "true"}).json()
    assert kpis["totalGood"] == 380
    assert kpis["totalRejected"] == 15
    assert kpis["totalPieces"] == 395
    assert kpis["activeMachines"] == 2
    assert kpis["activeArticles"] == 2
    assert kpis["totalProductions"] == 4


def test_production_kpis_honour_machine_filter(client: TestClient) -> None:
    kpis = client.get(
        "/api/production", params={"kpisOnly": "true", "machineIds": "2"}
    ).json()
    assert kpis["totalGood"] == 80
    assert kpis["totalRejected"] == 10
    assert kpis["activeMachines"] == 1


def test_production_kpis_empty_range_is_zero(client: TestClient) -> None:
    kpis = client.get(
        "/api/production",
        params={"kpisOnly": "true", "startDate": "2030-01-01", "endDate": "2030-01-31"},
    ).json()
    assert kpis["totalPieces"] == 0
    assert kpis["rejectionRate"] == 0.0


def test_single_run_example(single_run_warehouse) -> None:
    with TestClient(create_app(single_run_warehouse)) as c:
        kpis = c.get("/api/production", params={"kpisOnly": "true", **JANUARY}).json()

    assert kpis["totalGood"] == 100
    assert kpis["totalRejected"] == 5
    assert kpis["totalPieces"] == 105
    assert kpis["rejectionRate"] == pytest.approx(0.0476, abs=1e-4)


# ---------------------------------------------------------------------------
# /api/trs
# ---------------------------------------------------------------------------

def test_trs_rows(client: TestClient) -> None:
    rows = client.get("/api/trs", params=JANUARY).json()
    assert len(rows) == 2
    presse = next(row for row in rows if row["machine"] == "Presse 01")
    assert presse["trs"] == pytest.approx(0.7695)
    assert presse["availability"] == pytest.approx(0.9)
    assert presse["productiveMinutes"] == 432
    assert presse["downtimeMinutes"] == 48


def test_trs_machine_filter(client: TestClient) -> None:
    rows = client.get("/api/trs", params={"machineIds": "2"}).json()
    assert [row["machine"] for row in rows] == ["Tour 01"]


# ---------------------------------------------------------------------------
# /api/balanced
# ---------------------------------------------------------------------------

def test_balanced_only_positive_units(client: TestClient) -> None:
    rows = client.get("/api/balanced").json()
    assert len(rows) == 2
    assert all(row["balancedUnits"] > 0 for row in rows)


def test_balanced_ordered_by_units(client: TestClient) -> None:
    rows = client.get("/api/balanced").json()
    assert [row["fiscauxCode"] for row in rows] == ["FX-1000", "FX-2000"]
    assert rows[0]["fiscauxName"] == "Ensemble support"
    assert rows[0]["requiredPositions"] == rows[0]["readyPositions"] == 3
    assert rows[1]["fiscauxName"] is None


# ---------------------------------------------------------------------------
# /api/material
# ---------------------------------------------------------------------------

def test_material_aggregates_per_code(client: TestClient) -> None:
    rows = client.get("/api/material").json()
    assert [row["materialCode"] for row in rows] == ["TOLE-S235", "HUILE-CUT"]
    steel = rows[0]
    assert steel["totalUsed"] == pytest.approx(255.0)
    assert steel["goodUsed"] == pytest.approx(250.0)
    assert steel["scrapUsed"] == pytest.approx(5.0)
    assert steel["unitOfMeasure"] == "kg"


def test_material_date_filter(client: TestClient) -> None:
    rows = client.get("/api/material", params=JANUARY).json()
    steel = next(row for row in rows if row["materialCode"] == "TOLE-S235")
    assert steel["totalUsed"] == pytest.approx(85.0)


# ---------------------------------------------------------------------------
# /api/analytics, /api/filters, /api/health
# ---------------------------------------------------------------------------

def test_analytics(client: TestClient) -> None:
    data = client.get("/api/analytics").json()

    assert data["productionEfficiency"] == pytest.approx((100 / 120 + 1 + 1 + 30 / 40) / 4)
    assert data["averageRejectionRate"] == pytest.approx((5 / 105 + 10 / 60) / 4)
    assert data["topProducingArticles"] == [
        {"articleCode": "PS-1001", "totalGood": 350},
        {"articleCode": "FX-1000", "totalGood": 30},
    ]
    assert data["operatorPerformance"][0]["operatorName"] == "A. Martin"
    assert data["operatorPerformance"][0]["totalProduction"] == 330
    assert [m["machineName"] for m in data["machineUtilization"]] == ["Presse 01", "Tour 01"]


def test_filter_options(client: TestClient) -> None:
    data = client.get("/api/filters").json()
    assert [m["machine_name"] for m in data["machines"]] == ["Presse 01", "Tour 01"]
    assert [a["article_code"] for a in data["articles"]] == ["FX-1000", "FX-2000", "PS-1001"]


def test_health(client: TestClient) -> None:
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("path", ENDPOINTS)
def test_missing_database_url_is_500(monkeypatch: pytest.MonkeyPatch, path: str) -> None:
    monkeypatch.delenv(config.DATABASE_URL_ENV, raising=False)

    with TestClient(create_app()) as c:
        r = c.get(path)

    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Database configuration missing"
    assert body["message"].startswith("DATABASE_URL is not defined")
    assert "help" in body


def test_query_failure_is_500_with_resource_name() -> None:
    # Schema attached but no tables created
    engine = create_sqlite_warehouse()
    with TestClient(create_app(engine)) as c:
        r = c.get("/api/trs")

    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Failed to fetch TRS data"
    assert body["message"]


def test_invalid_date_is_400_with_error_body(client: TestClient) -> None:
    r = client.get("/api/production", params={"startDate": "not-a-date"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Invalid filter"
    assert "startDate" in body["message"]


def test_records_keep_full_float_precision() -> None:
    ratio = 0.123456789012345
    rows = records(pd.DataFrame({"trs": [ratio], "oee": [float("nan")]}))
    assert rows[0]["trs"] == pytest.approx(ratio, abs=1e-14)
    assert rows[0]["oee"] is None


def test_too_many_ids_is_400(client: TestClient) -> None:
    ids = ",".join(str(i) for i in range(1, config.MAX_FILTER_IDS + 2))
    r = client.get("/api/production", params={"machineIds": ids})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid filter"
