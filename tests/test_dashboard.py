from datetime import date

import pytest

from jit_dashboard.dashboard import (
    get_analytics_view,
    get_balanced_view,
    get_overview,
    get_production_view,
    get_trs_view,
    preset_range,
)

KPIS = {
    "totalGood": 100,
    "totalRejected": 5,
    "totalPieces": 105,
    "activeMachines": 1,
    "activeArticles": 1,
    "totalProductions": 1,
}

PRODUCTION_ROWS = [
    {"date": "2024-01-15", "machine": "Presse 01", "article": "PS-1001",
     "goodPieces": 100, "rejectedPieces": 5, "totalPieces": 105},
]

TRS_ROWS = [
    {"date": "2024-01-15", "machine": "Presse 01", "trs": 0.9, "availability": 0.95,
     "performance": 0.95, "quality": 1.0, "productiveMinutes": 1272, "downtimeMinutes": 48},
]


def titles(cards: list[dict]) -> list[str]:
    return [c["title"] for c in cards]


@pytest.mark.parametrize(
    "preset, start",
    [
        ("today", date(2024, 3, 31)),
        ("week", date(2024, 3, 24)),
        ("month", date(2024, 2, 29)),
        ("year", date(2023, 3, 31)),
    ],
)
def test_preset_range(preset: str, start: date) -> None:
    assert preset_range(preset, today=date(2024, 3, 31)) == (start, date(2024, 3, 31))


def test_preset_range_unknown() -> None:
    with pytest.raises(ValueError):
        preset_range("decade")


def test_overview_cards() -> None:
    view = get_overview(PRODUCTION_ROWS, TRS_ROWS, KPIS)
    assert titles(view["cards"]) == [
        "Total Production", "Rejection Rate", "Active Machines", "Average TRS",
    ]
    assert view["cards"][1]["value"] == pytest.approx(5 / 105)
    assert view["cards"][1]["format"] == "percentage"
    assert view["cards"][3]["value"] == pytest.approx(0.9)
    assert len(view["production_trend"]) == 1


def test_overview_empty_payloads() -> None:
    view = get_overview([], [], {})
    assert [c["value"] for c in view["cards"]] == [0, 0.0, 0, 0.0]
    assert view["production_trend"].empty
    assert view["trs_trend"].empty


def test_production_view() -> None:
    view = get_production_view(PRODUCTION_ROWS, KPIS)
    assert titles(view["cards"]) == [
        "Total Good Pieces", "Total Rejected", "Rejection Rate", "Production Runs",
    ]
    assert view["top_articles"]["article"].tolist() == ["PS-1001"]


def test_trs_view() -> None:
    view = get_trs_view(TRS_ROWS)
    assert view["cards"][0]["trend"] == "up"
    assert view["time_cards"][0]["value"] == "21 hours"
    assert view["time_cards"][1]["value"] == "1 hours"
    assert view["comparison"]["rag"].tolist() == ["green"]


def test_trs_view_empty_has_no_trend() -> None:
    view = get_trs_view([])
    assert view["cards"][0]["value"] == 0.0
    assert view["cards"][0]["trend"] is None


def test_balanced_view_ready() -> None:
    view = get_balanced_view([
        {"fiscauxCode": "FX-1000", "fiscauxName": None, "balancedUnits": 1200,
         "requiredPositions": 3, "readyPositions": 3, "date": "2024-01-15"},
        {"fiscauxCode": "FX-2000", "fiscauxName": "Charniere", "balancedUnits": 4,
         "requiredPositions": 2, "readyPositions": 2, "date": "2024-01-15"},
    ])
    assert view["alert"]["level"] == "success"
    assert view["alert"]["title"] == "2 fiscaux ready for assembly"
    assert "1,204 balanced units" in view["alert"]["message"]
    assert view["table"]["fiscauxName"].tolist() == ["FX-1000", "Charniere"]


def test_balanced_view_empty() -> None:
    view = get_balanced_view([])
    assert view["alert"]["level"] == "warning"
    assert view["alert"]["title"] == "No fiscaux ready for assembly"
    assert view["summary"] == {"readyCount": 0, "totalBalanced": 0}
    assert view["table"].empty


def test_analytics_view() -> None:
    view = get_analytics_view(
        {
            "productionEfficiency": 0.9,
            "averageRejectionRate": 0.05,
            "topProducingArticles": [{"articleCode": "PS-1001", "totalGood": 350}],
            "operatorPerformance": [
                {"operatorName": "A. Martin", "totalProduction": 330, "averageQuality": 0.98},
            ],
            "machineUtilization": [{"machineName": "Presse 01", "utilizationRate": 0.83}],
        },
        [{"materialCode": "TOLE-S235", "totalUsed": 255.0, "goodUsed": 250.0, "scrapUsed": 5.0}],
    )
    assert [c["value"] for c in view["cards"]] == [0.9, 0.05, 1, 1]
    assert view["materials"]["scrapUsed"].tolist() == [5.0]


def test_analytics_view_empty() -> None:
    view = get_analytics_view({}, None)
    assert view["top_articles"].empty
    assert view["materials"].empty
    assert view["cards"][0]["value"] == 0
