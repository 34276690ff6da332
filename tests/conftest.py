from collections.abc import Generator
from datetime import date

import pandas as pd
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine

from jit_dashboard.api import create_app
from jit_dashboard.warehouse import create_sqlite_warehouse, initialize_warehouse, load_frame


def dim_time(*days: date) -> pd.DataFrame:
    return pd.DataFrame({
        "date_key": [int(d.strftime("%Y%m%d")) for d in days],
        "full_date": list(days),
        "year": [d.year for d in days],
        "month": [d.month for d in days],
        "day": [d.day for d in days],
        "week": [d.isocalendar()[1] for d in days],
        "day_of_week": [d.weekday() for d in days],
    })


DIM_MACHINE = pd.DataFrame({
    "machine_key": [1, 2],
    "machine_code": ["PR-01", "TR-01"],
    "machine_name": ["Presse 01", "Tour 01"],
    "location_key": [1, 1],
})

DIM_ARTICLE = pd.DataFrame({
    "article_key": [1, 2, 3],
    "article_code": ["FX-1000", "PS-1001", "FX-2000"],
    "description": ["Ensemble support", "Platine support", None],
    "article_type": ["fiscaux", "position", "fiscaux"],
})

DIM_OPERATOR = pd.DataFrame({
    "operator_key": [1],
    "operator_code": ["OP-01"],
    "operator_name": ["A. Martin"],
})

DIM_LOCATION = pd.DataFrame({
    "location_key": [1],
    "location_code": ["AT-PRE"],
    "location_name": ["Atelier Presses"],
})

PRODUCTION_COLUMNS = [
    "production_key", "time_key", "machine_key", "article_key", "operator_key",
    "good_pieces", "rejected_pieces", "total_pieces", "requested_quantity",
]


def seed(engine: Engine, tables: dict[str, pd.DataFrame]) -> None:
    initialize_warehouse(engine)
    for name, frame in tables.items():
        load_frame(engine, name, frame)


@pytest.fixture
def warehouse() -> Generator[Engine, None, None]:
    """Two machines over three days: 14 Jan, 15 Jan and 1 Feb 2024."""
    engine = create_sqlite_warehouse()
    seed(engine, {
        "dim_time": dim_time(date(2024, 1, 14), date(2024, 1, 15), date(2024, 2, 1)),
        "dim_machine": DIM_MACHINE,
        "dim_article": DIM_ARTICLE,
        "dim_operator": DIM_OPERATOR,
        "dim_location": DIM_LOCATION,
        "fact_production": pd.DataFrame(
            [
                (1, 20240115, 1, 2, 1, 100, 5, 105, 120),
                (2, 20240115, 2, 2, None, 50, 10, 60, 50),
                (3, 20240201, 1, 2, 1, 200, 0, 200, 200),
                (4, 20240114, 2, 1, 1, 30, 0, 30, 40),
            ],
            columns=PRODUCTION_COLUMNS,
        ).astype({"operator_key": "Int64"}),
        "fact_trs": pd.DataFrame({
            "trs_key": [1, 2, 3],
            "time_key": [20240115, 20240115, 20240201],
            "machine_key": [1, 2, 1],
            "availability": [0.9, 0.8, 0.95],
            "performance": [0.9, 0.9, 0.95],
            "quality": [0.95, 0.9, 1.0],
            "trs_value": [0.7695, 0.648, 0.9025],
            "productive_minutes": [432, 384, 456],
            "downtime_minutes": [48, 96, 24],
        }),
        "fact_balanced_quantities": pd.DataFrame({
            "balanced_key": [1, 2, 3],
            "time_key": [20240115, 20240115, 20240201],
            "parent_article_key": [1, 3, 3],
            "balanced_units": [12, 0, 4],
            "required_positions": [3, 2, 2],
            "ready_positions": [3, 1, 2],
        }),
        "fact_material_consumption": pd.DataFrame({
            "consumption_key": [1, 2, 3],
            "production_key": [1, 2, 3],
            "material_code": ["TOLE-S235", "HUILE-CUT", "TOLE-S235"],
            "material_type": ["steel sheet", "cutting oil", "steel sheet"],
            "total_used": [85.0, 1.2, 170.0],
            "good_used": [80.0, 1.0, 170.0],
            "scrap_used": [5.0, 0.2, 0.0],
            "unit_of_measure": ["kg", "L", "kg"],
        }),
    })
    yield engine
    engine.dispose()


@pytest.fixture
def single_run_warehouse() -> Generator[Engine, None, None]:
    """One production run: 100 good and 5 rejected pieces on 15 Jan 2024."""
    engine = create_sqlite_warehouse()
    seed(engine, {
        "dim_time": dim_time(date(2024, 1, 15)),
        "dim_machine": DIM_MACHINE,
        "dim_article": DIM_ARTICLE,
        "fact_production": pd.DataFrame(
            [(1, 20240115, 1, 2, None, 100, 5, 105, 100)],
            columns=PRODUCTION_COLUMNS,
        ).astype({"operator_key": "Int64"}),
    })
    yield engine
    engine.dispose()


@pytest.fixture
def client(warehouse: Engine) -> Generator[TestClient, None, None]:
    with TestClient(create_app(warehouse)) as c:
        yield c
