"""
Simulated data generator for the JIT warehouse.

Builds dimension and fact tables with realistic shop-floor ranges so the
dashboard can run without a production warehouse. All values are synthetic.
"""

import logging
from datetime import date

import numpy as np
import pandas as pd
from sqlalchemy import Engine

from .config import WAREHOUSE_SCHEMA
from .kpis import compute_trs
from .warehouse import initialize_warehouse, load_frame

logger = logging.getLogger(__name__)

# Seed for reproducibility
DEFAULT_SEED = 42

# ---------------------------------------------------------------------------
# Typical shop-floor parameters
# ---------------------------------------------------------------------------
_LOCATIONS = [
    ("AT-PRE", "Atelier Presses"),
    ("AT-USI", "Atelier Usinage"),
    ("AT-ASM", "Atelier Assemblage"),
]

# code, name, location index, base availability
_MACHINES = [
    ("PR-01", "Presse 01", 0, 0.93),
    ("PR-02", "Presse 02", 0, 0.88),
    ("CN-01", "Centre Usinage 01", 1, 0.90),
    ("CN-02", "Centre Usinage 02", 1, 0.78),
    ("TR-01", "Tour 01", 1, 0.85),
]

# code, description, type
_FISCAUX = [
    ("FX-1000", "Ensemble support moteur", "fiscaux"),
    ("FX-2000", "Ensemble charniere", "fiscaux"),
    ("FX-3000", "Ensemble bride", None),
]

_POSITIONS = [
    ("PS-1001", "Platine support", "position"),
    ("PS-1002", "Axe support", "position"),
    ("PS-1003", "Entretoise", "position"),
    ("PS-2001", "Charniere gauche", "position"),
    ("PS-2002", "Charniere droite", "position"),
    ("PS-3001", "Bride usinee", "position"),
    ("PS-3002", "Joint bride", "position"),
]

# fiscaux code -> position codes with required quantity per assembly
_BOM = {
    "FX-1000": [("PS-1001", 1), ("PS-1002", 2), ("PS-1003", 4)],
    "FX-2000": [("PS-2001", 1), ("PS-2002", 1)],
    "FX-3000": [("PS-3001", 1), ("PS-3002", 2)],
}

_OPERATORS = [
    ("OP-01", "A. Martin"),
    ("OP-02", "B. Durand"),
    ("OP-03", "C. Bernard"),
    ("OP-04", "D. Petit"),
]

# code, type, unit, usage per piece
_MATERIALS = [
    ("TOLE-S235", "steel sheet", "kg", 0.85),
    ("BARRE-C45", "steel bar", "kg", 0.40),
    ("HUILE-CUT", "cutting oil", "L", 0.02),
]


def generate_dim_time(start: str = "2024-01-01", days: int = 30) -> pd.DataFrame:
    """One row per calendar day with a YYYYMMDD surrogate key."""
    dates = pd.date_range(start, periods=days, freq="D")
    return pd.DataFrame({
        "date_key": [int(d.strftime("%Y%m%d")) for d in dates],
        # date objects so to_sql maps the column to DATE
        "full_date": [d.date() for d in dates],
        "year": dates.year,
        "month": dates.month,
        "day": dates.day,
        "week": dates.isocalendar().week.astype(int).to_numpy(),
        "day_of_week": dates.dayofweek,
    })


def generate_dimensions() -> dict[str, pd.DataFrame]:
    """Location, machine, article, operator and fiscaux/position bridge tables."""
    dim_location = pd.DataFrame(
        [(i + 1, code, name) for i, (code, name) in enumerate(_LOCATIONS)],
        columns=["location_key", "location_code", "location_name"],
    )
    dim_machine = pd.DataFrame(
        [(i + 1, code, name, loc + 1) for i, (code, name, loc, _) in enumerate(_MACHINES)],
        columns=["machine_key", "machine_code", "machine_name", "location_key"],
    )
    dim_article = pd.DataFrame(
        [(i + 1, *row) for i, row in enumerate(_FISCAUX + _POSITIONS)],
        columns=["article_key", "article_code", "description", "article_type"],
    )
    dim_operator = pd.DataFrame(
        [(i + 1, code, name) for i, (code, name) in enumerate(_OPERATORS)],
        columns=["operator_key", "operator_code", "operator_name"],
    )

    keys = dict(zip(dim_article["article_code"], dim_article["article_key"]))
    bridge = pd.DataFrame(
        [
            (keys[fiscaux], keys[position], position, qty)
            for fiscaux, positions in _BOM.items()
            for position, qty in positions
        ],
        columns=["fiscaux_article_key", "position_article_key", "position_code", "required_qty"],
    )

    return {
        "dim_location": dim_location,
        "dim_machine": dim_machine,
        "dim_article": dim_article,
        "dim_operator": dim_operator,
        "bridge_fiscaux_position": bridge,
    }


def generate_fact_production(
    dim_time: pd.DataFrame,
    dims: dict[str, pd.DataFrame],
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Production runs: each machine makes one or two position articles a day.

    total_pieces is always good_pieces + rejected_pieces.
    """
    positions = dims["dim_article"][dims["dim_article"]["article_type"] == "position"]
    article_keys = positions["article_key"].to_numpy()
    operator_keys = dims["dim_operator"]["operator_key"].to_numpy()

    rows = []
    for time_key, full_date in zip(dim_time["date_key"], dim_time["full_date"]):
        # Sundays are off
        if full_date.weekday() == 6:
            continue
        for machine_key in dims["dim_machine"]["machine_key"]:
            n_runs = int(rng.integers(1, 3))
            for article_key in rng.choice(article_keys, size=n_runs, replace=False):
                requested = int(rng.integers(200, 600))
                total = max(int(requested * rng.uniform(0.8, 1.1)), 0)
                rejected = int(rng.binomial(total, rng.uniform(0.01, 0.08)))
                good = total - rejected
                # Roughly one run in ten has no operator recorded
                operator = int(rng.choice(operator_keys)) if rng.random() > 0.1 else None
                rows.append({
                    "time_key": int(time_key),
                    "machine_key": int(machine_key),
                    "article_key": int(article_key),
                    "operator_key": operator,
                    "good_pieces": good,
                    "rejected_pieces": rejected,
                    "total_pieces": good + rejected,
                    "requested_quantity": requested,
                })

    df = pd.DataFrame(rows)
    df.insert(0, "production_key", np.arange(1, len(df) + 1))
    df["operator_key"] = df["operator_key"].astype("Int64")
    return df


def generate_fact_trs(
    dim_time: pd.DataFrame,
    dims: dict[str, pd.DataFrame],
    rng: np.random.Generator,
    shift_minutes: int = 480,
) -> pd.DataFrame:
    """Daily TRS per machine with trs_value = availability * performance * quality."""
    base = {i + 1: avail for i, (_, _, _, avail) in enumerate(_MACHINES)}

    rows = []
    for time_key in dim_time["date_key"]:
        for machine_key in dims["dim_machine"]["machine_key"]:
            availability = float(np.clip(base[machine_key] + rng.normal(0, 0.04), 0, 1))
            performance = float(np.clip(rng.normal(0.92, 0.04), 0, 1))
            quality = float(np.clip(rng.normal(0.96, 0.02), 0, 1))
            productive = int(round(shift_minutes * availability))

            rows.append({
                "time_key": int(time_key),
                "machine_key": int(machine_key),
                "availability": round(availability, 4),
                "performance": round(performance, 4),
                "quality": round(quality, 4),
                "trs_value": compute_trs(
                    round(availability, 4), round(performance, 4), round(quality, 4)
                ),
                "productive_minutes": productive,
                "downtime_minutes": shift_minutes - productive,
            })

    df = pd.DataFrame(rows)
    df.insert(0, "trs_key", np.arange(1, len(df) + 1))
    return df


def generate_fact_balanced(
    dim_time: pd.DataFrame,
    dims: dict[str, pd.DataFrame],
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Balanced quantities per fiscaux per day.

    balanced_units is the minimum number of complete assemblies the stock of
    each required position allows; it is 0 unless every position is ready.
    """
    bridge = dims["bridge_fiscaux_position"]

    rows = []
    for time_key in dim_time["date_key"]:
        for fiscaux_key, positions in bridge.groupby("fiscaux_article_key"):
            stock = rng.integers(0, 400, size=len(positions))
            # Some positions run dry
            stock[rng.random(len(positions)) < 0.15] = 0
            assemblies = stock // positions["required_qty"].to_numpy()

            rows.append({
                "time_key": int(time_key),
                "parent_article_key": int(fiscaux_key),
                "balanced_units": int(assemblies.min()),
                "required_positions": int(len(positions)),
                "ready_positions": int((assemblies > 0).sum()),
            })

    df = pd.DataFrame(rows)
    df.insert(0, "balanced_key", np.arange(1, len(df) + 1))
    return df


def generate_fact_material_consumption(
    production: pd.DataFrame,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Material drawn per production run, split into good and scrap usage."""
    rows = []
    for run in production.itertuples(index=False):
        code, material_type, unit, per_piece = _MATERIALS[int(rng.integers(0, len(_MATERIALS)))]
        good_used = round(run.good_pieces * per_piece, 2)
        scrap_used = round(run.rejected_pieces * per_piece, 2)
        rows.append({
            "production_key": int(run.production_key),
            "material_code": code,
            "material_type": material_type,
            "total_used": round(good_used + scrap_used, 2),
            "good_used": good_used,
            "scrap_used": scrap_used,
            "unit_of_measure": unit,
        })

    df = pd.DataFrame(rows)
    df.insert(0, "consumption_key", np.arange(1, len(df) + 1))
    return df


def generate_warehouse(
    start: str = "2024-01-01",
    days: int = 30,
    seed: int = DEFAULT_SEED,
) -> dict[str, pd.DataFrame]:
    """Generate every warehouse table, keyed by table name."""
    rng = np.random.default_rng(seed)

    dim_time = generate_dim_time(start, days)
    tables = {"dim_time": dim_time, **generate_dimensions()}

    production = generate_fact_production(dim_time, tables, rng)
    tables["fact_production"] = production
    tables["fact_trs"] = generate_fact_trs(dim_time, tables, rng)
    tables["fact_balanced_quantities"] = generate_fact_balanced(dim_time, tables, rng)
    tables["fact_material_consumption"] = generate_fact_material_consumption(production, rng)
    return tables


def populate_warehouse(
    engine: Engine,
    tables: dict[str, pd.DataFrame] | None = None,
    schema: str = WAREHOUSE_SCHEMA,
) -> dict[str, int]:
    """Create the warehouse tables and load simulated data into them.

    Returns the number of rows written per table.
    """
    tables = tables if tables is not None else generate_warehouse()
    initialize_warehouse(engine, schema)

    counts = {name: load_frame(engine, name, frame, schema) for name, frame in tables.items()}
    logger.info(
        "Populated simulated warehouse: %s",
        ", ".join(f"{name}={n}" for name, n in counts.items()),
    )
    return counts


def today_window(days: int = 30, today: date | None = None) -> str:
    """Start date so a `days`-long simulation ends today."""
    today = today or date.today()
    return (pd.Timestamp(today) - pd.Timedelta(days=days - 1)).strftime("%Y-%m-%d")
