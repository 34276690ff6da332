"""
Aggregation queries against the JIT star-schema warehouse.

Each function takes the warehouse engine and an optional WarehouseFilters,
runs one parameterized aggregation (SUM / AVG / COUNT with GROUP BY over a
fact table joined to its dimensions) and returns a DataFrame or a dict.
Filters are appended as ``AND`` fragments with bound parameters; absent
filters are omitted.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

import pandas as pd
from sqlalchemy import Date, Engine, bindparam, text

from .config import (
    ARTICLE_LOOKUP_LIMIT,
    BALANCED_ROW_LIMIT,
    PRODUCTION_ROW_LIMIT,
    TOP_N,
    WAREHOUSE_SCHEMA,
)
from .kpis import rejection_rate

logger = logging.getLogger(__name__)

S = WAREHOUSE_SCHEMA


@dataclass
class WarehouseFilters:
    """Optional filters shared by the query functions."""

    start_date: date | None = None
    end_date: date | None = None
    machine_ids: list[int] = field(default_factory=list)
    article_ids: list[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _filter_clauses(
    filters: WarehouseFilters | None,
    date_column: str = "t.full_date",
    machine_column: str | None = None,
    article_column: str | None = None,
) -> tuple[str, dict, list]:
    """Build the ``AND`` fragments, parameter values and typed bind params."""
    if filters is None:
        return "", {}, []

    clauses = []
    params: dict = {}
    binds = []

    if filters.start_date:
        clauses.append(f"AND {date_column} >= :start_date")
        params["start_date"] = filters.start_date
        binds.append(bindparam("start_date", type_=Date))

    if filters.end_date:
        clauses.append(f"AND {date_column} <= :end_date")
        params["end_date"] = filters.end_date
        binds.append(bindparam("end_date", type_=Date))

    if machine_column and filters.machine_ids:
        clauses.append(f"AND {machine_column} IN :machine_ids")
        params["machine_ids"] = list(filters.machine_ids)
        binds.append(bindparam("machine_ids", expanding=True))

    if article_column and filters.article_ids:
        clauses.append(f"AND {article_column} IN :article_ids")
        params["article_ids"] = list(filters.article_ids)
        binds.append(bindparam("article_ids", expanding=True))

    return "\n    ".join(clauses), params, binds


def _read(
    engine: Engine,
    query: str,
    params: dict | None = None,
    binds: list | None = None,
) -> pd.DataFrame:
    stmt = text(query)
    if binds:
        stmt = stmt.bindparams(*binds)
    return pd.read_sql(stmt, engine, params=params or {})


def _normalise(
    df: pd.DataFrame,
    numeric_cols: list[str],
    date_cols: tuple[str, ...] = ("date",),
) -> pd.DataFrame:
    """Coerce driver types: Decimals to numbers, dates to ISO strings."""
    for col in numeric_cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in date_cols:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col]).dt.strftime("%Y-%m-%d")
    return df


# ---------------------------------------------------------------------------
# Production
# ---------------------------------------------------------------------------

def get_production_data(
    engine: Engine,
    filters: WarehouseFilters | None = None,
) -> pd.DataFrame:
    """Production rows per day, machine, article and operator.

    Returns
    -------
    DataFrame with columns:
        date, machine, machine_key, article, article_key, operator,
        goodPieces, rejectedPieces, totalPieces, productionCount
    """
    where, params, binds = _filter_clauses(
        filters, machine_column="m.machine_key", article_column="a.article_key"
    )

    query = f"""
    SELECT
      t.full_date AS date,
      m.machine_name AS machine,
      m.machine_key AS machine_key,
      a.article_code AS article,
      a.article_key AS article_key,
      o.operator_name AS operator,
      SUM(f.good_pieces) AS "goodPieces",
      SUM(f.rejected_pieces) AS "rejectedPieces",
      SUM(f.total_pieces) AS "totalPieces",
      COUNT(DISTINCT f.production_key) AS "productionCount"
    FROM {S}.fact_production f
    JOIN {S}.dim_machine m ON f.machine_key = m.machine_key
    JOIN {S}.dim_article a ON f.article_key = a.article_key
    LEFT JOIN {S}.dim_operator o ON f.operator_key = o.operator_key
    JOIN {S}.dim_time t ON f.time_key = t.date_key
    WHERE 1=1
    {where}
    GROUP BY t.full_date, m.machine_name, m.machine_key, a.article_code, a.article_key, o.operator_name
    ORDER BY t.full_date DESC, m.machine_name
    LIMIT {PRODUCTION_ROW_LIMIT}
    """

    df = _read(engine, query, params, binds)
    df = _normalise(
        df,
        ["machine_key", "article_key", "goodPieces", "rejectedPieces", "totalPieces", "productionCount"],
    )
    logger.info("Fetched %d production rows", len(df))
    return df


def get_production_kpis(
    engine: Engine,
    filters: WarehouseFilters | None = None,
) -> dict:
    """Aggregate production KPIs for the filtered period.

    Returns
    -------
    Dict with keys:
        totalGood, totalRejected, totalPieces, activeMachines,
        activeArticles, totalProductions, rejectionRate
    """
    where, params, binds = _filter_clauses(
        filters, machine_column="f.machine_key", article_column="f.article_key"
    )

    query = f"""
    SELECT
      COALESCE(SUM(f.good_pieces), 0) AS "totalGood",
      COALESCE(SUM(f.rejected_pieces), 0) AS "totalRejected",
      COALESCE(SUM(f.total_pieces), 0) AS "totalPieces",
      COUNT(DISTINCT f.machine_key) AS "activeMachines",
      COUNT(DISTINCT f.article_key) AS "activeArticles",
      COUNT(DISTINCT f.production_key) AS "totalProductions"
    FROM {S}.fact_production f
    JOIN {S}.dim_time t ON f.time_key = t.date_key
    WHERE 1=1
    {where}
    """

    # An aggregate without GROUP BY always yields exactly one row.
    row = _read(engine, query, params, binds).iloc[0]

    kpis = {
        key: int(row[key] or 0)
        for key in (
            "totalGood", "totalRejected", "totalPieces",
            "activeMachines", "activeArticles", "totalProductions",
        )
    }
    kpis["rejectionRate"] = rejection_rate(kpis["totalRejected"], kpis["totalPieces"])
    return kpis


# ---------------------------------------------------------------------------
# TRS (overall equipment effectiveness)
# ---------------------------------------------------------------------------

def get_trs_data(
    engine: Engine,
    filters: WarehouseFilters | None = None,
) -> pd.DataFrame:
    """TRS rows per machine per day.

    Returns
    -------
    DataFrame with columns:
        date, machine, machine_key, trs, availability, performance,
        quality, productiveMinutes, downtimeMinutes
    """
    where, params, binds = _filter_clauses(filters, machine_column="m.machine_key")

    query = f"""
    SELECT
      t.full_date AS date,
      m.machine_name AS machine,
      m.machine_key AS machine_key,
      CAST(AVG(trs.trs_value) AS FLOAT) AS trs,
      CAST(AVG(trs.availability) AS FLOAT) AS availability,
      CAST(AVG(trs.performance) AS FLOAT) AS performance,
      CAST(AVG(trs.quality) AS FLOAT) AS quality,
      CAST(SUM(trs.productive_minutes) AS INTEGER) AS "productiveMinutes",
      CAST(SUM(trs.downtime_minutes) AS INTEGER) AS "downtimeMinutes"
    FROM {S}.fact_trs trs
    JOIN {S}.dim_machine m ON trs.machine_key = m.machine_key
    JOIN {S}.dim_time t ON trs.time_key = t.date_key
    WHERE 1=1
    {where}
    GROUP BY t.full_date, m.machine_name, m.machine_key
    ORDER BY t.full_date DESC, m.machine_name
    """

    df = _read(engine, query, params, binds)
    df = _normalise(
        df,
        ["machine_key", "trs", "availability", "performance", "quality",
         "productiveMinutes", "downtimeMinutes"],
    )
    logger.info("Fetched %d TRS rows", len(df))
    return df


# ---------------------------------------------------------------------------
# Balanced quantities
# ---------------------------------------------------------------------------

def get_balanced_quantities(engine: Engine) -> pd.DataFrame:
    """Fiscaux with a positive number of balanced (assembly-ready) units.

    The balanced-unit figure is precomputed by the warehouse as the minimum
    available quantity across the fiscaux's required positions.

    Returns
    -------
    DataFrame with columns:
        fiscauxCode, fiscauxName, balancedUnits, requiredPositions,
        readyPositions, date
    """
    query = f"""
    SELECT
      a.article_code AS "fiscauxCode",
      a.description AS "fiscauxName",
      bq.balanced_units AS "balancedUnits",
      bq.required_positions AS "requiredPositions",
      bq.ready_positions AS "readyPositions",
      t.full_date AS date
    FROM {S}.fact_balanced_quantities bq
    JOIN {S}.dim_article a ON bq.parent_article_key = a.article_key
    JOIN {S}.dim_time t ON bq.time_key = t.date_key
    WHERE bq.balanced_units > 0
    ORDER BY bq.balanced_units DESC, t.full_date DESC
    LIMIT {BALANCED_ROW_LIMIT}
    """

    df = _read(engine, query)
    df = _normalise(df, ["balancedUnits", "requiredPositions", "readyPositions"])
    logger.info("Fetched %d balanced-quantity rows", len(df))
    return df


# ---------------------------------------------------------------------------
# Material consumption
# ---------------------------------------------------------------------------

def get_material_consumption(
    engine: Engine,
    filters: WarehouseFilters | None = None,
) -> pd.DataFrame:
    """Material usage per material code, dated through the production run.

    Returns
    -------
    DataFrame with columns:
        materialCode, materialType, totalUsed, goodUsed, scrapUsed,
        unitOfMeasure
    """
    where, params, binds = _filter_clauses(filters)

    query = f"""
    SELECT
      mc.material_code AS "materialCode",
      mc.material_type AS "materialType",
      SUM(mc.total_used) AS "totalUsed",
      SUM(mc.good_used) AS "goodUsed",
      SUM(mc.scrap_used) AS "scrapUsed",
      mc.unit_of_measure AS "unitOfMeasure"
    FROM {S}.fact_material_consumption mc
    JOIN {S}.fact_production f ON mc.production_key = f.production_key
    JOIN {S}.dim_time t ON f.time_key = t.date_key
    WHERE 1=1
    {where}
    GROUP BY mc.material_code, mc.material_type, mc.unit_of_measure
    ORDER BY SUM(mc.total_used) DESC
    """

    df = _read(engine, query, params, binds)
    df = _normalise(df, ["totalUsed", "goodUsed", "scrapUsed"])
    logger.info("Fetched %d material consumption rows", len(df))
    return df


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

def get_analytics_data(
    engine: Engine,
    filters: WarehouseFilters | None = None,
) -> dict:
    """Efficiency, rejection, top articles, operators and machine utilisation.

    All four queries share the same bound date filters.

    Returns
    -------
    Dict with keys:
        productionEfficiency, averageRejectionRate, topProducingArticles,
        operatorPerformance, machineUtilization
    """
    date_only = WarehouseFilters(
        start_date=filters.start_date if filters else None,
        end_date=filters.end_date if filters else None,
    )
    where, params, binds = _filter_clauses(date_only)

    efficiency_query = f"""
    SELECT
      CAST(AVG(
        CASE
          WHEN f.requested_quantity > 0
          THEN CAST(f.good_pieces AS FLOAT) / f.requested_quantity
          ELSE 0
        END
      ) AS FLOAT) AS "productionEfficiency",
      CAST(AVG(
        CASE
          WHEN f.total_pieces > 0
          THEN CAST(f.rejected_pieces AS FLOAT) / f.total_pieces
          ELSE 0
        END
      ) AS FLOAT) AS "averageRejectionRate"
    FROM {S}.fact_production f
    JOIN {S}.dim_time t ON f.time_key = t.date_key
    WHERE 1=1
    {where}
    """

    top_articles_query = f"""
    SELECT
      a.article_code AS "articleCode",
      SUM(f.good_pieces) AS "totalGood"
    FROM {S}.fact_production f
    JOIN {S}.dim_article a ON f.article_key = a.article_key
    JOIN {S}.dim_time t ON f.time_key = t.date_key
    WHERE 1=1
    {where}
    GROUP BY a.article_code
    ORDER BY SUM(f.good_pieces) DESC
    LIMIT {TOP_N}
    """

    operator_query = f"""
    SELECT
      o.operator_name AS "operatorName",
      SUM(f.good_pieces) AS "totalProduction",
      CAST(AVG(
        CASE
          WHEN f.total_pieces > 0
          THEN CAST(f.good_pieces AS FLOAT) / f.total_pieces
          ELSE 0
        END
      ) AS FLOAT) AS "averageQuality"
    FROM {S}.fact_production f
    JOIN {S}.dim_operator o ON f.operator_key = o.operator_key
    JOIN {S}.dim_time t ON f.time_key = t.date_key
    WHERE o.operator_name IS NOT NULL
    {where}
    GROUP BY o.operator_name
    ORDER BY SUM(f.good_pieces) DESC
    LIMIT {TOP_N}
    """

    utilization_query = f"""
    SELECT
      m.machine_name AS "machineName",
      CAST(AVG(trs.trs_value) AS FLOAT) AS "utilizationRate"
    FROM {S}.fact_trs trs
    JOIN {S}.dim_machine m ON trs.machine_key = m.machine_key
    JOIN {S}.dim_time t ON trs.time_key = t.date_key
    WHERE 1=1
    {where}
    GROUP BY m.machine_name
    ORDER BY AVG(trs.trs_value) DESC
    """

    efficiency = _normalise(
        _read(engine, efficiency_query, params, binds),
        ["productionEfficiency", "averageRejectionRate"],
    )
    top_articles = _normalise(_read(engine, top_articles_query, params, binds), ["totalGood"])
    operators = _normalise(
        _read(engine, operator_query, params, binds),
        ["totalProduction", "averageQuality"],
    )
    utilization = _normalise(_read(engine, utilization_query, params, binds), ["utilizationRate"])

    def _first(col: str) -> float:
        if efficiency.empty or pd.isna(efficiency.iloc[0][col]):
            return 0.0
        return float(efficiency.iloc[0][col])

    return {
        "productionEfficiency": _first("productionEfficiency"),
        "averageRejectionRate": _first("averageRejectionRate"),
        "topProducingArticles": top_articles,
        "operatorPerformance": operators,
        "machineUtilization": utilization,
    }


# ---------------------------------------------------------------------------
# Filter lookups
# ---------------------------------------------------------------------------

def get_machines(engine: Engine) -> pd.DataFrame:
    """Machines for the filter dropdown, ordered by name."""
    query = f"""
    SELECT machine_key, machine_code, machine_name
    FROM {S}.dim_machine
    ORDER BY machine_name
    """
    return _normalise(_read(engine, query), ["machine_key"])


def get_articles(engine: Engine) -> pd.DataFrame:
    """Articles for the filter dropdown, ordered by code."""
    query = f"""
    SELECT article_key, article_code, description
    FROM {S}.dim_article
    ORDER BY article_code
    LIMIT {ARTICLE_LOOKUP_LIMIT}
    """
    return _normalise(_read(engine, query), ["article_key"])
