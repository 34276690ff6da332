"""
Presentation transforms: re-aggregate API rows (already aggregated per
day/machine/article by the warehouse) into the shapes charts and tables need.
"""

import logging
from typing import Iterable

import pandas as pd

from .config import RAG_COLORS, TOP_N
from .kpis import balanced_status, classify_trs, rejection_rate

logger = logging.getLogger(__name__)

PRODUCTION_COLUMNS = [
    "date", "machine", "machine_key", "article", "article_key", "operator",
    "goodPieces", "rejectedPieces", "totalPieces", "productionCount",
]
PIECE_COLUMNS = ["goodPieces", "rejectedPieces", "totalPieces"]

TRS_COLUMNS = [
    "date", "machine", "machine_key", "trs", "availability", "performance",
    "quality", "productiveMinutes", "downtimeMinutes",
]
RATIO_COLUMNS = ["trs", "availability", "performance", "quality"]

BALANCED_COLUMNS = [
    "fiscauxCode", "fiscauxName", "balancedUnits", "requiredPositions",
    "readyPositions", "date",
]


def rows_to_frame(
    rows: Iterable[dict] | pd.DataFrame | None,
    columns: list[str],
    numeric: list[str] | None = None,
) -> pd.DataFrame:
    """Build a DataFrame with at least `columns`, coercing `numeric` columns.

    Missing columns are added as empty; missing numeric values become 0 so
    sums never propagate NaN.
    """
    if rows is None:
        rows = []
    df = rows.copy() if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows))

    for col in columns:
        if col not in df.columns:
            df[col] = pd.Series(dtype="object")

    for col in numeric or []:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)

    return df


def production_by_date(rows) -> pd.DataFrame:
    """Sum good, rejected and total pieces per date across machines and articles.

    Returns
    -------
    DataFrame with columns: date, goodPieces, rejectedPieces, totalPieces,
    sorted by ascending date.
    """
    df = rows_to_frame(rows, PRODUCTION_COLUMNS, PIECE_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["date", *PIECE_COLUMNS])

    result = df.groupby("date", as_index=False)[PIECE_COLUMNS].sum()
    return result.sort_values("date").reset_index(drop=True)


def production_by_machine(rows) -> pd.DataFrame:
    """Sum good and rejected pieces per machine."""
    df = rows_to_frame(rows, PRODUCTION_COLUMNS, PIECE_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["machine", *PIECE_COLUMNS])

    result = df.groupby("machine", as_index=False)[PIECE_COLUMNS].sum()
    return result.sort_values("machine").reset_index(drop=True)


def top_articles(rows, n: int = TOP_N) -> pd.DataFrame:
    """Articles ranked by good pieces over the fetched production rows.

    rejectionRate is rejected / (good + rejected) per article.
    """
    df = rows_to_frame(rows, PRODUCTION_COLUMNS, PIECE_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["article", *PIECE_COLUMNS, "rejectionRate"])

    result = df.groupby("article", as_index=False)[PIECE_COLUMNS].sum()
    result = (
        result.sort_values("goodPieces", ascending=False)
        .head(n)
        .reset_index(drop=True)
    )
    result["rejectionRate"] = [
        rejection_rate(rejected, good + rejected)
        for good, rejected in zip(result["goodPieces"], result["rejectedPieces"])
    ]
    return result


def trs_by_date(rows) -> pd.DataFrame:
    """Mean TRS and components per date across machines."""
    df = rows_to_frame(rows, TRS_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["date", *RATIO_COLUMNS])

    for col in RATIO_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    result = df.groupby("date", as_index=False)[RATIO_COLUMNS].mean()
    return result.sort_values("date").reset_index(drop=True)


def trs_by_machine(rows) -> pd.DataFrame:
    """Mean TRS and components per machine across dates."""
    df = rows_to_frame(rows, TRS_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["machine", *RATIO_COLUMNS])

    for col in RATIO_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    result = df.groupby("machine", as_index=False)[RATIO_COLUMNS].mean()
    return result.sort_values("machine").reset_index(drop=True)


def machine_comparison(rows) -> pd.DataFrame:
    """Mean TRS per machine, best first, with RAG classification and colour."""
    by_machine = trs_by_machine(rows)
    if by_machine.empty:
        return pd.DataFrame(columns=["machine", "trs", "rag", "color"])

    result = by_machine[["machine", "trs"]].sort_values("trs", ascending=False)
    result["rag"] = result["trs"].apply(classify_trs)
    result["color"] = result["rag"].map(RAG_COLORS)
    return result.reset_index(drop=True)


def summarise_trs(rows) -> dict:
    """Averages and time totals for the TRS page cards.

    Returns
    -------
    Dict with keys: trs, availability, performance, quality,
    productiveMinutes, downtimeMinutes. Ratios are 0.0 when there is no data.
    """
    df = rows_to_frame(rows, TRS_COLUMNS, ["productiveMinutes", "downtimeMinutes"])

    summary = {}
    for col in RATIO_COLUMNS:
        values = pd.to_numeric(df[col], errors="coerce").dropna()
        summary[col] = float(values.mean()) if not values.empty else 0.0

    summary["productiveMinutes"] = float(df["productiveMinutes"].sum())
    summary["downtimeMinutes"] = float(df["downtimeMinutes"].sum())
    return summary


def normalise_balanced(rows) -> pd.DataFrame:
    """Fill gaps in balanced-quantity rows and attach an assembly status.

    Missing names fall back to the fiscaux code; missing counts become 0.
    """
    df = rows_to_frame(
        rows,
        BALANCED_COLUMNS,
        ["balancedUnits", "requiredPositions", "readyPositions"],
    )
    if df.empty:
        return pd.DataFrame(columns=[*BALANCED_COLUMNS, "status"])

    named = df["fiscauxName"].notna() & (df["fiscauxName"] != "")
    df["fiscauxName"] = df["fiscauxName"].where(named, df["fiscauxCode"])
    for col in ("balancedUnits", "requiredPositions", "readyPositions"):
        df[col] = df[col].astype(int)

    df["status"] = [
        balanced_status(units, ready, required)
        for units, ready, required in zip(
            df["balancedUnits"], df["readyPositions"], df["requiredPositions"]
        )
    ]
    return df


def summarise_balanced(rows) -> dict:
    """Ready-fiscaux count and total balanced units."""
    df = rows_to_frame(rows, BALANCED_COLUMNS, ["balancedUnits"])
    ready = df[df["balancedUnits"] > 0]
    return {
        "readyCount": int(len(ready)),
        "totalBalanced": int(ready["balancedUnits"].sum()),
    }
