"""
KPI computation functions — pure functions with no side effects.

Provides rejection and quality rates, TRS composition and RAG
classification, balanced-quantity status, and KPI card formatting.
"""

import logging

import pandas as pd

from .config import TRS_AMBER, TRS_GREEN

logger = logging.getLogger(__name__)


def _ratio(numerator, denominator) -> float:
    if pd.isna(numerator) or pd.isna(denominator) or denominator == 0:
        return 0.0
    return float(numerator) / float(denominator)


def rejection_rate(rejected: float, total: float) -> float:
    """Return rejected / total as a ratio in [0, 1].

    Returns 0.0 when total is zero or missing rather than propagating a
    division by zero.
    """
    return _ratio(rejected, total)


def quality_rate(good: float, total: float) -> float:
    """Return good / total, 0.0 when total is zero or missing."""
    return _ratio(good, total)


def compute_trs(availability: float, performance: float, quality: float) -> float:
    """TRS (overall equipment effectiveness) = availability x performance x quality."""
    return availability * performance * quality


def classify_trs(
    trs: float | None,
    green: float = TRS_GREEN,
    amber: float = TRS_AMBER,
) -> str:
    """Return 'green', 'amber', 'red' or 'grey' for a TRS ratio.

    Logic
    -----
    green  if trs >= green
    amber  if trs >= amber
    red    otherwise
    grey   if trs is missing
    """
    if trs is None or pd.isna(trs):
        return "grey"
    if trs >= green:
        return "green"
    if trs >= amber:
        return "amber"
    return "red"


def trs_trend(trs: float | None) -> str:
    """Map a TRS ratio to a card trend arrow: 'up', 'neutral' or 'down'."""
    return {"green": "up", "amber": "neutral"}.get(classify_trs(trs), "down")


def balanced_status(
    balanced_units: int,
    ready_positions: int,
    required_positions: int,
) -> str:
    """Assembly status of a fiscaux.

    - 'ready'    when at least one balanced unit is available
    - 'warning'  when every position is ready but no unit balances yet
    - 'pending'  otherwise
    """
    if balanced_units and balanced_units > 0:
        return "ready"
    if required_positions and ready_positions == required_positions:
        return "warning"
    return "pending"


def format_kpi_value(value, fmt: str = "number") -> str:
    """Render a KPI card value.

    - 'number'      -> thousands separators, no decimals for integers ("1,234")
    - 'percentage'  -> ratio shown as percent with one decimal ("4.8%")
    - 'currency'    -> US dollars ("$1,234.00")

    Strings pass through unchanged; missing values render as "N/A".
    """
    if isinstance(value, str):
        return value
    if value is None or pd.isna(value):
        return "N/A"

    if fmt == "percentage":
        return f"{value * 100:.1f}%"
    if fmt == "currency":
        return f"${value:,.2f}"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def minutes_to_hours(minutes: float) -> int:
    """Round a minute total to whole hours for display."""
    if minutes is None or pd.isna(minutes):
        return 0
    return int(round(float(minutes) / 60))
