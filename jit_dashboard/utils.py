"""
Shared parsing utilities: id lists from query strings, numeric coercion,
date normalisation.
"""

import logging
from datetime import date
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)


def parse_id_list(raw: str | None) -> list[int]:
    """Parse a comma-separated id list such as ``"3,7,12"``.

    Blank, zero and non-numeric tokens are dropped, so ``"1,,abc,0,4"``
    yields ``[1, 4]``. Returns an empty list for None or an empty string.
    """
    if not raw:
        return []

    ids = []
    for token in raw.split(","):
        token = token.strip()
        try:
            value = int(token)
        except ValueError:
            if token:
                logger.debug("Ignoring non-numeric id token: %r", token)
            continue
        if value:
            ids.append(value)
    return ids


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for missing or non-numeric values."""
    if val is None:
        return None
    if isinstance(val, str):
        val = val.strip()
        if not val:
            return None
    try:
        result = float(val)
    except (ValueError, TypeError):
        return None
    if pd.isna(result):
        return None
    return result


def iso_date(val: Any) -> str | None:
    """Render a date-like value (date, Timestamp, ISO string) as ``YYYY-MM-DD``."""
    if val is None:
        return None
    if isinstance(val, date):
        return val.strftime("%Y-%m-%d")
    try:
        return pd.Timestamp(val).strftime("%Y-%m-%d")
    except (ValueError, TypeError):
        logger.warning("Could not parse date value: %s", val)
        return None
