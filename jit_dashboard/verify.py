"""
Warehouse verification checks.

Confirms the warehouse is reachable, that every dimension and fact table
exists and is populated, and that the data passes basic quality and
referential-integrity checks. Each check yields a VerificationResult;
`main.py` prints them as a PASS/FAIL report.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Engine, inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from .config import DIMENSION_TABLES, FACT_TABLES, WAREHOUSE_SCHEMA
from .kpis import quality_rate
from .utils import iso_date, safe_float

logger = logging.getLogger(__name__)

PASS = "pass"
FAIL = "fail"
WARNING = "warning"


@dataclass
class VerificationResult:
    check: str
    status: str
    message: str
    details: Any = None


def _row(conn: Connection, query: str) -> dict:
    return dict(conn.execute(text(query)).mappings().one())


def _pct(value) -> str:
    return f"{(safe_float(value) or 0.0) * 100:.1f}%"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

def verify_schema(engine: Engine, schema: str = WAREHOUSE_SCHEMA) -> list[VerificationResult]:
    """Schema existence plus existence and row count of every table."""
    inspector = inspect(engine)
    if schema not in inspector.get_schema_names():
        return [VerificationResult("Schema Exists", FAIL, f"{schema} schema not found")]

    results = [VerificationResult("Schema Exists", PASS, f"{schema} schema found")]

    with engine.connect() as conn:
        for table in DIMENSION_TABLES:
            if not inspector.has_table(table, schema=schema):
                results.append(VerificationResult(f"Dimension: {table}", FAIL, "Table not found"))
                continue
            count = _row(conn, f"SELECT COUNT(*) AS count FROM {schema}.{table}")["count"]
            results.append(
                VerificationResult(f"Dimension: {table}", PASS, f"Exists with {count} records")
            )

        for table in FACT_TABLES:
            if not inspector.has_table(table, schema=schema):
                results.append(VerificationResult(f"Fact: {table}", FAIL, "Table not found"))
                continue
            count = int(_row(conn, f"SELECT COUNT(*) AS count FROM {schema}.{table}")["count"])
            results.append(VerificationResult(
                f"Fact: {table}",
                PASS if count > 0 else WARNING,
                f"{count} records",
                None if count > 0 else "Table exists but is empty",
            ))

    return results


# ---------------------------------------------------------------------------
# Data quality
# ---------------------------------------------------------------------------

def verify_data_quality(engine: Engine, schema: str = WAREHOUSE_SCHEMA) -> list[VerificationResult]:
    results = []
    S = schema

    with engine.connect() as conn:
        dates = _row(conn, f"""
            SELECT
              MIN(t.full_date) AS earliest,
              MAX(t.full_date) AS latest,
              COUNT(DISTINCT t.full_date) AS unique_dates
            FROM {S}.fact_production f
            JOIN {S}.dim_time t ON f.time_key = t.date_key
        """)
        if dates["earliest"]:
            results.append(VerificationResult(
                "Production Date Range",
                PASS,
                f"From {iso_date(dates['earliest'])} to {iso_date(dates['latest'])} ({dates['unique_dates']} unique dates)",
            ))
        else:
            results.append(
                VerificationResult("Production Date Range", WARNING, "No production data found")
            )

        for check, table, noun in (
            ("Machines", "dim_machine", "machines"),
            ("Articles", "dim_article", "articles"),
        ):
            count = int(_row(conn, f"SELECT COUNT(*) AS count FROM {S}.{table}")["count"])
            results.append(VerificationResult(
                check, PASS if count > 0 else WARNING, f"{count} {noun} registered"
            ))

        totals = _row(conn, f"""
            SELECT
              SUM(good_pieces) AS good,
              SUM(rejected_pieces) AS rejected,
              SUM(total_pieces) AS total
            FROM {S}.fact_production
        """)
        if totals["total"]:
            total = int(totals["total"])
            good = int(totals["good"] or 0)
            rejected = int(totals["rejected"] or 0)
            results.append(VerificationResult(
                "Production Totals",
                PASS,
                f"Total: {total:,}, Good: {good:,}, Rejected: {rejected:,}",
                {"qualityRate": _pct(quality_rate(good, total))},
            ))
        else:
            results.append(
                VerificationResult("Production Totals", WARNING, "No production totals found")
            )

        trs = _row(conn, f"""
            SELECT
              COUNT(*) AS count,
              AVG(trs_value) AS avg_trs,
              AVG(availability) AS avg_availability,
              AVG(performance) AS avg_performance,
              AVG(quality) AS avg_quality
            FROM {S}.fact_trs
        """)
        if int(trs["count"]) > 0:
            results.append(VerificationResult(
                "TRS Data",
                PASS,
                f"{trs['count']} TRS records",
                {
                    "avgTRS": _pct(trs["avg_trs"]),
                    "avgAvailability": _pct(trs["avg_availability"]),
                    "avgPerformance": _pct(trs["avg_performance"]),
                    "avgQuality": _pct(trs["avg_quality"]),
                },
            ))
        else:
            results.append(VerificationResult("TRS Data", WARNING, "No TRS records found"))

        out_of_range = int(_row(conn, f"""
            SELECT COUNT(*) AS count
            FROM {S}.fact_trs
            WHERE trs_value < 0 OR trs_value > 1
               OR availability < 0 OR availability > 1
               OR performance < 0 OR performance > 1
               OR quality < 0 OR quality > 1
        """)["count"])
        if out_of_range == 0:
            results.append(VerificationResult("TRS Ratio Bounds", PASS, "All TRS ratios within [0, 1]"))
        else:
            results.append(VerificationResult(
                "TRS Ratio Bounds", FAIL, f"{out_of_range} TRS records with ratios outside [0, 1]"
            ))

        balanced = _row(conn, f"""
            SELECT COUNT(*) AS count, SUM(balanced_units) AS total_balanced
            FROM {S}.fact_balanced_quantities
            WHERE balanced_units > 0
        """)
        if int(balanced["count"]) > 0:
            results.append(VerificationResult(
                "Balanced Quantities",
                PASS,
                f"{balanced['count']} fiscaux with balanced units",
                {"totalBalanced": int(balanced["total_balanced"])},
            ))
        else:
            results.append(VerificationResult(
                "Balanced Quantities",
                WARNING,
                "No balanced quantities found (this may be normal if article codes need matching)",
            ))

        material = int(_row(conn, f"SELECT COUNT(*) AS count FROM {S}.fact_material_consumption")["count"])
        results.append(VerificationResult(
            "Material Consumption",
            PASS if material > 0 else WARNING,
            f"{material} material consumption records",
        ))

    return results


# ---------------------------------------------------------------------------
# Referential integrity
# ---------------------------------------------------------------------------

def verify_referential_integrity(
    engine: Engine,
    schema: str = WAREHOUSE_SCHEMA,
) -> list[VerificationResult]:
    S = schema
    checks = {
        "Production Referential Integrity": (
            "production",
            f"""
            SELECT COUNT(*) AS count
            FROM {S}.fact_production f
            LEFT JOIN {S}.dim_machine m ON f.machine_key = m.machine_key
            LEFT JOIN {S}.dim_article a ON f.article_key = a.article_key
            LEFT JOIN {S}.dim_time t ON f.time_key = t.date_key
            WHERE m.machine_key IS NULL OR a.article_key IS NULL OR t.date_key IS NULL
            """,
        ),
        "TRS Referential Integrity": (
            "TRS",
            f"""
            SELECT COUNT(*) AS count
            FROM {S}.fact_trs trs
            LEFT JOIN {S}.dim_machine m ON trs.machine_key = m.machine_key
            LEFT JOIN {S}.dim_time t ON trs.time_key = t.date_key
            WHERE m.machine_key IS NULL OR t.date_key IS NULL
            """,
        ),
    }

    results = []
    with engine.connect() as conn:
        for check, (noun, query) in checks.items():
            orphans = int(_row(conn, query)["count"])
            if orphans == 0:
                results.append(
                    VerificationResult(check, PASS, f"All {noun} records have valid foreign keys")
                )
            else:
                results.append(
                    VerificationResult(check, FAIL, f"{orphans} orphaned {noun} records found")
                )
    return results


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_checks(engine: Engine, schema: str = WAREHOUSE_SCHEMA) -> list[VerificationResult]:
    """Run every check in order; later stages are skipped if the schema is missing."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Warehouse connection failed: %s", exc)
        return [VerificationResult("Database Connection", FAIL, f"Connection failed: {exc}")]

    results = [VerificationResult("Database Connection", PASS, "Successfully connected to database")]

    schema_results = verify_schema(engine, schema)
    results.extend(schema_results)

    if all(r.status != FAIL for r in schema_results):
        results.extend(verify_data_quality(engine, schema))
        results.extend(verify_referential_integrity(engine, schema))
    else:
        logger.warning("Schema checks failed; skipping data quality and integrity checks")

    return results


def summarise(results: list[VerificationResult]) -> dict[str, int]:
    return {
        "total": len(results),
        "passed": sum(r.status == PASS for r in results),
        "failed": sum(r.status == FAIL for r in results),
        "warnings": sum(r.status == WARNING for r in results),
    }


def recommendations(results: list[VerificationResult]) -> list[str]:
    """Follow-up advice for the report footer."""
    counts = summarise(results)
    if counts["failed"] == 0 and counts["warnings"] == 0:
        advice = ["All checks passed! The data warehouse is properly configured."]
    elif counts["failed"] == 0:
        advice = ["Critical checks passed. Review warnings above for data completeness."]
    else:
        advice = ["Some critical checks failed. Please review and fix the issues above."]

    if any(r.check.startswith("Fact:") and r.status == WARNING for r in results):
        advice.append("Empty fact tables detected. Make sure the warehouse ETL has been run.")

    if any(r.check == "Balanced Quantities" and r.status == WARNING for r in results):
        advice.append(
            "Balanced quantities warning: this may be normal if nomenclature article "
            "codes don't match codes in dim_article. Check your data mapping."
        )

    return advice
