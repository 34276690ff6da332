"""
JIT Dashboard — Warehouse verification and smoke test.

Checks the warehouse behind DATABASE_URL (connection, schema, table
population, data quality, referential integrity) and prints a PASS/FAIL
report. With --demo, an in-memory SQLite warehouse is seeded with simulated
data first and the API endpoints are exercised against it.

Usage:
    python main.py            # verify DATABASE_URL
    python main.py --demo     # simulated warehouse + API smoke test
"""

import argparse
import logging
import sys

from fastapi.testclient import TestClient

from jit_dashboard import config
from jit_dashboard.api import create_app
from jit_dashboard.client import DashboardClient, DashboardFilters
from jit_dashboard.db import create_warehouse_engine
from jit_dashboard.simulator import generate_warehouse, populate_warehouse, today_window
from jit_dashboard.verify import FAIL, PASS, WARNING, recommendations, run_checks, summarise
from jit_dashboard.warehouse import create_sqlite_warehouse

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

ICONS = {PASS: "PASS", FAIL: "FAIL", WARNING: "WARN"}


def print_report(results) -> None:
    for r in results:
        print(f"  [{ICONS[r.status]}] {r.check}: {r.message}")
        if r.details:
            print(f"         Details: {r.details}")

    counts = summarise(results)
    print()
    print(f"  Total Checks: {counts['total']}")
    print(f"  Passed:   {counts['passed']}")
    print(f"  Failed:   {counts['failed']}")
    print(f"  Warnings: {counts['warnings']}")
    print()
    for line in recommendations(results):
        print(f"  {line}")


def smoke_test_api(engine) -> bool:
    """Hit every endpoint through the front-end client; True if all returned data."""
    days = 30
    start = today_window(days)

    with TestClient(create_app(engine)) as http:
        client = DashboardClient(http=http)
        filters = DashboardFilters()

        production = client.production(filters)
        kpis = client.production_kpis(filters)
        trs = client.trs(filters)
        balanced = client.balanced()
        material = client.material(filters)
        analytics = client.analytics(filters)
        options = client.filters()

    print(f"\n  Window: {days} days from {start}")
    print(f"  /api/production: {len(production)} rows")
    print(f"  /api/production?kpisOnly: {kpis}")
    print(f"  /api/trs: {len(trs)} rows")
    print(f"  /api/balanced: {len(balanced)} fiscaux")
    print(f"  /api/material: {len(material)} materials")
    print(f"  /api/analytics: efficiency {analytics.get('productionEfficiency', 0):.1%}")
    print(f"  /api/filters: {len(options['machines'])} machines, {len(options['articles'])} articles")

    checks = [
        ("production rows returned", bool(production)),
        ("KPIs total = good + rejected",
         kpis.get("totalPieces") == kpis.get("totalGood", 0) + kpis.get("totalRejected", 0)),
        ("TRS rows returned", bool(trs)),
        ("balanced units all positive", all(r["balancedUnits"] > 0 for r in balanced)),
        ("filter options populated", bool(options["machines"])),
    ]
    print()
    for label, ok in checks:
        print(f"  [{'PASS' if ok else 'FAIL'}] {label}")
    return all(ok for _, ok in checks)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify the JIT warehouse.")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="seed an in-memory SQLite warehouse with simulated data",
    )
    args = parser.parse_args(argv)

    print("=" * 70)
    print(f"  {config.DASHBOARD_TITLE.upper()} — Data Warehouse Verification")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Connect
    # ------------------------------------------------------------------
    print("[ 1 ] CONNECTING")
    print("-" * 40)

    if args.demo:
        engine = create_sqlite_warehouse()
        counts = populate_warehouse(engine, generate_warehouse(start=today_window(30), days=30))
        for table, n in counts.items():
            print(f"  {table}: {n} rows")
    else:
        url = config.database_url()
        if not url:
            print(f"  {config.MISSING_DATABASE_URL_MESSAGE}")
            print(f"  {config.MISSING_DATABASE_URL_HELP}")
            return 1
        engine = create_warehouse_engine(url, ssl=not config.ssl_disabled())
        print("  Using DATABASE_URL")

    # ------------------------------------------------------------------
    # 2. Verification checks
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] VERIFICATION CHECKS")
    print("-" * 40)

    results = run_checks(engine)
    print_report(results)
    ok = summarise(results)["failed"] == 0

    # ------------------------------------------------------------------
    # 3. API smoke test (demo only)
    # ------------------------------------------------------------------
    if args.demo:
        print("\n")
        print("[ 3 ] API SMOKE TEST")
        print("-" * 40)
        ok = smoke_test_api(engine) and ok

    engine.dispose()

    print("\n" + "=" * 70)
    print("  Verification complete." if ok else "  Verification found failures.")
    print("=" * 70)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
