"""
Star-schema DDL and setup helpers for the JIT data warehouse.

The dashboard itself only reads from the warehouse. These helpers exist so
that a local SQLite copy (demos, tests) can be built with the same
schema-qualified table names the query layer expects.
"""

import logging
from pathlib import Path

import pandas as pd
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.pool import StaticPool

from .config import WAREHOUSE_SCHEMA

logger = logging.getLogger(__name__)


# -------------------------- DDL --------------------------

WAREHOUSE_DDL = """
CREATE TABLE IF NOT EXISTS {schema}.dim_time (
    date_key INTEGER PRIMARY KEY,
    full_date DATE NOT NULL,
    year INTEGER,
    month INTEGER,
    day INTEGER,
    week INTEGER,
    day_of_week INTEGER
);

CREATE TABLE IF NOT EXISTS {schema}.dim_location (
    location_key INTEGER PRIMARY KEY,
    location_code VARCHAR(50) NOT NULL,
    location_name VARCHAR(100)
);

CREATE TABLE IF NOT EXISTS {schema}.dim_machine (
    machine_key INTEGER PRIMARY KEY,
    machine_code VARCHAR(50) NOT NULL,
    machine_name VARCHAR(100) NOT NULL,
    location_key INTEGER
);

CREATE TABLE IF NOT EXISTS {schema}.dim_article (
    article_key INTEGER PRIMARY KEY,
    article_code VARCHAR(50) NOT NULL,
    description VARCHAR(255),
    article_type VARCHAR(50)
);

CREATE TABLE IF NOT EXISTS {schema}.dim_operator (
    operator_key INTEGER PRIMARY KEY,
    operator_code VARCHAR(50),
    operator_name VARCHAR(100)
);

CREATE TABLE IF NOT EXISTS {schema}.bridge_fiscaux_position (
    fiscaux_article_key INTEGER NOT NULL,
    position_article_key INTEGER NOT NULL,
    position_code VARCHAR(50),
    required_qty INTEGER
);

CREATE TABLE IF NOT EXISTS {schema}.fact_production (
    production_key INTEGER PRIMARY KEY,
    time_key INTEGER NOT NULL,
    machine_key INTEGER NOT NULL,
    article_key INTEGER NOT NULL,
    operator_key INTEGER,
    good_pieces INTEGER NOT NULL,
    rejected_pieces INTEGER NOT NULL,
    total_pieces INTEGER NOT NULL,
    requested_quantity INTEGER
);

CREATE TABLE IF NOT EXISTS {schema}.fact_trs (
    trs_key INTEGER PRIMARY KEY,
    time_key INTEGER NOT NULL,
    machine_key INTEGER NOT NULL,
    availability DOUBLE PRECISION,
    performance DOUBLE PRECISION,
    quality DOUBLE PRECISION,
    trs_value DOUBLE PRECISION,
    productive_minutes INTEGER,
    downtime_minutes INTEGER
);

CREATE TABLE IF NOT EXISTS {schema}.fact_balanced_quantities (
    balanced_key INTEGER PRIMARY KEY,
    time_key INTEGER NOT NULL,
    parent_article_key INTEGER NOT NULL,
    balanced_units INTEGER NOT NULL,
    required_positions INTEGER,
    ready_positions INTEGER
);

CREATE TABLE IF NOT EXISTS {schema}.fact_material_consumption (
    consumption_key INTEGER PRIMARY KEY,
    production_key INTEGER NOT NULL,
    material_code VARCHAR(50) NOT NULL,
    material_type VARCHAR(50),
    total_used DOUBLE PRECISION,
    good_used DOUBLE PRECISION,
    scrap_used DOUBLE PRECISION,
    unit_of_measure VARCHAR(20)
);
"""


# -------------------------- SETUP HELPERS --------------------------

def initialize_warehouse(engine: Engine, schema: str = WAREHOUSE_SCHEMA) -> None:
    """Create all dimension and fact tables (no-op for existing tables)."""
    statements = [
        stmt.strip()
        for stmt in WAREHOUSE_DDL.format(schema=schema).split(";")
        if stmt.strip()
    ]

    with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        for stmt in statements:
            conn.execute(text(stmt))

    logger.info("Initialised warehouse schema '%s' (%d tables)", schema, len(statements))


def create_sqlite_warehouse(
    path: str | Path | None = None,
    schema: str = WAREHOUSE_SCHEMA,
) -> Engine:
    """Return a SQLite engine with the warehouse attached under `schema`.

    SQLite has no schemas; attaching the warehouse file (or an in-memory
    database when `path` is None) under the schema name lets queries keep
    their ``jit_dw.table`` qualification. A single shared connection is used
    so an in-memory warehouse survives across requests and threads.
    """
    target = str(path) if path else ":memory:"

    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _attach_schema(dbapi_connection, connection_record):
        dbapi_connection.execute(f"ATTACH DATABASE ? AS {schema}", (target,))

    logger.info("Opened SQLite warehouse at %s as schema '%s'", target, schema)
    return engine


def load_frame(
    engine: Engine,
    table: str,
    frame: pd.DataFrame,
    schema: str = WAREHOUSE_SCHEMA,
) -> int:
    """Append `frame` to `schema.table` and return the number of rows written."""
    if frame.empty:
        return 0

    frame.to_sql(table, engine, schema=schema, if_exists="append", index=False)
    logger.info("Loaded %d rows into %s.%s", len(frame), schema, table)
    return len(frame)
