"""
HTTP API: one GET endpoint per dashboard dataset.

Each handler parses query-string filters, runs one query function against
the injected warehouse engine and returns the rows as JSON.

Run with:  uvicorn jit_dashboard.api:app --reload
"""

import json
import logging
from contextlib import contextmanager
from datetime import date

import pandas as pd
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import Engine, text

from . import config, queries
from .db import DatabaseConfigError, get_engine
from .queries import WarehouseFilters
from .utils import parse_id_list

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class QueryError(Exception):
    """A handler failed while fetching `resource`."""

    def __init__(self, resource: str, message: str):
        super().__init__(message)
        self.resource = resource
        self.message = message


class FilterError(ValueError):
    """A query-string filter was rejected."""


@contextmanager
def fetching(resource: str):
    """Log and wrap any failure while fetching `resource` as a QueryError."""
    try:
        yield
    except (DatabaseConfigError, FilterError):
        raise
    except Exception as exc:
        logger.exception("Error fetching %s", resource)
        raise QueryError(resource, str(exc) or "Unknown error") from exc


async def database_config_error_handler(request: Request, exc: DatabaseConfigError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "error": "Database configuration missing",
            "message": str(exc),
            "help": config.MISSING_DATABASE_URL_HELP,
        },
    )


async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": f"Failed to fetch {exc.resource}", "message": exc.message},
    )


async def filter_error_handler(request: Request, exc: FilterError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid filter", "message": str(exc)},
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed query parameters share the FilterError body shape.
    problems = [
        f"{err['loc'][-1]}: {err['msg']}" if err.get("loc") else err["msg"]
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid filter", "message": "; ".join(problems)},
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_warehouse(request: Request) -> Engine:
    """Return the injected engine, or the lazily created process-wide one."""
    engine = getattr(request.app.state, "engine", None)
    if engine is not None:
        return engine
    if not config.database_url():
        raise DatabaseConfigError(config.MISSING_DATABASE_URL_MESSAGE)
    return get_engine()


def _ids(raw: str | None, name: str) -> list[int]:
    ids = parse_id_list(raw)
    if len(ids) > config.MAX_FILTER_IDS:
        raise FilterError(f"{name} accepts at most {config.MAX_FILTER_IDS} ids, got {len(ids)}")
    return ids


def records(df: pd.DataFrame) -> list[dict]:
    """Serialise a DataFrame to JSON-safe records (NaN becomes null)."""
    return json.loads(df.to_json(orient="records", double_precision=15))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/production")
def production(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    machine_ids: str | None = Query(None, alias="machineIds"),
    article_ids: str | None = Query(None, alias="articleIds"),
    kpis_only: bool = Query(False, alias="kpisOnly"),
    engine: Engine = Depends(get_warehouse),
):
    filters = WarehouseFilters(
        start_date=start_date,
        end_date=end_date,
        machine_ids=_ids(machine_ids, "machineIds"),
        article_ids=_ids(article_ids, "articleIds"),
    )
    with fetching("production data"):
        if kpis_only:
            return queries.get_production_kpis(engine, filters)
        return records(queries.get_production_data(engine, filters))


@router.get("/trs")
def trs(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    machine_ids: str | None = Query(None, alias="machineIds"),
    engine: Engine = Depends(get_warehouse),
):
    filters = WarehouseFilters(
        start_date=start_date,
        end_date=end_date,
        machine_ids=_ids(machine_ids, "machineIds"),
    )
    with fetching("TRS data"):
        return records(queries.get_trs_data(engine, filters))


@router.get("/balanced")
def balanced(engine: Engine = Depends(get_warehouse)):
    with fetching("balanced quantities"):
        return records(queries.get_balanced_quantities(engine))


@router.get("/material")
def material(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    engine: Engine = Depends(get_warehouse),
):
    filters = WarehouseFilters(start_date=start_date, end_date=end_date)
    with fetching("material consumption"):
        return records(queries.get_material_consumption(engine, filters))


@router.get("/analytics")
def analytics(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    engine: Engine = Depends(get_warehouse),
):
    filters = WarehouseFilters(start_date=start_date, end_date=end_date)
    with fetching("analytics data"):
        data = queries.get_analytics_data(engine, filters)
        return {
            key: records(value) if isinstance(value, pd.DataFrame) else value
            for key, value in data.items()
        }


@router.get("/filters")
def filter_options(engine: Engine = Depends(get_warehouse)):
    with fetching("filter options"):
        return {
            "machines": records(queries.get_machines(engine)),
            "articles": records(queries.get_articles(engine)),
        }


@router.get("/health")
def health(engine: Engine = Depends(get_warehouse)):
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Warehouse health check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": str(exc)},
        )
    return {"status": "ok", "database": "ok"}


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(engine: Engine | None = None) -> FastAPI:
    """Build the API. Pass `engine` to bypass DATABASE_URL (tests, demos)."""
    app = FastAPI(title=f"{config.DASHBOARD_TITLE} API")
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DatabaseConfigError, database_config_error_handler)
    app.add_exception_handler(QueryError, query_error_handler)
    app.add_exception_handler(FilterError, filter_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.include_router(router)
    return app


app = create_app()
