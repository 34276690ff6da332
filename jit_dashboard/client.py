"""
HTTP client the Streamlit front end uses to fetch dashboard data.

Fetch failures are logged and, by default, the caller gets an empty
default so the page renders its empty state. A client built with
raise_errors=True raises DashboardFetchError instead, which lets the page
keep the last good result on screen (see fetch_or_last).
"""

import logging
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx

from .config import API_BASE_URL, API_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class DashboardFetchError(RuntimeError):
    """An API call failed: transport error, non-2xx status or unreadable body."""


@dataclass
class DashboardFilters:
    """Filters selected in the sidebar for the current page view."""

    start_date: date | None = None
    end_date: date | None = None
    machine_id: int | None = None

    def to_params(self, include_machine: bool = True) -> dict[str, str]:
        params = {}
        if self.start_date:
            params["startDate"] = self.start_date.isoformat()
        if self.end_date:
            params["endDate"] = self.end_date.isoformat()
        if include_machine and self.machine_id:
            params["machineIds"] = str(self.machine_id)
        return params


class DashboardClient:
    """Thin wrapper over the JIT dashboard API.

    Parameters
    ----------
    base_url : API root, e.g. "http://localhost:8000".
    http : Optional pre-built httpx.Client (tests pass a FastAPI TestClient).
    raise_errors : Raise DashboardFetchError on failure instead of returning
        the endpoint's empty default.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        http: httpx.Client | None = None,
        timeout: float = API_TIMEOUT_SECONDS,
        raise_errors: bool = False,
    ):
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self._raise_errors = raise_errors

    def close(self) -> None:
        self._http.close()

    def _get(self, path: str, params: dict | None = None, default=None):
        try:
            response = self._http.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            body = exc.response.text[:200]
            logger.error("Error fetching %s: HTTP %s %s", path, exc.response.status_code, body)
            if self._raise_errors:
                raise DashboardFetchError(f"{path}: HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error fetching %s: %s", path, exc)
            if self._raise_errors:
                raise DashboardFetchError(f"{path}: {exc}") from exc
        return default

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    def production(self, filters: DashboardFilters | None = None) -> list[dict]:
        params = filters.to_params() if filters else {}
        return self._get("/api/production", params, default=[])

    def production_kpis(self, filters: DashboardFilters | None = None) -> dict:
        params = filters.to_params() if filters else {}
        params["kpisOnly"] = "true"
        return self._get("/api/production", params, default={})

    def trs(self, filters: DashboardFilters | None = None) -> list[dict]:
        params = filters.to_params() if filters else {}
        return self._get("/api/trs", params, default=[])

    def balanced(self) -> list[dict]:
        return self._get("/api/balanced", default=[])

    def material(self, filters: DashboardFilters | None = None) -> list[dict]:
        params = filters.to_params(include_machine=False) if filters else {}
        return self._get("/api/material", params, default=[])

    def analytics(self, filters: DashboardFilters | None = None) -> dict:
        params = filters.to_params(include_machine=False) if filters else {}
        return self._get("/api/analytics", params, default={})

    def filters(self) -> dict:
        return self._get("/api/filters", default={"machines": [], "articles": []})

    def health(self) -> dict:
        return self._get("/api/health", default={"status": "error"})


def fetch_or_last(
    store: MutableMapping,
    key: str,
    fetch: Callable[[], Any],
    default: Any = None,
) -> tuple[Any, DashboardFetchError | None]:
    """Run ``fetch`` and remember its result under ``key`` in ``store``.

    On DashboardFetchError the previously stored result (or ``default`` when
    nothing was stored yet) is returned together with the error, so a failed
    refresh leaves the last good data on screen.
    """
    try:
        value = fetch()
    except DashboardFetchError as exc:
        return store.get(key, default), exc
    store[key] = value
    return value, None
