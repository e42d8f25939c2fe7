"""
Supabase (PostgREST) client implementation.

Every operation returns a QueryResult envelope; transport and constraint
failures are reported in it instead of being raised, so callers can treat all
relational calls uniformly.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, NamedTuple, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "is")


class QueryFilter(NamedTuple):
    """A PostgREST horizontal filter: column <op> value."""

    op: str
    column: str
    value: Any


class QueryOrder(NamedTuple):
    column: str
    ascending: bool = True


@dataclass
class QueryResult:
    """Uniform success/error envelope for relational calls."""

    success: bool
    data: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: list[dict[str, Any]] | None = None) -> "QueryResult":
        return cls(success=True, data=data or [])

    @classmethod
    def fail(cls, error: str) -> "QueryResult":
        return cls(success=False, error=error)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        parts = [str(body[k]) for k in ("message", "details", "hint") if body.get(k)]
        if parts:
            return f"{response.status_code}: {' - '.join(parts)}"
    return f"{response.status_code}: {response.reason}"


class SupabaseClient:
    """
    Client for the Supabase REST (PostgREST) API.

    Features:
    - query with eq/gte/lte/... filters and ordering
    - insert / update / remove returning the affected rows
    - Automatic retry with backoff
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        url: str,
        api_key: str,
        schema: str = "public",
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize Supabase client.

        Args:
            url: Project URL (e.g., "https://abc.supabase.co")
            api_key: Service or anon key (sent as apikey and bearer token)
            schema: Postgres schema exposed through PostgREST
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        self.base_url = url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Accept-Profile": schema,
                "Content-Profile": schema,
            }
        )

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(
        self,
        method: str,
        table: str,
        params: list[tuple[str, str]],
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> QueryResult:
        headers = {"Prefer": prefer} if prefer else None
        body = json.dumps(payload, default=_json_default) if payload is not None else None

        try:
            response = self.session.request(
                method=method,
                url=self._table_url(table),
                params=params,
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning("Supabase %s %s failed: %s", method, table, e)
            return QueryResult.fail(f"Request to Supabase failed: {e}")

        if not response.ok:
            error = _error_message(response)
            logger.warning("Supabase %s %s returned %s", method, table, error)
            return QueryResult.fail(error)

        if not response.content:
            return QueryResult.ok()
        try:
            data = response.json()
        except ValueError:
            return QueryResult.fail("Supabase returned a non-JSON response")
        if isinstance(data, dict):
            data = [data]
        return QueryResult.ok(data)

    @staticmethod
    def _filter_params(filters: list[QueryFilter] | None) -> list[tuple[str, str]]:
        params = []
        for f in filters or []:
            if f.op not in FILTER_OPERATORS:
                raise ValueError(f"Unsupported filter operator: {f.op}")
            params.append((f.column, f"{f.op}.{_filter_value(f.value)}"))
        return params

    @staticmethod
    def _match_params(match: dict[str, Any]) -> list[tuple[str, str]]:
        if not match:
            # PostgREST would otherwise touch every row in the table
            raise ValueError("match criteria are required")
        return [(column, f"eq.{_filter_value(value)}") for column, value in match.items()]

    def query(
        self,
        table: str,
        select: str = "*",
        filters: list[QueryFilter] | None = None,
        order: QueryOrder | None = None,
    ) -> QueryResult:
        """Select rows from a table."""
        params = [("select", "".join(select.split()))]
        try:
            params.extend(self._filter_params(filters))
        except ValueError as e:
            return QueryResult.fail(str(e))
        if order is not None:
            direction = "asc" if order.ascending else "desc"
            params.append(("order", f"{order.column}.{direction}"))
        return self._request("GET", table, params)

    def insert(self, table: str, row: dict[str, Any]) -> QueryResult:
        """Insert one row and return it."""
        return self._request("POST", table, [], payload=row, prefer="return=representation")

    def update(self, table: str, patch: dict[str, Any], match: dict[str, Any]) -> QueryResult:
        """Patch rows matching every column=value in match and return them."""
        try:
            params = self._match_params(match)
        except ValueError as e:
            return QueryResult.fail(str(e))
        return self._request(
            "PATCH", table, params, payload=patch, prefer="return=representation"
        )

    def remove(self, table: str, match: dict[str, Any]) -> QueryResult:
        """Delete rows matching every column=value in match and return them."""
        try:
            params = self._match_params(match)
        except ValueError as e:
            return QueryResult.fail(str(e))
        return self._request("DELETE", table, params, prefer="return=representation")
