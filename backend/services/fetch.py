# backend/services/fetch.py
"""Generic list reads shared by every list view (products, orders, customers).

``fetch_records`` runs one filtered/ordered/paginated query. ``DataFeed`` keeps
the last result around and only re-queries when its inputs change.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from utils.data_client import DataClient, DataClientError

logger = logging.getLogger(__name__)


class OrderBy(BaseModel):
    column: str
    ascending: bool = True


class FetchOptions(BaseModel):
    table: str
    columns: str = "*"
    filters: Dict[str, Any] = Field(default_factory=dict)
    order_by: Optional[OrderBy] = None
    limit: Optional[int] = Field(default=None, ge=1)
    page: int = Field(default=1, ge=1)

    def effective_filters(self) -> Dict[str, Any]:
        # Blank values mean "no constraint", never an exact match on ""
        return {k: v for k, v in self.filters.items() if v is not None and v != ""}

    def cache_key(self) -> str:
        return json.dumps(self.model_dump(mode="json"), sort_keys=True, default=str)


class FetchResult(BaseModel):
    items: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    loading: bool = False
    error: Optional[str] = None


def fetch_records(client: DataClient, options: FetchOptions) -> FetchResult:
    """Run the query described by ``options``; raises ``DataClientError``."""
    offset = None
    if options.limit:
        offset = (options.page - 1) * options.limit

    result = client.select(
        options.table,
        columns=options.columns,
        filters=options.effective_filters(),
        order_by=options.order_by.column if options.order_by else None,
        ascending=options.order_by.ascending if options.order_by else True,
        offset=offset,
        limit=options.limit,
        count_exact=True,
    )
    return FetchResult(items=result.rows, count=result.count or 0)


class DataFeed:
    """Holds ``items``/``count``/``loading``/``error`` for one list view."""

    def __init__(self, client: DataClient):
        self.client = client
        self.items: List[Dict[str, Any]] = []
        self.count = 0
        self.loading = False
        self.error: Optional[str] = None
        self._last_key: Optional[str] = None

    def refresh(self, options: FetchOptions, force: bool = False) -> FetchResult:
        key = options.cache_key()
        if not force and key == self._last_key:
            return self.snapshot()

        self._last_key = key
        self.loading = True
        self.error = None
        try:
            result = fetch_records(self.client, options)
        except DataClientError as e:
            # Previous items stay visible until the next successful read
            logger.error("Error fetching %s: %s", options.table, e)
            self.error = str(e) or "An error occurred while fetching data"
        else:
            self.items = result.items
            self.count = result.count
        finally:
            self.loading = False
        return self.snapshot()

    def snapshot(self) -> FetchResult:
        return FetchResult(items=list(self.items), count=self.count, loading=self.loading, error=self.error)


def page_response(result: FetchResult, options: FetchOptions) -> Dict[str, Any]:
    """Shape a fetch result as a paginated list response."""
    return {
        "items": result.items,
        "count": result.count,
        "page": options.page,
        "page_size": options.limit,
        "loading": result.loading,
        "error": result.error,
    }
