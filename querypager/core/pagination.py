"""Pagination request parsing and page metadata for list endpoints.

Every list endpoint accepts the same query string::

    ?page=2&limit=10&search=acme&order_by=created_at&order=desc
     &range=created_at&range_start=2024-01-01&range_end=2024-12-31
     &filter=active&status=suspended&export=filtered

Nothing here raises for bad input: malformed values fall back to defaults.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable, Mapping

from fastapi import Request
from pydantic import BaseModel, Field

from querypager.core.config import settings


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class ExportMode(str, enum.Enum):
    NONE = "none"
    ALL = "all"
    FILTERED = "filtered"


def _to_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _non_blank(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    return raw


class PaginationRequest:
    """Read-only view over the query parameters of one inbound request.

    Values are read from ``params`` on every access rather than cached, so the
    view always reflects the mapping it was built from.
    """

    def __init__(self, params: Mapping[str, str]):
        self._params = params

    @classmethod
    def from_request(cls, request: Request) -> PaginationRequest:
        return cls(request.query_params)

    @property
    def page(self) -> int:
        page = _to_int(self._params.get("page"))
        return page if page is not None and page >= 1 else 1

    @property
    def limit(self) -> int:
        limit = _to_int(self._params.get("limit"))
        if limit is None or limit <= 0:
            return settings.pagination_default_limit
        return min(limit, settings.pagination_max_limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def search(self) -> str | None:
        search = _non_blank(self._params.get("search"))
        return search.strip() if search is not None else None

    @property
    def order_by(self) -> str:
        return _non_blank(self._params.get("order_by")) or settings.pagination_default_order_by

    @property
    def order(self) -> SortOrder:
        raw = self._params.get("order")
        try:
            return SortOrder(raw)
        except ValueError:
            return SortOrder.ASC

    @property
    def range_column(self) -> str | None:
        return _non_blank(self._params.get("range"))

    @property
    def range_start(self) -> str | None:
        return _non_blank(self._params.get("range_start"))

    @property
    def range_end(self) -> str | None:
        return _non_blank(self._params.get("range_end"))

    @property
    def filter_name(self) -> str | None:
        return _non_blank(self._params.get("filter"))

    @property
    def export_mode(self) -> ExportMode:
        if "export" not in self._params:
            return ExportMode.NONE
        if self._params.get("export") == ExportMode.FILTERED.value:
            return ExportMode.FILTERED
        return ExportMode.ALL

    def column_filters(self, columns: Iterable[str]) -> dict[str, str]:
        """Return ``{column: value}`` for each filterable column present in the request."""
        found: dict[str, str] = {}
        for column in columns:
            value = _non_blank(self._params.get(column))
            if value is not None:
                found[column] = value
        return found


def get_pagination_request(request: Request) -> PaginationRequest:
    """FastAPI dependency: wrap the current request's query string."""
    return PaginationRequest.from_request(request)


class PageMeta(BaseModel):
    total: int
    per_page: int
    current_page: int
    last_page: int
    from_: int = Field(alias="from")
    to: int
    order: SortOrder
    order_by: str

    model_config = {"populate_by_name": True}

    @classmethod
    def build(cls, request: PaginationRequest, total: int, page_count: int) -> PageMeta:
        """Derive metadata from the full match count and the rows on this page."""
        offset = request.offset
        return cls(
            total=total,
            per_page=request.limit,
            current_page=request.page,
            last_page=math.ceil(total / request.limit),
            from_=offset + 1 if page_count else 0,
            to=offset + page_count if page_count else 0,
            order=request.order,
            order_by=request.order_by,
        )
