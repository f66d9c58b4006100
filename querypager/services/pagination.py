"""Pagination / filter / export pipeline shared by every list endpoint.

Usage from a service::

    pagination = Pagination(
        repo.query(), PaginationRequest(params), cache,
        config=PaginationConfig(
            search_columns=["company_name", "contact_email"],
            filter_columns=["status"],
            filters={"active": lambda q: q.where("status", "active")},
        ),
        resource=VendorOut,
    )
    result = await pagination.process()   # PageResult or ExportFile

Pipeline order is fixed: search -> column filters -> named filter -> range
-> sort -> limit/offset. Each step is a no-op when its input is absent.
Bad request input never raises; database, cache and export failures do.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from querypager.core.cache import CacheKey, CacheStore
from querypager.core.config import settings
from querypager.core.pagination import ExportMode, PageMeta, PaginationRequest
from querypager.services.export import ExportFile, PaginationExport

logger = logging.getLogger(__name__)


class QueryAdapter(Protocol):
    """What the pipeline needs from a query; see ``repositories.query``."""

    @property
    def table_name(self) -> str: ...

    def where(self, column: str, operator: str = ..., value: Any = ...) -> Any: ...

    def or_where(self, column: str, operator: str = ..., value: Any = ...) -> Any: ...

    def reorder(self, column: str, direction: str = ...) -> Any: ...

    def offset(self, n: int) -> Any: ...

    def limit(self, n: int) -> Any: ...

    async def get(self) -> list[Any]: ...

    async def count(self) -> int: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class SearchColumns(BaseModel):
    """Search by ``LIKE %term%`` over these columns, ORed together."""

    columns: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class CustomSearch(BaseModel):
    """Search by handing the query and the term to ``predicate``."""

    predicate: Callable[[Any, str], None]

    model_config = ConfigDict(frozen=True)


SearchConfig = Union[SearchColumns, CustomSearch]


class ExportConfig(BaseModel):
    headings: list[str] | None = None
    mapper: Callable[[Any], Sequence[Any]] | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class PaginationConfig(BaseModel):
    """Static per-call-site configuration."""

    search_columns: SearchConfig = SearchColumns()
    filter_columns: list[str] = Field(default_factory=list)
    filters: dict[str, Callable[[Any], None]] = Field(default_factory=dict)
    cache_duration: int = Field(default_factory=lambda: settings.cache_default_ttl, alias="cacheDuration")
    cache_tags: list[str] | None = Field(default=None, alias="cacheTags")
    export: ExportConfig = Field(default_factory=ExportConfig)

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    @field_validator("search_columns", mode="before")
    @classmethod
    def _coerce_search(cls, v: Any) -> SearchConfig:
        if isinstance(v, (SearchColumns, CustomSearch)):
            return v
        if callable(v):
            return CustomSearch(predicate=v)
        if v is None:
            return SearchColumns()
        if isinstance(v, str):
            return SearchColumns(columns=(v,))
        return SearchColumns(columns=tuple(v))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResultSet:
    """Materialized rows plus the full match count (before limit/offset)."""

    rows: list[Any]
    total: int


@dataclass(frozen=True)
class PageResult:
    data: list[Any]
    meta: PageMeta

    def to_dict(self) -> dict:
        return {"data": self.data, "meta": self.meta}


def row_to_dict(row: Any) -> dict[str, Any]:
    """Default resource: a row's columns as a dict, in declaration order."""
    if isinstance(row, dict):
        return dict(row)
    if isinstance(row, BaseModel):
        return row.model_dump()
    if hasattr(row, "_asdict"):
        return row._asdict()
    try:
        mapper = sa_inspect(row).mapper
    except NoInspectionAvailable:
        return dict(vars(row))
    return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs}


Resource = Union[type[BaseModel], Callable[[Any], Any]]


def _resource_callable(resource: Resource | None) -> Callable[[Any], Any]:
    if resource is None:
        return row_to_dict
    if isinstance(resource, type) and issubclass(resource, BaseModel):
        return lambda row: resource.model_validate(row, from_attributes=True)
    return resource


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class Pagination:
    """Runs the filter pipeline over one query for one request."""

    def __init__(
        self,
        query: QueryAdapter,
        request: PaginationRequest,
        cache: CacheStore,
        config: PaginationConfig | None = None,
        resource: Resource | None = None,
    ):
        self._query = query
        self._request = request
        self._cache = cache
        self._config = config or PaginationConfig()
        self._resource = _resource_callable(resource)

    async def process(self) -> PageResult | ExportFile:
        """Export when the request carries ``export``, paginate otherwise."""
        if self._request.export_mode is ExportMode.NONE:
            return await self.paginate()
        return await self.export()

    async def paginate(self) -> PageResult:
        result: ResultSet = await self._cache.remember(
            self.cache_key().digest(),
            self._config.cache_duration,
            self._fetch_page,
            tags=self.cache_tags(),
        )
        meta = PageMeta.build(self._request, total=result.total, page_count=len(result.rows))
        return PageResult(data=[self._resource(row) for row in result.rows], meta=meta)

    async def export(self) -> ExportFile:
        result: ResultSet = await self._cache.remember(
            self.cache_key().digest(),
            self._config.cache_duration,
            self._fetch_export,
            tags=self.cache_tags(),
        )
        exporter = PaginationExport(
            result.rows,
            headings=self._config.export.headings,
            mapper=self._config.export.mapper,
            represent=row_to_dict,
        )
        return exporter.to_file()

    async def _fetch_page(self) -> ResultSet:
        self.apply_filters()
        total = await self._query.count()
        self.apply_limit()
        rows = await self._query.get()
        logger.debug(
            "Fetched %d of %d rows from %s (page %d)",
            len(rows), total, self._query.table_name, self._request.page,
        )
        return ResultSet(rows=rows, total=total)

    async def _fetch_export(self) -> ResultSet:
        if self._request.export_mode is ExportMode.FILTERED:
            self.apply_filters()
        rows = await self._query.get()
        logger.info("Exporting %d rows from %s", len(rows), self._query.table_name)
        return ResultSet(rows=rows, total=len(rows))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def apply_filters(self) -> Pagination:
        """Search, column filters, named filter, range and sort, in that order."""
        return (
            self.apply_search()
            .apply_column_filters()
            .apply_named_filter()
            .apply_range()
            .apply_sorting()
        )

    def apply_search(self) -> Pagination:
        term = self._request.search
        if term is None:
            return self

        search = self._config.search_columns
        if isinstance(search, CustomSearch):
            search.predicate(self._query, term)
            return self

        for index, column in enumerate(search.columns):
            if index == 0:
                self._query.where(column, "like", f"%{term}%")
            else:
                self._query.or_where(column, "like", f"%{term}%")
        return self

    def apply_column_filters(self) -> Pagination:
        for column, value in self._request.column_filters(self._config.filter_columns).items():
            self._query.where(column, "=", value)
        return self

    def apply_named_filter(self) -> Pagination:
        name = self.filter_name()
        if name is not None:
            self._config.filters[name](self._query)
        return self

    def apply_range(self) -> Pagination:
        column = self._request.range_column
        if column is None:
            return self
        if (start := self._request.range_start) is not None:
            self._query.where(column, ">=", start)
        if (end := self._request.range_end) is not None:
            self._query.where(column, "<=", end)
        return self

    def apply_sorting(self) -> Pagination:
        self._query.reorder(self._request.order_by, self._request.order.value)
        return self

    def apply_limit(self) -> Pagination:
        self._query.offset(self._request.offset).limit(self._request.limit)
        return self

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def filter_name(self) -> str | None:
        """The requested named filter, if it is one of the configured ones."""
        name = self._request.filter_name
        if name is None:
            return None
        if name not in self._config.filters:
            logger.debug("Ignoring unknown filter %r on %s", name, self._query.table_name)
            return None
        return name

    def cache_key(self) -> CacheKey:
        request = self._request
        return CacheKey(
            table=self._query.table_name,
            page=request.page,
            search=request.search,
            filter=self.filter_name(),
            range_column=request.range_column,
            range_start=request.range_start,
            range_end=request.range_end,
            order_by=request.order_by,
            order=request.order.value,
            limit=request.limit,
            export=request.export_mode.value,
            column_filters=tuple(request.column_filters(self._config.filter_columns).items()),
        )

    def cache_tags(self) -> list[str]:
        if self._config.cache_tags is not None:
            return list(self._config.cache_tags)
        return [self._query.table_name]
