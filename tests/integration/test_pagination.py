"""Tests for the pagination pipeline against a seeded SQLite database."""

import io

import pytest
from openpyxl import load_workbook
from sqlalchemy import select

from querypager.core.pagination import PaginationRequest
from querypager.domain.vendor import Vendor
from querypager.repositories.query import QueryAdapter
from querypager.services.export import ExportFile
from querypager.services.pagination import (
    CustomSearch,
    PageResult,
    Pagination,
    PaginationConfig,
    SearchColumns,
    row_to_dict,
)

from tests.conftest import SEED_COUNT, make_vendor

CONFIG = PaginationConfig(
    search_columns=["company_name", "contact_email"],
    filter_columns=["status", "address_state"],
    filters={
        "top_rated": lambda q: q.where("rating", ">=", 4),
        "suspended": lambda q: q.where("status", "=", "suspended"),
    },
)


def _pagination(session, cache, params, config=CONFIG, resource=None) -> Pagination:
    query = QueryAdapter(session, Vendor, select(Vendor))
    return Pagination(query, PaginationRequest(params), cache, config=config, resource=resource)


async def _page(session, cache, params, **kwargs) -> PageResult:
    result = await _pagination(session, cache, params, **kwargs).process()
    assert isinstance(result, PageResult)
    return result


class TestPaginate:
    """Test the paginate path end to end."""

    @pytest.mark.asyncio
    async def test_middle_page_metadata(self, session, cache):
        result = await _page(session, cache, {"page": "2", "limit": "10"})

        assert len(result.data) == 10
        assert result.meta.total == SEED_COUNT
        assert result.meta.from_ == 11
        assert result.meta.to == 20
        assert result.meta.last_page == 3
        assert result.data[0]["company_name"] == "Vendor 10"

    @pytest.mark.asyncio
    async def test_row_count_never_exceeds_limit(self, session, cache):
        for page in range(1, 5):
            result = await _page(session, cache, {"page": str(page), "limit": "7"})
            assert len(result.data) <= 7

    @pytest.mark.asyncio
    async def test_last_page(self, session, cache):
        result = await _page(session, cache, {"page": "3", "limit": "10"})

        assert [r["company_name"] for r in result.data] == [f"Vendor {i}" for i in range(20, 25)]
        assert result.meta.from_ == 21
        assert result.meta.to == 25

    @pytest.mark.asyncio
    async def test_no_matches(self, session, cache):
        result = await _page(session, cache, {"search": "nothing-like-this"})

        assert result.data == []
        assert result.meta.total == 0
        assert result.meta.from_ == 0
        assert result.meta.to == 0

    @pytest.mark.asyncio
    async def test_search_over_columns(self, session, cache):
        result = await _page(session, cache, {"search": "Vendor 1", "limit": "50"})

        assert result.meta.total == 10
        assert all(r["company_name"].startswith("Vendor 1") for r in result.data)

    @pytest.mark.asyncio
    async def test_padded_search_matches_trimmed_search(self, session, cache):
        padded = _pagination(session, cache, {"search": "  Vendor 1 ", "limit": "50"})
        trimmed = _pagination(session, cache, {"search": "Vendor 1", "limit": "50"})
        assert padded.cache_key() == trimmed.cache_key()

        result = await _page(session, cache, {"search": "  Vendor 1 ", "limit": "50"})
        assert result.meta.total == 10
        assert len(cache) == 1

        result = await _page(session, cache, {"search": "Vendor 1", "limit": "50"})
        assert result.meta.total == 10
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_search_matches_any_configured_column(self, session, cache):
        result = await _page(session, cache, {"search": "contact07@", "limit": "50"})

        assert [r["company_name"] for r in result.data] == ["Vendor 07"]

    @pytest.mark.asyncio
    async def test_search_is_anded_with_other_filters(self, session, cache):
        result = await _page(session, cache, {"search": "Vendor 1", "status": "suspended", "limit": "50"})

        # 12, 15, 18 are the suspended ones among 10..19
        assert [r["company_name"] for r in result.data] == ["Vendor 12", "Vendor 15", "Vendor 18"]

    @pytest.mark.asyncio
    async def test_search_without_columns_is_unfiltered(self, session, cache):
        result = await _page(session, cache, {"search": "Vendor 1"}, config=PaginationConfig())

        assert result.meta.total == SEED_COUNT

    @pytest.mark.asyncio
    async def test_custom_search_predicate(self, session, cache):
        seen = []

        def search(query, term):
            seen.append(term)
            query.filter(Vendor.contact_name == f"Contact {term}")

        config = PaginationConfig(search_columns=search)
        assert isinstance(config.search_columns, CustomSearch)

        result = await _page(session, cache, {"search": "03"}, config=config)

        assert seen == ["03"]
        assert [r["company_name"] for r in result.data] == ["Vendor 03"]

    @pytest.mark.asyncio
    async def test_column_filter(self, session, cache):
        result = await _page(session, cache, {"status": "suspended", "limit": "50"})

        assert result.meta.total == 9
        assert {r["status"] for r in result.data} == {"suspended"}

    @pytest.mark.asyncio
    async def test_unconfigured_column_is_not_filtered(self, session, cache):
        result = await _page(session, cache, {"rating": "1", "limit": "50"})

        assert result.meta.total == SEED_COUNT

    @pytest.mark.asyncio
    async def test_named_filter(self, session, cache):
        result = await _page(session, cache, {"filter": "top_rated", "limit": "50"})

        assert result.meta.total == 5
        assert {r["rating"] for r in result.data} == {4}

    @pytest.mark.asyncio
    async def test_unknown_named_filter_is_ignored(self, session, cache):
        result = await _page(session, cache, {"filter": "unknown_name"})

        assert result.meta.total == SEED_COUNT

    @pytest.mark.asyncio
    async def test_range_filter(self, session, cache):
        result = await _page(
            session, cache, {"range": "rating", "range_start": "2", "range_end": "3", "limit": "50"}
        )

        assert result.meta.total == 10
        assert {r["rating"] for r in result.data} == {2, 3}

    @pytest.mark.asyncio
    async def test_datetime_range_filter(self, session, cache):
        result = await _page(
            session, cache,
            {"range": "created_at", "range_start": "2024-01-10", "range_end": "2024-01-15", "limit": "50"},
        )

        assert result.meta.total == 6
        assert [r["company_name"] for r in result.data] == [f"Vendor {i:02d}" for i in range(9, 15)]

    @pytest.mark.asyncio
    async def test_open_ended_range(self, session, cache):
        result = await _page(session, cache, {"range": "rating", "range_end": "0", "limit": "50"})

        assert result.meta.total == 5

    @pytest.mark.asyncio
    async def test_sorting(self, session, cache):
        result = await _page(session, cache, {"order_by": "company_name", "order": "desc", "limit": "3"})

        assert [r["company_name"] for r in result.data] == ["Vendor 24", "Vendor 23", "Vendor 22"]
        assert result.meta.order.value == "desc"
        assert result.meta.order_by == "company_name"

    @pytest.mark.asyncio
    async def test_invalid_order_sorts_ascending(self, session, cache):
        result = await _page(session, cache, {"order": "sideways", "limit": "2"})

        assert [r["company_name"] for r in result.data] == ["Vendor 00", "Vendor 01"]

    @pytest.mark.asyncio
    async def test_unknown_order_by_column_is_ignored(self, session, cache):
        result = await _page(session, cache, {"order_by": "no_such_column"})

        assert result.meta.total == SEED_COUNT

    @pytest.mark.asyncio
    async def test_resource_model(self, session, cache):
        from querypager.schemas.vendor import VendorOut

        result = await _page(session, cache, {"limit": "1"}, resource=VendorOut)

        assert isinstance(result.data[0], VendorOut)
        assert result.data[0].company_name == "Vendor 00"

    @pytest.mark.asyncio
    async def test_results_are_cached_until_tag_flush(self, session, cache):
        first = await _page(session, cache, {"limit": "50"})
        assert first.meta.total == SEED_COUNT

        session.add(make_vendor(SEED_COUNT))
        await session.commit()

        cached = await _page(session, cache, {"limit": "50"})
        assert cached.meta.total == SEED_COUNT

        await cache.flush_tags(["vendors"])
        fresh = await _page(session, cache, {"limit": "50"})
        assert fresh.meta.total == SEED_COUNT + 1

    @pytest.mark.asyncio
    async def test_custom_cache_tags(self, session, cache):
        config = PaginationConfig(search_columns=["company_name"], cacheTags=["directory"])

        await _page(session, cache, {}, config=config)

        assert await cache.flush_tags(["vendors"]) == 0
        assert await cache.flush_tags(["directory"]) == 1


class TestExport:
    """Test the export path end to end."""

    @staticmethod
    def _sheet(file: ExportFile) -> list[tuple]:
        ws = load_workbook(io.BytesIO(file.content)).active
        return list(ws.iter_rows(values_only=True))

    @pytest.mark.asyncio
    async def test_export_all_ignores_filters_and_limit(self, session, cache):
        params = {"export": "all", "search": "Vendor 1", "status": "active", "limit": "5"}
        result = await _pagination(session, cache, params).process()

        assert isinstance(result, ExportFile)
        assert result.filename.startswith("export-")
        assert result.filename.endswith(".xlsx")
        rows = self._sheet(result)
        assert len(rows) == SEED_COUNT + 1

    @pytest.mark.asyncio
    async def test_export_filtered_applies_filters_but_not_limit(self, session, cache):
        params = {"export": "filtered", "search": "Vendor 1", "limit": "5", "order": "desc", "order_by": "company_name"}
        result = await _pagination(session, cache, params).process()

        rows = self._sheet(result)
        headings, data = rows[0], rows[1:]
        name_col = headings.index("company_name")
        assert len(data) == 10
        assert data[0][name_col] == "Vendor 19"

    @pytest.mark.asyncio
    async def test_default_headings_come_from_first_row(self, session, cache):
        vendor = (await session.execute(select(Vendor).limit(1))).scalars().first()
        result = await _pagination(session, cache, {"export": "all"}).process()

        assert list(self._sheet(result)[0]) == list(row_to_dict(vendor).keys())

    @pytest.mark.asyncio
    async def test_configured_headings_and_mapper(self, session, cache):
        config = PaginationConfig(
            filter_columns=["status"],
            export={"headings": ["Name", "Rating"], "mapper": lambda v: [v.company_name, v.rating]},
        )
        params = {"export": "filtered", "status": "suspended", "order_by": "company_name"}
        result = await _pagination(session, cache, params, config=config).process()

        rows = self._sheet(result)
        assert rows[0] == ("Name", "Rating")
        assert rows[1] == ("Vendor 00", 0)
        assert len(rows) == 10

    @pytest.mark.asyncio
    async def test_empty_export_has_no_headings(self, session, cache):
        params = {"export": "filtered", "search": "nothing-like-this"}
        result = await _pagination(session, cache, params).process()

        rows = self._sheet(result)
        assert all(value is None for row in rows for value in row)


class RecordingQuery:
    """Query adapter double that records every call."""

    table_name = "widgets"

    def __init__(self):
        self.calls = []

    def where(self, column, operator="=", value=None):
        self.calls.append(("where", column, operator, value))
        return self

    def or_where(self, column, operator="=", value=None):
        self.calls.append(("or_where", column, operator, value))
        return self

    def reorder(self, column, direction="asc"):
        self.calls.append(("reorder", column, direction))
        return self

    def offset(self, n):
        self.calls.append(("offset", n))
        return self

    def limit(self, n):
        self.calls.append(("limit", n))
        return self

    async def get(self):
        self.calls.append(("get",))
        return []

    async def count(self):
        self.calls.append(("count",))
        return 0


class TestPipelineOrder:
    """Test that the steps always run in the same order."""

    PARAMS = {
        "search": "foo",
        "status": "active",
        "filter": "mine",
        "range": "rating",
        "range_start": "1",
        "range_end": "4",
        "order_by": "name",
        "order": "desc",
        "page": "3",
        "limit": "10",
    }

    CONFIG = PaginationConfig(
        search_columns=SearchColumns(columns=("name", "email")),
        filter_columns=["status"],
        filters={"mine": lambda q: q.where("owner", "=", "me")},
    )

    @pytest.mark.asyncio
    async def test_paginate_order(self, cache):
        query = RecordingQuery()
        await Pagination(query, PaginationRequest(self.PARAMS), cache, config=self.CONFIG).process()

        assert query.calls == [
            ("where", "name", "like", "%foo%"),
            ("or_where", "email", "like", "%foo%"),
            ("where", "status", "=", "active"),
            ("where", "owner", "=", "me"),
            ("where", "rating", ">=", "1"),
            ("where", "rating", "<=", "4"),
            ("reorder", "name", "desc"),
            ("count",),
            ("offset", 20),
            ("limit", 10),
            ("get",),
        ]

    @pytest.mark.asyncio
    async def test_export_all_only_fetches(self, cache):
        query = RecordingQuery()
        params = {**self.PARAMS, "export": "all"}
        await Pagination(query, PaginationRequest(params), cache, config=self.CONFIG).process()

        assert query.calls == [("get",)]

    @pytest.mark.asyncio
    async def test_export_filtered_skips_bounds(self, cache):
        query = RecordingQuery()
        params = {**self.PARAMS, "export": "filtered"}
        await Pagination(query, PaginationRequest(params), cache, config=self.CONFIG).process()

        names = [call[0] for call in query.calls]
        assert "offset" not in names
        assert "limit" not in names
        assert names[-2:] == ["reorder", "get"]

    def test_cache_key_ignores_unknown_filter_names(self, cache):
        known = Pagination(RecordingQuery(), PaginationRequest({}), cache, config=self.CONFIG)
        unknown = Pagination(RecordingQuery(), PaginationRequest({"filter": "nope"}), cache, config=self.CONFIG)

        assert known.cache_key() == unknown.cache_key()

    def test_cache_key_is_independent_of_parameter_order(self, cache):
        a = Pagination(RecordingQuery(), PaginationRequest({"status": "active", "page": "2"}), cache, config=self.CONFIG)
        b = Pagination(RecordingQuery(), PaginationRequest({"page": "2", "status": "active"}), cache, config=self.CONFIG)

        assert a.cache_key().digest() == b.cache_key().digest()
