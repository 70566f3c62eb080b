"""Tests for typed query filters."""

from uuid import UUID

import pytest

from oohunt.db.filters import (
    AnyParent,
    CategoryFilter,
    PageFilter,
    Paged,
    Pagination,
    ParentIs,
    RootOnly,
    TextSearch,
    page_sort,
    parse_id,
    parse_parent_filter,
)
from oohunt.db.models import PageStatus
from oohunt.lib.exceptions import ValidationError


class TestParentFilter:
    @pytest.mark.parametrize("raw", [None, ""])
    def test_absent_means_any_parent(self, raw):
        assert parse_parent_filter(raw) == AnyParent()
        assert AnyParent().clause() is None

    def test_null_sentinel_means_root_only(self):
        assert parse_parent_filter("null") == RootOnly()

    def test_other_values_are_parent_ids(self):
        assert parse_parent_filter("abc") == ParentIs("abc")

    def test_category_filter_compiles_parent_clause(self):
        assert len(CategoryFilter.from_query(parent_id="null").where()) == 1
        assert CategoryFilter.from_query().where() == []


class TestTextSearch:
    def test_blank_search_is_no_search(self):
        assert TextSearch.parse("   ") is None
        assert TextSearch.parse(None) is None

    def test_term_is_trimmed(self):
        assert TextSearch.parse("  kettle ").term == "kettle"

    def test_direct_blank_term_rejected(self):
        with pytest.raises(ValidationError):
            TextSearch("  ")


class TestPageFilter:
    def test_all_status_means_unfiltered(self):
        assert PageFilter.from_query(status="all").status is None

    def test_known_status(self):
        assert PageFilter.from_query(status="archived").status is PageStatus.ARCHIVED

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            PageFilter.from_query(status="deleted")


class TestPagination:
    def test_offset(self):
        assert Pagination(page=3, limit=10).offset == 20

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (1, 501)])
    def test_bounds(self, page, limit):
        with pytest.raises(ValidationError):
            Pagination(page=page, limit=limit)

    def test_paged_payload(self):
        paged = Paged(items=[1, 2], total_items=21, pagination=Pagination(page=2, limit=10))

        assert paged.payload("pages", ["a", "b"]) == {
            "pages": ["a", "b"],
            "totalPages": 3,
            "currentPage": 2,
            "totalItems": 21,
        }

    def test_empty_result_has_zero_pages(self):
        assert Paged(items=[], total_items=0, pagination=Pagination()).total_pages == 0


class TestSort:
    def test_whitelisted_key(self):
        assert page_sort("title", "asc").key == "title"

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError, match="sortBy"):
            page_sort("content")

    def test_unknown_order_rejected(self):
        with pytest.raises(ValidationError, match="sortOrder"):
            page_sort("title", "sideways")


class TestParseId:
    def test_valid(self):
        raw = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"
        assert parse_id(raw) == UUID(raw)

    def test_invalid(self):
        with pytest.raises(ValidationError, match="Invalid page id: nope"):
            parse_id("nope", "page id")
