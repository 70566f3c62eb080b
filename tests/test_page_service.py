"""Tests for the page service module."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from oohunt.db.filters import PageFilter, Pagination, page_sort
from oohunt.db.models import Page, PageStatus, Product
from oohunt.db.schemas import PageInput
from oohunt.db.services.page_service import (
    PAGE_NOT_FOUND_MESSAGE,
    REQUIRED_FIELDS_MESSAGE,
    SLUG_IN_USE_MESSAGE,
    create_page,
    delete_page,
    get_page_by_id,
    get_page_by_slug,
    get_published_page_by_slug,
    list_pages,
    list_published_pages,
    update_page,
)
from oohunt.lib.exceptions import ConflictError, NotFoundError, ValidationError
from oohunt.lib.hooks import AFTER_PAGE_SAVE, BEFORE_PAGE_DELETE, PRODUCT_REFERENCE, hooks


def page_input(**overrides) -> PageInput:
    data = {"title": "Hello", "slug": "hello", "content": "Body text"}
    data.update(overrides)
    return PageInput(**data)


async def add_product(db_session, **fields) -> Product:
    product = Product(**{"title": "Widget", "price": 9.5, "image": "w.png", "rating": 4.0, **fields})
    db_session.add(product)
    await db_session.commit()
    return product


class TestCreatePage:
    """Tests for create_page()."""

    @pytest.mark.asyncio
    async def test_defaults_to_draft(self, db_session):
        page = await create_page(db_session, page_input())

        assert page.status == PageStatus.DRAFT
        assert page.author == "Unknown"
        assert page.excerpt == ""
        assert page.categories == []
        assert page.product_ids == []
        assert page.seo_data == {}
        assert page.published_at is None

    @pytest.mark.asyncio
    async def test_published_page_gets_published_at(self, db_session):
        before = datetime.now(UTC)
        page = await create_page(db_session, page_input(status="published"))

        assert page.published_at is not None
        assert page.published_at >= before

    @pytest.mark.asyncio
    async def test_explicit_published_at_is_kept(self, db_session):
        stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        page = await create_page(db_session, page_input(status="published", publishedAt=stamp))

        assert page.published_at == stamp

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["title", "slug", "content"])
    async def test_missing_required_field(self, db_session, missing):
        with pytest.raises(ValidationError) as exc_info:
            await create_page(db_session, page_input(**{missing: None}))

        assert exc_info.value.message == REQUIRED_FIELDS_MESSAGE

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await create_page(db_session, page_input(title="   "))

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflicts_regardless_of_status(self, db_session):
        await create_page(db_session, page_input(status="archived"))

        with pytest.raises(ConflictError) as exc_info:
            await create_page(db_session, page_input(title="Other"))

        assert exc_info.value.message == SLUG_IN_USE_MESSAGE

    @pytest.mark.asyncio
    async def test_fires_save_hooks(self, db_session, clean_hooks):
        seen = []

        async def on_save(page, is_new):
            seen.append((page.slug, is_new))

        hooks.add_action(AFTER_PAGE_SAVE, on_save)
        await create_page(db_session, page_input())

        assert seen == [("hello", True)]


class TestUpdatePage:
    """Tests for update_page()."""

    @pytest.mark.asyncio
    async def test_partial_update_leaves_other_fields(self, db_session):
        page = await create_page(db_session, page_input(excerpt="Short", tags=["t1"]))

        updated = await update_page(db_session, page.id, PageInput(title="New title"))

        assert updated.title == "New title"
        assert updated.excerpt == "Short"
        assert updated.tags == ["t1"]

    @pytest.mark.asyncio
    async def test_bumps_updated_at(self, db_session):
        page = await create_page(db_session, page_input())
        original = page.updated_at

        updated = await update_page(db_session, page.id, PageInput(excerpt="x"))

        assert updated.updated_at >= original

    @pytest.mark.asyncio
    async def test_first_publish_stamps_published_at(self, db_session):
        page = await create_page(db_session, page_input())

        updated = await update_page(db_session, page.id, PageInput(status="published"))

        assert updated.status == PageStatus.PUBLISHED
        assert updated.published_at is not None

    @pytest.mark.asyncio
    async def test_republish_keeps_original_published_at(self, db_session):
        stamp = datetime(2023, 5, 1, tzinfo=UTC)
        page = await create_page(db_session, page_input(status="published", publishedAt=stamp))
        await update_page(db_session, page.id, PageInput(status="draft"))

        updated = await update_page(db_session, page.id, PageInput(status="published"))

        assert updated.published_at == stamp

    @pytest.mark.asyncio
    async def test_published_page_without_stamp_gets_one_on_update(self, db_session):
        page = await create_page(db_session, page_input(status="published"))
        page.published_at = None
        await db_session.commit()

        updated = await update_page(db_session, page.id, PageInput(title="Renamed"))

        assert updated.status == PageStatus.PUBLISHED
        assert updated.published_at is not None

    @pytest.mark.asyncio
    async def test_slug_conflict(self, db_session):
        await create_page(db_session, page_input(slug="taken"))
        page = await create_page(db_session, page_input(slug="mine"))

        with pytest.raises(ConflictError):
            await update_page(db_session, page.id, PageInput(slug="taken"))

    @pytest.mark.asyncio
    async def test_same_slug_is_not_a_conflict(self, db_session):
        page = await create_page(db_session, page_input())

        updated = await update_page(db_session, page.id, PageInput(slug="hello", title="Again"))

        assert updated.slug == "hello"

    @pytest.mark.asyncio
    async def test_blank_content_rejected(self, db_session):
        page = await create_page(db_session, page_input())

        with pytest.raises(ValidationError):
            await update_page(db_session, page.id, PageInput(content=""))

    @pytest.mark.asyncio
    async def test_unknown_page(self, db_session):
        with pytest.raises(NotFoundError):
            await update_page(db_session, uuid4(), PageInput(title="x"))


class TestDeletePage:
    """Tests for delete_page()."""

    @pytest.mark.asyncio
    async def test_deletes_and_fires_hooks(self, db_session, clean_hooks):
        before = AsyncMock()
        hooks.add_action(BEFORE_PAGE_DELETE, before)
        page = await create_page(db_session, page_input())

        await delete_page(db_session, page.id)

        before.assert_awaited_once()
        with pytest.raises(NotFoundError):
            await get_page_by_id(db_session, page.id)

    @pytest.mark.asyncio
    async def test_unknown_page(self, db_session):
        with pytest.raises(NotFoundError):
            await delete_page(db_session, uuid4())


class TestReads:
    """Tests for slug lookups and listings."""

    @pytest.mark.asyncio
    async def test_get_page_by_slug_published_only(self, db_session):
        await create_page(db_session, page_input())

        assert await get_page_by_slug(db_session, "hello") is not None
        assert await get_page_by_slug(db_session, "hello", published_only=True) is None

    @pytest.mark.asyncio
    async def test_slug_lookup_is_exact(self, db_session):
        await create_page(db_session, page_input(status="published"))

        assert await get_page_by_slug(db_session, "Hello") is None

    @pytest.mark.asyncio
    async def test_list_published_pages_newest_first(self, db_session):
        await create_page(
            db_session, page_input(slug="old", status="published", publishedAt=datetime(2022, 1, 1, tzinfo=UTC))
        )
        await create_page(
            db_session, page_input(slug="new", status="published", publishedAt=datetime(2024, 1, 1, tzinfo=UTC))
        )
        await create_page(db_session, page_input(slug="draft"))

        pages = await list_published_pages(db_session)

        assert [page.slug for page in pages] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_list_published_pages_limit(self, db_session):
        for i in range(3):
            await create_page(db_session, page_input(slug=f"p{i}", status="published"))

        assert len(await list_published_pages(db_session, limit=2)) == 2

    @pytest.mark.asyncio
    async def test_list_pages_pagination_and_counts(self, db_session):
        for i in range(5):
            await create_page(db_session, page_input(slug=f"p{i}", title=f"Page {i}"))

        result = await list_pages(db_session, pagination=Pagination(page=2, limit=2), sort=page_sort("title", "asc"))

        assert result.total_items == 5
        assert result.total_pages == 3
        assert result.current_page == 2
        assert [page.slug for page in result.items] == ["p2", "p3"]

    @pytest.mark.asyncio
    async def test_list_pages_search_and_status(self, db_session):
        await create_page(db_session, page_input(slug="apple", title="Apple pie", status="published"))
        await create_page(db_session, page_input(slug="pear", title="Pear tart"))

        result = await list_pages(db_session, PageFilter.from_query(search="APPLE", status="all"))
        assert [page.slug for page in result.items] == ["apple"]

        result = await list_pages(db_session, PageFilter.from_query(status="draft"))
        assert [page.slug for page in result.items] == ["pear"]


class TestGetPublishedPageBySlug:
    """Tests for get_published_page_by_slug()."""

    @pytest.mark.asyncio
    async def test_draft_is_not_found(self, db_session):
        await create_page(db_session, page_input())

        with pytest.raises(NotFoundError) as exc_info:
            await get_published_page_by_slug(db_session, "hello")

        assert exc_info.value.message == PAGE_NOT_FOUND_MESSAGE

    @pytest.mark.asyncio
    async def test_resolves_published_products(self, db_session):
        shown = await add_product(db_session, slug="widget")
        hidden = await add_product(db_session, title="Hidden", status="draft")
        ids = [str(shown.id), str(hidden.id), str(uuid4()), "not-a-uuid"]
        await create_page(db_session, page_input(status="published", productIds=ids))

        resolved = await get_published_page_by_slug(db_session, "hello")

        assert resolved.resolution_error is None
        assert [product.id for product in resolved.products] == [str(shown.id)]
        assert resolved.products[0].url == "/product/widget"
        assert resolved.products[0].image == "w.png"

    @pytest.mark.asyncio
    async def test_product_lookup_failure_still_serves_page(self, db_session, monkeypatch):
        from sqlalchemy.exc import OperationalError

        from oohunt.db.services import product_service

        page = await create_page(db_session, page_input(status="published", productIds=[str(uuid4())]))
        original_execute = db_session.execute

        async def failing_execute(statement, *args, **kwargs):
            if "products" in str(statement):
                raise OperationalError("SELECT", {}, Exception("database is gone"))
            return await original_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", failing_execute)
        monkeypatch.setattr(db_session, "rollback", AsyncMock())

        resolution = await product_service.resolve_product_references(db_session, page.product_ids)

        assert resolution.failed
        assert resolution.products == []
        assert resolution.unresolved == page.product_ids

    @pytest.mark.asyncio
    async def test_product_reference_filter(self, db_session, clean_hooks):
        product = await add_product(db_session)
        await create_page(db_session, page_input(status="published", productIds=[str(product.id)]))

        def retitle(reference, product):
            return reference.model_copy(update={"title": reference.title.upper()})

        hooks.add_filter(PRODUCT_REFERENCE, retitle)
        resolved = await get_published_page_by_slug(db_session, "hello")

        assert resolved.products[0].title == "WIDGET"

    @pytest.mark.asyncio
    async def test_page_without_products_skips_lookup(self, db_session):
        await create_page(db_session, page_input(status="published"))

        resolved = await get_published_page_by_slug(db_session, "hello")

        assert isinstance(resolved.page, Page)
        assert resolved.products == []
