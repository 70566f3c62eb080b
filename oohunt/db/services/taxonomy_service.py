"""Tags and categories, with post counts derived from published pages."""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.db.filters import CategoryFilter, Paged, Pagination, TagFilter
from oohunt.db.models import ContentCategory, ContentTag, Page, PageStatus
from oohunt.db.schemas import TaxonomyInput
from oohunt.lib.exceptions import ConflictError, NotFoundError, ValidationError
from oohunt.lib.hooks import (
    AFTER_CATEGORY_DELETE,
    AFTER_CATEGORY_SAVE,
    AFTER_TAG_DELETE,
    AFTER_TAG_SAVE,
    hooks,
)

logger = logging.getLogger(__name__)

TAG_LIST_LIMIT = 500
SLUG_IN_USE_MESSAGE = "This URL path is already in use, please choose another"


@dataclass(frozen=True)
class Taxonomy:
    """How one kind of term is stored and referenced from pages."""

    model: type
    page_column: Any
    label: str
    saved_hook: str
    deleted_hook: str


TAGS = Taxonomy(ContentTag, Page.tags, "Tag", AFTER_TAG_SAVE, AFTER_TAG_DELETE)
CATEGORIES = Taxonomy(ContentCategory, Page.categories, "Category", AFTER_CATEGORY_SAVE, AFTER_CATEGORY_DELETE)


@dataclass
class CountedTerm:
    term: ContentTag | ContentCategory
    post_count: int


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


async def published_reference_counts(db_session: AsyncSession, taxonomy: Taxonomy) -> Counter[str]:
    """Number of published pages referencing each term id.

    A page that lists the same id twice counts once.
    """
    result = await db_session.execute(
        select(taxonomy.page_column).where(Page.status == PageStatus.PUBLISHED)
    )
    counts: Counter[str] = Counter()
    for (term_ids,) in result:
        counts.update({str(term_id) for term_id in term_ids or []})
    return counts


async def count_referencing_pages(db_session: AsyncSession, taxonomy: Taxonomy, term_id: UUID) -> int:
    """Pages in any status that reference the term."""
    needle = str(term_id)
    result = await db_session.execute(select(taxonomy.page_column))
    return sum(1 for (term_ids,) in result if needle in (term_ids or []))


async def get_term(db_session: AsyncSession, taxonomy: Taxonomy, term_id: UUID):
    term = await db_session.get(taxonomy.model, term_id)
    if term is None:
        raise NotFoundError(f"{taxonomy.label} not found")
    return term


async def get_term_by_slug(db_session: AsyncSession, taxonomy: Taxonomy, slug: str):
    result = await db_session.execute(select(taxonomy.model).where(taxonomy.model.slug == slug))
    term = result.scalar_one_or_none()
    if term is None:
        raise NotFoundError(f"{taxonomy.label} not found")
    return term


async def with_post_count(db_session: AsyncSession, taxonomy: Taxonomy, term) -> CountedTerm:
    counts = await published_reference_counts(db_session, taxonomy)
    return CountedTerm(term=term, post_count=counts[str(term.id)])


async def _slug_taken(db_session: AsyncSession, taxonomy: Taxonomy, slug: str, exclude_id: UUID | None = None) -> bool:
    query = select(taxonomy.model.id).where(taxonomy.model.slug == slug)
    if exclude_id is not None:
        query = query.where(taxonomy.model.id != exclude_id)
    return (await db_session.execute(query)).first() is not None


async def _commit(db_session: AsyncSession) -> None:
    try:
        await db_session.commit()
    except IntegrityError as exc:
        await db_session.rollback()
        raise ConflictError(SLUG_IN_USE_MESSAGE) from exc


# Tags


async def list_tags(
    db_session: AsyncSession,
    tag_filter: TagFilter | None = None,
    limit: int = TAG_LIST_LIMIT,
) -> Paged[CountedTerm]:
    """Tags sorted by name, each with its published post count.

    Args:
        db_session: Database session
        tag_filter: Optional name/slug search
        limit: Maximum number of tags returned

    Returns:
        Paged result of CountedTerm. ``total_items`` counts every matching
        tag, not only the ones returned.
    """
    tag_filter = tag_filter or TagFilter()
    pagination = Pagination(limit=limit)
    where = tag_filter.where()

    total = await db_session.scalar(select(func.count()).select_from(ContentTag).where(*where))
    query = select(ContentTag).where(*where).order_by(ContentTag.name.asc()).limit(pagination.limit)
    tags = (await db_session.execute(query)).scalars().all()

    counts = await published_reference_counts(db_session, TAGS)
    items = [CountedTerm(term=tag, post_count=counts[str(tag.id)]) for tag in tags]
    return Paged(items=items, total_items=total or 0, pagination=pagination)


async def create_tag(db_session: AsyncSession, data: TaxonomyInput) -> ContentTag:
    if _blank(data.name) or _blank(data.slug):
        raise ValidationError("Tag name and slug are required")
    if await _slug_taken(db_session, TAGS, data.slug):
        raise ConflictError(SLUG_IN_USE_MESSAGE)

    tag = ContentTag(name=data.name, slug=data.slug)
    db_session.add(tag)
    await _commit(db_session)
    await db_session.refresh(tag)

    await hooks.do_action(AFTER_TAG_SAVE, tag, is_new=True)
    return tag


async def update_tag(db_session: AsyncSession, tag_id: UUID, data: TaxonomyInput) -> ContentTag:
    tag = await get_term(db_session, TAGS, tag_id)
    changes = data.model_dump(include={"name", "slug"}, exclude_unset=True)
    await _apply_common_changes(db_session, TAGS, tag, changes)

    tag.updated_at = datetime.now(UTC)
    await _commit(db_session)
    await db_session.refresh(tag)

    await hooks.do_action(AFTER_TAG_SAVE, tag, is_new=False)
    return tag


async def delete_tag(db_session: AsyncSession, tag_id: UUID) -> None:
    """Delete a tag that no page references.

    Raises:
        NotFoundError: no tag has this id
        ConflictError: at least one page (any status) uses the tag
    """
    tag = await get_term(db_session, TAGS, tag_id)

    in_use = await count_referencing_pages(db_session, TAGS, tag.id)
    if in_use:
        raise ConflictError(f"Cannot delete tag: {in_use} page(s) are using it")

    await db_session.delete(tag)
    await db_session.commit()

    await hooks.do_action(AFTER_TAG_DELETE, tag)


# Categories


async def list_categories(
    db_session: AsyncSession,
    category_filter: CategoryFilter | None = None,
    pagination: Pagination | None = None,
) -> Paged[CountedTerm]:
    """Categories sorted by name, one page at a time, each with its published post count.

    Args:
        db_session: Database session
        category_filter: Search text and parent restriction
        pagination: Page number and size (defaults to the first 500)

    Returns:
        Paged result of CountedTerm
    """
    category_filter = category_filter or CategoryFilter()
    pagination = pagination or Pagination(limit=TAG_LIST_LIMIT)
    where = category_filter.where()

    total = await db_session.scalar(select(func.count()).select_from(ContentCategory).where(*where))
    query = (
        select(ContentCategory)
        .where(*where)
        .order_by(ContentCategory.name.asc(), ContentCategory.id)
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    categories = (await db_session.execute(query)).scalars().all()

    counts = await published_reference_counts(db_session, CATEGORIES)
    items = [CountedTerm(term=category, post_count=counts[str(category.id)]) for category in categories]
    return Paged(items=items, total_items=total or 0, pagination=pagination)


async def _check_parent(db_session: AsyncSession, parent_id: str | None, category_id: UUID | None = None) -> None:
    if parent_id is None:
        return
    if category_id is not None and parent_id == str(category_id):
        raise ValidationError("A category cannot be its own parent")
    try:
        parent_uuid = UUID(parent_id)
    except ValueError:
        raise ValidationError(f"Invalid parentId: {parent_id}") from None
    if await db_session.get(ContentCategory, parent_uuid) is None:
        raise ValidationError("Parent category not found")


async def create_category(db_session: AsyncSession, data: TaxonomyInput) -> ContentCategory:
    if _blank(data.name) or _blank(data.slug):
        raise ValidationError("Category name and slug are required")
    if await _slug_taken(db_session, CATEGORIES, data.slug):
        raise ConflictError(SLUG_IN_USE_MESSAGE)

    parent_id = data.parent_id or None
    await _check_parent(db_session, parent_id)

    category = ContentCategory(
        name=data.name,
        slug=data.slug,
        description=data.description or "",
        parent_id=parent_id,
    )
    db_session.add(category)
    await _commit(db_session)
    await db_session.refresh(category)

    await hooks.do_action(AFTER_CATEGORY_SAVE, category, is_new=True)
    return category


async def update_category(db_session: AsyncSession, category_id: UUID, data: TaxonomyInput) -> ContentCategory:
    category = await get_term(db_session, CATEGORIES, category_id)
    changes = data.model_dump(include={"name", "slug", "description", "parent_id"}, exclude_unset=True)
    await _apply_common_changes(db_session, CATEGORIES, category, changes)

    if "description" in changes:
        category.description = changes["description"] or ""
    if "parent_id" in changes:
        parent_id = changes["parent_id"] or None
        await _check_parent(db_session, parent_id, category.id)
        category.parent_id = parent_id

    category.updated_at = datetime.now(UTC)
    await _commit(db_session)
    await db_session.refresh(category)

    await hooks.do_action(AFTER_CATEGORY_SAVE, category, is_new=False)
    return category


async def delete_category(db_session: AsyncSession, category_id: UUID) -> None:
    """Delete a category with no referencing pages and no subcategories.

    Raises:
        NotFoundError: no category has this id
        ConflictError: pages use the category, or it has subcategories
    """
    category = await get_term(db_session, CATEGORIES, category_id)

    in_use = await count_referencing_pages(db_session, CATEGORIES, category.id)
    if in_use:
        raise ConflictError(f"Cannot delete category: {in_use} page(s) are using it")

    children = await db_session.scalar(
        select(func.count()).select_from(ContentCategory).where(ContentCategory.parent_id == str(category.id))
    )
    if children:
        raise ConflictError("Cannot delete category: it has subcategories")

    await db_session.delete(category)
    await db_session.commit()

    await hooks.do_action(AFTER_CATEGORY_DELETE, category)


async def _apply_common_changes(db_session: AsyncSession, taxonomy: Taxonomy, term, changes: dict) -> None:
    if "name" in changes:
        if _blank(changes["name"]):
            raise ValidationError(f"{taxonomy.label} name must not be blank")
        term.name = changes["name"]

    if "slug" in changes:
        slug = changes["slug"]
        if _blank(slug):
            raise ValidationError(f"{taxonomy.label} slug must not be blank")
        if slug != term.slug and await _slug_taken(db_session, taxonomy, slug, exclude_id=term.id):
            raise ConflictError(SLUG_IN_USE_MESSAGE)
        term.slug = slug
