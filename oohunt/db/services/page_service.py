"""Page service for CRUD operations on CMS content pages."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer

from oohunt.db.filters import Paged, PageFilter, Pagination, Sort, page_sort
from oohunt.db.models import Page, PageStatus
from oohunt.db.schemas import PageInput, ProductReference
from oohunt.db.services import product_service
from oohunt.lib.exceptions import ConflictError, NotFoundError, ValidationError
from oohunt.lib.hooks import AFTER_PAGE_DELETE, AFTER_PAGE_SAVE, BEFORE_PAGE_DELETE, BEFORE_PAGE_SAVE, hooks

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Title, slug and content are required"
SLUG_IN_USE_MESSAGE = "This URL path is already in use, please choose another"
PAGE_NOT_FOUND_MESSAGE = "Page not found or not published"


@dataclass
class ResolvedPage:
    """A published page together with its embedded product projections."""

    page: Page
    products: list[ProductReference] = field(default_factory=list)
    resolution_error: str | None = None


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


async def _commit(db_session: AsyncSession) -> None:
    # The slug check and the write are not atomic; a concurrent writer can still win.
    try:
        await db_session.commit()
    except IntegrityError as exc:
        await db_session.rollback()
        raise ConflictError(SLUG_IN_USE_MESSAGE) from exc


async def get_page_by_slug(
    db_session: AsyncSession,
    slug: str,
    published_only: bool = False,
) -> Page | None:
    """Get a single page by slug.

    Args:
        db_session: Database session
        slug: Page slug, compared exactly
        published_only: Only return the page when it is published

    Returns:
        Page object or None if not found
    """
    query = select(Page).where(Page.slug == slug)
    if published_only:
        query = query.where(Page.status == PageStatus.PUBLISHED)

    result = await db_session.execute(query)
    return result.scalar_one_or_none()


async def get_page_by_id(db_session: AsyncSession, page_id: UUID) -> Page:
    """Get a page by id regardless of status.

    Raises:
        NotFoundError: no page has this id
    """
    page = await db_session.get(Page, page_id)
    if page is None:
        raise NotFoundError("Page not found")
    return page


async def get_published_page_by_slug(db_session: AsyncSession, slug: str) -> ResolvedPage:
    """Published page for public rendering, with its products resolved.

    A product lookup failure does not fail the page: the page is served with
    no products and the failure is logged.

    Raises:
        NotFoundError: no published page has this slug
    """
    page = await get_page_by_slug(db_session, slug, published_only=True)
    if page is None:
        raise NotFoundError(PAGE_NOT_FOUND_MESSAGE)

    if not page.product_ids:
        return ResolvedPage(page=page)

    resolution = await product_service.resolve_product_references(db_session, page.product_ids)
    if resolution.failed:
        logger.warning("Serving page %r without products: %s", slug, resolution.error)
    elif resolution.unresolved:
        logger.debug("Page %r references unresolved products %s", slug, resolution.unresolved)

    return ResolvedPage(page=page, products=resolution.products, resolution_error=resolution.error)


async def list_published_pages(db_session: AsyncSession, limit: int = 20) -> list[Page]:
    """Newest published pages first, without loading page bodies."""
    query = (
        select(Page)
        .options(defer(Page.content))
        .where(Page.status == PageStatus.PUBLISHED)
        .order_by(Page.published_at.desc().nullslast(), Page.created_at.desc())
        .limit(limit)
    )
    result = await db_session.execute(query)
    return list(result.scalars().all())


async def list_pages(
    db_session: AsyncSession,
    page_filter: PageFilter | None = None,
    pagination: Pagination | None = None,
    sort: Sort | None = None,
) -> Paged[Page]:
    """Admin listing of pages in any status.

    Args:
        db_session: Database session
        page_filter: Search and status restrictions
        pagination: Page number and size (defaults to 10 per page)
        sort: Sort key from the page sort whitelist (defaults to updatedAt desc)

    Returns:
        Paged result of Page objects without their bodies
    """
    page_filter = page_filter or PageFilter()
    pagination = pagination or Pagination(limit=10)
    sort = sort or page_sort()
    where = page_filter.where()

    total = await db_session.scalar(select(func.count()).select_from(Page).where(*where))
    query = (
        select(Page)
        .options(defer(Page.content))
        .where(*where)
        .order_by(sort.order_by(), Page.id)
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    result = await db_session.execute(query)
    return Paged(items=list(result.scalars().all()), total_items=total or 0, pagination=pagination)


async def create_page(db_session: AsyncSession, data: PageInput) -> Page:
    """Create a new page.

    Args:
        db_session: Database session
        data: Page fields; title, slug and content are required

    Returns:
        Created Page object

    Raises:
        ValidationError: a required field is missing or blank
        ConflictError: any page already uses the slug
    """
    if _blank(data.title) or _blank(data.slug) or _blank(data.content):
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    if await get_page_by_slug(db_session, data.slug) is not None:
        raise ConflictError(SLUG_IN_USE_MESSAGE)

    status = data.status or PageStatus.DRAFT
    published_at = data.published_at
    if status == PageStatus.PUBLISHED and published_at is None:
        published_at = datetime.now(UTC)

    page = Page(
        title=data.title,
        slug=data.slug,
        content=data.content,
        excerpt=data.excerpt or "",
        featured_image=data.featured_image or "",
        status=status,
        author=data.author or "Unknown",
        categories=list(data.categories or []),
        tags=list(data.tags or []),
        product_ids=list(data.product_ids or []),
        seo_data=dict(data.seo_data or {}),
        published_at=published_at,
    )

    await hooks.do_action(BEFORE_PAGE_SAVE, page, is_new=True)

    db_session.add(page)
    await _commit(db_session)
    await db_session.refresh(page)

    await hooks.do_action(AFTER_PAGE_SAVE, page, is_new=True)

    logger.info("Created page %s (%s)", page.id, page.slug)
    return page


# Fields an update may set directly; anything else in the body is ignored
_UPDATABLE_FIELDS = (
    "title",
    "slug",
    "content",
    "excerpt",
    "featured_image",
    "status",
    "author",
    "categories",
    "tags",
    "product_ids",
    "seo_data",
    "published_at",
)
_REQUIRED_ON_UPDATE = ("title", "slug", "content")


async def update_page(db_session: AsyncSession, page_id: UUID, data: PageInput) -> Page:
    """Apply a partial update to a page.

    Only fields present in ``data`` change. The first transition into
    published stamps ``published_at`` unless the page already has one or the
    update supplies one.

    Raises:
        NotFoundError: no page has this id
        ValidationError: title, slug or content set to blank
        ConflictError: the new slug belongs to a different page
    """
    page = await get_page_by_id(db_session, page_id)
    changes = data.model_dump(include=set(_UPDATABLE_FIELDS), exclude_unset=True)

    for name in _REQUIRED_ON_UPDATE:
        if name in changes and _blank(changes[name]):
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    new_slug = changes.get("slug")
    if new_slug is not None and new_slug != page.slug:
        existing = await get_page_by_slug(db_session, new_slug)
        if existing is not None and existing.id != page.id:
            raise ConflictError(SLUG_IN_USE_MESSAGE)

    await hooks.do_action(BEFORE_PAGE_SAVE, page, is_new=False)

    for name, value in changes.items():
        if value is None and name != "published_at":
            continue
        setattr(page, name, value)

    if page.status == PageStatus.PUBLISHED and page.published_at is None:
        page.published_at = datetime.now(UTC)

    page.updated_at = datetime.now(UTC)

    await _commit(db_session)
    await db_session.refresh(page)

    await hooks.do_action(AFTER_PAGE_SAVE, page, is_new=False)

    return page


async def delete_page(db_session: AsyncSession, page_id: UUID) -> None:
    """Delete a page.

    Raises:
        NotFoundError: no page has this id
    """
    page = await get_page_by_id(db_session, page_id)

    await hooks.do_action(BEFORE_PAGE_DELETE, page)

    await db_session.delete(page)
    await db_session.commit()

    await hooks.do_action(AFTER_PAGE_DELETE, page)
