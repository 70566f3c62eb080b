"""Product lookups for CMS pages and the product picker."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.db.filters import Paged, Pagination, ProductFilter, Sort, product_sort
from oohunt.db.models import Product
from oohunt.db.models.product import PRODUCT_PUBLISHED
from oohunt.db.schemas import ProductInput, ProductPickerItem, ProductReference
from oohunt.lib import observability
from oohunt.lib.exceptions import ConflictError, ValidationError
from oohunt.lib.hooks import AFTER_PRODUCT_SAVE, PRODUCT_REFERENCE, hooks

logger = logging.getLogger(__name__)


@dataclass
class ProductResolution:
    """Outcome of resolving a page's product ids.

    ``unresolved`` holds ids that were malformed or matched no published
    product. ``error`` is set only when the lookup itself failed, in which case
    every id is unresolved.
    """

    products: list[ProductReference] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def product_image(product: Product, include_featured: bool = False) -> str | None:
    """First available image: explicit image, primary image, (featured image,) then the gallery."""
    candidates = [product.image, product.primary_image]
    if include_featured:
        candidates.append(product.featured_image)
    candidates.extend(product.images or [])
    return next((image for image in candidates if image), None)


def to_reference(product: Product) -> ProductReference:
    return ProductReference(
        id=str(product.id),
        title=product.title,
        price=product.price or 0,
        image=product_image(product),
        rating=product.rating or 0,
        url=f"/product/{product.slug or product.id}",
    )


def to_picker_item(product: Product) -> ProductPickerItem:
    return ProductPickerItem(
        id=str(product.id),
        asin=product.asin or None,
        title=product.title,
        image=product_image(product, include_featured=True),
        price=product.price or product.sale_price or 0,
        rating=product.rating or 0,
        sku=product.sku or "",
    )


def _split_ids(product_ids: Sequence[str]) -> tuple[dict[str, UUID], list[str]]:
    parsed: dict[str, UUID] = {}
    malformed: list[str] = []
    for raw in product_ids:
        try:
            parsed[raw] = UUID(str(raw))
        except ValueError:
            malformed.append(raw)
    return parsed, malformed


async def resolve_product_references(
    db_session: AsyncSession,
    product_ids: Sequence[str],
) -> ProductResolution:
    """Resolve product ids to display projections with a single batch query.

    Only published products resolve. The result is not ordered like the
    input, and a repeated id yields one projection.

    Args:
        db_session: Database session
        product_ids: Stringified product ids, as stored on a page

    Returns:
        ProductResolution with the projections that resolved
    """
    parsed, malformed = _split_ids(product_ids)
    if not parsed:
        return ProductResolution(unresolved=malformed)

    query = select(Product).where(
        Product.id.in_(set(parsed.values())),
        Product.status == PRODUCT_PUBLISHED,
    )
    try:
        with observability.span("resolve products", count=len(parsed)):
            result = await db_session.execute(query)
    except SQLAlchemyError as exc:
        await db_session.rollback()
        logger.warning("Product lookup failed for %d ids", len(parsed), exc_info=True)
        return ProductResolution(unresolved=list(product_ids), error=str(exc))

    products = list(result.scalars().all())
    found = {product.id for product in products}
    unresolved = malformed + [raw for raw, uid in parsed.items() if uid not in found]

    references = [
        await hooks.apply_filters(PRODUCT_REFERENCE, to_reference(product), product)
        for product in products
    ]
    return ProductResolution(products=references, unresolved=unresolved)


async def search_products(
    db_session: AsyncSession,
    product_filter: ProductFilter,
    pagination: Pagination,
    sort: Sort | None = None,
) -> Paged[Product]:
    """Published products for the CMS product picker."""
    sort = sort or product_sort()
    where = product_filter.where()

    total = await db_session.scalar(select(func.count()).select_from(Product).where(*where))
    query = (
        select(Product)
        .where(*where)
        .order_by(sort.order_by(), Product.id)
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    result = await db_session.execute(query)
    return Paged(items=list(result.scalars().all()), total_items=total or 0, pagination=pagination)


async def get_product_by_slug(db_session: AsyncSession, slug: str) -> Product | None:
    result = await db_session.execute(select(Product).where(Product.slug == slug))
    return result.scalar_one_or_none()


async def create_product(db_session: AsyncSession, data: ProductInput) -> Product:
    """Create a manual catalog entry.

    Raises:
        ValidationError: title is missing
        ConflictError: another product already uses the slug
    """
    if not data.title or not data.title.strip():
        raise ValidationError("Product title is required")

    if data.slug and await get_product_by_slug(db_session, data.slug) is not None:
        raise ConflictError("This URL path is already in use, please choose another")

    product = Product(**data.model_dump())
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)

    await hooks.do_action(AFTER_PRODUCT_SAVE, product, is_new=True)

    return product
