"""Pydantic shapes for request bodies and JSON payloads.

Payloads use camelCase keys and expose the row id as ``_id``; models are
validated straight from ORM rows and dumped with ``dump``.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from oohunt.db.models import ContactStatus, PageStatus, SubscriptionSource


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def dump(model: type[BaseModel], obj: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate ``obj`` (usually an ORM row) as ``model`` and return its JSON payload."""
    return model.model_validate(obj).model_dump(mode="json", by_alias=True, **kwargs)


class Timestamped(CamelModel):
    id: UUID = Field(serialization_alias="_id")
    created_at: datetime
    updated_at: datetime


# Pages


class PageSummary(Timestamped):
    """Public list projection. Never carries the page body."""

    title: str
    slug: str
    excerpt: str = ""
    author: str = "Unknown"
    featured_image: str = ""
    categories: list[str] = []
    tags: list[str] = []
    seo_data: dict[str, Any] = {}
    published_at: datetime | None = None


class PageAdminSummary(PageSummary):
    status: PageStatus
    product_ids: list[str] = []


class PageDetail(PageAdminSummary):
    content: str


class ProductReference(BaseModel):
    """Display-only projection of a product embedded in a page."""

    id: str
    title: str
    price: float = 0
    image: str | None = None
    rating: float = 0
    url: str


class PageInput(CamelModel):
    """Body for page create and update. Unset fields are left alone on update."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: str | None = None
    slug: str | None = None
    content: str | None = None
    excerpt: str | None = None
    featured_image: str | None = None
    status: PageStatus | None = None
    author: str | None = None
    categories: list[str] | None = None
    tags: list[str] | None = None
    product_ids: list[str] | None = None
    seo_data: dict[str, Any] | None = None
    published_at: datetime | None = None


# Taxonomy


class TagOut(Timestamped):
    name: str
    slug: str


class CategoryOut(Timestamped):
    name: str
    slug: str
    description: str = ""
    parent_id: str | None = None


class TaxonomyInput(CamelModel):
    """Body for tag and category writes. Tags ignore description and parentId."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str | None = None
    slug: str | None = None
    description: str | None = None
    parent_id: str | None = None


# Products


class ProductPickerItem(BaseModel):
    id: str
    asin: str | None = None
    title: str
    image: str | None = None
    price: float = 0
    rating: float = 0
    sku: str = ""


class ProductInput(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: str | None = None
    slug: str | None = None
    asin: str | None = None
    sku: str = ""
    description: str = ""
    category_id: str | None = None
    price: float | None = None
    sale_price: float | None = None
    rating: float | None = None
    image: str | None = None
    primary_image: str | None = None
    featured_image: str | None = None
    images: list[str] = []
    status: str = "published"


# Contact and subscriptions


class ContactOut(Timestamped):
    name: str
    email: str
    subject: str
    message: str
    status: ContactStatus


class ContactInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    email: str | None = None
    subject: str | None = None
    message: str | None = None


class ContactStatusInput(BaseModel):
    status: str | None = None


class SubscriptionOut(Timestamped):
    email: str
    source_type: SubscriptionSource
    form_id: str | None = None
    is_active: bool


class SubscriptionStatusInput(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    # Left untyped so a non-boolean reaches the service and is rejected there
    is_active: Any = None


class SubscribeInput(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    email: str | None = None
    source_type: str = "general"
    form_id: str | None = None
