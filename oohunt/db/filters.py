"""Typed query filters for list operations.

Each filter validates its inputs on construction and knows how to turn itself
into SQLAlchemy clauses, so services never assemble conditions from loose
query-string values.
"""

import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, asc, desc, func, or_

from oohunt.db.models import (
    ContactMessage,
    ContactStatus,
    ContentCategory,
    ContentTag,
    Page,
    PageStatus,
    Product,
    Subscription,
)
from oohunt.db.models.product import PRODUCT_PUBLISHED
from oohunt.lib.exceptions import ValidationError

T = TypeVar("T")

SORT_ORDERS = ("asc", "desc")
ALL_STATUSES = "all"


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match across several columns."""

    term: str

    def __post_init__(self) -> None:
        if not self.term.strip():
            raise ValidationError("Search term must not be blank")

    @classmethod
    def parse(cls, raw: str | None) -> "TextSearch | None":
        if raw is None or not raw.strip():
            return None
        return cls(raw.strip())

    def clause(self, *columns) -> ColumnElement[bool]:
        needle = self.term.lower()
        return or_(*(func.lower(column).contains(needle, autoescape=True) for column in columns))


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 20
    max_limit: int = 500

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= self.limit <= self.max_limit:
            raise ValidationError(f"limit must be between 1 and {self.max_limit}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total_items: int) -> int:
        return math.ceil(total_items / self.limit)


@dataclass
class Paged(Generic[T]):
    """One page of a paginated query plus the counts the list payloads report."""

    items: list[T]
    total_items: int
    pagination: Pagination

    @property
    def total_pages(self) -> int:
        return self.pagination.total_pages(self.total_items)

    @property
    def current_page(self) -> int:
        return self.pagination.page

    def payload(self, key: str, items: list) -> dict:
        return {
            key: items,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "totalItems": self.total_items,
        }


@dataclass(frozen=True)
class Sort:
    """Sort key chosen from a whitelist of public (camelCase) field names."""

    key: str
    order: str
    columns: dict = field(repr=False, compare=False, default_factory=dict)

    def __post_init__(self) -> None:
        if self.key not in self.columns:
            allowed = ", ".join(sorted(self.columns))
            raise ValidationError(f"sortBy must be one of: {allowed}")
        if self.order not in SORT_ORDERS:
            raise ValidationError("sortOrder must be 'asc' or 'desc'")

    def order_by(self) -> ColumnElement:
        column = self.columns[self.key]
        return asc(column) if self.order == "asc" else desc(column)


# Parent filter variants for categories


@dataclass(frozen=True)
class AnyParent:
    """No restriction on the parent."""

    def clause(self) -> ColumnElement[bool] | None:
        return None


@dataclass(frozen=True)
class RootOnly:
    """Only categories without a parent."""

    def clause(self) -> ColumnElement[bool] | None:
        return ContentCategory.parent_id.is_(None)


@dataclass(frozen=True)
class ParentIs:
    parent_id: str

    def clause(self) -> ColumnElement[bool] | None:
        return ContentCategory.parent_id == self.parent_id


ParentFilter = AnyParent | RootOnly | ParentIs

# Query-string value that selects top-level categories
ROOT_PARENT_SENTINEL = "null"


def parse_parent_filter(raw: str | None) -> ParentFilter:
    """Map the ``parentId`` query value onto a parent filter.

    Absent or empty selects any parent, the literal ``"null"`` selects
    top-level categories, and anything else is an exact parent id.
    """
    if not raw:
        return AnyParent()
    if raw == ROOT_PARENT_SENTINEL:
        return RootOnly()
    return ParentIs(raw)


def _status(raw: str | None, allowed: type, label: str):
    if raw is None or raw == "" or raw == ALL_STATUSES:
        return None
    try:
        return allowed(raw)
    except ValueError:
        values = ", ".join(member.value for member in allowed)
        raise ValidationError(f"{label} must be one of: {values}, all") from None


PAGE_SORT_COLUMNS = {
    "updatedAt": Page.updated_at,
    "createdAt": Page.created_at,
    "publishedAt": Page.published_at,
    "title": Page.title,
}


@dataclass(frozen=True)
class PageFilter:
    search: TextSearch | None = None
    status: PageStatus | None = None

    @classmethod
    def from_query(cls, search: str | None = None, status: str | None = None) -> "PageFilter":
        return cls(search=TextSearch.parse(search), status=_status(status, PageStatus, "status"))

    def where(self) -> list[ColumnElement[bool]]:
        clauses = []
        if self.search is not None:
            clauses.append(self.search.clause(Page.title, Page.slug, Page.content))
        if self.status is not None:
            clauses.append(Page.status == self.status)
        return clauses


def page_sort(sort_by: str = "updatedAt", sort_order: str = "desc") -> Sort:
    return Sort(sort_by, sort_order, PAGE_SORT_COLUMNS)


@dataclass(frozen=True)
class TagFilter:
    search: TextSearch | None = None

    @classmethod
    def from_query(cls, search: str | None = None) -> "TagFilter":
        return cls(search=TextSearch.parse(search))

    def where(self) -> list[ColumnElement[bool]]:
        if self.search is None:
            return []
        return [self.search.clause(ContentTag.name, ContentTag.slug)]


@dataclass(frozen=True)
class CategoryFilter:
    search: TextSearch | None = None
    parent: ParentFilter = AnyParent()

    @classmethod
    def from_query(cls, search: str | None = None, parent_id: str | None = None) -> "CategoryFilter":
        return cls(search=TextSearch.parse(search), parent=parse_parent_filter(parent_id))

    def where(self) -> list[ColumnElement[bool]]:
        clauses = []
        if self.search is not None:
            clauses.append(
                self.search.clause(ContentCategory.name, ContentCategory.slug, ContentCategory.description)
            )
        parent_clause = self.parent.clause()
        if parent_clause is not None:
            clauses.append(parent_clause)
        return clauses


PRODUCT_SORT_COLUMNS = {
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
    "title": Product.title,
    "price": Product.price,
}


@dataclass(frozen=True)
class ProductFilter:
    """Published products only, optionally searched and narrowed to one category."""

    search: TextSearch | None = None
    category_id: str | None = None

    @classmethod
    def from_query(cls, search: str | None = None, category: str | None = None) -> "ProductFilter":
        return cls(search=TextSearch.parse(search), category_id=category or None)

    def where(self) -> list[ColumnElement[bool]]:
        clauses = [Product.status == PRODUCT_PUBLISHED]
        if self.search is not None:
            clauses.append(self.search.clause(Product.title, Product.sku, Product.description, Product.asin))
        if self.category_id is not None:
            clauses.append(Product.category_id == self.category_id)
        return clauses


def product_sort(sort_by: str = "createdAt", sort_order: str = "desc") -> Sort:
    return Sort(sort_by, sort_order, PRODUCT_SORT_COLUMNS)


@dataclass(frozen=True)
class ContactFilter:
    search: TextSearch | None = None
    status: ContactStatus | None = None

    @classmethod
    def from_query(cls, search: str | None = None, status: str | None = None) -> "ContactFilter":
        return cls(search=TextSearch.parse(search), status=_status(status, ContactStatus, "status"))

    def where(self) -> list[ColumnElement[bool]]:
        clauses = []
        if self.search is not None:
            clauses.append(
                self.search.clause(
                    ContactMessage.name, ContactMessage.email, ContactMessage.subject, ContactMessage.message
                )
            )
        if self.status is not None:
            clauses.append(ContactMessage.status == self.status)
        return clauses


SUBSCRIPTION_SORT_COLUMNS = {
    "createdAt": Subscription.created_at,
    "updatedAt": Subscription.updated_at,
    "email": Subscription.email,
}


def _flag(raw: str | None, label: str) -> bool | None:
    if raw is None or raw == "" or raw == ALL_STATUSES:
        return None
    if raw in ("true", "false"):
        return raw == "true"
    raise ValidationError(f"{label} must be true, false or all")


@dataclass(frozen=True)
class SubscriptionFilter:
    search: TextSearch | None = None
    is_active: bool | None = None

    @classmethod
    def from_query(cls, search: str | None = None, is_active: str | None = None) -> "SubscriptionFilter":
        return cls(search=TextSearch.parse(search), is_active=_flag(is_active, "isActive"))

    def where(self) -> list[ColumnElement[bool]]:
        clauses = []
        if self.search is not None:
            clauses.append(self.search.clause(Subscription.email))
        if self.is_active is not None:
            clauses.append(Subscription.is_active.is_(self.is_active))
        return clauses


def subscription_sort(sort_by: str = "createdAt", sort_order: str = "desc") -> Sort:
    return Sort(sort_by, sort_order, SUBSCRIPTION_SORT_COLUMNS)


def parse_id(raw: str, label: str = "id") -> UUID:
    """Parse a path or body id, raising ValidationError for anything that is not a UUID."""
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError(f"Invalid {label}: {raw}") from None
