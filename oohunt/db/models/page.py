from datetime import datetime
from enum import StrEnum

from advanced_alchemy.types import DateTimeUTC, JsonB
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from oohunt.db.base import Base


class PageStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Page(Base):
    """Blog-style content page with embedded product references."""

    __tablename__ = "cms_pages"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    excerpt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    featured_image: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PageStatus.DRAFT, index=True)
    author: Mapped[str] = mapped_column(String(255), nullable=False, default="Unknown")

    # Stringified ids of ContentCategory / ContentTag / Product rows
    categories: Mapped[list[str]] = mapped_column(JsonB, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JsonB, nullable=False, default=list)
    product_ids: Mapped[list[str]] = mapped_column(JsonB, nullable=False, default=list)

    # metaTitle, metaDescription, canonicalUrl, ogImage
    seo_data: Mapped[dict] = mapped_column(JsonB, nullable=False, default=dict)

    published_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True, index=True)
