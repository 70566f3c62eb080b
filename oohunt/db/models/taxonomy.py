from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from oohunt.db.base import Base


class ContentCategory(Base):
    __tablename__ = "cms_categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Stringified id of the parent category; None for top-level categories
    parent_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)


class ContentTag(Base):
    __tablename__ = "cms_tags"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
