from advanced_alchemy.types import JsonB
from sqlalchemy import Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from oohunt.db.base import Base

PRODUCT_PUBLISHED = "published"


class Product(Base):
    """Local catalog entry that CMS pages can embed."""

    __tablename__ = "products"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    asin: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    sale_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)

    image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    primary_image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    featured_image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    images: Mapped[list[str]] = mapped_column(JsonB, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PRODUCT_PUBLISHED, index=True)
