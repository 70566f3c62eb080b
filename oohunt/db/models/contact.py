from enum import StrEnum

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from oohunt.db.base import Base


class ContactStatus(StrEnum):
    UNREAD = "unread"
    READ = "read"
    PROCESSED = "processed"


class SubscriptionSource(StrEnum):
    GENERAL = "general"
    BLOG = "blog"


class ContactMessage(Base):
    __tablename__ = "contact_messages"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ContactStatus.UNREAD, index=True)


class Subscription(Base):
    __tablename__ = "subscriptions"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False, default=SubscriptionSource.GENERAL)
    form_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
