"""Contact form messages and newsletter subscriptions."""

import csv
import io
import logging
import re
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.db.filters import ContactFilter, Paged, Pagination, Sort, SubscriptionFilter, subscription_sort
from oohunt.db.models import ContactMessage, ContactStatus, Subscription, SubscriptionSource
from oohunt.db.schemas import ContactInput, SubscribeInput
from oohunt.lib.exceptions import NotFoundError, ValidationError
from oohunt.lib.hooks import AFTER_CONTACT_SUBMIT, AFTER_SUBSCRIBE, hooks

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


async def submit_contact(db_session: AsyncSession, data: ContactInput) -> ContactMessage:
    """Store a contact form message as unread.

    The ``after_contact_submit`` action receives the stored message; mail
    delivery hangs off that hook.

    Raises:
        ValidationError: a field is missing or the email is malformed
    """
    fields = (data.name, data.email, data.subject, data.message)
    if any(value is None or not value.strip() for value in fields):
        raise ValidationError("All fields are required")
    if not is_valid_email(data.email):
        raise ValidationError("Please provide a valid email address")

    contact = ContactMessage(
        name=data.name,
        email=data.email,
        subject=data.subject,
        message=data.message,
        status=ContactStatus.UNREAD,
    )
    db_session.add(contact)
    await db_session.commit()
    await db_session.refresh(contact)

    await hooks.do_action(AFTER_CONTACT_SUBMIT, contact)
    return contact


async def list_contacts(
    db_session: AsyncSession,
    contact_filter: ContactFilter | None = None,
    pagination: Pagination | None = None,
) -> Paged[ContactMessage]:
    """Newest messages first."""
    contact_filter = contact_filter or ContactFilter()
    pagination = pagination or Pagination(limit=10)
    where = contact_filter.where()

    total = await db_session.scalar(select(func.count()).select_from(ContactMessage).where(*where))
    query = (
        select(ContactMessage)
        .where(*where)
        .order_by(ContactMessage.created_at.desc(), ContactMessage.id)
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    result = await db_session.execute(query)
    return Paged(items=list(result.scalars().all()), total_items=total or 0, pagination=pagination)


async def get_contact(db_session: AsyncSession, contact_id: UUID) -> ContactMessage:
    contact = await db_session.get(ContactMessage, contact_id)
    if contact is None:
        raise NotFoundError("Message not found")
    return contact


async def update_contact_status(db_session: AsyncSession, contact_id: UUID, status: str | None) -> ContactMessage:
    try:
        new_status = ContactStatus(status)
    except ValueError:
        raise ValidationError("status must be one of: unread, read, processed") from None

    contact = await get_contact(db_session, contact_id)
    contact.status = new_status
    contact.updated_at = datetime.now(UTC)
    await db_session.commit()
    await db_session.refresh(contact)
    return contact


async def delete_contact(db_session: AsyncSession, contact_id: UUID) -> None:
    contact = await get_contact(db_session, contact_id)
    await db_session.delete(contact)
    await db_session.commit()


async def export_contacts(db_session: AsyncSession, contact_filter: ContactFilter | None = None) -> str:
    """Every matching message as CSV, newest first."""
    contact_filter = contact_filter or ContactFilter()
    query = (
        select(ContactMessage)
        .where(*contact_filter.where())
        .order_by(ContactMessage.created_at.desc(), ContactMessage.id)
    )
    contacts = (await db_session.execute(query)).scalars().all()
    return contacts_csv(contacts)


def contacts_csv(contacts) -> str:
    rows = (
        (
            contact.name,
            contact.email,
            contact.subject,
            _single_line(contact.message),
            _csv_date(contact.created_at),
            str(contact.status).capitalize(),
        )
        for contact in contacts
    )
    return _to_csv(("Name", "Email", "Subject", "Message", "Date", "Status"), rows)


async def subscribe(db_session: AsyncSession, data: SubscribeInput) -> tuple[Subscription, bool]:
    """Subscribe an email address, or refresh an existing subscription.

    Args:
        db_session: Database session
        data: Email, source type (general or blog) and optional form id

    Returns:
        The subscription and whether it already existed

    Raises:
        ValidationError: invalid email or unknown source type
    """
    if not is_valid_email(data.email):
        raise ValidationError("Please provide a valid email address")
    try:
        source_type = SubscriptionSource(data.source_type)
    except ValueError:
        raise ValidationError("Invalid source type") from None

    result = await db_session.execute(select(Subscription).where(Subscription.email == data.email))
    subscription = result.scalar_one_or_none()
    existed = subscription is not None

    if subscription is None:
        subscription = Subscription(email=data.email, source_type=source_type, form_id=data.form_id)
        db_session.add(subscription)
    else:
        subscription.source_type = source_type
        subscription.form_id = data.form_id or subscription.form_id
        subscription.is_active = True
        subscription.updated_at = datetime.now(UTC)

    await db_session.commit()
    await db_session.refresh(subscription)

    await hooks.do_action(AFTER_SUBSCRIBE, subscription, is_new=not existed)
    return subscription, existed


async def list_subscriptions(
    db_session: AsyncSession,
    subscription_filter: SubscriptionFilter | None = None,
    pagination: Pagination | None = None,
    sort: Sort | None = None,
) -> Paged[Subscription]:
    """Subscriptions for the admin list, newest first unless ``sort`` says otherwise."""
    subscription_filter = subscription_filter or SubscriptionFilter()
    pagination = pagination or Pagination(limit=10)
    sort = sort or subscription_sort()
    where = subscription_filter.where()

    total = await db_session.scalar(select(func.count()).select_from(Subscription).where(*where))
    query = (
        select(Subscription)
        .where(*where)
        .order_by(sort.order_by(), Subscription.id)
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    result = await db_session.execute(query)
    return Paged(items=list(result.scalars().all()), total_items=total or 0, pagination=pagination)


async def set_subscription_active(db_session: AsyncSession, subscription_id: UUID, is_active: Any) -> Subscription:
    """Activate or deactivate a subscription.

    Raises:
        ValidationError: ``is_active`` is not a boolean
        NotFoundError: no subscription has that id
    """
    if not isinstance(is_active, bool):
        raise ValidationError("Status must be a boolean value")

    subscription = await db_session.get(Subscription, subscription_id)
    if subscription is None:
        raise NotFoundError("Email not found")

    subscription.is_active = is_active
    subscription.updated_at = datetime.now(UTC)
    await db_session.commit()
    await db_session.refresh(subscription)
    return subscription


async def export_subscriptions(
    db_session: AsyncSession, subscription_filter: SubscriptionFilter | None = None
) -> str:
    """Every matching subscription as CSV, newest first."""
    subscription_filter = subscription_filter or SubscriptionFilter()
    query = (
        select(Subscription)
        .where(*subscription_filter.where())
        .order_by(Subscription.created_at.desc(), Subscription.id)
    )
    subscriptions = (await db_session.execute(query)).scalars().all()
    return subscriptions_csv(subscriptions)


def subscriptions_csv(subscriptions) -> str:
    rows = (
        (
            subscription.email,
            _csv_date(subscription.created_at),
            "Active" if subscription.is_active else "Inactive",
        )
        for subscription in subscriptions
    )
    return _to_csv(("Email", "Subscription Date", "Status"), rows)


# CSV helpers


def _single_line(text: str | None) -> str:
    return " ".join((text or "").splitlines())


def _csv_date(value: datetime | None) -> str:
    return value.date().isoformat() if value is not None else "N/A"


def _to_csv(header, rows) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()
