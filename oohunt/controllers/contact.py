"""Contact form, newsletter subscription and their admin screens."""

from datetime import UTC, datetime
from typing import Annotated, Any

from litestar import Controller, delete, get, post, put
from litestar.params import Parameter
from litestar.response import Response
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.auth.guards import Permission, auth_guard
from oohunt.auth.roles import MANAGE_CONTACTS
from oohunt.db.filters import ContactFilter, Pagination, SubscriptionFilter, parse_id, subscription_sort
from oohunt.db.schemas import (
    ContactInput,
    ContactOut,
    ContactStatusInput,
    SubscribeInput,
    SubscriptionOut,
    SubscriptionStatusInput,
    dump,
)
from oohunt.db.services import contact_service
from oohunt.lib.responses import ok

ADMIN_GUARDS = [auth_guard, Permission(MANAGE_CONTACTS)]


def csv_download(content: str, prefix: str) -> Response:
    filename = f"{prefix}_{datetime.now(UTC).date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


class ContactController(Controller):
    path = "/api/contact"

    @post("/", status_code=HTTP_200_OK)
    async def submit(self, db_session: AsyncSession, data: ContactInput) -> dict[str, Any]:
        await contact_service.submit_contact(db_session, data)
        return ok(message="Your message has been sent successfully. We'll get back to you soon!")

    @get("/list", guards=ADMIN_GUARDS)
    async def list_contacts(
        self,
        db_session: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        result = await contact_service.list_contacts(
            db_session,
            ContactFilter.from_query(search=search, status=status),
            Pagination(page=page, limit=limit),
        )
        return ok(result.payload("contacts", [dump(ContactOut, item) for item in result.items]))

    @get("/export", guards=ADMIN_GUARDS)
    async def export_contacts(
        self,
        db_session: AsyncSession,
        search: str | None = None,
        status: str | None = None,
    ) -> Response:
        content = await contact_service.export_contacts(
            db_session, ContactFilter.from_query(search=search, status=status)
        )
        return csv_download(content, "contact_messages")

    @put("/{contact_id:str}/status", guards=ADMIN_GUARDS)
    async def update_status(
        self, db_session: AsyncSession, contact_id: str, data: ContactStatusInput
    ) -> dict[str, Any]:
        contact = await contact_service.update_contact_status(
            db_session, parse_id(contact_id, "message id"), data.status
        )
        return ok(dump(ContactOut, contact), message="Status updated")

    @delete("/{contact_id:str}", guards=ADMIN_GUARDS, status_code=HTTP_200_OK)
    async def delete_contact(self, db_session: AsyncSession, contact_id: str) -> dict[str, Any]:
        await contact_service.delete_contact(db_session, parse_id(contact_id, "message id"))
        return ok(message="Message deleted")


class SubscribeController(Controller):
    path = "/api/subscribe"

    @post("/", status_code=HTTP_200_OK)
    async def subscribe(self, db_session: AsyncSession, data: SubscribeInput) -> dict[str, Any]:
        subscription, existed = await contact_service.subscribe(db_session, data)
        message = "Subscription updated" if existed else "Successfully subscribed"
        return ok(dump(SubscriptionOut, subscription), message=message)


class SubscriptionAdminController(Controller):
    """Newsletter subscriber list for admins."""

    path = "/api/emails"
    guards = ADMIN_GUARDS

    @get("/list")
    async def list_subscriptions(
        self,
        db_session: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        is_active: Annotated[str | None, Parameter(query="isActive")] = None,
        sort_by: Annotated[str, Parameter(query="sortBy")] = "createdAt",
        sort_order: Annotated[str, Parameter(query="sortOrder")] = "desc",
    ) -> dict[str, Any]:
        result = await contact_service.list_subscriptions(
            db_session,
            SubscriptionFilter.from_query(search=search, is_active=is_active),
            Pagination(page=page, limit=limit),
            subscription_sort(sort_by, sort_order),
        )
        return ok(result.payload("subscriptions", [dump(SubscriptionOut, item) for item in result.items]))

    @get("/export")
    async def export_subscriptions(
        self,
        db_session: AsyncSession,
        search: str | None = None,
        is_active: Annotated[str | None, Parameter(query="isActive")] = None,
    ) -> Response:
        content = await contact_service.export_subscriptions(
            db_session, SubscriptionFilter.from_query(search=search, is_active=is_active)
        )
        return csv_download(content, "email_subscriptions")

    @put("/{subscription_id:str}/status")
    async def update_status(
        self, db_session: AsyncSession, subscription_id: str, data: SubscriptionStatusInput
    ) -> dict[str, Any]:
        subscription = await contact_service.set_subscription_active(
            db_session, parse_id(subscription_id, "email id"), data.is_active
        )
        state = "activated" if subscription.is_active else "deactivated"
        return ok(dump(SubscriptionOut, subscription), message=f"Email status has been {state}")
