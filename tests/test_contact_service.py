"""Tests for contact messages and subscriptions."""

import csv
import io
from uuid import uuid4

import pytest

from oohunt.db.filters import ContactFilter, Pagination, SubscriptionFilter, subscription_sort
from oohunt.db.models import ContactStatus
from oohunt.db.schemas import ContactInput, SubscribeInput
from oohunt.db.services.contact_service import (
    delete_contact,
    export_contacts,
    export_subscriptions,
    get_contact,
    is_valid_email,
    list_contacts,
    list_subscriptions,
    set_subscription_active,
    submit_contact,
    subscribe,
    update_contact_status,
)
from oohunt.lib.exceptions import NotFoundError, ValidationError
from oohunt.lib.hooks import AFTER_CONTACT_SUBMIT, AFTER_SUBSCRIBE, hooks


def contact_input(**overrides) -> ContactInput:
    data = {"name": "Ada", "email": "ada@example.com", "subject": "Hi", "message": "Hello there"}
    data.update(overrides)
    return ContactInput(**data)


@pytest.mark.parametrize(
    "email, valid",
    [("a@b.co", True), ("a@b", False), ("a b@c.de", False), ("", False), (None, False)],
)
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid


class TestSubmitContact:
    @pytest.mark.asyncio
    async def test_stored_as_unread_and_hook_fires(self, db_session, clean_hooks):
        received = []
        hooks.add_action(AFTER_CONTACT_SUBMIT, lambda contact: received.append(contact.email))

        contact = await submit_contact(db_session, contact_input())

        assert contact.status == ContactStatus.UNREAD
        assert received == ["ada@example.com"]

    @pytest.mark.asyncio
    async def test_all_fields_required(self, db_session):
        with pytest.raises(ValidationError, match="All fields are required"):
            await submit_contact(db_session, contact_input(subject=""))

    @pytest.mark.asyncio
    async def test_email_format(self, db_session):
        with pytest.raises(ValidationError, match="valid email"):
            await submit_contact(db_session, contact_input(email="nope"))


class TestContactAdmin:
    @pytest.mark.asyncio
    async def test_list_filter_by_status(self, db_session):
        first = await submit_contact(db_session, contact_input(subject="One"))
        await submit_contact(db_session, contact_input(subject="Two"))
        await update_contact_status(db_session, first.id, "read")

        result = await list_contacts(db_session, ContactFilter.from_query(status="unread"))

        assert [contact.subject for contact in result.items] == ["Two"]

    @pytest.mark.asyncio
    async def test_invalid_status(self, db_session):
        contact = await submit_contact(db_session, contact_input())

        with pytest.raises(ValidationError):
            await update_contact_status(db_session, contact.id, "archived")

    @pytest.mark.asyncio
    async def test_delete(self, db_session):
        contact = await submit_contact(db_session, contact_input())

        await delete_contact(db_session, contact.id)

        with pytest.raises(NotFoundError):
            await get_contact(db_session, contact.id)

    @pytest.mark.asyncio
    async def test_unknown_message(self, db_session):
        with pytest.raises(NotFoundError):
            await update_contact_status(db_session, uuid4(), "read")

    @pytest.mark.asyncio
    async def test_export_is_filtered_csv(self, db_session):
        first = await submit_contact(db_session, contact_input(subject="One", message="Line one\nsaid \"hi\""))
        await submit_contact(db_session, contact_input(subject="Two"))
        await update_contact_status(db_session, first.id, "processed")

        content = await export_contacts(db_session, ContactFilter.from_query(status="processed"))
        rows = list(csv.reader(io.StringIO(content)))

        assert rows[0] == ["Name", "Email", "Subject", "Message", "Date", "Status"]
        assert rows[1][:4] == ["Ada", "ada@example.com", "One", "Line one said \"hi\""]
        assert rows[1][4] == first.created_at.date().isoformat()
        assert rows[1][5] == "Processed"
        assert len(rows) == 2


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_new_subscription(self, db_session, clean_hooks):
        calls = []
        hooks.add_action(AFTER_SUBSCRIBE, lambda subscription, is_new: calls.append(is_new))

        subscription, existed = await subscribe(db_session, SubscribeInput(email="a@b.co"))

        assert not existed
        assert subscription.source_type == "general"
        assert subscription.is_active
        assert calls == [True]

    @pytest.mark.asyncio
    async def test_resubscribe_updates_existing(self, db_session):
        first, _ = await subscribe(db_session, SubscribeInput(email="a@b.co"))
        first.is_active = False
        await db_session.commit()

        second, existed = await subscribe(db_session, SubscribeInput(email="a@b.co", sourceType="blog", formId="f1"))

        assert existed
        assert second.id == first.id
        assert second.is_active
        assert second.source_type == "blog"
        assert second.form_id == "f1"

    @pytest.mark.asyncio
    async def test_invalid_source_type(self, db_session):
        with pytest.raises(ValidationError, match="Invalid source type"):
            await subscribe(db_session, SubscribeInput(email="a@b.co", sourceType="sms"))


class TestSubscriptionAdmin:
    @pytest.mark.asyncio
    async def test_list_search_and_active_filter(self, db_session):
        await subscribe(db_session, SubscribeInput(email="ann@example.com"))
        bob, _ = await subscribe(db_session, SubscribeInput(email="bob@example.com"))
        await subscribe(db_session, SubscribeInput(email="cat@other.org"))
        await set_subscription_active(db_session, bob.id, False)

        active = await list_subscriptions(db_session, SubscriptionFilter.from_query(is_active="true"))
        found = await list_subscriptions(db_session, SubscriptionFilter.from_query(search="EXAMPLE"))

        assert {item.email for item in active.items} == {"ann@example.com", "cat@other.org"}
        assert found.total_items == 2

    @pytest.mark.asyncio
    async def test_list_sort_and_paginate(self, db_session):
        for email in ("c@x.io", "a@x.io", "b@x.io"):
            await subscribe(db_session, SubscribeInput(email=email))

        result = await list_subscriptions(
            db_session, pagination=Pagination(page=1, limit=2), sort=subscription_sort("email", "asc")
        )

        assert [item.email for item in result.items] == ["a@x.io", "b@x.io"]
        assert result.total_items == 3
        assert result.total_pages == 2

    def test_invalid_active_flag(self):
        with pytest.raises(ValidationError):
            SubscriptionFilter.from_query(is_active="yes")

    @pytest.mark.asyncio
    async def test_set_active_requires_boolean(self, db_session):
        subscription, _ = await subscribe(db_session, SubscribeInput(email="a@b.co"))

        with pytest.raises(ValidationError, match="boolean"):
            await set_subscription_active(db_session, subscription.id, "false")

    @pytest.mark.asyncio
    async def test_set_active_unknown_id(self, db_session):
        with pytest.raises(NotFoundError, match="Email not found"):
            await set_subscription_active(db_session, uuid4(), True)

    @pytest.mark.asyncio
    async def test_export_csv(self, db_session):
        active, _ = await subscribe(db_session, SubscribeInput(email="a@b.co"))
        inactive, _ = await subscribe(db_session, SubscribeInput(email="z@b.co"))
        await set_subscription_active(db_session, inactive.id, False)

        rows = list(csv.reader(io.StringIO(await export_subscriptions(db_session))))

        assert rows[0] == ["Email", "Subscription Date", "Status"]
        assert sorted(rows[1:]) == [
            ["a@b.co", active.created_at.date().isoformat(), "Active"],
            ["z@b.co", inactive.created_at.date().isoformat(), "Inactive"],
        ]
