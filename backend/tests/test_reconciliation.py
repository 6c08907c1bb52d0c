from __future__ import annotations

import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from prompt_manager.core.errors import MalformedEvent, UpstreamUnavailable
from prompt_manager.models.enums import MembershipTier, RouteOutcome
from prompt_manager.models.schemas import (
    CheckoutCompleted,
    CustomerCreate,
    SubscriptionDeleted,
    SubscriptionUpdated,
    UnrecognizedEvent,
    VerifiedEvent,
)
from prompt_manager.models.tables import Customer
from prompt_manager.services.customer_store import CustomerStore
from prompt_manager.services.reconciliation import EventRouter, Reconciler, parse_event

from conftest import FakeSubscriptions


def _checkout(**overrides) -> VerifiedEvent:
    obj = {
        "id": "cs_1",
        "object": "checkout.session",
        "mode": "subscription",
        "client_reference_id": "user_1",
        "customer": "cus_1",
        "subscription": "sub_1",
    }
    obj.update(overrides)
    return VerifiedEvent(id="evt_1", type="checkout.session.completed", data_object=obj)


async def _count_customers(db) -> int:
    return int((await db.execute(select(func.count()).select_from(Customer))).scalar() or 0)


# ---------------------------------------------------------------------------
# parse_event


def test_parse_subscription_events():
    updated = parse_event(VerifiedEvent(type="customer.subscription.updated", data_object={"id": "sub_1", "customer": "cus_1"}))
    deleted = parse_event(VerifiedEvent(type="customer.subscription.deleted", data_object={"id": "sub_2", "customer": {"id": "cus_2"}}))
    assert updated == SubscriptionUpdated(subscription_id="sub_1", customer_id="cus_1")
    assert deleted == SubscriptionDeleted(subscription_id="sub_2", customer_id="cus_2")


def test_parse_checkout_event():
    event = parse_event(_checkout())
    assert isinstance(event, CheckoutCompleted)
    assert (event.user_id, event.customer_id, event.subscription_id, event.mode) == ("user_1", "cus_1", "sub_1", "subscription")


def test_parse_unrecognized_event():
    assert parse_event(VerifiedEvent(type="invoice.paid", data_object={"id": "in_1"})) == UnrecognizedEvent(type="invoice.paid")


@pytest.mark.parametrize("data_object", [{"customer": "cus_1"}, {"id": "sub_1"}, {}])
def test_parse_subscription_event_missing_ids(data_object):
    with pytest.raises(MalformedEvent):
        parse_event(VerifiedEvent(type="customer.subscription.deleted", data_object=data_object))


# ---------------------------------------------------------------------------
# subscription change path


@pytest.mark.asyncio
async def test_subscription_change_is_idempotent(db_session):
    store = CustomerStore(db_session)
    await store.create(CustomerCreate(user_id="user_1", stripe_customer_id="cus_1", stripe_subscription_id="sub_1"))
    reconciler = Reconciler(store, FakeSubscriptions({"sub_1": "active"}))

    assert await reconciler.on_subscription_change("sub_1", "cus_1") == RouteOutcome.RECONCILED
    first = await store.get_by_user_id("user_1")
    first_state = (first.membership, first.stripe_customer_id, first.stripe_subscription_id)
    first_updated = first.updated_at

    assert await reconciler.on_subscription_change("sub_1", "cus_1") == RouteOutcome.RECONCILED
    second = await store.get_by_user_id("user_1")
    assert (second.membership, second.stripe_customer_id, second.stripe_subscription_id) == first_state
    assert first_state[0] == MembershipTier.PRO
    assert second.updated_at >= first_updated
    assert await _count_customers(db_session) == 1


@pytest.mark.asyncio
async def test_subscription_deleted_downgrades_to_free(db_session):
    store = CustomerStore(db_session)
    await store.create(CustomerCreate(user_id="user_1", membership=MembershipTier.PRO, stripe_customer_id="cus_1", stripe_subscription_id="sub_1"))
    subs = FakeSubscriptions({"sub_1": "canceled"})
    router = EventRouter(Reconciler(store, subs))

    outcome = await router.route(SubscriptionDeleted(subscription_id="sub_1", customer_id="cus_1"))

    assert outcome == RouteOutcome.RECONCILED
    assert subs.calls == ["sub_1"]
    customer = await store.get_by_user_id("user_1")
    assert customer.membership == MembershipTier.FREE


@pytest.mark.asyncio
async def test_unlinked_customer_is_anomaly_not_error(db_session, caplog):
    store = CustomerStore(db_session)
    router = EventRouter(Reconciler(store, FakeSubscriptions({"sub_9": "canceled"})))

    with caplog.at_level(logging.WARNING):
        outcome = await router.route(SubscriptionDeleted(subscription_id="sub_9", customer_id="cus_missing"))

    assert outcome == RouteOutcome.ANOMALY
    assert "cus_missing" in caplog.text
    assert await _count_customers(db_session) == 0


@pytest.mark.asyncio
async def test_subscription_change_propagates_upstream_failure(db_session):
    store = CustomerStore(db_session)
    await store.create(CustomerCreate(user_id="user_1", stripe_customer_id="cus_1"))
    reconciler = Reconciler(store, FakeSubscriptions({}))
    with pytest.raises(UpstreamUnavailable):
        await reconciler.on_subscription_change("sub_1", "cus_1")
    customer = await store.get_by_user_id("user_1")
    assert customer.membership == MembershipTier.FREE
    assert customer.stripe_subscription_id is None


# ---------------------------------------------------------------------------
# checkout path


@pytest.mark.asyncio
async def test_checkout_creates_single_customer_per_user(db_session):
    store = CustomerStore(db_session)
    router = EventRouter(Reconciler(store, FakeSubscriptions({"sub_1": "trialing", "sub_2": "active"})))

    assert await router.dispatch(_checkout()) == RouteOutcome.RECONCILED
    created = await store.get_by_user_id("user_1")
    assert created.membership == MembershipTier.PRO
    assert created.stripe_customer_id == "cus_1"
    assert created.stripe_subscription_id == "sub_1"

    # Re-subscribe with a new Stripe customer: updates in place
    assert await router.dispatch(_checkout(customer="cus_2", subscription="sub_2")) == RouteOutcome.RECONCILED
    assert await _count_customers(db_session) == 1
    updated = await store.get_by_user_id("user_1")
    assert (updated.stripe_customer_id, updated.stripe_subscription_id) == ("cus_2", "sub_2")


@pytest.mark.asyncio
async def test_checkout_with_inactive_subscription_starts_free(db_session):
    store = CustomerStore(db_session)
    router = EventRouter(Reconciler(store, FakeSubscriptions({"sub_1": "incomplete"})))
    await router.dispatch(_checkout())
    customer = await store.get_by_user_id("user_1")
    assert customer.membership == MembershipTier.FREE
    assert customer.stripe_subscription_id == "sub_1"


@pytest.mark.asyncio
async def test_non_subscription_checkout_is_ignored(db_session):
    subs = FakeSubscriptions({"sub_1": "active"})
    router = EventRouter(Reconciler(CustomerStore(db_session), subs))
    # Payment-mode checkouts carry no subscription; ids are not even checked
    outcome = await router.dispatch(_checkout(mode="payment", subscription=None))
    assert outcome == RouteOutcome.IGNORED
    assert subs.calls == []
    assert await _count_customers(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["subscription", "customer", "client_reference_id"])
async def test_checkout_missing_ids_is_malformed(db_session, missing):
    subs = FakeSubscriptions({"sub_1": "active"})
    router = EventRouter(Reconciler(CustomerStore(db_session), subs))
    with pytest.raises(MalformedEvent):
        await router.dispatch(_checkout(**{missing: None}))
    assert subs.calls == []
    assert await _count_customers(db_session) == 0


@pytest.mark.asyncio
async def test_unrecognized_event_has_no_side_effects(db_session):
    subs = FakeSubscriptions({"sub_1": "active"})
    router = EventRouter(Reconciler(CustomerStore(db_session), subs))
    outcome = await router.dispatch(VerifiedEvent(type="invoice.payment_failed", data_object={"id": "in_1", "customer": "cus_1"}))
    assert outcome == RouteOutcome.IGNORED
    assert subs.calls == []


class RacingStore(CustomerStore):
    """Reports no existing row although a concurrent delivery already created it."""

    async def get_by_user_id(self, user_id):
        return None


@pytest.mark.asyncio
async def test_concurrent_checkout_create_falls_back_to_update(session_factory):
    async with session_factory() as other:
        await CustomerStore(other).create(CustomerCreate(user_id="user_1", stripe_customer_id="cus_old"))

    async with session_factory() as db:
        reconciler = Reconciler(RacingStore(db), FakeSubscriptions({"sub_1": "active"}))
        assert await reconciler.on_checkout_completed("user_1", "cus_1", "sub_1") == RouteOutcome.RECONCILED
        assert await _count_customers(db) == 1
        customer = await db.get(Customer, "user_1")
        await db.refresh(customer)
        assert customer.membership == MembershipTier.PRO
        assert customer.stripe_customer_id == "cus_1"


class ConflictingStore:
    """Store double without a session: create always loses the race."""

    def __init__(self):
        self.updated: list[tuple[str, object]] = []

    async def get_by_user_id(self, user_id):
        return None

    async def create(self, record):
        raise IntegrityError("INSERT INTO customers", {}, Exception("UNIQUE constraint failed"))

    async def update_by_user_id(self, user_id, patch):
        self.updated.append((user_id, patch))
        return None


@pytest.mark.asyncio
async def test_create_conflict_updates_through_store_contract():
    store = ConflictingStore()
    reconciler = Reconciler(store, FakeSubscriptions({"sub_1": "active"}))

    assert await reconciler.on_checkout_completed("user_1", "cus_1", "sub_1") == RouteOutcome.RECONCILED

    [(user_id, patch)] = store.updated
    assert user_id == "user_1"
    assert patch.membership == MembershipTier.PRO
