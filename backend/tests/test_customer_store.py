from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from prompt_manager.core.errors import CustomerNotFound
from prompt_manager.models.enums import MembershipTier
from prompt_manager.models.schemas import CustomerCreate, CustomerPatch
from prompt_manager.services.customer_store import CustomerStore


@pytest.mark.asyncio
async def test_create_defaults_to_free(db_session):
    store = CustomerStore(db_session)
    customer = await store.create(CustomerCreate(user_id="user_1"))
    assert customer.membership == MembershipTier.FREE
    assert customer.stripe_customer_id is None
    assert customer.created_at is not None and customer.updated_at is not None


@pytest.mark.asyncio
async def test_get_by_user_id_missing_returns_none(db_session):
    assert await CustomerStore(db_session).get_by_user_id("nobody") is None


@pytest.mark.asyncio
async def test_duplicate_user_id_rejected(session_factory):
    async with session_factory() as first, session_factory() as second:
        await CustomerStore(first).create(CustomerCreate(user_id="user_1"))
        with pytest.raises(IntegrityError):
            await CustomerStore(second).create(CustomerCreate(user_id="user_1"))
        # Rolled back by the store, so the session is usable again
        assert await CustomerStore(second).get_by_user_id("user_1") is not None


@pytest.mark.asyncio
async def test_update_by_user_id_only_writes_set_fields(db_session):
    store = CustomerStore(db_session)
    await store.create(CustomerCreate(user_id="user_1", stripe_customer_id="cus_1", stripe_subscription_id="sub_1"))
    before = (await store.get_by_user_id("user_1")).updated_at

    updated = await store.update_by_user_id("user_1", CustomerPatch(membership=MembershipTier.PRO))

    assert updated.membership == MembershipTier.PRO
    assert updated.stripe_customer_id == "cus_1"
    assert updated.stripe_subscription_id == "sub_1"
    assert updated.updated_at >= before


@pytest.mark.asyncio
async def test_update_by_user_id_missing_raises(db_session):
    with pytest.raises(CustomerNotFound):
        await CustomerStore(db_session).update_by_user_id("nobody", CustomerPatch(membership=MembershipTier.PRO))


@pytest.mark.asyncio
async def test_update_by_stripe_customer_id(db_session):
    store = CustomerStore(db_session)
    await store.create(CustomerCreate(user_id="user_1", stripe_customer_id="cus_1"))
    await store.create(CustomerCreate(user_id="user_2", stripe_customer_id="cus_2"))

    updated = await store.update_by_stripe_customer_id(
        "cus_1", CustomerPatch(membership=MembershipTier.PRO, stripe_subscription_id="sub_1")
    )

    assert updated.user_id == "user_1"
    assert updated.membership == MembershipTier.PRO
    other = await store.get_by_user_id("user_2")
    assert other.membership == MembershipTier.FREE


@pytest.mark.asyncio
async def test_update_by_stripe_customer_id_missing_raises(db_session):
    with pytest.raises(CustomerNotFound) as exc_info:
        await CustomerStore(db_session).update_by_stripe_customer_id("cus_missing", CustomerPatch(membership=MembershipTier.FREE))
    assert exc_info.value.value == "cus_missing"


@pytest.mark.asyncio
async def test_shared_stripe_customer_id_updates_every_row(db_session):
    store = CustomerStore(db_session)
    await store.create(CustomerCreate(user_id="user_1", stripe_customer_id="cus_shared"))
    await store.create(CustomerCreate(user_id="user_2", stripe_customer_id="cus_shared"))

    await store.update_by_stripe_customer_id("cus_shared", CustomerPatch(membership=MembershipTier.PRO))

    assert (await store.get_by_user_id("user_1")).membership == MembershipTier.PRO
    assert (await store.get_by_user_id("user_2")).membership == MembershipTier.PRO


def test_customer_not_found_status_hint():
    err = CustomerNotFound("user_id", "nobody")
    assert err.status_code == 404
    assert (err.field, err.value) == ("user_id", "nobody")
