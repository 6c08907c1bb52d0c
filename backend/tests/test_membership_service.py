from __future__ import annotations

import pytest

from prompt_manager.models.enums import MembershipTier
from prompt_manager.models.schemas import CustomerCreate
from prompt_manager.services.customer_store import CustomerStore
from prompt_manager.services.membership import MembershipService


@pytest.mark.asyncio
async def test_user_without_customer_row_is_free(db_session):
    service = MembershipService(db_session)
    assert await service.get_membership("user_never_subscribed") == MembershipTier.FREE
    assert await service.is_pro("user_never_subscribed") is False


@pytest.mark.asyncio
async def test_pro_customer_is_pro(db_session):
    await CustomerStore(db_session).create(CustomerCreate(user_id="user_1", membership=MembershipTier.PRO))
    service = MembershipService(db_session)
    assert await service.get_membership("user_1") == MembershipTier.PRO
    assert await service.is_pro("user_1") is True


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", [None, ""])
async def test_anonymous_is_free(db_session, user_id):
    assert await MembershipService(db_session).get_membership(user_id) == MembershipTier.FREE


class BrokenStore:
    async def get_by_user_id(self, user_id):
        raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_read_errors_degrade_to_free(db_session):
    service = MembershipService(db_session)
    service.store = BrokenStore()
    assert await service.get_membership("user_1") == MembershipTier.FREE
    assert await service.is_pro("user_1") is False
