"""Membership tier mapping and the membership read path.

Both halves fail closed on entitlement: an unknown Stripe status maps to
``free``, and a membership read that cannot be answered returns ``free``
instead of raising.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from prompt_manager.models.enums import MembershipTier
from prompt_manager.services.customer_store import CustomerStore

logger = logging.getLogger(__name__)

# Stripe subscription statuses that grant pro access. Everything else
# (canceled, incomplete, incomplete_expired, past_due, paused, unpaid, and
# any status Stripe adds later) is free.
PRO_STATUSES = frozenset({"active", "trialing"})


def membership_from_status(status: Optional[str]) -> MembershipTier:
    """Map a Stripe subscription status to a membership tier."""
    if isinstance(status, str) and status in PRO_STATUSES:
        return MembershipTier.PRO
    return MembershipTier.FREE


class MembershipService:
    """Answers "is this user pro" for route gating and the UI."""

    def __init__(self, db: AsyncSession):
        self.store = CustomerStore(db)

    async def get_membership(self, user_id: Optional[str]) -> MembershipTier:
        if not user_id:
            return MembershipTier.FREE
        try:
            customer = await self.store.get_by_user_id(user_id)
        except Exception as e:
            logger.warning("membership lookup failed for user %s; treating as free: %s", user_id, e)
            return MembershipTier.FREE
        if customer is None or customer.membership is None:
            return MembershipTier.FREE
        try:
            return MembershipTier(customer.membership)
        except ValueError:
            logger.warning("unknown membership %r stored for user %s; treating as free", customer.membership, user_id)
            return MembershipTier.FREE

    async def is_pro(self, user_id: Optional[str]) -> bool:
        return await self.get_membership(user_id) == MembershipTier.PRO


__all__ = ["PRO_STATUSES", "membership_from_status", "MembershipService"]
