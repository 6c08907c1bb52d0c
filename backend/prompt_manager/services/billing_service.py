"""Billing service providing membership limits & quota enforcement.

This module centralises plan enforcement so API route handlers remain thin.
It never talks to Stripe; the membership tier it enforces is whatever the
webhook reconciliation last stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from prompt_manager.core.config import settings
from prompt_manager.models.enums import MembershipTier
from prompt_manager.models.tables import Prompt
from prompt_manager.services.membership import MembershipService

FREE_LIMIT_MESSAGE = (
    "Free users can only create up to {limit} prompts. Please upgrade to Pro for unlimited prompts."
)


@dataclass(frozen=True)
class PlanLimits:
    membership: MembershipTier
    max_prompts: float  # inf => unlimited


def _limit_matrix() -> Dict[MembershipTier, PlanLimits]:
    return {
        MembershipTier.FREE: PlanLimits(membership=MembershipTier.FREE, max_prompts=settings.FREE_PROMPT_LIMIT),
        MembershipTier.PRO: PlanLimits(membership=MembershipTier.PRO, max_prompts=float("inf")),
    }


class BillingService:
    """Encapsulates plan limit queries & quota enforcement."""

    def get_limits(self, membership: MembershipTier | None) -> PlanLimits:
        matrix = _limit_matrix()
        return matrix.get(membership or MembershipTier.FREE, matrix[MembershipTier.FREE])

    async def count_prompts(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(select(func.count(Prompt.id)).where(Prompt.user_id == user_id))
        return int(result.scalar() or 0)

    async def is_at_prompt_limit(self, db: AsyncSession, user_id: str) -> bool:
        membership = await MembershipService(db).get_membership(user_id)
        limit = self.get_limits(membership).max_prompts
        if limit == float("inf"):
            return False
        return await self.count_prompts(db, user_id) >= limit

    async def enforce_prompt_quota(self, db: AsyncSession, user_id: str) -> None:
        if await self.is_at_prompt_limit(db, user_id):
            raise HTTPException(
                status_code=402,
                detail=FREE_LIMIT_MESSAGE.format(limit=settings.FREE_PROMPT_LIMIT),
            )

    def subscription_link(self, user_id: str) -> Optional[str]:
        """Return the pro checkout link tagged with ``client_reference_id=user_id``.

        ``None`` when no link is configured.  Checkout completion events carry
        the id back, which is how a customer row gets linked to its user.
        """
        link = settings.MONTHLY_SUBSCRIPTION_LINK
        if not link:
            return None
        parts = urlsplit(link)
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "client_reference_id"]
        query.append(("client_reference_id", user_id))
        return urlunsplit(parts._replace(query=urlencode(query)))


__all__ = ["BillingService", "PlanLimits", "FREE_LIMIT_MESSAGE"]
