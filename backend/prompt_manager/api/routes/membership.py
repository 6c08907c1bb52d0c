"""Membership read endpoint used by the frontend to gate navigation."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from prompt_manager.api.dependencies import get_current_user_id, get_db_session
from prompt_manager.models.enums import MembershipTier
from prompt_manager.models.schemas import MembershipRead
from prompt_manager.services.membership import MembershipService

router = APIRouter(prefix="/membership", tags=["membership"])


@router.get("", response_model=MembershipRead)
async def read_membership(
    db: AsyncSession = Depends(get_db_session),
    user_id: str = Depends(get_current_user_id),
) -> MembershipRead:
    """Return the caller's tier; unknown users and lookup failures read as free."""
    membership = await MembershipService(db).get_membership(user_id)
    return MembershipRead(membership=membership, is_pro=membership == MembershipTier.PRO)
