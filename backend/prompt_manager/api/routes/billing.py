"""Upgrade entry point: hands the frontend a checkout link for the caller."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from prompt_manager.api.dependencies import get_current_user_id
from prompt_manager.models.schemas import SubscriptionLinkRead
from prompt_manager.services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/subscription-link", response_model=SubscriptionLinkRead)
async def read_subscription_link(user_id: str = Depends(get_current_user_id)) -> SubscriptionLinkRead:
    """Return the pro checkout link tagged with the caller's user id."""
    url = BillingService().subscription_link(user_id)
    if url is None:
        logger.info("[stripe] MONTHLY_SUBSCRIPTION_LINK not configured; no upgrade link for user %s", user_id)
    return SubscriptionLinkRead(url=url)
