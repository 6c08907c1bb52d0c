"""Common dependencies for FastAPI routes.

Database access, Clerk authentication and the Stripe collaborators are all
resolved here so tests can swap any of them through
``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from prompt_manager.core.config import StripeConfig, get_stripe_config, settings
from prompt_manager.core.database import get_db
from prompt_manager.core.security import decode_clerk_jwt
from prompt_manager.services.customer_store import CustomerStore
from prompt_manager.services.reconciliation import EventRouter, Reconciler
from prompt_manager.services.stripe_gateway import SubscriptionFetcher, WebhookVerifier

logger = logging.getLogger(__name__)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Alias for `get_db` to be imported in routers."""
    async for session in get_db():
        yield session


# -----------------------------------------------------------------------------
# Clerk authentication helpers

async def get_current_user_id(request: Request) -> str:
    """Return the Clerk user id (``sub`` claim) of the caller."""
    if settings.DEV_AUTH_BYPASS:
        logger.debug("[auth] DEV_AUTH_BYPASS active, returning dev user")
        return settings.DEV_AUTH_USER_ID
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Clerk JWT")
    payload = decode_clerk_jwt(auth_header.split(" ", 1)[1])
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Clerk token: no sub claim")
    return user_id


# -----------------------------------------------------------------------------
# Stripe collaborators

def get_stripe_settings() -> StripeConfig:
    return get_stripe_config()


def get_webhook_verifier(config: StripeConfig = Depends(get_stripe_settings)) -> WebhookVerifier:
    return WebhookVerifier(config)


def get_subscription_fetcher(config: StripeConfig = Depends(get_stripe_settings)) -> SubscriptionFetcher:
    return SubscriptionFetcher(config)


def get_event_router(
    db: AsyncSession = Depends(get_db_session),
    fetcher: SubscriptionFetcher = Depends(get_subscription_fetcher),
) -> EventRouter:
    return EventRouter(Reconciler(CustomerStore(db), fetcher))
