"""Pydantic schemas for request/response models and billing value objects.

Pydantic schemas are intentionally separate from the ORM models so the shape
exposed through the API can differ from what is stored in the database.

The subscription event models form a tagged union on ``kind``;
:data:`SubscriptionEvent` is what the webhook router dispatches on.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import MembershipTier


# ---------------------------------------------------------------------------
# Stripe webhook value objects


class VerifiedEvent(BaseModel):
    """A webhook event whose signature has been checked."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    type: str
    data_object: Dict[str, Any] = Field(default_factory=dict)


class SubscriptionSnapshot(BaseModel):
    """Authoritative subscription state as returned by the Stripe API."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: Optional[str] = None
    customer_id: Optional[str] = None


class CheckoutCompleted(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["checkout_completed"] = "checkout_completed"
    session_id: Optional[str] = None
    mode: Optional[str] = None
    user_id: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None


class SubscriptionUpdated(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["subscription_updated"] = "subscription_updated"
    subscription_id: str
    customer_id: str


class SubscriptionDeleted(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["subscription_deleted"] = "subscription_deleted"
    subscription_id: str
    customer_id: str


class UnrecognizedEvent(BaseModel):
    """Any event type we do not act on; acknowledged and ignored."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unrecognized"] = "unrecognized"
    type: str


SubscriptionEvent = Union[CheckoutCompleted, SubscriptionUpdated, SubscriptionDeleted, UnrecognizedEvent]


# ---------------------------------------------------------------------------
# Customers


class CustomerCreate(BaseModel):
    user_id: str
    membership: MembershipTier = MembershipTier.FREE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None


class CustomerPatch(BaseModel):
    """Partial update; only fields explicitly set are written."""

    membership: Optional[MembershipTier] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    membership: MembershipTier
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MembershipRead(BaseModel):
    membership: MembershipTier
    is_pro: bool


class SubscriptionLinkRead(BaseModel):
    """Checkout link for the caller; ``url`` is null when upgrades are not configured."""

    url: Optional[str] = None


# ---------------------------------------------------------------------------
# Prompts


class PromptCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    content: str = Field(..., min_length=1)


class PromptUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    content: Optional[str] = Field(default=None, min_length=1)


class PromptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    name: str
    description: str
    content: str
    created_at: datetime
    updated_at: datetime
