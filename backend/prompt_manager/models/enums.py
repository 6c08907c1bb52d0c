"""Enumeration types used throughout the prompt manager API.

When modifying these enums update the corresponding database enum (see the
Alembic revisions) so that new values are accepted where appropriate.
"""

from enum import Enum


class MembershipTier(str, Enum):
    """Entitlement level of a customer."""

    FREE = "free"
    PRO = "pro"


class StripeEventType(str, Enum):
    """Stripe webhook event types the reconciler acts on."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class RouteOutcome(str, Enum):
    """What the router did with a verified event; all are acknowledged."""

    RECONCILED = "reconciled"
    IGNORED = "ignored"
    ANOMALY = "anomaly"
