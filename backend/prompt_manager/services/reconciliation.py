"""Webhook event routing and membership reconciliation.

Every handled event follows the same shape: fetch the authoritative
subscription from Stripe, map its status to a membership tier, upsert the
customer row.  The status embedded in the event payload is never trusted;
it may be stale by the time a (re)delivery arrives.

The two entry points are keyed differently:

* checkout completion carries our user id (``client_reference_id``) and is
  the only place a customer row is created;
* subscription updates/deletions only carry Stripe's customer id, so they
  update whatever row is linked to it.  An event for an unlinked customer is
  logged and acknowledged, not failed, because Stripe would otherwise retry
  it indefinitely (e.g. a deletion delivered before the checkout that would
  have created the row).

No locks are taken.  Concurrent deliveries for the same customer race and
the last write wins, which is acceptable because every write reflects the
subscription status current at fetch time.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.exc import IntegrityError

from prompt_manager.core.errors import CustomerNotFound, MalformedEvent
from prompt_manager.core.observability import sentry_breadcrumb, sentry_metric_inc
from prompt_manager.models.enums import RouteOutcome, StripeEventType
from prompt_manager.models.schemas import (
    CheckoutCompleted,
    CustomerCreate,
    CustomerPatch,
    SubscriptionDeleted,
    SubscriptionEvent,
    SubscriptionSnapshot,
    SubscriptionUpdated,
    UnrecognizedEvent,
    VerifiedEvent,
)
from prompt_manager.services.customer_store import CustomerStore
from prompt_manager.services.membership import membership_from_status

logger = logging.getLogger(__name__)

SUBSCRIPTION_MODE = "subscription"


class SubscriptionSource(Protocol):
    async def fetch(self, subscription_id: str) -> SubscriptionSnapshot: ...


def _object_id(value: Any) -> Optional[str]:
    """Return the id of a Stripe reference that may be an id or an expanded object."""
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, str) and value:
        return value
    return None


def parse_event(event: VerifiedEvent) -> SubscriptionEvent:
    """Turn a verified webhook event into a :data:`SubscriptionEvent`.

    Raises:
        MalformedEvent: a subscription event lacks its subscription or
            customer id.
    """
    obj: Dict[str, Any] = event.data_object or {}

    if event.type == StripeEventType.CHECKOUT_SESSION_COMPLETED.value:
        # Ids are validated by the reconciler, and only for subscription checkouts
        return CheckoutCompleted(
            session_id=_object_id(obj.get("id")),
            mode=obj.get("mode"),
            user_id=_object_id(obj.get("client_reference_id")),
            customer_id=_object_id(obj.get("customer")),
            subscription_id=_object_id(obj.get("subscription")),
        )

    if event.type in (StripeEventType.SUBSCRIPTION_UPDATED.value, StripeEventType.SUBSCRIPTION_DELETED.value):
        subscription_id = _object_id(obj.get("id"))
        customer_id = _object_id(obj.get("customer"))
        if not subscription_id or not customer_id:
            raise MalformedEvent(
                f"{event.type} event {event.id} is missing "
                f"{'subscription id' if not subscription_id else 'customer id'}"
            )
        if event.type == StripeEventType.SUBSCRIPTION_UPDATED.value:
            return SubscriptionUpdated(subscription_id=subscription_id, customer_id=customer_id)
        return SubscriptionDeleted(subscription_id=subscription_id, customer_id=customer_id)

    return UnrecognizedEvent(type=event.type)


class Reconciler:
    """Keeps customer membership in sync with Stripe subscription status."""

    def __init__(self, store: CustomerStore, subscriptions: SubscriptionSource):
        self.store = store
        self.subscriptions = subscriptions

    async def on_subscription_change(self, subscription_id: str, customer_id: str) -> RouteOutcome:
        """Reconcile after ``customer.subscription.updated`` / ``.deleted``.

        Raises:
            MalformedEvent: an id is missing.
            UpstreamUnavailable: the subscription could not be fetched.
        """
        if not subscription_id or not customer_id:
            raise MalformedEvent("Missing subscription id or customer id for subscription change")

        snapshot = await self.subscriptions.fetch(subscription_id)
        membership = membership_from_status(snapshot.status)
        patch = CustomerPatch(membership=membership, stripe_subscription_id=snapshot.id)
        try:
            await self.store.update_by_stripe_customer_id(customer_id, patch)
        except CustomerNotFound:
            logger.warning(
                "[stripe] customer not found for stripe customer id during status change: %s (subscription=%s)",
                customer_id, subscription_id,
            )
            sentry_metric_inc("stripe.customer.not_found")
            return RouteOutcome.ANOMALY

        logger.info(
            "[stripe] updated membership to %s for stripe customer %s (subscription=%s status=%s)",
            membership.value, customer_id, snapshot.id, snapshot.status,
        )
        return RouteOutcome.RECONCILED

    async def on_checkout_completed(
        self,
        user_id: Optional[str],
        customer_id: Optional[str],
        subscription_id: Optional[str],
    ) -> RouteOutcome:
        """Create or update the customer row for ``user_id`` after checkout.

        Raises:
            MalformedEvent: any of the three ids is missing.
            UpstreamUnavailable: the subscription could not be fetched.
        """
        missing = [
            name
            for name, value in (
                ("client_reference_id", user_id),
                ("customer", customer_id),
                ("subscription", subscription_id),
            )
            if not value
        ]
        if missing:
            raise MalformedEvent(f"Checkout session is missing {', '.join(missing)}")

        snapshot = await self.subscriptions.fetch(subscription_id)
        membership = membership_from_status(snapshot.status)
        patch = CustomerPatch(
            membership=membership,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
        )

        existing = await self.store.get_by_user_id(user_id)
        if existing is not None:
            logger.info("[stripe] updating existing customer user_id=%s stripe_customer=%s", user_id, customer_id)
            await self.store.update_by_user_id(user_id, patch)
        else:
            logger.info("[stripe] creating customer user_id=%s stripe_customer=%s", user_id, customer_id)
            try:
                await self.store.create(CustomerCreate(user_id=user_id, **patch.model_dump(exclude_unset=True)))
            except IntegrityError:
                # A concurrent delivery created the row first
                await self.store.update_by_user_id(user_id, patch)

        logger.info("[stripe] upserted customer user_id=%s membership=%s", user_id, membership.value)
        return RouteOutcome.RECONCILED


class EventRouter:
    """Dispatches parsed events to the reconciler."""

    def __init__(self, reconciler: Reconciler):
        self.reconciler = reconciler

    async def route(self, event: SubscriptionEvent) -> RouteOutcome:
        if isinstance(event, (SubscriptionUpdated, SubscriptionDeleted)):
            sentry_breadcrumb(
                category="stripe",
                message=f"webhook:{event.kind}",
                data={"subscription_id": event.subscription_id},
            )
            return await self.reconciler.on_subscription_change(event.subscription_id, event.customer_id)

        if isinstance(event, CheckoutCompleted):
            if event.mode != SUBSCRIPTION_MODE:
                logger.info(
                    "[stripe] ignoring checkout session %s as it is not in subscription mode (mode=%s)",
                    event.session_id, event.mode,
                )
                return RouteOutcome.IGNORED
            sentry_breadcrumb(category="stripe", message="webhook:checkout_completed", data={"session_id": event.session_id})
            return await self.reconciler.on_checkout_completed(
                event.user_id, event.customer_id, event.subscription_id
            )

        logger.debug("[stripe] ignoring irrelevant event type=%s", getattr(event, "type", None))
        return RouteOutcome.IGNORED

    async def dispatch(self, event: VerifiedEvent) -> RouteOutcome:
        """Parse and route a verified event."""
        return await self.route(parse_event(event))


__all__ = ["parse_event", "Reconciler", "EventRouter", "SubscriptionSource"]
