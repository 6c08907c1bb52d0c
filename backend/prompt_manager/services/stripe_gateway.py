"""Stripe integration: webhook signature verification and subscription fetch.

Both collaborators take a :class:`~prompt_manager.core.config.StripeConfig`
explicitly; credentials are passed per request (``api_key=``) rather than
assigned to ``stripe.api_key``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from prompt_manager.core.config import StripeConfig
from prompt_manager.core.errors import ConfigurationError, SignatureError, UpstreamUnavailable
from prompt_manager.models.schemas import SubscriptionSnapshot, VerifiedEvent

logger = logging.getLogger(__name__)


class WebhookVerifier:
    """Validates ``Stripe-Signature`` headers against the endpoint secret.

    Pure: no network, no database.  Nothing downstream may run unless
    :meth:`verify` returns.
    """

    def __init__(self, config: StripeConfig):
        self.config = config

    def verify(self, raw_body: bytes, signature_header: Optional[str]) -> VerifiedEvent:
        """Check ``raw_body`` against ``signature_header`` and parse it.

        Raises:
            ConfigurationError: the secret or the header is missing.
            SignatureError: the signature does not match, the timestamp is
                outside the tolerance, or the verified body is not an event.
        """
        secret = self.config.webhook_secret
        if not secret or not signature_header:
            raise ConfigurationError("Missing Stripe signature or webhook secret")

        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SignatureError("Payload is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                secret,
                tolerance=self.config.webhook_tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureError(str(e)) from e

        try:
            body = json.loads(payload)
        except ValueError as e:
            raise SignatureError("Invalid payload") from e
        return _event_from_body(body)


def _event_from_body(body: Any) -> VerifiedEvent:
    # Signed but structurally wrong bodies are rejected like forged ones
    if not isinstance(body, dict) or not isinstance(body.get("type"), str):
        raise SignatureError("Payload is not a Stripe event")
    event_id = body.get("id")
    if event_id is not None and not isinstance(event_id, str):
        raise SignatureError("Event id is not a string")
    data = body.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
        raise SignatureError("Event data.object is not an object")
    return VerifiedEvent(id=event_id, type=body["type"], data_object=data["object"])


def _customer_id(value: Any) -> Optional[str]:
    # ``customer`` is an id string unless the request expanded it
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


class SubscriptionFetcher:
    """Reads the current state of a subscription from the Stripe API."""

    def __init__(self, config: StripeConfig):
        self.config = config

    def _retrieve(self, subscription_id: str):
        options: dict[str, Any] = {"api_key": self.config.api_key}
        if self.config.api_version:
            options["stripe_version"] = self.config.api_version
        return stripe.Subscription.retrieve(subscription_id, **options)

    async def fetch(self, subscription_id: str) -> SubscriptionSnapshot:
        """Return the authoritative snapshot for ``subscription_id``.

        Raises:
            UpstreamUnavailable: Stripe is not configured or the call failed.
        """
        if not self.config.api_key:
            raise UpstreamUnavailable("STRIPE_API_KEY is not configured")
        try:
            sub = await run_in_threadpool(self._retrieve, subscription_id)
        except stripe.StripeError as e:
            logger.warning("[stripe] subscription retrieve failed id=%s: %s", subscription_id, e)
            raise UpstreamUnavailable(f"Failed to fetch Stripe subscription {subscription_id}") from e
        return SubscriptionSnapshot(
            id=sub.id,
            status=getattr(sub, "status", None),
            customer_id=_customer_id(getattr(sub, "customer", None)),
        )


__all__ = ["WebhookVerifier", "SubscriptionFetcher"]
