"""Error taxonomy for the billing webhook flow.

Every error raised between signature verification and the customer upsert
derives from :class:`BillingError`.  ``status_code`` is the HTTP status the
webhook route answers with; Stripe retries delivery on anything non-2xx.
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for webhook / reconciliation failures."""

    status_code: int = 500


class ConfigurationError(BillingError):
    """The webhook secret or the signature header is missing."""

    status_code = 400


class SignatureError(BillingError):
    """The payload does not match its signature (forged or corrupted)."""

    status_code = 400


class MalformedEvent(BillingError):
    """A recognized event type is missing a required field."""

    status_code = 500


class UpstreamUnavailable(BillingError):
    """The Stripe API call failed or timed out."""

    status_code = 500


class CustomerNotFound(BillingError):
    """An update addressed a customer row that does not exist.

    Raised by both store update paths.  The reconciler decides what it means:
    on the Stripe-customer-id path it is logged and the event acknowledged;
    anywhere else it propagates as a processing failure.
    """

    status_code = 404

    def __init__(self, field: str, value: str):
        super().__init__(f"no customer with {field}={value}")
        self.field = field
        self.value = value


__all__ = [
    "BillingError",
    "ConfigurationError",
    "SignatureError",
    "MalformedEvent",
    "UpstreamUnavailable",
    "CustomerNotFound",
]
