from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from prompt_manager.api.dependencies import get_event_router, get_webhook_verifier
from prompt_manager.core.errors import BillingError, ConfigurationError, SignatureError
from prompt_manager.core.observability import sentry_capture_exception, sentry_metric_inc, sentry_set_tags
from prompt_manager.models.enums import RouteOutcome
from prompt_manager.services.reconciliation import EventRouter
from prompt_manager.services.stripe_gateway import WebhookVerifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/api/stripe/webhooks")
async def stripe_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    event_router: EventRouter = Depends(get_event_router),
):
    """Handle Stripe webhook events.

    Responds 200 ``{"received": true}`` for every acknowledged event
    (reconciled, ignored, or an unlinked customer), 400 for configuration or
    signature errors and 500 when processing fails so Stripe retries.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        event = verifier.verify(payload, sig_header)
    except ConfigurationError as e:
        logger.error("[stripe] webhook error: %s", e)
        return PlainTextResponse("Webhook Error: Configuration issue", status_code=e.status_code)
    except SignatureError as e:
        logger.warning("[stripe] webhook signature verification failed: %s", e)
        sentry_metric_inc("stripe.webhook.invalid_signature")
        return PlainTextResponse("Webhook Error: Invalid signature", status_code=e.status_code)

    logger.info("[stripe] received event type=%s id=%s", event.type, event.id)
    sentry_metric_inc("stripe.webhook.received", tags={"event_type": event.type})
    sentry_set_tags({"stripe.event_type": event.type})

    try:
        outcome = await event_router.dispatch(event)
    except BillingError as e:
        logger.error("[stripe] webhook handler failed for event %s (%s): %s", event.type, type(e).__name__, e)
        sentry_metric_inc("stripe.webhook.handler_error", tags={"event_type": event.type})
        sentry_capture_exception(e)
        return PlainTextResponse("Webhook handler failed", status_code=500)
    except Exception as e:
        logger.exception("[stripe] webhook handler failed for event %s: %s", event.type, e)
        sentry_metric_inc("stripe.webhook.handler_error", tags={"event_type": event.type})
        sentry_capture_exception(e)
        return PlainTextResponse("Webhook handler failed", status_code=500)

    if outcome == RouteOutcome.IGNORED:
        sentry_metric_inc("stripe.webhook.ignored", tags={"event_type": event.type})
    return JSONResponse(status_code=200, content={"received": True})
