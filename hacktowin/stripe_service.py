"""
Stripe gateway client.

Creates payment intents and turns signed webhook deliveries into one of a
small set of typed events. Anything Stripe sends that we do not act on comes
back as ``UnhandledEvent`` so callers never poke at raw event payloads.
"""
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import stripe
import structlog

from hacktowin.errors import AuthenticationError, UpstreamError

logger = structlog.get_logger(__name__)

INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"


@dataclass(frozen=True)
class CreatedIntent:
    id: str
    client_secret: str


@dataclass(frozen=True)
class IntentSucceeded:
    event_id: Optional[str]
    intent_id: str


@dataclass(frozen=True)
class IntentFailed:
    event_id: Optional[str]
    intent_id: str
    failure_message: Optional[str] = None


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: Optional[str]
    event_type: Optional[str]


GatewayEvent = Union[IntentSucceeded, IntentFailed, UnhandledEvent]


def parse_event(event: Mapping[str, Any]) -> GatewayEvent:
    event_id = event.get("id")
    event_type = event.get("type")

    if event_type not in (INTENT_SUCCEEDED, INTENT_FAILED):
        return UnhandledEvent(event_id=event_id, event_type=event_type)

    intent = (event.get("data") or {}).get("object") or {}
    intent_id = intent.get("id")
    if not intent_id:
        logger.warning("webhook_event_missing_intent", event_id=event_id, event_type=event_type)
        return UnhandledEvent(event_id=event_id, event_type=event_type)

    if event_type == INTENT_SUCCEEDED:
        return IntentSucceeded(event_id=event_id, intent_id=intent_id)

    last_error = intent.get("last_payment_error") or {}
    return IntentFailed(
        event_id=event_id,
        intent_id=intent_id,
        failure_message=last_error.get("message"),
    )


class StripeGateway:
    def __init__(self, api_key: str, webhook_secret: str, timeout: float = 10.0):
        self.webhook_secret = webhook_secret
        # No automatic retries; callers and Stripe's webhook redelivery own retry
        self.client = stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )

    def create_intent(self, amount: int, currency: str) -> CreatedIntent:
        try:
            intent = self.client.v1.payment_intents.create(params={
                "amount": amount,
                "currency": currency,
                "automatic_payment_methods": {"enabled": True},
            })
        except stripe.StripeError as exc:
            logger.error(
                "stripe_intent_create_failed",
                amount=amount,
                currency=currency,
                error=str(exc),
            )
            raise UpstreamError("Payment provider request failed.") from exc

        return CreatedIntent(id=intent.id, client_secret=intent.client_secret)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        if not signature:
            logger.warning("webhook_signature_missing")
            raise AuthenticationError("Missing stripe-signature header")

        try:
            event = self.client.construct_event(payload, signature, self.webhook_secret)
        except ValueError as exc:
            logger.warning("webhook_payload_invalid", error=str(exc))
            raise AuthenticationError("Invalid payload") from exc
        except stripe.SignatureVerificationError as exc:
            logger.warning("webhook_signature_invalid", error=str(exc))
            raise AuthenticationError("Invalid signature") from exc

        if isinstance(event, stripe.StripeObject):
            event = event.to_dict()
        return parse_event(event)
