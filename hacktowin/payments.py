"""
Payment intent creation and webhook reconciliation.

A payment record is written as ``pending`` when the intent is created and is
moved to ``succeeded`` or ``failed`` only by verified Stripe webhooks. Stripe
delivers webhooks at least once, so applying the same outcome twice must be a
no-op and every verified delivery is acknowledged.
"""
import re
from typing import Optional, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError

from hacktowin.database import Database
from hacktowin.errors import PersistenceError, ValidationError
from hacktowin.models import Payment, PaymentStatus
from hacktowin.stripe_service import (
    GatewayEvent,
    IntentFailed,
    IntentSucceeded,
    StripeGateway,
    UnhandledEvent,
)

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "inr"
CURRENCY_PATTERN = re.compile(r"^[a-z]{3}$")


def validate_intent_request(amount, currency=None) -> Tuple[int, str]:
    if amount is None:
        raise ValidationError("Amount is required.")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer.")

    if currency is None or currency == "":
        currency = DEFAULT_CURRENCY
    if not isinstance(currency, str) or not CURRENCY_PATTERN.match(currency.strip().lower()):
        raise ValidationError("Currency must be a three-letter ISO code.")

    return amount, currency.strip().lower()


class PaymentStore:
    def __init__(self, database: Database):
        self.database = database

    def insert_pending(self, intent_id: str, amount: int, currency: str) -> None:
        with self.database.session() as db:
            db.add(Payment(
                id=intent_id,
                amount=amount,
                currency=currency,
                status=PaymentStatus.PENDING.value,
            ))
            try:
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError("Could not save payment record.") from exc

    def get(self, intent_id: str) -> Optional[Payment]:
        with self.database.session() as db:
            return db.get(Payment, intent_id)

    def update_status(self, intent_id: str, status: PaymentStatus) -> Optional[PaymentStatus]:
        """
        Set the status of an existing record.

        Returns the status the record had before, or None when no record
        matches. Nothing is written when the status is already current.
        """
        with self.database.session() as db:
            try:
                payment = db.get(Payment, intent_id, with_for_update=True)
                if payment is None:
                    return None

                previous = PaymentStatus(payment.status)
                if previous != status:
                    payment.status = status.value
                    db.commit()
                return previous
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError("Could not update payment record.") from exc


class PaymentService:
    def __init__(
        self,
        store: PaymentStore,
        gateway: StripeGateway,
        unknown_intent_policy: str = "report",
    ):
        self.store = store
        self.gateway = gateway
        self.unknown_intent_policy = unknown_intent_policy

    def create_intent(self, amount, currency=None) -> str:
        amount, currency = validate_intent_request(amount, currency)

        intent = self.gateway.create_intent(amount, currency)

        try:
            self.store.insert_pending(intent.id, amount, currency)
        except PersistenceError:
            # The intent now exists at Stripe with no local record
            logger.error(
                "payment_intent_orphaned",
                intent_id=intent.id,
                amount=amount,
                currency=currency,
            )
            raise

        logger.info("payment_intent_created", intent_id=intent.id, amount=amount, currency=currency)
        return intent.client_secret

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        event = self.gateway.construct_event(payload, signature)

        if isinstance(event, UnhandledEvent):
            logger.info("webhook_event_unhandled", event_id=event.event_id, event_type=event.event_type)
            return event

        if isinstance(event, IntentSucceeded):
            status = PaymentStatus.SUCCEEDED
        else:
            status = PaymentStatus.FAILED

        previous = self.store.update_status(event.intent_id, status)
        self._log_transition(event, previous, status)
        return event

    def _log_transition(self, event, previous, status):
        context = {"event_id": event.event_id, "intent_id": event.intent_id, "status": status.value}
        if isinstance(event, IntentFailed) and event.failure_message:
            context["failure_message"] = event.failure_message

        if previous is None:
            if self.unknown_intent_policy == "report":
                logger.warning("webhook_intent_not_found", anomaly=True, **context)
            else:
                logger.info("webhook_intent_not_found", **context)
        elif previous == status:
            logger.info("webhook_event_duplicate", **context)
        elif previous != PaymentStatus.PENDING:
            # Last write wins between terminal states
            logger.warning("payment_status_overwritten", previous=previous.value, **context)
        else:
            logger.info("payment_status_updated", previous=previous.value, **context)
