from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from hacktowin.payments import PaymentService, PaymentStore

router = APIRouter(tags=["payments"])


class PaymentIntentRequest(BaseModel):
    # Type is checked by validate_intent_request
    amount: Any = None
    currency: Optional[str] = None


def get_payment_service(request: Request) -> PaymentService:
    state = request.app.state
    return PaymentService(
        PaymentStore(state.database),
        state.gateway,
        unknown_intent_policy=state.settings.unknown_intent_policy,
    )


@router.post("/create-payment-intent")
def create_payment_intent(
    request: PaymentIntentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    client_secret = service.create_intent(request.amount, request.currency)
    return {"clientSecret": client_secret}


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
):
    # Signature is computed over the exact bytes Stripe sent
    payload = await request.body()
    await run_in_threadpool(service.handle_webhook, payload, stripe_signature)
    return Response(status_code=200)
