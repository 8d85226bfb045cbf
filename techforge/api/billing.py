"""
Billing API routes.

Minimal surface:
- POST /checkout: Create a Stripe checkout session
- POST /fulfillment-webhook: Handle Stripe completion webhooks
"""
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from techforge.core.container import Services, get_services


router = APIRouter(tags=["billing"])


class CheckoutRequest(BaseModel):
    """Request to create checkout session. Presence is validated by the service (400, not 422)."""
    plan: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    ref: Optional[str] = None


class CheckoutResponse(BaseModel):
    """Response with checkout URL."""
    url: str


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(request: CheckoutRequest, services: Services = Depends(get_services)):
    """
    Create Stripe checkout session.

    Returns:
        {"url": "https://checkout.stripe.com/..."}

    Errors:
        400: Invalid plan, missing user_id or email
        500: Stripe or database failure
    """
    url = services.checkout.start_checkout(
        plan_id=request.plan,
        user_id=request.user_id,
        email=request.email,
        ref=request.ref,
    )
    return {"url": url}


@router.post("/fulfillment-webhook", response_class=PlainTextResponse)
async def fulfillment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    services: Services = Depends(get_services),
):
    """
    Handle Stripe webhook events.

    The signature is checked over the untouched request body. Completion
    events issue a license once per checkout session; redeliveries and other
    event types are acknowledged without side effects.

    Returns:
        "ok", or "ignored" for other event types and unusable completion events

    Errors:
        400: Missing or invalid signature
        500: Persistence failure (Stripe retries the delivery)
    """
    # Read raw body (required for signature verification)
    body = await request.body()
    outcome = await run_in_threadpool(services.fulfillment.handle_webhook, body, stripe_signature)
    return PlainTextResponse(outcome.ack)
