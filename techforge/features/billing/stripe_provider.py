"""
Stripe payment gateway implementation.

Implements PaymentGateway and PaymentEventVerifier using the Stripe SDK.
Webhook signatures are checked over the raw request bytes; the payload is
only parsed after verification succeeds.

Each provider owns its own StripeClient; the SDK's module-level api_key and
http client are never touched.
"""
import json
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional
import stripe

from techforge.core.errors import InvalidSignature, UpstreamError
from techforge.features.billing.provider import GatewayEvent, MalformedEvent
from techforge.models.license import FulfillmentEvent
from techforge.models.plan import PURCHASABLE_PLANS, parse_plan


CENTS = Decimal("0.01")


class StripeProvider:
    """Stripe implementation of the PaymentGateway and PaymentEventVerifier protocols."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        *,
        timeout: float = 10.0,
        tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
        client: Optional[stripe.StripeClient] = None,
    ):
        """
        Initialize Stripe provider.

        Args:
            secret_key: Stripe secret key, required for checkout creation
            webhook_secret: Stripe webhook signing secret, required for verification
            timeout: Seconds before a Stripe API call is abandoned
            tolerance: Maximum age in seconds of a signed webhook timestamp
            client: Preconfigured StripeClient (overrides secret_key/timeout)
        """
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

        if client is None and secret_key:
            client = stripe.StripeClient(
                secret_key,
                http_client=stripe.RequestsClient(timeout=timeout),
            )
        self.client = client

    def create_checkout_session(
        self,
        price_id: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """Create Stripe checkout session."""
        if self.client is None:
            raise UpstreamError("stripe", "STRIPE_SECRET_KEY not configured")
        try:
            session = self.client.checkout.sessions.create(
                params={
                    "mode": "subscription",
                    "line_items": [{"price": price_id, "quantity": 1}],
                    "customer_email": customer_email,
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "metadata": metadata or {},
                }
            )
        except stripe.StripeError as e:
            raise UpstreamError("stripe", f"checkout session creation failed: {e}") from e

        if not session.url:
            raise UpstreamError("stripe", f"checkout session {session.id} has no url")
        return session.url

    def verify(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        """Verify Stripe webhook signature and parse event."""
        if not self.webhook_secret:
            raise UpstreamError("stripe", "STRIPE_WEBHOOK_SECRET not configured")
        if not signature:
            raise InvalidSignature("Missing stripe-signature header")

        try:
            raw = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidSignature("Payload is not valid UTF-8")

        try:
            stripe.WebhookSignature.verify_header(
                raw, signature, self.webhook_secret, self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(f"Invalid signature: {e.user_message or e}")

        try:
            event = json.loads(raw)
        except ValueError as e:
            raise MalformedEvent(f"Invalid payload: {e}")
        if not isinstance(event, dict):
            raise MalformedEvent("Invalid payload: expected a JSON object")

        return self._parse_event(event)

    def _parse_event(self, event: Dict[str, Any]) -> GatewayEvent:
        """Parse Stripe event into a normalized GatewayEvent."""
        event_id = str(event.get("id") or "")
        event_type = str(event.get("type") or "")
        result = GatewayEvent(event_id=event_id, event_type=event_type)
        if not result.is_completion:
            return result

        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}

        session_id = session.get("id")
        if not session_id:
            raise MalformedEvent("Checkout session id missing", event_id=event_id)

        email = (session.get("customer_details") or {}).get("email") or session.get("customer_email")
        if not email:
            raise MalformedEvent("Purchaser email missing", event_id=event_id)

        plan = parse_plan(metadata.get("plan"))
        if plan not in PURCHASABLE_PLANS:
            raise MalformedEvent(f"Invalid plan: {metadata.get('plan')!r}", event_id=event_id)

        try:
            cents = Decimal(str(session.get("amount_total") or 0))
        except InvalidOperation:
            raise MalformedEvent(f"Invalid amount_total: {session.get('amount_total')!r}", event_id=event_id)

        return GatewayEvent(
            event_id=event_id,
            event_type=event_type,
            fulfillment=FulfillmentEvent(
                event_id=session_id,
                email=email.strip().lower(),
                plan=plan,
                # Stripe reports amounts in cents
                amount=(cents / 100).quantize(CENTS),
                affiliate_code=(metadata.get("ref") or "").strip() or None,
                user_id=metadata.get("user_id") or session.get("client_reference_id") or None,
                gateway_event_id=event_id,
            ),
        )
