"""
Payment gateway protocols.

Defines the two narrow interfaces the core consumes from the payment
provider, so that the fulfillment pipeline never depends on a specific
client shape:

- PaymentGateway: create a hosted checkout session
- PaymentEventVerifier: authenticate and parse a webhook payload
"""
from typing import Protocol, Dict, Optional
from dataclasses import dataclass

from techforge.core.errors import ValidationError
from techforge.models.license import FulfillmentEvent


COMPLETION_EVENT_TYPE = "checkout.session.completed"


class MalformedEvent(ValidationError):
    """Authentic event whose content cannot be fulfilled (no email, unknown plan...)."""
    code = "malformed_event"

    def __init__(self, message: str, *, event_id: Optional[str] = None):
        super().__init__(message)
        self.event_id = event_id


@dataclass(frozen=True)
class GatewayEvent:
    """An authenticated webhook event."""
    event_id: str
    event_type: str
    fulfillment: Optional[FulfillmentEvent] = None

    @property
    def is_completion(self) -> bool:
        return self.event_type == COMPLETION_EVENT_TYPE


class PaymentGateway(Protocol):

    def create_checkout_session(
        self,
        price_id: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Create a subscription checkout session.

        Args:
            price_id: Provider price ID (e.g., Stripe price ID)
            customer_email: Purchaser email, prefilled on the hosted page
            success_url: URL to redirect on success
            cancel_url: URL to redirect on cancellation
            metadata: Identifiers echoed back on the completion event

        Returns:
            Checkout session URL

        Raises:
            UpstreamError: If the provider call fails or times out
        """
        ...


class PaymentEventVerifier(Protocol):

    def verify(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        """
        Verify a webhook signature over the raw payload and parse the event.

        Args:
            payload: Raw request body, exactly as received
            signature: Signature header value

        Returns:
            Parsed event; ``fulfillment`` is set for completion events

        Raises:
            InvalidSignature: If the signature is missing, wrong or stale
            MalformedEvent: If the signature is good but the body is unusable
                (not JSON, or a completion event lacking email or plan)
        """
        ...
