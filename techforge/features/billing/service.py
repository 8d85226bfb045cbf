"""
Checkout service.

Validates the requested plan and purchaser, makes sure a profile exists,
and delegates session creation to the payment gateway. The plan is carried
in session metadata and comes back on the completion webhook.
"""
import logging
from typing import Dict, Optional

from techforge.core.errors import ValidationError
from techforge.features.billing.provider import PaymentGateway
from techforge.features.profiles.service import ProfileStore
from techforge.models.plan import PURCHASABLE_PLANS, parse_plan


logger = logging.getLogger("techforge")


class CheckoutService:

    def __init__(
        self,
        gateway: PaymentGateway,
        profiles: ProfileStore,
        price_map: Dict[str, Optional[str]],
        site_url: str,
    ):
        self.gateway = gateway
        self.profiles = profiles
        self.price_map = price_map
        self.site_url = site_url.rstrip("/")

    def price_for_plan(self, plan_id: Optional[str]) -> Optional[str]:
        """Map a purchasable plan id to its configured Stripe price."""
        plan = parse_plan(plan_id)
        if plan not in PURCHASABLE_PLANS:
            return None
        return self.price_map.get(plan.value)

    def start_checkout(
        self,
        plan_id: Optional[str],
        user_id: Optional[str],
        email: Optional[str],
        ref: Optional[str] = None,
    ) -> str:
        """
        Start a checkout session.

        Returns:
            Hosted checkout URL

        Raises:
            ValidationError: Unknown or unpriced plan, missing user id or email
            UpstreamError: Gateway or database failure
        """
        price_id = self.price_for_plan(plan_id)
        if not price_id:
            raise ValidationError("Invalid plan", code="invalid_plan")
        if not user_id or not email or not email.strip():
            raise ValidationError("Missing user", code="missing_user")

        plan = parse_plan(plan_id)
        self.profiles.upsert(email, user_id=user_id)

        url = self.gateway.create_checkout_session(
            price_id=price_id,
            customer_email=email.strip(),
            success_url=f"{self.site_url}/?success=1",
            cancel_url=f"{self.site_url}/?canceled=1",
            metadata={
                "plan": plan.value,
                "user_id": user_id,
                "ref": (ref or "").strip(),
            },
        )
        logger.info("checkout.started", extra={"plan": plan.value})
        return url
