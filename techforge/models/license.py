"""
techforge/models/license.py

Persisted records and the fulfillment event payload.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from techforge.models.plan import Plan


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class License(BaseModel):
    """
    A redeemable grant tied to an email and a plan.

    Immutable once issued except for the active -> revoked transition.
    """
    model_config = ConfigDict(frozen=True)

    key: str
    email: str
    plan: Plan
    status: LicenseStatus
    source_event_id: Optional[str] = None
    created_at: datetime
    revoked_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == LicenseStatus.ACTIVE


class Profile(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    email: str
    plan: Plan
    updated_at: datetime


class AffiliateEvent(BaseModel):
    """One commissioned sale. Append-only."""
    model_config = ConfigDict(frozen=True)

    affiliate_code: str
    email: str
    plan: Plan
    amount: Decimal
    commission: Decimal
    source_event_id: str
    created_at: datetime


class FulfillmentEvent(BaseModel):
    """
    A verified payment completion.

    event_id is the checkout session id and serves as the idempotency key for
    the whole fulfillment; gateway_event_id is kept for log correlation only.
    """
    model_config = ConfigDict(frozen=True)

    event_id: str
    email: str
    plan: Plan
    amount: Decimal = Decimal("0.00")
    affiliate_code: Optional[str] = None
    user_id: Optional[str] = None
    gateway_event_id: Optional[str] = None
