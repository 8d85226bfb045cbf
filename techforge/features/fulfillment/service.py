"""
Fulfillment orchestrator.

Coordinates, for one verified payment completion:
1. Dedup on the event id (an existing license short-circuits to success)
2. Profile activation
3. License issuance
4. Affiliate commission (only with a referral code)
5. License email (best-effort)

Steps 2-4 share a single database transaction, so an event either leaves a
license with its profile and commission rows, or nothing at all and is safe
to retry. Duplicate deliveries, sequential or racing, collapse onto the
unique source_event_id constraints.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from sqlalchemy.exc import IntegrityError

from techforge.core.database import Database
from techforge.core.errors import UpstreamError
from techforge.core.logging import log_event
from techforge.features.affiliates.ledger import AffiliateLedger
from techforge.features.billing.provider import MalformedEvent, PaymentEventVerifier
from techforge.features.licenses.store import DuplicateEvent, LicenseStore
from techforge.features.notifications.notifier import Notifier
from techforge.features.profiles.service import ProfileStore
from techforge.models.license import AffiliateEvent, FulfillmentEvent, License


class FulfillmentStatus(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    INVALID = "invalid"


@dataclass(frozen=True)
class FulfillmentOutcome:
    status: FulfillmentStatus
    event_id: Optional[str]
    license: Optional[License] = None
    affiliate_event: Optional[AffiliateEvent] = None
    notified: bool = False

    @property
    def ack(self) -> str:
        """Body returned to the gateway; any verified event is acknowledged."""
        if self.status in (FulfillmentStatus.IGNORED, FulfillmentStatus.INVALID):
            return "ignored"
        return "ok"


class FulfillmentOrchestrator:

    def __init__(
        self,
        db: Database,
        verifier: PaymentEventVerifier,
        profiles: ProfileStore,
        licenses: LicenseStore,
        ledger: AffiliateLedger,
        notifier: Notifier,
    ):
        self.db = db
        self.verifier = verifier
        self.profiles = profiles
        self.licenses = licenses
        self.ledger = ledger
        self.notifier = notifier

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> FulfillmentOutcome:
        """
        Verify a raw webhook delivery and fulfill it.

        Raises:
            InvalidSignature: Verification failed; nothing was written
            UpstreamError: Persistence failed before the license was committed
        """
        try:
            event = self.verifier.verify(payload, signature)
        except MalformedEvent as exc:
            # Authentic but unusable: acknowledged, nothing written
            log_event(
                "warning",
                "fulfillment.invalid",
                event_id=exc.event_id,
                error_code=exc.code,
                extra={"reason": exc.message},
            )
            return FulfillmentOutcome(status=FulfillmentStatus.INVALID, event_id=exc.event_id)

        if not event.is_completion or event.fulfillment is None:
            log_event(
                "info",
                "fulfillment.ignored",
                event_id=event.event_id,
                event_type=event.event_type,
            )
            return FulfillmentOutcome(status=FulfillmentStatus.IGNORED, event_id=event.event_id)

        return self.process(event.fulfillment)

    def process(self, event: FulfillmentEvent) -> FulfillmentOutcome:
        existing = self.licenses.find_by_event(event.event_id)
        if existing is not None:
            return self._duplicate(event, existing)

        try:
            with self.db.session() as session:
                self.profiles.upsert(
                    event.email,
                    plan=event.plan,
                    user_id=event.user_id,
                    session=session,
                )
                issued = self.licenses.issue(event.email, event.plan, event.event_id, session=session)
                commission = None
                if event.affiliate_code:
                    commission = self.ledger.record(
                        event.affiliate_code,
                        event.email,
                        event.plan,
                        event.amount,
                        event.event_id,
                        session=session,
                    )
        except DuplicateEvent as dup:
            return self._duplicate(event, dup.license)
        except IntegrityError as exc:
            # Lost a race with a concurrent delivery of the same event
            winner = self.licenses.find_by_event(event.event_id)
            if winner is not None:
                return self._duplicate(event, winner)
            raise UpstreamError("database", f"fulfillment of {event.event_id} conflicted: {exc}") from exc

        log_event(
            "info",
            "fulfillment.processed",
            event_id=event.event_id,
            email=event.email,
            extra={
                "plan": event.plan.value,
                "affiliate_code": event.affiliate_code,
                "commission": commission.commission if commission else None,
            },
        )

        return FulfillmentOutcome(
            status=FulfillmentStatus.PROCESSED,
            event_id=event.event_id,
            license=issued,
            affiliate_event=commission,
            notified=self._notify(issued, event),
        )

    def _duplicate(self, event: FulfillmentEvent, existing: License) -> FulfillmentOutcome:
        log_event(
            "info",
            "fulfillment.duplicate",
            event_id=event.event_id,
            email=event.email,
        )
        return FulfillmentOutcome(
            status=FulfillmentStatus.DUPLICATE,
            event_id=event.event_id,
            license=existing,
        )

    def _notify(self, issued: License, event: FulfillmentEvent) -> bool:
        """Fire-and-forget: the license is already committed, so a failure here is only logged."""
        try:
            self.notifier.send_license(issued)
        except Exception as exc:
            log_event(
                "warning",
                "fulfillment.notify_failed",
                event_id=event.event_id,
                email=event.email,
                error_code=getattr(exc, "code", "notify_failed"),
                extra={"error": str(exc)},
            )
            return False
        return True
