"""
techforge/features/affiliates/ledger.py

Affiliate commission ledger.

One append-only row per commissioned sale, keyed by the fulfillment event id
so a replayed event can never book the same commission twice. Commission is
computed once, at record time, and stored; it is never recomputed.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from sqlalchemy import select, insert
from sqlalchemy.orm import Session

from techforge.core.database import Database, affiliate_events
from techforge.features.profiles.service import normalize_email
from techforge.models.license import AffiliateEvent
from techforge.models.plan import Plan


COMMISSION_RATE = Decimal("0.20")
CENTS = Decimal("0.01")


def compute_commission(amount: Decimal, rate: Decimal = COMMISSION_RATE) -> Decimal:
    """amount x rate, rounded half-up to the cent."""
    return (Decimal(amount) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)


def _row_to_event(row) -> AffiliateEvent:
    return AffiliateEvent(
        affiliate_code=row.affiliate_code,
        email=row.email,
        plan=Plan(row.plan),
        amount=Decimal(row.amount).quantize(CENTS),
        commission=Decimal(row.commission).quantize(CENTS),
        source_event_id=row.source_event_id,
        created_at=row.created_at,
    )


class AffiliateLedger:

    def __init__(self, db: Database, rate: Decimal = COMMISSION_RATE):
        self.db = db
        self.rate = rate

    def record(
        self,
        affiliate_code: str,
        email: str,
        plan: Plan,
        amount: Decimal,
        source_event_id: str,
        *,
        session: Optional[Session] = None,
    ) -> Optional[AffiliateEvent]:
        """
        Book the commission for one sale.

        Returns None when a row already exists for ``source_event_id``.
        """
        with self.db.scope(session) as s:
            existing = s.execute(
                select(affiliate_events.c.id).where(
                    affiliate_events.c.source_event_id == source_event_id
                )
            ).fetchone()
            if existing:
                return None

            amount = Decimal(amount).quantize(CENTS)
            event = AffiliateEvent(
                affiliate_code=affiliate_code,
                email=normalize_email(email),
                plan=plan,
                amount=amount,
                commission=compute_commission(amount, self.rate),
                source_event_id=source_event_id,
                created_at=datetime.now(timezone.utc),
            )
            s.execute(
                insert(affiliate_events).values(
                    affiliate_code=event.affiliate_code,
                    email=event.email,
                    plan=event.plan.value,
                    amount=event.amount,
                    commission=event.commission,
                    source_event_id=event.source_event_id,
                    created_at=event.created_at,
                )
            )
            s.flush()
            return event

    def events_for_code(self, affiliate_code: str) -> List[AffiliateEvent]:
        with self.db.session() as s:
            rows = s.execute(
                select(affiliate_events)
                .where(affiliate_events.c.affiliate_code == affiliate_code)
                .order_by(affiliate_events.c.created_at)
            ).fetchall()
        return [_row_to_event(row) for row in rows]
