"""Affiliate commission computation and ledger dedup."""
from decimal import Decimal

import pytest

from techforge.features.affiliates.ledger import AffiliateLedger, COMMISSION_RATE, compute_commission
from techforge.models.plan import Plan


@pytest.mark.parametrize(
    "amount, expected",
    [
        ("100.00", "20.00"),
        ("49.00", "9.80"),
        ("12.34", "2.47"),
        ("99.99", "20.00"),
        ("0.00", "0.00"),
    ],
)
def test_compute_commission(amount, expected):
    assert compute_commission(Decimal(amount)) == Decimal(expected)


def test_commission_rate_is_twenty_percent():
    assert COMMISSION_RATE == Decimal("0.20")


def test_record_books_commission(db):
    ledger = AffiliateLedger(db)

    event = ledger.record("AFF1", "A@X.com", Plan.PRO, Decimal("100.00"), "cs_1")

    assert event.commission == Decimal("20.00")
    assert event.email == "a@x.com"
    stored = ledger.events_for_code("AFF1")
    assert len(stored) == 1
    assert stored[0].commission == Decimal("20.00")
    assert stored[0].amount == Decimal("100.00")
    assert stored[0].source_event_id == "cs_1"


def test_record_is_deduplicated_by_source_event(db):
    ledger = AffiliateLedger(db)

    assert ledger.record("AFF1", "a@x.com", Plan.PRO, Decimal("100.00"), "cs_1") is not None
    assert ledger.record("AFF1", "a@x.com", Plan.PRO, Decimal("100.00"), "cs_1") is None

    assert len(ledger.events_for_code("AFF1")) == 1


def test_events_are_scoped_to_code(db):
    ledger = AffiliateLedger(db)
    ledger.record("AFF1", "a@x.com", Plan.PRO, Decimal("100.00"), "cs_1")
    ledger.record("AFF2", "b@x.com", Plan.STARTER, Decimal("20.00"), "cs_2")

    assert [e.source_event_id for e in ledger.events_for_code("AFF2")] == ["cs_2"]
    assert ledger.events_for_code("NOBODY") == []
