"""
techforge/models/plan.py

Subscription tiers and their rank.

Tiers form a fixed total order: free < starter < pro < agency. The order is
declared explicitly in PLAN_RANK; it is never derived from the names.
"""

from enum import Enum
from typing import Optional


class Plan(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    AGENCY = "agency"

    @property
    def rank(self) -> int:
        return PLAN_RANK[self]

    def covers(self, required: "Plan") -> bool:
        """True when this tier is at least as high as ``required``."""
        return self.rank >= required.rank


PLAN_RANK = {
    Plan.FREE: 0,
    Plan.STARTER: 1,
    Plan.PRO: 2,
    Plan.AGENCY: 3,
}

# Tiers that can be bought through checkout
PURCHASABLE_PLANS = (Plan.STARTER, Plan.PRO, Plan.AGENCY)


def parse_plan(value: Optional[str]) -> Optional[Plan]:
    """Return the Plan for a raw string, or None when it is not a known tier."""
    if not value:
        return None
    try:
        return Plan(value.strip().lower())
    except ValueError:
        return None
