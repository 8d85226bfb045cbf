"""Plan ordering and parsing."""
import pytest

from techforge.models.plan import Plan, PLAN_RANK, PURCHASABLE_PLANS, parse_plan


def test_rank_is_explicit_total_order():
    ordered = [Plan.FREE, Plan.STARTER, Plan.PRO, Plan.AGENCY]
    ranks = [p.rank for p in ordered]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == len(ranks)
    # Alphabetical order would put agency first
    assert sorted(p.value for p in ordered)[0] == "agency"
    assert Plan.AGENCY.rank == max(PLAN_RANK.values())


@pytest.mark.parametrize("held", list(Plan))
@pytest.mark.parametrize("required", list(Plan))
def test_covers_matches_rank_comparison(held, required):
    assert held.covers(required) is (PLAN_RANK[held] >= PLAN_RANK[required])


def test_free_is_not_purchasable():
    assert Plan.FREE not in PURCHASABLE_PLANS
    assert set(PURCHASABLE_PLANS) == {Plan.STARTER, Plan.PRO, Plan.AGENCY}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("pro", Plan.PRO),
        (" Agency ", Plan.AGENCY),
        ("STARTER", Plan.STARTER),
        ("enterprise", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_plan(raw, expected):
    assert parse_plan(raw) is expected
