import pytest

from dealengine.analysis.criteria import (
    CriteriaCondition,
    InvestmentCriteria,
    check_condition,
    deal_matches_criteria,
    matching_criteria,
    metric_value,
)
from dealengine.analysis.metrics import calc_metrics


def _criteria(**kwargs) -> InvestmentCriteria:
    return InvestmentCriteria.model_validate(kwargs)


def test_metric_lookup_accepts_camel_case_and_aliases(rental_deal):
    m = calc_metrics(rental_deal)
    assert metric_value(m, "capRate") == pytest.approx(m.cap_rate)
    assert metric_value(m, "cash_on_cash_return") == pytest.approx(m.cash_on_cash)
    assert metric_value(m, "monthlyMortgage") == pytest.approx(m.monthly_debt_service)
    assert metric_value(m, "sde") is None


def test_operators(rental_deal):
    m = calc_metrics(rental_deal)
    assert check_condition(m, CriteriaCondition(metric="cap_rate", operator="gte", value=m.cap_rate))
    assert check_condition(m, CriteriaCondition(metric="cap_rate", operator="lte", value=m.cap_rate + 1))
    assert check_condition(m, CriteriaCondition(metric="noi", operator="eq", value=m.noi + 0.005))
    assert not check_condition(m, CriteriaCondition(metric="noi", operator="eq", value=m.noi + 1))


def test_unknown_metric_fails_the_condition(rental_deal):
    m = calc_metrics(rental_deal)
    assert not check_condition(m, CriteriaCondition(metric="sdeMultiple", operator="gte", value=0))


def test_kind_must_match(rental_deal, business_deal):
    crit = _criteria(name="Rentals", dealType="real-estate", conditions=[])
    assert deal_matches_criteria(rental_deal, crit)
    assert not deal_matches_criteria(business_deal, crit)

    anything = _criteria(name="Anything")
    assert deal_matches_criteria(business_deal, anything)


def test_every_condition_must_hold(rental_deal):
    crit = _criteria(
        dealType="any",
        conditions=[
            {"metric": "capRate", "operator": "gte", "value": 5},
            {"metric": "dscr", "operator": "gte", "value": 5},
        ],
    )
    assert not deal_matches_criteria(rental_deal, crit)


def test_matching_skips_inactive(rental_deal):
    active = _criteria(id="a", conditions=[{"metric": "noi", "operator": "gte", "value": 0}])
    paused = _criteria(id="b", isActive=False)
    strict = _criteria(id="c", conditions=[{"metric": "noi", "operator": "gte", "value": 1_000_000}])

    assert [c.id for c in matching_criteria(rental_deal, [active, paused, strict])] == ["a"]
