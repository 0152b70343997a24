import pytest

from dealengine.analysis import real_estate
from dealengine.analysis.finance import annuity_payment
from dealengine.analysis.metrics import calc_metrics
from dealengine.analysis.negotiation import (
    PRICE_LADDER_STEPS,
    build_negotiation_analysis,
    negotiation_points,
    price_ladder,
)
from dealengine.analysis.valuation import (
    cap_rate_range,
    fair_value_range,
    max_supportable_price,
    multiple_range,
)

from fixtures.deals import duplex_rental, hvac_business, laundromat_hybrid, starter_rental


def test_cap_rate_bands_by_size():
    assert (cap_rate_range(duplex_rental()).low, cap_rate_range(duplex_rental()).high) == (6.0, 10.0)
    assert cap_rate_range(duplex_rental(purchase_price=900_000.0)).low == 5.0
    assert cap_rate_range(duplex_rental(purchase_price=3_000_000.0)).high == 7.0
    # hybrids are sized by the property allocation
    assert cap_rate_range(laundromat_hybrid()).label == "mid-market commercial"


def test_multiple_band_adjustments(business):
    band = multiple_range(business)
    assert (band.low, band.high) == (2.5, 4.0)
    assert "strong margins" in band.reason

    micro = multiple_range(hvac_business(annual_revenue=200_000.0, cost_of_goods=80_000.0, operating_expenses=60_000.0))
    assert micro.low >= 1.0
    assert "micro-business" in micro.reason

    hy = multiple_range(laundromat_hybrid())
    assert (hy.low, hy.high) == (3.0, 4.5)
    assert "real property" in hy.reason


def test_real_estate_fair_value(duplex):
    v = fair_value_range(duplex)
    assert v.method == "Cap Rate"
    assert v.low == pytest.approx(23_220.0 / 0.10)
    assert v.high == pytest.approx(23_220.0 / 0.06)
    assert v.mid == pytest.approx((v.low + v.high) / 2)
    assert v.details


def test_business_fair_value(business):
    v = fair_value_range(business)
    assert v.method == "SDE Multiple"
    assert v.low == pytest.approx(385_000.0 * 2.5)
    assert v.high == pytest.approx(385_000.0 * 4.0)


def test_hybrid_fair_value(hybrid_deal):
    v = fair_value_range(hybrid_deal)
    assert v.method == "Dual (Property + Business)"
    assert v.low == pytest.approx(220_000.0 * 3.0 + 30_000.0 / 0.08)
    assert v.high == pytest.approx(220_000.0 * 4.5 + 30_000.0 / 0.05)


def test_money_losing_building_adds_nothing():
    deal = laundromat_hybrid(gross_rental_income=0.0)
    v = fair_value_range(deal)
    assert v.low == pytest.approx(220_000.0 * 3.0)


@pytest.mark.parametrize("builder", [duplex_rental, hvac_business, laundromat_hybrid])
def test_max_supportable_price_holds_target_dscr(builder):
    payload = builder()
    c = max_supportable_price(payload, min_dscr=1.25)
    fin = payload.financing

    loan = c.max_supportable_price * (1 - fin.down_payment_pct / 100.0)
    annual_debt = annuity_payment(fin.interest_rate_pct / 100.0 / 12.0, fin.amortization_years * 12, loan) * 12
    assert c.noi / annual_debt == pytest.approx(1.25, rel=1e-9)
    assert c.dscr == pytest.approx(calc_metrics(payload).dscr)
    assert c.min_dscr == 1.25


def test_business_constraint_uses_earnings_after_replacement_salary(business):
    c = max_supportable_price(business)
    assert c.noi == pytest.approx(305_000.0)


def test_no_income_supports_no_price():
    c = max_supportable_price(starter_rental(gross_rental_income=0.0))
    assert c.max_supportable_price == 0.0
    assert "no positive cash flow" in c.explanation


def test_points_sorted_by_impact():
    deal = duplex_rental(
        purchase_price=600_000.0,
        vacancy_rate=2.0,
        rehab_costs=120_000.0,
        financing={"loan_amount": 480_000.0, "down_payment_pct": 20.0, "interest_rate_pct": 9.0},
    )
    points = negotiation_points(deal)
    rank = {"high": 0, "medium": 1, "low": 2}
    assert [rank[p.impact] for p in points] == sorted(rank[p.impact] for p in points)

    titles = {p.title for p in points}
    assert "Optimistic Vacancy Assumption" in titles
    assert "Elevated Interest Rate Environment" in titles
    assert "Significant Rehabilitation Required" in titles
    assert "Cap Rate Below Market Range" in titles


def test_starter_rental_points(starter):
    titles = [p.title for p in negotiation_points(starter)]
    assert titles == ["Optimistic Vacancy Assumption"]


def test_business_points():
    deal = hvac_business(owner_salary=30_000.0, asking_price=2_500_000.0)
    titles = {p.title for p in negotiation_points(deal)}
    assert "Asking Multiple Above Market Range" in titles
    assert "Understated Owner Compensation" in titles


def test_price_ladder_base_step_matches_metrics(starter):
    ladder = price_ladder(starter)
    m = calc_metrics(starter)

    assert len(ladder) == len(PRICE_LADDER_STEPS)
    base = ladder[PRICE_LADDER_STEPS.index(0)]
    assert base.price == 250_000
    assert base.cash_flow == round(m.annual_cash_flow)
    assert base.dscr == round(m.dscr, 2)
    assert base.return_label == "Cash-on-Cash"
    # cheaper purchase, better cash flow
    flows = [p.cash_flow for p in ladder]
    assert flows == sorted(flows, reverse=True)


def test_business_ladder_reports_roi(business):
    assert {p.return_label for p in price_ladder(business)} == {"ROI"}


def test_full_analysis(rental_deal):
    analysis = build_negotiation_analysis(rental_deal)
    payload = rental_deal.data

    assert analysis.deal_name == "Elm St Duplex"
    assert analysis.deal_kind == "Real Estate"
    assert analysis.asking_price == 300_000.0
    assert analysis.price_gap.suggested_offer_low == round(analysis.valuation.low)
    assert analysis.price_gap.suggested_offer_high == round((analysis.valuation.low + analysis.valuation.mid) / 2)
    assert analysis.stress_test.stressed_score <= analysis.stress_test.base_score
    assert len(analysis.price_ladder) == 7
    assert analysis.dscr_constraint.noi == pytest.approx(real_estate.noi(payload))

    d = analysis.to_dict()
    assert d["valuation"]["method"] == "Cap Rate"
    assert d["stress_test"]["base_score"] == analysis.stress_test.base_score
