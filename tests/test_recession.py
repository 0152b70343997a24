import pytest
from pydantic import ValidationError
from hypothesis import given, settings, strategies as st

from dealengine.analysis.metrics import calc_metrics
from dealengine.analysis.negotiation import stress_test
from dealengine.analysis.recession import (
    DEFAULT_RECESSION,
    RecessionOverrides,
    apply_recession_overrides,
    recession_labels,
)

from fixtures.deals import duplex_rental, hvac_business, laundromat_hybrid


def test_real_estate_overrides(duplex):
    stressed = apply_recession_overrides(duplex)

    assert stressed.vacancy_rate == pytest.approx(12.0)
    assert stressed.gross_rental_income == 32_400.0
    assert stressed.financing.interest_rate_pct == pytest.approx(8.5)
    assert stressed.annual_expense_growth == pytest.approx(3.0)
    assert stressed.annual_rent_growth == pytest.approx(1.0)
    assert stressed.annual_appreciation == pytest.approx(0.0)


def test_input_is_not_mutated(duplex):
    before = duplex.model_dump()
    apply_recession_overrides(duplex)
    assert duplex.model_dump() == before


def test_business_overrides(business):
    stressed = apply_recession_overrides(business)

    assert stressed.annual_revenue == 900_000.0
    assert stressed.annual_revenue_growth == pytest.approx(0.0)
    assert stressed.financing.interest_rate_pct == pytest.approx(12.75)
    assert stressed.annual_expense_growth == pytest.approx(3.0)
    # cost lines are left alone
    assert stressed.cost_of_goods == business.cost_of_goods


def test_hybrid_gets_both_sets(hybrid_deal):
    stressed = apply_recession_overrides(hybrid_deal)

    assert stressed.vacancy_rate == pytest.approx(12.0)
    assert stressed.gross_rental_income == 54_000.0
    assert stressed.annual_revenue == 450_000.0
    assert stressed.annual_revenue_growth == pytest.approx(0.0)


def test_revenue_is_rounded_to_whole_dollars():
    stressed = apply_recession_overrides(duplex_rental(gross_rental_income=12_345.0))
    assert stressed.gross_rental_income == float(round(12_345.0 * 0.9))


def test_vacancy_capped_but_never_lowered():
    assert apply_recession_overrides(duplex_rental(vacancy_rate=48.0)).vacancy_rate == 50.0
    assert apply_recession_overrides(duplex_rental(vacancy_rate=60.0)).vacancy_rate == 60.0


def test_growth_floors_never_raise_a_rate():
    stressed = apply_recession_overrides(
        duplex_rental(annual_rent_growth=-4.0, annual_appreciation=-8.0)
    )
    assert stressed.annual_rent_growth == pytest.approx(-5.0)
    assert stressed.annual_appreciation == pytest.approx(-8.0)

    biz = apply_recession_overrides(hvac_business(annual_revenue_growth=-12.0))
    assert biz.annual_revenue_growth == pytest.approx(-12.0)


def test_wraps_deal_objects(rental_deal):
    stressed = apply_recession_overrides(rental_deal)
    assert stressed.id == rental_deal.id
    assert stressed.data.vacancy_rate == pytest.approx(12.0)
    assert rental_deal.data.vacancy_rate == pytest.approx(5.0)


def test_custom_overrides(duplex):
    mild = RecessionOverrides(vacancy_increase=2.0, revenue_reduction=0.0, interest_rate_increase=0.5)
    stressed = apply_recession_overrides(duplex, mild)
    assert stressed.vacancy_rate == pytest.approx(7.0)
    assert stressed.gross_rental_income == 36_000.0
    assert stressed.financing.interest_rate_pct == pytest.approx(7.5)


def test_defaults_are_frozen():
    with pytest.raises(ValidationError):
        DEFAULT_RECESSION.vacancy_increase = 20.0


def test_labels_per_kind():
    assert recession_labels("business") == [
        "Interest rate +1.5%",
        "Revenue -10%",
        "Expense growth +1%",
    ]
    assert recession_labels("real-estate") == [
        "Interest rate +1.5%",
        "Revenue -10%",
        "Vacancy +7%",
        "Expense growth +1%",
        "Appreciation reduced",
    ]


@pytest.mark.parametrize("builder", [duplex_rental, hvac_business, laundromat_hybrid])
def test_stress_lowers_cash_flow_and_score(builder):
    payload = builder()
    result = stress_test(payload)
    assert result.stressed_cash_flow < result.base_cash_flow
    assert result.stressed_score <= result.base_score
    assert calc_metrics(apply_recession_overrides(payload)).dscr < calc_metrics(payload).dscr


@settings(max_examples=50, deadline=None)
@given(
    rent=st.floats(min_value=24_000.0, max_value=60_000.0),
    price=st.floats(min_value=150_000.0, max_value=350_000.0),
    vacancy=st.floats(min_value=0.0, max_value=20.0),
    taxes=st.floats(min_value=0.0, max_value=6_000.0),
)
def test_recession_never_improves_the_score(rent, price, vacancy, taxes):
    payload = duplex_rental(
        gross_rental_income=rent,
        purchase_price=price,
        vacancy_rate=vacancy,
        property_tax=taxes,
        financing={
            "loan_amount": price * 0.75,
            "down_payment_pct": 25.0,
            "interest_rate_pct": 7.0,
            "amortization_years": 30,
        },
    )
    result = stress_test(payload)
    assert result.stressed_score <= result.base_score
    assert result.stressed_cash_flow <= result.base_cash_flow
