import pytest
from pydantic import ValidationError

from dealengine.domain.deal import (
    BusinessDeal,
    Deal,
    FinancingTerms,
    RealEstateDeal,
    Scenario,
    apply_scenario,
    override_payload,
    resolve_field_name,
)
from dealengine.domain.rates import DEFAULT_LENDING_RATES, financing_defaults

from fixtures.deals import as_deal, duplex_rental


def test_camel_case_record_parses_to_the_right_kind():
    deal = Deal.model_validate(
        {
            "id": "abc",
            "name": "Corner Store",
            "data": {
                "kind": "business",
                "askingPrice": 400_000,
                "annualRevenue": 900_000,
                "financing": {"loanType": "sba-7a", "downPaymentPct": 10, "interestRatePct": 11.25},
            },
            "tags": ["retail"],
        }
    )
    assert isinstance(deal.data, BusinessDeal)
    assert deal.kind == "business"
    assert deal.price == 400_000.0
    assert deal.financing.loan_type == "sba-7a"
    assert deal.financing.amortization_years == 30


def test_unknown_kind_is_rejected():
    with pytest.raises(ValidationError):
        Deal.model_validate({"id": "x", "data": {"kind": "land", "purchasePrice": 1}})


def test_down_payment_must_be_a_percent():
    with pytest.raises(ValidationError):
        FinancingTerms(down_payment_pct=120.0)
    with pytest.raises(ValidationError):
        FinancingTerms(down_payment_pct=-1.0)


def test_resolve_field_name():
    assert resolve_field_name(RealEstateDeal, "vacancyRate") == "vacancy_rate"
    assert resolve_field_name(RealEstateDeal, "vacancy_rate") == "vacancy_rate"
    with pytest.raises(ValueError):
        resolve_field_name(RealEstateDeal, "askingPrice")


def test_override_merges_financing_field_by_field(duplex):
    changed = override_payload(duplex, {"grossRentalIncome": 40_000, "financing": {"interestRatePct": 6.0}})
    assert changed.gross_rental_income == 40_000.0
    assert changed.financing.interest_rate_pct == 6.0
    assert changed.financing.loan_amount == duplex.financing.loan_amount
    assert duplex.gross_rental_income == 36_000.0


def test_override_cannot_change_kind(duplex):
    with pytest.raises(ValueError):
        override_payload(duplex, {"kind": "business"})


def test_apply_scenario_by_name_and_id():
    deal = as_deal(
        duplex_rental(),
        scenarios=[Scenario(id="s1", name="Rate bump", overrides={"financing": {"interest_rate_pct": 9.0}})],
    )
    by_name = apply_scenario(deal, "Rate bump")
    by_id = apply_scenario(deal, "s1")

    assert by_name.data.financing.interest_rate_pct == 9.0
    assert by_id == by_name
    assert deal.data.financing.interest_rate_pct == 7.0

    with pytest.raises(ValueError):
        apply_scenario(deal, "missing")


def test_financing_defaults_by_program():
    fin = financing_defaults("sba-7a", 500_000.0)
    assert fin.loan_type == "sba-7a"
    assert fin.down_payment_pct == 10.0
    assert fin.loan_amount == pytest.approx(450_000.0)
    assert fin.interest_rate_pct == 11.25
    assert fin.amortization_years == 25


def test_financing_defaults_fall_back_to_conventional():
    fin = financing_defaults("custom", 200_000.0)
    assert fin.loan_type == "conventional"
    assert fin.down_payment_pct == 20.0
    assert fin.loan_amount == pytest.approx(160_000.0)


def test_default_rates_are_read_only():
    with pytest.raises(TypeError):
        DEFAULT_LENDING_RATES["fha"] = DEFAULT_LENDING_RATES["conventional"]
