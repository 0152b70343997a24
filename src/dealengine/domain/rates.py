# src/dealengine/domain/rates.py
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict

from dealengine.domain.deal import FinancingTerms, LoanType


class LendingRate(BaseModel):
    model_config = ConfigDict(frozen=True)

    loan_type: LoanType
    label: str
    interest_rate_pct: float
    term_years: int
    max_ltv_pct: float
    down_payment_min_pct: float


# Fallback market rates. Read-only: callers that have live rates pass their own mapping.
DEFAULT_LENDING_RATES: Mapping[str, LendingRate] = MappingProxyType(
    {
        r.loan_type: r
        for r in (
            LendingRate(loan_type="sba-7a", label="SBA 7(a)", interest_rate_pct=11.25,
                        term_years=25, max_ltv_pct=90.0, down_payment_min_pct=10.0),
            LendingRate(loan_type="sba-504", label="SBA 504", interest_rate_pct=6.65,
                        term_years=25, max_ltv_pct=90.0, down_payment_min_pct=10.0),
            LendingRate(loan_type="conventional", label="Conventional", interest_rate_pct=7.25,
                        term_years=30, max_ltv_pct=80.0, down_payment_min_pct=20.0),
            LendingRate(loan_type="fha", label="FHA Loan", interest_rate_pct=6.50,
                        term_years=30, max_ltv_pct=96.5, down_payment_min_pct=3.5),
            LendingRate(loan_type="hard-money", label="Hard Money / Bridge", interest_rate_pct=13.0,
                        term_years=2, max_ltv_pct=70.0, down_payment_min_pct=30.0),
        )
    }
)


def financing_defaults(
    loan_type: str,
    purchase_price: float,
    rates: Mapping[str, LendingRate] = DEFAULT_LENDING_RATES,
) -> FinancingTerms:
    """
    Build FinancingTerms for `loan_type` at the minimum down payment.

    Loan types missing from `rates` fall back to the conventional program.
    """
    rate = rates.get(loan_type) or rates["conventional"]
    down_pct = rate.down_payment_min_pct
    loan_amount = max(0.0, purchase_price * (1 - down_pct / 100.0))
    return FinancingTerms(
        loan_type=loan_type if loan_type in rates else rate.loan_type,
        loan_amount=loan_amount,
        down_payment_pct=down_pct,
        interest_rate_pct=rate.interest_rate_pct,
        loan_term_years=rate.term_years,
        amortization_years=rate.term_years,
    )
