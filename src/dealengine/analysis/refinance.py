# src/dealengine/analysis/refinance.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dealengine.analysis.amortization import remaining_balance
from dealengine.analysis.finance import monthly_debt_service
from dealengine.domain.deal import FinancingTerms, HybridDeal, RealEstateDeal


class RefinanceInputs(BaseModel):
    model_config = ConfigDict(frozen=True)

    refi_year: int = Field(1, description="refinance at the end of this year")
    new_rate_pct: float = 6.5
    new_term_years: int = 30
    new_amortization_years: int = 30
    new_ltv_pct: float = 75.0
    closing_costs: float = 3000.0


DEFAULT_REFI = RefinanceInputs()


@dataclass(frozen=True)
class RefinanceResult:
    future_property_value: float
    new_loan_amount: float
    original_balance_at_refi: float
    cash_out: float
    original_monthly_payment: float
    new_monthly_payment: float
    monthly_payment_delta: float  # positive means the payment went up
    new_financing: FinancingTerms
    equity_after_refi: float
    new_annual_cash_flow: float
    new_cash_on_cash: float
    adjusted_cash_invested: float  # initial cash + refi costs - cash out

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["new_financing"] = self.new_financing.model_dump()
        return d


def _grow(value: float, pct: float, years: int) -> float:
    return value * (1 + pct / 100.0) ** years


def _noi_at_year(deal: RealEstateDeal | HybridDeal, years: int) -> float:
    if isinstance(deal, HybridDeal):
        gross = deal.gross_rental_income + deal.other_property_income
        other_expenses = deal.other_property_expenses
    else:
        gross = deal.gross_rental_income + deal.other_income
        other_expenses = deal.other_expenses

    future_gross = _grow(gross, deal.annual_rent_growth, years)
    egi = future_gross * (1 - deal.vacancy_rate / 100.0)

    fixed = deal.property_tax + deal.insurance + deal.maintenance + deal.utilities + other_expenses
    opex = _grow(fixed, deal.annual_expense_growth, years) + future_gross * deal.property_management_pct / 100.0

    business_income = 0.0
    if isinstance(deal, HybridDeal):
        business_income = _grow(
            deal.annual_revenue - deal.cost_of_goods - deal.business_operating_expenses,
            deal.annual_revenue_growth,
            years,
        )
    return egi + business_income - opex


def calc_refinance(deal: RealEstateDeal | HybridDeal, inputs: RefinanceInputs = DEFAULT_REFI) -> RefinanceResult:
    """
    Refinance against the appreciated purchase price at `inputs.refi_year`:
    new loan at LTV, original balance paid off, remainder less costs is cash out.
    """
    future_value = _grow(deal.purchase_price, deal.annual_appreciation, inputs.refi_year)
    new_loan = float(round(future_value * inputs.new_ltv_pct / 100.0))
    old_balance = float(max(0, round(remaining_balance(deal.financing, inputs.refi_year * 12))))
    cash_out = max(0.0, new_loan - old_balance - inputs.closing_costs)

    new_financing = FinancingTerms(
        loan_type="conventional",
        loan_amount=new_loan,
        down_payment_pct=max(0.0, min(100.0, 100.0 - inputs.new_ltv_pct)),
        interest_rate_pct=inputs.new_rate_pct,
        loan_term_years=inputs.new_term_years,
        amortization_years=inputs.new_amortization_years,
    )

    original_payment = monthly_debt_service(deal.financing)
    new_payment = monthly_debt_service(new_financing)

    new_cash_flow = _noi_at_year(deal, inputs.refi_year) - new_payment * 12
    original_down = deal.purchase_price * deal.financing.down_payment_pct / 100.0
    adjusted = original_down + deal.closing_costs + deal.rehab_costs - cash_out + inputs.closing_costs
    coc = new_cash_flow / adjusted * 100.0 if adjusted > 0 else 0.0

    return RefinanceResult(
        future_property_value=float(round(future_value)),
        new_loan_amount=new_loan,
        original_balance_at_refi=old_balance,
        cash_out=cash_out,
        original_monthly_payment=float(round(original_payment)),
        new_monthly_payment=float(round(new_payment)),
        monthly_payment_delta=float(round(new_payment - original_payment)),
        new_financing=new_financing,
        equity_after_refi=float(round(future_value - new_loan)),
        new_annual_cash_flow=float(round(new_cash_flow)),
        new_cash_on_cash=coc,
        adjusted_cash_invested=float(round(adjusted)),
    )
