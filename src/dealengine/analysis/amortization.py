# src/dealengine/analysis/amortization.py
from __future__ import annotations

from dataclasses import dataclass

from dealengine.analysis.finance import annuity_payment, annuity_principal
from dealengine.domain.deal import FinancingTerms

# Anything under half a cent left after the last payment is float dust.
_BALANCE_EPSILON = 0.005


@dataclass(frozen=True)
class AmortizationRow:
    month: int
    payment: float
    principal: float
    interest: float
    balance: float
    cumulative_interest: float
    cumulative_principal: float


@dataclass(frozen=True)
class AnnualAmortizationSummary:
    year: int
    total_payment: float
    total_principal: float
    total_interest: float
    ending_balance: float
    principal_pct: float  # share of the year's payments that went to principal


@dataclass(frozen=True)
class AmortizationTotals:
    total_payments: float
    total_interest: float
    total_principal: float
    n_payments: int


def generate_amortization_schedule(financing: FinancingTerms) -> list[AmortizationRow]:
    """
    Full monthly schedule for the financing terms.

    The fixed payment is re-derived from the annuity formula so that
    principal + interest reconciles to it in every period. Empty when there
    is no loan or no amortization period.
    """
    principal = financing.loan_amount
    n_payments = financing.amortization_years * 12
    if principal <= 0 or n_payments <= 0:
        return []

    monthly_rate = financing.interest_rate_pct / 100.0 / 12.0
    payment = annuity_payment(monthly_rate, n_payments, principal)

    rows: list[AmortizationRow] = []
    balance = principal
    cumulative_interest = 0.0
    cumulative_principal = 0.0

    for month in range(1, n_payments + 1):
        interest = balance * monthly_rate
        principal_paid = payment - interest
        balance = max(0.0, balance - principal_paid)
        if balance < _BALANCE_EPSILON:
            balance = 0.0
        cumulative_interest += interest
        cumulative_principal += principal_paid

        rows.append(
            AmortizationRow(
                month=month,
                payment=payment,
                principal=principal_paid,
                interest=interest,
                balance=balance,
                cumulative_interest=cumulative_interest,
                cumulative_principal=cumulative_principal,
            )
        )

    return rows


def summarize_by_year(rows: list[AmortizationRow]) -> list[AnnualAmortizationSummary]:
    """Roll a monthly schedule up into 12-month blocks."""
    summaries: list[AnnualAmortizationSummary] = []

    for start in range(0, len(rows), 12):
        block = rows[start:start + 12]
        total_payment = sum(r.payment for r in block)
        total_principal = sum(r.principal for r in block)
        total_interest = sum(r.interest for r in block)
        principal_pct = (total_principal / total_payment) * 100.0 if total_payment > 0 else 0.0

        summaries.append(
            AnnualAmortizationSummary(
                year=start // 12 + 1,
                total_payment=round(total_payment, 2),
                total_principal=round(total_principal, 2),
                total_interest=round(total_interest, 2),
                ending_balance=round(block[-1].balance, 2),
                principal_pct=round(principal_pct, 1),
            )
        )

    return summaries


def amortization_totals(rows: list[AmortizationRow]) -> AmortizationTotals:
    if not rows:
        return AmortizationTotals(total_payments=0.0, total_interest=0.0, total_principal=0.0, n_payments=0)

    last = rows[-1]
    return AmortizationTotals(
        total_payments=round(last.cumulative_interest + last.cumulative_principal, 2),
        total_interest=round(last.cumulative_interest, 2),
        total_principal=round(last.cumulative_principal, 2),
        n_payments=len(rows),
    )


def remaining_balance(financing: FinancingTerms, months: int) -> float:
    """
    Loan balance after `months` payments, closed form:
    B = P(1+r)^k - M * ((1+r)^k - 1) / r
    """
    principal = financing.loan_amount
    n_payments = financing.amortization_years * 12
    if principal <= 0 or n_payments <= 0:
        return 0.0
    if months <= 0:
        return principal
    if months >= n_payments:
        return 0.0

    r = financing.interest_rate_pct / 100.0 / 12.0
    if r == 0:
        return principal - (principal / n_payments) * months

    payment = annuity_payment(r, n_payments, principal)
    factor = (1 + r) ** months
    return max(0.0, principal * factor - payment * (factor - 1) / r)


def max_supportable_loan(
    noi: float,
    target_dscr: float,
    interest_rate_pct: float,
    amortization_years: int,
) -> float:
    """
    Largest loan whose debt service keeps NOI / debt service >= target_dscr.

    Max affordable monthly payment is NOI / target / 12; the loan follows from
    the annuity present-value formula.
    """
    if noi <= 0 or target_dscr <= 0:
        return 0.0
    max_monthly_payment = noi / target_dscr / 12.0
    return annuity_principal(
        rate_monthly=interest_rate_pct / 100.0 / 12.0,
        n_months=amortization_years * 12,
        payment=max_monthly_payment,
    )
