# src/dealengine/analysis/recession.py
from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from dealengine.domain.deal import (
    BusinessDeal,
    Deal,
    DealPayload,
    HybridDeal,
    RealEstateDeal,
)
from dealengine.domain.errors import UnsupportedDealKind

T = TypeVar("T", Deal, RealEstateDeal, BusinessDeal, HybridDeal)


class RecessionOverrides(BaseModel):
    """
    Pessimistic adjustments applied by recession mode.

    Increases are percentage points, reductions are percent of the current
    value. Floors/caps keep stressed growth rates inside sane bounds.
    """

    model_config = ConfigDict(frozen=True)

    vacancy_increase: float = Field(7.0, description="pp added to vacancy")
    vacancy_cap: float = 50.0
    revenue_reduction: float = Field(10.0, description="10 means -10% rent/revenue")
    interest_rate_increase: float = Field(1.5, description="pp added to the loan rate")
    expense_growth_increase: float = 1.0

    rent_growth_drop: float = 2.0
    rent_growth_floor: float = -5.0
    appreciation_drop: float = 3.0
    appreciation_floor: float = -5.0
    revenue_growth_drop: float = 3.0
    revenue_growth_floor: float = -10.0


DEFAULT_RECESSION = RecessionOverrides()


def _lower(value: float, drop: float, floor: float) -> float:
    # never raises a rate that already sits below the floor
    return min(value, max(value - drop, floor))


def _stress_payload(payload: DealPayload, o: RecessionOverrides) -> DealPayload:
    if not isinstance(payload, (RealEstateDeal, BusinessDeal, HybridDeal)):
        raise UnsupportedDealKind(getattr(payload, "kind", type(payload).__name__))

    keep = 1 - o.revenue_reduction / 100.0
    fin = payload.financing.model_copy(
        update={"interest_rate_pct": payload.financing.interest_rate_pct + o.interest_rate_increase}
    )
    update: dict = {
        "financing": fin,
        "annual_expense_growth": payload.annual_expense_growth + o.expense_growth_increase,
    }

    if isinstance(payload, (RealEstateDeal, HybridDeal)):
        stressed_vacancy = min(payload.vacancy_rate + o.vacancy_increase, o.vacancy_cap)
        update["vacancy_rate"] = max(payload.vacancy_rate, stressed_vacancy)
        update["gross_rental_income"] = float(round(payload.gross_rental_income * keep))
        update["annual_rent_growth"] = _lower(payload.annual_rent_growth, o.rent_growth_drop, o.rent_growth_floor)
        update["annual_appreciation"] = _lower(payload.annual_appreciation, o.appreciation_drop, o.appreciation_floor)

    if isinstance(payload, (BusinessDeal, HybridDeal)):
        update["annual_revenue"] = float(round(payload.annual_revenue * keep))
        update["annual_revenue_growth"] = _lower(
            payload.annual_revenue_growth, o.revenue_growth_drop, o.revenue_growth_floor
        )

    return payload.model_copy(update=update, deep=True)


def apply_recession_overrides(deal: T, overrides: RecessionOverrides = DEFAULT_RECESSION) -> T:
    """
    Stressed copy of a Deal (or bare payload). The input is never mutated.
    """
    if isinstance(deal, Deal):
        return deal.model_copy(update={"data": _stress_payload(deal.data, overrides)}, deep=True)
    return _stress_payload(deal, overrides)


def _num(v: float) -> str:
    return f"{v:g}"


def recession_labels(kind: str, overrides: RecessionOverrides = DEFAULT_RECESSION) -> list[str]:
    """Human-readable list of what recession mode changes for a deal kind."""
    labels = [
        f"Interest rate +{_num(overrides.interest_rate_increase)}%",
        f"Revenue -{_num(overrides.revenue_reduction)}%",
    ]
    if kind != "business":
        labels.append(f"Vacancy +{_num(overrides.vacancy_increase)}%")
    labels.append(f"Expense growth +{_num(overrides.expense_growth_increase)}%")
    if kind != "business":
        labels.append("Appreciation reduced")
    return labels
