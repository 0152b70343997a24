# src/dealengine/domain/deal.py
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dealengine.domain.breakdowns import Breakdowns

DealKind = Literal["real-estate", "business", "hybrid"]
DEAL_KINDS: tuple[str, ...] = ("real-estate", "business", "hybrid")

LoanType = Literal[
    "conventional",
    "sba-7a",
    "sba-504",
    "fha",
    "va",
    "hard-money",
    "custom",
]


class _Model(BaseModel):
    # Persisted records arrive camelCase (downPaymentPct); python callers use snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FinancingTerms(_Model):
    loan_type: LoanType = "conventional"
    loan_amount: float = Field(0.0, description="Principal borrowed")
    down_payment_pct: float = Field(0.0, description="25 means 25% down")
    interest_rate_pct: float = Field(0.0, description="7.0 means 7% APR")
    loan_term_years: int = 30
    amortization_years: int = 30

    @field_validator("down_payment_pct")
    @classmethod
    def _pct_range(cls, v: float) -> float:
        if not (0.0 <= v <= 100.0):
            raise ValueError("down_payment_pct must be between 0 and 100")
        return v


class RealEstateDeal(_Model):
    kind: Literal["real-estate"] = "real-estate"

    # Purchase
    purchase_price: float = 0.0
    closing_costs: float = 0.0
    rehab_costs: float = 0.0

    # Income (annual)
    gross_rental_income: float = 0.0
    other_income: float = 0.0
    vacancy_rate: float = Field(0.0, description="5 means 5%")

    # Operating expenses (annual)
    property_tax: float = 0.0
    insurance: float = 0.0
    maintenance: float = 0.0
    property_management_pct: float = Field(0.0, description="percent of gross income")
    utilities: float = 0.0
    other_expenses: float = 0.0

    financing: FinancingTerms = Field(default_factory=FinancingTerms)

    # Growth assumptions, percent per year
    annual_rent_growth: float = 0.0
    annual_expense_growth: float = 0.0
    annual_appreciation: float = 0.0

    @property
    def price(self) -> float:
        return self.purchase_price


class BusinessDeal(_Model):
    kind: Literal["business"] = "business"

    # Purchase
    asking_price: float = 0.0
    closing_costs: float = 0.0

    # Revenue / expenses (annual)
    annual_revenue: float = 0.0
    cost_of_goods: float = 0.0
    operating_expenses: float = 0.0
    owner_salary: float = 0.0

    # Add-backs
    depreciation: float = 0.0
    amortization: float = 0.0
    interest: float = 0.0
    taxes: float = 0.0
    other_add_backs: float = 0.0

    financing: FinancingTerms = Field(default_factory=FinancingTerms)

    annual_revenue_growth: float = 0.0
    annual_expense_growth: float = 0.0

    @property
    def price(self) -> float:
        return self.asking_price


class HybridDeal(_Model):
    """
    Real property plus the business operating inside it (laundromat, car wash,
    restaurant with its building).

    property_value + business_value should roughly equal purchase_price. This is
    advisory: a mismatch is surfaced as a risk flag, never rejected.
    """

    kind: Literal["hybrid"] = "hybrid"

    purchase_price: float = 0.0
    property_value: float = 0.0
    business_value: float = 0.0
    closing_costs: float = 0.0
    rehab_costs: float = 0.0

    # Property side
    gross_rental_income: float = 0.0
    other_property_income: float = 0.0
    vacancy_rate: float = 0.0
    property_tax: float = 0.0
    insurance: float = 0.0
    maintenance: float = 0.0
    property_management_pct: float = 0.0
    utilities: float = 0.0
    other_property_expenses: float = 0.0

    # Business side
    annual_revenue: float = 0.0
    cost_of_goods: float = 0.0
    business_operating_expenses: float = 0.0
    owner_salary: float = 0.0
    depreciation: float = 0.0
    amortization: float = 0.0
    interest: float = 0.0
    taxes: float = 0.0
    other_add_backs: float = 0.0

    financing: FinancingTerms = Field(default_factory=FinancingTerms)

    annual_rent_growth: float = 0.0
    annual_expense_growth: float = 0.0
    annual_appreciation: float = 0.0
    annual_revenue_growth: float = 0.0

    @property
    def price(self) -> float:
        return self.purchase_price


DealPayload = Union[RealEstateDeal, BusinessDeal, HybridDeal]


class Scenario(_Model):
    id: str = ""
    name: str
    overrides: dict[str, Any] = Field(default_factory=dict)


class Deal(_Model):
    id: str
    name: str = ""
    data: Annotated[DealPayload, Field(discriminator="kind")]
    scenarios: list[Scenario] = Field(default_factory=list)
    breakdowns: Breakdowns | None = None
    notes: str = ""
    tags: list[str] = Field(default_factory=list)

    @property
    def kind(self) -> str:
        return self.data.kind

    @property
    def financing(self) -> FinancingTerms:
        return self.data.financing

    @property
    def price(self) -> float:
        return self.data.price


def resolve_field_name(model: type[BaseModel], key: str) -> str:
    """Resolve a snake_case name or camelCase alias to the model's field name."""
    if key in model.model_fields:
        return key
    for name, info in model.model_fields.items():
        if info.alias == key:
            return name
    raise ValueError(f"{model.__name__} has no field {key!r}")


def override_payload(payload: DealPayload, overrides: dict[str, Any]) -> DealPayload:
    """
    Return a new payload with `overrides` applied. Nested `financing`
    overrides merge field-by-field. The input payload is never mutated.
    """
    merged = payload.model_dump()
    for key, value in overrides.items():
        name = resolve_field_name(type(payload), key)
        if name == "kind":
            raise ValueError("a scenario cannot change the deal kind")
        if name == "financing" and isinstance(value, dict):
            fin = dict(merged["financing"])
            for fkey, fval in value.items():
                fin[resolve_field_name(FinancingTerms, fkey)] = fval
            merged["financing"] = fin
        else:
            merged[name] = value
    return type(payload).model_validate(merged)


def apply_scenario(deal: Deal, scenario: Scenario | str) -> Deal:
    """Return a copy of `deal` whose payload carries the scenario's overrides."""
    if isinstance(scenario, str):
        matches = [s for s in deal.scenarios if s.name == scenario or s.id == scenario]
        if not matches:
            raise ValueError(f"deal {deal.id!r} has no scenario {scenario!r}")
        scenario = matches[0]
    return deal.model_copy(update={"data": override_payload(deal.data, scenario.overrides)}, deep=True)
