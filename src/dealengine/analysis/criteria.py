# src/dealengine/analysis/criteria.py
from __future__ import annotations

from typing import Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from dealengine.analysis.metrics import calc_metrics
from dealengine.domain.deal import Deal
from dealengine.domain.metrics import MetricsRecord

Operator = Literal["gte", "lte", "eq"]

EQ_TOLERANCE = 0.01

# older saved criteria use these names
_METRIC_ALIASES = {
    "cash_on_cash_return": "cash_on_cash",
    "monthly_mortgage": "monthly_debt_service",
}


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CriteriaCondition(_Model):
    metric: str
    operator: Operator
    value: float


class InvestmentCriteria(_Model):
    id: str = ""
    name: str = ""
    kind: Literal["real-estate", "business", "hybrid", "any"] = Field("any", alias="dealType")
    conditions: list[CriteriaCondition] = Field(default_factory=list)
    is_active: bool = True


def metric_value(metrics: MetricsRecord, metric: str) -> float | None:
    """Numeric metric by snake_case or camelCase name; None when the record lacks it."""
    name = to_snake(metric)
    name = _METRIC_ALIASES.get(name, name)
    value = getattr(metrics, name, None)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def check_condition(metrics: MetricsRecord, cond: CriteriaCondition) -> bool:
    value = metric_value(metrics, cond.metric)
    if value is None:
        return False
    if cond.operator == "gte":
        return value >= cond.value
    if cond.operator == "lte":
        return value <= cond.value
    return abs(value - cond.value) < EQ_TOLERANCE


def deal_matches_criteria(deal: Deal, criteria: InvestmentCriteria) -> bool:
    """Kind must match (or criteria kind is `any`) and every condition must hold."""
    if criteria.kind != "any" and criteria.kind != deal.kind:
        return False
    metrics = calc_metrics(deal)
    return all(check_condition(metrics, c) for c in criteria.conditions)


def matching_criteria(deal: Deal, all_criteria: Iterable[InvestmentCriteria]) -> list[InvestmentCriteria]:
    return [c for c in all_criteria if c.is_active and deal_matches_criteria(deal, c)]
