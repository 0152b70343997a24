# src/dealengine/analysis/sensitivity.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

import pandas as pd
from pydantic import BaseModel

from dealengine.adapters.config import config
from dealengine.adapters.logging_utils import get_logger
from dealengine.analysis.formatting import fmt_currency, fmt_pct
from dealengine.analysis.metrics import calc_metrics
from dealengine.analysis.scoring import score_from_metrics
from dealengine.domain.deal import Deal, DealPayload, resolve_field_name
from dealengine.domain.errors import UnsupportedDealKind
from dealengine.domain.metrics import MetricsRecord

logger = get_logger(__name__)

InputFormat = Literal["percent", "currency", "number"]


@dataclass(frozen=True)
class SensitivityVariable:
    path: str  # dot path into the payload, snake_case
    label: str
    format: InputFormat


@dataclass(frozen=True)
class OutputMetric:
    key: str
    label: str
    format: Literal["percent", "currency", "ratio"]


@dataclass(frozen=True)
class SensitivityRow:
    input_value: float
    input_label: str
    metrics: dict[str, float]
    score: int
    is_base_case: bool


@dataclass(frozen=True)
class SensitivityResult:
    variable: SensitivityVariable
    output_metrics: list[OutputMetric]
    rows: list[SensitivityRow] = field(default_factory=list)

    @property
    def base_row(self) -> SensitivityRow | None:
        return next((r for r in self.rows if r.is_base_case), None)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_frame(self) -> pd.DataFrame:
        """One row per input value; metric columns in output order, then score."""
        records = []
        for row in self.rows:
            rec: dict[str, Any] = {
                "input_value": row.input_value,
                "input_label": row.input_label,
                "is_base_case": row.is_base_case,
            }
            rec.update(row.metrics)
            rec["score"] = row.score
            records.append(rec)
        columns = ["input_value", "input_label", "is_base_case"]
        columns += [m.key for m in self.output_metrics] + ["score"]
        return pd.DataFrame.from_records(records, columns=columns)


# ---------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------

REAL_ESTATE_VARIABLES: tuple[SensitivityVariable, ...] = (
    SensitivityVariable("vacancy_rate", "Vacancy Rate", "percent"),
    SensitivityVariable("financing.interest_rate_pct", "Interest Rate", "percent"),
    SensitivityVariable("purchase_price", "Purchase Price", "currency"),
    SensitivityVariable("gross_rental_income", "Gross Rent", "currency"),
    SensitivityVariable("annual_rent_growth", "Rent Growth", "percent"),
    SensitivityVariable("annual_appreciation", "Appreciation", "percent"),
)

BUSINESS_VARIABLES: tuple[SensitivityVariable, ...] = (
    SensitivityVariable("annual_revenue", "Revenue", "currency"),
    SensitivityVariable("financing.interest_rate_pct", "Interest Rate", "percent"),
    SensitivityVariable("asking_price", "Asking Price", "currency"),
    SensitivityVariable("operating_expenses", "Operating Expenses", "currency"),
    SensitivityVariable("annual_revenue_growth", "Revenue Growth", "percent"),
    SensitivityVariable("cost_of_goods", "Cost of Goods", "currency"),
)

HYBRID_VARIABLES: tuple[SensitivityVariable, ...] = (
    SensitivityVariable("purchase_price", "Purchase Price", "currency"),
    SensitivityVariable("financing.interest_rate_pct", "Interest Rate", "percent"),
    SensitivityVariable("annual_revenue", "Business Revenue", "currency"),
    SensitivityVariable("gross_rental_income", "Gross Rent", "currency"),
    SensitivityVariable("vacancy_rate", "Vacancy Rate", "percent"),
    SensitivityVariable("annual_revenue_growth", "Revenue Growth", "percent"),
)

_OUTPUTS: dict[str, tuple[OutputMetric, ...]] = {
    "real-estate": (
        OutputMetric("cap_rate", "Cap Rate", "percent"),
        OutputMetric("cash_on_cash", "Cash-on-Cash", "percent"),
        OutputMetric("dscr", "DSCR", "ratio"),
        OutputMetric("noi", "NOI", "currency"),
        OutputMetric("cash_flow", "Cash Flow", "currency"),
        OutputMetric("irr", "IRR", "percent"),
    ),
    "business": (
        OutputMetric("sde_multiple", "SDE Multiple", "ratio"),
        OutputMetric("roi", "ROI", "percent"),
        OutputMetric("cash_flow", "Cash Flow", "currency"),
        OutputMetric("sde", "SDE", "currency"),
        OutputMetric("break_even", "Break-Even", "currency"),
        OutputMetric("revenue_multiple", "Rev Multiple", "ratio"),
    ),
    "hybrid": (
        OutputMetric("cap_rate", "Cap Rate", "percent"),
        OutputMetric("cash_on_cash", "Cash-on-Cash", "percent"),
        OutputMetric("dscr", "DSCR", "ratio"),
        OutputMetric("total_noi", "Total NOI", "currency"),
        OutputMetric("cash_flow", "Cash Flow", "currency"),
        OutputMetric("sde_multiple", "SDE Multiple", "ratio"),
        OutputMetric("roi", "ROI", "percent"),
        OutputMetric("sde", "SDE", "currency"),
        OutputMetric("break_even", "Break-Even", "currency"),
        OutputMetric("revenue_multiple", "Rev Multiple", "ratio"),
    ),
}

# metric-record attribute behind each output key, where the names differ
_SOURCE_ATTR = {
    "cash_flow": "annual_cash_flow",
    "break_even": "break_even_revenue",
}


def variables_for_kind(kind: str) -> tuple[SensitivityVariable, ...]:
    if kind == "real-estate":
        return REAL_ESTATE_VARIABLES
    if kind == "business":
        return BUSINESS_VARIABLES
    if kind == "hybrid":
        return HYBRID_VARIABLES
    logger.error("unsupported_deal_kind", extra={"context": {"kind": kind}})
    raise UnsupportedDealKind(kind)


def output_metrics_for_kind(kind: str) -> list[OutputMetric]:
    if kind not in _OUTPUTS:
        logger.error("unsupported_deal_kind", extra={"context": {"kind": kind}})
        raise UnsupportedDealKind(kind)
    return list(_OUTPUTS[kind])


# ---------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------


def resolve_path(payload: BaseModel, path: str) -> tuple[str, ...]:
    """
    Normalise a dot path (snake_case or camelCase parts) to field names.
    Raises ValueError when any part does not exist or the leaf is not numeric.
    """
    parts = [p for p in path.split(".") if p]
    if not parts:
        raise ValueError("empty field path")

    resolved: list[str] = []
    node: Any = payload
    for part in parts:
        if not isinstance(node, BaseModel):
            raise ValueError(f"cannot descend into {'.'.join(resolved)!r} for path {path!r}")
        name = resolve_field_name(type(node), part)
        resolved.append(name)
        node = getattr(node, name)

    if isinstance(node, bool) or not isinstance(node, (int, float)):
        raise ValueError(f"field {path!r} is not numeric")
    return tuple(resolved)


def get_path_value(payload: BaseModel, path: str) -> float:
    node: Any = payload
    for name in resolve_path(payload, path):
        node = getattr(node, name)
    return float(node)


def set_path_value(payload: DealPayload, path: str, value: float) -> DealPayload:
    """Copy of `payload` with the field at `path` replaced. The input is untouched."""
    names = resolve_path(payload, path)
    dumped = payload.model_dump()
    target = dumped
    for name in names[:-1]:
        target = target[name]
    target[names[-1]] = value
    return type(payload).model_validate(dumped)


# ---------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------


# Shares of a whole; anything above 100 is rejected or meaningless
_CAPPED_AT_100 = frozenset({"down_payment_pct", "vacancy_rate", "property_management_pct"})


def _infer_format(leaf: str, value: Any = None) -> InputFormat:
    if isinstance(value, int) and not isinstance(value, bool):
        return "number"
    if leaf.endswith("_pct") or "rate" in leaf or "growth" in leaf or "appreciation" in leaf:
        return "percent"
    return "currency"


def _allows_negative(leaf: str) -> bool:
    return "growth" in leaf or "appreciation" in leaf


def _upper_bound(leaf: str) -> float | None:
    return 100.0 if leaf in _CAPPED_AT_100 else None


def step_size(base: float, fmt: InputFormat) -> float:
    if fmt == "percent":
        return 2.0 if base >= 10 else 1.0
    if fmt == "number":
        return float(max(1, round(base * 0.1)))
    return float(max(1000, round(base * 0.05 / 1000) * 1000))


def generate_steps(base: float, path: str, fmt: InputFormat, steps: int) -> list[float]:
    """
    base +/- i*step for i in [-steps, steps]. Negatives are dropped unless the
    field is a growth rate; shares of a whole never go past 100.
    """
    leaf = path.split(".")[-1]
    size = step_size(base, fmt)
    upper = _upper_bound(leaf)
    values = []
    for i in range(-steps, steps + 1):
        v = base + i * size
        if v < 0 and not _allows_negative(leaf):
            continue
        if upper is not None and v > upper:
            continue
        values.append(v)
    return values


def format_input(value: float, fmt: InputFormat) -> str:
    if fmt == "percent":
        return fmt_pct(value)
    if fmt == "number":
        return f"{value:,.0f}"
    return fmt_currency(value)


# ---------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------


def _output_values(kind: str, m: MetricsRecord) -> dict[str, float]:
    return {o.key: getattr(m, _SOURCE_ATTR.get(o.key, o.key)) for o in _OUTPUTS[kind]}


def find_variable(kind: str, path: str) -> SensitivityVariable | None:
    for v in variables_for_kind(kind):
        if v.path == path:
            return v
    return None


def run_sensitivity(
    deal: Deal | DealPayload,
    path: str,
    steps: int | None = None,
) -> SensitivityResult:
    """
    Sweep one input around its current value, recomputing metrics and score
    per row from a fresh copy of the payload.
    """
    payload = deal.data if isinstance(deal, Deal) else deal
    steps = config.SENSITIVITY_STEPS if steps is None else steps
    kind = payload.kind
    outputs = output_metrics_for_kind(kind)

    names = resolve_path(payload, path)
    canonical = ".".join(names)
    raw: Any = payload
    for name in names:
        raw = getattr(raw, name)
    variable = find_variable(kind, canonical) or SensitivityVariable(
        canonical, names[-1].replace("_", " ").title(), _infer_format(names[-1], raw)
    )

    base = get_path_value(payload, canonical)
    rows: list[SensitivityRow] = []
    for value in generate_steps(base, canonical, variable.format, steps):
        modified = set_path_value(payload, canonical, value)
        m = calc_metrics(modified)
        score = score_from_metrics(kind, modified, m)
        rows.append(
            SensitivityRow(
                input_value=value,
                input_label=format_input(value, variable.format),
                metrics=_output_values(kind, m),
                score=score.total,
                is_base_case=value == base,
            )
        )

    logger.debug(
        "sensitivity_run",
        extra={"context": {"kind": kind, "path": canonical, "rows": len(rows)}},
    )
    return SensitivityResult(variable=variable, output_metrics=outputs, rows=rows)
