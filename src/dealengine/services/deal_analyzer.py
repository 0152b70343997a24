# src/dealengine/services/deal_analyzer.py
from __future__ import annotations

from dataclasses import asdict
from typing import Any

from dealengine.adapters.config import config
from dealengine.adapters.logging_utils import deal_context, get_logger
from dealengine.analysis.amortization import (
    amortization_totals,
    generate_amortization_schedule,
    summarize_by_year,
)
from dealengine.analysis.breakdowns import apply_breakdowns
from dealengine.analysis.metrics import calc_metrics, project_cash_flows
from dealengine.analysis.negotiation import build_negotiation_analysis
from dealengine.analysis.scoring import score_deal
from dealengine.domain.deal import Deal, apply_scenario
from dealengine.services.guardrails import apply_guardrails
from dealengine.services.validation import deal_from_record

logger = get_logger(__name__)


def _financing_summary(deal: Deal) -> dict[str, Any]:
    rows = generate_amortization_schedule(deal.financing)
    totals = amortization_totals(rows)
    return {
        "terms": deal.financing.model_dump(),
        "totals": asdict(totals),
        "by_year": [asdict(y) for y in summarize_by_year(rows)],
    }


def analyze_deal(
    deal: Deal,
    *,
    hold_years: int | None = None,
    projection_years: int | None = None,
    min_dscr: float | None = None,
) -> dict[str, Any]:
    """
    Main analysis entrypoint.

    Rolls any breakdowns into the payload, then returns one dict with
    metrics, score, projected cash flows, amortization summary, the
    negotiation bundle (valuation, DSCR constraint, stress test, price
    ladder) and guardrail flags. The input deal is never mutated.
    """
    deal = apply_breakdowns(deal)
    projection_years = config.PROJECTION_YEARS if projection_years is None else projection_years

    metrics = calc_metrics(deal, hold_years=hold_years)
    score = score_deal(deal)
    projection = project_cash_flows(deal, years=projection_years)
    negotiation = build_negotiation_analysis(deal, min_dscr=min_dscr)

    result: dict[str, Any] = {
        "deal_id": deal.id,
        "name": deal.name,
        "kind": deal.kind,
        "metrics": metrics.to_dict(),
        "score": score.to_dict(),
        "projections": [asdict(y) for y in projection],
        "financing": _financing_summary(deal),
        "negotiation": negotiation.to_dict(),
    }

    result = apply_guardrails(deal=deal, result=result)

    logger.info(
        "deal_analyzed",
        extra={
            "context": deal_context(
                deal, score=score.total, label=score.label, risk_flags=score.risk_flags
            )
        },
    )
    return result


def analyze_record(record: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
    """Validate a loosely typed record, then analyze it."""
    return analyze_deal(deal_from_record(record), **kwargs)


def compare_scenarios(deal: Deal) -> list[dict[str, Any]]:
    """
    Metrics and score for the base deal followed by each saved scenario,
    in the order the scenarios were saved.
    """
    rows: list[dict[str, Any]] = []
    variants: list[tuple[str, Deal]] = [("Base", deal)]
    variants += [(s.name, apply_scenario(deal, s)) for s in deal.scenarios]

    for name, variant in variants:
        score = score_deal(variant)
        rows.append(
            {
                "scenario": name,
                "metrics": calc_metrics(variant).to_dict(),
                "score": score.total,
                "label": score.label,
            }
        )

    logger.debug(
        "scenarios_compared",
        extra={"context": deal_context(deal, scenarios=len(rows) - 1)},
    )
    return rows
