# src/dealengine/analysis/portfolio.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

import numpy as np
import pandas as pd

from dealengine.adapters.logging_utils import get_logger
from dealengine.analysis.metrics import calc_metrics
from dealengine.analysis.scoring import InvestmentScore, score_from_metrics
from dealengine.domain.deal import DEAL_KINDS, Deal, RealEstateDeal, HybridDeal

logger = get_logger(__name__)


@dataclass(frozen=True)
class DealSummary:
    id: str
    name: str
    kind: str
    price: float
    cash_invested: float
    annual_cash_flow: float
    cash_on_cash: float
    roi: float
    score: InvestmentScore


@dataclass(frozen=True)
class PortfolioMetrics:
    deal_count: int
    kind_counts: dict[str, int]
    total_portfolio_value: float
    total_cash_invested: float
    total_debt: float
    total_annual_cash_flow: float
    total_annual_debt_service: float
    weighted_cash_on_cash: float  # weighted by cash invested
    weighted_roi: float
    average_score: float
    total_equity: float
    portfolio_ltv_pct: float
    deals: list[DealSummary] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_frame(self) -> pd.DataFrame:
        """Per-deal table in score order."""
        columns = [
            "id", "name", "kind", "price", "cash_invested",
            "annual_cash_flow", "cash_on_cash", "roi", "score", "label",
        ]
        rows = [
            {
                "id": d.id,
                "name": d.name,
                "kind": d.kind,
                "price": d.price,
                "cash_invested": d.cash_invested,
                "annual_cash_flow": d.annual_cash_flow,
                "cash_on_cash": d.cash_on_cash,
                "roi": d.roi,
                "score": d.score.total,
                "label": d.score.label,
            }
            for d in self.deals
        ]
        return pd.DataFrame(rows, columns=columns)


def _empty() -> PortfolioMetrics:
    return PortfolioMetrics(
        deal_count=0,
        kind_counts={k: 0 for k in DEAL_KINDS},
        total_portfolio_value=0.0,
        total_cash_invested=0.0,
        total_debt=0.0,
        total_annual_cash_flow=0.0,
        total_annual_debt_service=0.0,
        weighted_cash_on_cash=0.0,
        weighted_roi=0.0,
        average_score=0.0,
        total_equity=0.0,
        portfolio_ltv_pct=0.0,
        deals=[],
    )


def summarize_deal(deal: Deal) -> tuple[DealSummary, float, float]:
    """Summary plus the deal's loan amount and annual debt service."""
    payload = deal.data
    m = calc_metrics(payload)
    score = score_from_metrics(payload.kind, payload, m)

    if isinstance(payload, (RealEstateDeal, HybridDeal)):
        coc = m.cash_on_cash
    else:
        coc = m.annual_cash_flow / m.total_cash_invested * 100.0 if m.total_cash_invested > 0 else 0.0

    summary = DealSummary(
        id=deal.id,
        name=deal.name,
        kind=payload.kind,
        price=payload.price,
        cash_invested=m.total_cash_invested,
        annual_cash_flow=m.annual_cash_flow,
        cash_on_cash=coc,
        roi=m.roi,
        score=score,
    )
    return summary, payload.financing.loan_amount, m.annual_debt_service


def _weighted(values: np.ndarray, weights: np.ndarray) -> float:
    total = float(weights.sum())
    if total <= 0:
        return 0.0
    # normalise the weights first so a lone deal carries weight 1.0 exactly
    return float(np.sum(values * (weights / total)))


def calc_portfolio_metrics(deals: Iterable[Deal]) -> PortfolioMetrics:
    deals = list(deals)
    if not deals:
        return _empty()

    kind_counts = {k: 0 for k in DEAL_KINDS}
    summaries: list[DealSummary] = []
    loans: list[float] = []
    debt_service: list[float] = []

    for deal in deals:
        summary, loan, annual_debt = summarize_deal(deal)
        kind_counts[summary.kind] += 1
        summaries.append(summary)
        loans.append(loan)
        debt_service.append(annual_debt)

    price = np.array([s.price for s in summaries], dtype=float)
    invested = np.array([s.cash_invested for s in summaries], dtype=float)
    cash_flow = np.array([s.annual_cash_flow for s in summaries], dtype=float)
    coc = np.array([s.cash_on_cash for s in summaries], dtype=float)
    roi = np.array([s.roi for s in summaries], dtype=float)
    scores = np.array([s.score.total for s in summaries], dtype=float)

    total_value = float(price.sum())
    total_debt = float(sum(loans))

    result = PortfolioMetrics(
        deal_count=len(deals),
        kind_counts=kind_counts,
        total_portfolio_value=total_value,
        total_cash_invested=float(invested.sum()),
        total_debt=total_debt,
        total_annual_cash_flow=float(cash_flow.sum()),
        total_annual_debt_service=float(sum(debt_service)),
        weighted_cash_on_cash=_weighted(coc, invested),
        weighted_roi=_weighted(roi, invested),
        average_score=float(scores.mean()),
        total_equity=total_value - total_debt,
        portfolio_ltv_pct=total_debt / total_value * 100.0 if total_value > 0 else 0.0,
        deals=sorted(summaries, key=lambda s: s.score.total, reverse=True),
    )

    logger.info(
        "portfolio_aggregated",
        extra={
            "context": {
                "deal_count": result.deal_count,
                "total_value": result.total_portfolio_value,
                "average_score": result.average_score,
            }
        },
    )
    return result
