# src/dealengine/services/pipeline.py

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Sequence

import pandas as pd
from loguru import logger

from dealengine.analysis.metrics import calc_metrics
from dealengine.analysis.scoring import score_from_metrics
from dealengine.analysis.valuation import fair_value_range
from dealengine.domain.deal import Deal
from dealengine.services.guardrails import collect_guardrail_flags
from dealengine.services.validation import deal_from_record

REPORTS_DIR = Path("data") / "reports"

RANKED_COLUMNS = [
    "rank",
    "deal_id",
    "name",
    "kind",
    "price",
    "score",
    "label",
    "annual_cash_flow",
    "dscr",
    "roi",
    "fair_value_mid",
    "risk_flags",
    "guardrail_codes",
]


# ---------------------------
# 1. LOAD
# ---------------------------

def load_deals(records: Iterable[dict[str, Any]]) -> tuple[list[Deal], list[dict[str, Any]]]:
    """
    Validate raw records into deals.

    Records that fail validation are skipped and returned as
    {"id", "error"} rows so one bad record never sinks the batch.
    """
    deals: list[Deal] = []
    rejected: list[dict[str, Any]] = []
    for record in records:
        try:
            deals.append(deal_from_record(record))
        except ValueError as e:
            logger.warning("Skipping invalid deal record", deal_id=record.get("id"), error=str(e))
            rejected.append({"id": record.get("id"), "error": str(e)})
    logger.info("Loaded deal records", accepted=len(deals), rejected=len(rejected))
    return deals, rejected


# ---------------------------
# 2. UNDERWRITE
# ---------------------------

def underwrite_deal(deal: Deal) -> dict[str, Any]:
    """One flat row per deal: headline metrics, score and guardrail codes."""
    payload = deal.data
    metrics = calc_metrics(payload)
    score = score_from_metrics(payload.kind, payload, metrics)
    valuation = fair_value_range(payload)
    return {
        "deal_id": deal.id,
        "name": deal.name,
        "kind": deal.kind,
        "price": payload.price,
        "score": score.total,
        "label": score.label,
        "annual_cash_flow": metrics.annual_cash_flow,
        "dscr": metrics.dscr,
        "roi": metrics.roi,
        "fair_value_mid": valuation.mid,
        "risk_flags": ",".join(score.risk_flags),
        "guardrail_codes": ",".join(f["code"] for f in collect_guardrail_flags(deal)),
    }


def rank_deals(deals: Sequence[Deal]) -> pd.DataFrame:
    """
    Underwrite every deal and rank by score (desc), then annual cash flow
    (desc). Rank 1 is the best deal.
    """
    if not deals:
        return pd.DataFrame(columns=RANKED_COLUMNS)

    logger.info("Underwriting deals", count=len(deals))
    df = pd.DataFrame([underwrite_deal(d) for d in deals])
    df = df.sort_values(["score", "annual_cash_flow"], ascending=[False, False], kind="mergesort")
    df = df.reset_index(drop=True)
    df.insert(0, "rank", range(1, len(df) + 1))

    logger.info(
        "Ranked deals",
        count=len(df),
        top_deal=df.loc[0, "deal_id"],
        top_score=int(df.loc[0, "score"]),
    )
    return df[RANKED_COLUMNS]


# ---------------------------
# 3. REPORT
# ---------------------------

def write_report(df: pd.DataFrame, out_path: Path | None = None) -> Path:
    out_path = out_path or REPORTS_DIR / "ranked_deals.csv"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_path, index=False)
    logger.info("Wrote ranked deal report", path=str(out_path), rows=len(df))
    return out_path


def run_underwriting_pipeline(
    records: Iterable[dict[str, Any]],
    out_path: Path | None = None,
) -> pd.DataFrame:
    """
    Full batch run: validate records, underwrite, rank, and optionally
    write the ranked table as CSV.
    """
    deals, rejected = load_deals(records)
    ranked = rank_deals(deals)
    if rejected:
        logger.warning("Some records were rejected", rejected=len(rejected))
    if out_path is not None:
        write_report(ranked, out_path)
    return ranked
