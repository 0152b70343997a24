# src/dealengine/analysis/finance_batch.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd

from dealengine.domain.deal import RealEstateDeal

_FINANCING_COLUMNS = ("loan_amount", "down_payment_pct", "interest_rate_pct", "amortization_years")
_DEAL_COLUMNS = (
    "purchase_price",
    "closing_costs",
    "rehab_costs",
    "gross_rental_income",
    "other_income",
    "vacancy_rate",
    "property_tax",
    "insurance",
    "maintenance",
    "property_management_pct",
    "utilities",
    "other_expenses",
)


@dataclass
class BatchFinanceResult:
    noi: np.ndarray
    cap_rate: np.ndarray
    annual_debt_service: np.ndarray
    dscr: np.ndarray
    annual_cash_flow: np.ndarray
    cash_on_cash: np.ndarray

    def to_frame(self, index: pd.Index | None = None) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "noi": self.noi,
                "cap_rate": self.cap_rate,
                "annual_debt_service": self.annual_debt_service,
                "dscr": self.dscr,
                "annual_cash_flow": self.annual_cash_flow,
                "cash_on_cash": self.cash_on_cash,
            },
            index=index,
        )


def real_estate_frame(deals: Iterable[RealEstateDeal]) -> pd.DataFrame:
    """Flatten real-estate payloads into the column layout compute_real_estate_metrics_df expects."""
    rows = []
    for d in deals:
        row = {c: getattr(d, c) for c in _DEAL_COLUMNS}
        row.update({c: getattr(d.financing, c) for c in _FINANCING_COLUMNS})
        rows.append(row)
    return pd.DataFrame(rows, columns=list(_DEAL_COLUMNS + _FINANCING_COLUMNS))


def _col(df: pd.DataFrame, name: str) -> np.ndarray:
    if name not in df.columns:
        return np.zeros(len(df), dtype=float)
    return df[name].fillna(0.0).to_numpy(dtype=float)


def compute_real_estate_metrics_df(df: pd.DataFrame) -> BatchFinanceResult:
    """
    Vectorized NOI / cap rate / DSCR / cash flow / CoC over a DataFrame.

    Columns follow RealEstateDeal field names plus the financing columns
    loan_amount, down_payment_pct, interest_rate_pct, amortization_years.
    Missing columns count as zero. Same units as the scalar calculator:
    percent inputs, percent cap rate and CoC, DSCR +inf without debt.
    """
    purchase_price = _col(df, "purchase_price")
    gross = _col(df, "gross_rental_income") + _col(df, "other_income")

    # --- Income / vacancy ---
    egi = gross * (1 - _col(df, "vacancy_rate") / 100.0)

    # --- Operating expenses ---
    mgmt = gross * _col(df, "property_management_pct") / 100.0
    opex = (
        _col(df, "property_tax")
        + _col(df, "insurance")
        + _col(df, "maintenance")
        + mgmt
        + _col(df, "utilities")
        + _col(df, "other_expenses")
    )

    # --- NOI ---
    noi = egi - opex

    # --- Debt service ---
    loan_amount = _col(df, "loan_amount")
    r_monthly = _col(df, "interest_rate_pct") / 100.0 / 12.0
    n_months = _col(df, "amortization_years") * 12.0

    mortgage_monthly = np.zeros_like(purchase_price, dtype=float)
    has_loan = (loan_amount > 0) & (n_months > 0)

    # Standard mortgage payment formula, vectorized
    mask_rate = has_loan & (r_monthly > 0)
    if mask_rate.any():
        la = loan_amount[mask_rate]
        r = r_monthly[mask_rate]
        n = n_months[mask_rate]
        growth = (1.0 + r) ** n
        mortgage_monthly[mask_rate] = la * r * growth / (growth - 1.0)

    mask_zero_rate = has_loan & (r_monthly == 0)
    mortgage_monthly[mask_zero_rate] = loan_amount[mask_zero_rate] / n_months[mask_zero_rate]

    annual_debt_service = mortgage_monthly * 12.0

    dscr = np.full_like(purchase_price, np.inf, dtype=float)
    mask_debt = annual_debt_service > 0
    dscr[mask_debt] = noi[mask_debt] / annual_debt_service[mask_debt]

    # --- Cap rate ---
    cap_rate = np.zeros_like(purchase_price, dtype=float)
    mask_price = purchase_price != 0
    cap_rate[mask_price] = noi[mask_price] / purchase_price[mask_price] * 100.0

    # --- Cash flow & CoC ---
    cash_flow = noi - annual_debt_service
    total_cash_in = (
        purchase_price * _col(df, "down_payment_pct") / 100.0
        + _col(df, "closing_costs")
        + _col(df, "rehab_costs")
    )

    cash_on_cash = np.zeros_like(purchase_price, dtype=float)
    mask_cash_in = total_cash_in != 0
    cash_on_cash[mask_cash_in] = cash_flow[mask_cash_in] / total_cash_in[mask_cash_in] * 100.0

    return BatchFinanceResult(
        noi=noi,
        cap_rate=cap_rate,
        annual_debt_service=annual_debt_service,
        dscr=dscr,
        annual_cash_flow=cash_flow,
        cash_on_cash=cash_on_cash,
    )
