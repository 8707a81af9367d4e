"""
Portfolio roll-ups over the scored outputs for leadership reporting.

Each summary returns ``(table, meta)`` in the same shape the CLI writes to
disk: the aggregate table plus a small JSON-serializable description.
"""
from __future__ import annotations

from typing import Dict, Tuple

import pandas as pd

from cshealth.schema import COL_MRR

MATURE_COHORT_MONTHS = 6


def _group_summary(df: pd.DataFrame, by: str, aggregations: Dict[str, tuple], sort_col: str) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=[by, *aggregations])
    table = df.groupby(by, sort=False).agg(**aggregations).reset_index()
    return table.sort_values([sort_col, by], ascending=[False, True], kind="mergesort").reset_index(drop=True)


def churn_portfolio_summary(churn: pd.DataFrame) -> Tuple[pd.DataFrame, Dict]:
    table = _group_summary(
        churn,
        "risk_category",
        {
            "customer_count": ("customer_id", "size"),
            "total_mrr_at_risk": ("monthly_revenue_at_risk", "sum"),
            "avg_risk_score": ("churn_risk_score", "mean"),
        },
        "avg_risk_score",
    )
    if not table.empty:
        table["avg_risk_score"] = table["avg_risk_score"].round(1)
    meta = {
        "summary": "churn_portfolio",
        "description": "Customers and monthly revenue at risk per churn risk category.",
        "rows": len(table),
    }
    return table, meta


def expansion_pipeline_summary(expansion: pd.DataFrame) -> Tuple[pd.DataFrame, Dict]:
    table = _group_summary(
        expansion,
        "expansion_readiness",
        {
            "opportunity_count": ("customer_id", "size"),
            "total_pipeline_mrr": ("estimated_expansion_mrr", "sum"),
            "avg_readiness_score": ("expansion_score", "mean"),
        },
        "avg_readiness_score",
    )
    if not table.empty:
        table["avg_readiness_score"] = table["avg_readiness_score"].round(1)
    meta = {
        "summary": "expansion_pipeline",
        "description": "Expansion opportunities and estimated pipeline MRR per readiness tier.",
        "rows": len(table),
    }
    return table, meta


def trend_portfolio_summary(trends: pd.DataFrame) -> Tuple[pd.DataFrame, Dict]:
    table = _group_summary(
        trends,
        "trend_category",
        {
            "customer_count": ("customer_id", "size"),
            "avg_trend_score": ("overall_trend_score", "mean"),
            "total_mrr": (COL_MRR, "sum"),
            "avg_usage_trend_pct": ("usage_trend_4wk", "mean"),
        },
        "avg_trend_score",
    )
    if not table.empty:
        table["avg_trend_score"] = table["avg_trend_score"].round(1)
        table["avg_usage_trend_pct"] = table["avg_usage_trend_pct"].round(1)
    meta = {
        "summary": "trend_portfolio",
        "description": "Share of the portfolio growing vs declining, and where MRR sits.",
        "rows": len(table),
    }
    return table, meta


def cohort_executive_summary(cohorts: pd.DataFrame, min_age_months: int = MATURE_COHORT_MONTHS) -> Tuple[pd.DataFrame, Dict]:
    """Board-level roll-up over mature cohorts."""
    mature = cohorts.loc[pd.to_numeric(cohorts["cohort_age_months"], errors="coerce") >= min_age_months]
    rrr = pd.to_numeric(mature["revenue_retention_rate"], errors="coerce")
    row = {
        "mature_cohorts": int(len(mature)),
        "avg_customer_retention": pd.to_numeric(mature["customer_retention_rate"], errors="coerce").mean(),
        "avg_revenue_retention": rrr.mean(),
        "total_mrr": pd.to_numeric(mature["current_mrr"], errors="coerce").sum(),
        "best_cohort_retention": rrr.max(),
        "worst_cohort_retention": rrr.min(),
        "avg_upgrade_rate": pd.to_numeric(mature["upgrade_rate"], errors="coerce").mean(),
        "total_upgrades": int(
            pd.to_numeric(mature["starter_to_pro_upgrades"], errors="coerce").sum()
            + pd.to_numeric(mature["pro_to_enterprise_upgrades"], errors="coerce").sum()
        ),
    }
    table = pd.DataFrame([row])
    for c in ("avg_customer_retention", "avg_revenue_retention", "avg_upgrade_rate"):
        table[c] = table[c].round(1)
    meta = {
        "summary": "cohort_executive",
        "description": "Retention, revenue and upgrade averages across mature cohorts.",
        "filters": {"cohort_age_months": f">={min_age_months}"},
        "rows": len(table),
    }
    return table, meta
