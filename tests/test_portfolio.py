import numpy as np
import pandas as pd
import pytest

from cshealth.reporting.portfolio import (
    churn_portfolio_summary,
    cohort_executive_summary,
    expansion_pipeline_summary,
    trend_portfolio_summary,
)


def test_churn_portfolio_groups_by_category():
    churn = pd.DataFrame(
        {
            "customer_id": ["a", "b", "c"],
            "risk_category": ["Critical Risk", "Critical Risk", "Medium Risk"],
            "monthly_revenue_at_risk": [100.0, 300.0, 50.0],
            "churn_risk_score": [90, 70, 25],
        }
    )
    table, meta = churn_portfolio_summary(churn)
    assert table["risk_category"].tolist() == ["Critical Risk", "Medium Risk"]
    assert table["customer_count"].tolist() == [2, 1]
    assert table["total_mrr_at_risk"].tolist() == pytest.approx([400.0, 50.0])
    assert table["avg_risk_score"].tolist() == pytest.approx([80.0, 25.0])
    assert meta["rows"] == 2


def test_expansion_pipeline_sums_estimates():
    expansion = pd.DataFrame(
        {
            "customer_id": ["a", "b", "c"],
            "expansion_readiness": ["Hot - Ready Now", "Warm - Qualified", "Hot - Ready Now"],
            "estimated_expansion_mrr": [150.0, 700.0, 700.0],
            "expansion_score": [75, 45, 65],
        }
    )
    table, _ = expansion_pipeline_summary(expansion)
    assert table["expansion_readiness"].tolist() == ["Hot - Ready Now", "Warm - Qualified"]
    assert table["total_pipeline_mrr"].tolist() == pytest.approx([850.0, 700.0])
    assert table["opportunity_count"].tolist() == [2, 1]


def test_trend_portfolio_handles_empty_input():
    empty = pd.DataFrame(columns=["customer_id", "trend_category", "overall_trend_score", "mrr", "usage_trend_4wk"])
    table, meta = trend_portfolio_summary(empty)
    assert table.empty
    assert meta["rows"] == 0


def test_cohort_executive_summary_uses_mature_cohorts_only():
    cohorts = pd.DataFrame(
        {
            "cohort_age_months": [3, 8, 14],
            "customer_retention_rate": [100.0, 80.0, 60.0],
            "revenue_retention_rate": [120.0, 95.0, np.nan],
            "current_mrr": [1000.0, 2000.0, 3000.0],
            "upgrade_rate": [0.0, 10.0, 20.0],
            "starter_to_pro_upgrades": [0, 1, 2],
            "pro_to_enterprise_upgrades": [0, 0, 1],
        }
    )
    table, meta = cohort_executive_summary(cohorts)
    row = table.iloc[0]
    assert row["mature_cohorts"] == 2
    assert row["avg_customer_retention"] == pytest.approx(70.0)
    assert row["avg_revenue_retention"] == pytest.approx(95.0)
    assert row["best_cohort_retention"] == pytest.approx(95.0)
    assert row["total_mrr"] == pytest.approx(5000.0)
    assert row["total_upgrades"] == 4
    assert meta["filters"] == {"cohort_age_months": ">=6"}
