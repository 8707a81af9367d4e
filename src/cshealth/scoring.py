"""Per-customer analyses: health, churn risk, expansion readiness and usage trend.

Each analysis joins the prepared customer relation to the window frame from
:func:`cshealth.windows.compute_activity_windows`, applies its signal ladders,
combines them into a headline score, attaches the band label and action, and
returns the ranked, truncated output in canonical column order.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np
import pandas as pd

from cshealth.classify import (
    CHURN_CATEGORIES,
    ENGAGEMENT_CONSISTENCY,
    EXPANSION_READINESS,
    HEALTH_GRADES,
    TREND_CATEGORIES,
    classify,
    rank,
)
from cshealth.composite import churn_total, health_composite, signal_total
from cshealth.config import EngineConfig
from cshealth.ladders import all_of, gte, is_value, ladder
from cshealth.schema import (
    COL_CURRENT_MRR,
    COL_CURRENT_PLAN,
    COL_CUSTOMER_ID,
    COL_MRR,
    COL_PLAN_TYPE,
    COL_SIGNUP_DATE,
    COL_STATUS,
    CHURN_SIGNAL_COLUMNS,
    EXPANSION_SIGNAL_COLUMNS,
    PLAN_ENTERPRISE,
    PLAN_PROFESSIONAL,
    PLAN_STARTER,
    STATUS_ACTIVE,
    STATUS_AT_RISK,
    TREND_SIGNAL_COLUMNS,
    get_output_order,
)
from cshealth.signals import (
    CHURN_FLAGS,
    EXPANSION_FLAGS,
    churn_signals,
    expansion_signals,
    health_dimensions,
    pct_change,
    signal_flags,
    trend_inputs,
    trend_signals,
)
from cshealth.windows import months_elapsed

EXPANSION_MIN_SCORE = 20

# Typical upgrade delta per tier; anything else is sized at 30% of current MRR.
UPGRADE_DELTA_MRR = {PLAN_STARTER: 150.0, PLAN_PROFESSIONAL: 700.0}
EXPANSION_SHARE_OF_MRR = 0.30

EXPANSION_OPPORTUNITY = ladder(
    "expansion_opportunity",
    [
        ("starter_upgrade", all_of(is_value(COL_PLAN_TYPE, PLAN_STARTER), gte("plan_ceiling_signal", 20)), "Upgrade to Professional"),
        ("pro_upgrade", all_of(is_value(COL_PLAN_TYPE, PLAN_PROFESSIONAL), gte("plan_ceiling_signal", 15)), "Upgrade to Enterprise"),
        ("add_on", gte("adoption_signal", 20), "Add-on features/modules"),
        ("seats", gte("growth_signal", 15), "Seat expansion"),
    ],
    default="General expansion conversation",
)


def _eligible(
    customers: pd.DataFrame,
    windows: pd.DataFrame,
    statuses: Iterable[str],
    records_col: str,
) -> pd.DataFrame:
    """Customers in ``statuses`` with at least one record in the window named by ``records_col``."""

    base = customers.loc[customers[COL_STATUS].isin(list(statuses))]
    merged = base.merge(windows, on=COL_CUSTOMER_ID, how="inner")
    merged = merged.loc[pd.to_numeric(merged[records_col], errors="coerce").fillna(0) > 0]
    return merged.reset_index(drop=True)


def _finalize(frame: pd.DataFrame, analysis: str, score_col: str, ascending: bool, limit: int) -> pd.DataFrame:
    ranked = rank(frame, score_col, ascending=ascending, limit=limit)
    return ranked[get_output_order(analysis)]


def _empty(analysis: str) -> pd.DataFrame:
    return pd.DataFrame(columns=get_output_order(analysis))


def score_customer_health(customers: pd.DataFrame, windows: pd.DataFrame, config: EngineConfig | None = None) -> pd.DataFrame:
    """Health score for Active customers with activity in the recent window.

    Lowest scores first so the accounts needing attention lead the list.
    """

    config = config or EngineConfig()
    base = _eligible(customers, windows, [STATUS_ACTIVE], "recent_records")
    if base.empty:
        return _empty("health")

    dims = health_dimensions(base)
    out = base.copy()
    out["usage_health_score"] = dims["usage_health"].round(1)
    out["support_health_score"] = dims["support_health"].round(1)
    out["engagement_health_score"] = dims["engagement_health"].round(1)
    out["overall_health_score"] = health_composite(dims, config.health_weights)
    out = classify(out, "overall_health_score", HEALTH_GRADES, "health_grade", "recommended_action")

    out["avg_feature_usage"] = out["recent_avg_usage"].round(1)
    out["avg_weekly_logins"] = out["recent_avg_logins"].round(1)
    out["tickets_last_30d"] = out["recent_total_tickets"]
    out["avg_nps_score"] = out["recent_avg_nps"].round(1)
    return _finalize(out, "health", "overall_health_score", True, config.limits.per_customer)


def score_churn_risk(customers: pd.DataFrame, windows: pd.DataFrame, config: EngineConfig | None = None) -> pd.DataFrame:
    """Churn risk for Active/At Risk customers with activity in the current 4 weeks.

    Only customers with a positive score are listed, highest risk first.
    """

    config = config or EngineConfig()
    base = _eligible(customers, windows, [STATUS_ACTIVE, STATUS_AT_RISK], "current_records")
    if base.empty:
        return _empty("churn")

    sig = churn_signals(base)
    out = pd.concat([base, sig, signal_flags(sig, CHURN_FLAGS)], axis=1)
    out["churn_risk_score"] = churn_total(sig, CHURN_SIGNAL_COLUMNS)
    out = out.loc[out["churn_risk_score"] > 0]
    if out.empty:
        return _empty("churn")
    out = classify(out, "churn_risk_score", CHURN_CATEGORIES, "risk_category", "recommended_action")

    out["monthly_revenue_at_risk"] = out[COL_MRR]
    out["annual_revenue_at_risk"] = out[COL_MRR] * 12
    out["current_usage"] = out["current_avg_usage"].round(1)
    out["prior_usage"] = out["prior_avg_usage"].round(1)
    out["current_logins"] = out["current_avg_logins"].round(1)
    out["prior_logins"] = out["prior_avg_logins"].round(1)
    out["tickets_last_4wks"] = out["current_total_tickets"]
    out["current_nps"] = out["current_avg_nps"].round(1)
    return _finalize(out, "churn", "churn_risk_score", False, config.limits.per_customer)


def estimated_expansion_mrr(frame: pd.DataFrame) -> pd.Series:
    plan = frame[COL_PLAN_TYPE].astype(str)
    mrr = pd.to_numeric(frame[COL_MRR], errors="coerce")
    conditions = [plan == p for p in UPGRADE_DELTA_MRR]
    choices = list(UPGRADE_DELTA_MRR.values())
    return pd.Series(
        np.select(conditions, choices, default=mrr * EXPANSION_SHARE_OF_MRR),
        index=frame.index,
        name="estimated_expansion_mrr",
    )


def score_expansion(
    customers: pd.DataFrame,
    windows: pd.DataFrame,
    as_of,
    config: EngineConfig | None = None,
) -> pd.DataFrame:
    """Expansion readiness for Active, non-Enterprise customers with recent activity.

    Scores below 20 are not meaningful opportunities and are dropped. Output
    carries the opportunity type, a revenue estimate and sales talking points.
    """

    config = config or EngineConfig()
    base = _eligible(customers, windows, [STATUS_ACTIVE], "recent_records")
    base = base.loc[base[COL_PLAN_TYPE] != PLAN_ENTERPRISE].reset_index(drop=True)
    if base.empty:
        return _empty("expansion")

    sig = expansion_signals(base)
    out = pd.concat([base, sig, signal_flags(sig, EXPANSION_FLAGS)], axis=1)
    out["expansion_score"] = signal_total(sig, EXPANSION_SIGNAL_COLUMNS)
    out = out.loc[out["expansion_score"] >= EXPANSION_MIN_SCORE]
    if out.empty:
        return _empty("expansion")

    out = classify(out, "expansion_score", EXPANSION_READINESS, "expansion_readiness", "sales_talking_points")
    out["expansion_opportunity"] = EXPANSION_OPPORTUNITY.evaluate(out)
    out["estimated_expansion_mrr"] = estimated_expansion_mrr(out)
    out["months_as_customer"] = months_elapsed(out[COL_SIGNUP_DATE], as_of)
    out[COL_CURRENT_PLAN] = out[COL_PLAN_TYPE]
    out[COL_CURRENT_MRR] = out[COL_MRR]

    out["avg_usage_score"] = out["recent_avg_usage"].round(1)
    out["avg_weekly_logins"] = out["recent_avg_logins"].round(1)
    out["tickets_last_30d"] = out["recent_total_tickets"]
    out["nps_score"] = out["recent_avg_nps"].round(1)
    out["usage_growth_pct"] = pct_change(out["recent_avg_usage"], out["recent_prior_avg_usage"])
    return _finalize(out, "expansion", "expansion_score", False, config.limits.per_customer)


def score_usage_trends(customers: pd.DataFrame, windows: pd.DataFrame, config: EngineConfig | None = None) -> pd.DataFrame:
    """Usage trend for Active/At Risk customers with activity in the trend lookback.

    Most negative trends first.
    """

    config = config or EngineConfig()
    base = _eligible(customers, windows, [STATUS_ACTIVE, STATUS_AT_RISK], "trend_records")
    if base.empty:
        return _empty("trends")

    base = trend_inputs(base)
    sig = trend_signals(base)
    out = pd.concat([base, sig], axis=1)
    out["overall_trend_score"] = signal_total(sig, TREND_SIGNAL_COLUMNS)
    out = classify(out, "overall_trend_score", TREND_CATEGORIES, "trend_category", "recommended_action")
    out = classify(out, "active_weeks", ENGAGEMENT_CONSISTENCY, "engagement_consistency")

    out["current_week_usage"] = out["latest_usage"].round(1)
    out["current_week_logins"] = out["latest_logins"].round(1)
    out["wow_usage_change"] = out["wow_usage_change_pct"]
    out["wow_login_change"] = out["wow_login_change_pct"]
    out["four_week_avg_usage"] = out["rolling_usage"].round(1)
    out["usage_trend_4wk"] = out["four_week_usage_trend_pct"]
    out["four_week_avg_logins"] = out["rolling_logins"].round(1)
    out["login_trend_4wk"] = out["four_week_login_trend_pct"]
    out["active_weeks_last_8"] = out["active_weeks"]
    return _finalize(out, "trends", "overall_trend_score", True, config.limits.per_customer)
