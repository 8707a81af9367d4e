"""Signup-month cohort retention analysis."""

from __future__ import annotations

import numpy as np
import pandas as pd

from cshealth.classify import COHORT_HEALTH, LIFECYCLE_STAGES, classify
from cshealth.config import EngineConfig
from cshealth.schema import (
    COL_ACTIVITY_DATE,
    COL_CUSTOMER_ID,
    COL_LOGINS,
    COL_MRR,
    COL_NPS,
    COL_PLAN_TYPE,
    COL_SIGNUP_DATE,
    COL_STARTING_MRR,
    COL_STARTING_PLAN,
    COL_STATUS,
    COL_TICKETS,
    COL_USAGE,
    PLAN_ENTERPRISE,
    PLAN_PROFESSIONAL,
    PLAN_STARTER,
    STATUS_ACTIVE,
    STATUS_AT_RISK,
    STATUS_CHURNED,
    get_output_order,
)
from cshealth.windows import months_elapsed

COHORT_MONTH = "cohort_month"


def cohort_month(dates: pd.Series) -> pd.Series:
    """First day of the calendar month of each date."""
    return pd.to_datetime(dates).dt.to_period("M").dt.to_timestamp()


def _rate(part: pd.Series, whole: pd.Series, decimals: int = 1) -> pd.Series:
    """100 * part / whole; undefined where ``whole`` is zero."""
    denom = whole.where(whole > 0)
    return (100.0 * part / denom).round(decimals)


def _cohort_flags(customers: pd.DataFrame) -> pd.DataFrame:
    df = customers.copy()
    df[COHORT_MONTH] = cohort_month(df[COL_SIGNUP_DATE])
    start, now = df[COL_STARTING_PLAN], df[COL_PLAN_TYPE]
    is_active = df[COL_STATUS] == STATUS_ACTIVE

    df["_starter"] = (start == PLAN_STARTER).astype(int)
    df["_professional"] = (start == PLAN_PROFESSIONAL).astype(int)
    df["_enterprise"] = (start == PLAN_ENTERPRISE).astype(int)
    df["_active"] = is_active.astype(int)
    df["_at_risk"] = (df[COL_STATUS] == STATUS_AT_RISK).astype(int)
    df["_churned"] = (df[COL_STATUS] == STATUS_CHURNED).astype(int)
    df["_active_mrr"] = df[COL_MRR].where(is_active, 0.0)
    df["_starter_to_pro"] = ((start == PLAN_STARTER) & (now == PLAN_PROFESSIONAL)).astype(int)
    df["_pro_to_enterprise"] = ((start == PLAN_PROFESSIONAL) & (now == PLAN_ENTERPRISE)).astype(int)
    return df


def _cohort_engagement(members: pd.DataFrame, activity: pd.DataFrame, as_of: pd.Timestamp, recent_days: int) -> pd.DataFrame:
    """Average engagement of Active members over the recent window, per cohort (averaged over records)."""

    start = as_of - pd.Timedelta(days=recent_days)
    dates = activity[COL_ACTIVITY_DATE]
    recent = activity.loc[(dates >= start) & (dates < as_of)]
    active = members.loc[members[COL_STATUS] == STATUS_ACTIVE, [COL_CUSTOMER_ID, COHORT_MONTH]]
    joined = recent.merge(active, on=COL_CUSTOMER_ID, how="inner")
    return joined.groupby(COHORT_MONTH).agg(
        avg_weekly_logins=(COL_LOGINS, "mean"),
        avg_usage_score=(COL_USAGE, "mean"),
        avg_nps=(COL_NPS, "mean"),
        total_support_tickets_30d=(COL_TICKETS, lambda s: s.sum(min_count=1)),
    )


def analyze_cohorts(
    customers: pd.DataFrame,
    activity: pd.DataFrame,
    as_of,
    config: EngineConfig | None = None,
) -> pd.DataFrame:
    """One row per signup-month cohort with at least ``min_cohort_size`` members.

    Starting plan and MRR come from ``starting_plan`` / ``starting_mrr``; when
    the source has no signup-time snapshot these equal the current values and
    upgrade counts are zero. Revenue retention (and so cohort health) is
    undefined for a cohort whose starting MRR is zero. Newest cohorts first.
    """

    config = config or EngineConfig()
    if customers.empty:
        return pd.DataFrame(columns=get_output_order("cohorts"))

    as_of = pd.Timestamp(as_of).normalize()
    df = _cohort_flags(customers)
    agg = df.groupby(COHORT_MONTH, sort=True).agg(
        cohort_size=(COL_CUSTOMER_ID, "size"),
        starter_count=("_starter", "sum"),
        professional_count=("_professional", "sum"),
        enterprise_count=("_enterprise", "sum"),
        active_customers=("_active", "sum"),
        at_risk_customers=("_at_risk", "sum"),
        churned_customers=("_churned", "sum"),
        starting_mrr=(COL_STARTING_MRR, "sum"),
        avg_starting_mrr_per_customer=(COL_STARTING_MRR, "mean"),
        current_mrr=(COL_MRR, "sum"),
        active_mrr=("_active_mrr", "sum"),
        starter_to_pro_upgrades=("_starter_to_pro", "sum"),
        pro_to_enterprise_upgrades=("_pro_to_enterprise", "sum"),
    )
    agg = agg.join(_cohort_engagement(df, activity, as_of, config.windows.recent_days), how="left")
    agg = agg.loc[agg["cohort_size"] >= config.limits.min_cohort_size].reset_index()
    if agg.empty:
        return pd.DataFrame(columns=get_output_order("cohorts"))

    size = agg["cohort_size"]
    agg["customer_retention_rate"] = _rate(agg["active_customers"], size)
    agg["at_risk_rate"] = _rate(agg["at_risk_customers"], size)
    agg["churn_rate"] = _rate(agg["churned_customers"], size)
    agg["upgrade_rate"] = _rate(agg["starter_to_pro_upgrades"] + agg["pro_to_enterprise_upgrades"], size)

    # Health is banded on the unrounded retention ratio.
    starting = agg["starting_mrr"].where(agg["starting_mrr"] > 0)
    agg["_retention_raw"] = 100.0 * agg["current_mrr"] / starting
    agg = classify(agg, "_retention_raw", COHORT_HEALTH, "cohort_health")
    agg["revenue_retention_rate"] = agg["_retention_raw"].round(1)

    agg["net_mrr_change"] = (agg["current_mrr"] - agg["starting_mrr"]).round(2)
    agg["avg_current_mrr_per_active_customer"] = (
        agg["active_mrr"] / agg["active_customers"].where(agg["active_customers"] > 0)
    ).round(2)
    for c in ("starting_mrr", "current_mrr", "active_mrr", "avg_starting_mrr_per_customer"):
        agg[c] = agg[c].round(2)
    for c in ("avg_weekly_logins", "avg_usage_score", "avg_nps"):
        agg[c] = agg[c].round(1)

    agg["cohort_age_months"] = months_elapsed(agg[COHORT_MONTH], as_of)
    agg = classify(agg, "cohort_age_months", LIFECYCLE_STAGES, "lifecycle_stage")

    agg = agg.sort_values(COHORT_MONTH, ascending=False, kind="mergesort").head(config.limits.cohorts)
    return agg.reset_index(drop=True)[get_output_order("cohorts")]


def cohort_retention_curve(customers: pd.DataFrame, activity: pd.DataFrame, as_of=None) -> pd.DataFrame:
    """Distinct customers with activity per (cohort, whole months since signup).

    Activity on or after ``as_of`` is ignored when a reference date is given.
    """

    cols = [COHORT_MONTH, "months_since_signup", "active_customers"]
    history = activity
    if as_of is not None:
        history = history.loc[history[COL_ACTIVITY_DATE] < pd.Timestamp(as_of).normalize()]
    joined = history[[COL_CUSTOMER_ID, COL_ACTIVITY_DATE]].merge(
        customers[[COL_CUSTOMER_ID, COL_SIGNUP_DATE]], on=COL_CUSTOMER_ID, how="inner"
    )
    if joined.empty:
        return pd.DataFrame(columns=cols)

    joined[COHORT_MONTH] = cohort_month(joined[COL_SIGNUP_DATE])
    joined["months_since_signup"] = months_elapsed(joined[COL_SIGNUP_DATE], joined[COL_ACTIVITY_DATE]).astype(np.int64)
    curve = (
        joined.groupby([COHORT_MONTH, "months_since_signup"], sort=True)[COL_CUSTOMER_ID]
        .nunique()
        .reset_index(name="active_customers")
    )
    return curve[cols]
