"""
Canonical column names and schema helpers for customer health scoring.

Use these constants instead of hardcoded strings. The `unify_columns` helper
renames common aliases to canonical names for downstream logic.
"""
from typing import Dict, List
import pandas as pd

# ---------------------------------------------------------------------------
# Customer relation
# ---------------------------------------------------------------------------
COL_CUSTOMER_ID = "customer_id"
COL_COMPANY_NAME = "company_name"
COL_SIGNUP_DATE = "signup_date"
COL_PLAN_TYPE = "plan_type"
COL_INDUSTRY = "industry"
COL_ACCOUNT_OWNER = "account_owner"
COL_STATUS = "status"
COL_MRR = "mrr"

# Optional signup-time snapshot columns (fall back to current values)
COL_STARTING_PLAN = "starting_plan"
COL_STARTING_MRR = "starting_mrr"

# ---------------------------------------------------------------------------
# Activity relation
# ---------------------------------------------------------------------------
COL_ACTIVITY_ID = "activity_id"
COL_ACTIVITY_DATE = "activity_date"
COL_LOGINS = "logins_count"
COL_USAGE = "feature_usage_score"
COL_TICKETS = "support_tickets_opened"
COL_NPS = "nps_score"

# Plan tiers, lowest first
PLAN_STARTER = "Starter"
PLAN_PROFESSIONAL = "Professional"
PLAN_ENTERPRISE = "Enterprise"
PLAN_ORDER: List[str] = [PLAN_STARTER, PLAN_PROFESSIONAL, PLAN_ENTERPRISE]

STATUS_ACTIVE = "Active"
STATUS_AT_RISK = "At Risk"
STATUS_CHURNED = "Churned"
STATUSES: List[str] = [STATUS_ACTIVE, STATUS_AT_RISK, STATUS_CHURNED]


# Aliases mapping: alias -> canonical
ALIASES: Dict[str, str] = {
    # Customer
    "customer id": COL_CUSTOMER_ID,
    "customerid": COL_CUSTOMER_ID,
    "account_id": COL_CUSTOMER_ID,
    "company": COL_COMPANY_NAME,
    "company name": COL_COMPANY_NAME,
    "plan": COL_PLAN_TYPE,
    "plan type": COL_PLAN_TYPE,
    "owner": COL_ACCOUNT_OWNER,
    "account owner": COL_ACCOUNT_OWNER,
    "monthly_recurring_revenue": COL_MRR,

    # Activity
    "week": COL_ACTIVITY_DATE,
    "week_date": COL_ACTIVITY_DATE,
    "logins": COL_LOGINS,
    "usage_score": COL_USAGE,
    "support_tickets": COL_TICKETS,
    "tickets": COL_TICKETS,
    "nps": COL_NPS,
}


def unify_columns(df: pd.DataFrame, extra_aliases: Dict[str, str] | None = None) -> pd.DataFrame:
    """
    Rename common alias columns to their canonical names (returns copy).

    Args:
        df: input DataFrame
        extra_aliases: optional additional alias mapping

    Returns:
        DataFrame with standardized columns
    """
    mapping = {**ALIASES}
    if extra_aliases:
        mapping.update({k: v for k, v in extra_aliases.items() if isinstance(k, str) and isinstance(v, str)})

    # Build case-insensitive map of current columns
    lower_cols = {c.lower(): c for c in df.columns}
    renames: Dict[str, str] = {}
    for alias_lower, canonical in mapping.items():
        if alias_lower in lower_cols and canonical not in df.columns:
            renames[lower_cols[alias_lower]] = canonical

    if renames:
        return df.rename(columns=renames)
    return df


def canonicalize_customer_id(series: pd.Series) -> pd.Series:
    """Normalize customer ID values without losing leading zeros."""
    s = series.astype(str).str.strip()
    return s.str.replace(r"\.0$", "", regex=True)


REQUIRED_CUSTOMER_COLUMNS: List[str] = [
    COL_CUSTOMER_ID,
    COL_COMPANY_NAME,
    COL_SIGNUP_DATE,
    COL_PLAN_TYPE,
    COL_STATUS,
    COL_MRR,
]

REQUIRED_ACTIVITY_COLUMNS: List[str] = [
    COL_CUSTOMER_ID,
    COL_ACTIVITY_DATE,
    COL_LOGINS,
    COL_USAGE,
    COL_TICKETS,
    COL_NPS,
]


# ---------------------------------------------------------------------------
# Output schemas, one per analysis
# ---------------------------------------------------------------------------

IDENTITY_COLUMNS: List[str] = [
    COL_CUSTOMER_ID,
    COL_COMPANY_NAME,
    COL_PLAN_TYPE,
    COL_MRR,
    COL_ACCOUNT_OWNER,
]

HEALTH_OUTPUT_COLUMNS: List[str] = IDENTITY_COLUMNS + [
    "overall_health_score",
    "usage_health_score",
    "support_health_score",
    "engagement_health_score",
    "health_grade",
    "recommended_action",
    "avg_feature_usage",
    "avg_weekly_logins",
    "tickets_last_30d",
    "avg_nps_score",
]

CHURN_SIGNAL_COLUMNS: List[str] = [
    "usage_decline_risk",
    "support_burden_risk",
    "nps_decline_risk",
    "login_decline_risk",
    "inactivity_risk",
]

CHURN_FLAG_COLUMNS: List[str] = [
    "usage_flag",
    "support_flag",
    "nps_flag",
    "login_flag",
    "activity_flag",
]

CHURN_OUTPUT_COLUMNS: List[str] = IDENTITY_COLUMNS + [
    COL_SIGNUP_DATE,
    "churn_risk_score",
    "risk_category",
    *CHURN_SIGNAL_COLUMNS,
    *CHURN_FLAG_COLUMNS,
    "monthly_revenue_at_risk",
    "annual_revenue_at_risk",
    "current_usage",
    "prior_usage",
    "current_logins",
    "prior_logins",
    "tickets_last_4wks",
    "current_nps",
    "recommended_action",
]

EXPANSION_SIGNAL_COLUMNS: List[str] = [
    "plan_ceiling_signal",
    "adoption_signal",
    "growth_signal",
    "satisfaction_signal",
    "mastery_signal",
]

EXPANSION_FLAG_COLUMNS: List[str] = [
    "ceiling_flag",
    "adoption_flag",
    "growth_flag",
    "satisfaction_flag",
    "mastery_flag",
]

# The expansion report names the plan and revenue it would grow from.
COL_CURRENT_PLAN = "current_plan"
COL_CURRENT_MRR = "current_mrr"

EXPANSION_OUTPUT_COLUMNS: List[str] = [
    COL_CUSTOMER_ID,
    COL_COMPANY_NAME,
    COL_CURRENT_PLAN,
    COL_CURRENT_MRR,
    COL_ACCOUNT_OWNER,
    COL_SIGNUP_DATE,
    "months_as_customer",
    "expansion_score",
    "expansion_readiness",
    "expansion_opportunity",
    "estimated_expansion_mrr",
    *EXPANSION_SIGNAL_COLUMNS,
    *EXPANSION_FLAG_COLUMNS,
    "avg_usage_score",
    "avg_weekly_logins",
    "tickets_last_30d",
    "nps_score",
    "usage_growth_pct",
    "sales_talking_points",
]

TREND_SIGNAL_COLUMNS: List[str] = [
    "usage_trend_score",
    "login_trend_score",
    "consistency_score",
]

TREND_OUTPUT_COLUMNS: List[str] = IDENTITY_COLUMNS + [
    COL_STATUS,
    "overall_trend_score",
    "trend_category",
    *TREND_SIGNAL_COLUMNS,
    "current_week_usage",
    "current_week_logins",
    "wow_usage_change",
    "wow_login_change",
    "four_week_avg_usage",
    "usage_trend_4wk",
    "four_week_avg_logins",
    "login_trend_4wk",
    "active_weeks_last_8",
    "engagement_consistency",
    "recommended_action",
]

COHORT_OUTPUT_COLUMNS: List[str] = [
    "cohort_month",
    "cohort_age_months",
    "cohort_size",
    "starter_count",
    "professional_count",
    "enterprise_count",
    "active_customers",
    "customer_retention_rate",
    "at_risk_customers",
    "at_risk_rate",
    "churned_customers",
    "churn_rate",
    "starting_mrr",
    "current_mrr",
    "active_mrr",
    "revenue_retention_rate",
    "net_mrr_change",
    "starter_to_pro_upgrades",
    "pro_to_enterprise_upgrades",
    "upgrade_rate",
    "avg_weekly_logins",
    "avg_usage_score",
    "avg_nps",
    "total_support_tickets_30d",
    "avg_starting_mrr_per_customer",
    "avg_current_mrr_per_active_customer",
    "cohort_health",
    "lifecycle_stage",
]

OUTPUT_SCHEMAS: Dict[str, List[str]] = {
    "health": HEALTH_OUTPUT_COLUMNS,
    "churn": CHURN_OUTPUT_COLUMNS,
    "expansion": EXPANSION_OUTPUT_COLUMNS,
    "trends": TREND_OUTPUT_COLUMNS,
    "cohorts": COHORT_OUTPUT_COLUMNS,
}


def get_output_order(analysis: str) -> List[str]:
    """Return the canonical column order for one analysis output."""
    if analysis not in OUTPUT_SCHEMAS:
        raise KeyError(f"Unknown analysis '{analysis}'. Available: {', '.join(sorted(OUTPUT_SCHEMAS))}")
    return list(OUTPUT_SCHEMAS[analysis])
