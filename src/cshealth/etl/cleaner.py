"""Data cleaning utilities for the two input relations."""
from __future__ import annotations

import re

import pandas as pd

from cshealth.schema import (
    COL_ACCOUNT_OWNER,
    COL_ACTIVITY_DATE,
    COL_COMPANY_NAME,
    COL_CUSTOMER_ID,
    COL_INDUSTRY,
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
    PLAN_ORDER,
    REQUIRED_ACTIVITY_COLUMNS,
    REQUIRED_CUSTOMER_COLUMNS,
    STATUSES,
    canonicalize_customer_id,
    unify_columns,
)
from cshealth.validation import ensure_columns, ensure_unique_activity_keys


def clean_name(x: str) -> str:
    """Collapse whitespace and stray separators in a company name."""
    if pd.isna(x):
        return ""
    x = re.sub(r"\s*,\s*$", "", str(x))
    return " ".join(x.split())


def _canonical_label(series: pd.Series, allowed: list[str]) -> pd.Series:
    """Map case/whitespace variants (``"at risk"``, ``" STARTER"``) onto canonical labels."""
    lookup = {a.lower(): a for a in allowed}
    cleaned = series.astype(str).str.strip().str.lower().map(lookup)
    return cleaned.where(cleaned.notna(), series)


def _naive_dates(series: pd.Series) -> pd.Series:
    dates = pd.to_datetime(series)
    if getattr(dates.dt, "tz", None) is not None:
        dates = dates.dt.tz_localize(None)
    return dates.dt.normalize()


def prepare_customers(customers: pd.DataFrame) -> pd.DataFrame:
    """Canonicalize the customer relation.

    ``starting_plan`` / ``starting_mrr`` default to the current plan and MRR
    when the source carries no signup-time snapshot.
    """

    df = unify_columns(customers)
    ok, missing = ensure_columns(df, REQUIRED_CUSTOMER_COLUMNS)
    if not ok:
        raise ValueError(f"Customer relation missing required columns: {', '.join(missing)}")

    df = df.copy()
    df[COL_CUSTOMER_ID] = canonicalize_customer_id(df[COL_CUSTOMER_ID])
    df[COL_COMPANY_NAME] = df[COL_COMPANY_NAME].map(clean_name)
    df[COL_SIGNUP_DATE] = _naive_dates(df[COL_SIGNUP_DATE])
    df[COL_PLAN_TYPE] = _canonical_label(df[COL_PLAN_TYPE], PLAN_ORDER)
    df[COL_STATUS] = _canonical_label(df[COL_STATUS], STATUSES)
    df[COL_MRR] = pd.to_numeric(df[COL_MRR], errors="coerce").astype(float)
    for c in (COL_INDUSTRY, COL_ACCOUNT_OWNER):
        if c not in df.columns:
            df[c] = None

    if COL_STARTING_PLAN in df.columns:
        df[COL_STARTING_PLAN] = _canonical_label(df[COL_STARTING_PLAN], PLAN_ORDER)
        df[COL_STARTING_PLAN] = df[COL_STARTING_PLAN].where(df[COL_STARTING_PLAN].notna(), df[COL_PLAN_TYPE])
    else:
        df[COL_STARTING_PLAN] = df[COL_PLAN_TYPE]

    if COL_STARTING_MRR in df.columns:
        starting = pd.to_numeric(df[COL_STARTING_MRR], errors="coerce")
        df[COL_STARTING_MRR] = starting.fillna(df[COL_MRR]).astype(float)
    else:
        df[COL_STARTING_MRR] = df[COL_MRR]

    return df.sort_values(COL_CUSTOMER_ID, kind="mergesort").reset_index(drop=True)


def prepare_activity(activity: pd.DataFrame) -> pd.DataFrame:
    """Canonicalize the activity relation: column names, ids, dates and numeric types."""

    df = unify_columns(activity)
    ok, missing = ensure_columns(df, REQUIRED_ACTIVITY_COLUMNS)
    if not ok:
        raise ValueError(f"Activity relation missing required columns: {', '.join(missing)}")

    df = df.copy()
    df[COL_CUSTOMER_ID] = canonicalize_customer_id(df[COL_CUSTOMER_ID])
    df[COL_ACTIVITY_DATE] = _naive_dates(df[COL_ACTIVITY_DATE])
    for c in (COL_LOGINS, COL_USAGE, COL_TICKETS, COL_NPS):
        df[c] = pd.to_numeric(df[c], errors="coerce").astype(float)

    ensure_unique_activity_keys(df)
    return df.sort_values([COL_CUSTOMER_ID, COL_ACTIVITY_DATE], kind="mergesort").reset_index(drop=True)
