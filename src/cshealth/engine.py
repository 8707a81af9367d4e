"""Pipeline orchestration: validate, aggregate windows once, run every analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator

import pandas as pd

from cshealth.cohorts import analyze_cohorts, cohort_retention_curve
from cshealth.config import EngineConfig
from cshealth.etl.cleaner import prepare_activity, prepare_customers
from cshealth.scoring import (
    score_churn_risk,
    score_customer_health,
    score_expansion,
    score_usage_trends,
)
from cshealth.schema import unify_columns
from cshealth.validation import validate_activity, validate_customers
from cshealth.windows import compute_activity_windows

ANALYSES = ("health", "churn", "expansion", "trends", "cohorts")


@dataclass
class EngineResult:
    """Outputs of one engine run, keyed by analysis name."""

    as_of: pd.Timestamp
    tables: Dict[str, pd.DataFrame] = field(default_factory=dict)
    windows: pd.DataFrame | None = None
    retention_curve: pd.DataFrame | None = None

    def __getitem__(self, name: str) -> pd.DataFrame:
        return self.tables[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    def items(self):
        return self.tables.items()

    def keys(self):
        return self.tables.keys()


def resolve_as_of(as_of=None) -> pd.Timestamp:
    """Reference date as a naive midnight timestamp (today when omitted)."""
    ts = pd.Timestamp.today() if as_of is None else pd.Timestamp(as_of)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def run_engine(
    customers: pd.DataFrame,
    activity: pd.DataFrame,
    as_of=None,
    config: EngineConfig | None = None,
    strict: bool = False,
) -> EngineResult:
    """Score every customer and cohort as of ``as_of``.

    Inputs are validated (strictly when ``strict`` is set) and canonicalized
    on copies; neither frame is mutated. Window aggregates are computed once
    and shared by the four per-customer analyses. The cohort retention curve
    rides along on ``EngineResult.retention_curve``.
    """

    config = config or EngineConfig()
    as_of = resolve_as_of(as_of)

    validate_customers(unify_columns(customers), strict=strict)
    validate_activity(unify_columns(activity), strict=strict)
    cust = prepare_customers(customers)
    act = prepare_activity(activity)

    windows = compute_activity_windows(act, as_of, config.windows)
    tables = {
        "health": score_customer_health(cust, windows, config),
        "churn": score_churn_risk(cust, windows, config),
        "expansion": score_expansion(cust, windows, as_of, config),
        "trends": score_usage_trends(cust, windows, config),
        "cohorts": analyze_cohorts(cust, act, as_of, config),
    }
    curve = cohort_retention_curve(cust, act, as_of)
    return EngineResult(as_of=as_of, tables=tables, windows=windows, retention_curve=curve)
