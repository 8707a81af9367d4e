"""Combine dimension sub-scores into one headline score per customer."""
from __future__ import annotations

from typing import Iterable, Mapping

import pandas as pd

from cshealth.config import HealthWeights

CHURN_SCORE_BOUNDS = (0.0, 100.0)


def health_composite(dimensions: pd.DataFrame, weights: HealthWeights | Mapping[str, float] | None = None) -> pd.Series:
    """Weighted usage/support/engagement health, rounded to one decimal.

    Undefined in any dimension leaves the composite undefined.
    """

    if weights is None:
        weights = HealthWeights()
    bundle = weights.weight_dict() if isinstance(weights, HealthWeights) else dict(weights)
    for key in ("usage", "support", "engagement"):
        if bundle.get(key, 0.0) < 0:
            raise ValueError(f"Health weight '{key}' must be non-negative")

    raw = (
        bundle.get("usage", 0.0) * pd.to_numeric(dimensions["usage_health"], errors="coerce")
        + bundle.get("support", 0.0) * pd.to_numeric(dimensions["support_health"], errors="coerce")
        + bundle.get("engagement", 0.0) * pd.to_numeric(dimensions["engagement_health"], errors="coerce")
    )
    return raw.round(1).rename("overall_health_score")


def signal_total(
    signals: pd.DataFrame,
    columns: Iterable[str] | None = None,
    lower: float | None = None,
    upper: float | None = None,
) -> pd.Series:
    """Unweighted sum of signal columns, optionally clamped."""

    cols = list(columns) if columns is not None else list(signals.columns)
    total = signals[cols].apply(pd.to_numeric, errors="coerce").sum(axis=1, min_count=len(cols))
    if lower is not None or upper is not None:
        total = total.clip(lower=lower, upper=upper)
    return total


def churn_total(signals: pd.DataFrame, columns: Iterable[str] | None = None) -> pd.Series:
    lower, upper = CHURN_SCORE_BOUNDS
    return signal_total(signals, columns, lower=lower, upper=upper).rename("churn_risk_score")
