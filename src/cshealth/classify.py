"""Classification bands, recommended actions and ranking."""
from __future__ import annotations

from typing import Sequence

import pandas as pd

from cshealth.ladders import BandTable, band_table
from cshealth.schema import COL_CUSTOMER_ID, COL_MRR

HEALTH_GRADES = band_table(
    "health_grade",
    [
        (80, "A - Healthy", "Upsell opportunity - customer thriving"),
        (60, "B - Good", "Check-in - ensure continued success"),
        (40, "C - At Risk", "Intervention needed - declining engagement"),
        (20, "D - High Risk", "Urgent outreach - churn risk high"),
        (None, "F - Critical", "Urgent outreach - churn risk high"),
    ],
)

CHURN_CATEGORIES = band_table(
    "risk_category",
    [
        (60, "Critical Risk", "URGENT: Executive escalation + immediate intervention"),
        (40, "High Risk", "HIGH: Schedule check-in call this week"),
        (20, "Medium Risk", "MEDIUM: Proactive email outreach"),
        (None, "Low Risk", "LOW: Monitor next cycle"),
    ],
)

EXPANSION_READINESS = band_table(
    "expansion_readiness",
    [
        (
            60,
            "Hot - Ready Now",
            "Customer is maxing out current plan. Strong adoption and satisfaction "
            "make this a low-risk upsell conversation.",
        ),
        (
            40,
            "Warm - Qualified",
            "Usage patterns indicate readiness for expansion. Schedule value review "
            "to discuss growth needs.",
        ),
        (20, "Developing - Monitor", "Continue building value. Monitor for increased usage patterns."),
        (None, "Early - Nurture", "Continue building value. Monitor for increased usage patterns."),
    ],
)

TREND_CATEGORIES = band_table(
    "trend_category",
    [
        (30, "Strong Growth", "Capitalize on momentum - explore expansion opportunities"),
        (10, "Improving", "Positive trajectory - reinforce good habits"),
        (-10, "Stable", "Monitor - ensure stability continues"),
        (-30, "Declining", "Intervention needed - schedule check-in"),
        (None, "Sharp Decline", "URGENT - immediate outreach required"),
    ],
)

ENGAGEMENT_CONSISTENCY = band_table(
    "engagement_consistency",
    [
        (7, "Highly Consistent", None),
        (5, "Mostly Consistent", None),
        (3, "Sporadic", None),
        (None, "Rare/Inactive", None),
    ],
)

COHORT_HEALTH = band_table(
    "cohort_health",
    [
        (110, "Expanding", None),
        (90, "Healthy", None),
        (70, "Declining", None),
        (None, "At Risk", None),
    ],
    undefined=("Insufficient Data", None),
)

# Ages are whole months; ">= 13" reads as "older than 12 months".
LIFECYCLE_STAGES = band_table(
    "lifecycle_stage",
    [
        (13, "Established - retention and advocacy focus", None),
        (7, "Maturing - expansion opportunities", None),
        (4, "Early adoption - building habits", None),
        (None, "Onboarding phase - critical retention period", None),
    ],
)


def classify(frame: pd.DataFrame, score_col: str, table: BandTable, label_col: str, action_col: str | None = None) -> pd.DataFrame:
    """Attach the band label (and recommended action) for ``score_col``."""

    out = frame.copy()
    out[label_col] = table.label_for(out, score_col)
    if action_col:
        out[action_col] = table.action_for(out, score_col)
    return out


def rank(
    frame: pd.DataFrame,
    score_col: str,
    ascending: bool,
    limit: int | None = None,
    tiebreak: Sequence[tuple[str, bool]] = ((COL_MRR, False), (COL_CUSTOMER_ID, True)),
) -> pd.DataFrame:
    """Order by score, then by the tiebreak columns (higher MRR first by default), and truncate."""

    keys = [score_col]
    directions = [ascending]
    for column, asc in tiebreak:
        if column in frame.columns:
            keys.append(column)
            directions.append(asc)
    ordered = frame.sort_values(keys, ascending=directions, kind="mergesort", na_position="last")
    if limit is not None:
        ordered = ordered.head(limit)
    return ordered.reset_index(drop=True)
