"""Dimension scorers: rule tables mapping window aggregates to bounded sub-scores.

Each family is a set of :class:`~cshealth.ladders.ThresholdLadder` objects
evaluated against the per-customer window frame produced by
:func:`cshealth.windows.compute_activity_windows` (joined to the customer
relation where a ladder needs the plan tier).

Undefined inputs follow the rule tables exactly: a ratio rule whose prior
value is undefined does not match and evaluation falls through to the next
rule, while ladders that carry a ``missing`` rule state their undefined
outcome explicitly.
"""
from __future__ import annotations

import numpy as np
import pandas as pd

from cshealth.ladders import (
    above_ratio,
    all_of,
    below_offset,
    below_ratio,
    gt,
    gte,
    is_value,
    ladder,
    lt,
    lte,
    missing,
    present,
    eq,
)
from cshealth.schema import (
    COL_PLAN_TYPE,
    PLAN_PROFESSIONAL,
    PLAN_STARTER,
)

# ---------------------------------------------------------------------------
# Health dimensions (recent 30-day window)
# ---------------------------------------------------------------------------

SUPPORT_HEALTH = ladder(
    "support_health",
    [
        ("undefined", missing("recent_total_tickets"), np.nan),
        ("no_tickets", lte("recent_total_tickets", 0), 100),
        ("one_ticket", lte("recent_total_tickets", 1), 85),
        ("two_tickets", lte("recent_total_tickets", 2), 70),
        ("three_tickets", lte("recent_total_tickets", 3), 50),
    ],
    default=30,
)

LOGIN_ENGAGEMENT = ladder(
    "login_engagement",
    [
        ("undefined", missing("recent_avg_logins"), np.nan),
        ("40_plus", gte("recent_avg_logins", 40), 90),
        ("30_plus", gte("recent_avg_logins", 30), 75),
        ("20_plus", gte("recent_avg_logins", 20), 60),
        ("10_plus", gte("recent_avg_logins", 10), 40),
    ],
    default=20,
)

NPS_ADJUSTMENT = ladder(
    "nps_adjustment",
    [
        ("undefined", missing("recent_avg_nps"), 0),
        ("promoter", gte("recent_avg_nps", 9), 10),
        ("passive_high", gte("recent_avg_nps", 7), 5),
        ("passive_low", gte("recent_avg_nps", 5), 0),
        ("detractor", lt("recent_avg_nps", 5), -10),
    ],
    default=0,
)


def health_dimensions(metrics: pd.DataFrame) -> pd.DataFrame:
    """Usage, support and engagement health sub-scores."""

    usage = pd.to_numeric(metrics["recent_avg_usage"], errors="coerce")
    return pd.DataFrame(
        {
            "usage_health": usage,
            "support_health": SUPPORT_HEALTH.evaluate(metrics),
            "engagement_health": LOGIN_ENGAGEMENT.evaluate(metrics) + NPS_ADJUSTMENT.evaluate(metrics),
        },
        index=metrics.index,
    )


# ---------------------------------------------------------------------------
# Churn risk signals (current 4 weeks vs the 4 weeks before)
# ---------------------------------------------------------------------------

USAGE_DECLINE = ladder(
    "usage_decline_risk",
    [
        ("halved", all_of(present("prior_avg_usage"), below_ratio("current_avg_usage", "prior_avg_usage", 0.5)), 25),
        ("down_30pct", all_of(present("prior_avg_usage"), below_ratio("current_avg_usage", "prior_avg_usage", 0.7)), 15),
        ("low_usage", lt("current_avg_usage", 40), 10),
    ],
)

SUPPORT_BURDEN = ladder(
    "support_burden_risk",
    [
        ("four_plus", gte("current_total_tickets", 4), 25),
        ("three", eq("current_total_tickets", 3), 15),
        ("two", eq("current_total_tickets", 2), 5),
    ],
)

NPS_DECLINE = ladder(
    "nps_decline_risk",
    [
        ("detractor", all_of(present("current_avg_nps"), lt("current_avg_nps", 5)), 20),
        ("passive", all_of(present("current_avg_nps"), lt("current_avg_nps", 7)), 10),
        ("dropped", all_of(present("prior_avg_nps"), below_offset("current_avg_nps", "prior_avg_nps", 2)), 15),
    ],
)

LOGIN_DECLINE = ladder(
    "login_decline_risk",
    [
        ("under_10", lt("current_avg_logins", 10), 20),
        ("under_20", lt("current_avg_logins", 20), 10),
        ("down_40pct", all_of(present("prior_avg_logins"), below_ratio("current_avg_logins", "prior_avg_logins", 0.6)), 10),
    ],
)

# Counts records in the current 4-week window, not active_weeks over the
# 8-week consistency window.
INACTIVITY = ladder(
    "inactivity_risk",
    [("under_2_weeks", lt("current_records", 2), 15)],
)

CHURN_LADDERS = (USAGE_DECLINE, SUPPORT_BURDEN, NPS_DECLINE, LOGIN_DECLINE, INACTIVITY)

CHURN_FLAGS = {
    "usage_decline_risk": ("usage_flag", "⚠ Usage Declining"),
    "support_burden_risk": ("support_flag", "⚠ High Support Load"),
    "nps_decline_risk": ("nps_flag", "⚠ NPS Concerns"),
    "login_decline_risk": ("login_flag", "⚠ Login Decline"),
    "inactivity_risk": ("activity_flag", "⚠ Low Activity"),
}


def churn_signals(metrics: pd.DataFrame) -> pd.DataFrame:
    """Five independent churn-risk ladders, one column each."""

    return pd.DataFrame({lad.name: lad.evaluate(metrics) for lad in CHURN_LADDERS}, index=metrics.index)


# ---------------------------------------------------------------------------
# Expansion signals (recent 30 days, growth vs the 30 days before)
# ---------------------------------------------------------------------------

PLAN_CEILING = ladder(
    "plan_ceiling_signal",
    [
        ("starter_80", all_of(is_value(COL_PLAN_TYPE, PLAN_STARTER), gte("recent_avg_usage", 80)), 30),
        ("starter_60", all_of(is_value(COL_PLAN_TYPE, PLAN_STARTER), gte("recent_avg_usage", 60)), 20),
        ("pro_90", all_of(is_value(COL_PLAN_TYPE, PLAN_PROFESSIONAL), gte("recent_avg_usage", 90)), 25),
        ("pro_75", all_of(is_value(COL_PLAN_TYPE, PLAN_PROFESSIONAL), gte("recent_avg_usage", 75)), 15),
    ],
)

ADOPTION = ladder(
    "adoption_signal",
    [
        ("power_user", gte("recent_avg_usage", 85), 25),
        ("strong", gte("recent_avg_usage", 70), 15),
    ],
)

GROWTH = ladder(
    "growth_signal",
    [
        ("up_30pct", all_of(present("recent_prior_avg_usage"), above_ratio("recent_avg_usage", "recent_prior_avg_usage", 1.3)), 20),
        ("up_15pct", all_of(present("recent_prior_avg_usage"), above_ratio("recent_avg_usage", "recent_prior_avg_usage", 1.15)), 10),
    ],
)

SATISFACTION = ladder(
    "satisfaction_signal",
    [
        ("nps_9", gte("recent_avg_nps", 9), 15),
        ("nps_8", gte("recent_avg_nps", 8), 10),
        ("nps_7", gte("recent_avg_nps", 7), 5),
    ],
)

MASTERY = ladder(
    "mastery_signal",
    [
        ("no_tickets", all_of(eq("recent_total_tickets", 0), gt("recent_avg_usage", 60)), 10),
        ("one_ticket", all_of(lte("recent_total_tickets", 1), gt("recent_avg_usage", 60)), 5),
    ],
)

EXPANSION_LADDERS = (PLAN_CEILING, ADOPTION, GROWTH, SATISFACTION, MASTERY)

EXPANSION_FLAGS = {
    "plan_ceiling_signal": ("ceiling_flag", "✓ At plan limits"),
    "adoption_signal": ("adoption_flag", "✓ Power user"),
    "growth_signal": ("growth_flag", "✓ Growing fast"),
    "satisfaction_signal": ("satisfaction_flag", "✓ High NPS"),
    "mastery_signal": ("mastery_flag", "✓ Product mastery"),
}


def expansion_signals(metrics: pd.DataFrame) -> pd.DataFrame:
    """Five expansion ladders; ``metrics`` must carry the plan tier."""

    return pd.DataFrame({lad.name: lad.evaluate(metrics) for lad in EXPANSION_LADDERS}, index=metrics.index)


# ---------------------------------------------------------------------------
# Trend signals (rolling 4-week averages vs the baseline 4 weeks earlier)
# ---------------------------------------------------------------------------

USAGE_TREND = ladder(
    "usage_trend_score",
    [
        ("undefined", missing("four_week_usage_trend_pct"), 0),
        ("up_20", gt("four_week_usage_trend_pct", 20), 30),
        ("up_10", gt("four_week_usage_trend_pct", 10), 20),
        ("up", gt("four_week_usage_trend_pct", 0), 10),
        ("flat", gt("four_week_usage_trend_pct", -10), 0),
        ("down_10", gt("four_week_usage_trend_pct", -20), -10),
    ],
    default=-20,
)

LOGIN_TREND = ladder(
    "login_trend_score",
    [
        ("undefined", missing("four_week_login_trend_pct"), 0),
        ("up_20", gt("four_week_login_trend_pct", 20), 20),
        ("up_10", gt("four_week_login_trend_pct", 10), 10),
        ("up", gt("four_week_login_trend_pct", 0), 5),
        ("flat", gt("four_week_login_trend_pct", -10), 0),
        ("down_10", gt("four_week_login_trend_pct", -20), -10),
    ],
    default=-15,
)

CONSISTENCY = ladder(
    "consistency_score",
    [
        ("weeks_7", gte("active_weeks", 7), 10),
        ("weeks_5", gte("active_weeks", 5), 5),
        ("weeks_3", gte("active_weeks", 3), 0),
    ],
    default=-10,
)

TREND_LADDERS = (USAGE_TREND, LOGIN_TREND, CONSISTENCY)


def pct_change(new: pd.Series, old: pd.Series, decimals: int = 1) -> pd.Series:
    """Percent change from ``old`` to ``new``; undefined when ``old`` is zero or missing."""

    new = pd.to_numeric(new, errors="coerce")
    old = pd.to_numeric(old, errors="coerce")
    denom = old.where(old > 0)
    return ((new - denom) / denom * 100).round(decimals)


def trend_inputs(metrics: pd.DataFrame) -> pd.DataFrame:
    """Derive the week-over-week and 4-week trend percentages used by the trend ladders."""

    out = metrics.copy()
    out["wow_login_change_pct"] = pct_change(out["latest_logins"], out["previous_logins"])
    out["wow_usage_change_pct"] = pct_change(out["latest_usage"], out["previous_usage"])
    out["four_week_login_trend_pct"] = pct_change(out["rolling_logins"], out["baseline_rolling_logins"])
    out["four_week_usage_trend_pct"] = pct_change(out["rolling_usage"], out["baseline_rolling_usage"])
    return out


def trend_signals(metrics: pd.DataFrame) -> pd.DataFrame:
    """Usage trend, login trend and consistency components.

    ``metrics`` must already carry the trend percentages from :func:`trend_inputs`.
    """

    return pd.DataFrame({lad.name: lad.evaluate(metrics) for lad in TREND_LADDERS}, index=metrics.index)


def signal_flags(signals: pd.DataFrame, flags: dict[str, tuple[str, str]]) -> pd.DataFrame:
    """Text flag per firing signal, ``None`` otherwise."""

    out = {}
    for signal, (flag_col, text) in flags.items():
        fired = pd.to_numeric(signals[signal], errors="coerce") > 0
        out[flag_col] = pd.Series(np.where(fired, text, None), index=signals.index, dtype=object)
    return pd.DataFrame(out, index=signals.index)
