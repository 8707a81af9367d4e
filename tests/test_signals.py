import numpy as np
import pandas as pd
import pytest
from conftest import AS_OF, week, weekly_rows

from cshealth.signals import (
    CHURN_FLAGS,
    GROWTH,
    INACTIVITY,
    LOGIN_DECLINE,
    MASTERY,
    NPS_DECLINE,
    PLAN_CEILING,
    SUPPORT_BURDEN,
    SUPPORT_HEALTH,
    USAGE_DECLINE,
    USAGE_TREND,
    churn_signals,
    health_dimensions,
    pct_change,
    signal_flags,
    trend_inputs,
)
from cshealth.windows import compute_activity_windows


def test_support_health_ladder_and_undefined_tickets():
    frame = pd.DataFrame({"recent_total_tickets": [0, 1, 2, 3, 4, 9, np.nan]})
    result = SUPPORT_HEALTH.evaluate(frame)
    assert result.iloc[:6].tolist() == [100, 85, 70, 50, 30, 30]
    assert np.isnan(result.iloc[6])


def test_engagement_health_adds_nps_adjustment():
    frame = pd.DataFrame(
        {
            "recent_avg_usage": [80.0, 50.0, 40.0],
            "recent_total_tickets": [0.0, 2.0, 5.0],
            "recent_avg_logins": [45.0, 25.0, 5.0],
            "recent_avg_nps": [9.5, 4.0, np.nan],
        }
    )
    dims = health_dimensions(frame)
    assert dims["usage_health"].tolist() == [80.0, 50.0, 40.0]
    assert dims["support_health"].tolist() == [100, 70, 30]
    assert dims["engagement_health"].tolist() == [100, 50, 20]


def test_usage_decline_halved_usage_scores_25():
    frame = pd.DataFrame(
        {
            "current_avg_usage": [35.0, 45.0, 60.0, 30.0],
            "prior_avg_usage": [85.0, 70.0, 85.0, np.nan],
        }
    )
    assert USAGE_DECLINE.evaluate(frame).tolist() == [25, 15, 0, 10]


def test_support_burden_ladder():
    frame = pd.DataFrame({"current_total_tickets": [5, 4, 3, 2, 1, np.nan]})
    assert SUPPORT_BURDEN.evaluate(frame).tolist() == [25, 25, 15, 5, 0, 0]


def test_nps_decline_ladder():
    frame = pd.DataFrame(
        {
            "current_avg_nps": [4.0, 6.0, 7.5, 9.0, np.nan],
            "prior_avg_nps": [9.0, 9.0, 10.0, 9.0, 9.0],
        }
    )
    assert NPS_DECLINE.evaluate(frame).tolist() == [20, 10, 15, 0, 0]


def test_login_decline_and_inactivity():
    logins = pd.DataFrame(
        {
            "current_avg_logins": [5.0, 15.0, 25.0, 40.0],
            "prior_avg_logins": [50.0, 50.0, 50.0, 50.0],
        }
    )
    assert LOGIN_DECLINE.evaluate(logins).tolist() == [20, 10, 10, 0]

    activity = pd.DataFrame({"current_records": [0, 1, 2, 4]})
    assert INACTIVITY.evaluate(activity).tolist() == [15, 15, 0, 0]


def test_churn_signals_and_flags_line_up():
    frame = pd.DataFrame(
        {
            "current_avg_usage": [35.0],
            "prior_avg_usage": [85.0],
            "current_total_tickets": [4.0],
            "current_avg_nps": [8.0],
            "prior_avg_nps": [8.0],
            "current_avg_logins": [30.0],
            "prior_avg_logins": [30.0],
            "current_records": [4],
        }
    )
    sig = churn_signals(frame)
    assert sig.iloc[0].tolist() == [25, 25, 0, 0, 0]
    flags = signal_flags(sig, CHURN_FLAGS)
    assert flags.loc[0, "usage_flag"] == "⚠ Usage Declining"
    assert flags.loc[0, "support_flag"] == "⚠ High Support Load"
    assert flags.loc[0, "nps_flag"] is None


def test_mastery_requires_usage_above_60():
    frame = pd.DataFrame(
        {
            "recent_total_tickets": [0.0, 0.0, 1.0, 2.0],
            "recent_avg_usage": [65.0, 55.0, 65.0, 90.0],
        }
    )
    assert MASTERY.evaluate(frame).tolist() == [10, 0, 5, 0]


def test_plan_ceiling_depends_on_tier():
    frame = pd.DataFrame(
        {
            "plan_type": ["Starter", "Starter", "Professional", "Professional", "Enterprise"],
            "recent_avg_usage": [85.0, 65.0, 95.0, 80.0, 99.0],
        }
    )
    assert PLAN_CEILING.evaluate(frame).tolist() == [30, 20, 25, 15, 0]


def test_growth_compares_recent_against_prior_30_days():
    frame = pd.DataFrame(
        {
            "recent_avg_usage": [70.0, 60.0, 55.0, 50.0],
            "recent_prior_avg_usage": [50.0, 50.0, 50.0, np.nan],
        }
    )
    assert GROWTH.evaluate(frame).tolist() == [20, 10, 0, 0]


def test_pct_change_is_undefined_for_zero_or_missing_baseline():
    result = pct_change(pd.Series([110.0, 5.0, 5.0, 35.0]), pd.Series([100.0, 0.0, np.nan, 85.0]))
    assert result.iloc[0] == pytest.approx(10.0)
    assert np.isnan(result.iloc[1])
    assert np.isnan(result.iloc[2])
    assert result.iloc[3] == pytest.approx(-58.8)


def test_usage_trend_ladder_and_undefined_percentage():
    frame = pd.DataFrame({"four_week_usage_trend_pct": [25.0, 20.0, 5.0, 0.0, -10.0, -25.0, np.nan]})
    assert USAGE_TREND.evaluate(frame).tolist() == [30, 20, 10, 0, -10, -20, 0]


def test_trend_inputs_use_rolling_baseline():
    frame = pd.DataFrame(
        {
            "latest_logins": [12.0],
            "previous_logins": [10.0],
            "latest_usage": [50.0],
            "previous_usage": [0.0],
            "rolling_logins": [11.0],
            "baseline_rolling_logins": [10.0],
            "rolling_usage": [45.0],
            "baseline_rolling_usage": [np.nan],
        }
    )
    out = trend_inputs(frame)
    assert out.loc[0, "wow_login_change_pct"] == pytest.approx(20.0)
    assert np.isnan(out.loc[0, "wow_usage_change_pct"])
    assert out.loc[0, "four_week_login_trend_pct"] == pytest.approx(10.0)
    assert np.isnan(out.loc[0, "four_week_usage_trend_pct"])


def test_inactivity_counts_records_in_current_four_weeks_not_active_weeks():
    weeks = [week(70, 20)] * 8
    rows = [r for k, r in enumerate(weekly_rows("C010", AS_OF, weeks), start=1) if k not in (2, 3, 4)]
    windows = compute_activity_windows(pd.DataFrame(rows), AS_OF)

    row = windows.iloc[[0]]
    assert int(row["current_records"].iloc[0]) == 1
    assert int(row["active_weeks"].iloc[0]) == 5
    assert INACTIVITY.evaluate(row).tolist() == [15]
