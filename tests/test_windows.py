import numpy as np
import pandas as pd
import pytest

from conftest import AS_OF, week, weekly_rows
from cshealth.config import WindowConfig
from cshealth.etl.cleaner import prepare_activity
from cshealth.windows import (
    active_week_count,
    compute_activity_windows,
    months_elapsed,
    period_aggregates,
)


def _history(weeks, customer_id="C1"):
    return prepare_activity(pd.DataFrame(weekly_rows(customer_id, AS_OF, weeks)))


def test_current_and_prior_periods_split_at_four_weeks():
    weeks = [week(50, 10, tickets=1, nps=None)] * 4 + [week(100, 20, tickets=0, nps=8)] * 4
    row = compute_activity_windows(_history(weeks), AS_OF).iloc[0]

    assert row["current_records"] == 4
    assert row["current_avg_usage"] == pytest.approx(50.0)
    assert row["current_total_tickets"] == pytest.approx(4.0)
    assert np.isnan(row["current_avg_nps"])
    assert row["prior_records"] == 4
    assert row["prior_avg_usage"] == pytest.approx(100.0)
    assert row["prior_avg_nps"] == pytest.approx(8.0)
    assert row["recent_records"] == 4
    assert row["recent_prior_avg_logins"] == pytest.approx(20.0)


def test_window_excludes_records_on_or_after_reference_date():
    activity = pd.DataFrame(
        [
            {"customer_id": "C1", "activity_date": AS_OF, **week(100, 100)},
            {"customer_id": "C1", "activity_date": AS_OF - pd.Timedelta(days=1), **week(40, 10)},
            {"customer_id": "C1", "activity_date": AS_OF - pd.Timedelta(days=31), **week(70, 10)},
        ]
    )
    row = compute_activity_windows(activity, AS_OF).iloc[0]
    assert row["recent_records"] == 1
    assert row["recent_avg_usage"] == pytest.approx(40.0)
    assert row["recent_prior_records"] == 1
    assert row["last_activity_date"] == AS_OF - pd.Timedelta(days=1)


def test_empty_period_is_undefined_not_zero():
    agg = period_aggregates(_history([week(50, 10)]), AS_OF - pd.Timedelta(days=200), AS_OF - pd.Timedelta(days=100))
    assert agg.records == 0
    assert np.isnan(agg.avg_usage)
    assert np.isnan(agg.total_tickets)


def test_rolling_snapshot_uses_baseline_four_weeks_back():
    weeks = [week(35, 8)] * 4 + [week(85, 30)] * 4
    row = compute_activity_windows(_history(weeks), AS_OF).iloc[0]

    assert row["latest_usage"] == pytest.approx(35.0)
    assert row["rolling_usage"] == pytest.approx(35.0)
    assert row["baseline_rolling_usage"] == pytest.approx(85.0)
    assert row["baseline_rolling_logins"] == pytest.approx(30.0)
    assert row["trend_records"] == 8


def test_rolling_average_uses_only_rows_present():
    # Three records only: the trailing average at the latest week covers all three.
    weeks = [week(30, 3), week(60, 6), week(90, 9)]
    row = compute_activity_windows(_history(weeks), AS_OF).iloc[0]
    assert row["rolling_usage"] == pytest.approx(60.0)
    assert np.isnan(row["baseline_rolling_usage"])
    assert row["previous_usage"] == pytest.approx(60.0)


def test_active_week_count_over_eight_weeks():
    history = _history([week(50, 10)] * 10)
    assert active_week_count(history, AS_OF, weeks=8) == 8

    sparse = prepare_activity(
        pd.DataFrame(
            [
                {"customer_id": "C1", "activity_date": AS_OF - pd.Timedelta(days=2), **week(50, 10)},
                {"customer_id": "C1", "activity_date": AS_OF - pd.Timedelta(days=5), **week(50, 10)},
                {"customer_id": "C1", "activity_date": AS_OF - pd.Timedelta(days=20), **week(50, 10)},
            ]
        )
    )
    assert active_week_count(sparse, AS_OF) == 2


def test_window_lengths_come_from_config():
    weeks = [week(50, 10)] * 4
    row = compute_activity_windows(_history(weeks), AS_OF, WindowConfig(recent_days=14)).iloc[0]
    assert row["recent_records"] == 2


def test_customers_without_history_produce_no_row():
    windows = compute_activity_windows(_history([week(50, 10)]), AS_OF - pd.Timedelta(days=30))
    assert windows.empty


def test_duplicate_customer_week_is_rejected():
    rows = weekly_rows("C1", AS_OF, [week(50, 10)]) * 2
    with pytest.raises(ValueError, match="duplicate"):
        compute_activity_windows(pd.DataFrame(rows), AS_OF)


def test_months_elapsed_counts_whole_months():
    dates = pd.Series(pd.to_datetime(["2024-01-15", "2023-06-01", "2024-05-31", "2024-07-01"]))
    assert months_elapsed(dates, "2024-06-01").tolist() == [4, 12, 0, 0]
