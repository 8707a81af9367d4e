"""Activity window aggregation.

Reduces the raw weekly activity stream into fixed reference windows per
customer: the 30-day recent window (and the 30 days before it), the current
and prior 4-week periods, the trailing rolling-average series over the trend
lookback and the count of active weeks. All windows are half-open
``[start, as_of)``; records dated on or after ``as_of`` are ignored.

Precondition: at most one record per (customer, activity date). Duplicates
are rejected by :func:`cshealth.etl.cleaner.prepare_activity` because week
ordering would be undefined.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict

import numpy as np
import pandas as pd

from cshealth.config import WindowConfig
from cshealth.etl.cleaner import prepare_activity
from cshealth.schema import (
    COL_ACTIVITY_DATE,
    COL_CUSTOMER_ID,
    COL_LOGINS,
    COL_NPS,
    COL_TICKETS,
    COL_USAGE,
)


@dataclass(frozen=True)
class PeriodAggregate:
    """Averages/sums over one window. Empty windows leave every metric undefined."""

    avg_logins: float = np.nan
    avg_usage: float = np.nan
    total_tickets: float = np.nan
    avg_nps: float = np.nan
    records: int = 0


@dataclass(frozen=True)
class WindowAggregate:
    customer_id: str
    current: PeriodAggregate
    prior: PeriodAggregate
    recent: PeriodAggregate
    recent_prior: PeriodAggregate
    rolling: pd.DataFrame
    active_weeks: int
    last_activity_date: pd.Timestamp | None
    rolling_weeks: int = 4

    def as_row(self) -> Dict[str, object]:
        row: Dict[str, object] = {COL_CUSTOMER_ID: self.customer_id}
        for prefix in ("current", "prior", "recent", "recent_prior"):
            for key, value in asdict(getattr(self, prefix)).items():
                row[f"{prefix}_{key}"] = value
        row.update(_trend_snapshot(self.rolling, self.rolling_weeks))
        row["active_weeks"] = self.active_weeks
        row["last_activity_date"] = self.last_activity_date
        return row


def _normalize_as_of(as_of) -> pd.Timestamp:
    ts = pd.Timestamp(as_of)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def _endpoints(as_of: pd.Timestamp, windows: WindowConfig) -> Dict[str, pd.Timestamp]:
    """Return anchor dates for every window."""

    current_start = as_of - pd.Timedelta(days=7 * windows.current_weeks)
    recent_start = as_of - pd.Timedelta(days=windows.recent_days)
    return {
        "current_start": current_start,
        "prior_start": current_start - pd.Timedelta(days=7 * windows.current_weeks),
        "recent_start": recent_start,
        "recent_prior_start": recent_start - pd.Timedelta(days=windows.recent_days),
        "trend_start": as_of - pd.Timedelta(days=7 * windows.trend_weeks),
        "end": as_of,
    }


def _window(df: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp) -> pd.DataFrame:
    return df.loc[(df[COL_ACTIVITY_DATE] >= start) & (df[COL_ACTIVITY_DATE] < end)]


def period_aggregates(history: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp) -> PeriodAggregate:
    """Average logins/usage/NPS and total tickets for records in ``[start, end)``."""

    g = _window(history, start, end)
    if g.empty:
        return PeriodAggregate()
    return PeriodAggregate(
        avg_logins=float(g[COL_LOGINS].mean()),
        avg_usage=float(g[COL_USAGE].mean()),
        total_tickets=float(g[COL_TICKETS].sum(min_count=1)),
        avg_nps=float(g[COL_NPS].mean()),
        records=int(len(g)),
    )


def rolling_activity(history: pd.DataFrame, as_of, windows: WindowConfig | None = None) -> pd.DataFrame:
    """Per-week rolling series for one customer over the trend lookback.

    The trailing average at each week uses only the rows present in the
    lookback; a customer missing weeks is averaged over however many of the
    trailing ``rolling_weeks`` rows exist. ``weeks_ago`` is 1 for the most
    recent record.
    """

    windows = windows or WindowConfig()
    as_of = _normalize_as_of(as_of)
    ends = _endpoints(as_of, windows)
    g = _window(history, ends["trend_start"], ends["end"]).sort_values(COL_ACTIVITY_DATE, kind="mergesort")

    out = pd.DataFrame(
        {
            COL_ACTIVITY_DATE: g[COL_ACTIVITY_DATE].to_numpy(),
            COL_LOGINS: g[COL_LOGINS].to_numpy(dtype=float),
            COL_USAGE: g[COL_USAGE].to_numpy(dtype=float),
        }
    )
    k = windows.rolling_weeks
    out["rolling_logins"] = out[COL_LOGINS].rolling(k, min_periods=1).mean()
    out["rolling_usage"] = out[COL_USAGE].rolling(k, min_periods=1).mean()
    out["prev_week_logins"] = out[COL_LOGINS].shift(1)
    out["prev_week_usage"] = out[COL_USAGE].shift(1)
    out["weeks_ago"] = np.arange(len(out), 0, -1, dtype=int)
    return out


def _value_at(rolling: pd.DataFrame, weeks_ago: int, column: str) -> float:
    hit = rolling.loc[rolling["weeks_ago"] == weeks_ago, column]
    return float(hit.iloc[0]) if not hit.empty else np.nan


def _trend_snapshot(rolling: pd.DataFrame, rolling_weeks: int) -> Dict[str, float]:
    baseline = rolling_weeks + 1
    return {
        "latest_logins": _value_at(rolling, 1, COL_LOGINS),
        "latest_usage": _value_at(rolling, 1, COL_USAGE),
        "previous_logins": _value_at(rolling, 2, COL_LOGINS),
        "previous_usage": _value_at(rolling, 2, COL_USAGE),
        "rolling_logins": _value_at(rolling, 1, "rolling_logins"),
        "rolling_usage": _value_at(rolling, 1, "rolling_usage"),
        "baseline_rolling_logins": _value_at(rolling, baseline, "rolling_logins"),
        "baseline_rolling_usage": _value_at(rolling, baseline, "rolling_usage"),
        "trend_records": int(len(rolling)),
    }


def months_elapsed(dates: pd.Series, as_of) -> pd.Series:
    """Whole calendar months from each date up to ``as_of`` (a partial month does not count).

    ``as_of`` may be a single date or a Series aligned with ``dates``.
    """

    d = pd.to_datetime(dates)
    if isinstance(as_of, pd.Series):
        end = pd.to_datetime(as_of)
        year, month, day = end.dt.year, end.dt.month, end.dt.day
    else:
        end = _normalize_as_of(as_of)
        year, month, day = end.year, end.month, end.day
    months = (year - d.dt.year) * 12 + (month - d.dt.month)
    months = months - (d.dt.day > day).astype(int)
    return months.clip(lower=0)


def active_week_count(history: pd.DataFrame, as_of, weeks: int = 8) -> int:
    """Distinct weeks (counted back from ``as_of``) holding at least one record."""

    as_of = _normalize_as_of(as_of)
    g = _window(history, as_of - pd.Timedelta(days=7 * weeks), as_of)
    if g.empty:
        return 0
    days_back = (as_of - g[COL_ACTIVITY_DATE]).dt.days - 1
    return int((days_back // 7).nunique())


def summarize_customer(history: pd.DataFrame, as_of, windows: WindowConfig | None = None) -> WindowAggregate:
    """Build the :class:`WindowAggregate` for one customer's activity history."""

    windows = windows or WindowConfig()
    as_of = _normalize_as_of(as_of)
    ends = _endpoints(as_of, windows)
    g = history.loc[history[COL_ACTIVITY_DATE] < as_of]

    rolling = rolling_activity(g, as_of, windows)
    last = g[COL_ACTIVITY_DATE].max() if not g.empty else None
    return WindowAggregate(
        customer_id=str(g[COL_CUSTOMER_ID].iloc[0]) if not g.empty else "",
        current=period_aggregates(g, ends["current_start"], ends["end"]),
        prior=period_aggregates(g, ends["prior_start"], ends["current_start"]),
        recent=period_aggregates(g, ends["recent_start"], ends["end"]),
        recent_prior=period_aggregates(g, ends["recent_prior_start"], ends["recent_start"]),
        rolling=rolling,
        active_weeks=active_week_count(g, as_of, windows.consistency_weeks),
        last_activity_date=last,
        rolling_weeks=windows.rolling_weeks,
    )


WINDOW_COLUMNS = [
    COL_CUSTOMER_ID,
    *[
        f"{prefix}_{key}"
        for prefix in ("current", "prior", "recent", "recent_prior")
        for key in ("avg_logins", "avg_usage", "total_tickets", "avg_nps", "records")
    ],
    "latest_logins",
    "latest_usage",
    "previous_logins",
    "previous_usage",
    "rolling_logins",
    "rolling_usage",
    "baseline_rolling_logins",
    "baseline_rolling_usage",
    "trend_records",
    "active_weeks",
    "last_activity_date",
]


def compute_activity_windows(activity: pd.DataFrame, as_of, windows: WindowConfig | None = None) -> pd.DataFrame:
    """
    Returns one row per customer with any activity before ``as_of``:
    current/prior 4-week aggregates, recent/recent-prior 30-day aggregates,
    the latest rolling-average snapshot and the active-week count.
    """

    windows = windows or WindowConfig()
    as_of = _normalize_as_of(as_of)
    tx = prepare_activity(activity)
    tx = tx.loc[tx[COL_ACTIVITY_DATE] < as_of]

    out = []
    for _, g in tx.groupby(COL_CUSTOMER_ID, sort=True):
        out.append(summarize_customer(g, as_of, windows).as_row())

    if not out:
        return pd.DataFrame(columns=WINDOW_COLUMNS)
    return pd.DataFrame(out, columns=WINDOW_COLUMNS)
