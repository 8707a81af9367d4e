"""Load the input relations from flat files or the database."""
from __future__ import annotations

from pathlib import Path
from typing import Tuple

import pandas as pd

import cshealth.data_access as da
from cshealth.config import WindowConfig
from cshealth.schema import COL_ACTIVITY_DATE, COL_CUSTOMER_ID, COL_SIGNUP_DATE


def read_table(path: str | Path) -> pd.DataFrame:
    """Read a CSV or Parquet file; ids stay strings so leading zeros survive."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found at {path}")
    if path.suffix.lower() == ".parquet":
        return pd.read_parquet(path)
    return pd.read_csv(path, dtype={COL_CUSTOMER_ID: str})


def load_from_files(customers_path: str | Path, activity_path: str | Path) -> Tuple[pd.DataFrame, pd.DataFrame]:
    customers = read_table(customers_path)
    activity = read_table(activity_path)
    if COL_SIGNUP_DATE in customers.columns:
        customers[COL_SIGNUP_DATE] = pd.to_datetime(customers[COL_SIGNUP_DATE])
    if COL_ACTIVITY_DATE in activity.columns:
        activity[COL_ACTIVITY_DATE] = pd.to_datetime(activity[COL_ACTIVITY_DATE])
    print(f"[INFO] Read {len(customers):,} customers from {customers_path}")
    print(f"[INFO] Read {len(activity):,} activity rows from {activity_path}")
    return customers, activity


def load_from_database(as_of, windows: WindowConfig | None = None, url: str | None = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    engine = da.get_engine(url)
    return da.load_snapshot(engine, as_of, windows)
