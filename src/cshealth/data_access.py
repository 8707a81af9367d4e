"""
Data access layer for the customer and activity relations.

Loads connection settings from environment (.env) and reads one
point-in-time snapshot of both relations for an engine run.
"""

from __future__ import annotations

import os
from typing import Optional, Tuple

import pandas as pd
from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from cshealth.config import WindowConfig
from cshealth.schema import (
    COL_ACCOUNT_OWNER,
    COL_ACTIVITY_DATE,
    COL_ACTIVITY_ID,
    COL_COMPANY_NAME,
    COL_CUSTOMER_ID,
    COL_INDUSTRY,
    COL_LOGINS,
    COL_MRR,
    COL_NPS,
    COL_PLAN_TYPE,
    COL_SIGNUP_DATE,
    COL_STATUS,
    COL_TICKETS,
    COL_USAGE,
)

load_dotenv()

DATABASE_URL_ENV = "CSH_DATABASE_URL"

# Transaction isolation under which every statement reads the same snapshot.
# READ COMMITTED, the PostgreSQL and SQL Server default, snapshots per statement.
SNAPSHOT_ISOLATION = {
    "postgresql": "REPEATABLE READ",
    "mysql": "REPEATABLE READ",
    "mariadb": "REPEATABLE READ",
}
DEFAULT_SNAPSHOT_ISOLATION = "SERIALIZABLE"

CUSTOMER_COLUMNS = [
    COL_CUSTOMER_ID,
    COL_COMPANY_NAME,
    COL_SIGNUP_DATE,
    COL_PLAN_TYPE,
    COL_INDUSTRY,
    COL_ACCOUNT_OWNER,
    COL_STATUS,
    COL_MRR,
]

ACTIVITY_COLUMNS = [
    COL_ACTIVITY_ID,
    COL_CUSTOMER_ID,
    COL_ACTIVITY_DATE,
    COL_LOGINS,
    COL_USAGE,
    COL_TICKETS,
    COL_NPS,
]


def get_engine(url: Optional[str] = None) -> Engine:
    """Create and return a SQLAlchemy engine.

    ``url`` overrides ``CSH_DATABASE_URL`` for this engine only.
    """
    url = (url or os.getenv(DATABASE_URL_ENV) or "").strip()
    if not url:
        raise RuntimeError(f"Missing {DATABASE_URL_ENV} environment variable")
    return create_engine(url)


def snapshot_isolation_level(engine: Engine) -> str:
    return SNAPSHOT_ISOLATION.get(engine.dialect.name, DEFAULT_SNAPSHOT_ISOLATION)


def snapshot_connection(engine: Engine) -> Connection:
    """Open a connection whose transactions read one consistent snapshot."""
    return engine.connect().execution_options(isolation_level=snapshot_isolation_level(engine))


def load_snapshot(
    engine: Engine,
    as_of,
    windows: WindowConfig | None = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Read customers and activity inside one transaction.

    Activity is limited to the lookback the longest window needs, ending
    before ``as_of``. Both reads run in one transaction at the isolation
    level from :func:`snapshot_isolation_level`, so rows committed between
    them are not visible to either.

    Returns: (customers, activity)
    """
    windows = windows or WindowConfig()
    end = pd.Timestamp(as_of).normalize()
    start = end - pd.Timedelta(days=windows.longest_days())

    customers_sql = text(f"SELECT {', '.join(CUSTOMER_COLUMNS)} FROM customers")
    activity_sql = text(
        f"""
        SELECT {', '.join(ACTIVITY_COLUMNS)}
        FROM customer_activity
        WHERE {COL_ACTIVITY_DATE} >= :start_date
          AND {COL_ACTIVITY_DATE} < :end_date
        """
    )
    params = {"start_date": start.date().isoformat(), "end_date": end.date().isoformat()}

    with snapshot_connection(engine) as conn:
        with conn.begin():
            customers = pd.read_sql(customers_sql, conn)
            activity = pd.read_sql(activity_sql, conn, params=params)

    print(f"[INFO] Loaded {len(customers):,} customers and {len(activity):,} activity rows ({start.date()} to {end.date()})")
    return customers, activity
