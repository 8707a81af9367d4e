"""
Input validation schemas using Pandera.
"""
from __future__ import annotations

from typing import Iterable, Tuple

import pandas as pd
import pandera.pandas as pa

from cshealth.schema import (
    COL_ACTIVITY_DATE,
    COL_CUSTOMER_ID,
    COL_COMPANY_NAME,
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
    STATUSES,
)


def get_customer_schema() -> pa.DataFrameSchema:
    return pa.DataFrameSchema(
        {
            COL_CUSTOMER_ID: pa.Column(str, coerce=True, nullable=False, unique=True),
            COL_COMPANY_NAME: pa.Column(str, coerce=True, nullable=True),
            COL_SIGNUP_DATE: pa.Column("datetime64[ns]", coerce=True, nullable=False),
            COL_PLAN_TYPE: pa.Column(str, pa.Check.isin(PLAN_ORDER), nullable=False),
            COL_STATUS: pa.Column(str, pa.Check.isin(STATUSES), nullable=False),
            COL_MRR: pa.Column(float, pa.Check.ge(0), coerce=True, nullable=False),
            COL_STARTING_PLAN: pa.Column(str, pa.Check.isin(PLAN_ORDER), nullable=True, required=False),
            COL_STARTING_MRR: pa.Column(float, pa.Check.ge(0), coerce=True, nullable=True, required=False),
        },
        strict=False,
    )


def get_activity_schema() -> pa.DataFrameSchema:
    return pa.DataFrameSchema(
        {
            COL_CUSTOMER_ID: pa.Column(str, coerce=True, nullable=False),
            COL_ACTIVITY_DATE: pa.Column("datetime64[ns]", coerce=True, nullable=False),
            COL_LOGINS: pa.Column(float, pa.Check.ge(0), coerce=True, nullable=False),
            COL_USAGE: pa.Column(float, pa.Check.in_range(0, 100), coerce=True, nullable=False),
            COL_TICKETS: pa.Column(float, pa.Check.ge(0), coerce=True, nullable=False),
            COL_NPS: pa.Column(float, pa.Check.in_range(0, 10), coerce=True, nullable=True),
        },
        unique=[COL_CUSTOMER_ID, COL_ACTIVITY_DATE],
        strict=False,
    )


def _validate(df: pd.DataFrame, schema: pa.DataFrameSchema, label: str, strict: bool) -> pd.DataFrame:
    try:
        return schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as err:
        if strict:
            raise
        print(f"[WARN] {label} validation failed with {len(err.failure_cases)} errors.")
        print(err.failure_cases.head())
        return df


def validate_customers(df: pd.DataFrame, strict: bool = False) -> pd.DataFrame:
    """Validates the customer relation against the schema."""
    return _validate(df, get_customer_schema(), "Customer", strict)


def validate_activity(df: pd.DataFrame, strict: bool = False) -> pd.DataFrame:
    """Validates the activity relation against the schema."""
    return _validate(df, get_activity_schema(), "Activity", strict)


def ensure_columns(df: pd.DataFrame, required: Iterable[str]) -> Tuple[bool, list[str]]:
    missing = [c for c in required if c not in df.columns]
    return (len(missing) == 0, missing)


def ensure_unique_activity_keys(df: pd.DataFrame) -> None:
    """Raise if any (customer, activity date) pair appears more than once.

    Week ordering inside a customer is undefined when two records share a
    date, so duplicates are a data-quality failure rather than something to
    resolve by picking one.
    """
    dupes = df.duplicated(subset=[COL_CUSTOMER_ID, COL_ACTIVITY_DATE], keep=False)
    if dupes.any():
        sample = (
            df.loc[dupes, [COL_CUSTOMER_ID, COL_ACTIVITY_DATE]]
            .drop_duplicates()
            .head(5)
            .to_dict("records")
        )
        raise ValueError(
            f"Activity relation has {int(dupes.sum())} rows with duplicate "
            f"({COL_CUSTOMER_ID}, {COL_ACTIVITY_DATE}) keys, e.g. {sample}"
        )
