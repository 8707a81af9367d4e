"""Output quality checks using Pandera."""

from typing import Mapping

import pandas as pd
import pandera.pandas as pa
from pandera.typing import Series

from cshealth.classify import (
    CHURN_CATEGORIES,
    EXPANSION_READINESS,
    HEALTH_GRADES,
    TREND_CATEGORIES,
)


# ---------------------------------------------------------------------------
# Per-customer analyses
# ---------------------------------------------------------------------------
class HealthOutputSchema(pa.DataFrameModel):
    """Health scores stay on the 0-100 scale; undefined only when a dimension is."""

    customer_id: Series[str] = pa.Field(coerce=True, unique=True)
    overall_health_score: Series[float] = pa.Field(ge=0, le=100, nullable=True)
    health_grade: Series[str] = pa.Field(isin=HEALTH_GRADES.labels(), nullable=True)

    class Config:
        coerce = True
        strict = False


class ChurnOutputSchema(pa.DataFrameModel):
    customer_id: Series[str] = pa.Field(coerce=True, unique=True)
    churn_risk_score: Series[float] = pa.Field(gt=0, le=100)
    risk_category: Series[str] = pa.Field(isin=CHURN_CATEGORIES.labels())
    annual_revenue_at_risk: Series[float] = pa.Field(ge=0)

    class Config:
        coerce = True
        strict = False


class ExpansionOutputSchema(pa.DataFrameModel):
    customer_id: Series[str] = pa.Field(coerce=True, unique=True)
    expansion_score: Series[float] = pa.Field(ge=20, le=100)
    expansion_readiness: Series[str] = pa.Field(isin=EXPANSION_READINESS.labels())
    estimated_expansion_mrr: Series[float] = pa.Field(ge=0)

    class Config:
        coerce = True
        strict = False


class TrendOutputSchema(pa.DataFrameModel):
    customer_id: Series[str] = pa.Field(coerce=True, unique=True)
    overall_trend_score: Series[float] = pa.Field(ge=-45, le=60)
    trend_category: Series[str] = pa.Field(isin=TREND_CATEGORIES.labels())

    class Config:
        coerce = True
        strict = False


# ---------------------------------------------------------------------------
# Cohorts
# ---------------------------------------------------------------------------
class CohortOutputSchema(pa.DataFrameModel):
    cohort_size: Series[int] = pa.Field(ge=1)
    customer_retention_rate: Series[float] = pa.Field(ge=0, le=100)
    churn_rate: Series[float] = pa.Field(ge=0, le=100)
    revenue_retention_rate: Series[float] = pa.Field(ge=0, nullable=True)

    class Config:
        coerce = True
        strict = False


OUTPUT_MODELS = {
    "health": HealthOutputSchema,
    "churn": ChurnOutputSchema,
    "expansion": ExpansionOutputSchema,
    "trends": TrendOutputSchema,
    "cohorts": CohortOutputSchema,
}


def validate_outputs(tables: Mapping[str, pd.DataFrame], raise_error: bool = False) -> bool:
    """
    Validate engine outputs against their schemas.

    Args:
        tables: analysis name -> output frame (an ``EngineResult`` works)
        raise_error: If True, re-raise the first schema failure. If False, print warning.

    Returns:
        True if every known output is valid, False otherwise.
    """
    all_valid = True
    for name, model in OUTPUT_MODELS.items():
        if name not in tables:
            continue
        df = tables[name]
        if df.empty:
            continue
        try:
            model.validate(df, lazy=True)
            print(f"[OK] {name} output valid ({len(df):,} rows)")
        except pa.errors.SchemaErrors as e:
            print(f"[WARN] {name} output invalid")
            print(e.failure_cases.head())
            all_valid = False
            if raise_error:
                raise
    return all_valid
