import pandas as pd
import pandera.pandas as pa
import pytest

from cshealth.engine import ANALYSES, EngineResult, run_engine
from cshealth.quality import validate_outputs


def test_run_engine_returns_every_analysis(sample_customers, sample_activity, as_of):
    result = run_engine(sample_customers, sample_activity, as_of=as_of)

    assert isinstance(result, EngineResult)
    assert list(result) == list(ANALYSES)
    assert result.as_of == as_of
    assert result["churn"]["customer_id"].tolist() == ["C001"]
    # Four customers in four different signup months: no cohort reaches five members.
    assert result["cohorts"].empty


def test_run_engine_attaches_retention_curve(sample_customers, sample_activity, as_of):
    curve = run_engine(sample_customers, sample_activity, as_of=as_of).retention_curve

    assert set(curve["cohort_month"].dt.strftime("%Y-%m")) == {"2022-11", "2023-01", "2023-02", "2023-03"}
    # C003 signed up 2023-02-01 and was last seen in May 2024.
    feb = curve.loc[curve["cohort_month"] == pd.Timestamp("2023-02-01")]
    assert feb["months_since_signup"].tolist() == [15]
    assert feb["active_customers"].tolist() == [1]


def test_run_engine_is_deterministic_and_pure(sample_customers, sample_activity, as_of):
    customers_before = sample_customers.copy()
    activity_before = sample_activity.copy()

    first = run_engine(sample_customers, sample_activity, as_of=as_of)
    second = run_engine(sample_customers, sample_activity, as_of=as_of)

    for name in ANALYSES:
        pd.testing.assert_frame_equal(first[name], second[name])
    pd.testing.assert_frame_equal(sample_customers, customers_before)
    pd.testing.assert_frame_equal(sample_activity, activity_before)


def test_input_order_does_not_change_output(sample_customers, sample_activity, as_of):
    first = run_engine(sample_customers, sample_activity, as_of=as_of)
    shuffled = run_engine(
        sample_customers.iloc[::-1].reset_index(drop=True),
        sample_activity.sample(frac=1.0, random_state=7).reset_index(drop=True),
        as_of=as_of,
    )
    for name in ("health", "churn", "expansion", "trends"):
        pd.testing.assert_frame_equal(first[name], shuffled[name])


def test_outputs_pass_quality_checks(sample_customers, sample_activity, as_of):
    result = run_engine(sample_customers, sample_activity, as_of=as_of)
    assert validate_outputs(result, raise_error=True)


def test_strict_mode_raises_on_out_of_range_input(sample_customers, sample_activity, as_of):
    bad = sample_activity.copy()
    bad.loc[0, "feature_usage_score"] = 150
    with pytest.raises(pa.errors.SchemaErrors):
        run_engine(sample_customers, bad, as_of=as_of, strict=True)


def test_non_strict_mode_warns_and_continues(sample_customers, sample_activity, as_of, capsys):
    bad = sample_customers.copy()
    bad.loc[0, "mrr"] = -5.0
    result = run_engine(bad, sample_activity, as_of=as_of)
    assert "[WARN] Customer validation failed" in capsys.readouterr().out
    assert not result["health"].empty


def test_duplicate_activity_always_raises(sample_customers, sample_activity, as_of):
    dupes = pd.concat([sample_activity, sample_activity.head(1)], ignore_index=True)
    with pytest.raises(ValueError):
        run_engine(sample_customers, dupes, as_of=as_of)
