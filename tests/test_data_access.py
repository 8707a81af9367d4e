from types import SimpleNamespace

import pandas as pd
import pytest
from sqlalchemy import create_engine

import cshealth.data_access as da
from cshealth.etl import loader


@pytest.fixture
def sqlite_engine(sample_customers, sample_activity):
    engine = create_engine("sqlite://")
    sample_customers.to_sql("customers", engine, index=False)
    activity = sample_activity.copy()
    activity["activity_date"] = activity["activity_date"].dt.strftime("%Y-%m-%d")
    extra = pd.DataFrame(
        [
            {"activity_id": "old", "customer_id": "C001", "activity_date": "2023-01-01",
             "logins_count": 1, "feature_usage_score": 1, "support_tickets_opened": 0, "nps_score": None},
            {"activity_id": "future", "customer_id": "C001", "activity_date": "2024-06-01",
             "logins_count": 1, "feature_usage_score": 1, "support_tickets_opened": 0, "nps_score": None},
        ]
    )
    pd.concat([activity, extra], ignore_index=True).to_sql("customer_activity", engine, index=False)
    return engine


def test_get_engine_requires_url(monkeypatch):
    monkeypatch.delenv(da.DATABASE_URL_ENV, raising=False)
    with pytest.raises(RuntimeError, match="CSH_DATABASE_URL"):
        da.get_engine()


def test_get_engine_reads_environment(monkeypatch):
    monkeypatch.setenv(da.DATABASE_URL_ENV, "sqlite://")
    assert da.get_engine().dialect.name == "sqlite"


def test_load_snapshot_limits_activity_to_lookback(sqlite_engine, sample_activity, as_of):
    customers, activity = da.load_snapshot(sqlite_engine, as_of)
    assert len(customers) == 4
    assert list(customers.columns) == da.CUSTOMER_COLUMNS
    assert len(activity) == len(sample_activity)
    assert set(activity["activity_id"]) == set(sample_activity["activity_id"])


def test_snapshot_connection_sets_isolation_level(sqlite_engine):
    with da.snapshot_connection(sqlite_engine) as conn:
        assert conn.get_execution_options()["isolation_level"] == "SERIALIZABLE"
        assert conn.get_isolation_level() == "SERIALIZABLE"


def test_snapshot_isolation_level_per_dialect():
    def fake_engine(name):
        return SimpleNamespace(dialect=SimpleNamespace(name=name))

    assert da.snapshot_isolation_level(fake_engine("postgresql")) == "REPEATABLE READ"
    assert da.snapshot_isolation_level(fake_engine("mssql")) == "SERIALIZABLE"
    assert da.snapshot_isolation_level(fake_engine("sqlite")) == "SERIALIZABLE"


def test_load_snapshot_reads_through_snapshot_connection(sqlite_engine, monkeypatch, as_of):
    opened = []
    original = da.snapshot_connection

    def tracking(engine):
        conn = original(engine)
        opened.append(conn.get_execution_options().get("isolation_level"))
        return conn

    monkeypatch.setattr(da, "snapshot_connection", tracking)
    da.load_snapshot(sqlite_engine, as_of)
    assert opened == ["SERIALIZABLE"]


def test_load_from_database_uses_configured_url(sqlite_engine, monkeypatch, as_of):
    monkeypatch.setattr(loader.da, "get_engine", lambda url=None: sqlite_engine)
    customers, activity = loader.load_from_database(as_of)
    assert len(customers) == 4
    assert "old" not in set(activity["activity_id"])


def test_read_table_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        loader.read_table(tmp_path / "nope.csv")


def test_load_from_files_reads_csv_and_parquet(tmp_path, sample_customers, sample_activity):
    customers_path = tmp_path / "customers.csv"
    activity_path = tmp_path / "activity.parquet"
    sample_customers.assign(customer_id=["007", "C002", "C003", "C004"]).to_csv(customers_path, index=False)
    sample_activity.to_parquet(activity_path, index=False)

    customers, activity = loader.load_from_files(customers_path, activity_path)
    assert customers["customer_id"].tolist()[0] == "007"
    assert pd.api.types.is_datetime64_any_dtype(customers["signup_date"])
    assert len(activity) == len(sample_activity)
