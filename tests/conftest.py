import sys
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

AS_OF = pd.Timestamp("2024-06-01")


def weekly_rows(customer_id, as_of, weeks):
    """One activity row per entry in ``weeks``; the k-th entry (from 1) is dated ``as_of - 7k`` days."""
    rows = []
    for k, metrics in enumerate(weeks, start=1):
        rows.append(
            {
                "activity_id": f"{customer_id}-{k}",
                "customer_id": customer_id,
                "activity_date": as_of - pd.Timedelta(days=7 * k),
                **metrics,
            }
        )
    return rows


def week(usage, logins, tickets=0, nps=None):
    return {
        "feature_usage_score": usage,
        "logins_count": logins,
        "support_tickets_opened": tickets,
        "nps_score": nps,
    }


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def sample_customers():
    return pd.DataFrame(
        [
            {
                "customer_id": "C001",
                "company_name": "Declining Co",
                "signup_date": "2023-03-10",
                "plan_type": "Starter",
                "industry": "Retail",
                "account_owner": "A. Rivera",
                "status": "Active",
                "mrr": 100.0,
            },
            {
                "customer_id": "C002",
                "company_name": "Power Users Inc",
                "signup_date": "2023-01-10",
                "plan_type": "Professional",
                "industry": "Software",
                "account_owner": "B. Okafor",
                "status": "Active",
                "mrr": 1000.0,
            },
            {
                "customer_id": "C003",
                "company_name": "Gone LLC",
                "signup_date": "2023-02-01",
                "plan_type": "Starter",
                "industry": "Retail",
                "account_owner": "A. Rivera",
                "status": "Churned",
                "mrr": 0.0,
            },
            {
                "customer_id": "C004",
                "company_name": "Big Enterprise",
                "signup_date": "2022-11-20",
                "plan_type": "Enterprise",
                "industry": "Finance",
                "account_owner": "C. Lindqvist",
                "status": "Active",
                "mrr": 5000.0,
            },
        ]
    )


@pytest.fixture
def sample_activity():
    declining = [week(35, 8, tickets=1, nps=4)] * 4 + [week(85, 30, tickets=0, nps=9)] * 4
    steady = [week(92, 45, tickets=0, nps=9)] * 8
    rows = (
        weekly_rows("C001", AS_OF, declining)
        + weekly_rows("C002", AS_OF, steady)
        + weekly_rows("C003", AS_OF, [week(10, 1, tickets=3, nps=2)] * 2)
        + weekly_rows("C004", AS_OF, steady)
    )
    return pd.DataFrame(rows)
