from datetime import date

import pytest

import reports
from models import Bill, MembershipItem, MembershipPlan, ServiceItem


def service_bill(bill_id, day, total, name="Head & Foot", via_membership=False):
    return Bill(id=bill_id, client_name="Priya", date_from=day, total=total,
                items=(ServiceItem(service_id=1, name=name, price=total, membership_used=via_membership),))


def membership_bill(bill_id, day, plan_id, total):
    return Bill(id=bill_id, client_name="Priya", date_from=day, total=total,
                items=(MembershipItem(membership_id=plan_id, name="Plan", price=total),))


# Monday 2026-10-19
TODAY = date(2026, 10, 19)


def test_income_summary_windows():
    bills = [
        service_bill(1, "2026-10-19", 100),  # today
        service_bill(2, "2026-10-24", 50),   # Saturday of this week
        service_bill(3, "2026-10-25", 25),   # Sunday, outside Mon-Sat
        service_bill(4, "2026-10-02", 10),   # earlier this month
        service_bill(5, "2026-03-01", 1),    # earlier this year
        service_bill(6, "2025-12-31", 1000), # last year
    ]
    assert reports.income_summary(bills, TODAY) == {"day": 100.0, "week": 150.0, "month": 185.0, "year": 186.0}


def test_income_summary_empty():
    assert reports.income_summary([], TODAY) == {"day": 0.0, "week": 0.0, "month": 0.0, "year": 0.0}


def test_bad_dates_are_ignored():
    bills = [service_bill(1, "not-a-date", 100), service_bill(2, "2026-10-19", 5)]
    assert reports.income_summary(bills, TODAY)["day"] == 5.0


def test_daily_income_fills_missing_days():
    bills = [service_bill(1, "2026-10-19", 100), service_bill(2, "2026-10-19", 20), service_bill(3, "2026-10-17", 5)]
    df = reports.daily_income(bills, days=3, today=TODAY)
    assert df["date"].tolist() == ["2026-10-19", "2026-10-18", "2026-10-17"]
    assert df["income"].tolist() == [120.0, 0.0, 5.0]
    assert df["bills"].tolist() == [2, 0, 1]
    assert df["weekday"].tolist() == ["Monday", "Sunday", "Saturday"]


def test_revenue_by_month():
    bills = [service_bill(1, "2026-10-01", 100), service_bill(2, "2026-10-19", 50), service_bill(3, "2026-09-05", 7)]
    df = reports.revenue_by_month(bills)
    assert df.to_dict("records") == [{"month": "2026-10", "revenue": 150.0}, {"month": "2026-09", "revenue": 7.0}]


def test_membership_sales_and_best_seller():
    plans = [MembershipPlan(id=1, name="Silver", price=4999), MembershipPlan(id=2, name="Gold", price=8999)]
    bills = [
        membership_bill(1, "2026-10-01", 1, 4999),
        membership_bill(2, "2026-10-02", 1, 4999),
        membership_bill(3, "2026-10-03", 2, 8999),
        membership_bill(4, "2026-10-04", 99, 100),
        service_bill(5, "2026-10-05", 699),
    ]
    sales = reports.membership_sales(bills, plans)
    assert sales["plan"].tolist()[0] == "Silver"
    assert int(sales.iloc[0]["sold"]) == 2
    assert sales.loc[sales["plan"] == "Plan", "revenue"].tolist() == [100.0]
    most, least = reports.most_and_least_selling(sales)
    assert most["plan"] == "Silver"
    assert least["plan"] == "Plan"


def test_most_and_least_selling_empty():
    assert reports.most_and_least_selling(reports.membership_sales([], [])) == (None, None)


def test_service_sales_counts_membership_usage():
    bills = [
        service_bill(1, "2026-10-01", 699),
        service_bill(2, "2026-10-02", 699, via_membership=True),
        service_bill(3, "2026-10-02", 499, name="Head Massage"),
    ]
    df = reports.service_sales(bills)
    row = df[df["service"] == "Head & Foot"].iloc[0]
    assert int(row["count"]) == 2
    assert int(row["via_membership"]) == 1


@pytest.mark.parametrize("bills", [[], [membership_bill(1, "2026-10-01", 1, 10)]])
def test_service_sales_empty(bills):
    assert reports.service_sales(bills).empty
