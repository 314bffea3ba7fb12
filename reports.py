"""
reports.py
Income and sales summaries for the dashboard and reports pages (pandas).
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Sequence

import pandas as pd

from formatting import week_bounds, weekday
from models import Bill, MembershipPlan

BILL_COLUMNS = ["bill_id", "date", "client", "phone", "kind", "items", "payment_method", "total"]


def bills_frame(bills: Iterable[Bill]) -> pd.DataFrame:
    rows = [
        {
            "bill_id": b.id,
            "date": b.date_from,
            "client": b.client_name,
            "phone": b.client_phone,
            "kind": b.kind,
            "items": ", ".join(it.name for it in b.items),
            "payment_method": b.payment_method,
            "total": float(b.total),
        }
        for b in bills
    ]
    df = pd.DataFrame(rows, columns=BILL_COLUMNS)
    df["date"] = pd.to_datetime(df["date"], errors="coerce", format="ISO8601").dt.date
    # bills with an unparseable date are left out of every income window
    return df[df["date"].notna()].reset_index(drop=True)


def _income_between(df: pd.DataFrame, start: date, end: date) -> float:
    if df.empty:
        return 0.0
    mask = (df["date"] >= start) & (df["date"] <= end)
    return float(df.loc[mask, "total"].sum())


def income_summary(bills: Iterable[Bill], today: date | None = None) -> dict[str, float]:
    """Income for today, the Monday-Saturday week, the month and the year."""
    today = today or date.today()
    df = bills_frame(bills)
    monday, saturday = week_bounds(today)
    month_start = today.replace(day=1)
    month_end = (month_start + timedelta(days=32)).replace(day=1) - timedelta(days=1)
    return {
        "day": _income_between(df, today, today),
        "week": _income_between(df, monday, saturday),
        "month": _income_between(df, month_start, month_end),
        "year": _income_between(df, date(today.year, 1, 1), date(today.year, 12, 31)),
    }


def daily_income(bills: Iterable[Bill], days: int = 30, today: date | None = None) -> pd.DataFrame:
    """One row per day for the last `days` days (newest first), including days with no income."""
    today = today or date.today()
    df = bills_frame(bills)
    start = today - timedelta(days=days - 1)
    grouped = (
        df[(df["date"] >= start) & (df["date"] <= today)]
        .groupby("date")
        .agg(income=("total", "sum"), bills=("bill_id", "count"))
        if not df.empty
        else pd.DataFrame(columns=["income", "bills"])
    )
    out = []
    for offset in range(days):
        d = today - timedelta(days=offset)
        income = float(grouped.loc[d, "income"]) if d in grouped.index else 0.0
        count = int(grouped.loc[d, "bills"]) if d in grouped.index else 0
        out.append({"date": d.isoformat(), "weekday": weekday(d), "income": income, "bills": count})
    return pd.DataFrame(out, columns=["date", "weekday", "income", "bills"])


def revenue_by_month(bills: Iterable[Bill]) -> pd.DataFrame:
    df = bills_frame(bills)
    if df.empty:
        return pd.DataFrame(columns=["month", "revenue"])
    df["month"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m")
    out = df.groupby("month", as_index=False)["total"].sum().rename(columns={"total": "revenue"})
    return out.sort_values("month", ascending=False).reset_index(drop=True)


def membership_sales(bills: Iterable[Bill], plans: Sequence[MembershipPlan]) -> pd.DataFrame:
    """Sold count and revenue per plan, best seller first."""
    names = {str(p.id): p.name for p in plans}
    rows = []
    for b in bills:
        item = b.membership_item
        if item is None:
            continue
        rows.append({
            "plan_id": str(item.membership_id),
            "plan": names.get(str(item.membership_id), item.name or "Unknown plan"),
            "total": float(b.total),
        })
    if not rows:
        return pd.DataFrame(columns=["plan_id", "plan", "sold", "revenue"])
    df = pd.DataFrame(rows)
    out = df.groupby(["plan_id", "plan"], as_index=False).agg(sold=("total", "count"), revenue=("total", "sum"))
    return out.sort_values(["sold", "revenue"], ascending=False).reset_index(drop=True)


def most_and_least_selling(sales: pd.DataFrame) -> tuple[dict | None, dict | None]:
    if sales.empty:
        return None, None
    return sales.iloc[0].to_dict(), sales.iloc[-1].to_dict()


def service_sales(bills: Iterable[Bill]) -> pd.DataFrame:
    rows = [
        {"service": it.name, "via_membership": it.membership_used, "price": float(it.price)}
        for b in bills
        for it in b.items
        if it.item_type == "service"
    ]
    if not rows:
        return pd.DataFrame(columns=["service", "count", "via_membership"])
    df = pd.DataFrame(rows)
    out = df.groupby("service", as_index=False).agg(count=("price", "count"), via_membership=("via_membership", "sum"))
    return out.sort_values("count", ascending=False).reset_index(drop=True)
