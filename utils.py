"""
utils.py
Validation, dates, exports, sample data.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime, timedelta
from typing import Sequence

import pandas as pd

import billing
import membership
import store
from models import CATEGORIES, Bill, Client, ServiceUsage


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def add_minutes_to_time(hhmm: str, minutes: int) -> str:
    """'10:30' + 90 -> '12:00' (wraps past midnight)."""
    start = datetime.strptime(hhmm, "%H:%M")
    return (start + timedelta(minutes=int(minutes))).strftime("%H:%M")


def paginate(items: Sequence, page: int, per_page: int) -> tuple[list, int]:
    """Return the items on `page` (1-based, clamped) and the total page count."""
    pages = max(1, -(-len(items) // per_page))
    page = min(max(1, page), pages)
    start = (page - 1) * per_page
    return list(items[start:start + per_page]), pages


def validate_client_inputs(name: str, phone: str, email: str = "") -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Name is required.")
    if not phone.strip():
        errors.append("Phone is required.")
    if email.strip() and "@" not in email:
        errors.append("Email looks invalid.")
    return errors


def validate_service_inputs(title: str, price, duration) -> list[str]:
    errors: list[str] = []
    if not title.strip():
        errors.append("Title is required.")
    try:
        if float(price) < 0:
            errors.append("Price cannot be negative.")
    except (TypeError, ValueError):
        errors.append("Price must be numeric.")
    try:
        if int(duration) <= 0:
            errors.append("Duration must be > 0 minutes.")
    except (TypeError, ValueError):
        errors.append("Duration must be a whole number of minutes.")
    return errors


def validate_plan_inputs(name: str, price, allotments: dict) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Plan name is required.")
    try:
        if float(price) < 0:
            errors.append("Price cannot be negative.")
    except (TypeError, ValueError):
        errors.append("Price must be numeric.")
    for key, value in allotments.items():
        try:
            if int(value) < 0:
                errors.append(f"{key} sessions cannot be negative.")
        except (TypeError, ValueError):
            errors.append(f"{key} sessions must be a whole number.")
    return errors


def validate_time_range(time_from: str, time_to: str) -> list[str]:
    try:
        start = datetime.strptime(time_from, "%H:%M")
        end = datetime.strptime(time_to, "%H:%M")
    except ValueError:
        return ["Times must be HH:MM."]
    if end <= start:
        return ["End time must be after start time."]
    return []


def clients_to_csv_bytes(clients: Sequence[Client]) -> bytes:
    df = pd.DataFrame([asdict(c) for c in clients])
    return df.to_csv(index=False).encode("utf-8")


def bills_to_csv_bytes(bills: Sequence[Bill]) -> bytes:
    rows = [
        {
            "id": b.id,
            "date": b.date_from,
            "client": b.client_name,
            "phone": b.client_phone,
            "kind": b.kind,
            "items": "; ".join(it.name for it in b.items),
            "discount_percent": b.discount_percent,
            "payment_method": b.payment_method,
            "total": b.total,
        }
        for b in bills
    ]
    return pd.DataFrame(rows).to_csv(index=False).encode("utf-8")


def usages_to_csv_bytes(usages: Sequence[ServiceUsage]) -> bytes:
    df = pd.DataFrame([asdict(u) for u in usages])
    return df.to_csv(index=False).encode("utf-8")


def insert_sample_data() -> None:
    """
    Insert a few clients, services, plans and bills (safe to run multiple times: adds new rows each time).
    """
    today = date.today()

    c1 = store.create_client("Priya Sharma", "9800000001", email="priya@example.com")
    c2 = store.create_client("Rahul Verma", "9800000002")
    store.create_client("Anita Rao", "9800000003", notes="Prefers mornings")

    s1 = store.create_service("Head & Foot", 699, 45)
    store.create_service("Jacuzzi Relax Therapy", 2499, 70)
    store.create_service("Hot Oil Stone Massage", 1999, 60)

    keys = [c.key for c in CATEGORIES]
    p1 = store.create_plan("Silver", 4999, dict(zip(keys, [3, 1, 1])), timing="10am - 8pm")
    store.create_plan("Gold", 8999, dict(zip(keys, [6, 2, 2])), timing="All day")

    priya = store.get_client(c1)
    rahul = store.get_client(c2)
    silver = store.get_plan(p1)
    head_foot = next(s for s in store.list_services() if s.id == s1)

    purchase = billing.create_membership_bill(priya, silver, (today - timedelta(days=3)).isoformat(), "card")
    billing.create_service_bill(rahul, head_foot, head_foot.price, today.isoformat(), "11:00",
                                add_minutes_to_time("11:00", head_foot.duration_minutes), payment_method="cash")
    billing.create_service_bill(
        priya, head_foot, head_foot.price, today.isoformat(), "15:00",
        add_minutes_to_time("15:00", head_foot.duration_minutes),
        membership_purchase_id=purchase,
        slot=membership.get_slot_list(silver.allotments)[0],
    )
