"""
store.py
Data access for every collection (clients, catalog, staff, bills, usage logs).
Each function is one list/create/update/delete call; pages never write SQL.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime

import db
from models import (
    Bill,
    BillItem,
    Client,
    MembershipItem,
    MembershipPlan,
    Service,
    ServiceItem,
    ServiceUsage,
    StaffMember,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


def _load_allotments(raw: str | None) -> dict[str, int] | None:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed allotments %r", raw)
        return None
    if not isinstance(data, dict):
        return None
    return {str(k): int(v or 0) for k, v in data.items()}


def _dump_allotments(allotments: dict[str, int] | None) -> str | None:
    if allotments is None:
        return None
    return json.dumps({k: int(v or 0) for k, v in allotments.items()}, sort_keys=True)


# ---------- Clients ----------

def _client(row: sqlite3.Row) -> Client:
    return Client(
        id=row["id"],
        name=row["name"],
        phone=row["phone"],
        email=row["email"],
        address=row["address"],
        notes=row["notes"],
    )


def list_clients(search: str = "") -> list[Client]:
    sql = "SELECT * FROM clients WHERE 1=1"
    params = []
    if search.strip():
        sql += " AND (name LIKE ? OR phone LIKE ?)"
        like = f"%{search.strip()}%"
        params.extend([like, like])
    sql += " ORDER BY name COLLATE NOCASE ASC"
    return [_client(r) for r in db.fetch_all(sql, tuple(params))]


def get_client(client_id: int) -> Client | None:
    row = db.fetch_one("SELECT * FROM clients WHERE id = ?", (client_id,))
    return _client(row) if row else None


def create_client(name: str, phone: str, email: str | None = None,
                  address: str | None = None, notes: str | None = None) -> int:
    cid = db.execute(
        "INSERT INTO clients(name, phone, email, address, notes, created_at) VALUES(?,?,?,?,?,?)",
        (name.strip(), phone.strip(), email, address, notes, _now()),
    )
    logger.info("Created client %s (%s)", cid, name.strip())
    return cid


def update_client(client_id: int, name: str, phone: str, email: str | None = None,
                  address: str | None = None, notes: str | None = None) -> None:
    db.execute(
        "UPDATE clients SET name=?, phone=?, email=?, address=?, notes=? WHERE id=?",
        (name.strip(), phone.strip(), email, address, notes, client_id),
    )


def delete_client(client_id: int) -> None:
    db.execute("DELETE FROM clients WHERE id = ?", (client_id,))
    logger.info("Deleted client %s", client_id)


# ---------- Services ----------

def _service(row: sqlite3.Row) -> Service:
    return Service(
        id=row["id"],
        title=row["title"],
        price=float(row["price"]),
        duration_minutes=int(row["duration_minutes"] or 0),
        description=row["description"],
    )


def list_services() -> list[Service]:
    return [_service(r) for r in db.fetch_all("SELECT * FROM services ORDER BY title COLLATE NOCASE ASC")]


def create_service(title: str, price: float, duration_minutes: int = 60, description: str | None = None) -> int:
    return db.execute(
        "INSERT INTO services(title, description, price, duration_minutes) VALUES(?,?,?,?)",
        (title.strip(), description, float(price), int(duration_minutes)),
    )


def update_service(service_id: int, title: str, price: float, duration_minutes: int = 60,
                   description: str | None = None) -> None:
    db.execute(
        "UPDATE services SET title=?, description=?, price=?, duration_minutes=? WHERE id=?",
        (title.strip(), description, float(price), int(duration_minutes), service_id),
    )


def delete_service(service_id: int) -> None:
    db.execute("DELETE FROM services WHERE id = ?", (service_id,))


# ---------- Membership plans ----------

def _plan(row: sqlite3.Row) -> MembershipPlan:
    return MembershipPlan(
        id=row["id"],
        name=row["name"],
        price=float(row["price"]),
        allotments=_load_allotments(row["allotments"]) or {},
        timing=row["timing"],
        therapy_details=row["therapy_details"],
    )


def list_plans() -> list[MembershipPlan]:
    return [_plan(r) for r in db.fetch_all("SELECT * FROM membership_plans ORDER BY id ASC")]


def get_plan(plan_id: int) -> MembershipPlan | None:
    row = db.fetch_one("SELECT * FROM membership_plans WHERE id = ?", (plan_id,))
    return _plan(row) if row else None


def create_plan(name: str, price: float, allotments: dict[str, int], timing: str | None = None,
                therapy_details: str | None = None) -> int:
    pid = db.execute(
        "INSERT INTO membership_plans(name, price, allotments, timing, therapy_details) VALUES(?,?,?,?,?)",
        (name.strip(), float(price), _dump_allotments(allotments), timing, therapy_details),
    )
    logger.info("Created membership plan %s (%s) with %s", pid, name.strip(), allotments)
    return pid


def update_plan(plan_id: int, name: str, price: float, allotments: dict[str, int],
                timing: str | None = None, therapy_details: str | None = None) -> None:
    # Existing purchases keep their own snapshot, so this does not change past entitlements
    db.execute(
        "UPDATE membership_plans SET name=?, price=?, allotments=?, timing=?, therapy_details=? WHERE id=?",
        (name.strip(), float(price), _dump_allotments(allotments), timing, therapy_details, plan_id),
    )
    logger.info("Updated membership plan %s: %s", plan_id, allotments)


def delete_plan(plan_id: int) -> None:
    db.execute("DELETE FROM membership_plans WHERE id = ?", (plan_id,))
    logger.info("Deleted membership plan %s", plan_id)


# ---------- Staff ----------

def _staff(row: sqlite3.Row) -> StaffMember:
    return StaffMember(
        id=row["id"],
        name=row["name"],
        role=row["role"],
        phone=row["phone"],
        email=row["email"],
        active=bool(row["active"]),
    )


def list_staff() -> list[StaffMember]:
    return [_staff(r) for r in db.fetch_all("SELECT * FROM staff ORDER BY name COLLATE NOCASE ASC")]


def create_staff(name: str, role: str | None = None, phone: str | None = None,
                 email: str | None = None, active: bool = True) -> int:
    return db.execute(
        "INSERT INTO staff(name, role, phone, email, active) VALUES(?,?,?,?,?)",
        (name.strip(), role, phone, email, int(active)),
    )


def update_staff(staff_id: int, name: str, role: str | None = None, phone: str | None = None,
                 email: str | None = None, active: bool = True) -> None:
    db.execute(
        "UPDATE staff SET name=?, role=?, phone=?, email=?, active=? WHERE id=?",
        (name.strip(), role, phone, email, int(active), staff_id),
    )


def delete_staff(staff_id: int) -> None:
    db.execute("DELETE FROM staff WHERE id = ?", (staff_id,))


# ---------- Bills ----------

def _item(row: sqlite3.Row) -> BillItem:
    if row["item_type"] == "membership":
        return MembershipItem(
            membership_id=row["membership_id"],
            name=row["name"] or "",
            price=float(row["price"]),
            allotments=_load_allotments(row["allotments"]),
            quantity=int(row["quantity"]),
        )
    return ServiceItem(
        service_id=row["service_id"],
        name=row["name"] or "",
        price=float(row["price"]),
        quantity=int(row["quantity"]),
        discount_percent=float(row["discount_percent"] or 0),
        membership_purchase_id=row["membership_purchase_id"],
        membership_used=bool(row["membership_used"]),
    )


def _bill(row: sqlite3.Row, items: list[BillItem]) -> Bill:
    return Bill(
        id=row["id"],
        client_id=row["client_id"],
        client_name=row["client_name"],
        client_phone=row["client_phone"],
        client_address=row["client_address"],
        items=tuple(items),
        total=float(row["total"]),
        discount_percent=float(row["discount_percent"] or 0),
        date_from=row["date_from"],
        time_from=row["time_from"],
        time_to=row["time_to"],
        payment_method=row["payment_method"],
        created_at=row["created_at"],
    )


def list_bills() -> list[Bill]:
    with db.get_conn() as conn:
        rows = conn.execute("SELECT * FROM bills ORDER BY date_from DESC, id DESC").fetchall()
        item_rows = conn.execute("SELECT * FROM bill_items ORDER BY bill_id, position").fetchall()
    items: dict[int, list[BillItem]] = {}
    for r in item_rows:
        items.setdefault(r["bill_id"], []).append(_item(r))
    return [_bill(r, items.get(r["id"], [])) for r in rows]


def get_bill(bill_id: int | str) -> Bill | None:
    with db.get_conn() as conn:
        row = conn.execute("SELECT * FROM bills WHERE id = ?", (bill_id,)).fetchone()
        if not row:
            return None
        item_rows = conn.execute(
            "SELECT * FROM bill_items WHERE bill_id = ? ORDER BY position", (bill_id,)
        ).fetchall()
    return _bill(row, [_item(r) for r in item_rows])


def _item_params(bill_id: int, position: int, item: BillItem) -> tuple:
    if isinstance(item, MembershipItem):
        return (bill_id, position, "membership", None, item.membership_id, item.name, item.quantity,
                float(item.price), 0.0, _dump_allotments(item.allotments), None, 0)
    return (bill_id, position, "service", item.service_id, None, item.name, item.quantity,
            float(item.price), float(item.discount_percent), None, item.membership_purchase_id,
            int(item.membership_used))


def create_bill(bill: Bill) -> int:
    """Insert a bill and its items in one transaction; returns the new bill id."""
    with db.get_conn() as conn:
        cur = conn.execute(
            """
            INSERT INTO bills(client_id, client_name, client_phone, client_address, total, discount_percent,
                date_from, time_from, time_to, payment_method, created_at)
            VALUES(?,?,?,?,?,?,?,?,?,?,?)
            """,
            (bill.client_id, bill.client_name.strip(), bill.client_phone, bill.client_address,
             float(bill.total), float(bill.discount_percent), bill.date_from, bill.time_from,
             bill.time_to, bill.payment_method, bill.created_at or _now()),
        )
        bill_id = cur.lastrowid
        conn.executemany(
            """
            INSERT INTO bill_items(bill_id, position, item_type, service_id, membership_id, name, quantity,
                price, discount_percent, allotments, membership_purchase_id, membership_used)
            VALUES(?,?,?,?,?,?,?,?,?,?,?,?)
            """,
            [_item_params(bill_id, pos, it) for pos, it in enumerate(bill.items)],
        )
    logger.info("Created %s bill %s for %s (total %.2f)", bill.kind, bill_id, bill.client_name, bill.total)
    return bill_id


def update_bill(bill_id: int, client_name: str, client_phone: str | None, date_from: str,
                total: float, payment_method: str) -> None:
    db.execute(
        "UPDATE bills SET client_name=?, client_phone=?, date_from=?, total=?, payment_method=? WHERE id=?",
        (client_name.strip(), client_phone, date_from, float(total), payment_method, bill_id),
    )
    logger.info("Updated bill %s", bill_id)


def delete_bill(bill_id: int) -> int:
    """Delete a bill (items cascade) together with usage rows logged against it. Returns usages removed."""
    with db.get_conn() as conn:
        cur = conn.execute("DELETE FROM service_usages WHERE membership_purchase_bill_id = ?", (bill_id,))
        removed = cur.rowcount
        conn.execute("DELETE FROM bills WHERE id = ?", (bill_id,))
    logger.info("Deleted bill %s (%d usage rows removed)", bill_id, removed)
    return removed


# ---------- Service usages ----------

def _usage(row: sqlite3.Row) -> ServiceUsage:
    return ServiceUsage(
        id=row["id"],
        membership_purchase_bill_id=row["membership_purchase_bill_id"],
        client_id=row["client_id"],
        membership_plan_id=row["membership_plan_id"],
        service_category=row["service_category"],
        service_label=row["service_label"],
        date=row["date"],
        from_time=row["from_time"],
        to_time=row["to_time"],
        notes=row["notes"],
    )


def list_usages() -> list[ServiceUsage]:
    # Insertion order matters for slot matching
    return [_usage(r) for r in db.fetch_all("SELECT * FROM service_usages ORDER BY id ASC")]


def create_usage(usage: ServiceUsage) -> int:
    return db.execute(
        """
        INSERT INTO service_usages(membership_purchase_bill_id, client_id, membership_plan_id,
            service_category, service_label, date, from_time, to_time, notes, created_at)
        VALUES(?,?,?,?,?,?,?,?,?,?)
        """,
        (usage.membership_purchase_bill_id, usage.client_id, usage.membership_plan_id,
         usage.service_category, usage.service_label, usage.date, usage.from_time,
         usage.to_time, usage.notes, _now()),
    )


def delete_usage(usage_id: int) -> None:
    db.execute("DELETE FROM service_usages WHERE id = ?", (usage_id,))


# ---------- Page snapshot ----------

@dataclass(frozen=True)
class Snapshot:
    clients: list[Client]
    services: list[Service]
    plans: list[MembershipPlan]
    staff: list[StaffMember]
    bills: list[Bill]
    usages: list[ServiceUsage]


def snapshot() -> Snapshot:
    """Fetch every collection a page may need in one go."""
    return Snapshot(
        clients=list_clients(),
        services=list_services(),
        plans=list_plans(),
        staff=list_staff(),
        bills=list_bills(),
        usages=list_usages(),
    )
