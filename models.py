"""
models.py
Lightweight domain types (catalog, bills, usage logs, derived membership views).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union


@dataclass(frozen=True)
class Category:
    key: str
    name: str
    slot_prefix: str


# Fixed slot order: SPA, then Jacuzzi, then Hamam
CATEGORIES = (
    Category("spa", "SPA", "SPA Session"),
    Category("jacuzzi", "Jacuzzi", "Jacuzzi"),
    Category("hamam", "Hamam", "Hamam"),
)

CATEGORY_BY_KEY = {c.key: c for c in CATEGORIES}

PAYMENT_METHODS = ["cash", "card", "upi", "transfer"]


def category_key(value: str | None) -> str:
    """Map a category key or display name ("SPA", "jacuzzi", ...) to its key."""
    text = (value or "").strip().lower()
    for c in CATEGORIES:
        if text in (c.key, c.name.lower(), c.slot_prefix.lower()):
            return c.key
    return text


def category_name(key: str) -> str:
    c = CATEGORY_BY_KEY.get(key)
    return c.name if c else key.title()


@dataclass(frozen=True)
class Client:
    id: int | None
    name: str
    phone: str
    email: str | None = None
    address: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Service:
    id: int | None
    title: str
    price: float
    duration_minutes: int = 60
    description: str | None = None


@dataclass(frozen=True)
class MembershipPlan:
    id: int | None
    name: str
    price: float
    allotments: dict[str, int] = field(default_factory=dict)
    timing: str | None = None
    therapy_details: str | None = None

    @property
    def total_sessions(self) -> int:
        return sum(max(0, int(v or 0)) for v in self.allotments.values())


@dataclass(frozen=True)
class StaffMember:
    id: int | None
    name: str
    role: str | None = None
    phone: str | None = None
    email: str | None = None
    active: bool = True


@dataclass(frozen=True)
class ServiceItem:
    service_id: int | str | None
    name: str
    price: float
    quantity: int = 1
    discount_percent: float = 0.0
    membership_purchase_id: int | str | None = None
    membership_used: bool = False
    item_type: Literal["service"] = "service"


@dataclass(frozen=True)
class MembershipItem:
    membership_id: int | str | None
    name: str
    price: float
    # Plan allotments copied at purchase time; None when the bill predates snapshots
    allotments: dict[str, int] | None = None
    quantity: int = 1
    item_type: Literal["membership"] = "membership"


BillItem = Union[ServiceItem, MembershipItem]


@dataclass(frozen=True)
class Bill:
    id: int | None
    client_name: str
    items: tuple[BillItem, ...]
    total: float
    date_from: str
    client_id: int | None = None
    client_phone: str | None = None
    client_address: str | None = None
    discount_percent: float = 0.0
    time_from: str | None = None
    time_to: str | None = None
    payment_method: str = "cash"
    created_at: str | None = None

    @property
    def membership_item(self) -> MembershipItem | None:
        for it in self.items:
            if it.item_type == "membership":
                return it
        return None

    @property
    def is_membership_purchase(self) -> bool:
        return self.membership_item is not None

    @property
    def is_service_bill(self) -> bool:
        return any(it.item_type == "service" for it in self.items)

    @property
    def kind(self) -> str:
        if self.is_membership_purchase:
            return "membership"
        return "service" if self.is_service_bill else "other"


@dataclass(frozen=True)
class ServiceUsage:
    id: int | None
    membership_purchase_bill_id: int | str | None
    service_category: str
    service_label: str
    date: str
    client_id: int | str | None = None
    membership_plan_id: int | str | None = None
    from_time: str | None = None
    to_time: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Slot:
    id: str
    label: str
    type: str


@dataclass(frozen=True)
class Entitlement:
    allocated: int
    used: int
    remaining: int
    plan_missing: bool = False

    @property
    def over_used(self) -> bool:
        return self.used > self.allocated
