"""
membership.py
Membership accounting: slot lists, usage-to-slot matching, entitlements, usage logging.

Usage rows carry a category and a human label rather than a slot index, because slot
indices are derived from allotments that may change. The matcher reconciles the two
on every render.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

import store
from models import (
    CATEGORIES,
    Bill,
    Client,
    Entitlement,
    MembershipPlan,
    ServiceUsage,
    Slot,
    category_key,
)

logger = logging.getLogger(__name__)


class UsageError(ValueError):
    """A session could not be logged against a membership purchase."""


def id_of(x) -> str | None:
    """Normalise an embedded record or a raw id to a string id (None if there is none)."""
    if x is None:
        return None
    if isinstance(x, Mapping):
        x = x.get("_id") if x.get("_id") is not None else x.get("id")
    elif hasattr(x, "id") and not isinstance(x, (str, int)):
        x = getattr(x, "id")
    if x is None or x == "":
        return None
    return str(x)


def same_id(a, b) -> bool:
    left, right = id_of(a), id_of(b)
    return left is not None and left == right


def _count(value) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def get_slot_list(allotments: Mapping[str, int] | None) -> list[Slot]:
    """
    Expand per-category session counts into named slots.
    {"spa": 2, "jacuzzi": 1} -> spa_1 "SPA Session 1", spa_2 "SPA Session 2", jacuzzi_1 "Jacuzzi 1"
    """
    counts: dict[str, int] = {}
    for key, value in (allotments or {}).items():
        k = category_key(key)
        if not k:
            continue
        counts[k] = counts.get(k, 0) + _count(value)

    known = [c.key for c in CATEGORIES]
    order = known + sorted(k for k in counts if k not in known)

    slots: list[Slot] = []
    for key in order:
        prefix = next((c.slot_prefix for c in CATEGORIES if c.key == key), key.title())
        for n in range(1, counts.get(key, 0) + 1):
            slots.append(Slot(id=f"{key}_{n}", label=f"{prefix} {n}", type=key))
    return slots


def assign_slots(slots: Sequence[Slot], usages: Iterable[ServiceUsage]) -> list[str | None]:
    """
    For each usage (in log order) return the slot id it occupies, or None.
    Exact label match on a free slot wins; otherwise the first free slot of the same category.
    """
    consumed: set[int] = set()
    assigned: list[str | None] = []
    for usage in usages:
        idx = next(
            (i for i, s in enumerate(slots) if i not in consumed and s.label == usage.service_label),
            None,
        )
        if idx is None:
            wanted = category_key(usage.service_category)
            idx = next(
                (i for i, s in enumerate(slots) if i not in consumed and s.type == wanted),
                None,
            )
        if idx is None:
            logger.debug("Usage %s (%s / %s) matches no free slot",
                         usage.id, usage.service_category, usage.service_label)
            assigned.append(None)
            continue
        consumed.add(idx)
        assigned.append(slots[idx].id)
    return assigned


def get_usage_checked_map(slots: Sequence[Slot], usages: Iterable[ServiceUsage]) -> dict[str, bool]:
    checked = {s.id: False for s in slots}
    for slot_id in assign_slots(slots, usages):
        if slot_id is not None:
            checked[slot_id] = True
    return checked


def free_slots(slots: Sequence[Slot], checked: Mapping[str, bool]) -> list[Slot]:
    return [s for s in slots if not checked.get(s.id)]


def find_plan(plans: Iterable[MembershipPlan], plan_id) -> MembershipPlan | None:
    return next((p for p in plans if same_id(p.id, plan_id)), None)


def allotments_for(bill: Bill, plans: Iterable[MembershipPlan]) -> tuple[dict[str, int], bool]:
    """
    Per-category allotments of a membership purchase and whether its plan is missing.
    A non-zero count in the purchase snapshot wins; a zero or absent one falls back to the live plan.
    """
    item = bill.membership_item
    if item is None:
        return {}, False
    plan = find_plan(plans, item.membership_id)
    plan_missing = plan is None
    if plan_missing:
        logger.warning("Bill %s references unknown membership plan %s", bill.id, item.membership_id)

    live = {category_key(k): _count(v) for k, v in (plan.allotments if plan else {}).items()}
    snap = {category_key(k): _count(v) for k, v in (item.allotments or {}).items()}
    result = {k: snap.get(k) or live.get(k, 0) for k in {**live, **snap}}
    return result, plan_missing


def usages_for_purchase(bill: Bill | int | str, usages: Iterable[ServiceUsage]) -> list[ServiceUsage]:
    return [u for u in usages if same_id(u.membership_purchase_bill_id, bill)]


def get_entitlement(bill: Bill, plans: Iterable[MembershipPlan], usages: Iterable[ServiceUsage]) -> Entitlement:
    allotments, plan_missing = allotments_for(bill, plans)
    allocated = sum(allotments.values())
    used = len(usages_for_purchase(bill, usages))
    return Entitlement(
        allocated=allocated,
        used=used,
        remaining=max(0, allocated - used),
        plan_missing=plan_missing,
    )


def purchase_slots(bill: Bill, plans: Iterable[MembershipPlan],
                   usages: Iterable[ServiceUsage]) -> tuple[list[Slot], dict[str, bool]]:
    """Slot list and checked map for one purchase."""
    allotments, _ = allotments_for(bill, plans)
    slots = get_slot_list(allotments)
    return slots, get_usage_checked_map(slots, usages_for_purchase(bill, usages))


def _matches_client(bill: Bill, client: Client | str) -> bool:
    if isinstance(client, Client):
        if client.id is not None and bill.client_id is not None:
            return same_id(bill.client_id, client.id)
        keys = {client.name.strip(), (client.phone or "").strip()} - {""}
    else:
        keys = {str(client).strip()} - {""}
    return bool(keys) and ((bill.client_name or "").strip() in keys or (bill.client_phone or "").strip() in keys)


def purchases_for_client(bills: Iterable[Bill], client: Client | str) -> list[Bill]:
    """Membership-purchase bills belonging to a client (by id, or by name/phone)."""
    return [b for b in bills if b.is_membership_purchase and _matches_client(b, client)]


def active_purchases(bills: Iterable[Bill], plans: Sequence[MembershipPlan], usages: Sequence[ServiceUsage],
                     client: Client | str) -> list[tuple[Bill, Entitlement]]:
    """Purchases of a client that still have sessions left; these may pay for a service bill."""
    result = []
    for bill in purchases_for_client(bills, client):
        ent = get_entitlement(bill, plans, usages)
        if ent.remaining > 0:
            result.append((bill, ent))
    return result


def log_usage(
    membership_purchase_bill_id: int | str,
    client_id: int | str | None,
    membership_plan_id: int | str | None,
    category: str,
    label: str,
    date: str,
    from_time: str | None = None,
    to_time: str | None = None,
    notes: str | None = None,
) -> int:
    """Record one consumed session against a membership purchase. Returns the usage id."""
    if not (category or "").strip():
        raise UsageError("Service category is required.")
    if not (label or "").strip():
        raise UsageError("Session label is required.")
    if not (date or "").strip():
        raise UsageError("Date is required.")

    bill_id = id_of(membership_purchase_bill_id)
    bill = store.get_bill(bill_id) if bill_id is not None else None
    if bill is None or not bill.is_membership_purchase:
        raise UsageError("Membership purchase not found.")

    usages = store.list_usages()
    ent = get_entitlement(bill, store.list_plans(), usages)
    if ent.remaining <= 0:
        raise UsageError("No sessions remaining on this membership.")

    usage_id = store.create_usage(ServiceUsage(
        id=None,
        membership_purchase_bill_id=bill.id,
        client_id=client_id if client_id is not None else bill.client_id,
        membership_plan_id=membership_plan_id if membership_plan_id is not None else bill.membership_item.membership_id,
        service_category=category.strip(),
        service_label=label.strip(),
        date=date,
        from_time=from_time,
        to_time=to_time,
        notes=(notes or "").strip() or None,
    ))
    logger.info("Logged usage %s (%s) on purchase %s, %d remaining",
                usage_id, label.strip(), bill.id, ent.remaining - 1)
    return usage_id


def remove_usage(usage_id: int) -> None:
    store.delete_usage(usage_id)
    logger.info("Removed usage %s", usage_id)
