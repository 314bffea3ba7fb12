"""
billing.py
Creating service bills and membership-purchase bills.

A service bill paid through a membership is only tagged with the purchase id; the
session itself is counted through the usage row logged for the chosen slot.
"""

from __future__ import annotations

import logging

import membership
import store
from models import Bill, Client, MembershipItem, MembershipPlan, Service, ServiceItem, Slot, category_name

logger = logging.getLogger(__name__)


class BillingError(ValueError):
    """A bill could not be created."""


def compute_net_amount(amount, discount_percent=0) -> float:
    amt = float(amount or 0)
    disc = float(discount_percent or 0)
    if disc <= 0:
        return round(amt, 2)
    return round(amt - amt * disc / 100, 2)


def build_service_item(service: Service, price: float, discount_percent: float = 0.0,
                       membership_purchase_id=None) -> ServiceItem:
    return ServiceItem(
        service_id=service.id,
        name=service.title,
        price=float(price),
        discount_percent=float(discount_percent or 0),
        membership_purchase_id=membership.id_of(membership_purchase_id),
        membership_used=membership_purchase_id is not None,
    )


def build_membership_item(plan: MembershipPlan) -> MembershipItem:
    # Copy so later plan edits never touch this purchase
    return MembershipItem(
        membership_id=plan.id,
        name=plan.name,
        price=float(plan.price),
        allotments=dict(plan.allotments),
    )


def validate_service_bill(client: Client | None, service: Service | None, amount, discount_percent,
                          date_from: str, time_from: str, time_to: str) -> list[str]:
    errors: list[str] = []
    if client is None or not client.name.strip():
        errors.append("Client is required.")
    if service is None:
        errors.append("Service is required.")
    try:
        if float(amount) <= 0:
            errors.append("Amount must be > 0.")
    except (TypeError, ValueError):
        errors.append("Amount must be numeric.")
    try:
        disc = float(discount_percent or 0)
        if disc < 0 or disc > 100:
            errors.append("Discount must be between 0 and 100.")
    except (TypeError, ValueError):
        errors.append("Discount must be numeric.")
    if not (date_from or "").strip():
        errors.append("Date is required.")
    if not (time_from or "").strip() or not (time_to or "").strip():
        errors.append("From/to times are required.")
    return errors


def create_service_bill(
    client: Client,
    service: Service,
    amount,
    date_from: str,
    time_from: str,
    time_to: str,
    discount_percent=0,
    payment_method: str = "cash",
    membership_purchase_id=None,
    slot: Slot | None = None,
    notes: str | None = None,
) -> int:
    """
    Create a service bill. When `membership_purchase_id` is given the bill is paid from that
    purchase: it must still have sessions left, `slot` must be one of its free slots, and a
    usage row is logged for that slot once the bill exists.
    """
    errors = validate_service_bill(client, service, amount, discount_percent, date_from, time_from, time_to)
    if errors:
        raise BillingError(" ".join(errors))

    purchase = None
    if membership_purchase_id is not None:
        snap = store.snapshot()
        offered = membership.active_purchases(snap.bills, snap.plans, snap.usages, client)
        purchase = next((b for b, _ in offered if membership.same_id(b.id, membership_purchase_id)), None)
        if purchase is None:
            raise BillingError("Selected membership has no sessions remaining for this client.")
        if slot is None:
            raise BillingError("Pick the membership session this service uses.")
        slots, checked = membership.purchase_slots(purchase, snap.plans, snap.usages)
        if slot.id not in {s.id for s in membership.free_slots(slots, checked)}:
            raise BillingError(f"{slot.label} is already used on this membership.")

    item = build_service_item(service, float(amount), discount_percent,
                              membership_purchase_id=purchase.id if purchase else None)
    bill_id = store.create_bill(Bill(
        id=None,
        client_id=client.id,
        client_name=client.name,
        client_phone=client.phone,
        client_address=client.address,
        items=(item,),
        total=0.0 if purchase else compute_net_amount(amount, discount_percent),
        discount_percent=float(discount_percent or 0),
        date_from=date_from,
        time_from=time_from,
        time_to=time_to,
        payment_method="membership" if purchase else payment_method,
    ))

    if purchase is not None:
        try:
            membership.log_usage(
                membership_purchase_bill_id=purchase.id,
                client_id=client.id,
                membership_plan_id=purchase.membership_item.membership_id,
                category=category_name(slot.type),
                label=slot.label,
                date=date_from,
                from_time=time_from,
                to_time=time_to,
                notes=notes or f"{service.title} (bill #{bill_id})",
            )
        except membership.UsageError as e:
            # A membership bill without its usage row would be a free service
            store.delete_bill(bill_id)
            logger.warning("Rolled back bill %s: %s", bill_id, e)
            raise BillingError(str(e)) from e
    return bill_id


def create_membership_bill(client: Client, plan: MembershipPlan, date_from: str,
                           payment_method: str = "cash", discount_percent=0) -> int:
    if client is None or not client.name.strip():
        raise BillingError("Client is required.")
    if plan is None:
        raise BillingError("Membership plan is required.")
    if not (date_from or "").strip():
        raise BillingError("Date is required.")
    item = build_membership_item(plan)
    bill_id = store.create_bill(Bill(
        id=None,
        client_id=client.id,
        client_name=client.name,
        client_phone=client.phone,
        client_address=client.address,
        items=(item,),
        total=compute_net_amount(plan.price, discount_percent),
        discount_percent=float(discount_percent or 0),
        date_from=date_from,
        payment_method=payment_method,
    ))
    logger.info("Client %s bought plan %s (%d sessions)", client.name, plan.name, plan.total_sessions)
    return bill_id


def delete_bill(bill_id: int) -> None:
    store.delete_bill(bill_id)
