import itertools

import pytest

import membership
import store
from models import Bill, Client, MembershipItem, MembershipPlan, ServiceItem, ServiceUsage


def usage(category, label, bill_id=1, uid=None):
    return ServiceUsage(id=uid, membership_purchase_bill_id=bill_id, service_category=category,
                        service_label=label, date="2026-10-01")


def purchase(bill_id=1, plan_id=10, allotments=None, client_id=None, name="Priya", phone="9800000001"):
    return Bill(
        id=bill_id,
        client_id=client_id,
        client_name=name,
        client_phone=phone,
        items=(MembershipItem(membership_id=plan_id, name="Silver", price=4999, allotments=allotments),),
        total=4999,
        date_from="2026-10-01",
    )


PLANS = [MembershipPlan(id=10, name="Silver", price=4999, allotments={"spa": 2, "jacuzzi": 1, "hamam": 0})]


# ---------- slot list ----------

def test_slot_list_example():
    slots = membership.get_slot_list({"spa": 2, "jacuzzi": 1, "hamam": 0})
    assert [s.label for s in slots] == ["SPA Session 1", "SPA Session 2", "Jacuzzi 1"]
    assert [s.id for s in slots] == ["spa_1", "spa_2", "jacuzzi_1"]
    assert [s.type for s in slots] == ["spa", "spa", "jacuzzi"]


def test_slot_list_counts_and_order():
    for spa, jac, ham in itertools.product(range(4), repeat=3):
        slots = membership.get_slot_list({"hamam": ham, "spa": spa, "jacuzzi": jac})
        assert len(slots) == spa + jac + ham
        labels = [s.label for s in slots]
        expected = ([f"SPA Session {n}" for n in range(1, spa + 1)]
                    + [f"Jacuzzi {n}" for n in range(1, jac + 1)]
                    + [f"Hamam {n}" for n in range(1, ham + 1)])
        assert labels == expected


def test_slot_list_is_deterministic():
    allotments = {"spa": 3, "jacuzzi": 2, "hamam": 1}
    assert membership.get_slot_list(allotments) == membership.get_slot_list(allotments)


def test_slot_list_empty_when_all_zero():
    assert membership.get_slot_list({"spa": 0, "jacuzzi": 0, "hamam": 0}) == []
    assert membership.get_slot_list({}) == []
    assert membership.get_slot_list(None) == []


def test_slot_list_ignores_negative_and_junk_counts():
    slots = membership.get_slot_list({"spa": -2, "jacuzzi": "x", "hamam": 1})
    assert [s.id for s in slots] == ["hamam_1"]


def test_slot_list_extra_categories_come_last():
    slots = membership.get_slot_list({"steam": 1, "spa": 1})
    assert [(s.id, s.label) for s in slots] == [("spa_1", "SPA Session 1"), ("steam_1", "Steam 1")]


def test_slot_list_accepts_display_names():
    slots = membership.get_slot_list({"SPA": 1, "Jacuzzi": 1})
    assert [s.id for s in slots] == ["spa_1", "jacuzzi_1"]


# ---------- matcher ----------

def test_checked_map_exact_label():
    slots = membership.get_slot_list({"spa": 2, "jacuzzi": 1, "hamam": 0})
    checked = membership.get_usage_checked_map(slots, [usage("SPA", "SPA Session 2")])
    assert checked == {"spa_1": False, "spa_2": True, "jacuzzi_1": False}


def test_checked_map_duplicate_label_falls_back_to_category():
    slots = membership.get_slot_list({"spa": 2, "jacuzzi": 1, "hamam": 0})
    rows = [usage("SPA", "SPA Session 1"), usage("SPA", "SPA Session 1")]
    assert membership.assign_slots(slots, rows) == ["spa_1", "spa_2"]
    assert membership.get_usage_checked_map(slots, rows) == {"spa_1": True, "spa_2": True, "jacuzzi_1": False}


def test_checked_map_unmatched_row_checks_nothing():
    slots = membership.get_slot_list({"spa": 1})
    rows = [usage("Hamam", "Hamam 1")]
    assert membership.get_usage_checked_map(slots, rows) == {"spa_1": False}
    assert membership.assign_slots(slots, rows) == [None]


def test_free_form_label_takes_first_free_slot_of_its_category():
    slots = membership.get_slot_list({"spa": 2})
    # "SPA 60 Min" matches no label, so it takes spa_1 by category; the exact label then finds spa_2
    rows = [usage("SPA", "SPA 60 Min"), usage("SPA", "SPA Session 2")]
    assert membership.assign_slots(slots, rows) == ["spa_1", "spa_2"]


def test_no_slot_claimed_twice():
    slots = membership.get_slot_list({"spa": 2, "jacuzzi": 2, "hamam": 1})
    labels = [s.label for s in slots] + ["SPA 60 Min", "Steam"]
    categories = ["SPA", "Jacuzzi", "Hamam", "Steam"]
    for combo in itertools.product(range(len(labels)), range(len(categories)), repeat=2):
        rows = [usage(categories[combo[1]], labels[combo[0]]), usage(categories[combo[3]], labels[combo[2]]),
                usage(categories[combo[1]], labels[combo[0]])]
        assigned = [a for a in membership.assign_slots(slots, rows) if a is not None]
        assert len(assigned) == len(set(assigned))
        assert sum(membership.get_usage_checked_map(slots, rows).values()) == len(assigned)


def test_category_match_is_case_insensitive():
    slots = membership.get_slot_list({"jacuzzi": 1})
    assert membership.get_usage_checked_map(slots, [usage("JACUZZI", "whatever")]) == {"jacuzzi_1": True}


# ---------- ids ----------

@pytest.mark.parametrize("value, expected", [
    (5, "5"),
    ("5", "5"),
    ({"_id": "abc"}, "abc"),
    ({"id": 7}, "7"),
    ({"_id": None, "id": 7}, "7"),
    (None, None),
    ("", None),
    ({}, None),
])
def test_id_of(value, expected):
    assert membership.id_of(value) == expected


def test_id_of_objects():
    assert membership.id_of(purchase(bill_id=42)) == "42"


def test_same_id_normalises_both_sides():
    assert membership.same_id({"_id": "3"}, 3)
    assert membership.same_id(purchase(bill_id=3), "3")
    assert not membership.same_id(None, None)
    assert not membership.same_id({"name": "x"}, "x")


# ---------- entitlement ----------

def test_entitlement_from_snapshot():
    bill = purchase(allotments={"spa": 2, "jacuzzi": 1, "hamam": 0})
    ent = membership.get_entitlement(bill, PLANS, [usage("SPA", "SPA Session 1")])
    assert (ent.allocated, ent.used, ent.remaining) == (3, 1, 2)
    assert not ent.plan_missing
    assert not ent.over_used


def test_entitlement_unmatched_usage_still_counts():
    bill = purchase(allotments={"spa": 1})
    ent = membership.get_entitlement(bill, [], [usage("Hamam", "Hamam 1")])
    assert (ent.allocated, ent.used, ent.remaining) == (1, 1, 0)


def test_entitlement_all_zero():
    bill = purchase(allotments={"spa": 0, "jacuzzi": 0, "hamam": 0})
    empty = [MembershipPlan(id=10, name="Silver", price=4999, allotments={"spa": 0, "jacuzzi": 0, "hamam": 0})]
    ent = membership.get_entitlement(bill, empty, [])
    assert (ent.allocated, ent.used, ent.remaining) == (0, 0, 0)


def test_entitlement_falls_back_to_live_plan():
    bill = purchase(allotments=None)
    ent = membership.get_entitlement(bill, PLANS, [])
    assert ent.allocated == 3


def test_nonzero_snapshot_wins_over_later_plan_edit():
    bill = purchase(allotments={"spa": 1, "jacuzzi": 2, "hamam": 1})
    edited = [MembershipPlan(id=10, name="Silver", price=4999, allotments={"spa": 5, "jacuzzi": 5, "hamam": 5})]
    assert membership.get_entitlement(bill, edited, []).allocated == 4


def test_zero_snapshot_count_uses_plan():
    bill = purchase(allotments={"spa": 0, "jacuzzi": 1, "hamam": 0})
    ent = membership.get_entitlement(bill, PLANS, [])
    assert (ent.allocated, ent.remaining) == (3, 3)
    assert membership.allotments_for(bill, PLANS)[0] == {"spa": 2, "jacuzzi": 1, "hamam": 0}


def test_missing_category_in_snapshot_uses_plan():
    bill = purchase(allotments={"spa": 1})
    assert membership.get_entitlement(bill, PLANS, []).allocated == 2


def test_unknown_plan_is_flagged():
    bill = purchase(plan_id=99, allotments=None)
    ent = membership.get_entitlement(bill, PLANS, [])
    assert ent.plan_missing
    assert (ent.allocated, ent.remaining) == (0, 0)


def test_over_used_clamps_remaining():
    bill = purchase(allotments={"spa": 1})
    rows = [usage("SPA", "SPA Session 1"), usage("SPA", "SPA Session 2"), usage("SPA", "SPA Session 3")]
    ent = membership.get_entitlement(bill, PLANS, rows)
    assert ent.remaining == 0
    assert ent.used == 3
    assert ent.over_used


def test_used_counts_only_rows_for_this_purchase():
    bill = purchase(bill_id=1, allotments={"spa": 3})
    rows = [usage("SPA", "SPA Session 1", bill_id="1"), usage("SPA", "SPA Session 1", bill_id=2),
            usage("SPA", "SPA Session 2", bill_id={"_id": 1})]
    assert membership.get_entitlement(bill, PLANS, rows).used == 2


def test_remaining_never_negative():
    for allocated, used in itertools.product(range(4), range(6)):
        bill = purchase(allotments={"spa": allocated})
        rows = [usage("SPA", f"SPA Session {n}") for n in range(used)]
        ent = membership.get_entitlement(bill, [], rows)
        assert ent.remaining == max(0, allocated - used)


def test_service_bill_has_no_entitlement():
    bill = Bill(id=5, client_name="x", items=(ServiceItem(service_id=1, name="Head", price=499),),
                total=499, date_from="2026-10-01")
    ent = membership.get_entitlement(bill, PLANS, [])
    assert (ent.allocated, ent.remaining) == (0, 0)


# ---------- client purchases ----------

def test_active_purchases_gate_on_remaining():
    full = purchase(bill_id=1, allotments={"spa": 1}, client_id=7)
    open_ = purchase(bill_id=2, allotments={"spa": 2}, client_id=7)
    other = purchase(bill_id=3, allotments={"spa": 2}, client_id=8)
    rows = [usage("SPA", "SPA Session 1", bill_id=1)]
    client = Client(id=7, name="Priya", phone="9800000001")
    active = membership.active_purchases([full, open_, other], [], rows, client)
    assert [b.id for b, _ in active] == [2]
    assert active[0][1].remaining == 2


def test_purchases_match_by_name_or_phone_without_ids():
    bills = [purchase(bill_id=1, name="Priya", phone="111"), purchase(bill_id=2, name="Rahul", phone="222")]
    assert [b.id for b in membership.purchases_for_client(bills, "222")] == [2]
    assert [b.id for b in membership.purchases_for_client(bills, Client(id=None, name="Priya", phone=""))] == [1]


# ---------- logging usage ----------

def _sell(allotments):
    plan_id = store.create_plan("Silver", 4999, allotments)
    bill_id = store.create_bill(Bill(
        id=None, client_name="Priya", client_phone="111", total=4999, date_from="2026-10-01",
        items=(MembershipItem(membership_id=plan_id, name="Silver", price=4999, allotments=dict(allotments)),),
    ))
    return plan_id, bill_id


def test_log_usage_records_and_fills_slot(tmp_db):
    plan_id, bill_id = _sell({"spa": 2})
    uid = membership.log_usage(bill_id, None, plan_id, "SPA", "SPA Session 2", "2026-10-02", "10:00", "11:00")
    rows = store.list_usages()
    assert [u.id for u in rows] == [uid]
    assert rows[0].membership_plan_id == plan_id
    bill = store.get_bill(bill_id)
    _, checked = membership.purchase_slots(bill, store.list_plans(), rows)
    assert checked == {"spa_1": False, "spa_2": True}


def test_log_usage_refuses_when_nothing_remains(tmp_db):
    plan_id, bill_id = _sell({"spa": 1})
    membership.log_usage(bill_id, None, plan_id, "SPA", "SPA Session 1", "2026-10-02")
    with pytest.raises(membership.UsageError):
        membership.log_usage(bill_id, None, plan_id, "SPA", "SPA Session 1", "2026-10-03")


def test_log_usage_rejects_unknown_purchase_and_blank_fields(tmp_db):
    with pytest.raises(membership.UsageError):
        membership.log_usage(12345, None, None, "SPA", "SPA Session 1", "2026-10-02")
    plan_id, bill_id = _sell({"spa": 1})
    with pytest.raises(membership.UsageError):
        membership.log_usage(bill_id, None, plan_id, "", "SPA Session 1", "2026-10-02")
    with pytest.raises(membership.UsageError):
        membership.log_usage(bill_id, None, plan_id, "SPA", "  ", "2026-10-02")


def test_remove_usage_frees_the_slot(tmp_db):
    plan_id, bill_id = _sell({"spa": 1})
    uid = membership.log_usage(bill_id, None, plan_id, "SPA", "SPA Session 1", "2026-10-02")
    membership.remove_usage(uid)
    ent = membership.get_entitlement(store.get_bill(bill_id), store.list_plans(), store.list_usages())
    assert ent.remaining == 1
