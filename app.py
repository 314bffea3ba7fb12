"""
app.py
Streamlit Spa Management System (back office).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time

import pandas as pd
import streamlit as st

import auth
import billing
import config
import db
import formatting
import membership
import reports
import store
import utils
from models import CATEGORIES, PAYMENT_METHODS, Client, category_name

config.configure_logging()
logger = logging.getLogger(__name__)

st.set_page_config(page_title=config.APP_TITLE, layout="wide")


def init_once():
    # Initialize DB + default admin if needed
    if not db.is_initialized():
        db.init_db(auth.hash_password(config.DEFAULT_ADMIN_PASSWORD))


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None
    if "role" not in st.session_state:
        st.session_state.role = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.session_state.role = None
    st.success("Logged out.")


def login_screen():
    st.title("🔐 Spa Back Office Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value="admin")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            role = auth.login(username.strip(), password)
            if role:
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.session_state.role = role
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default admin:\n\n"
            "- username: **admin**\n"
            f"- password: **{config.DEFAULT_ADMIN_PASSWORD}**\n\n"
            "You will be forced to change it on first login."
        )


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(new1, new2)
        if errors:
            st.error(errors[0])
            return
        auth.change_password(st.session_state.username, new1)
        st.success("Password updated. You can continue.")
        st.rerun()


# ---------- Page data ----------

@st.cache_data(ttl=config.REFRESH_SECONDS, show_spinner=False)
def load_snapshot() -> store.Snapshot:
    return store.snapshot()


def refresh():
    """Drop cached page data so the next run refetches everything."""
    load_snapshot.clear()


def show_errors(errors: list[str]) -> None:
    for e in errors:
        st.error(e)


def paged_table(df: pd.DataFrame, key: str) -> None:
    rows, pages = utils.paginate(df.to_dict("records"), st.session_state.get(key, 1), config.PAGE_SIZE)
    st.dataframe(pd.DataFrame(rows, columns=df.columns), use_container_width=True, hide_index=True)
    if pages > 1:
        st.session_state[key] = st.number_input("Page", min_value=1, max_value=pages,
                                                value=min(st.session_state.get(key, 1), pages), key=f"{key}_input")
        st.caption(f"Page {st.session_state[key]} of {pages}")


def client_label(c: Client) -> str:
    return f"{c.name} ({c.phone}) - ID {c.id}"


def purchase_label(bill, plans) -> str:
    plan = membership.find_plan(plans, bill.membership_item.membership_id)
    plan_name = plan.name if plan else f"{bill.membership_item.name or 'Unknown plan'} (unknown plan)"
    return f"#{bill.id} {bill.client_name} - {plan_name} ({formatting.date_display(bill.date_from)})"


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")
    snap = load_snapshot()
    today = date.today()

    summary = reports.income_summary(snap.bills, today)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric(f"Daily income ({formatting.date_display(today)})", formatting.currency(summary["day"]))
    c2.metric(f"Week ({formatting.week_range_label(today)})", formatting.currency(summary["week"]))
    c3.metric(f"Month ({formatting.month_label(today)})", formatting.currency(summary["month"]))
    c4.metric(f"Year ({formatting.year_label(today)})", formatting.currency(summary["year"]))

    st.divider()

    sales = reports.membership_sales(snap.bills, snap.plans)
    most, least = reports.most_and_least_selling(sales)
    m1, m2 = st.columns(2)
    with m1:
        st.subheader("Most selling membership")
        if most:
            st.write(f"**{most['plan']}** - {int(most['sold'])} sold")
        else:
            st.caption("No memberships sold yet.")
    with m2:
        st.subheader("Least selling membership")
        if least:
            st.write(f"**{least['plan']}** - {int(least['sold'])} sold")
        else:
            st.caption("No memberships sold yet.")

    if not sales.empty:
        view = sales.drop(columns=["plan_id"]).assign(revenue=sales["revenue"].map(formatting.currency))
        st.dataframe(view, use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("Daily income (last 30 days)")
    daily = reports.daily_income(snap.bills, days=30, today=today)
    daily["date"] = daily["date"].map(formatting.date_display)
    daily["income"] = daily["income"].map(formatting.currency)
    st.dataframe(daily, use_container_width=True, hide_index=True)

    st.subheader("Services sold")
    services = reports.service_sales(snap.bills)
    if services.empty:
        st.caption("No service bills yet.")
    else:
        st.dataframe(services, use_container_width=True, hide_index=True)


def _service_bill_form(snap: store.Snapshot):
    if not snap.clients or not snap.services:
        st.info("Add at least one client and one service first.")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        client = st.selectbox("Client", snap.clients, format_func=client_label, key="sb_client")
        service = st.selectbox(
            "Service", snap.services,
            format_func=lambda s: f"{s.title} - {formatting.currency(s.price)} ({s.duration_minutes} min)",
            key="sb_service",
        )
    with col2:
        amount = st.text_input("Amount", value=f"{service.price:.2f}", key=f"sb_amount_{service.id}")
        discount = st.number_input("Discount %", min_value=0.0, max_value=100.0, value=0.0, step=5.0)
        bill_date = st.date_input("Date", value=date.today(), key="sb_date").isoformat()
    with col3:
        start = st.time_input("From", value=time(10, 0), key="sb_from").strftime("%H:%M")
        auto_end = utils.add_minutes_to_time(start, service.duration_minutes)
        end = st.time_input(
            "To (auto from duration, editable)",
            value=datetime.strptime(auto_end, "%H:%M").time(),
            key=f"sb_to_{service.id}_{start}",
        ).strftime("%H:%M")
        method = st.selectbox("Payment method", PAYMENT_METHODS, key="sb_method")

    offered = membership.active_purchases(snap.bills, snap.plans, snap.usages, client)
    use_membership = st.toggle("Pay with membership", value=False, disabled=not offered)
    if not offered:
        st.caption("This client has no membership with sessions remaining.")

    purchase = slot = None
    if use_membership and offered:
        purchase, ent = st.selectbox(
            "Membership",
            offered,
            format_func=lambda pe: f"{purchase_label(pe[0], snap.plans)} - Remaining {pe[1].remaining}",
        )
        slots, checked = membership.purchase_slots(purchase, snap.plans, snap.usages)
        free = membership.free_slots(slots, checked)
        if free:
            slot = st.selectbox("Session used", free, format_func=lambda s: s.label)
        else:
            st.warning("Every named session on this membership is already logged.")

    errors = billing.validate_service_bill(client, service, amount, discount, bill_date, start, end)
    errors += utils.validate_time_range(start, end)
    if errors:
        show_errors(errors)
    else:
        net = 0.0 if purchase else billing.compute_net_amount(amount, discount)
        st.write(f"Net amount: **{formatting.currency(net)}**")

    if st.button("Create bill", type="primary", disabled=bool(errors)):
        try:
            bill_id = billing.create_service_bill(
                client, service, amount, bill_date, start, end,
                discount_percent=discount,
                payment_method=method,
                membership_purchase_id=purchase.id if purchase else None,
                slot=slot,
            )
        except ValueError as e:
            st.error(str(e))
            return
        refresh()
        st.success(f"Bill #{bill_id} created.")
        st.rerun()


def _membership_bill_form(snap: store.Snapshot):
    if not snap.clients or not snap.plans:
        st.info("Add at least one client and one membership plan first.")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        client = st.selectbox("Client", snap.clients, format_func=client_label, key="mb_client")
    with col2:
        plan = st.selectbox("Plan", snap.plans,
                            format_func=lambda p: f"{p.name} - {formatting.currency(p.price)} ({p.total_sessions} sessions)")
        discount = st.number_input("Discount %", min_value=0.0, max_value=100.0, value=0.0, step=5.0, key="mb_disc")
    with col3:
        bill_date = st.date_input("Date", value=date.today(), key="mb_date").isoformat()
        method = st.selectbox("Payment method", PAYMENT_METHODS, key="mb_method")

    st.caption(", ".join(f"{category_name(k)}: {v}" for k, v in plan.allotments.items()) or "No sessions in this plan.")
    st.write(f"Net amount: **{formatting.currency(billing.compute_net_amount(plan.price, discount))}**")

    if st.button("Sell membership", type="primary"):
        try:
            bill_id = billing.create_membership_bill(client, plan, bill_date, method, discount)
        except ValueError as e:
            st.error(str(e))
            return
        refresh()
        st.success(f"Membership bill #{bill_id} created.")
        st.rerun()


def billing_page():
    st.header("💳 Billing")
    snap = load_snapshot()

    f1, f2 = st.columns([2, 1])
    search = f1.text_input("Search (client/phone)", key="bill_search")
    kind = f2.selectbox("Bill type", ["All", "service", "membership"], key="bill_kind")

    bills = [
        b for b in snap.bills
        if (kind == "All" or b.kind == kind)
        and (not search.strip()
             or search.strip().lower() in (b.client_name or "").lower()
             or search.strip() in (b.client_phone or ""))
    ]
    df = reports.bills_frame(bills)
    df["total"] = df["total"].map(formatting.currency)
    paged_table(df, "bills_page")

    st.divider()

    mode = st.radio("New bill", ["Service", "Membership purchase"], horizontal=True)
    if mode == "Service":
        _service_bill_form(snap)
    else:
        _membership_bill_form(snap)

    st.divider()

    if not bills:
        return
    st.subheader("Edit / delete bill")
    bill = st.selectbox("Bill", bills, format_func=lambda b: f"#{b.id} {b.client_name} - {b.kind} - {formatting.currency(b.total)}")
    c1, c2, c3 = st.columns(3)
    with c1:
        name = st.text_input("Client name", value=bill.client_name, key=f"eb_name_{bill.id}")
        phone = st.text_input("Client phone", value=bill.client_phone or "", key=f"eb_phone_{bill.id}")
    with c2:
        bill_date = st.date_input("Date", value=utils.parse_iso(bill.date_from), key=f"eb_date_{bill.id}").isoformat()
        total = st.text_input("Total", value=f"{bill.total:.2f}", key=f"eb_total_{bill.id}")
    with c3:
        methods = PAYMENT_METHODS + ["membership"]
        method = st.selectbox("Payment method", methods,
                              index=methods.index(bill.payment_method) if bill.payment_method in methods else 0,
                              key=f"eb_method_{bill.id}")
    if st.button("Save changes"):
        try:
            amt = float(total)
        except ValueError:
            st.error("Total must be numeric.")
        else:
            if not name.strip():
                st.error("Client name is required.")
            else:
                store.update_bill(bill.id, name, phone.strip() or None, bill_date, amt, method)
                refresh()
                st.success("Bill updated.")
                st.rerun()

    if bill.is_membership_purchase:
        logged = len(membership.usages_for_purchase(bill, snap.usages))
        if logged:
            st.warning(f"Deleting this membership purchase also removes its {logged} logged session(s).")
    confirm = st.checkbox("Confirm delete", value=False, key=f"del_bill_{bill.id}")
    if st.button("Delete bill", disabled=not confirm):
        billing.delete_bill(bill.id)
        refresh()
        st.success("Bill deleted.")
        st.rerun()


def membership_usage_page():
    st.header("🧖 Membership Sessions")
    snap = load_snapshot()

    purchases = [b for b in snap.bills if b.is_membership_purchase]
    if not purchases:
        st.info("No memberships sold yet.")
        return

    overview = []
    for b in purchases:
        ent = membership.get_entitlement(b, snap.plans, snap.usages)
        status = "unknown plan" if ent.plan_missing else ("over-used" if ent.over_used else "")
        overview.append({
            "bill": b.id, "client": b.client_name, "purchase": purchase_label(b, snap.plans),
            "allocated": ent.allocated, "used": ent.used, "remaining": ent.remaining, "flag": status,
        })
    st.dataframe(pd.DataFrame(overview), use_container_width=True, hide_index=True)

    st.divider()

    bill = st.selectbox("Membership purchase", purchases, format_func=lambda b: purchase_label(b, snap.plans))
    ent = membership.get_entitlement(bill, snap.plans, snap.usages)
    c1, c2, c3 = st.columns(3)
    c1.metric("Allocated", ent.allocated)
    c2.metric("Used", ent.used)
    c3.metric("Remaining", ent.remaining)
    if ent.plan_missing:
        st.warning("Unknown plan: the membership plan of this purchase no longer exists.")
    if ent.over_used:
        st.warning(f"Over-used: {ent.used - ent.allocated} more session(s) logged than allocated.")

    slots, checked = membership.purchase_slots(bill, snap.plans, snap.usages)
    if not slots:
        st.caption("No services in this plan.")
    else:
        cols = st.columns(len(CATEGORIES))
        for i, c in enumerate(CATEGORIES):
            with cols[i]:
                st.markdown(f"**{c.name}**")
                for s in (s for s in slots if s.type == c.key):
                    st.checkbox(s.label, value=checked[s.id], disabled=True, key=f"slot_{bill.id}_{s.id}_{checked[s.id]}")
        extra = [s for s in slots if s.type not in {c.key for c in CATEGORIES}]
        for s in extra:
            st.checkbox(s.label, value=checked[s.id], disabled=True, key=f"slot_{bill.id}_{s.id}_{checked[s.id]}")

    st.subheader("Log a session")
    free = membership.free_slots(slots, checked)
    if not free or ent.remaining <= 0:
        st.caption("Nothing left to log on this membership.")
    else:
        l1, l2, l3 = st.columns(3)
        with l1:
            slot = st.selectbox("Session", free, format_func=lambda s: s.label, key=f"log_slot_{bill.id}")
            used_on = st.date_input("Date", value=date.today(), key=f"log_date_{bill.id}").isoformat()
        with l2:
            start = st.time_input("From", value=time(10, 0), key=f"log_from_{bill.id}").strftime("%H:%M")
            end = st.time_input("To", value=time(11, 0), key=f"log_to_{bill.id}").strftime("%H:%M")
        with l3:
            notes = st.text_area("Notes", value="", key=f"log_notes_{bill.id}")
        errors = utils.validate_time_range(start, end)
        show_errors(errors)
        if st.button("Log session", type="primary", disabled=bool(errors)):
            try:
                membership.log_usage(
                    membership_purchase_bill_id=bill.id,
                    client_id=bill.client_id,
                    membership_plan_id=bill.membership_item.membership_id,
                    category=category_name(slot.type),
                    label=slot.label,
                    date=used_on,
                    from_time=start,
                    to_time=end,
                    notes=notes,
                )
            except ValueError as e:
                st.error(str(e))
            else:
                refresh()
                st.success(f"{slot.label} logged.")
                st.rerun()

    st.subheader("Session log")
    logged = membership.usages_for_purchase(bill, snap.usages)
    if not logged:
        st.caption("No sessions logged yet.")
        return
    assigned = membership.assign_slots(slots, logged)
    labels = {s.id: s.label for s in slots}
    st.dataframe(pd.DataFrame([
        {
            "id": u.id, "session": u.service_label, "category": u.service_category,
            "slot": labels.get(slot_id, "unmatched") if slot_id else "unmatched",
            "date": formatting.date_display(u.date), "from": u.from_time, "to": u.to_time, "notes": u.notes,
        }
        for u, slot_id in zip(logged, assigned)
    ]), use_container_width=True, hide_index=True)

    usage = st.selectbox("Remove entry", logged, format_func=lambda u: f"#{u.id} {u.service_label} on {u.date}")
    confirm = st.checkbox("Confirm remove", value=False, key=f"del_usage_{usage.id}")
    if st.button("Remove session", disabled=not confirm):
        membership.remove_usage(usage.id)
        refresh()
        st.success("Session removed; the slot is free again.")
        st.rerun()


def clients_page():
    st.header("👥 Clients")
    snap = load_snapshot()

    search = st.text_input("Search (name/phone)", key="client_search")

    clients = store.list_clients(search) if search.strip() else snap.clients
    df = pd.DataFrame([vars(c) for c in clients], columns=["id", "name", "phone", "email", "address", "notes"])
    paged_table(df, "clients_page")

    st.divider()

    selected = st.selectbox("Select client", [None] + clients,
                            format_func=lambda c: "(new client)" if c is None else client_label(c))
    if selected:
        st.subheader(f"✏️ Edit Client (ID: {selected.id})")
        purchases = membership.purchases_for_client(snap.bills, selected)
        for b in purchases:
            ent = membership.get_entitlement(b, snap.plans, snap.usages)
            st.caption(f"{purchase_label(b, snap.plans)}: {ent.used}/{ent.allocated} used, {ent.remaining} remaining")
    else:
        st.subheader("➕ Add Client")

    key = selected.id if selected else "new"
    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=selected.name if selected else "", key=f"cl_name_{key}")
        phone = st.text_input("Phone", value=selected.phone if selected else "", key=f"cl_phone_{key}")
        email = st.text_input("Email", value=(selected.email or "") if selected else "", key=f"cl_email_{key}")
    with col2:
        address = st.text_input("Address", value=(selected.address or "") if selected else "", key=f"cl_addr_{key}")
        notes = st.text_area("Notes", value=(selected.notes or "") if selected else "", key=f"cl_notes_{key}")

    errors = utils.validate_client_inputs(name, phone, email)
    show_errors(errors)
    if st.button("Save", type="primary", disabled=bool(errors)):
        fields = dict(email=email.strip() or None, address=address.strip() or None, notes=notes.strip() or None)
        if selected:
            store.update_client(selected.id, name, phone, **fields)
            st.success("Client updated.")
        else:
            store.create_client(name, phone, **fields)
            st.success("Client added.")
        refresh()
        st.rerun()

    if selected:
        confirm = st.checkbox("Confirm delete", value=False, key=f"del_client_{selected.id}")
        if st.button("Delete client", disabled=not confirm):
            store.delete_client(selected.id)
            refresh()
            st.success("Client deleted.")
            st.rerun()


def services_page():
    st.header("💆 Services")
    snap = load_snapshot()

    df = pd.DataFrame([vars(s) for s in snap.services], columns=["id", "title", "price", "duration_minutes", "description"])
    df["price"] = df["price"].map(formatting.currency)
    paged_table(df, "services_page")

    st.divider()

    selected = st.selectbox("Select service", [None] + snap.services,
                            format_func=lambda s: "(new service)" if s is None else s.title)
    key = selected.id if selected else "new"
    col1, col2 = st.columns(2)
    with col1:
        title = st.text_input("Title", value=selected.title if selected else "", key=f"sv_title_{key}")
        price = st.text_input("Price", value=str(selected.price) if selected else "0", key=f"sv_price_{key}")
    with col2:
        duration = st.text_input("Duration (minutes)", value=str(selected.duration_minutes) if selected else "60",
                                 key=f"sv_dur_{key}")
        description = st.text_area("Description", value=(selected.description or "") if selected else "",
                                   key=f"sv_desc_{key}")

    errors = utils.validate_service_inputs(title, price, duration)
    show_errors(errors)
    if st.button("Save", type="primary", disabled=bool(errors)):
        if selected:
            store.update_service(selected.id, title, float(price), int(duration), description.strip() or None)
            st.success("Service updated.")
        else:
            store.create_service(title, float(price), int(duration), description.strip() or None)
            st.success("Service added.")
        refresh()
        st.rerun()

    if selected:
        confirm = st.checkbox("Confirm delete", value=False, key=f"del_service_{selected.id}")
        if st.button("Delete service", disabled=not confirm):
            store.delete_service(selected.id)
            refresh()
            st.success("Service deleted.")
            st.rerun()


def plans_page():
    st.header("🎫 Membership Plans")
    snap = load_snapshot()

    rows = []
    for p in snap.plans:
        row = {"id": p.id, "name": p.name, "price": formatting.currency(p.price), "timing": p.timing}
        row.update({c.name: p.allotments.get(c.key, 0) for c in CATEGORIES})
        row["therapy details"] = p.therapy_details
        rows.append(row)
    if rows:
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.caption("No membership plans yet.")

    st.divider()

    selected = st.selectbox("Select plan", [None] + snap.plans,
                            format_func=lambda p: "(new plan)" if p is None else p.name)
    key = selected.id if selected else "new"
    col1, col2, col3 = st.columns(3)
    with col1:
        name = st.text_input("Name", value=selected.name if selected else "", key=f"pl_name_{key}")
        price = st.text_input("Price", value=str(selected.price) if selected else "0", key=f"pl_price_{key}")
        timing = st.text_input("Timing", value=(selected.timing or "") if selected else "", key=f"pl_timing_{key}")
    with col2:
        allotments = {}
        for c in CATEGORIES:
            allotments[c.key] = st.number_input(
                f"{c.name} sessions", min_value=0, step=1,
                value=int(selected.allotments.get(c.key, 0)) if selected else 0,
                key=f"pl_{c.key}_{key}",
            )
    with col3:
        details = st.text_area("Therapy details", value=(selected.therapy_details or "") if selected else "",
                               key=f"pl_details_{key}")

    if selected:
        st.caption("Editing a plan does not change sessions of memberships already sold.")

    errors = utils.validate_plan_inputs(name, price, allotments)
    show_errors(errors)
    if st.button("Save", type="primary", disabled=bool(errors)):
        values = {k: int(v) for k, v in allotments.items()}
        if selected:
            store.update_plan(selected.id, name, float(price), values, timing.strip() or None, details.strip() or None)
            st.success("Plan updated.")
        else:
            store.create_plan(name, float(price), values, timing.strip() or None, details.strip() or None)
            st.success("Plan added.")
        refresh()
        st.rerun()

    if selected:
        sold = [b for b in snap.bills if b.is_membership_purchase
                and membership.same_id(b.membership_item.membership_id, selected.id)]
        if sold:
            st.warning(f"{len(sold)} membership(s) were sold on this plan; they will show as 'unknown plan' "
                       "once it is deleted.")
        confirm = st.checkbox("Confirm delete", value=False, key=f"del_plan_{selected.id}")
        if st.button("Delete plan", disabled=not confirm):
            store.delete_plan(selected.id)
            refresh()
            st.success("Plan deleted.")
            st.rerun()


def staff_page():
    st.header("🧑‍💼 Staff")
    snap = load_snapshot()

    df = pd.DataFrame([vars(s) for s in snap.staff], columns=["id", "name", "role", "phone", "email", "active"])
    paged_table(df, "staff_page")

    st.divider()

    selected = st.selectbox("Select staff member", [None] + snap.staff,
                            format_func=lambda s: "(new staff member)" if s is None else s.name)
    key = selected.id if selected else "new"
    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=selected.name if selected else "", key=f"st_name_{key}")
        role = st.text_input("Role", value=(selected.role or "") if selected else "", key=f"st_role_{key}")
        active = st.checkbox("Active", value=selected.active if selected else True, key=f"st_active_{key}")
    with col2:
        phone = st.text_input("Phone", value=(selected.phone or "") if selected else "", key=f"st_phone_{key}")
        email = st.text_input("Email", value=(selected.email or "") if selected else "", key=f"st_email_{key}")

    errors = [] if name.strip() else ["Name is required."]
    show_errors(errors)
    if st.button("Save", type="primary", disabled=bool(errors)):
        fields = dict(role=role.strip() or None, phone=phone.strip() or None, email=email.strip() or None, active=active)
        if selected:
            store.update_staff(selected.id, name, **fields)
            st.success("Staff member updated.")
        else:
            store.create_staff(name, **fields)
            st.success("Staff member added.")
        refresh()
        st.rerun()

    if selected:
        confirm = st.checkbox("Confirm delete", value=False, key=f"del_staff_{selected.id}")
        if st.button("Delete staff member", disabled=not confirm):
            store.delete_staff(selected.id)
            refresh()
            st.success("Staff member deleted.")
            st.rerun()


def reports_page():
    st.header("🧾 Reports")
    snap = load_snapshot()

    exports = [
        ("clients", snap.clients, utils.clients_to_csv_bytes),
        ("bills", snap.bills, utils.bills_to_csv_bytes),
        ("session_log", snap.usages, utils.usages_to_csv_bytes),
    ]
    for name, rows, to_csv in exports:
        st.subheader(f"Export {name.replace('_', ' ')} to CSV")
        if rows:
            st.download_button(f"Download {name}.csv", data=to_csv(rows), file_name=f"{name}.csv", mime="text/csv")
        else:
            st.caption(f"No {name.replace('_', ' ')} to export.")
        st.divider()

    st.subheader("Revenue summary by month")
    df = reports.revenue_by_month(snap.bills)
    df["revenue"] = df["revenue"].map(formatting.currency)
    st.dataframe(df, use_container_width=True, hide_index=True)


def settings_page():
    st.header("⚙️ Settings")

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(p1, p2)
        if errors:
            st.error(errors[0])
        else:
            auth.change_password(st.session_state.username, p1)
            st.success("Password updated.")

    if st.session_state.role == "admin":
        st.divider()
        st.subheader("Accounts")
        users = auth.list_users()
        st.dataframe(pd.DataFrame([dict(u) for u in users]), use_container_width=True, hide_index=True)
        u1, u2, u3 = st.columns(3)
        with u1:
            new_user = st.text_input("Username", key="new_user")
        with u2:
            new_pass = st.text_input("Password", type="password", key="new_user_pass")
        with u3:
            new_role = st.selectbox("Role", auth.ROLES, index=1)
        if st.button("Create account"):
            errors = ([] if new_user.strip() else ["Username is required."]) + auth.validate_new_password(new_pass, new_pass)
            if errors:
                show_errors(errors)
            else:
                try:
                    auth.create_user(new_user, new_pass, new_role)
                except ValueError as e:
                    st.error(str(e))
                else:
                    st.success("Account created.")
                    st.rerun()

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert sample clients, services, plans and bills for testing (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data()
        refresh()
        st.success("Sample data inserted.")
        st.rerun()


PAGES = {
    "Dashboard": dashboard_page,
    "Billing": billing_page,
    "Membership Sessions": membership_usage_page,
    "Clients": clients_page,
    "Services": services_page,
    "Membership Plans": plans_page,
    "Staff": staff_page,
    "Reports": reports_page,
    "Settings": settings_page,
}


@st.fragment(run_every=config.REFRESH_SECONDS)
def live_page(name: str):
    # Reruns on its own every REFRESH_SECONDS, so an idle page still picks up new data
    refresh()
    PAGES[name]()


def main_app():
    st.sidebar.title("🧖 Spa Back Office")
    st.sidebar.caption(f"Logged in as: {st.session_state.username} ({st.session_state.role})")

    pages = list(PAGES)
    if st.session_state.get("page") not in pages:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Refresh data"):
        refresh()
        st.rerun()
    st.sidebar.caption(f"Data refreshes every {config.REFRESH_SECONDS}s.")

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    live_page(st.session_state.page)


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
