"""
app.py
Streamlit front end for the membership ledger.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import datetime

import pandas as pd
import streamlit as st

import config
import utils
from db import SQLiteStore
from errors import LedgerError
from ledger import MembershipLedger
from models import MEMBER_STATUSES, SUBSCRIPTION_TYPES

st.set_page_config(page_title=config.GYM_NAME, layout="wide")


@st.cache_resource
def get_ledger() -> MembershipLedger:
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    return MembershipLedger(SQLiteStore(config.DB_FILE))


def run_action(action, success: str) -> bool:
    """Run a ledger call, showing its error message as-is on failure."""
    try:
        action()
    except LedgerError as exc:
        st.error(str(exc))
        return False
    st.success(success)
    return True


def members_frame(members) -> pd.DataFrame:
    columns = ["id", "name", "phone", "email", "subscription_type", "subscription_end", "payment_status", "status"]
    if not members:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([m.to_record() for m in members])[columns]


def member_options(ledger: MembershipLedger) -> dict[str, str]:
    return {f"{m.name} ({m.phone}) - ID {m.id[:8]}": m.id for m in ledger.list_members(sort_by_name=True)}


def dashboard_page(ledger: MembershipLedger):
    st.header("📊 Dashboard")

    stats = ledger.dashboard_stats()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Active members", stats.active_members)
    c2.metric("Check-ins today", stats.today_check_ins)
    c3.metric("Revenue today", f"{stats.today_revenue:.2f}")
    c4.metric("Incomplete payments", stats.incomplete_payments)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.subheader("Check-ins this week")
        st.bar_chart(pd.DataFrame(stats.weekly_check_ins).set_index("day"))
    with col2:
        st.subheader("Subscriptions")
        if stats.subscription_distribution:
            st.bar_chart(pd.Series(stats.subscription_distribution, name="members"))
        else:
            st.caption("No members yet.")
    with col3:
        st.subheader("Revenue by type")
        if stats.revenue_by_type:
            st.bar_chart(pd.Series(stats.revenue_by_type, name="revenue"))
        else:
            st.caption("No paid payments yet.")

    st.divider()

    st.subheader("Alerts")
    a1, a2, a3 = st.columns(3)
    with a1:
        st.caption("Overdue members")
        st.dataframe(members_frame(stats.alerts.overdue_members), use_container_width=True, hide_index=True)
    with a2:
        st.caption("Incomplete payments")
        rows = [p.to_record() for p in stats.alerts.incomplete_payments]
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    with a3:
        st.caption(f"Renewals due (next {config.RENEWAL_WINDOW_DAYS} days)")
        st.dataframe(members_frame(stats.alerts.renewals_due), use_container_width=True, hide_index=True)


def member_form(ledger: MembershipLedger):
    st.subheader("➕ Add Member")

    col1, col2, col3 = st.columns(3)
    with col1:
        name = st.text_input("Full name")
        phone = st.text_input("Phone")
        email = st.text_input("Email (optional)")
    with col2:
        subscription_type = st.selectbox("Subscription type", SUBSCRIPTION_TYPES, index=2)
        start_date = st.date_input("Start date", value=ledger.now().date())
    with col3:
        payment_status = st.selectbox("Payment status", ["paid", "incomplete"])

    if st.button("Save", type="primary"):
        start = datetime.combine(start_date, ledger.now().time())
        if run_action(
            lambda: ledger.add_member(
                name, phone, subscription_type, email=email,
                subscription_start=start, payment_status=payment_status,
            ),
            "Member added.",
        ):
            st.rerun()


def members_page(ledger: MembershipLedger):
    st.header("👥 Members")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone/email/id)")
        status_filter = st.selectbox("Status", ["All", *MEMBER_STATUSES])
        sort_name = st.checkbox("Sort by name", value=False)

    members = ledger.search(search, status=None if status_filter == "All" else status_filter, sort_by_name=sort_name)
    st.dataframe(members_frame(members), use_container_width=True, hide_index=True)

    st.divider()

    options = {f"{m.name} ({m.phone}) - ID {m.id[:8]}": m.id for m in members}
    chosen = st.selectbox("Select member", ["(none)", *options])
    if chosen != "(none)":
        member_id = options[chosen]
        member = ledger.get_member(member_id)
        c1, c2, c3 = st.columns(3)
        with c1:
            new_phone = st.text_input("Phone", value=member.phone)
            new_email = st.text_input("Email", value=member.email)
            if st.button("Update contact"):
                if run_action(lambda: ledger.update_member(member_id, phone=new_phone, email=new_email), "Member updated."):
                    st.rerun()
        with c2:
            renew_type = st.selectbox("Renew as", SUBSCRIPTION_TYPES, index=SUBSCRIPTION_TYPES.index(member.subscription_type))
            fee = st.number_input("Fee", min_value=0.0, value=config.DEFAULT_FEES[renew_type])
            if st.button("Renew"):
                if run_action(lambda: ledger.renew_member(member_id, renew_type, fee), "Renewal opened, payment due."):
                    st.rerun()
        with c3:
            delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
            if st.button("Delete", type="secondary", disabled=not delete_confirm):
                if run_action(lambda: ledger.delete_member(member_id), "Member deleted."):
                    st.rerun()

        st.caption("Recent check-ins")
        recent = [c.to_record() for c in ledger.member_check_ins(member_id, limit=5)]
        st.dataframe(pd.DataFrame(recent), use_container_width=True, hide_index=True)

    st.divider()
    member_form(ledger)


def payments_page(ledger: MembershipLedger):
    st.header("💳 Payments")

    options = member_options(ledger)
    if not options:
        st.info("No members yet. Add a member first.")
        return

    member_id = options[st.selectbox("Member", list(options))]

    st.subheader("Complete payment")
    c1, c2 = st.columns([1, 3])
    with c1:
        amount = st.text_input("Amount", value="")
    if st.button("Mark as paid", type="primary"):
        if run_action(lambda: ledger.complete_payment(member_id, amount), "Payment recorded."):
            st.rerun()

    st.divider()

    st.subheader("Payment history")
    rows = [p.to_record() for p in ledger.list_payments(member_id)]
    if rows:
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.caption("No payments for this member yet.")


def check_in_page(ledger: MembershipLedger):
    st.header("✅ Check-In")

    options = member_options(ledger)
    if not options:
        st.info("No members yet.")
        return

    member_id = options[st.selectbox("Member", list(options))]
    member = ledger.get_member(member_id)
    st.write(
        f"Plan: **{member.subscription_type}** | Ends: **{member.subscription_end:%Y-%m-%d}** | "
        f"Status: **{member.status}** | Payment: **{member.payment_status}**"
    )

    if st.button("Check in", type="primary"):
        if run_action(lambda: ledger.check_in(member_id), f"{member.name} checked in."):
            st.rerun()

    st.divider()

    st.subheader("Today's check-ins")
    rows = [c.to_record() for c in ledger.today_check_ins()]
    if rows:
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.caption("No check-ins today.")


def reports_page(ledger: MembershipLedger):
    st.header("🧾 Reports")

    today = ledger.now().date()
    month = st.date_input("Month", value=today.replace(day=1))
    st.metric("Revenue for the month", f"{ledger.monthly_revenue(month.year, month.month):.2f}")

    st.divider()

    exports = [
        ("members", ledger.list_members(), utils.members_to_csv_bytes),
        ("payments", ledger.list_payments(), utils.payments_to_csv_bytes),
        ("check_ins", ledger.list_check_ins(), utils.check_ins_to_csv_bytes),
    ]
    for name, items, to_csv in exports:
        if items:
            st.download_button(f"Download {name}.csv", data=to_csv(items), file_name=f"{name}.csv", mime="text/csv")
        else:
            st.caption(f"No {name.replace('_', '-')} to export.")

    st.divider()

    st.subheader("Revenue summary by month")
    st.dataframe(utils.revenue_summary_by_month(ledger.list_payments()), use_container_width=True, hide_index=True)

    st.divider()

    st.caption("Insert 3 sample members + a few payments for testing (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data(ledger)
        st.success("Sample data inserted.")
        st.rerun()


def main_app():
    ledger = get_ledger()

    st.sidebar.title(f"🏋️ {config.GYM_NAME}")
    pages = {
        "Dashboard": dashboard_page,
        "Members": members_page,
        "Payments": payments_page,
        "Check-In": check_in_page,
        "Reports": reports_page,
    }
    page = st.sidebar.radio("Navigate", list(pages))
    pages[page](ledger)


if __name__ == "__main__":
    main_app()
