"""
utils.py
Validation, dates, exports, sample data.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta

import pandas as pd

from models import PAYMENT_STATUSES, SUBSCRIPTION_TYPES

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def day_window(day: date) -> tuple[datetime, datetime]:
    """[00:00 of day, 00:00 of the next day)"""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def month_window(year: int, month: int) -> tuple[datetime, datetime]:
    """First instant of the month and 23:59:59 of its last day, both inclusive."""
    start = datetime(year, month, 1)
    last_day = add_months(start.date(), 1) - timedelta(days=1)
    return start, datetime.combine(last_day, time(23, 59, 59))


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def calc_subscription_end(start: datetime, subscription_type: str) -> datetime:
    if subscription_type == "daily":
        return start + timedelta(days=1)
    if subscription_type == "weekly":
        return start + timedelta(days=7)
    if subscription_type == "monthly":
        return datetime.combine(add_months(start.date(), 1), start.time())
    raise ValueError(f"Unknown subscription type: {subscription_type}")


def validate_member_inputs(fields: dict) -> list[str]:
    """
    Check whichever member fields are present; an update only carries some of them.
    """
    errors: list[str] = []
    if "name" in fields and not str(fields["name"] or "").strip():
        errors.append("Full name is required.")
    if "phone" in fields and not str(fields["phone"] or "").strip():
        errors.append("Phone number is required.")
    email = (fields.get("email") or "").strip()
    if email and not EMAIL_RE.match(email):
        errors.append("Invalid email.")
    if "subscription_type" in fields and fields["subscription_type"] not in SUBSCRIPTION_TYPES:
        errors.append(f"Subscription type must be one of: {', '.join(SUBSCRIPTION_TYPES)}.")
    if "payment_status" in fields and fields["payment_status"] not in PAYMENT_STATUSES:
        errors.append(f"Payment status must be one of: {', '.join(PAYMENT_STATUSES)}.")
    for key in ("subscription_start", "subscription_end"):
        if key in fields and not isinstance(fields[key], datetime):
            errors.append(f"{key.replace('_', ' ').capitalize()} must be a date and time.")
    start, end = fields.get("subscription_start"), fields.get("subscription_end")
    if isinstance(start, datetime) and isinstance(end, datetime) and end <= start:
        errors.append("Subscription end must be after subscription start.")
    return errors


def validate_amount(amount) -> list[str]:
    if isinstance(amount, bool):
        return ["Amount must be numeric."]
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return ["Amount must be numeric."]
    if not math.isfinite(value):
        return ["Amount must be a finite number."]
    if value < 0:
        return ["Amount must not be negative."]
    return []


def _records_frame(items) -> pd.DataFrame:
    return pd.DataFrame([i.to_record() for i in items])


def members_to_csv_bytes(members) -> bytes:
    return _records_frame(members).to_csv(index=False).encode("utf-8")


def payments_to_csv_bytes(payments) -> bytes:
    return _records_frame(payments).to_csv(index=False).encode("utf-8")


def check_ins_to_csv_bytes(check_ins) -> bytes:
    return _records_frame(check_ins).to_csv(index=False).encode("utf-8")


def revenue_summary_by_month(payments) -> pd.DataFrame:
    """Paid revenue per YYYY-MM, newest month first."""
    paid = [p for p in payments if p.status == "paid"]
    if not paid:
        return pd.DataFrame(columns=["month", "revenue"])
    df = pd.DataFrame({
        "month": [p.date.strftime("%Y-%m") for p in paid],
        "revenue": [p.amount for p in paid],
    })
    df = df.groupby("month", as_index=False)["revenue"].sum()
    return df.sort_values("month", ascending=False).reset_index(drop=True)


def insert_sample_data(ledger) -> None:
    """
    Add sample members through the ledger covering active, due and overdue,
    with their payments. Each call adds new members.
    """
    now = ledger.now()

    # Member 1: paid monthly, still running
    m1 = ledger.add_member(
        "Ahmed Hassan", "01000000001", "monthly", email="ahmed@example.com",
        subscription_start=now - timedelta(days=10),
    )
    ledger.complete_payment(m1.id, 2500)

    # Member 2: weekly, ends today, payment outstanding
    m2 = ledger.add_member(
        "Mona Ali", "01000000002", "weekly",
        subscription_start=now - timedelta(days=7),
        subscription_end=now,
    )
    ledger.add_payment(m2.id, 800, status="incomplete")

    # Member 3: expired daily pass
    m3 = ledger.add_member(
        "Omar Samy", "01000000003", "daily",
        subscription_start=now - timedelta(days=3),
    )
    ledger.complete_payment(m3.id, 150)
