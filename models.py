"""
models.py
Record dataclasses and vocabularies (subscription types, statuses).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

SUBSCRIPTION_TYPES = ("daily", "weekly", "monthly")
MEMBER_STATUSES = ("active", "due", "overdue")
PAYMENT_STATUSES = ("paid", "incomplete")

MEMBERS = "members"
PAYMENTS = "payments"
CHECK_INS = "check_ins"

# Fields stored as ISO timestamps, per collection
DATETIME_FIELDS = {
    MEMBERS: ("subscription_start", "subscription_end", "created_at", "updated_at"),
    PAYMENTS: ("date",),
    CHECK_INS: ("timestamp",),
}


def to_iso(value: datetime) -> str:
    # Fixed width, so string order matches time order
    return value.isoformat(timespec="microseconds")


def from_iso(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def label(key: str) -> str:
    """'monthly' -> 'Monthly'"""
    return key[:1].upper() + key[1:]


def _to_record(obj, collection: str) -> dict:
    record = asdict(obj)
    for field in DATETIME_FIELDS[collection]:
        record[field] = to_iso(record[field])
    return record


def _parse(record: dict, collection: str) -> dict:
    data = dict(record)
    for field in DATETIME_FIELDS[collection]:
        data[field] = from_iso(data[field])
    return data


@dataclass(frozen=True)
class Member:
    id: str
    name: str
    phone: str
    email: str
    subscription_type: str  # daily/weekly/monthly
    subscription_start: datetime
    subscription_end: datetime
    payment_status: str  # 'paid' or 'incomplete'
    status: str  # display cache, always re-derived on read
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: dict) -> "Member":
        data = _parse(record, MEMBERS)
        data["email"] = data.get("email") or ""
        return cls(**data)

    def to_record(self) -> dict:
        return _to_record(self, MEMBERS)


@dataclass(frozen=True)
class Payment:
    id: str
    member_id: str
    member_name: str
    amount: float
    date: datetime
    status: str  # 'paid' or 'incomplete'
    subscription_type: str
    notes: str | None = None

    @classmethod
    def from_record(cls, record: dict) -> "Payment":
        data = _parse(record, PAYMENTS)
        data["amount"] = float(data["amount"])
        return cls(**data)

    def to_record(self) -> dict:
        return _to_record(self, PAYMENTS)


@dataclass(frozen=True)
class CheckIn:
    id: str
    member_id: str
    member_name: str
    timestamp: datetime
    subscription_type: str
    member_status: str

    @classmethod
    def from_record(cls, record: dict) -> "CheckIn":
        return cls(**_parse(record, CHECK_INS))

    def to_record(self) -> dict:
        return _to_record(self, CHECK_INS)


@dataclass(frozen=True)
class Alerts:
    overdue_members: list[Member]
    incomplete_payments: list[Payment]
    renewals_due: list[Member]


@dataclass(frozen=True)
class DashboardStats:
    active_members: int
    today_check_ins: int
    today_revenue: float
    incomplete_payments: int
    weekly_check_ins: list[dict]
    subscription_distribution: dict[str, int]
    revenue_by_type: dict[str, float]
    alerts: Alerts
