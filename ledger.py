"""
ledger.py
Membership ledger: member lifecycle, payments, check-in admission and
dashboard aggregations over a record store (see db.py for the contract).

The ledger keeps no state of its own besides the store handle and a clock,
so every query reflects the store as it is at call time.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

import config
import utils
from errors import (
    PAYMENT_INCOMPLETE,
    SUBSCRIPTION_INACTIVE,
    CheckInBlocked,
    NotFoundError,
    ValidationError,
)
from models import (
    CHECK_INS,
    MEMBER_STATUSES,
    MEMBERS,
    PAYMENT_STATUSES,
    PAYMENTS,
    SUBSCRIPTION_TYPES,
    Alerts,
    CheckIn,
    DashboardStats,
    Member,
    Payment,
    from_iso,
    label,
    to_iso,
)

logger = logging.getLogger(__name__)

MEMBER_EDITABLE = (
    "name", "phone", "email", "subscription_type",
    "subscription_start", "subscription_end", "payment_status",
)
PAYMENT_EDITABLE = ("amount", "date", "status", "notes")


def derive_status(subscription_end: datetime, now: datetime) -> str:
    """
    'due' when the subscription ends on today's calendar date (whatever the
    time of day), 'overdue' when it ended before that, otherwise 'active'.
    """
    if subscription_end.date() == now.date():
        return "due"
    if subscription_end < now:
        return "overdue"
    return "active"


def _new_id() -> str:
    return uuid.uuid4().hex


def _raise_if(errors: list[str]) -> None:
    if errors:
        raise ValidationError(" ".join(errors), errors)


class MembershipLedger:
    def __init__(self, store, clock=None):
        self.store = store
        self._clock = clock or datetime.now

    def now(self) -> datetime:
        return self._clock()

    # ---------- Members ----------

    def _heal(self, record: dict, now: datetime) -> Member:
        # The stored status is only a cache; rewrite it when time has moved on
        status = derive_status(from_iso(record["subscription_end"]), now)
        if record.get("status") != status:
            self.store.update(MEMBERS, record["id"], {"status": status})
            record = {**record, "status": status}
        return Member.from_record(record)

    def _member_record(self, member_id: str) -> dict:
        record = self.store.get(MEMBERS, member_id)
        if record is None:
            raise NotFoundError(MEMBERS, member_id)
        return record

    def get_member(self, member_id: str) -> Member:
        return self._heal(self._member_record(member_id), self.now())

    def list_members(self, status: str | None = None, sort_by_name: bool = False) -> list[Member]:
        if status is not None and status not in MEMBER_STATUSES:
            raise ValidationError(f"Status filter must be one of: {', '.join(MEMBER_STATUSES)}.")
        now = self.now()
        members = [self._heal(r, now) for r in self.store.all(MEMBERS)]
        if status is not None:
            members = [m for m in members if m.status == status]
        if sort_by_name:
            members.sort(key=lambda m: m.name.lower())
        return members

    def search(self, query: str, status: str | None = None, sort_by_name: bool = False) -> list[Member]:
        """
        Substring match on name and email (case-insensitive), phone and id
        (as typed). Any one field matching is enough.
        """
        needle = (query or "").strip()
        lowered = needle.lower()
        return [
            m for m in self.list_members(status=status, sort_by_name=sort_by_name)
            if lowered in m.name.lower()
            or lowered in m.email.lower()
            or needle in m.phone
            or needle in m.id
        ]

    def add_member(
        self,
        name: str,
        phone: str,
        subscription_type: str,
        email: str = "",
        subscription_start: datetime | None = None,
        subscription_end: datetime | None = None,
        payment_status: str = "incomplete",
    ) -> Member:
        now = self.now()
        start = subscription_start or now
        fields = {
            "name": name,
            "phone": phone,
            "email": email or "",
            "subscription_type": subscription_type,
            "subscription_start": start,
            "payment_status": payment_status,
        }
        _raise_if(utils.validate_member_inputs(fields))
        end = subscription_end or utils.calc_subscription_end(start, subscription_type)
        _raise_if(utils.validate_member_inputs({"subscription_start": start, "subscription_end": end}))

        member = Member(
            id=_new_id(),
            name=name.strip(),
            phone=phone.strip(),
            email=(email or "").strip(),
            subscription_type=subscription_type,
            subscription_start=start,
            subscription_end=end,
            payment_status=payment_status,
            status=derive_status(end, now),
            created_at=now,
            updated_at=now,
        )
        self.store.insert(MEMBERS, member.to_record())
        logger.info("Member %s added (%s, ends %s)", member.id, subscription_type, end.date())
        return member

    def update_member(self, member_id: str, **changes) -> Member:
        forbidden = sorted(set(changes) - set(MEMBER_EDITABLE))
        if forbidden:
            raise ValidationError(f"Cannot set field(s): {', '.join(forbidden)}.")
        current = self.get_member(member_id)
        _raise_if(utils.validate_member_inputs(changes))

        # A new start or plan moves the end date unless one was given
        if "subscription_end" not in changes and (
            "subscription_start" in changes or "subscription_type" in changes
        ):
            changes["subscription_end"] = utils.calc_subscription_end(
                changes.get("subscription_start", current.subscription_start),
                changes.get("subscription_type", current.subscription_type),
            )

        fields = dict(changes)
        if "subscription_start" in changes or "subscription_end" in changes:
            fields.setdefault("subscription_start", current.subscription_start)
            fields.setdefault("subscription_end", current.subscription_end)
        _raise_if(utils.validate_member_inputs(fields))

        now = self.now()
        record = {}
        for key, value in changes.items():
            if isinstance(value, datetime):
                record[key] = to_iso(value)
            elif isinstance(value, str):
                record[key] = value.strip()
            else:
                record[key] = value
        if "subscription_end" in changes:
            record["status"] = derive_status(changes["subscription_end"], now)
        record["updated_at"] = to_iso(now)

        self.store.update(MEMBERS, member_id, record)
        logger.info("Member %s updated: %s", member_id, ", ".join(sorted(changes)))
        return self.get_member(member_id)

    def delete_member(self, member_id: str) -> None:
        """Payments and check-ins of the member are kept as history."""
        self._member_record(member_id)
        self.store.delete(MEMBERS, member_id)
        logger.info("Member %s deleted", member_id)

    def renew_member(self, member_id: str, subscription_type: str | None = None, fee=None) -> Member:
        """
        Open the next billing cycle: a running subscription is extended from
        its current end, a lapsed one restarts now. The cycle's fee becomes
        the member's single incomplete payment.
        """
        member = self.get_member(member_id)
        subscription_type = subscription_type or member.subscription_type
        if subscription_type not in SUBSCRIPTION_TYPES:
            raise ValidationError(f"Subscription type must be one of: {', '.join(SUBSCRIPTION_TYPES)}.")
        amount = config.DEFAULT_FEES[subscription_type] if fee is None else fee
        _raise_if(utils.validate_amount(amount))
        amount = float(amount)

        now = self.now()
        start = member.subscription_end if member.status != "overdue" else now
        end = utils.calc_subscription_end(start, subscription_type)
        self.store.update(MEMBERS, member_id, {
            "subscription_type": subscription_type,
            "subscription_start": to_iso(start),
            "subscription_end": to_iso(end),
            "payment_status": "incomplete",
            "status": derive_status(end, now),
            "updated_at": to_iso(now),
        })

        pending = self._incomplete_payment(member_id)
        if pending is not None:
            self.store.update(PAYMENTS, pending.id, {
                "amount": amount,
                "date": to_iso(now),
                "subscription_type": subscription_type,
            })
        else:
            self.store.insert(PAYMENTS, Payment(
                id=_new_id(),
                member_id=member_id,
                member_name=member.name,
                amount=amount,
                date=now,
                status="incomplete",
                subscription_type=subscription_type,
            ).to_record())
        logger.info("Member %s renewed (%s) until %s, %.2f due", member_id, subscription_type, end.date(), amount)
        return self.get_member(member_id)

    # ---------- Payments ----------

    def _payment_record(self, payment_id: str) -> dict:
        record = self.store.get(PAYMENTS, payment_id)
        if record is None:
            raise NotFoundError(PAYMENTS, payment_id)
        return record

    def _incomplete_payment(self, member_id: str) -> Payment | None:
        for record in self.store.where(PAYMENTS, "member_id", member_id):
            if record["status"] == "incomplete":
                return Payment.from_record(record)
        return None

    def list_payments(self, member_id: str | None = None) -> list[Payment]:
        if member_id is None:
            records = self.store.all(PAYMENTS)
        else:
            records = self.store.where(PAYMENTS, "member_id", member_id)
        payments = [Payment.from_record(r) for r in records]
        return sorted(payments, key=lambda p: p.date, reverse=True)

    def get_payment(self, payment_id: str) -> Payment:
        return Payment.from_record(self._payment_record(payment_id))

    def add_payment(
        self,
        member_id: str,
        amount,
        status: str = "paid",
        date: datetime | None = None,
        notes: str | None = None,
    ) -> Payment:
        _raise_if(utils.validate_amount(amount))
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Payment status must be one of: {', '.join(PAYMENT_STATUSES)}.")
        member = self.get_member(member_id)
        if status == "incomplete" and self._incomplete_payment(member_id) is not None:
            raise ValidationError("Member already has an incomplete payment; complete or update it instead.")

        payment = Payment(
            id=_new_id(),
            member_id=member_id,
            member_name=member.name,
            amount=float(amount),
            date=date or self.now(),
            status=status,
            subscription_type=member.subscription_type,
            notes=(notes or "").strip() or None,
        )
        self.store.insert(PAYMENTS, payment.to_record())
        if status == "incomplete" and member.payment_status != "incomplete":
            self.store.update(MEMBERS, member_id, {"payment_status": "incomplete", "updated_at": to_iso(self.now())})
        logger.info("Payment %s recorded for member %s: %.2f (%s)", payment.id, member_id, payment.amount, status)
        return payment

    def update_payment(self, payment_id: str, **changes) -> Payment:
        forbidden = sorted(set(changes) - set(PAYMENT_EDITABLE))
        if forbidden:
            raise ValidationError(f"Cannot set field(s): {', '.join(forbidden)}.")
        current = self.get_payment(payment_id)

        errors: list[str] = []
        if "amount" in changes:
            errors.extend(utils.validate_amount(changes["amount"]))
        if "status" in changes and changes["status"] not in PAYMENT_STATUSES:
            errors.append(f"Payment status must be one of: {', '.join(PAYMENT_STATUSES)}.")
        if "date" in changes and not isinstance(changes["date"], datetime):
            errors.append("Payment date must be a date and time.")
        _raise_if(errors)
        if changes.get("status") == "incomplete" and current.status != "incomplete":
            if self._incomplete_payment(current.member_id) is not None:
                raise ValidationError("Member already has an incomplete payment; complete or update it instead.")

        record = dict(changes)
        if "amount" in record:
            record["amount"] = float(record["amount"])
        if "date" in record:
            record["date"] = to_iso(record["date"])
        self.store.update(PAYMENTS, payment_id, record)

        # The member's payment status follows its open payment, if the member still exists
        status = changes.get("status")
        if status and status != current.status and self.store.get(MEMBERS, current.member_id) is not None:
            self.store.update(MEMBERS, current.member_id, {"payment_status": status, "updated_at": to_iso(self.now())})
        logger.info("Payment %s updated: %s", payment_id, ", ".join(sorted(changes)))
        return self.get_payment(payment_id)

    def complete_payment(self, member_id: str, amount) -> Payment:
        """
        Settle the member's open payment, or record a new paid one when
        nothing is open. Calling it twice records a second paid payment.
        """
        _raise_if(utils.validate_amount(amount))
        member = self.get_member(member_id)
        now = self.now()

        pending = self._incomplete_payment(member_id)
        if pending is not None:
            self.store.update(PAYMENTS, pending.id, {"status": "paid", "amount": float(amount), "date": to_iso(now)})
            payment = self.get_payment(pending.id)
        else:
            payment = Payment(
                id=_new_id(),
                member_id=member_id,
                member_name=member.name,
                amount=float(amount),
                date=now,
                status="paid",
                subscription_type=member.subscription_type,
            )
            self.store.insert(PAYMENTS, payment.to_record())

        self.store.update(MEMBERS, member_id, {"payment_status": "paid", "updated_at": to_iso(now)})
        logger.info("Payment %s completed for member %s: %.2f", payment.id, member_id, payment.amount)
        return payment

    def incomplete_payments(self) -> list[Payment]:
        return [Payment.from_record(r) for r in self.store.where(PAYMENTS, "status", "incomplete")]

    def _paid_total(self, low: datetime, high: datetime, include_high: bool = False) -> float:
        records = self.store.between(PAYMENTS, "date", to_iso(low), to_iso(high), include_high=include_high)
        return sum(float(r["amount"]) for r in records if r["status"] == "paid")

    def today_revenue(self) -> float:
        return self._paid_total(*utils.day_window(self.now().date()))

    def monthly_revenue(self, year: int | None = None, month: int | None = None) -> float:
        now = self.now()
        year = now.year if year is None else year
        month = now.month if month is None else month
        valid = isinstance(year, int) and isinstance(month, int)
        if not (valid and datetime.min.year <= year < datetime.max.year and 1 <= month <= 12):
            raise ValidationError(f"Invalid month: {year}-{month}.")
        start, end = utils.month_window(year, month)
        return self._paid_total(start, end, include_high=True)

    def revenue_by_type(self) -> dict[str, float]:
        totals: dict[str, float] = {}
        for record in self.store.where(PAYMENTS, "status", "paid"):
            key = label(record["subscription_type"])
            totals[key] = totals.get(key, 0.0) + float(record["amount"])
        return totals

    # ---------- Check-ins ----------

    def check_in(self, member_id: str) -> CheckIn:
        """
        Admit a member: payment must be settled and the subscription must not
        be overdue. Both are read from the store at call time.
        """
        now = self.now()
        member = self._heal(self._member_record(member_id), now)
        if member.payment_status != "paid":
            logger.info("Check-in refused for member %s: %s", member_id, PAYMENT_INCOMPLETE)
            raise CheckInBlocked(PAYMENT_INCOMPLETE)
        if member.status == "overdue":
            logger.info("Check-in refused for member %s: %s", member_id, SUBSCRIPTION_INACTIVE)
            raise CheckInBlocked(SUBSCRIPTION_INACTIVE)

        check_in = CheckIn(
            id=_new_id(),
            member_id=member.id,
            member_name=member.name,
            timestamp=now,
            subscription_type=member.subscription_type,
            member_status=member.status,
        )
        self.store.insert(CHECK_INS, check_in.to_record())
        logger.info("Member %s checked in (%s)", member_id, member.status)
        return check_in

    def list_check_ins(self) -> list[CheckIn]:
        check_ins = [CheckIn.from_record(r) for r in self.store.all(CHECK_INS)]
        return sorted(check_ins, key=lambda c: c.timestamp, reverse=True)

    def member_check_ins(self, member_id: str, limit: int | None = None) -> list[CheckIn]:
        check_ins = [CheckIn.from_record(r) for r in self.store.where(CHECK_INS, "member_id", member_id)]
        check_ins.sort(key=lambda c: c.timestamp, reverse=True)
        return check_ins if limit is None else check_ins[:limit]

    def today_check_ins(self) -> list[CheckIn]:
        low, high = utils.day_window(self.now().date())
        return [CheckIn.from_record(r) for r in self.store.between(CHECK_INS, "timestamp", to_iso(low), to_iso(high))]

    def weekly_check_ins(self) -> list[dict]:
        """Check-in counts for the last 7 calendar days, oldest first."""
        today = self.now().date()
        days = [today - timedelta(days=i) for i in range(6, -1, -1)]
        low, _ = utils.day_window(days[0])
        _, high = utils.day_window(today)

        counts = {day: 0 for day in days}
        for record in self.store.between(CHECK_INS, "timestamp", to_iso(low), to_iso(high)):
            counts[from_iso(record["timestamp"]).date()] += 1
        return [{"day": day.strftime("%a"), "count": counts[day]} for day in days]

    # ---------- Dashboard ----------

    def subscription_distribution(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self.store.all(MEMBERS):
            key = label(record["subscription_type"])
            counts[key] = counts.get(key, 0) + 1
        return counts

    def dashboard_stats(self) -> DashboardStats:
        now = self.now()
        members = self.list_members()
        incomplete = self.incomplete_payments()
        renewal_cutoff = now + timedelta(days=config.RENEWAL_WINDOW_DAYS)

        return DashboardStats(
            active_members=sum(1 for m in members if m.status == "active"),
            today_check_ins=len(self.today_check_ins()),
            today_revenue=self.today_revenue(),
            incomplete_payments=len(incomplete),
            weekly_check_ins=self.weekly_check_ins(),
            subscription_distribution=self.subscription_distribution(),
            revenue_by_type=self.revenue_by_type(),
            alerts=Alerts(
                overdue_members=[m for m in members if m.status == "overdue"],
                incomplete_payments=incomplete,
                renewals_due=[
                    m for m in members
                    if m.status == "active" and m.subscription_end <= renewal_cutoff
                ],
            ),
        )
