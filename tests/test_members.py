"""
Tests for member registry operations: add, update, delete, renew, search.
"""

from datetime import datetime, timedelta

import pytest

from errors import NotFoundError, ValidationError
from models import MEMBERS, PAYMENTS

from conftest import NOW


def test_add_member_derives_end_and_status(ledger):
    member = ledger.add_member("John Smith", "0700111222", "weekly")
    assert member.subscription_start == NOW
    assert member.subscription_end == NOW + timedelta(days=7)
    assert member.status == "active"
    assert member.payment_status == "incomplete"
    assert member.created_at == member.updated_at == NOW


def test_monthly_end_clamps_to_month_end(ledger):
    member = ledger.add_member("Jane Doe", "0700", "monthly", subscription_start=datetime(2024, 1, 31, 8, 0))
    assert member.subscription_end == datetime(2024, 2, 29, 8, 0)


def test_add_member_with_explicit_end_today_is_due(ledger):
    member = ledger.add_member(
        "Mona Ali", "0700", "weekly",
        subscription_start=NOW - timedelta(days=7),
        subscription_end=NOW.replace(hour=6),
    )
    assert member.status == "due"


def test_add_member_validation(ledger, store):
    with pytest.raises(ValidationError) as exc:
        ledger.add_member("  ", "", "yearly", email="not-an-email")
    assert len(exc.value.errors) == 4
    assert store.all(MEMBERS) == []


def test_add_member_rejects_end_before_start(ledger):
    with pytest.raises(ValidationError):
        ledger.add_member("John", "0700", "daily", subscription_end=NOW - timedelta(days=1))


def test_status_is_rewritten_on_read(ledger, store, clock):
    member = ledger.add_member("John Smith", "0700", "daily")
    assert member.status == "active"

    clock.advance(days=1)
    assert ledger.get_member(member.id).status == "due"
    assert store.get(MEMBERS, member.id)["status"] == "due"

    clock.advance(days=1)
    assert [m.status for m in ledger.list_members()] == ["overdue"]
    assert store.get(MEMBERS, member.id)["status"] == "overdue"


def test_stale_stored_status_is_not_trusted(ledger, store):
    member = ledger.add_member("John Smith", "0700", "monthly")
    store.update(MEMBERS, member.id, {"status": "overdue"})
    assert ledger.get_member(member.id).status == "active"


def test_update_member_recomputes_status_with_end(ledger):
    member = ledger.add_member("John Smith", "0700", "monthly")
    updated = ledger.update_member(
        member.id,
        subscription_start=NOW - timedelta(days=10),
        subscription_end=NOW - timedelta(days=2),
        phone=" 0711 ",
    )
    assert updated.status == "overdue"
    assert updated.phone == "0711"


def test_update_member_plan_change_moves_end(ledger, clock):
    member = ledger.add_member("John Smith", "0700", "monthly")
    clock.advance(hours=1)
    updated = ledger.update_member(member.id, subscription_type="daily")
    assert updated.subscription_end == member.subscription_start + timedelta(days=1)
    assert updated.updated_at == NOW + timedelta(hours=1)


@pytest.mark.parametrize("field", ["status", "id", "created_at"])
def test_update_member_rejects_protected_fields(ledger, field):
    member = ledger.add_member("John Smith", "0700", "monthly")
    with pytest.raises(ValidationError):
        ledger.update_member(member.id, **{field: "overdue"})


def test_update_member_validates(ledger):
    member = ledger.add_member("John Smith", "0700", "monthly")
    with pytest.raises(ValidationError):
        ledger.update_member(member.id, name="")
    with pytest.raises(ValidationError):
        ledger.update_member(member.id, subscription_end=member.subscription_start - timedelta(days=1))


@pytest.mark.parametrize("changes", [
    {"subscription_type": "yearly"},
    {"subscription_start": "2024-05-01"},
    {"subscription_start": None, "subscription_type": "weekly"},
])
def test_update_member_rejects_bad_plan_inputs(ledger, store, changes):
    member = ledger.add_member("John Smith", "0700", "monthly")
    with pytest.raises(ValidationError):
        ledger.update_member(member.id, **changes)
    assert store.get(MEMBERS, member.id) == member.to_record()


def test_unknown_member_is_not_found(ledger):
    with pytest.raises(NotFoundError):
        ledger.get_member("missing")
    with pytest.raises(NotFoundError):
        ledger.update_member("missing", name="x")
    with pytest.raises(NotFoundError):
        ledger.delete_member("missing")


def test_delete_member_keeps_history(ledger, store, paid_member):
    member = paid_member()
    ledger.check_in(member.id)
    ledger.delete_member(member.id)

    assert ledger.list_members() == []
    assert len(ledger.list_payments(member.id)) == 1
    assert len(ledger.member_check_ins(member.id)) == 1


def test_renew_running_member_extends_from_current_end(ledger, paid_member):
    member = paid_member(subscription_type="weekly")
    renewed = ledger.renew_member(member.id)

    assert renewed.subscription_start == member.subscription_end
    assert renewed.subscription_end == member.subscription_end + timedelta(days=7)
    assert renewed.payment_status == "incomplete"
    pending = ledger.incomplete_payments()
    assert len(pending) == 1
    assert pending[0].amount == 800.0


def test_renew_due_member_past_end_time_continues_from_end(ledger):
    """Ended two hours ago but still today: the new cycle starts at the old end."""
    end = NOW - timedelta(hours=2)
    member = ledger.add_member(
        "Mona Ali", "0700", "weekly",
        subscription_start=end - timedelta(days=7),
        subscription_end=end,
    )
    assert member.status == "due"

    renewed = ledger.renew_member(member.id)
    assert renewed.subscription_start == end
    assert renewed.subscription_end == end + timedelta(days=7)
    assert renewed.status == "active"


def test_renew_overdue_member_restarts_now(ledger, clock):
    member = ledger.add_member("John Smith", "0700", "daily")
    clock.advance(days=5)
    renewed = ledger.renew_member(member.id, subscription_type="monthly", fee=2000)

    assert renewed.status == "active"
    assert renewed.subscription_start == clock()
    assert renewed.subscription_type == "monthly"


def test_renew_keeps_a_single_incomplete_payment(ledger, store):
    member = ledger.add_member("John Smith", "0700", "weekly")
    ledger.add_payment(member.id, 100, status="incomplete")
    ledger.renew_member(member.id, fee=750)
    ledger.renew_member(member.id, fee=700)

    payments = store.where(PAYMENTS, "member_id", member.id)
    assert [(p["status"], p["amount"]) for p in payments] == [("incomplete", 700.0)]


def test_renew_rejects_negative_fee(ledger):
    member = ledger.add_member("John Smith", "0700", "weekly")
    with pytest.raises(ValidationError):
        ledger.renew_member(member.id, fee=-1)


@pytest.fixture
def roster(ledger):
    return [
        ledger.add_member("John Smith", "0700-111-222", "monthly", email="js@example.com"),
        ledger.add_member("Sarah Connor", "0799-888-777", "weekly"),
        ledger.add_member("Alice Brown", "0711-000-999", "daily", email="alice@Gym.io"),
    ]


def test_search_by_name_is_case_insensitive(ledger, roster):
    assert [m.name for m in ledger.search("john")] == ["John Smith"]
    assert [m.name for m in ledger.search("SMITH")] == ["John Smith"]
    assert ledger.search("smith") == ledger.search("Smith")


def test_search_name_does_not_cross_members(ledger, roster):
    assert [m.name for m in ledger.search("sarah")] == ["Sarah Connor"]
    assert ledger.search("nobody") == []


def test_search_phone_email_and_id(ledger, roster):
    assert [m.name for m in ledger.search("799-8")] == ["Sarah Connor"]
    assert [m.name for m in ledger.search("gym.io")] == ["Alice Brown"]
    assert ledger.search(roster[1].id[:12]) == [roster[1]]


def test_search_fields_are_or_combined(ledger, roster):
    # "0" is in every phone number
    assert len(ledger.search("0")) == 3


def test_search_order_and_sort(ledger, roster):
    assert [m.name for m in ledger.search("")] == ["John Smith", "Sarah Connor", "Alice Brown"]
    assert [m.name for m in ledger.search("", sort_by_name=True)] == ["Alice Brown", "John Smith", "Sarah Connor"]


def test_search_with_status_filter(ledger, roster, clock):
    clock.advance(days=1)
    assert [m.name for m in ledger.search("", status="due")] == ["Alice Brown"]
    assert [m.name for m in ledger.search("o", status="active")] == ["John Smith", "Sarah Connor"]


def test_list_members_rejects_unknown_status(ledger):
    with pytest.raises(ValidationError):
        ledger.list_members(status="expired")
