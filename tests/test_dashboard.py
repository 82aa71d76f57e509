"""
Tests for the dashboard stats bundle.
"""

from datetime import timedelta

from conftest import NOW


def test_dashboard_on_empty_store(ledger):
    stats = ledger.dashboard_stats()
    assert stats.active_members == 0
    assert stats.today_check_ins == 0
    assert stats.today_revenue == 0
    assert stats.incomplete_payments == 0
    assert [d["count"] for d in stats.weekly_check_ins] == [0] * 7
    assert stats.subscription_distribution == {}
    assert stats.revenue_by_type == {}
    assert stats.alerts.overdue_members == []
    assert stats.alerts.incomplete_payments == []
    assert stats.alerts.renewals_due == []


def test_dashboard_bundle(ledger, paid_member, clock):
    regular = paid_member(name="John Smith")                      # monthly, active
    expiring = paid_member(name="Sarah Connor", subscription_type="weekly")  # ends in 7 days
    lapsed = ledger.add_member(
        "Alice Brown", "0702", "daily",
        subscription_start=NOW - timedelta(days=3),
        subscription_end=NOW - timedelta(days=2),
    )
    due = ledger.add_member(
        "Omar Samy", "0703", "weekly",
        subscription_start=NOW - timedelta(days=7),
        subscription_end=NOW + timedelta(hours=1),
    )
    pending = ledger.add_payment(due.id, 800, status="incomplete")
    ledger.check_in(regular.id)
    ledger.check_in(expiring.id)

    stats = ledger.dashboard_stats()

    assert stats.active_members == 2
    assert stats.today_check_ins == 2
    assert stats.today_revenue == 200
    assert stats.incomplete_payments == 1
    assert stats.weekly_check_ins[-1]["count"] == 2
    assert stats.subscription_distribution == {"Monthly": 1, "Weekly": 2, "Daily": 1}
    assert stats.revenue_by_type == {"Monthly": 100, "Weekly": 100}
    assert [m.id for m in stats.alerts.overdue_members] == [lapsed.id]
    assert [p.id for p in stats.alerts.incomplete_payments] == [pending.id]
    assert [m.id for m in stats.alerts.renewals_due] == [expiring.id]


def test_dashboard_follows_the_clock(ledger, paid_member, clock):
    member = paid_member(subscription_type="daily")
    assert ledger.dashboard_stats().active_members == 1

    clock.advance(days=3)
    stats = ledger.dashboard_stats()
    assert stats.active_members == 0
    assert [m.id for m in stats.alerts.overdue_members] == [member.id]
    assert stats.today_revenue == 0
