"""
Pytest configuration and fixtures for the ledger tests.
"""

import os
import sys
from datetime import datetime, timedelta

import pytest

# Modules live at the repository root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db import MemoryStore
from ledger import MembershipLedger

# A Wednesday afternoon
NOW = datetime(2024, 5, 15, 14, 30)


class FakeClock:
    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ledger(store, clock):
    return MembershipLedger(store, clock=clock)


@pytest.fixture
def paid_member(ledger):
    """Factory for members that have settled their current cycle."""
    def make(name="John Smith", phone="0700111222", subscription_type="monthly", **kwargs):
        member = ledger.add_member(name, phone, subscription_type, **kwargs)
        ledger.complete_payment(member.id, 100)
        return ledger.get_member(member.id)
    return make
