"""Unit tests for per-account settlement locks."""
from __future__ import annotations

import pytest

from moneymarket.exceptions import AlreadyLocked, LeaseError
from moneymarket.locks import SettlementLocks
from moneymarket.models import Action


@pytest.fixture()
def locks() -> SettlementLocks:
    return SettlementLocks()


class TestLock:
    def test_lock_records_descriptor(self, locks: SettlementLocks) -> None:
        lease = locks.lock("alice", Action.SUPPLY, 100)
        assert locks.is_locked("alice")
        assert locks.holder("alice") == lease
        assert lease.action is Action.SUPPLY
        assert lease.amount == 100

    def test_second_lock_rejected(self, locks: SettlementLocks) -> None:
        locks.lock("alice", Action.SUPPLY, 100)
        with pytest.raises(AlreadyLocked) as exc_info:
            locks.lock("alice", Action.REPAY, 5)
        assert exc_info.value.action == "supply"
        assert exc_info.value.code == "ALREADY_LOCKED"

    def test_accounts_are_independent(self, locks: SettlementLocks) -> None:
        locks.lock("alice", Action.SUPPLY, 100)
        locks.lock("bob", Action.SUPPLY, 100)
        assert len(locks) == 2


class TestUnlock:
    def test_unlock_releases(self, locks: SettlementLocks) -> None:
        lease = locks.lock("alice", Action.BORROW, 1)
        locks.unlock(lease)
        assert not locks.is_locked("alice")

    def test_unlock_is_idempotent(self, locks: SettlementLocks) -> None:
        lease = locks.lock("alice", Action.BORROW, 1)
        locks.unlock(lease)
        locks.unlock(lease)
        assert len(locks) == 0

    def test_stale_lease_cannot_release_new_lock(self, locks: SettlementLocks) -> None:
        old = locks.lock("alice", Action.BORROW, 1)
        locks.unlock(old)
        new = locks.lock("alice", Action.REPAY, 1)

        locks.unlock(old)

        assert locks.holder("alice") == new


class TestVerify:
    def test_live_lease_returns_account(self, locks: SettlementLocks) -> None:
        lease = locks.lock(("take-profit", 7), Action.FREE_LIQUIDITY_SLOT, 1)
        assert locks.verify(lease) == ("take-profit", 7)

    def test_released_lease_rejected(self, locks: SettlementLocks) -> None:
        lease = locks.lock("alice", Action.SUPPLY, 1)
        locks.unlock(lease)
        with pytest.raises(LeaseError):
            locks.verify(lease)
