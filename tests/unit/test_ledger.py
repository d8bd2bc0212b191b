"""Unit tests for the account ledger, share token and mutation scope."""
from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from moneymarket.exceptions import LeaseError
from moneymarket.ledger import AccountLedger, MutationScope, ShareToken
from moneymarket.locks import SettlementLocks
from moneymarket.models import AccruedInterest, Action, UserProfile


@pytest.fixture()
def locks() -> SettlementLocks:
    return SettlementLocks()


@pytest.fixture()
def ledger(locks: SettlementLocks) -> AccountLedger:
    return AccountLedger(locks)


class TestShareToken:
    def test_mint_and_burn(self) -> None:
        token = ShareToken()
        token.mint("alice", 10)
        token.burn("alice", 4)
        assert token.balance_of("alice") == 6
        assert token.total_supply == 6

    def test_burn_unknown_account(self) -> None:
        with pytest.raises(ValueError, match="wasn't found"):
            ShareToken().burn("ghost", 1)

    def test_burn_more_than_balance(self) -> None:
        token = ShareToken()
        token.mint("alice", 1)
        with pytest.raises(ValueError, match="Cannot burn"):
            token.burn("alice", 2)


class TestAccountLedger:
    def test_profiles_are_lazy(self, ledger: AccountLedger) -> None:
        assert ledger.profile("nobody") == UserProfile()
        assert ledger.accounts() == []

    def test_mutation_requires_live_lease(
        self, ledger: AccountLedger, locks: SettlementLocks
    ) -> None:
        lease = locks.lock("alice", Action.SUPPLY, 10)
        locks.unlock(lease)
        with pytest.raises(LeaseError):
            ledger.increase_supplies(lease, 10)
        assert ledger.total_supplies == 0

    def test_lease_is_bound_to_its_account(
        self, ledger: AccountLedger, locks: SettlementLocks
    ) -> None:
        lease = locks.lock("alice", Action.BORROW, 5)
        ledger.increase_borrows(lease, 5)
        assert ledger.profile("alice").borrows == 5
        assert ledger.profile("bob").borrows == 0
        assert ledger.total_borrows == 5

    def test_decrease_below_zero_rejected(
        self, ledger: AccountLedger, locks: SettlementLocks
    ) -> None:
        lease = locks.lock("alice", Action.WITHDRAW, 5)
        ledger.increase_supplies(lease, 3)
        with pytest.raises(ValueError):
            ledger.decrease_supplies(lease, 4)

    def test_settle_borrows_clears_principal(
        self, ledger: AccountLedger, locks: SettlementLocks
    ) -> None:
        lease = locks.lock("alice", Action.REPAY, 5)
        ledger.increase_borrows(lease, 5)
        ledger.set_borrow_interest(lease, AccruedInterest(2, 90))

        cleared = ledger.settle_borrows(lease, AccruedInterest(0, 100))

        assert cleared == 5
        assert ledger.profile("alice").borrows == 0
        assert ledger.profile("alice").borrow_interest == AccruedInterest(0, 100)
        assert ledger.total_borrows == 0


class TestMutationScope:
    def test_rollback_restores_exact_state(
        self, ledger: AccountLedger, locks: SettlementLocks
    ) -> None:
        lease = locks.lock("alice", Action.SUPPLY, 10)
        ledger.increase_supplies(lease, 7)
        ledger.mint(lease, 7)
        before = ledger.profile("alice")

        scope = MutationScope(ledger, lease)
        scope.set_supply_interest(AccruedInterest(4, 120))
        scope.mint(10)
        scope.increase_supplies(10)
        assert scope.steps == 3

        scope.rollback()

        assert ledger.profile("alice") == before
        assert ledger.shares.balance_of("alice") == 7
        assert ledger.shares.total_supply == 7
        assert ledger.total_supplies == 7

    def test_rollback_keeps_other_accounts_changes(
        self, ledger: AccountLedger, locks: SettlementLocks
    ) -> None:
        alice = locks.lock("alice", Action.SUPPLY, 10)
        bob = locks.lock("bob", Action.SUPPLY, 3)

        scope = MutationScope(ledger, alice)
        scope.mint(10)
        scope.increase_supplies(10)
        ledger.mint(bob, 3)
        ledger.increase_supplies(bob, 3)

        scope.rollback()

        assert ledger.total_supplies == 3
        assert ledger.shares.total_supply == 3

    def test_commit_closes_scope(self, ledger: AccountLedger, locks: SettlementLocks) -> None:
        lease = locks.lock("alice", Action.SUPPLY, 10)
        scope = MutationScope(ledger, lease)
        scope.mint(10)
        scope.commit()

        with pytest.raises(RuntimeError):
            scope.rollback()
        assert ledger.shares.balance_of("alice") == 10

    @given(st.lists(st.integers(min_value=0, max_value=10**24), min_size=1, max_size=8))
    @settings(max_examples=50)
    def test_rollback_is_all_or_nothing(self, amounts: list[int]) -> None:
        locks = SettlementLocks()
        ledger = AccountLedger(locks)
        lease = locks.lock("alice", Action.SUPPLY, sum(amounts))

        scope = MutationScope(ledger, lease)
        for amount in amounts:
            scope.mint(amount)
            scope.increase_supplies(amount)
        scope.rollback()

        assert ledger.shares.total_supply == 0
        assert ledger.total_supplies == 0
        assert ledger.profile("alice").supplies == 0
