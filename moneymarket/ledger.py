"""Account ledger, pool-share token and the mutation journal used for rollback."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from .locks import Lease, SettlementLocks
from .models import AccruedInterest, UserProfile

logger = logging.getLogger(__name__)


class ShareToken:
    """Fungible pool-share token minted against supplied underlying."""

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self.total_supply = 0

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("mint amount must be non-negative")
        self._balances[account] = self._balances.get(account, 0) + amount
        self.total_supply += amount

    def burn(self, account: str, amount: int) -> None:
        if account not in self._balances:
            raise ValueError(f"User with account {account} wasn't found")
        balance = self._balances[account]
        if amount < 0 or amount > balance:
            raise ValueError(
                f"Cannot burn {amount} shares from {account}, balance is {balance}"
            )
        self._balances[account] = balance - amount
        self.total_supply -= amount


class AccountLedger:
    """Per-account supplies, borrows and interest checkpoints plus pool totals.

    Reads are free. Every mutation takes the account's :class:`Lease` and is
    refused unless that lease is the live one.
    """

    def __init__(self, locks: SettlementLocks) -> None:
        self._locks = locks
        self._profiles: dict[str, UserProfile] = {}
        self.shares = ShareToken()
        self.total_supplies = 0
        self.total_borrows = 0
        self.total_reserves = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def profile(self, account: str) -> UserProfile:
        return self._profiles.get(account, UserProfile())

    def accounts(self) -> list[str]:
        return sorted(self._profiles)

    # ------------------------------------------------------------------
    # Lease-guarded mutations
    # ------------------------------------------------------------------

    def _update(self, lease: Lease, **changes: object) -> UserProfile:
        account = self._locks.verify(lease)
        profile = replace(self.profile(account), **changes)
        self._profiles[account] = profile
        return profile

    def increase_supplies(self, lease: Lease, amount: int) -> int:
        profile = self._update(lease, supplies=self.profile(lease.account).supplies + amount)
        self.total_supplies += amount
        return profile.supplies

    def decrease_supplies(self, lease: Lease, amount: int) -> int:
        current = self.profile(lease.account).supplies
        if amount > current:
            raise ValueError(
                f"Cannot decrease supplies of {lease.account} by {amount}, has {current}"
            )
        profile = self._update(lease, supplies=current - amount)
        self.total_supplies -= amount
        return profile.supplies

    def increase_borrows(self, lease: Lease, amount: int) -> int:
        profile = self._update(lease, borrows=self.profile(lease.account).borrows + amount)
        self.total_borrows += amount
        return profile.borrows

    def settle_borrows(self, lease: Lease, checkpoint: AccruedInterest) -> int:
        """Zero the account's borrow principal; returns the principal cleared."""
        principal = self.profile(lease.account).borrows
        self._update(lease, borrows=0, borrow_interest=checkpoint)
        self.total_borrows -= principal
        return principal

    def set_supply_interest(self, lease: Lease, accrued: AccruedInterest) -> None:
        self._update(lease, supply_interest=accrued)

    def set_borrow_interest(self, lease: Lease, accrued: AccruedInterest) -> None:
        self._update(lease, borrow_interest=accrued)

    def mint(self, lease: Lease, amount: int) -> None:
        self._locks.verify(lease)
        self.shares.mint(lease.account, amount)

    def burn(self, lease: Lease, amount: int) -> None:
        self._locks.verify(lease)
        self.shares.burn(lease.account, amount)


class MutationScope:
    """Journal of ledger mutations that can be reversed as one unit.

    Each step records its inverse. ``rollback`` replays the inverses newest
    first, so pool totals move back by exactly the journaled deltas even if
    unrelated accounts changed them in the meantime.
    """

    def __init__(self, ledger: AccountLedger, lease: Lease) -> None:
        self._ledger = ledger
        self._lease = lease
        self._undo: list[Callable[[], None]] = []
        self._closed = False

    def _record(self, undo: Callable[[], None]) -> None:
        if self._closed:
            raise RuntimeError("Mutation scope is already closed")
        self._undo.append(undo)

    def set_supply_interest(self, accrued: AccruedInterest) -> None:
        prior = self._ledger.profile(self._lease.account).supply_interest
        self._ledger.set_supply_interest(self._lease, accrued)
        self._record(lambda: self._ledger.set_supply_interest(self._lease, prior))

    def mint(self, amount: int) -> None:
        self._ledger.mint(self._lease, amount)
        self._record(lambda: self._ledger.burn(self._lease, amount))

    def increase_supplies(self, amount: int) -> None:
        self._ledger.increase_supplies(self._lease, amount)
        self._record(lambda: self._ledger.decrease_supplies(self._lease, amount))

    @property
    def steps(self) -> int:
        return len(self._undo)

    @property
    def closed(self) -> bool:
        return self._closed

    def commit(self) -> None:
        self._undo.clear()
        self._closed = True

    def rollback(self) -> None:
        if self._closed:
            raise RuntimeError("Mutation scope is already closed")
        logger.info(
            "Rolling back %d ledger mutation(s) for %s",
            len(self._undo),
            self._lease.account,
        )
        while self._undo:
            self._undo.pop()()
        self._closed = True
