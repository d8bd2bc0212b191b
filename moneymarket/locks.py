"""Per-account settlement locks.

A lock is held from the first step of a settlement chain until its terminal
callback. Acquiring it hands out a :class:`Lease`; only the holder of that
lease may release the lock or mutate the account's ledger entries.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Hashable
from uuid import uuid4

from .exceptions import AlreadyLocked, LeaseError
from .models import Action

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lease:
    """Proof of lock ownership for one in-flight chain."""

    account: Hashable
    action: Action
    amount: int
    token: str = field(default_factory=lambda: uuid4().hex)


class SettlementLocks:
    """At most one lease per account at any time."""

    def __init__(self) -> None:
        self._leases: dict[Hashable, Lease] = {}

    def lock(self, account: Hashable, action: Action, amount: int) -> Lease:
        """Acquire the account's lock or raise :class:`AlreadyLocked`."""
        held = self._leases.get(account)
        if held is not None:
            raise AlreadyLocked(account, held.action.value)

        lease = Lease(account=account, action=action, amount=amount)
        self._leases[account] = lease
        logger.debug("Locked %s for %s (%d)", account, action.value, amount)
        return lease

    def unlock(self, lease: Lease) -> None:
        """Release the lock held by ``lease``. Releasing twice is a no-op."""
        held = self._leases.get(lease.account)
        if held is None:
            return
        if held.token != lease.token:
            logger.warning(
                "Refusing to release lock on %s: held by another %s chain",
                lease.account,
                held.action.value,
            )
            return
        del self._leases[lease.account]
        logger.debug("Unlocked %s after %s", lease.account, lease.action.value)

    def verify(self, lease: Lease) -> Hashable:
        """Return the lease's account if the lease is live, else raise."""
        held = self._leases.get(lease.account)
        if held is None or held.token != lease.token:
            raise LeaseError(
                f"Lease for {lease.account} ({lease.action.value}) is not live"
            )
        return lease.account

    def is_locked(self, account: Hashable) -> bool:
        return account in self._leases

    def holder(self, account: Hashable) -> Lease | None:
        return self._leases.get(account)

    def __len__(self) -> int:
        return len(self._leases)
