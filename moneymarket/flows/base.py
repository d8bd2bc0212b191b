"""Explicit state machines for multi-step settlement chains.

A flow advances only when the runtime delivers the outcome of the call it is
waiting on. Every terminal branch goes through :meth:`Flow._finish`, which
releases the flow's lock before the result becomes visible.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar
from uuid import uuid4

from ..events import EventKind, EventLog
from ..exceptions import ExternalCallFailure, SettlementError
from ..locks import Lease, SettlementLocks
from ..models import Action, FlowStatus, SettlementResult
from ..runtime import Outcome, Runtime

if TYPE_CHECKING:
    from ..market import Market

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Step(str, Enum):
    CREATED = "created"
    AWAITING_BALANCE = "awaiting_balance"
    AWAITING_CONTROLLER_ACK = "awaiting_controller_ack"
    AWAITING_TRANSFER = "awaiting_transfer"
    AWAITING_REVERT = "awaiting_revert"
    AWAITING_LIQUIDITY = "awaiting_liquidity"
    AWAITING_REMOVAL = "awaiting_removal"
    DONE = "done"


class Flow(ABC):
    """Base class for a chain of external calls with a callback per step."""

    action: Action
    # Set by chains that settle a specific limit order.
    order_id: Optional[int] = None
    # Chains funded by a transfer-and-notify hand the deposit back when they abort.
    refund_on_abort = False

    def __init__(
        self,
        runtime: Runtime,
        locks: SettlementLocks,
        events: EventLog,
        lease: Lease,
        account: str,
        amount: int,
    ) -> None:
        self.correlation_id = uuid4().hex
        self.lease = lease
        self.account = account
        self.amount = amount
        self.step = Step.CREATED
        self.result: Optional[SettlementResult] = None
        self._runtime = runtime
        self._locks = locks
        self._events = events
        self._done: Optional[asyncio.Future[SettlementResult]] = None
        self._handlers: dict[Step, Callable[[Outcome], None]] = {}

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.correlation_id[:8]} "
            f"{self.account} {self.step.value}>"
        )

    @property
    def finished(self) -> bool:
        return self.step is Step.DONE

    # ------------------------------------------------------------------
    # Driving the chain
    # ------------------------------------------------------------------

    def start(self) -> Flow:
        self._done = asyncio.get_running_loop().create_future()
        self._begin()
        return self

    @abstractmethod
    def _begin(self) -> None:
        """Issue the first external call of the chain."""

    def _await_call(
        self, step: Step, label: str, call: Callable[[], Awaitable[Any]]
    ) -> None:
        self.step = step
        self._runtime.submit(self, label, call)

    def resume(self, outcome: Outcome) -> None:
        """Transition function: the callback body for the current step."""
        handler = self._handlers.get(self.step)
        if handler is None:
            raise RuntimeError(f"{self!r} is not waiting for an external call")
        handler(outcome)

    async def wait(self) -> SettlementResult:
        if self._done is None:
            raise RuntimeError(f"{self!r} was never started")
        return await self._done

    # ------------------------------------------------------------------
    # Helpers for callbacks
    # ------------------------------------------------------------------

    @staticmethod
    def _unwrap(outcome: Outcome, step: str, parse: Callable[[Any], T]) -> T:
        """Payload of a successful call, parsed; raises on failure."""
        if not outcome.success:
            raise ExternalCallFailure(step, outcome.error or "call failed")
        return parse(outcome.value)

    def _emit(
        self,
        kind: EventKind,
        amount: int,
        detail: str = "",
        order_id: Optional[int] = None,
    ) -> None:
        self._events.emit(
            kind,
            self.account,
            amount,
            order_id=order_id,
            detail=detail,
            correlation_id=self.correlation_id,
        )

    def _finish(
        self,
        status: FlowStatus,
        returned: int = 0,
        detail: str = "",
        error: Optional[SettlementError] = None,
        order_id: Optional[int] = None,
    ) -> SettlementResult:
        self._locks.unlock(self.lease)
        self.step = Step.DONE
        self.result = SettlementResult(
            action=self.action,
            account=self.account,
            status=status,
            returned=returned,
            detail=detail,
            correlation_id=self.correlation_id,
            order_id=order_id,
            error=error,
        )
        logger.info(
            "%s for %s finished: %s (returned %d)",
            self.action.value,
            self.account,
            status.value,
            returned,
        )
        if self._done is not None and not self._done.done():
            self._done.set_result(self.result)
        return self.result

    def _discard_pending(self) -> None:
        """Undo local mutations a crashed transition may have left behind."""

    def abort(self, error: Exception) -> None:
        """Terminate after a crashed transition.

        Ends like any other failure branch: pending local mutations are
        discarded, a ``FLOW_ABORTED`` event is emitted, the lock is released
        and the waiter receives a FAILED result. Transfer-funded chains return
        the full amount.
        """
        if self.finished:
            logger.error("%r crashed after finishing: %s", self, error)
            return

        failed_at = self.step.value
        self._discard_pending()
        failure = ExternalCallFailure(failed_at, f"{type(error).__name__}: {error}")
        self._emit(
            EventKind.FLOW_ABORTED,
            self.amount,
            f"{self.action.value} at {failed_at}: {failure.reason}",
            order_id=self.order_id,
        )
        self._finish(
            FlowStatus.FAILED,
            returned=self.amount if self.refund_on_abort else 0,
            detail=str(failure),
            error=failure,
            order_id=self.order_id,
        )


class MarketFlow(Flow):
    """Flow running against one market's ledger and collaborators."""

    def __init__(self, market: Market, lease: Lease, amount: int) -> None:
        super().__init__(
            market.runtime,
            market.locks,
            market.events,
            lease,
            account=str(lease.account),
            amount=amount,
        )
        self.market = market
        # Rate model snapshot; privileged reconfiguration never reaches a chain
        # that is already running.
        self.model = market.model

    def _balance_query(self) -> None:
        """Step shared by every market flow: the underlying held by the market."""
        market = self.market
        self._await_call(
            Step.AWAITING_BALANCE,
            "ft_balance_of",
            lambda: market.underlying.balance_of(
                market.contract_id, gas=market.gas.balance_query
            ),
        )
