"""Entry points of the leverage-trading side: cancellation and slot release."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import GasConfig, TradingConfig
from ..events import EventKind, EventLog
from ..exceptions import AlreadyLocked, InsufficientGas, InvalidOrderStatus, OrderNotFound, Unauthorized
from ..interfaces import LiquidityVenue
from ..locks import SettlementLocks
from ..models import Action, Order, OrderStatus, PairId, SettlementResult
from ..runtime import Runtime
from .liquidation import CancelOrderFlow, SlotReleaseFlow
from .orderbook import OrderBook

logger = logging.getLogger(__name__)


def take_profit_lock_key(order_id: int) -> str:
    """Lock key for chains on a take-profit order, which has no owner."""
    return f"take-profit#{order_id}"


@dataclass
class SlotReleaseReport:
    """What one ``free_up_liquidity_slot`` call did for an order id."""

    order_id: int
    flows: list[SlotReleaseFlow] = field(default_factory=list)
    stale_removed: list[str] = field(default_factory=list)
    skipped_locked: list[str] = field(default_factory=list)
    pruned_pair: Optional[PairId] = None

    async def wait(self) -> list[SettlementResult]:
        """Terminal results of the started chains, in start order."""
        return list(await asyncio.gather(*(flow.wait() for flow in self.flows)))


class TradingDesk:
    def __init__(
        self,
        config: TradingConfig,
        gas: GasConfig,
        venue: LiquidityVenue,
        *,
        order_book: Optional[OrderBook] = None,
        runtime: Optional[Runtime] = None,
        events: Optional[EventLog] = None,
        locks: Optional[SettlementLocks] = None,
    ) -> None:
        self.config = config
        self.gas = gas
        self.venue = venue
        self.order_book = order_book or OrderBook()
        self.runtime = runtime if runtime is not None else Runtime()
        self.events = events if events is not None else EventLog()
        self.locks = locks if locks is not None else SettlementLocks()

    # ------------------------------------------------------------------
    # Cancel limit order
    # ------------------------------------------------------------------

    def submit_cancel_limit_order(
        self, caller: str, order_id: int, *, prepaid_gas: int
    ) -> CancelOrderFlow:
        order = self.order_book.get_order(caller, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status is not OrderStatus.PENDING:
            raise InvalidOrderStatus(order_id, order.status.value)
        if prepaid_gas < self.gas.cancel_order:
            raise InsufficientGas(Action.CANCEL_ORDER.value, self.gas.cancel_order, prepaid_gas)

        lease = self.locks.lock(caller, Action.CANCEL_ORDER, order.amount)
        logger.info("Cancelling limit order %d of %s", order_id, caller)
        try:
            flow = CancelOrderFlow(self, lease, caller, order_id, order)
            flow.start()
        except Exception:
            self.locks.unlock(lease)
            raise
        return flow

    async def cancel_limit_order(
        self, caller: str, order_id: int, *, prepaid_gas: int
    ) -> SettlementResult:
        return await self.submit_cancel_limit_order(
            caller, order_id, prepaid_gas=prepaid_gas
        ).wait()

    # ------------------------------------------------------------------
    # Free up liquidity slot
    # ------------------------------------------------------------------

    def free_up_liquidity_slot(
        self, caller: str, order_id: int, *, prepaid_gas: int
    ) -> SlotReleaseReport:
        """Reclaim the venue slots held by ``order_id`` (oracle only).

        Pending records each get their own removal chain; terminal records are
        stale bookkeeping and are dropped without any external call. The pair
        view entry is pruned whatever the order's status.
        """
        if caller != self.config.oracle_account_id:
            raise Unauthorized(caller)

        primary = self.order_book.find_order(order_id)
        take_profit = self.order_book.get_take_profit_order(order_id)

        chains = sum(
            1
            for order in (primary[1] if primary else None, take_profit)
            if order is not None and order.status is OrderStatus.PENDING
        )
        required = self.gas.free_liquidity_slot * chains
        if prepaid_gas < required:
            raise InsufficientGas(Action.FREE_LIQUIDITY_SLOT.value, required, prepaid_gas)

        report = SlotReleaseReport(order_id=order_id)

        if primary is not None:
            owner, order = primary
            if order.status is OrderStatus.PENDING:
                self._start_release(report, owner, order_id, order, owner=owner)
            else:
                self.order_book.remove_order(owner, order_id)
                report.stale_removed.append(owner)
                self.events.emit(
                    EventKind.STALE_ORDER_REMOVED,
                    owner,
                    order.amount,
                    order_id=order_id,
                    detail=f"status {order.status.value}",
                )

        if take_profit is not None:
            key = take_profit_lock_key(order_id)
            if take_profit.status is OrderStatus.PENDING:
                self._start_release(report, key, order_id, take_profit)
            else:
                self.order_book.remove_take_profit_order(order_id)
                report.stale_removed.append(key)
                self.events.emit(
                    EventKind.STALE_ORDER_REMOVED,
                    amount=take_profit.amount,
                    order_id=order_id,
                    detail=f"take-profit order, status {take_profit.status.value}",
                )

        report.pruned_pair = self.order_book.prune_pair_view(order_id)
        if report.pruned_pair is not None:
            self.events.emit(
                EventKind.PAIR_VIEW_PRUNED,
                order_id=order_id,
                detail="/".join(report.pruned_pair),
            )

        return report

    def _start_release(
        self,
        report: SlotReleaseReport,
        lock_key: str,
        order_id: int,
        order: Order,
        owner: Optional[str] = None,
    ) -> None:
        try:
            lease = self.locks.lock(lock_key, Action.FREE_LIQUIDITY_SLOT, order.amount)
        except AlreadyLocked as e:
            # Other chains of this call still go ahead.
            report.skipped_locked.append(lock_key)
            self.events.emit(
                EventKind.LIQUIDITY_SLOT_SKIPPED_LOCKED,
                owner or "",
                order.amount,
                order_id=order_id,
                detail=str(e),
            )
            return

        try:
            flow = SlotReleaseFlow(self, lease, order_id, order, owner=owner)
            flow.start()
        except Exception:
            self.locks.unlock(lease)
            raise
        report.flows.append(flow)
