"""Chains that pull a limit order's liquidity out of the venue.

Both cancellation and slot release run the same three steps: read the live
liquidity behind the order's position, remove all of it, then settle the
order book. A failure in either venue call leaves the order ``Pending`` so
the attempt can be retried.
"""
from __future__ import annotations

import logging
from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from ..events import EventKind
from ..exceptions import ExternalCallFailure
from ..flows.base import Flow, Step
from ..gateway.parser import parse_liquidity, parse_removed_amounts
from ..models import Action, FlowStatus, HistoryData, Order, OrderStatus, RemovedLiquidity
from ..runtime import Outcome

if TYPE_CHECKING:
    from ..locks import Lease
    from .desk import TradingDesk

logger = logging.getLogger(__name__)


class LiquidityRemovalFlow(Flow):
    failed_to_get_liquidity: EventKind
    failed_to_remove_liquidity: EventKind

    def __init__(
        self,
        desk: TradingDesk,
        lease: Lease,
        account: str,
        order_id: int,
        order: Order,
    ) -> None:
        super().__init__(
            desk.runtime, desk.locks, desk.events, lease, account=account, amount=order.amount
        )
        self.desk = desk
        self.order_id = order_id
        self.order = order
        self.removal: Optional[RemovedLiquidity] = None
        self._handlers = {
            Step.AWAITING_LIQUIDITY: self._on_liquidity,
            Step.AWAITING_REMOVAL: self._on_removal,
        }

    def _begin(self) -> None:
        desk = self.desk
        self._await_call(
            Step.AWAITING_LIQUIDITY,
            "get_liquidity",
            lambda: desk.venue.get_liquidity(self.order.lpt_id, gas=desk.gas.liquidity_query),
        )

    def _fail(self, kind: EventKind, error: ExternalCallFailure) -> None:
        self._emit(kind, self.amount, error.reason, order_id=self.order_id)
        self._finish(
            FlowStatus.FAILED, detail=str(error), error=error, order_id=self.order_id
        )

    def _on_liquidity(self, outcome: Outcome) -> None:
        try:
            info = self._unwrap(
                outcome, "get_liquidity", lambda raw: parse_liquidity(raw, self.order.lpt_id)
            )
        except ExternalCallFailure as e:
            self._fail(self.failed_to_get_liquidity, e)
            return

        desk = self.desk
        # Full exit with zero minimum outputs: any split of the two tokens is
        # accepted, there is no slippage floor.
        self._await_call(
            Step.AWAITING_REMOVAL,
            "remove_liquidity",
            lambda: desk.venue.remove_liquidity(
                info.position_id, info.amount, 0, 0, gas=desk.gas.remove_liquidity
            ),
        )

    def _on_removal(self, outcome: Outcome) -> None:
        try:
            self.removal = self._unwrap(
                outcome,
                "remove_liquidity",
                lambda raw: parse_removed_amounts(raw, self.order.lpt_id),
            )
        except ExternalCallFailure as e:
            self._fail(self.failed_to_remove_liquidity, e)
            return

        self._settle(self.removal)

    @abstractmethod
    def _settle(self, removal: RemovedLiquidity) -> None:
        """Apply a confirmed removal to the order book and finish the chain."""

    def _credit_owner(self, owner: str, removal: RemovedLiquidity) -> None:
        book = self.desk.order_book
        book.increase_balance(owner, self.order.sell_token, removal.returned_a)
        book.increase_balance(owner, self.order.buy_token, removal.returned_b)

    def _returned_detail(self, removal: RemovedLiquidity) -> str:
        return (
            f"returned {removal.returned_a} {self.order.sell_token} "
            f"and {removal.returned_b} {self.order.buy_token}"
        )


class CancelOrderFlow(LiquidityRemovalFlow):
    action = Action.CANCEL_ORDER
    failed_to_get_liquidity = EventKind.CANCEL_LIMIT_ORDER_FAILED_TO_GET_LIQUIDITY
    failed_to_remove_liquidity = EventKind.CANCEL_LIMIT_ORDER_FAILED_TO_REMOVE_LIQUIDITY

    def _settle(self, removal: RemovedLiquidity) -> None:
        self._credit_owner(self.account, removal)
        self.desk.order_book.close_order(
            self.account, self.order_id, OrderStatus.CANCELED, removal, HistoryData()
        )
        detail = self._returned_detail(removal)
        self._emit(EventKind.CANCEL_LIMIT_ORDER, self.amount, detail, order_id=self.order_id)
        self._finish(
            FlowStatus.SUCCEEDED,
            returned=removal.returned_a,
            detail=detail,
            order_id=self.order_id,
        )


class SlotReleaseFlow(LiquidityRemovalFlow):
    """Reclaims the venue slot of a primary order or of a take-profit order.

    A primary order has an owner who is credited with what the venue returns.
    A take-profit order is known only by id; what comes back stays with the
    protocol and is reported in the event.
    """

    action = Action.FREE_LIQUIDITY_SLOT
    failed_to_get_liquidity = EventKind.LIQUIDITY_SLOT_FAILED_TO_GET_LIQUIDITY
    failed_to_remove_liquidity = EventKind.LIQUIDITY_SLOT_FAILED_TO_REMOVE_LIQUIDITY

    def __init__(
        self,
        desk: TradingDesk,
        lease: Lease,
        order_id: int,
        order: Order,
        owner: Optional[str] = None,
    ) -> None:
        super().__init__(desk, lease, owner or "", order_id, order)
        self.owner = owner

    @property
    def is_take_profit(self) -> bool:
        return self.owner is None

    def _settle(self, removal: RemovedLiquidity) -> None:
        book = self.desk.order_book
        if self.owner is not None:
            self._credit_owner(self.owner, removal)
            book.release_order(self.owner, self.order_id, removal)
        else:
            book.release_take_profit_order(self.order_id, removal)

        detail = self._returned_detail(removal)
        if self.is_take_profit:
            detail = f"take-profit order {detail}"
        logger.info("Liquidity slot of order %d freed: %s", self.order_id, detail)
        self._emit(EventKind.LIQUIDITY_SLOT_FREED, self.amount, detail, order_id=self.order_id)
        self._finish(
            FlowStatus.SUCCEEDED,
            returned=removal.returned_a if self.owner is not None else 0,
            detail=detail,
            order_id=self.order_id,
        )
