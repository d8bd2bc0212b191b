"""Limit-order indices and per-owner internal token balances.

The primary map is owner -> order id -> order. Lookups by id go through the
reverse indices (id -> owner, id -> pair) which are maintained alongside the
maps they point into, so no operation has to enumerate owners or pairs.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ..exceptions import InvalidOrderStatus, OrderNotFound
from ..models import HistoryData, Order, OrderStatus, OrderType, PairId, RemovedLiquidity

logger = logging.getLogger(__name__)


def _check_removal(order_id: int, order: Order, removal: RemovedLiquidity) -> None:
    if removal.position_id != order.lpt_id:
        raise ValueError(
            f"Removal of position {removal.position_id} does not belong to "
            f"order {order_id} (position {order.lpt_id})"
        )


class OrderBook:
    def __init__(self) -> None:
        self._orders: dict[str, dict[int, Order]] = {}
        self._take_profit: dict[int, tuple[PairId, Order]] = {}
        self._per_pair: dict[PairId, dict[int, Order]] = {}
        self._pending: dict[int, OrderType] = {}
        self._owner_of: dict[int, str] = {}
        self._pair_of: dict[int, PairId] = {}
        self._balances: dict[str, dict[str, int]] = {}
        self.order_nonce = 0

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def add_order(self, owner: str, order: Order) -> int:
        """Index a new order under the next id and return that id."""
        self.order_nonce += 1
        order_id = self.order_nonce

        self._orders.setdefault(owner, {})[order_id] = order
        self._owner_of[order_id] = owner
        self._per_pair.setdefault(order.pair, {})[order_id] = order
        self._pair_of[order_id] = order.pair
        if order.status is OrderStatus.PENDING:
            self._pending[order_id] = order.order_type

        logger.debug("Order %d added for %s on %s/%s", order_id, owner, *order.pair)
        return order_id

    def add_take_profit_order(self, order_id: int, order: Order) -> None:
        self._take_profit[order_id] = (order.pair, order)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_order(self, owner: str, order_id: int) -> Optional[Order]:
        return self._orders.get(owner, {}).get(order_id)

    def find_order(self, order_id: int) -> Optional[tuple[str, Order]]:
        owner = self._owner_of.get(order_id)
        if owner is None:
            return None
        return owner, self._orders[owner][order_id]

    def get_take_profit_order(self, order_id: int) -> Optional[Order]:
        entry = self._take_profit.get(order_id)
        return entry[1] if entry else None

    def find_pair_view(self, order_id: int) -> Optional[tuple[PairId, Order]]:
        pair = self._pair_of.get(order_id)
        if pair is None:
            return None
        return pair, self._per_pair[pair][order_id]

    def orders_of(self, owner: str) -> dict[int, Order]:
        return dict(self._orders.get(owner, {}))

    def orders_per_pair(self, pair: PairId) -> dict[int, Order]:
        return dict(self._per_pair.get(pair, {}))

    def pending_orders(self) -> dict[int, OrderType]:
        return dict(self._pending)

    def balance_of(self, owner: str, token: str) -> int:
        return self._balances.get(owner, {}).get(token, 0)

    def increase_balance(self, owner: str, token: str, amount: int) -> int:
        if amount < 0:
            raise ValueError("balance increase must be non-negative")
        balances = self._balances.setdefault(owner, {})
        balances[token] = balances.get(token, 0) + amount
        return balances[token]

    # ------------------------------------------------------------------
    # Leaving Pending: only with proof that the liquidity is gone
    # ------------------------------------------------------------------

    def _pending_order(self, owner: str, order_id: int) -> Order:
        order = self.get_order(owner, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status is not OrderStatus.PENDING:
            raise InvalidOrderStatus(order_id, order.status.value)
        return order

    def close_order(
        self,
        owner: str,
        order_id: int,
        status: OrderStatus,
        removal: RemovedLiquidity,
        history: Optional[HistoryData] = None,
    ) -> Order:
        """Move a pending order to a terminal status and record its snapshot."""
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal order status")
        order = self._pending_order(owner, order_id)
        _check_removal(order_id, order, removal)

        closed = replace(order, status=status, history=history or HistoryData())
        self._orders[owner][order_id] = closed
        pair = self._pair_of.get(order_id)
        if pair is not None:
            self._per_pair[pair][order_id] = closed
        self._pending.pop(order_id, None)
        logger.info("Order %d of %s closed as %s", order_id, owner, status.value)
        return closed

    def release_order(self, owner: str, order_id: int, removal: RemovedLiquidity) -> Order:
        """Drop a pending order whose liquidity slot was reclaimed."""
        order = self._pending_order(owner, order_id)
        _check_removal(order_id, order, removal)
        self._drop(owner, order_id)
        return order

    def remove_order(self, owner: str, order_id: int) -> Order:
        """Drop a stale order record; pending orders still hold liquidity."""
        order = self.get_order(owner, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status is OrderStatus.PENDING:
            raise InvalidOrderStatus(order_id, order.status.value, required="terminal")
        self._drop(owner, order_id)
        return order

    def _drop(self, owner: str, order_id: int) -> None:
        orders = self._orders[owner]
        del orders[order_id]
        if not orders:
            del self._orders[owner]
        del self._owner_of[order_id]
        self._pending.pop(order_id, None)

    def release_take_profit_order(self, order_id: int, removal: RemovedLiquidity) -> Order:
        order = self.get_take_profit_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status is not OrderStatus.PENDING:
            raise InvalidOrderStatus(order_id, order.status.value)
        _check_removal(order_id, order, removal)
        del self._take_profit[order_id]
        return order

    def remove_take_profit_order(self, order_id: int) -> Order:
        order = self.get_take_profit_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status is OrderStatus.PENDING:
            raise InvalidOrderStatus(order_id, order.status.value, required="terminal")
        del self._take_profit[order_id]
        return order

    def prune_pair_view(self, order_id: int) -> Optional[PairId]:
        """Remove the pair-view entry for ``order_id``; returns its pair if any."""
        pair = self._pair_of.pop(order_id, None)
        if pair is None:
            return None
        orders = self._per_pair[pair]
        del orders[order_id]
        if not orders:
            del self._per_pair[pair]
        return pair
