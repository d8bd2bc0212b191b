"""Settlement events: one distinguishable kind per terminal branch of every flow."""
from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

EVENT_STANDARD = "moneymarket"
EVENT_VERSION = "1.0.0"


class EventKind(str, Enum):
    SUPPLY_SUCCESS = "supply_success"
    SUPPLY_FAILED_TO_GET_UNDERLYING_BALANCE = "supply_failed_to_get_underlying_balance"
    SUPPLY_FAILED_TO_INCREASE_SUPPLY_ON_CONTROLLER = (
        "supply_failed_to_increase_supply_on_controller"
    )

    REPAY_SUCCESS = "repay_success"
    REPAY_FAILED_TO_GET_UNDERLYING_BALANCE = "repay_failed_to_get_underlying_balance"
    REPAY_INSUFFICIENT_AMOUNT = "repay_insufficient_amount"
    REPAY_FAILED_TO_UPDATE_USER_BALANCE = "repay_failed_to_update_user_balance"

    BORROW_SUCCESS = "borrow_success"
    BORROW_FAILED_TO_GET_UNDERLYING_BALANCE = "borrow_failed_to_get_underlying_balance"
    BORROW_INSUFFICIENT_LIQUIDITY = "borrow_insufficient_liquidity"
    BORROW_FAILED_TO_INCREASE_BORROW_ON_CONTROLLER = (
        "borrow_failed_to_increase_borrow_on_controller"
    )
    BORROW_FAILED_TO_TRANSFER_UNDERLYING = "borrow_failed_to_transfer_underlying"
    BORROW_FAILED_TO_REVERT_CONTROLLER = "borrow_failed_to_revert_controller"

    WITHDRAW_SUCCESS = "withdraw_success"
    WITHDRAW_FAILED_TO_GET_UNDERLYING_BALANCE = "withdraw_failed_to_get_underlying_balance"
    WITHDRAW_FAILED_TO_AUTHORIZE = "withdraw_failed_to_authorize"
    WITHDRAW_FAILED_TO_TRANSFER_UNDERLYING = "withdraw_failed_to_transfer_underlying"
    WITHDRAW_FAILED_TO_REVERT_CONTROLLER = "withdraw_failed_to_revert_controller"

    CANCEL_LIMIT_ORDER = "cancel_limit_order"
    CANCEL_LIMIT_ORDER_FAILED_TO_GET_LIQUIDITY = "cancel_limit_order_failed_to_get_liquidity"
    CANCEL_LIMIT_ORDER_FAILED_TO_REMOVE_LIQUIDITY = (
        "cancel_limit_order_failed_to_remove_liquidity"
    )

    LIQUIDITY_SLOT_FREED = "liquidity_slot_freed"
    LIQUIDITY_SLOT_FAILED_TO_GET_LIQUIDITY = "liquidity_slot_failed_to_get_liquidity"
    LIQUIDITY_SLOT_FAILED_TO_REMOVE_LIQUIDITY = "liquidity_slot_failed_to_remove_liquidity"
    LIQUIDITY_SLOT_SKIPPED_LOCKED = "liquidity_slot_skipped_locked"
    STALE_ORDER_REMOVED = "stale_order_removed"
    PAIR_VIEW_PRUNED = "pair_view_pruned"

    FLOW_ABORTED = "flow_aborted"

    @property
    def is_failure(self) -> bool:
        return self not in _NON_FAILURES


_NON_FAILURES = frozenset(
    {
        EventKind.SUPPLY_SUCCESS,
        EventKind.REPAY_SUCCESS,
        EventKind.BORROW_SUCCESS,
        EventKind.WITHDRAW_SUCCESS,
        EventKind.CANCEL_LIMIT_ORDER,
        EventKind.LIQUIDITY_SLOT_FREED,
        EventKind.STALE_ORDER_REMOVED,
        EventKind.PAIR_VIEW_PRUNED,
    }
)


@dataclass(frozen=True)
class SettlementEvent:
    kind: EventKind
    account: str = ""
    amount: int = 0
    order_id: Optional[int] = None
    detail: str = ""
    correlation_id: str = ""

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"account_id": self.account, "amount": str(self.amount)}
        if self.order_id is not None:
            data["order_id"] = str(self.order_id)
        if self.detail:
            data["detail"] = self.detail
        if self.correlation_id:
            data["correlation_id"] = self.correlation_id
        return {
            "standard": EVENT_STANDARD,
            "version": EVENT_VERSION,
            "event": self.kind.value,
            "data": [data],
        }


class EventLog:
    """Logs and records emitted settlement events.

    Only the newest ``max_events`` are retained; ``drain`` hands the retained
    events to the caller and clears the log.
    """

    def __init__(self, max_events: int = 10_000) -> None:
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        self._events: deque[SettlementEvent] = deque(maxlen=max_events)

    def emit(
        self,
        kind: EventKind,
        account: str = "",
        amount: int = 0,
        *,
        order_id: Optional[int] = None,
        detail: str = "",
        correlation_id: str = "",
    ) -> SettlementEvent:
        event = SettlementEvent(
            kind=kind,
            account=account,
            amount=amount,
            order_id=order_id,
            detail=detail,
            correlation_id=correlation_id,
        )
        self._events.append(event)
        level = logging.WARNING if kind.is_failure else logging.INFO
        logger.log(level, "EVENT_JSON:%s", json.dumps(event.to_json()))
        return event

    @property
    def events(self) -> tuple[SettlementEvent, ...]:
        return tuple(self._events)

    def failures(self) -> list[SettlementEvent]:
        return [e for e in self._events if e.kind.is_failure]

    def of_kind(self, kind: EventKind) -> list[SettlementEvent]:
        return [e for e in self._events if e.kind is kind]

    def drain(self) -> list[SettlementEvent]:
        drained = list(self._events)
        self._events.clear()
        return drained

    def __len__(self) -> int:
        return len(self._events)
