"""Borrow: controller first, then pay out, then record the debt locally."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from ..events import EventKind
from ..exceptions import CompensatedFailure, ExternalCallFailure, InsufficientLiquidity
from ..gateway.parser import parse_amount
from ..interest import borrow_rate, calculate_accrued_interest
from ..models import AccruedInterest, Action, FlowStatus
from ..runtime import Outcome
from .base import MarketFlow, Step

if TYPE_CHECKING:
    from ..locks import Lease
    from ..market import Market

logger = logging.getLogger(__name__)


class BorrowFlow(MarketFlow):
    action = Action.BORROW

    def __init__(self, market: Market, lease: Lease, amount: int) -> None:
        super().__init__(market, lease, amount)
        self._accrued: Optional[AccruedInterest] = None
        self._transfer_error = ""
        self._handlers = {
            Step.AWAITING_BALANCE: self._on_balance,
            Step.AWAITING_CONTROLLER_ACK: self._on_controller_ack,
            Step.AWAITING_TRANSFER: self._on_transfer,
            Step.AWAITING_REVERT: self._on_revert,
        }

    def _begin(self) -> None:
        self._balance_query()

    def _on_balance(self, outcome: Outcome) -> None:
        try:
            cash = self._unwrap(
                outcome, "ft_balance_of", lambda raw: parse_amount(raw, "ft_balance_of")
            )
        except ExternalCallFailure as e:
            self._emit(EventKind.BORROW_FAILED_TO_GET_UNDERLYING_BALANCE, self.amount, e.reason)
            self._finish(FlowStatus.FAILED, detail=str(e), error=e)
            return

        if cash < self.amount:
            error = InsufficientLiquidity(self.amount, cash)
            self._emit(EventKind.BORROW_INSUFFICIENT_LIQUIDITY, self.amount, str(error))
            self._finish(FlowStatus.REJECTED, detail=str(error), error=error)
            return

        market = self.market
        ledger = market.ledger
        rate = borrow_rate(self.model, cash, ledger.total_borrows, ledger.total_reserves)
        profile = ledger.profile(self.account)
        # Persisted only once the underlying has actually been paid out.
        self._accrued = calculate_accrued_interest(
            rate, profile.borrows, profile.borrow_interest, market.clock.current_height()
        )

        self._await_call(
            Step.AWAITING_CONTROLLER_ACK,
            "increase_borrows",
            lambda: market.controller.notify_borrow_increase(
                self.account, self.amount, gas=market.gas.controller_call
            ),
        )

    def _on_controller_ack(self, outcome: Outcome) -> None:
        if not outcome.success:
            error = ExternalCallFailure("increase_borrows", outcome.error)
            self._emit(
                EventKind.BORROW_FAILED_TO_INCREASE_BORROW_ON_CONTROLLER,
                self.amount,
                outcome.error,
            )
            self._finish(FlowStatus.FAILED, detail=str(error), error=error)
            return

        market = self.market
        self._await_call(
            Step.AWAITING_TRANSFER,
            "ft_transfer",
            lambda: market.underlying.transfer(
                self.account, self.amount, "Borrow", gas=market.gas.transfer
            ),
        )

    def _on_transfer(self, outcome: Outcome) -> None:
        market = self.market
        if not outcome.success:
            self._transfer_error = outcome.error
            self._emit(
                EventKind.BORROW_FAILED_TO_TRANSFER_UNDERLYING, self.amount, outcome.error
            )
            self._await_call(
                Step.AWAITING_REVERT,
                "repay_borrows",
                lambda: market.controller.notify_borrow_decrease(
                    self.account, self.amount, gas=market.gas.controller_call
                ),
            )
            return

        accrued = self._accrued
        if accrued is None:
            raise RuntimeError(f"{self!r} paid out before accruing interest")
        ledger = market.ledger
        ledger.set_borrow_interest(self.lease, accrued)
        ledger.increase_borrows(self.lease, self.amount)
        logger.info("Borrow of %d paid out to %s", self.amount, self.account)
        self._emit(EventKind.BORROW_SUCCESS, self.amount)
        self._finish(FlowStatus.SUCCEEDED, returned=self.amount)

    def _on_revert(self, outcome: Outcome) -> None:
        if not outcome.success:
            error = ExternalCallFailure("repay_borrows", outcome.error)
            self._emit(EventKind.BORROW_FAILED_TO_REVERT_CONTROLLER, self.amount, outcome.error)
            self._finish(
                FlowStatus.FAILED,
                detail=f"controller still records the borrow: {error}",
                error=error,
            )
            return

        error = CompensatedFailure("ft_transfer", self._transfer_error)
        self._finish(FlowStatus.COMPENSATED, detail=str(error), error=error)
