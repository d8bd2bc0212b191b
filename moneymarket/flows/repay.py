"""Repay: settle the full debt or nothing.

The ledger is only touched after the controller confirms the reduced
borrows, so a failed or rejected repay leaves principal and interest as they
were and hands the whole amount back.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..events import EventKind
from ..exceptions import ExternalCallFailure, RepayShortfall
from ..gateway.parser import parse_balance_after_deposit
from ..interest import borrow_rate, calculate_accrued_interest
from ..models import AccruedInterest, Action, FlowStatus
from ..runtime import Outcome
from .base import MarketFlow, Step

if TYPE_CHECKING:
    from ..locks import Lease
    from ..market import Market

logger = logging.getLogger(__name__)


class RepayFlow(MarketFlow):
    action = Action.REPAY
    refund_on_abort = True

    def __init__(self, market: Market, lease: Lease, amount: int) -> None:
        super().__init__(market, lease, amount)
        self.principal = 0
        self.debt = 0
        self._handlers = {
            Step.AWAITING_BALANCE: self._on_balance,
            Step.AWAITING_CONTROLLER_ACK: self._on_controller_ack,
        }

    def _begin(self) -> None:
        self._balance_query()

    def _on_balance(self, outcome: Outcome) -> None:
        try:
            balance = self._unwrap(
                outcome,
                "ft_balance_of",
                lambda raw: parse_balance_after_deposit(raw, self.amount),
            )
        except ExternalCallFailure as e:
            self._emit(EventKind.REPAY_FAILED_TO_GET_UNDERLYING_BALANCE, self.amount, e.reason)
            self._finish(FlowStatus.FAILED, returned=self.amount, detail=str(e), error=e)
            return

        market = self.market
        ledger = market.ledger

        # Rate from the balances as they were before this repayment arrived.
        rate = borrow_rate(
            self.model, balance - self.amount, ledger.total_borrows, ledger.total_reserves
        )
        profile = ledger.profile(self.account)
        accrued = calculate_accrued_interest(
            rate, profile.borrows, profile.borrow_interest, market.clock.current_height()
        )
        self.principal = profile.borrows
        self.debt = self.principal + accrued.accumulated_interest

        if self.amount < self.debt:
            error = RepayShortfall(self.debt, self.amount)
            self._emit(EventKind.REPAY_INSUFFICIENT_AMOUNT, self.amount, str(error))
            self._finish(
                FlowStatus.REJECTED, returned=self.amount, detail=str(error), error=error
            )
            return

        self._await_call(
            Step.AWAITING_CONTROLLER_ACK,
            "repay_borrows",
            lambda: market.controller.notify_borrow_decrease(
                self.account, self.principal, gas=market.gas.controller_call
            ),
        )

    def _on_controller_ack(self, outcome: Outcome) -> None:
        if not outcome.success:
            error = ExternalCallFailure("repay_borrows", outcome.error)
            self._emit(EventKind.REPAY_FAILED_TO_UPDATE_USER_BALANCE, self.debt, outcome.error)
            self._finish(
                FlowStatus.FAILED, returned=self.amount, detail=str(error), error=error
            )
            return

        market = self.market
        market.ledger.settle_borrows(
            self.lease,
            AccruedInterest(last_recalculation_block=market.clock.current_height()),
        )
        refund = self.amount - self.debt
        logger.info(
            "Repay from %s settled debt %d, refunding %d", self.account, self.debt, refund
        )
        self._emit(EventKind.REPAY_SUCCESS, self.debt)
        self._finish(FlowStatus.SUCCEEDED, returned=refund)
