"""Supply: mint pool shares for deposited underlying, then notify the controller.

The mint and the supplied-amount increase are applied before the controller
round-trip inside a :class:`MutationScope`; a controller failure rolls the
scope back so the account ends exactly where it started.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from ..events import EventKind
from ..exceptions import CompensatedFailure, ExternalCallFailure
from ..gateway.parser import parse_balance_after_deposit
from ..interest import calculate_accrued_interest, round_div, supply_rate
from ..ledger import MutationScope
from ..models import RATE_DECIMALS, Action, FlowStatus
from ..runtime import Outcome
from .base import MarketFlow, Step

if TYPE_CHECKING:
    from ..locks import Lease
    from ..market import Market

logger = logging.getLogger(__name__)


class SupplyFlow(MarketFlow):
    action = Action.SUPPLY
    refund_on_abort = True

    def __init__(self, market: Market, lease: Lease, amount: int) -> None:
        super().__init__(market, lease, amount)
        self.minted = 0
        self._scope: Optional[MutationScope] = None
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
            self._emit(EventKind.SUPPLY_FAILED_TO_GET_UNDERLYING_BALANCE, self.amount, e.reason)
            self._finish(FlowStatus.FAILED, returned=self.amount, detail=str(e), error=e)
            return

        market = self.market
        ledger = market.ledger
        cash = balance - self.amount

        exchange_rate = market.exchange_rate(cash)
        self.minted = round_div(self.amount * RATE_DECIMALS, exchange_rate)

        rate = supply_rate(self.model, cash, ledger.total_borrows, ledger.total_reserves)
        profile = ledger.profile(self.account)
        accrued = calculate_accrued_interest(
            rate, profile.supplies, profile.supply_interest, market.clock.current_height()
        )

        self._scope = MutationScope(ledger, self.lease)
        self._scope.set_supply_interest(accrued)
        self._scope.mint(self.minted)
        self._scope.increase_supplies(self.amount)

        logger.info(
            "Supply from %s to %s of %d minted %d shares",
            self.account,
            market.contract_id,
            self.amount,
            self.minted,
        )

        self._await_call(
            Step.AWAITING_CONTROLLER_ACK,
            "increase_supplies",
            lambda: market.controller.notify_supply_increase(
                self.account, self.amount, gas=market.gas.controller_call
            ),
        )

    def _discard_pending(self) -> None:
        if self._scope is not None and not self._scope.closed:
            self._scope.rollback()

    def _on_controller_ack(self, outcome: Outcome) -> None:
        scope = self._scope
        if scope is None:
            raise RuntimeError(f"{self!r} got a controller reply before minting")
        if not outcome.success:
            scope.rollback()
            error = CompensatedFailure("increase_supplies", outcome.error)
            self._emit(
                EventKind.SUPPLY_FAILED_TO_INCREASE_SUPPLY_ON_CONTROLLER,
                self.amount,
                outcome.error,
            )
            self._finish(
                FlowStatus.COMPENSATED, returned=self.amount, detail=str(error), error=error
            )
            return

        scope.commit()
        self._emit(EventKind.SUPPLY_SUCCESS, self.amount)
        self._finish(FlowStatus.SUCCEEDED, returned=0)
