"""Withdraw: redeem pool shares for underlying once the controller authorizes it."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..events import EventKind
from ..exceptions import CompensatedFailure, ExternalCallFailure
from ..gateway.parser import parse_amount
from ..interest import calculate_accrued_interest, supply_rate
from ..models import RATE_DECIMALS, Action, FlowStatus
from ..runtime import Outcome
from .base import MarketFlow, Step

if TYPE_CHECKING:
    from ..locks import Lease
    from ..market import Market

logger = logging.getLogger(__name__)


class WithdrawFlow(MarketFlow):
    """``amount`` is the number of pool shares being redeemed."""

    action = Action.WITHDRAW

    def __init__(self, market: Market, lease: Lease, amount: int) -> None:
        super().__init__(market, lease, amount)
        self.token_amount = 0
        self._cash = 0
        self._transfer_error = ""
        self._handlers = {
            Step.AWAITING_BALANCE: self._on_balance,
            Step.AWAITING_CONTROLLER_ACK: self._on_authorization,
            Step.AWAITING_TRANSFER: self._on_transfer,
            Step.AWAITING_REVERT: self._on_revert,
        }

    def _begin(self) -> None:
        self._balance_query()

    def _on_balance(self, outcome: Outcome) -> None:
        try:
            self._cash = self._unwrap(
                outcome, "ft_balance_of", lambda raw: parse_amount(raw, "ft_balance_of")
            )
        except ExternalCallFailure as e:
            self._emit(EventKind.WITHDRAW_FAILED_TO_GET_UNDERLYING_BALANCE, self.amount, e.reason)
            self._finish(FlowStatus.FAILED, detail=str(e), error=e)
            return

        market = self.market
        exchange_rate = market.exchange_rate(self._cash)
        self.token_amount = self.amount * exchange_rate // RATE_DECIMALS

        self._await_call(
            Step.AWAITING_CONTROLLER_ACK,
            "withdraw_supplies",
            lambda: market.controller.request_withdraw_authorization(
                self.account,
                market.contract_id,
                self.token_amount,
                gas=market.gas.controller_call,
            ),
        )

    def _on_authorization(self, outcome: Outcome) -> None:
        if not outcome.success:
            error = ExternalCallFailure("withdraw_supplies", outcome.error)
            self._emit(EventKind.WITHDRAW_FAILED_TO_AUTHORIZE, self.token_amount, outcome.error)
            self._finish(FlowStatus.FAILED, detail=str(error), error=error)
            return

        market = self.market
        self._await_call(
            Step.AWAITING_TRANSFER,
            "ft_transfer",
            lambda: market.underlying.transfer(
                self.account, self.token_amount, "Withdraw", gas=market.gas.transfer
            ),
        )

    def _on_transfer(self, outcome: Outcome) -> None:
        market = self.market
        if not outcome.success:
            self._transfer_error = outcome.error
            self._emit(
                EventKind.WITHDRAW_FAILED_TO_TRANSFER_UNDERLYING,
                self.token_amount,
                outcome.error,
            )
            # The controller already released the collateral; give it back.
            self._await_call(
                Step.AWAITING_REVERT,
                "increase_supplies",
                lambda: market.controller.notify_supply_increase(
                    self.account, self.token_amount, gas=market.gas.controller_call
                ),
            )
            return

        ledger = market.ledger
        rate = supply_rate(
            self.model, self._cash, ledger.total_borrows, ledger.total_reserves
        )
        profile = ledger.profile(self.account)
        accrued = calculate_accrued_interest(
            rate, profile.supplies, profile.supply_interest, market.clock.current_height()
        )
        ledger.set_supply_interest(self.lease, accrued)
        ledger.burn(self.lease, self.amount)
        ledger.decrease_supplies(self.lease, min(self.token_amount, profile.supplies))

        logger.info(
            "Withdraw of %d shares paid %d to %s",
            self.amount,
            self.token_amount,
            self.account,
        )
        self._emit(EventKind.WITHDRAW_SUCCESS, self.token_amount)
        self._finish(FlowStatus.SUCCEEDED, returned=self.token_amount)

    def _on_revert(self, outcome: Outcome) -> None:
        if not outcome.success:
            error = ExternalCallFailure("increase_supplies", outcome.error)
            self._emit(
                EventKind.WITHDRAW_FAILED_TO_REVERT_CONTROLLER,
                self.token_amount,
                outcome.error,
            )
            self._finish(
                FlowStatus.FAILED,
                detail=f"controller no longer records the collateral: {error}",
                error=error,
            )
            return

        error = CompensatedFailure("ft_transfer", self._transfer_error)
        self._finish(FlowStatus.COMPENSATED, detail=str(error), error=error)
