"""One money market: its ledger, locks and settlement entry points.

Entry points check preconditions synchronously (prepaid gas, the account's
lock, share balance) and raise before any external call is issued. Once a
flow has started, every outcome is reported through its terminal
:class:`~moneymarket.models.SettlementResult`.
"""
from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Iterable, Optional

from .config import GasConfig, MarketConfig
from .events import EventLog
from .exceptions import InsufficientGas, InsufficientShares, Unauthorized, UnknownTransferAction
from .flows import BorrowFlow, MarketFlow, RepayFlow, SupplyFlow, WithdrawFlow
from .interest import borrow_rate, supply_rate
from .interfaces import RiskController, UnderlyingToken
from .ledger import AccountLedger
from .locks import SettlementLocks
from .models import (
    RATE_DECIMALS,
    AccruedInterest,
    Action,
    InterestRateModel,
    RewardSetting,
    SettlementResult,
)
from .runtime import BlockClock, Runtime

logger = logging.getLogger(__name__)

_TRANSFER_ACTIONS = {"Supply": Action.SUPPLY, "Repay": Action.REPAY}


def parse_transfer_action(msg: str) -> Action:
    """Decode the ``msg`` of a transfer-and-notify call.

    Examples:
        '"Supply"' -> Action.SUPPLY
        'Repay'    -> Action.REPAY
    """
    text = msg.strip()
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        decoded = text
    if isinstance(decoded, str) and decoded in _TRANSFER_ACTIONS:
        return _TRANSFER_ACTIONS[decoded]
    raise UnknownTransferAction(msg)


class Market:
    """Settlement core of a single lending market."""

    def __init__(
        self,
        config: MarketConfig,
        gas: GasConfig,
        underlying: UnderlyingToken,
        controller: RiskController,
        *,
        runtime: Optional[Runtime] = None,
        clock: Optional[BlockClock] = None,
        events: Optional[EventLog] = None,
        locks: Optional[SettlementLocks] = None,
    ) -> None:
        self.config = config
        self.gas = gas
        self.underlying = underlying
        self.controller = controller
        self.model = config.interest_rate_model
        self.runtime = runtime if runtime is not None else Runtime()
        self.clock = clock or BlockClock()
        self.events = events if events is not None else EventLog()
        self.locks = locks if locks is not None else SettlementLocks()
        self.ledger = AccountLedger(self.locks)

    @property
    def contract_id(self) -> str:
        return self.config.contract_id

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def _start(
        self,
        flow_cls: type[MarketFlow],
        account: str,
        amount: int,
        required_gas: int,
        prepaid_gas: int,
    ) -> MarketFlow:
        if amount <= 0:
            raise ValueError(f"{flow_cls.action.value} amount must be positive, got {amount}")
        if prepaid_gas < required_gas:
            raise InsufficientGas(flow_cls.action.value, required_gas, prepaid_gas)

        lease = self.locks.lock(account, flow_cls.action, amount)
        logger.info("Starting %s of %d for %s", flow_cls.action.value, amount, account)
        try:
            return flow_cls(self, lease, amount).start()
        except Exception:
            self.locks.unlock(lease)
            raise

    def submit_supply(self, account: str, amount: int, *, prepaid_gas: int) -> MarketFlow:
        return self._start(SupplyFlow, account, amount, self.gas.supply, prepaid_gas)

    def submit_repay(self, account: str, amount: int, *, prepaid_gas: int) -> MarketFlow:
        return self._start(RepayFlow, account, amount, self.gas.repay, prepaid_gas)

    def submit_borrow(self, account: str, amount: int, *, prepaid_gas: int) -> MarketFlow:
        return self._start(BorrowFlow, account, amount, self.gas.borrow, prepaid_gas)

    def submit_withdraw(self, account: str, shares: int, *, prepaid_gas: int) -> MarketFlow:
        available = self.ledger.shares.balance_of(account)
        if shares > available:
            raise InsufficientShares(account, shares, available)
        return self._start(WithdrawFlow, account, shares, self.gas.withdraw, prepaid_gas)

    async def supply(self, account: str, amount: int, *, prepaid_gas: int) -> SettlementResult:
        return await self.submit_supply(account, amount, prepaid_gas=prepaid_gas).wait()

    async def repay(self, account: str, amount: int, *, prepaid_gas: int) -> SettlementResult:
        return await self.submit_repay(account, amount, prepaid_gas=prepaid_gas).wait()

    async def borrow(self, account: str, amount: int, *, prepaid_gas: int) -> SettlementResult:
        return await self.submit_borrow(account, amount, prepaid_gas=prepaid_gas).wait()

    async def withdraw(self, account: str, shares: int, *, prepaid_gas: int) -> SettlementResult:
        return await self.submit_withdraw(account, shares, prepaid_gas=prepaid_gas).wait()

    def on_transfer_received(
        self, sender: str, amount: int, msg: str, prepaid_gas: int
    ) -> MarketFlow:
        """Landing point of the underlying's transfer-and-notify call."""
        action = parse_transfer_action(msg)
        if action is Action.SUPPLY:
            return self.submit_supply(sender, amount, prepaid_gas=prepaid_gas)
        return self.submit_repay(sender, amount, prepaid_gas=prepaid_gas)

    # ------------------------------------------------------------------
    # Privileged configuration
    # ------------------------------------------------------------------

    def _require_owner(self, caller: str) -> None:
        if not self.config.owner_id or caller != self.config.owner_id:
            raise Unauthorized(caller)

    def set_interest_rate_model(self, caller: str, model: InterestRateModel) -> None:
        self._require_owner(caller)
        self.model = model
        logger.info("Interest rate model updated by %s", caller)

    def set_rewards_config(self, caller: str, settings: Iterable[RewardSetting]) -> None:
        self._require_owner(caller)
        self.model = replace(self.model, rewards_config=tuple(settings))
        logger.info("Rewards config updated by %s", caller)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def exchange_rate(self, underlying_balance: int) -> int:
        """Underlying per pool share, scaled by ``RATE_DECIMALS``.

        (underlying_balance + total_borrows - total_supplies) / share_supply,
        or the initial rate while no shares exist or the pool value is not
        positive.
        """
        share_supply = self.ledger.shares.total_supply
        if share_supply == 0:
            return self.config.initial_exchange_rate

        pool_value = underlying_balance + self.ledger.total_borrows - self.ledger.total_supplies
        rate = pool_value * RATE_DECIMALS // share_supply
        if rate <= 0:
            return self.config.initial_exchange_rate
        return rate

    def borrow_rate(self, cash: int, borrows: int, reserves: int) -> int:
        return borrow_rate(self.model, cash, borrows, reserves)

    def supply_rate(self, cash: int, borrows: int, reserves: int) -> int:
        return supply_rate(self.model, cash, borrows, reserves)

    def get_account_supplies(self, account: str) -> int:
        return self.ledger.profile(account).supplies

    def get_account_borrows(self, account: str) -> int:
        return self.ledger.profile(account).borrows

    def get_accrued_supply_interest(self, account: str) -> AccruedInterest:
        return self.ledger.profile(account).supply_interest

    def get_accrued_borrow_interest(self, account: str) -> AccruedInterest:
        return self.ledger.profile(account).borrow_interest

    def share_balance_of(self, account: str) -> int:
        return self.ledger.shares.balance_of(account)
