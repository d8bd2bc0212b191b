"""Settlement orchestration: wires gateways, market, trading desk and notifiers."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..config import AppConfig
from ..events import EventLog
from ..gateway import (
    JsonRpcClient,
    LiquidityVenueClient,
    RiskControllerClient,
    UnderlyingTokenClient,
)
from ..interfaces import LiquidityVenue, Notifier, RiskController, UnderlyingToken
from ..market import Market
from ..models import SettlementResult
from ..notifications import TelegramNotifier, format_result
from ..runtime import BlockClock, Runtime
from ..trading import TradingDesk

logger = logging.getLogger(__name__)


class SettlementService:
    """Runs settlement chains to completion and reports their results.

    Gateway clients are built from the configuration unless injected. The
    market and the trading desk share one runtime and one event log but keep
    separate locks, as they settle on behalf of different contracts.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        runtime: Optional[Runtime] = None,
        clock: Optional[BlockClock] = None,
        underlying: Optional[UnderlyingToken] = None,
        controller: Optional[RiskController] = None,
        venue: Optional[LiquidityVenue] = None,
        notifiers: Optional[Sequence[Notifier]] = None,
    ) -> None:
        self._config = config
        self.runtime = runtime if runtime is not None else Runtime()
        self.events = EventLog()

        rpc: Optional[JsonRpcClient] = None
        if underlying is None or controller is None or venue is None:
            rpc = JsonRpcClient(config.gateway)
        if underlying is None:
            underlying = UnderlyingTokenClient(rpc, config.market.underlying_token_id)
        if controller is None:
            controller = RiskControllerClient(
                rpc, config.market.controller_id, config.market.contract_id
            )
        if venue is None:
            venue = LiquidityVenueClient(rpc, config.trading.venue_id)

        self.market = Market(
            config.market,
            config.gas,
            underlying,
            controller,
            runtime=self.runtime,
            clock=clock,
            events=self.events,
        )
        self.desk = TradingDesk(
            config.trading,
            config.gas,
            venue,
            runtime=self.runtime,
            events=self.events,
        )

        if notifiers is None:
            notifiers = []
            if config.notifications.telegram.enabled:
                notifiers.append(TelegramNotifier(config.notifications.telegram))
        self._notifiers: list[Notifier] = list(notifiers)

    # ------------------------------------------------------------------
    # Notification helpers
    # ------------------------------------------------------------------

    async def _send_log(self, message: str) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=True)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str, subject: str = "") -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    async def _report(self, result: SettlementResult) -> SettlementResult:
        message = format_result(result)
        if result.ok:
            await self._send_log(message)
        else:
            await self._send_alert(message, subject=f"{result.action.value} {result.status.value}")
        return result

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def supply(
        self, account: str, amount: int, prepaid_gas: Optional[int] = None
    ) -> SettlementResult:
        gas = self._config.gas.supply if prepaid_gas is None else prepaid_gas
        return await self._report(await self.market.supply(account, amount, prepaid_gas=gas))

    async def repay(
        self, account: str, amount: int, prepaid_gas: Optional[int] = None
    ) -> SettlementResult:
        gas = self._config.gas.repay if prepaid_gas is None else prepaid_gas
        return await self._report(await self.market.repay(account, amount, prepaid_gas=gas))

    async def borrow(
        self, account: str, amount: int, prepaid_gas: Optional[int] = None
    ) -> SettlementResult:
        gas = self._config.gas.borrow if prepaid_gas is None else prepaid_gas
        return await self._report(await self.market.borrow(account, amount, prepaid_gas=gas))

    async def withdraw(
        self, account: str, shares: int, prepaid_gas: Optional[int] = None
    ) -> SettlementResult:
        gas = self._config.gas.withdraw if prepaid_gas is None else prepaid_gas
        return await self._report(await self.market.withdraw(account, shares, prepaid_gas=gas))

    async def cancel_limit_order(
        self, caller: str, order_id: int, prepaid_gas: Optional[int] = None
    ) -> SettlementResult:
        gas = self._config.gas.cancel_order if prepaid_gas is None else prepaid_gas
        return await self._report(
            await self.desk.cancel_limit_order(caller, order_id, prepaid_gas=gas)
        )

    async def free_up_liquidity_slot(
        self, caller: str, order_id: int, prepaid_gas: int
    ) -> list[SettlementResult]:
        report = self.desk.free_up_liquidity_slot(caller, order_id, prepaid_gas=prepaid_gas)
        results = await report.wait()
        for result in results:
            await self._report(result)
        return results

    async def drain(self) -> None:
        await self.runtime.drain()
