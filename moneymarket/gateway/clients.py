"""Contract clients bound to configured contract ids.

Each method forwards one cross-contract call with its Tgas allotment and
returns the raw decoded payload; parsing is left to the waiting flow.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)


class UnderlyingTokenClient:
    """Fungible token holding the market's underlying asset."""

    def __init__(self, rpc: JsonRpcClient, token_id: str) -> None:
        self._rpc = rpc
        self.token_id = token_id

    async def balance_of(self, holder: str, *, gas: int) -> Any:
        return await self._rpc.call(
            self.token_id, "ft_balance_of", {"account_id": holder}, gas
        )

    async def transfer(
        self, to: str, amount: int, memo: Optional[str] = None, *, gas: int
    ) -> Any:
        logger.info("Transferring %d of %s to %s", amount, self.token_id, to)
        return await self._rpc.call(
            self.token_id,
            "ft_transfer",
            {"receiver_id": to, "amount": str(amount), "memo": memo},
            gas,
        )

    async def transfer_and_notify(
        self,
        to: str,
        amount: int,
        memo: Optional[str],
        action_payload: str,
        *,
        gas: int,
    ) -> Any:
        """Transfer and invoke the receiver; the payload is the consumed amount."""
        return await self._rpc.call(
            self.token_id,
            "ft_transfer_call",
            {
                "receiver_id": to,
                "amount": str(amount),
                "memo": memo,
                "msg": action_payload,
            },
            gas,
        )


class RiskControllerClient:
    """Risk controller, bound to the market whose balances it records."""

    def __init__(self, rpc: JsonRpcClient, controller_id: str, market_id: str) -> None:
        self._rpc = rpc
        self.controller_id = controller_id
        self.market_id = market_id

    async def _update(self, method: str, account: str, amount: int, gas: int) -> Any:
        return await self._rpc.call(
            self.controller_id,
            method,
            {
                "account_id": account,
                "token_address": self.market_id,
                "tokens_amount": str(amount),
            },
            gas,
        )

    async def notify_supply_increase(self, account: str, amount: int, *, gas: int) -> Any:
        return await self._update("increase_supplies", account, amount, gas)

    async def notify_supply_decrease(self, account: str, amount: int, *, gas: int) -> Any:
        return await self._update("decrease_supplies", account, amount, gas)

    async def notify_borrow_increase(self, account: str, amount: int, *, gas: int) -> Any:
        return await self._update("increase_borrows", account, amount, gas)

    async def notify_borrow_decrease(self, account: str, amount: int, *, gas: int) -> Any:
        return await self._update("repay_borrows", account, amount, gas)

    async def request_withdraw_authorization(
        self, account: str, market: str, amount: int, *, gas: int
    ) -> Any:
        return await self._rpc.call(
            self.controller_id,
            "withdraw_supplies",
            {
                "account_id": account,
                "token_address": market,
                "tokens_amount": str(amount),
            },
            gas,
        )


class LiquidityVenueClient:
    """Concentrated-liquidity venue holding limit-order positions."""

    def __init__(self, rpc: JsonRpcClient, venue_id: str) -> None:
        self._rpc = rpc
        self.venue_id = venue_id

    async def get_liquidity(self, position_id: str, *, gas: int) -> Any:
        return await self._rpc.call(
            self.venue_id, "get_liquidity", {"lpt_id": position_id}, gas
        )

    async def remove_liquidity(
        self,
        position_id: str,
        amount: int,
        min_out_a: int,
        min_out_b: int,
        *,
        gas: int,
    ) -> Any:
        return await self._rpc.call(
            self.venue_id,
            "remove_liquidity",
            {
                "lpt_id": position_id,
                "amount": str(amount),
                "min_amount_x": str(min_out_a),
                "min_amount_y": str(min_out_b),
            },
            gas,
        )
