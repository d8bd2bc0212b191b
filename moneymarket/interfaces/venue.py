"""Liquidity venue protocol: external pool holding limit-order positions."""
from typing import Any, Protocol


class LiquidityVenue(Protocol):
    """Abstract interface for the external liquidity venue."""

    async def get_liquidity(self, position_id: str, *, gas: int) -> Any: ...

    async def remove_liquidity(
        self,
        position_id: str,
        amount: int,
        min_out_a: int,
        min_out_b: int,
        *,
        gas: int,
    ) -> Any: ...
