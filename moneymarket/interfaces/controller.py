"""Risk controller protocol: ledger of record for collateral and debt."""
from typing import Any, Protocol


class RiskController(Protocol):
    """Abstract interface for the cross-market risk controller."""

    async def notify_supply_increase(self, account: str, amount: int, *, gas: int) -> Any: ...

    async def notify_supply_decrease(self, account: str, amount: int, *, gas: int) -> Any: ...

    async def notify_borrow_increase(self, account: str, amount: int, *, gas: int) -> Any: ...

    async def notify_borrow_decrease(self, account: str, amount: int, *, gas: int) -> Any: ...

    async def request_withdraw_authorization(
        self, account: str, market: str, amount: int, *, gas: int
    ) -> Any: ...
