"""Underlying token protocol: the fungible asset ledger the market holds."""
from typing import Any, Optional, Protocol


class UnderlyingToken(Protocol):
    """Abstract interface for the underlying asset ledger.

    Methods return raw decoded payloads; callers parse them.
    """

    async def balance_of(self, holder: str, *, gas: int) -> Any: ...

    async def transfer(
        self, to: str, amount: int, memo: Optional[str] = None, *, gas: int
    ) -> Any: ...

    async def transfer_and_notify(
        self,
        to: str,
        amount: int,
        memo: Optional[str],
        action_payload: str,
        *,
        gas: int,
    ) -> Any: ...
