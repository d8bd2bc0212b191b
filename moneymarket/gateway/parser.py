"""Pure parsing functions for contract call payloads, no I/O.

Amounts travel as JSON strings (128-bit values do not fit JSON numbers) or
as plain integers. Anything else is a :class:`ResultParseError`.
"""
from __future__ import annotations

from typing import Any

from ..exceptions import ResultParseError
from ..models import LiquidityInfo, RemovedLiquidity


def parse_amount(raw: Any, step: str = "amount") -> int:
    """Parse a non-negative integer amount.

    Examples:
        "1000" -> 1000
        42 -> 42
    """
    if isinstance(raw, bool):
        raise ResultParseError(f"expected an amount, got {raw!r}", step=step)
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        # str.isdigit() also accepts superscripts and other non-ASCII digits.
        if not (text.isascii() and text.isdigit()):
            raise ResultParseError(f"expected an amount, got {raw!r}", step=step)
        value = int(text)
    else:
        raise ResultParseError(f"expected an amount, got {raw!r}", step=step)

    if value < 0:
        raise ResultParseError(f"amount must be non-negative, got {value}", step=step)
    return value


def parse_liquidity(raw: Any, position_id: str) -> LiquidityInfo:
    """Parse the venue's liquidity view for one position.

    The venue answers with an object carrying at least ``amount``; ``lpt_id``
    is checked against the requested position when present.
    """
    if not isinstance(raw, dict) or "amount" not in raw:
        raise ResultParseError(
            f"Some problem with liquidity parsing: {raw!r}", step="get_liquidity"
        )

    reported_id = raw.get("lpt_id", position_id)
    if reported_id != position_id:
        raise ResultParseError(
            f"liquidity reported for {reported_id}, requested {position_id}",
            step="get_liquidity",
        )

    return LiquidityInfo(
        position_id=position_id,
        amount=parse_amount(raw["amount"], step="get_liquidity"),
    )


def parse_removed_amounts(raw: Any, position_id: str) -> RemovedLiquidity:
    """Parse the ``[returned_a, returned_b]`` pair from a liquidity removal."""
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        raise ResultParseError(
            f"Some problem with return amount from venue: {raw!r}",
            step="remove_liquidity",
        )

    return RemovedLiquidity(
        position_id=position_id,
        returned_a=parse_amount(raw[0], step="remove_liquidity"),
        returned_b=parse_amount(raw[1], step="remove_liquidity"),
    )


def parse_balance_after_deposit(raw: Any, deposited: int) -> int:
    """Parse the market's balance after a deposit has already landed in it."""
    balance = parse_amount(raw, step="ft_balance_of")
    if balance < deposited:
        raise ResultParseError(
            f"balance {balance} does not include the deposited {deposited}",
            step="ft_balance_of",
        )
    return balance
