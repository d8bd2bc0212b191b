"""Pure interest-rate and accrual functions: fixed-point integers, no I/O."""
from __future__ import annotations

from .models import RATE_DECIMALS, AccruedInterest, InterestRateModel


def _require_non_negative(**values: int) -> None:
    for name, value in values.items():
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")


def utilization_rate(cash: int, borrows: int, reserves: int) -> int:
    """Share of the pool that is lent out.

    utilization = borrows / (cash + borrows - reserves)

    An empty or over-reserved pool (denominator <= 0) has zero utilization.
    """
    _require_non_negative(cash=cash, borrows=borrows, reserves=reserves)
    denominator = cash + borrows - reserves
    if denominator <= 0:
        return 0
    return borrows * RATE_DECIMALS // denominator


def borrow_rate(
    model: InterestRateModel, cash: int, borrows: int, reserves: int
) -> int:
    """Per-block borrow rate with a kink.

    Below the kink:  base + utilization * multiplier
    Above the kink:  base + kink * multiplier + (utilization - kink) * jump
    """
    _require_non_negative(cash=cash, borrows=borrows, reserves=reserves)
    if cash + borrows - reserves <= 0:
        return 0

    util = utilization_rate(cash, borrows, reserves)
    if util <= model.kink:
        return (
            model.base_rate_per_block
            + util * model.multiplier_per_block // RATE_DECIMALS
        )

    normal_rate = (
        model.base_rate_per_block
        + model.kink * model.multiplier_per_block // RATE_DECIMALS
    )
    excess_util = util - model.kink
    return normal_rate + excess_util * model.jump_multiplier_per_block // RATE_DECIMALS


def supply_rate(
    model: InterestRateModel, cash: int, borrows: int, reserves: int
) -> int:
    """Per-block supply rate: borrow_rate * utilization * (1 - reserve_factor)."""
    util = utilization_rate(cash, borrows, reserves)
    rate = borrow_rate(model, cash, borrows, reserves)
    rate_to_pool = rate * util // RATE_DECIMALS
    return rate_to_pool * (RATE_DECIMALS - model.reserve_factor) // RATE_DECIMALS


def calculate_accrued_interest(
    rate: int,
    principal: int,
    prior: AccruedInterest,
    current_height: int,
) -> AccruedInterest:
    """Advance an interest checkpoint to ``current_height``.

    delta = principal * rate * elapsed_blocks / RATE_DECIMALS, floored.
    """
    _require_non_negative(rate=rate, principal=principal)
    if current_height < prior.last_recalculation_block:
        raise ValueError(
            f"Block height {current_height} is behind the last recalculation "
            f"block {prior.last_recalculation_block}"
        )

    elapsed = current_height - prior.last_recalculation_block
    delta = principal * rate * elapsed // RATE_DECIMALS
    return AccruedInterest(
        accumulated_interest=prior.accumulated_interest + delta,
        last_recalculation_block=current_height,
    )


def round_div(numerator: int, denominator: int) -> int:
    """Integer division rounded half up."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)
