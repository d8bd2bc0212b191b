"""Data models. Value objects are frozen; updates go through ``dataclasses.replace``."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from .exceptions import SettlementError

# Fixed-point scale for every ratio (rates, utilization, exchange rate).
RATE_DECIMALS = 10**24

PairId = Tuple[str, str]


class Action(str, Enum):
    """Kind of settlement a lock is held for."""

    SUPPLY = "supply"
    REPAY = "repay"
    BORROW = "borrow"
    WITHDRAW = "withdraw"
    CANCEL_ORDER = "cancel_order"
    FREE_LIQUIDITY_SLOT = "free_liquidity_slot"


# ---------------------------------------------------------------------------
# Account ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccruedInterest:
    """Interest accumulated since the last checkpoint."""

    accumulated_interest: int = 0
    last_recalculation_block: int = 0


@dataclass(frozen=True)
class UserProfile:
    """Per-account balances; the all-zero profile is the empty state."""

    supplies: int = 0
    borrows: int = 0
    supply_interest: AccruedInterest = field(default_factory=AccruedInterest)
    borrow_interest: AccruedInterest = field(default_factory=AccruedInterest)

    @property
    def is_empty(self) -> bool:
        return self == UserProfile()


@dataclass(frozen=True)
class RewardSetting:
    token: str
    reward_per_block: int = 0


@dataclass(frozen=True)
class InterestRateModel:
    """Kinked rate model; every field is a ratio over ``RATE_DECIMALS``."""

    kink: int = RATE_DECIMALS
    multiplier_per_block: int = RATE_DECIMALS
    base_rate_per_block: int = RATE_DECIMALS
    jump_multiplier_per_block: int = RATE_DECIMALS
    reserve_factor: int = 500
    rewards_config: tuple[RewardSetting, ...] = ()


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class OrderStatus(str, Enum):
    PENDING = "Pending"
    EXECUTED = "Executed"
    CANCELED = "Canceled"
    LIQUIDATED = "Liquidated"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class OrderType(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    LONG = "Long"
    SHORT = "Short"


@dataclass(frozen=True)
class Price:
    ticker_id: str
    value: Decimal


@dataclass(frozen=True)
class PnL:
    is_profit: bool = False
    amount: int = 0


@dataclass(frozen=True)
class HistoryData:
    """Closing snapshot recorded when an order leaves ``Pending``."""

    fee: int = 0
    pnl: PnL = field(default_factory=PnL)
    filled: int = 0


@dataclass(frozen=True)
class Order:
    status: OrderStatus
    order_type: OrderType
    sell_token: str
    buy_token: str
    amount: int
    leverage: Decimal
    sell_token_price: Price
    buy_token_price: Price
    block: int
    lpt_id: str
    history: Optional[HistoryData] = None

    @property
    def pair(self) -> PairId:
        return (self.sell_token, self.buy_token)


@dataclass(frozen=True)
class LiquidityInfo:
    """Live liquidity behind a venue position."""

    position_id: str
    amount: int


@dataclass(frozen=True)
class RemovedLiquidity:
    """Confirmation that a venue position was withdrawn, with the returned split."""

    position_id: str
    returned_a: int
    returned_b: int


# ---------------------------------------------------------------------------
# Flow results
# ---------------------------------------------------------------------------


class FlowStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"
    COMPENSATED = "compensated"


@dataclass(frozen=True)
class SettlementResult:
    """Terminal result of a settlement or liquidation chain.

    ``returned`` is the value handed back to the caller: the unconsumed or
    refunded amount for supply and repay, the amount paid out for borrow and
    withdraw, and the amount credited back for order cancellation.
    """

    action: Action
    account: str
    status: FlowStatus
    returned: int = 0
    detail: str = ""
    correlation_id: str = ""
    order_id: Optional[int] = None
    error: Optional[SettlementError] = None

    @property
    def ok(self) -> bool:
        return self.status is FlowStatus.SUCCEEDED
