"""Settlement flows for the money market."""
from .base import Flow, MarketFlow, Step
from .borrow import BorrowFlow
from .repay import RepayFlow
from .supply import SupplyFlow
from .withdraw import WithdrawFlow

__all__ = [
    "BorrowFlow",
    "Flow",
    "MarketFlow",
    "RepayFlow",
    "Step",
    "SupplyFlow",
    "WithdrawFlow",
]
