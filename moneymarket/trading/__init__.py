"""Limit-order book and the chains that release its venue liquidity."""
from .desk import SlotReleaseReport, TradingDesk, take_profit_lock_key
from .liquidation import CancelOrderFlow, LiquidityRemovalFlow, SlotReleaseFlow
from .orderbook import OrderBook

__all__ = [
    "CancelOrderFlow",
    "LiquidityRemovalFlow",
    "OrderBook",
    "SlotReleaseFlow",
    "SlotReleaseReport",
    "TradingDesk",
    "take_profit_lock_key",
]
