"""Settlement core of a pooled money-market and its limit-order liquidity release."""

__version__ = "0.1.0"
