"""Protocol interfaces for the contracts the settlement core calls."""
from .controller import RiskController
from .notifier import Notifier
from .underlying import UnderlyingToken
from .venue import LiquidityVenue

__all__ = ["LiquidityVenue", "Notifier", "RiskController", "UnderlyingToken"]
