from .settlement import SettlementService

__all__ = ["SettlementService"]
