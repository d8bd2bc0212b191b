"""External gateway: JSON-RPC transport and contract clients."""
from .clients import LiquidityVenueClient, RiskControllerClient, UnderlyingTokenClient
from .rpc import JsonRpcClient

__all__ = [
    "JsonRpcClient",
    "LiquidityVenueClient",
    "RiskControllerClient",
    "UnderlyingTokenClient",
]
