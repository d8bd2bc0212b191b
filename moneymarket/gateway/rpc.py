"""JSON-RPC client for contract calls with endpoint fallback."""
from __future__ import annotations

import itertools
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import GatewayConfig
from ..exceptions import GatewayError

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """Contract RPC client that rotates across configured endpoints.

    Transport failures move on to the next endpoint and the one that answers
    becomes sticky. A JSON-RPC ``error`` reply is final: it surfaces at once as
    :class:`GatewayError` so the settlement callback can unlock and compensate.
    """

    def __init__(self, config: GatewayConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0
        self._ids = itertools.count(1)
        self._ssl_context = ssl.create_default_context(cafile=certifi.where())

    def _rotation(self) -> list[int]:
        """Endpoint indexes to try, starting from the sticky one."""
        count = len(self.endpoints)
        return [(self.current_rpc_index + offset) % count for offset in range(count)]

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        connector = aiohttp.TCPConnector(ssl=self._ssl_context)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(url, json=payload, timeout=timeout) as response:
                return await response.json()

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Send one JSON-RPC request, falling back across endpoints."""
        if not self.endpoints:
            raise GatewayError("No RPC endpoints configured")

        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        last_error: Exception | None = None
        for index in self._rotation():
            url = self.endpoints[index]
            try:
                reply = await self._post(url, request)
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s unreachable: %s", url, e)
                continue

            if "error" in reply:
                logger.warning("RPC %s rejected by %s: %s", method, url, reply["error"])
                raise GatewayError(f"RPC Error: {reply['error']}", step=method)

            if index != self.current_rpc_index:
                logger.info("Switched to RPC endpoint: %s", url)
                self.current_rpc_index = index
            return reply.get("result")

        raise GatewayError(
            f"All RPC endpoints failed. Last error: {last_error}", step=method
        )

    async def view(self, contract_id: str, method_name: str, args: dict[str, Any]) -> Any:
        """Read-only contract call."""
        return await self.rpc_call("contract_view", [contract_id, method_name, args])

    async def call(
        self,
        contract_id: str,
        method_name: str,
        args: dict[str, Any],
        gas: int,
    ) -> Any:
        """State-changing contract call with a Tgas allotment."""
        logger.debug("Calling %s.%s with %d Tgas", contract_id, method_name, gas)
        return await self.rpc_call(
            "contract_call", [contract_id, method_name, args, {"gas_tgas": gas}]
        )
