"""JSON-RPC wallet provider (local signer, browser bridge or dev node)."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import WalletConfig
from ...errors import ExecutionReverted, UserDeclined, WalletError

logger = logging.getLogger(__name__)

# EIP-1193 "User Rejected Request".
_USER_REJECTED_CODE = 4001
# Geth-style "execution reverted" error code.
_EXECUTION_REVERTED_CODE = 3


class RpcWalletProvider:
    """Wallet provider speaking EIP-1193 methods over JSON-RPC.

    Signing happens inside the wallet; this class only forwards requests and
    maps provider errors onto the controller's error taxonomy.
    """

    def __init__(self, config: WalletConfig, timeout: int = 30) -> None:
        self.rpc_url = config.rpc_url
        self.address = config.address or None
        self.poll_interval = config.receipt_poll_interval
        self.timeout = timeout
        self._request_id = 0

    async def _request(
        self, method: str, params: list[Any], wait_for_operator: bool = False
    ) -> Any:
        """POST one JSON-RPC request; every failure surfaces as WalletError.

        With ``wait_for_operator`` no timeout applies, since the wallet holds
        the request open until the operator answers the signature prompt.
        """
        if not self.rpc_url:
            raise WalletError("Wallet RPC URL is not configured")

        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    self.rpc_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(
                        total=None if wait_for_operator else self.timeout
                    ),
                ) as response:
                    result = await response.json()
        except asyncio.TimeoutError as e:
            raise WalletError(f"Wallet request {method} timed out") from e
        except aiohttp.ClientError as e:
            raise WalletError(f"Wallet unreachable: {e}") from e
        except ValueError as e:
            raise WalletError(f"Malformed wallet response to {method}: {e}") from e

        if not isinstance(result, dict):
            raise WalletError(f"Malformed wallet response to {method}: {result!r}")
        if "error" in result:
            raise _map_error(result["error"])
        return result.get("result")

    async def get_address(self) -> str | None:
        """Configured account, or the wallet's first exposed account."""
        if self.address:
            return self.address
        try:
            accounts = await self._request("eth_accounts", [])
        except WalletError as e:
            logger.warning("Could not read wallet accounts: %s", e)
            return None
        if accounts:
            self.address = accounts[0]
        return self.address

    async def chain_id(self) -> int:
        return int(await self._request("eth_chainId", []), 16)

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        """Ask the wallet to sign and broadcast; returns the transaction hash."""
        tx_hash = await self._request("eth_sendTransaction", [tx], wait_for_operator=True)
        if not isinstance(tx_hash, str):
            raise WalletError(f"Wallet returned no transaction hash: {tx_hash!r}")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        """Poll until the transaction is included. No timeout is imposed."""
        while True:
            receipt = await self._request("eth_getTransactionReceipt", [tx_hash])
            if receipt:
                return receipt
            await asyncio.sleep(self.poll_interval)

    async def switch_chain(self, chain_id: int) -> None:
        await self._request("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])


def _map_error(error: dict[str, Any]) -> WalletError:
    code = error.get("code")
    message = error.get("message", "Wallet request failed")
    if code == _USER_REJECTED_CODE:
        return UserDeclined(message)
    if code == _EXECUTION_REVERTED_CODE or "revert" in message.lower():
        data = error.get("data")
        detail = data if isinstance(data, str) else (str(data) if data else None)
        return ExecutionReverted(message, detail)
    return WalletError(message)
