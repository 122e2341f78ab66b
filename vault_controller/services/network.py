"""Network guard — keeps reads and writes on the target chain."""
from __future__ import annotations

import asyncio
import logging

from ..config import ChainConfig
from ..errors import WalletError
from ..interfaces.wallet import WalletProvider

logger = logging.getLogger(__name__)


class NetworkGuard:
    """Checks the wallet's active chain and requests switches."""

    def __init__(self, wallet: WalletProvider, chain: ChainConfig) -> None:
        self._wallet = wallet
        self._target_chain_id = chain.chain_id
        self._chain_name = chain.name
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def target_chain_id(self) -> int:
        return self._target_chain_id

    async def connected_address(self) -> str | None:
        """Active wallet account, or None when no wallet is connected."""
        return await self._wallet.get_address() or None

    async def is_on_target_chain(self) -> bool:
        """True iff the wallet reports the target chain; errors count as off-target."""
        try:
            active = await self._wallet.chain_id()
        except WalletError as e:
            logger.warning("Could not read active chain: %s", e)
            return False
        if active != self._target_chain_id:
            logger.info(
                "Wallet is on chain %s, expected %s (%s)",
                active, self._target_chain_id, self._chain_name,
            )
            return False
        return True

    def request_switch(self) -> None:
        """Ask the wallet to switch chains without waiting for the outcome."""
        logger.info("Requesting switch to %s (%s)", self._chain_name, self._target_chain_id)
        task = asyncio.get_running_loop().create_task(self._switch())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _switch(self) -> None:
        try:
            await self._wallet.switch_chain(self._target_chain_id)
        except WalletError as e:
            logger.warning("Chain switch request failed: %s", e)
