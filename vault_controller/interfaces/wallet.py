"""Wallet provider protocol — signing and broadcasting are delegated here."""
from typing import Any, Protocol


class WalletProvider(Protocol):
    """Abstract interface for an external wallet (EIP-1193 style)."""

    async def get_address(self) -> str | None: ...

    async def chain_id(self) -> int: ...

    async def send_transaction(self, tx: dict[str, Any]) -> str: ...

    async def wait_for_receipt(self, tx_hash: str) -> dict[str, Any]: ...

    async def switch_chain(self, chain_id: int) -> None: ...
