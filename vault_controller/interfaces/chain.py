"""Chain client protocol — read-only EVM RPC abstraction."""
from typing import Protocol


class ChainClient(Protocol):
    """Abstract interface for blockchain RPC reads."""

    async def eth_call(self, to: str, data: str) -> str: ...
