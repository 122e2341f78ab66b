"""EVM chain client and wallet provider."""
from .client import EvmClient
from .wallet import RpcWalletProvider

__all__ = ["EvmClient", "RpcWalletProvider"]
