"""Protocol interfaces for the vault controller."""
from .chain import ChainClient
from .listener import StateListener
from .wallet import WalletProvider

__all__ = ["ChainClient", "StateListener", "WalletProvider"]
