"""Collateralized-lending vault integration."""
from .gateway import ChainReadGateway

__all__ = ["ChainReadGateway"]
