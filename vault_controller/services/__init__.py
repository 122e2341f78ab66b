"""Service modules"""
from .controller import VaultController
from .lifecycle import TransactionLifecycleController
from .network import NetworkGuard
from .validator import ActionValidator

__all__ = [
    "ActionValidator",
    "NetworkGuard",
    "TransactionLifecycleController",
    "VaultController",
]
