"""Error taxonomy surfaced to the operator.

Failed chain reads are not represented here: they are absorbed by the read
gateway as per-field defaults and listed in ``ControllerState.degraded_fields``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ValidationResult


class VaultControllerError(Exception):
    """Base class for errors shown to the operator."""


class ValidationRejected(VaultControllerError):
    """A proposed action failed a local guardrail before any wallet interaction."""

    def __init__(self, result: ValidationResult) -> None:
        super().__init__(result.message or result.reason)
        self.result = result


class NetworkMismatch(VaultControllerError):
    """The wallet's active chain differs from the target chain."""


class WalletNotConnected(VaultControllerError):
    """No wallet account is available."""


class TransactionInFlight(VaultControllerError):
    """A transaction is already awaiting signature or confirmation."""


class WalletError(VaultControllerError):
    """The wallet provider failed to sign or broadcast a transaction."""


class UserDeclined(WalletError):
    """The operator rejected the signature request."""


class ExecutionReverted(WalletError):
    """The transaction reverted, either at submission or on-chain."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail
