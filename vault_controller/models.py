"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

ZERO = Decimal(0)
HUNDRED = Decimal(100)


class ActionKind(str, Enum):
    """Operator actions that produce a transaction."""

    DEPOSIT = "deposit"
    BORROW = "borrow"
    WITHDRAW = "withdraw"
    REPAY = "repay"
    APPROVE_VAULT = "approve_vault"
    APPROVE_INTEGRATOR = "approve_integrator"
    LEVERAGE = "leverage"
    MINT = "mint"


class TxPhase(str, Enum):
    IDLE = "idle"
    AWAITING_SIGNATURE = "awaiting_signature"
    BROADCAST = "broadcast"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TxPhase.CONFIRMED, TxPhase.FAILED)

    @property
    def in_flight(self) -> bool:
        return self in (TxPhase.AWAITING_SIGNATURE, TxPhase.BROADCAST)


class FailureCause(str, Enum):
    USER_DECLINED = "user_declined"
    EXECUTION_REVERTED = "execution_reverted"
    WALLET_ERROR = "wallet_error"


@dataclass(frozen=True)
class PendingAction:
    """A submitted operator action; consumed once by the lifecycle controller."""

    kind: ActionKind
    amount: Decimal
    repay_token: str | None = None


@dataclass(frozen=True)
class TransactionRecord:
    id: str | None = None
    phase: TxPhase = TxPhase.IDLE
    action: PendingAction | None = None
    error: str | None = None
    cause: FailureCause | None = None
    revert_detail: str | None = None


@dataclass(frozen=True)
class RawReads:
    """Fixed-point integers exactly as returned by the contracts."""

    wallet_balance: int = 0
    receipt_balance: int = 0
    health_factor: int = 0
    collateral_usd: int = 0
    debt_usdt: int = 0
    on_chain_liquidatable: bool = False
    vault_allowance: int = 0
    integrator_allowance: int = 0
    protocol_collateral: int = 0
    protocol_debt: int = 0
    interest_rate_bps: int = 0
    allowed_borrow_tokens: tuple[str, ...] = ()
    borrow_token_balances: dict[str, int] = field(default_factory=dict)
    oracle_address: str | None = None
    degraded: tuple[str, ...] = ()


@dataclass(frozen=True)
class Position:
    """Per-wallet vault position.

    ``ltv_percent`` and ``is_liquidatable`` are derived on access so they can
    never disagree with the fields they are computed from.
    """

    collateral_value_usd: Decimal = ZERO
    debt_usdt: Decimal = ZERO
    receipt_token_balance: Decimal = ZERO
    health_factor: Decimal = ZERO

    @property
    def ltv_percent(self) -> Decimal:
        if self.collateral_value_usd <= 0:
            return ZERO
        ltv = self.debt_usdt / self.collateral_value_usd * HUNDRED
        return min(max(ltv, ZERO), HUNDRED)

    @property
    def is_liquidatable(self) -> bool:
        return ZERO < self.health_factor < 1


@dataclass(frozen=True)
class ProtocolStats:
    total_value_locked: Decimal = ZERO
    total_debt: Decimal = ZERO
    interest_rate_apy: Decimal = ZERO
    oracle_connected: bool = False

    @property
    def utilization_percent(self) -> Decimal:
        if self.total_value_locked <= 0:
            return ZERO
        return self.total_debt / self.total_value_locked * HUNDRED


@dataclass(frozen=True)
class AllowanceState:
    vault_approved: bool = False
    integrator_approved: bool = False


@dataclass(frozen=True)
class Balances:
    """Wallet balances keyed by lower-cased token address."""

    by_token: dict[str, Decimal] = field(default_factory=dict)

    def of(self, token: str) -> Decimal:
        return self.by_token.get(token.lower(), ZERO)


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: str = ""
    message: str = ""
    headroom: Decimal | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(accepted=True)

    @classmethod
    def reject(
        cls, reason: str, message: str = "", headroom: Decimal | None = None
    ) -> ValidationResult:
        return cls(
            accepted=False, reason=reason, message=message or reason, headroom=headroom
        )


@dataclass(frozen=True)
class ControllerState:
    """Read-only view published to presentation after every change."""

    position: Position = field(default_factory=Position)
    protocol_stats: ProtocolStats = field(default_factory=ProtocolStats)
    allowance: AllowanceState = field(default_factory=AllowanceState)
    balances: Balances = field(default_factory=Balances)
    transaction: TransactionRecord = field(default_factory=TransactionRecord)
    allowed_borrow_tokens: tuple[str, ...] = ()
    degraded_fields: tuple[str, ...] = ()
    connected: bool = False
    on_target_chain: bool = False
    address: str | None = None
