"""Client-side guardrails mirroring the vault's invariants.

Rules run in a fixed order and the first failure wins. Validation is
synchronous, has no side effects and does not care whether a wallet is
connected.
"""
from __future__ import annotations

from decimal import Decimal

from ..config import ContractsConfig, RiskConfig
from ..models import (
    ActionKind,
    AllowanceState,
    Balances,
    PendingAction,
    Position,
    ValidationResult,
)
from ..units import format_amount
from .snapshot import available_to_borrow, available_to_withdraw

AMOUNT_NOT_POSITIVE = "amount must be positive"
INSUFFICIENT_BALANCE = "insufficient balance"
APPROVAL_REQUIRED = "approval required"
NO_COLLATERAL = "no collateral deposited"
EXCEEDS_BORROW_LIMIT = "exceeds borrow limit"
INSUFFICIENT_WITHDRAWABLE = "insufficient withdrawable balance"
INTEGRATOR_APPROVAL_REQUIRED = "integrator approval required"


class ActionValidator:
    """Accepts or rejects a proposed action against the current snapshot."""

    def __init__(self, risk: RiskConfig, contracts: ContractsConfig) -> None:
        self._max_borrow_ltv = risk.max_borrow_ltv
        self._liquidation_ltv = risk.liquidation_ltv
        self._collateral_token = contracts.collateral_token

    def validate(
        self,
        action: PendingAction,
        position: Position,
        allowance: AllowanceState,
        balances: Balances,
    ) -> ValidationResult:
        amount = action.amount
        if amount <= 0:
            return ValidationResult.reject(AMOUNT_NOT_POSITIVE)

        if action.kind is ActionKind.DEPOSIT:
            return self._check_deposit(amount, allowance, balances)
        if action.kind is ActionKind.BORROW:
            return self._check_borrow(amount, position)
        if action.kind is ActionKind.WITHDRAW:
            return self._check_withdraw(amount, position)
        if action.kind is ActionKind.REPAY:
            token = action.repay_token or self._collateral_token
            return self._check_balance(amount, balances.of(token))
        if action.kind is ActionKind.LEVERAGE and not allowance.integrator_approved:
            return ValidationResult.reject(
                INTEGRATOR_APPROVAL_REQUIRED,
                "Integrator approval required: approve the leverage integrator "
                "before using leverage",
            )
        return ValidationResult.ok()

    def _check_balance(self, amount: Decimal, balance: Decimal) -> ValidationResult:
        if amount > balance:
            return ValidationResult.reject(
                INSUFFICIENT_BALANCE,
                f"Insufficient balance: requested {format_amount(amount)}, "
                f"wallet holds {format_amount(balance)}",
            )
        return ValidationResult.ok()

    def _check_deposit(
        self, amount: Decimal, allowance: AllowanceState, balances: Balances
    ) -> ValidationResult:
        result = self._check_balance(amount, balances.of(self._collateral_token))
        if not result.accepted:
            return result
        if not allowance.vault_approved:
            return ValidationResult.reject(
                APPROVAL_REQUIRED,
                "Approval required: approve the vault to spend your tokens "
                "before depositing",
            )
        return ValidationResult.ok()

    def _check_borrow(self, amount: Decimal, position: Position) -> ValidationResult:
        if position.collateral_value_usd <= 0:
            return ValidationResult.reject(
                NO_COLLATERAL,
                "No collateral deposited: deposit collateral before borrowing",
            )
        max_debt = position.collateral_value_usd * self._max_borrow_ltv
        if position.debt_usdt + amount > max_debt:
            headroom = available_to_borrow(position, self._max_borrow_ltv)
            return ValidationResult.reject(
                EXCEEDS_BORROW_LIMIT,
                f"Exceeds borrow limit: requested {format_amount(amount)}, "
                f"max total debt {format_amount(max_debt)}, "
                f"current debt {format_amount(position.debt_usdt)}, "
                f"available to borrow {format_amount(headroom)}",
                headroom=headroom,
            )
        return ValidationResult.ok()

    def _check_withdraw(self, amount: Decimal, position: Position) -> ValidationResult:
        available = available_to_withdraw(position, self._liquidation_ltv)
        # With open debt, withdrawing exactly ``available`` lands on the
        # liquidation threshold; post-withdrawal LTV must stay below it.
        at_threshold = position.debt_usdt > 0 and amount == available
        if amount > available or at_threshold:
            return ValidationResult.reject(
                INSUFFICIENT_WITHDRAWABLE,
                f"Insufficient withdrawable balance: requested "
                f"{format_amount(amount)}, available {format_amount(available)}",
                headroom=available,
            )
        return ValidationResult.ok()
