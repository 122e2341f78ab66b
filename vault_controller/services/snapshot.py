"""Pure derivation of position, protocol and balance snapshots — no I/O."""
from __future__ import annotations

from decimal import Decimal

from ..models import (
    HUNDRED,
    ZERO,
    Balances,
    Position,
    ProtocolStats,
    RawReads,
)
from ..units import DEFAULT_DECIMALS, from_fixed

SAFE_HEALTH_FACTOR = Decimal(2)


def derive_position(raw: RawReads, decimals: int = DEFAULT_DECIMALS) -> Position:
    """Build a Position from raw reads. Pure and idempotent."""
    return Position(
        collateral_value_usd=from_fixed(raw.collateral_usd, decimals),
        debt_usdt=from_fixed(raw.debt_usdt, decimals),
        receipt_token_balance=from_fixed(raw.receipt_balance, decimals),
        health_factor=from_fixed(raw.health_factor, decimals),
    )


def derive_protocol_stats(
    raw: RawReads, decimals: int = DEFAULT_DECIMALS
) -> ProtocolStats:
    """Build ProtocolStats; the interest rate arrives in basis points."""
    return ProtocolStats(
        total_value_locked=from_fixed(raw.protocol_collateral, decimals),
        total_debt=from_fixed(raw.protocol_debt, decimals),
        interest_rate_apy=Decimal(raw.interest_rate_bps) / HUNDRED,
        oracle_connected=raw.oracle_address is not None,
    )


def derive_balances(
    raw: RawReads, collateral_token: str, decimals: int = DEFAULT_DECIMALS
) -> Balances:
    by_token = {
        token.lower(): from_fixed(amount, decimals)
        for token, amount in raw.borrow_token_balances.items()
    }
    by_token.setdefault(
        collateral_token.lower(), from_fixed(raw.wallet_balance, decimals)
    )
    return Balances(by_token=by_token)


def available_to_borrow(position: Position, max_ltv: Decimal) -> Decimal:
    """Headroom under the borrow ceiling: ``max_ltv * collateral - debt``."""
    return position.collateral_value_usd * max_ltv - position.debt_usdt


def available_to_withdraw(position: Position, liquidation_ltv: Decimal) -> Decimal:
    """Exclusive bound on collateral that can leave while debt is open.

    Withdrawing exactly this amount puts post-withdrawal LTV at
    ``liquidation_ltv``: collateral - amount == debt / liquidation_ltv.
    """
    required = position.debt_usdt / liquidation_ltv
    return max(position.collateral_value_usd - required, ZERO)


def health_status(position: Position) -> str:
    """Operator-facing label for the health factor."""
    hf = position.health_factor
    if hf <= 0:
        return "No debt"
    if hf > SAFE_HEALTH_FACTOR:
        return "Safe"
    if hf > 1:
        return "At Risk"
    return "Liquidatable"
