"""Approval flags derived from ERC-20 allowances."""
from ..models import AllowanceState


def derive_allowance(vault_allowance: int, integrator_allowance: int) -> AllowanceState:
    """Each spender is approved iff its allowance is non-zero.

    The two spenders are independent: approving the vault says nothing about
    the leverage integrator, and vice versa.
    """
    return AllowanceState(
        vault_approved=vault_allowance > 0,
        integrator_approved=integrator_allowance > 0,
    )
