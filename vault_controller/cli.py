"""Command-line interface for the vault controller."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config
from .errors import ValidationRejected, VaultControllerError
from .logging_setup import configure_logging
from .models import ActionKind, ControllerState, TransactionRecord, TxPhase
from .services import VaultController
from .services.snapshot import available_to_borrow, available_to_withdraw, health_status
from .units import format_amount, format_usd

# CLI command → action kind for commands that take an amount.
_ACTION_COMMANDS = {
    "deposit": ActionKind.DEPOSIT,
    "borrow": ActionKind.BORROW,
    "withdraw": ActionKind.WITHDRAW,
    "repay": ActionKind.REPAY,
    "approve-vault": ActionKind.APPROVE_VAULT,
    "approve-integrator": ActionKind.APPROVE_INTEGRATOR,
    "leverage": ActionKind.LEVERAGE,
    "mint": ActionKind.MINT,
}

_PHASE_LABELS = {
    TxPhase.IDLE: "Idle",
    TxPhase.AWAITING_SIGNATURE: "Awaiting wallet signature...",
    TxPhase.BROADCAST: "Transaction sent...",
    TxPhase.CONFIRMED: "✓ Transaction confirmed!",
    TxPhase.FAILED: "✗ Transaction failed",
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="vault-controller",
        description="Position and action controller for a lending vault",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Read and print the current position")
    sub.add_parser("switch-network", help="Ask the wallet to switch to the target chain")

    watch_parser = sub.add_parser("watch", help="Refresh the position continuously")
    watch_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Refresh interval in seconds (overrides config)",
    )

    for command, kind in _ACTION_COMMANDS.items():
        action_parser = sub.add_parser(command, help=f"Submit a {kind.value} transaction")
        action_parser.add_argument(
            "amount",
            nargs="?" if kind is ActionKind.MINT else None,
            default=None,
            help="Token amount, e.g. 12.5",
        )
        if kind is ActionKind.REPAY:
            action_parser.add_argument(
                "--token",
                default=None,
                help="Repay with this borrow token instead of the collateral token",
            )

    return parser


def render_state(state: ControllerState, explorer_url: str = "") -> str:
    """Human-readable snapshot of the controller state."""
    if not state.connected:
        return "Wallet not connected."
    if not state.on_target_chain:
        return f"Wallet {state.address} is on the wrong network."

    position = state.position
    stats = state.protocol_stats
    lines = [
        f"Wallet: {state.address}",
        "",
        f"Health Factor: {format_amount(position.health_factor)} ({health_status(position)})",
        f"Collateral: {format_usd(position.collateral_value_usd)}",
        f"Debt: {format_usd(position.debt_usdt)}",
        f"LTV: {format_amount(position.ltv_percent)}%",
        f"Receipt tokens: {format_amount(position.receipt_token_balance)}",
        f"Liquidatable: {'YES' if position.is_liquidatable else 'No'}",
        "",
        f"Vault approved: {'✓' if state.allowance.vault_approved else '✗'}",
        f"Integrator approved: {'✓' if state.allowance.integrator_approved else '✗'}",
        "",
        f"TVL: {format_usd(stats.total_value_locked)} · "
        f"Debt: {format_usd(stats.total_debt)} · "
        f"Utilization: {format_amount(stats.utilization_percent, 1)}% · "
        f"APY: {format_amount(stats.interest_rate_apy)}% · "
        f"Oracle: {'connected' if stats.oracle_connected else 'not set'}",
    ]
    for token, balance in state.balances.by_token.items():
        lines.append(f"Balance {token}: {format_amount(balance)}")
    if state.degraded_fields:
        lines.append(f"Unavailable: {', '.join(state.degraded_fields)}")
    lines.append(render_transaction(state.transaction, explorer_url))
    return "\n".join(lines)


def render_transaction(record: TransactionRecord, explorer_url: str = "") -> str:
    line = _PHASE_LABELS[record.phase]
    if record.id:
        link = f"{explorer_url}/tx/{record.id}" if explorer_url else record.id
        line += f" {link}"
    if record.error:
        line += f"\nError: {record.error}"
    if record.revert_detail:
        line += f"\n{record.revert_detail}"
    return line


class _PrintListener:
    """Prints every published state (watch mode)."""

    def __init__(self, explorer_url: str) -> None:
        self.explorer_url = explorer_url

    async def on_state_changed(self, state: ControllerState) -> None:
        print(render_state(state, self.explorer_url))
        print("-" * 60)


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command; returns the process exit code."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    controller = VaultController(config)
    explorer_url = config.chain.explorer_url

    try:
        if args.command == "status":
            state = await controller.refresh()
            print(render_state(state, explorer_url))
        elif args.command == "watch":
            controller.subscribe(_PrintListener(explorer_url))
            await controller.run_continuous(args.interval)
        elif args.command == "switch-network":
            controller.request_network_switch()
            # Let the fire-and-forget request reach the wallet before exiting.
            await asyncio.sleep(0.1)
        elif args.command in _ACTION_COMMANDS:
            await controller.refresh()
            record = await controller.submit_action(
                _ACTION_COMMANDS[args.command],
                args.amount,
                repay_token=getattr(args, "token", None),
            )
            print(render_state(controller.state, explorer_url))
            return 0 if record.phase is TxPhase.CONFIRMED else 1
        else:
            build_parser().print_help()
            return 1
    except ValidationRejected as e:
        print(f"Rejected: {e.result.message}")
        return 1
    except VaultControllerError as e:
        print(f"Error: {e}")
        return 1
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
