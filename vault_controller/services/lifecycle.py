"""Transaction lifecycle — signature, broadcast, confirmation, refresh.

    IDLE ──submit──▶ AWAITING_SIGNATURE ──signed──▶ BROADCAST ──included──▶ CONFIRMED
                            │                           │
                            └──────────▶ FAILED ◀───────┘

At most one transaction is in flight per controller. Terminal phases are
left by a new ``submit`` or by ``reset``; failures are never retried.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, assert_never

from ..config import AppConfig, ContractsConfig
from ..errors import ExecutionReverted, TransactionInFlight, UserDeclined, WalletError
from ..interfaces.wallet import WalletProvider
from ..models import (
    ActionKind,
    FailureCause,
    PendingAction,
    TransactionRecord,
    TxPhase,
)
from ..protocols.vault import abi
from ..units import to_fixed

logger = logging.getLogger(__name__)

RecordCallback = Callable[[TransactionRecord], Awaitable[None]]
RefreshCallback = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ContractCall:
    to: str
    data: str


def build_call(
    action: PendingAction, sender: str, contracts: ContractsConfig, decimals: int
) -> ContractCall:
    """Map an action onto its contract call.

    Raises:
        ValueError: if the amount has more precision than the token supports.
    """
    amount = to_fixed(action.amount, decimals)
    token = contracts.collateral_token

    match action.kind:
        case ActionKind.DEPOSIT:
            return ContractCall(contracts.vault, abi.encode_call(abi.DEPOSIT_ERC20, token, amount))
        case ActionKind.BORROW:
            return ContractCall(contracts.vault, abi.encode_call(abi.BORROW, token, amount))
        case ActionKind.WITHDRAW:
            return ContractCall(contracts.vault, abi.encode_call(abi.WITHDRAW_ERC20, token, amount))
        case ActionKind.REPAY:
            repay_token = action.repay_token
            if repay_token is None or repay_token.lower() == token.lower():
                return ContractCall(contracts.vault, abi.encode_call(abi.REPAY, amount))
            return ContractCall(
                contracts.vault,
                abi.encode_call(abi.REPAY_WITH_BORROW_TOKEN, repay_token, amount),
            )
        case ActionKind.APPROVE_VAULT:
            return ContractCall(token, abi.encode_call(abi.APPROVE, contracts.vault, amount))
        case ActionKind.APPROVE_INTEGRATOR:
            return ContractCall(token, abi.encode_call(abi.APPROVE, contracts.integrator, amount))
        case ActionKind.LEVERAGE:
            return ContractCall(
                contracts.integrator, abi.encode_call(abi.AUTOMATED_LEVERAGE, token, amount)
            )
        case ActionKind.MINT:
            return ContractCall(token, abi.encode_call(abi.MINT, sender, amount))
        case _:
            assert_never(action.kind)


def _receipt_succeeded(receipt: dict[str, Any]) -> bool:
    status = receipt.get("status")
    if isinstance(status, str):
        status = int(status, 16)
    return status == 1


class TransactionLifecycleController:
    """Owns the single TransactionRecord and drives it through its phases."""

    def __init__(
        self,
        wallet: WalletProvider,
        config: AppConfig,
        on_change: RecordCallback | None = None,
        on_confirmed: RefreshCallback | None = None,
    ) -> None:
        self._wallet = wallet
        self._contracts = config.contracts
        self._decimals = config.risk.decimals
        self._gas_limits = dict(config.transactions.gas_limits)
        self._settle_delay = config.transactions.settle_delay_seconds
        self._on_change = on_change
        self._on_confirmed = on_confirmed
        self._record = TransactionRecord()

    @property
    def record(self) -> TransactionRecord:
        return self._record

    @property
    def in_flight(self) -> bool:
        return self._record.phase.in_flight

    async def _transition(self, record: TransactionRecord) -> TransactionRecord:
        self._record = record
        logger.debug("Transaction phase -> %s (%s)", record.phase.value, record.id)
        if self._on_change is not None:
            await self._on_change(record)
        return record

    async def _fail(
        self,
        action: PendingAction,
        tx_hash: str | None,
        cause: FailureCause,
        error: str,
        revert_detail: str | None = None,
    ) -> TransactionRecord:
        logger.warning("Transaction %s failed (%s): %s", tx_hash, cause.value, error)
        return await self._transition(
            TransactionRecord(
                id=tx_hash,
                phase=TxPhase.FAILED,
                action=action,
                error=error,
                cause=cause,
                revert_detail=revert_detail,
            )
        )

    def _build_request(self, action: PendingAction, sender: str) -> dict[str, Any]:
        call = build_call(action, sender, self._contracts, self._decimals)
        tx: dict[str, Any] = {"from": sender, "to": call.to, "data": call.data}
        gas = self._gas_limits.get(action.kind.value)
        if gas:
            tx["gas"] = hex(gas)
        return tx

    async def submit(self, action: PendingAction, sender: str) -> TransactionRecord:
        """Run one action to a terminal phase and return the final record.

        Raises:
            TransactionInFlight: if a transaction is awaiting signature or
                confirmation.
            ValueError: if the amount cannot be encoded; raised before any
                phase change.
        """
        if self.in_flight:
            raise TransactionInFlight(
                f"A transaction is already {self._record.phase.value.replace('_', ' ')}"
            )

        tx = self._build_request(action, sender)
        await self._transition(
            TransactionRecord(phase=TxPhase.AWAITING_SIGNATURE, action=action)
        )
        logger.info("Requesting signature for %s %s", action.kind.value, action.amount)

        try:
            tx_hash = await self._wallet.send_transaction(tx)
        except UserDeclined as e:
            return await self._fail(
                action, None, FailureCause.USER_DECLINED,
                f"Transaction rejected in wallet: {e}",
            )
        except ExecutionReverted as e:
            return await self._fail(
                action, None, FailureCause.EXECUTION_REVERTED,
                f"Execution reverted: {e}", e.detail,
            )
        except WalletError as e:
            return await self._fail(
                action, None, FailureCause.WALLET_ERROR, f"Wallet error: {e}"
            )
        except Exception as e:
            logger.exception("Unexpected failure while awaiting signature")
            return await self._fail(
                action, None, FailureCause.WALLET_ERROR, f"Wallet error: {e!r}"
            )

        await self._transition(
            TransactionRecord(id=tx_hash, phase=TxPhase.BROADCAST, action=action)
        )
        logger.info("Transaction broadcast: %s", tx_hash)

        try:
            receipt = await self._wallet.wait_for_receipt(tx_hash)
            succeeded = _receipt_succeeded(receipt)
        except ExecutionReverted as e:
            return await self._fail(
                action, tx_hash, FailureCause.EXECUTION_REVERTED,
                f"Execution reverted: {e}", e.detail,
            )
        except WalletError as e:
            return await self._fail(
                action, tx_hash, FailureCause.WALLET_ERROR, f"Wallet error: {e}"
            )
        except Exception as e:
            logger.exception("Unexpected failure while awaiting receipt for %s", tx_hash)
            return await self._fail(
                action, tx_hash, FailureCause.WALLET_ERROR, f"Wallet error: {e!r}"
            )

        if not succeeded:
            return await self._fail(
                action, tx_hash, FailureCause.EXECUTION_REVERTED,
                "Execution reverted on-chain", receipt.get("revertReason"),
            )

        record = await self._transition(
            TransactionRecord(id=tx_hash, phase=TxPhase.CONFIRMED, action=action)
        )
        logger.info("Transaction confirmed: %s", tx_hash)

        # Some RPC backends serve pre-inclusion state right after a receipt.
        await asyncio.sleep(self._settle_delay)
        if self._on_confirmed is not None:
            await self._on_confirmed()
        return record

    def reset(self) -> bool:
        """Return to IDLE from a terminal phase; True if the record changed."""
        if not self._record.phase.is_terminal:
            return False
        self._record = TransactionRecord()
        return True
