"""Integration tests for the transaction lifecycle — phases, failures, refresh."""
from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from conftest import INTEGRATOR, OTHER_TOKEN, TOKEN, VAULT, WAD, WALLET

from vault_controller.config import AppConfig, ContractsConfig
from vault_controller.errors import (
    ExecutionReverted,
    TransactionInFlight,
    UserDeclined,
    WalletError,
)
from vault_controller.models import (
    ActionKind,
    FailureCause,
    PendingAction,
    TransactionRecord,
    TxPhase,
)
from vault_controller.protocols.vault import abi
from vault_controller.services.lifecycle import (
    TransactionLifecycleController,
    build_call,
)


def _action(kind: ActionKind = ActionKind.DEPOSIT, amount: str = "10", **kwargs) -> PendingAction:
    return PendingAction(kind=kind, amount=Decimal(amount), **kwargs)


class _Recorder:
    def __init__(self) -> None:
        self.phases: list[TxPhase] = []

    async def __call__(self, record: TransactionRecord) -> None:
        self.phases.append(record.phase)


@pytest.fixture()
def recorder() -> _Recorder:
    return _Recorder()


@pytest.fixture()
def on_confirmed() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def lifecycle(
    mock_wallet: AsyncMock,
    sample_app_config: AppConfig,
    recorder: _Recorder,
    on_confirmed: AsyncMock,
) -> TransactionLifecycleController:
    return TransactionLifecycleController(
        mock_wallet, sample_app_config, on_change=recorder, on_confirmed=on_confirmed
    )


class TestBuildCall:
    @pytest.mark.parametrize(
        "kind,target,signature",
        [
            (ActionKind.DEPOSIT, VAULT, abi.DEPOSIT_ERC20),
            (ActionKind.BORROW, VAULT, abi.BORROW),
            (ActionKind.WITHDRAW, VAULT, abi.WITHDRAW_ERC20),
            (ActionKind.REPAY, VAULT, abi.REPAY),
            (ActionKind.APPROVE_VAULT, TOKEN, abi.APPROVE),
            (ActionKind.APPROVE_INTEGRATOR, TOKEN, abi.APPROVE),
            (ActionKind.LEVERAGE, INTEGRATOR, abi.AUTOMATED_LEVERAGE),
            (ActionKind.MINT, TOKEN, abi.MINT),
        ],
    )
    def test_target_and_selector(
        self,
        sample_contracts: ContractsConfig,
        kind: ActionKind,
        target: str,
        signature: str,
    ) -> None:
        call = build_call(_action(kind), WALLET, sample_contracts, 18)
        assert call.to == target
        assert call.data.startswith("0x" + abi.selector(signature).hex())

    def test_amount_is_scaled(self, sample_contracts: ContractsConfig) -> None:
        call = build_call(_action(ActionKind.BORROW, "12.5"), WALLET, sample_contracts, 18)
        assert call.data == abi.encode_call(abi.BORROW, TOKEN, 12_500_000_000_000_000_000)

    def test_approvals_name_their_spender(self, sample_contracts: ContractsConfig) -> None:
        vault = build_call(_action(ActionKind.APPROVE_VAULT), WALLET, sample_contracts, 18)
        integrator = build_call(
            _action(ActionKind.APPROVE_INTEGRATOR), WALLET, sample_contracts, 18
        )
        assert vault.data == abi.encode_call(abi.APPROVE, VAULT, 10 * WAD)
        assert integrator.data == abi.encode_call(abi.APPROVE, INTEGRATOR, 10 * WAD)

    def test_repay_with_other_token(self, sample_contracts: ContractsConfig) -> None:
        call = build_call(
            _action(ActionKind.REPAY, repay_token=OTHER_TOKEN), WALLET, sample_contracts, 18
        )
        assert call.data == abi.encode_call(abi.REPAY_WITH_BORROW_TOKEN, OTHER_TOKEN, 10 * WAD)

    def test_mint_to_sender(self, sample_contracts: ContractsConfig) -> None:
        call = build_call(_action(ActionKind.MINT, "1000"), WALLET, sample_contracts, 18)
        assert call.data == abi.encode_call(abi.MINT, WALLET, 1000 * WAD)

    def test_too_many_decimals(self, sample_contracts: ContractsConfig) -> None:
        with pytest.raises(ValueError):
            build_call(_action(amount="0.1"), WALLET, sample_contracts, 0)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_confirmed_path(
        self,
        lifecycle: TransactionLifecycleController,
        mock_wallet: AsyncMock,
        recorder: _Recorder,
        on_confirmed: AsyncMock,
    ) -> None:
        record = await lifecycle.submit(_action(), WALLET)

        assert record.phase is TxPhase.CONFIRMED
        assert record.id == "0xhash"
        assert recorder.phases == [
            TxPhase.AWAITING_SIGNATURE,
            TxPhase.BROADCAST,
            TxPhase.CONFIRMED,
        ]
        on_confirmed.assert_awaited_once()
        mock_wallet.wait_for_receipt.assert_awaited_once_with("0xhash")

    @pytest.mark.asyncio
    async def test_request_carries_configured_gas(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        await lifecycle.submit(_action(), WALLET)
        tx = mock_wallet.send_transaction.call_args[0][0]
        assert tx["from"] == WALLET
        assert tx["to"] == VAULT
        assert tx["gas"] == hex(500000)

    @pytest.mark.asyncio
    async def test_no_gas_when_unconfigured(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        await lifecycle.submit(_action(ActionKind.BORROW), WALLET)
        assert "gas" not in mock_wallet.send_transaction.call_args[0][0]

    @pytest.mark.asyncio
    async def test_user_declined(
        self,
        lifecycle: TransactionLifecycleController,
        mock_wallet: AsyncMock,
        recorder: _Recorder,
        on_confirmed: AsyncMock,
    ) -> None:
        mock_wallet.send_transaction.side_effect = UserDeclined("User rejected the request.")

        record = await lifecycle.submit(_action(), WALLET)

        assert record.phase is TxPhase.FAILED
        assert record.cause is FailureCause.USER_DECLINED
        assert record.id is None
        assert "rejected" in record.error
        assert TxPhase.BROADCAST not in recorder.phases
        on_confirmed.assert_not_called()

    @pytest.mark.asyncio
    async def test_reverted_at_submission(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        mock_wallet.send_transaction.side_effect = ExecutionReverted(
            "execution reverted", "0x08c379a0"
        )

        record = await lifecycle.submit(_action(), WALLET)

        assert record.cause is FailureCause.EXECUTION_REVERTED
        assert record.revert_detail == "0x08c379a0"

    @pytest.mark.asyncio
    async def test_generic_wallet_error(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        mock_wallet.send_transaction.side_effect = WalletError("nonce too low")

        record = await lifecycle.submit(_action(), WALLET)

        assert record.cause is FailureCause.WALLET_ERROR
        assert "nonce too low" in record.error

    @pytest.mark.asyncio
    async def test_failed_receipt_status(
        self,
        lifecycle: TransactionLifecycleController,
        mock_wallet: AsyncMock,
        on_confirmed: AsyncMock,
    ) -> None:
        mock_wallet.wait_for_receipt.return_value = {"status": "0x0", "revertReason": "LTV"}

        record = await lifecycle.submit(_action(), WALLET)

        assert record.phase is TxPhase.FAILED
        assert record.id == "0xhash"
        assert record.cause is FailureCause.EXECUTION_REVERTED
        assert record.revert_detail == "LTV"
        on_confirmed.assert_not_called()

    @pytest.mark.asyncio
    async def test_integer_receipt_status(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        mock_wallet.wait_for_receipt.return_value = {"status": 1}
        record = await lifecycle.submit(_action(), WALLET)
        assert record.phase is TxPhase.CONFIRMED

    @pytest.mark.asyncio
    async def test_bad_amount_leaves_record_untouched(
        self, mock_wallet: AsyncMock, sample_app_config: AppConfig, recorder: _Recorder
    ) -> None:
        lifecycle = TransactionLifecycleController(mock_wallet, sample_app_config, recorder)

        with pytest.raises(ValueError):
            await lifecycle.submit(_action(amount="0.0000000000000000001"), WALLET)

        assert lifecycle.record.phase is TxPhase.IDLE
        assert recorder.phases == []
        mock_wallet.send_transaction.assert_not_called()


class TestMutualExclusion:
    @pytest.mark.asyncio
    async def test_second_submit_rejected_while_broadcast(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        included = asyncio.Event()

        async def wait_for_receipt(tx_hash: str) -> dict:
            await included.wait()
            return {"status": "0x1"}

        mock_wallet.wait_for_receipt.side_effect = wait_for_receipt

        first = asyncio.create_task(lifecycle.submit(_action(), WALLET))
        while lifecycle.record.phase is not TxPhase.BROADCAST:
            await asyncio.sleep(0)

        with pytest.raises(TransactionInFlight):
            await lifecycle.submit(_action(ActionKind.BORROW), WALLET)
        assert mock_wallet.send_transaction.await_count == 1

        included.set()
        record = await first
        assert record.phase is TxPhase.CONFIRMED

    @pytest.mark.asyncio
    async def test_new_submit_allowed_after_terminal(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        mock_wallet.send_transaction.side_effect = [UserDeclined("no"), "0xsecond"]

        first = await lifecycle.submit(_action(), WALLET)
        second = await lifecycle.submit(_action(), WALLET)

        assert first.phase is TxPhase.FAILED
        assert second.phase is TxPhase.CONFIRMED
        assert second.id == "0xsecond"


class TestUnexpectedFailures:
    @pytest.mark.asyncio
    async def test_signature_timeout_ends_failed(
        self,
        lifecycle: TransactionLifecycleController,
        mock_wallet: AsyncMock,
        on_confirmed: AsyncMock,
    ) -> None:
        mock_wallet.send_transaction.side_effect = [asyncio.TimeoutError(), "0xsecond"]

        record = await lifecycle.submit(_action(), WALLET)

        assert record.phase is TxPhase.FAILED
        assert record.cause is FailureCause.WALLET_ERROR
        assert record.id is None
        assert not lifecycle.in_flight
        on_confirmed.assert_not_called()

        second = await lifecycle.submit(_action(), WALLET)
        assert second.phase is TxPhase.CONFIRMED

    @pytest.mark.asyncio
    async def test_malformed_reply_ends_failed(
        self, lifecycle: TransactionLifecycleController, mock_wallet: AsyncMock
    ) -> None:
        mock_wallet.send_transaction.side_effect = ValueError("bad json")

        record = await lifecycle.submit(_action(), WALLET)

        assert record.phase is TxPhase.FAILED
        assert "bad json" in record.error
        assert lifecycle.reset() is True

    @pytest.mark.asyncio
    async def test_receipt_timeout_keeps_hash(
        self,
        lifecycle: TransactionLifecycleController,
        mock_wallet: AsyncMock,
        on_confirmed: AsyncMock,
    ) -> None:
        mock_wallet.wait_for_receipt.side_effect = asyncio.TimeoutError()

        record = await lifecycle.submit(_action(), WALLET)

        assert record.phase is TxPhase.FAILED
        assert record.cause is FailureCause.WALLET_ERROR
        assert record.id == "0xhash"
        assert not lifecycle.in_flight
        on_confirmed.assert_not_called()


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_from_terminal(self, lifecycle: TransactionLifecycleController) -> None:
        await lifecycle.submit(_action(), WALLET)
        assert lifecycle.reset() is True
        assert lifecycle.record == TransactionRecord()

    def test_reset_when_idle_is_noop(self, lifecycle: TransactionLifecycleController) -> None:
        assert lifecycle.reset() is False
