"""Controller façade — owns state, gates writes, publishes changes."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from decimal import Decimal

from ..chains.evm import EvmClient, RpcWalletProvider
from ..config import AppConfig
from ..errors import (
    NetworkMismatch,
    TransactionInFlight,
    ValidationRejected,
    WalletNotConnected,
)
from ..interfaces.chain import ChainClient
from ..interfaces.listener import StateListener
from ..interfaces.wallet import WalletProvider
from ..models import (
    ActionKind,
    ControllerState,
    PendingAction,
    TransactionRecord,
    ValidationResult,
)
from ..notifications import TelegramNotifier
from ..protocols.vault import ChainReadGateway
from ..units import parse_amount, to_fixed
from .allowance import derive_allowance
from .lifecycle import TransactionLifecycleController
from .network import NetworkGuard
from .snapshot import derive_balances, derive_position, derive_protocol_stats
from .validator import ActionValidator

logger = logging.getLogger(__name__)

INVALID_AMOUNT = "invalid amount"


class VaultController:
    """Single owner of position, allowance and transaction state.

    Presentation reads ``state`` and subscribes for changes; it never
    mutates anything directly.
    """

    def __init__(
        self,
        config: AppConfig,
        chain_client: ChainClient | None = None,
        wallet: WalletProvider | None = None,
        listeners: list[StateListener] | None = None,
    ) -> None:
        self._config = config
        self._decimals = config.risk.decimals

        self._client = chain_client or EvmClient(config.chain)
        self._wallet = wallet or RpcWalletProvider(
            config.wallet, timeout=config.chain.rpc_timeout
        )

        self._gateway = ChainReadGateway(self._client, config)
        self._validator = ActionValidator(config.risk, config.contracts)
        self._network = NetworkGuard(self._wallet, config.chain)
        self._lifecycle = TransactionLifecycleController(
            self._wallet,
            config,
            on_change=self._on_transaction_changed,
            on_confirmed=self.refresh,
        )

        self._listeners: list[StateListener] = list(listeners or [])
        if config.notifications.telegram.enabled:
            self._listeners.append(
                TelegramNotifier(
                    config.notifications.telegram, config.chain.explorer_url
                )
            )

        self._state = ControllerState()
        self._generation = 0
        self._published_generation = 0

    # ------------------------------------------------------------------
    # State publication
    # ------------------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _publish(self, state: ControllerState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                await listener.on_state_changed(state)
            except Exception as e:
                logger.error("State listener failed: %s", e)

    async def _on_transaction_changed(self, record: TransactionRecord) -> None:
        await self._publish(replace(self._state, transaction=record))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def refresh(self) -> ControllerState:
        """Re-read the chain and replace the published state wholesale.

        A refresh that completes after a newer one has already published is
        discarded.
        """
        self._generation += 1
        generation = self._generation

        address = await self._network.connected_address()
        if not address:
            state = ControllerState()
        elif not await self._network.is_on_target_chain():
            state = replace(
                self._state, connected=True, on_target_chain=False, address=address
            )
        else:
            state = await self._read_state(address)

        if generation < self._published_generation:
            logger.debug("Discarding superseded refresh #%d", generation)
            return self._state

        self._published_generation = generation
        state = replace(state, transaction=self._lifecycle.record)
        await self._publish(state)
        return state

    async def _read_state(self, address: str) -> ControllerState:
        raw = await self._gateway.read_all(address)
        position = derive_position(raw, self._decimals)

        if raw.on_chain_liquidatable != position.is_liquidatable:
            logger.warning(
                "Vault reports liquidatable=%s but health factor %s implies %s",
                raw.on_chain_liquidatable,
                position.health_factor,
                position.is_liquidatable,
            )

        logger.info(
            "Position — Collateral: $%.2f  Debt: $%.2f  LTV: %.2f%%  HF: %.2f",
            position.collateral_value_usd,
            position.debt_usdt,
            position.ltv_percent,
            position.health_factor,
        )

        return ControllerState(
            position=position,
            protocol_stats=derive_protocol_stats(raw, self._decimals),
            allowance=derive_allowance(raw.vault_allowance, raw.integrator_allowance),
            balances=derive_balances(
                raw, self._config.contracts.collateral_token, self._decimals
            ),
            allowed_borrow_tokens=raw.allowed_borrow_tokens,
            degraded_fields=raw.degraded,
            connected=True,
            on_target_chain=True,
            address=address,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def request_network_switch(self) -> None:
        self._network.request_switch()

    def _coerce_amount(
        self, kind: ActionKind, amount: Decimal | str | None
    ) -> Decimal:
        """Parse the operator's amount and check it fits the token's precision.

        Raises:
            ValidationRejected: the amount is not a finite number or has more
                decimal places than the token supports.
        """
        if amount is None:
            return self._config.transactions.mint_amount if kind is ActionKind.MINT else Decimal(0)
        try:
            value = parse_amount(str(amount))
            to_fixed(value, self._decimals)
        except ValueError as e:
            raise ValidationRejected(ValidationResult.reject(INVALID_AMOUNT, str(e))) from e
        return value

    async def submit_action(
        self,
        kind: ActionKind | str,
        amount: Decimal | str | None = None,
        repay_token: str | None = None,
    ) -> TransactionRecord:
        """Validate and execute an operator action.

        Raises:
            WalletNotConnected: no wallet account is available.
            NetworkMismatch: the wallet is on another chain; a switch has
                been requested.
            TransactionInFlight: another transaction has not finished.
            ValidationRejected: a local guardrail failed.
        """
        kind = ActionKind(kind)

        address = await self._network.connected_address()
        if not address:
            raise WalletNotConnected("Please connect a wallet")

        if not await self._network.is_on_target_chain():
            self._network.request_switch()
            raise NetworkMismatch(
                f"Wrong network: switch to {self._config.chain.name} "
                f"(chain id {self._network.target_chain_id})"
            )

        if self._lifecycle.in_flight:
            raise TransactionInFlight("Wait for the current transaction to finish")

        action = PendingAction(
            kind=kind,
            amount=self._coerce_amount(kind, amount),
            repay_token=repay_token,
        )

        state = self._state
        result = self._validator.validate(
            action, state.position, state.allowance, state.balances
        )
        if not result.accepted:
            logger.info("Rejected %s: %s", kind.value, result.message)
            raise ValidationRejected(result)

        return await self._lifecycle.submit(action, address)

    # ------------------------------------------------------------------
    # Operator input
    # ------------------------------------------------------------------

    async def _clear_finished_transaction(self) -> None:
        if self._lifecycle.reset():
            await self._publish(replace(self._state, transaction=self._lifecycle.record))

    async def select_action(self, kind: ActionKind | str) -> None:
        """The operator switched action tab; stale results are cleared."""
        logger.debug("Action selected: %s", ActionKind(kind).value)
        await self._clear_finished_transaction()

    async def change_amount(self, amount: Decimal | str) -> None:
        """The operator edited the target amount; stale results are cleared."""
        logger.debug("Amount changed: %s", amount)
        await self._clear_finished_transaction()

    # ------------------------------------------------------------------
    # Continuous mode
    # ------------------------------------------------------------------

    async def run_continuous(self, interval_seconds: int | None = None) -> None:
        """Refresh on a fixed interval until cancelled."""
        interval = interval_seconds or self._config.monitor.refresh_interval_seconds
        logger.info("Starting continuous refresh (every %d seconds)", interval)

        while True:
            try:
                await self.refresh()
                await asyncio.sleep(interval)
            except Exception as e:
                logger.error("Error in refresh loop: %s", e)
                await asyncio.sleep(60)
