"""Vault read gateway — typed, fault-tolerant reads of the three contracts."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from ...config import AppConfig
from ...interfaces.chain import ChainClient
from ...models import RawReads
from . import abi

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChainReadGateway:
    """Read-only access to the collateral token, vault and leverage integrator.

    Every read degrades independently: a failing call logs a warning, returns
    the field's default and, when a ``degraded`` list is passed, records the
    field name there. Nothing here raises on a node or contract error.
    """

    def __init__(self, chain_client: ChainClient, config: AppConfig) -> None:
        self._client = chain_client
        self._contracts = config.contracts
        self._capabilities = config.capabilities

    async def _read(
        self,
        field: str,
        to: str,
        signature: str,
        args: tuple[Any, ...],
        decoder: Callable[[str], T],
        default: T,
        degraded: list[str] | None,
    ) -> T:
        try:
            data = await self._client.eth_call(to, abi.encode_call(signature, *args))
            return decoder(data)
        except Exception as e:
            logger.warning("Read '%s' degraded (%s): %s", field, signature, e)
            if degraded is not None:
                degraded.append(field)
            return default

    # ------------------------------------------------------------------
    # Token reads
    # ------------------------------------------------------------------

    async def balance_of(
        self, token: str, owner: str, degraded: list[str] | None = None
    ) -> int:
        return await self._read(
            f"balance:{token.lower()}", token, abi.BALANCE_OF, (owner,),
            abi.decode_uint, 0, degraded,
        )

    async def allowance(
        self,
        token: str,
        owner: str,
        spender: str,
        degraded: list[str] | None = None,
    ) -> int:
        return await self._read(
            f"allowance:{spender.lower()}", token, abi.ALLOWANCE, (owner, spender),
            abi.decode_uint, 0, degraded,
        )

    # ------------------------------------------------------------------
    # Vault reads
    # ------------------------------------------------------------------

    async def vault_receipt_balance(
        self, owner: str, degraded: list[str] | None = None
    ) -> int:
        return await self._read(
            "receipt_balance", self._contracts.vault, abi.BALANCE_OF, (owner,),
            abi.decode_uint, 0, degraded,
        )

    async def vault_health_factor(
        self, owner: str, degraded: list[str] | None = None
    ) -> int:
        return await self._read(
            "health_factor", self._contracts.vault, abi.GET_HEALTH_FACTOR, (owner,),
            abi.decode_uint, 0, degraded,
        )

    async def vault_collateral_usd(
        self, owner: str, degraded: list[str] | None = None
    ) -> int:
        return await self._read(
            "collateral_usd", self._contracts.vault, abi.GET_TOTAL_COLLATERAL_USD,
            (owner,), abi.decode_uint, 0, degraded,
        )

    async def vault_debt_usdt(
        self, owner: str, degraded: list[str] | None = None
    ) -> int:
        return await self._read(
            "debt_usdt", self._contracts.vault, abi.GET_DEBT_USDT, (owner,),
            abi.decode_uint, 0, degraded,
        )

    async def vault_is_liquidatable(
        self, owner: str, degraded: list[str] | None = None
    ) -> bool:
        return await self._read(
            "is_liquidatable", self._contracts.vault, abi.IS_LIQUIDATABLE, (owner,),
            abi.decode_bool, False, degraded,
        )

    async def protocol_collateral(
        self, owner: str, degraded: list[str] | None = None
    ) -> int:
        if not self._capabilities.protocol_stats:
            return 0
        return await self._read(
            "protocol_collateral", self._contracts.vault,
            abi.GET_USER_COLLATERAL_VALUE, (owner,), abi.decode_uint, 0, degraded,
        )

    async def protocol_debt(
        self, owner: str, degraded: list[str] | None = None
    ) -> int:
        if not self._capabilities.protocol_stats:
            return 0
        return await self._read(
            "protocol_debt", self._contracts.vault, abi.GET_VAULT_DEBT, (owner,),
            abi.decode_uint, 0, degraded,
        )

    async def protocol_interest_rate(self, degraded: list[str] | None = None) -> int:
        """Annual interest rate in basis points."""
        if not self._capabilities.protocol_stats:
            return 0
        return await self._read(
            "interest_rate", self._contracts.vault, abi.INTEREST_RATE_PER_YEAR, (),
            abi.decode_uint, 0, degraded,
        )

    async def allowed_borrow_tokens(
        self, degraded: list[str] | None = None
    ) -> tuple[str, ...]:
        """Tokens the vault lends; the collateral token alone when unsupported."""
        fallback = (self._contracts.collateral_token,)
        if not self._capabilities.allowed_borrow_tokens:
            return fallback
        tokens = await self._read(
            "allowed_borrow_tokens", self._contracts.vault, abi.ALLOWED_BORROW_TOKENS,
            (), abi.decode_address_list, (), degraded,
        )
        return tokens or fallback

    async def oracle_address(self, degraded: list[str] | None = None) -> str | None:
        if not self._capabilities.oracle:
            return None
        address = await self._read(
            "oracle", self._contracts.vault, abi.ORACLE, (), abi.decode_address,
            None, degraded,
        )
        if address is None or address == abi.ZERO_ADDRESS:
            return None
        return address

    # ------------------------------------------------------------------
    # Snapshot read
    # ------------------------------------------------------------------

    async def read_all(self, owner: str) -> RawReads:
        """Issue every read concurrently and join them into one RawReads."""
        degraded: list[str] = []
        token = self._contracts.collateral_token

        (
            wallet_balance,
            receipt_balance,
            health_factor,
            collateral_usd,
            debt_usdt,
            on_chain_liquidatable,
            vault_allowance,
            integrator_allowance,
            protocol_collateral,
            protocol_debt,
            interest_rate_bps,
            allowed_tokens,
            oracle_address,
        ) = await asyncio.gather(
            self.balance_of(token, owner, degraded),
            self.vault_receipt_balance(owner, degraded),
            self.vault_health_factor(owner, degraded),
            self.vault_collateral_usd(owner, degraded),
            self.vault_debt_usdt(owner, degraded),
            self.vault_is_liquidatable(owner, degraded),
            self.allowance(token, owner, self._contracts.vault, degraded),
            self.allowance(token, owner, self._contracts.integrator, degraded),
            self.protocol_collateral(owner, degraded),
            self.protocol_debt(owner, degraded),
            self.protocol_interest_rate(degraded),
            self.allowed_borrow_tokens(degraded),
            self.oracle_address(degraded),
        )

        extra_tokens = [t for t in allowed_tokens if t.lower() != token.lower()]
        extra_balances = await asyncio.gather(
            *(self.balance_of(t, owner, degraded) for t in extra_tokens)
        )
        borrow_token_balances = {token.lower(): wallet_balance}
        borrow_token_balances.update(
            (t.lower(), bal) for t, bal in zip(extra_tokens, extra_balances)
        )

        if degraded:
            logger.info("Snapshot read with %d degraded field(s)", len(degraded))

        return RawReads(
            wallet_balance=wallet_balance,
            receipt_balance=receipt_balance,
            health_factor=health_factor,
            collateral_usd=collateral_usd,
            debt_usdt=debt_usdt,
            on_chain_liquidatable=on_chain_liquidatable,
            vault_allowance=vault_allowance,
            integrator_allowance=integrator_allowance,
            protocol_collateral=protocol_collateral,
            protocol_debt=protocol_debt,
            interest_rate_bps=interest_rate_bps,
            allowed_borrow_tokens=tuple(allowed_tokens),
            borrow_token_balances=borrow_token_balances,
            oracle_address=oracle_address,
            degraded=tuple(sorted(degraded)),
        )
