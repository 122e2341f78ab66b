"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int = 5003
    name: str = "Mantle Sepolia"
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30
    explorer_url: str = ""


@dataclass(frozen=True)
class WalletConfig:
    address: str = ""
    rpc_url: str = ""
    receipt_poll_interval: float = 2.0


@dataclass(frozen=True)
class ContractsConfig:
    collateral_token: str = ""
    vault: str = ""
    integrator: str = ""


@dataclass(frozen=True)
class RiskConfig:
    max_borrow_ltv: Decimal = Decimal("0.50")
    liquidation_ltv: Decimal = Decimal("0.80")
    decimals: int = 18


@dataclass(frozen=True)
class CapabilitiesConfig:
    allowed_borrow_tokens: bool = True
    oracle: bool = False
    protocol_stats: bool = True


@dataclass(frozen=True)
class TransactionsConfig:
    settle_delay_seconds: float = 1.0
    mint_amount: Decimal = Decimal("1000")
    gas_limits: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class MonitorConfig:
    refresh_interval_seconds: int = 15


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    capabilities: CapabilitiesConfig = field(default_factory=CapabilitiesConfig)
    transactions: TransactionsConfig = field(default_factory=TransactionsConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Action kinds accepted as gas_limits keys; mirrors models.ActionKind values.
_ACTION_KINDS = frozenset(
    {
        "deposit",
        "borrow",
        "withdraw",
        "repay",
        "approve_vault",
        "approve_integrator",
        "leverage",
        "mint",
    }
)


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _to_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"'{name}' is not a valid number: {value!r}") from e


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        chain_id=int(raw.get("chain_id", 5003)),
        name=raw.get("name", "Mantle Sepolia"),
        rpc_endpoints=tuple(raw.get("rpc_endpoints", [])),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
        explorer_url=str(raw.get("explorer_url", "")).rstrip("/"),
    )


def _build_wallet(raw: dict[str, Any]) -> WalletConfig:
    return WalletConfig(
        address=raw.get("address", "") or "",
        rpc_url=raw.get("rpc_url", "") or "",
        receipt_poll_interval=float(raw.get("receipt_poll_interval", 2.0)),
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    return ContractsConfig(
        collateral_token=raw.get("collateral_token", ""),
        vault=raw.get("vault", ""),
        integrator=raw.get("integrator", ""),
    )


def _build_risk(raw: dict[str, Any]) -> RiskConfig:
    return RiskConfig(
        max_borrow_ltv=_to_decimal(raw.get("max_borrow_ltv", "0.50"), "max_borrow_ltv"),
        liquidation_ltv=_to_decimal(
            raw.get("liquidation_ltv", "0.80"), "liquidation_ltv"
        ),
        decimals=int(raw.get("decimals", 18)),
    )


def _build_capabilities(raw: dict[str, Any]) -> CapabilitiesConfig:
    return CapabilitiesConfig(
        allowed_borrow_tokens=bool(raw.get("allowed_borrow_tokens", True)),
        oracle=bool(raw.get("oracle", False)),
        protocol_stats=bool(raw.get("protocol_stats", True)),
    )


def _build_transactions(raw: dict[str, Any]) -> TransactionsConfig:
    return TransactionsConfig(
        settle_delay_seconds=float(raw.get("settle_delay_seconds", 1.0)),
        mint_amount=_to_decimal(raw.get("mint_amount", "1000"), "mint_amount"),
        gas_limits={k: int(v) for k, v in (raw.get("gas_limits") or {}).items()},
    )


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        refresh_interval_seconds=int(raw.get("refresh_interval_seconds", 15)),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate deployment configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        chain=_build_chain(raw.get("chain", {})),
        wallet=_build_wallet(raw.get("wallet", {})),
        contracts=_build_contracts(raw.get("contracts", {})),
        risk=_build_risk(raw.get("risk", {})),
        capabilities=_build_capabilities(raw.get("capabilities", {})),
        transactions=_build_transactions(raw.get("transactions", {})),
        monitor=_build_monitor(raw.get("monitor", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if cfg.chain.chain_id <= 0:
        raise ValueError("Chain id must be a positive integer")
    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")

    for name in ("collateral_token", "vault", "integrator"):
        address = getattr(cfg.contracts, name)
        if not _ADDRESS_RE.match(address):
            raise ValueError(f"Contract '{name}' has an invalid address: {address!r}")

    if cfg.wallet.address and not _ADDRESS_RE.match(cfg.wallet.address):
        raise ValueError(f"Wallet address is invalid: {cfg.wallet.address!r}")

    risk = cfg.risk
    if not (0 < risk.max_borrow_ltv < risk.liquidation_ltv < 1):
        raise ValueError(
            "Risk limits must satisfy 0 < max_borrow_ltv < liquidation_ltv < 1 "
            f"(got {risk.max_borrow_ltv} and {risk.liquidation_ltv})"
        )
    if risk.decimals <= 0:
        raise ValueError("Token decimals must be positive")

    for kind in cfg.transactions.gas_limits:
        if kind not in _ACTION_KINDS:
            raise ValueError(f"Gas limit configured for unknown action '{kind}'")
