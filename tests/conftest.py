"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vault_controller.config import (
    AppConfig,
    CapabilitiesConfig,
    ChainConfig,
    ContractsConfig,
    MonitorConfig,
    NotificationsConfig,
    RiskConfig,
    TelegramConfig,
    TransactionsConfig,
    WalletConfig,
)
from vault_controller.models import AllowanceState, Balances, Position, RawReads

# Digit-only addresses are their own checksum form.
TOKEN = "0x" + "11" * 20
VAULT = "0x" + "22" * 20
INTEGRATOR = "0x" + "33" * 20
OTHER_TOKEN = "0x" + "44" * 20
WALLET = "0x" + "55" * 20

WAD = 10**18


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        chain_id=5003,
        name="Mantle Sepolia",
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
        explorer_url="https://explorer.example.com",
    )


@pytest.fixture()
def sample_contracts() -> ContractsConfig:
    return ContractsConfig(collateral_token=TOKEN, vault=VAULT, integrator=INTEGRATOR)


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig, sample_contracts: ContractsConfig
) -> AppConfig:
    return AppConfig(
        chain=sample_chain_config,
        wallet=WalletConfig(
            address=WALLET, rpc_url="http://wallet.example.com", receipt_poll_interval=0
        ),
        contracts=sample_contracts,
        risk=RiskConfig(
            max_borrow_ltv=Decimal("0.50"), liquidation_ltv=Decimal("0.80"), decimals=18
        ),
        capabilities=CapabilitiesConfig(
            allowed_borrow_tokens=True, oracle=True, protocol_stats=True
        ),
        transactions=TransactionsConfig(
            settle_delay_seconds=0,
            mint_amount=Decimal("1000"),
            gas_limits={"deposit": 500000},
        ),
        monitor=MonitorConfig(refresh_interval_seconds=5),
        notifications=NotificationsConfig(telegram=TelegramConfig(enabled=False)),
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_position() -> Position:
    return Position(
        collateral_value_usd=Decimal("1000"),
        debt_usdt=Decimal("200"),
        receipt_token_balance=Decimal("1000"),
        health_factor=Decimal("4"),
    )


@pytest.fixture()
def approved() -> AllowanceState:
    return AllowanceState(vault_approved=True, integrator_approved=True)


@pytest.fixture()
def sample_balances() -> Balances:
    return Balances(by_token={TOKEN: Decimal("100"), OTHER_TOKEN: Decimal("25")})


@pytest.fixture()
def sample_raw_reads() -> RawReads:
    return RawReads(
        wallet_balance=100 * WAD,
        receipt_balance=1000 * WAD,
        health_factor=4 * WAD,
        collateral_usd=1000 * WAD,
        debt_usdt=200 * WAD,
        on_chain_liquidatable=False,
        vault_allowance=50 * WAD,
        integrator_allowance=0,
        protocol_collateral=1000 * WAD,
        protocol_debt=200 * WAD,
        interest_rate_bps=500,
        allowed_borrow_tokens=(TOKEN, OTHER_TOKEN),
        borrow_token_balances={TOKEN: 100 * WAD, OTHER_TOKEN: 25 * WAD},
        oracle_address="0x" + "66" * 20,
    )


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_wallet() -> AsyncMock:
    wallet = AsyncMock()
    wallet.get_address.return_value = WALLET
    wallet.chain_id.return_value = 5003
    wallet.send_transaction.return_value = "0xhash"
    wallet.wait_for_receipt.return_value = {"status": "0x1"}
    return wallet


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent(f"""\
    chain:
      chain_id: 5003
      name: Mantle Sepolia
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
      explorer_url: "https://explorer.example.com/"
    wallet:
      address: "{WALLET}"
      rpc_url: "http://127.0.0.1:1248"
    contracts:
      collateral_token: "{TOKEN}"
      vault: "{VAULT}"
      integrator: "{INTEGRATOR}"
    risk:
      max_borrow_ltv: 0.50
      liquidation_ltv: 0.80
      decimals: 18
    capabilities:
      allowed_borrow_tokens: true
      oracle: false
    transactions:
      settle_delay_seconds: 1.0
      mint_amount: 1000
      gas_limits:
        deposit: 500000
    monitor:
      refresh_interval_seconds: 30
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: "999"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
