"""Pure ABI encoding/decoding for the vault contracts — no I/O."""
from __future__ import annotations

from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

ZERO_ADDRESS = "0x" + "00" * 20

# Collateral / debt token (ERC-20 with a test faucet)
BALANCE_OF = "balanceOf(address)"
ALLOWANCE = "allowance(address,address)"
APPROVE = "approve(address,uint256)"
MINT = "mint(address,uint256)"

# Vault reads
GET_HEALTH_FACTOR = "getHealthFactor(address)"
GET_TOTAL_COLLATERAL_USD = "getTotalCollateralUSD(address)"
GET_DEBT_USDT = "getDebtUSDT(address)"
IS_LIQUIDATABLE = "isLiquidatable(address)"
GET_USER_COLLATERAL_VALUE = "getUserCollateralValue(address)"
GET_VAULT_DEBT = "getVaultDebt(address)"
INTEREST_RATE_PER_YEAR = "interestRatePerYear()"
ALLOWED_BORROW_TOKENS = "allowedBorrowTokens()"
ORACLE = "oracle()"

# Vault writes
DEPOSIT_ERC20 = "depositERC20(address,uint256)"
BORROW = "borrow(address,uint256)"
WITHDRAW_ERC20 = "withdrawERC20(address,uint256)"
REPAY = "repay(uint256)"
REPAY_WITH_BORROW_TOKEN = "repayWithBorrowToken(address,uint256)"

# Leverage integrator
AUTOMATED_LEVERAGE = "automatedLeverage(address,uint256)"


def selector(signature: str) -> bytes:
    """First four bytes of keccak256 over the canonical signature."""
    return keccak(text=signature)[:4]


def arg_types(signature: str) -> list[str]:
    """Argument types of a flat signature.

    Examples:
        "approve(address,uint256)" → ["address", "uint256"]
        "oracle()" → []
    """
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [t for t in inner.split(",") if t]


def encode_call(signature: str, *args: Any) -> str:
    """Build 0x-prefixed calldata for ``signature`` applied to ``args``."""
    types = arg_types(signature)
    if len(types) != len(args):
        raise ValueError(
            f"{signature} expects {len(types)} arguments, got {len(args)}"
        )
    values = [
        to_checksum_address(arg) if t == "address" else arg
        for t, arg in zip(types, args)
    ]
    encoded = abi_encode(types, values) if types else b""
    return "0x" + (selector(signature) + encoded).hex()


def _to_bytes(data: str) -> bytes:
    hex_data = data[2:] if data.startswith("0x") else data
    raw = bytes.fromhex(hex_data)
    if not raw:
        raise ValueError("Empty call result (method missing or not a contract)")
    return raw


def decode_uint(data: str) -> int:
    return int(abi_decode(["uint256"], _to_bytes(data))[0])


def decode_bool(data: str) -> bool:
    return bool(abi_decode(["bool"], _to_bytes(data))[0])


def decode_address(data: str) -> str:
    return to_checksum_address(abi_decode(["address"], _to_bytes(data))[0])


def decode_address_list(data: str) -> tuple[str, ...]:
    (addresses,) = abi_decode(["address[]"], _to_bytes(data))
    return tuple(to_checksum_address(a) for a in addresses)
