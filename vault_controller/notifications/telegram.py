"""Telegram notification service."""
from __future__ import annotations

import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig
from ..models import ControllerState, TransactionRecord, TxPhase
from ..units import format_amount, format_usd

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Send transaction outcomes and liquidation alerts via Telegram bots.

    Registered as a state listener; each terminal transaction and each
    transition into a liquidatable position is reported once.
    """

    def __init__(self, config: TelegramConfig, explorer_url: str = "") -> None:
        self.alert_bot_token = config.alert_bot_token
        self.log_bot_token = config.log_bot_token
        self.chat_id = config.chat_id
        self.explorer_url = explorer_url
        self._last_reported: TransactionRecord | None = None
        self._liquidation_alerted = False

    async def _send_message(
        self, message: str, bot_token: str, silent: bool = False
    ) -> bool:
        """Send Telegram message using specified bot."""
        if not bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_notification": silent,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(url, json=payload) as response:
                if response.status == 200:
                    return True
                logger.error("Failed to send Telegram message: %s", response.status)
                return False

    async def send_alert(self, message: str) -> bool:
        """Send critical alert (unmuted bot)."""
        if await self._send_message(message, self.alert_bot_token, silent=False):
            logger.info("Telegram alert sent")
            return True
        return False

    async def send_log(self, message: str, silent: bool = True) -> bool:
        """Send log message (logs bot)."""
        if await self._send_message(message, self.log_bot_token, silent=silent):
            logger.info("Telegram log sent")
            return True
        return False

    def _tx_link(self, tx_hash: str | None) -> str:
        if not tx_hash:
            return ""
        if self.explorer_url:
            return f"\n{self.explorer_url}/tx/{tx_hash}"
        return f"\n{tx_hash}"

    async def on_state_changed(self, state: ControllerState) -> None:
        record = state.transaction
        if record.phase.is_terminal and record != self._last_reported:
            self._last_reported = record
            action = record.action
            label = (
                f"{action.kind.value} {format_amount(action.amount)}" if action else "transaction"
            )
            if record.phase is TxPhase.CONFIRMED:
                await self.send_log(f"✅ Confirmed: {label}{self._tx_link(record.id)}")
            else:
                detail = f"\n{record.revert_detail}" if record.revert_detail else ""
                await self.send_alert(
                    f"❌ Failed: {label}\n{record.error}{detail}{self._tx_link(record.id)}"
                )

        position = state.position
        if position.is_liquidatable and not self._liquidation_alerted:
            self._liquidation_alerted = True
            await self.send_alert(
                f"🚨 Position liquidatable — HF {format_amount(position.health_factor)}\n"
                f"Collateral: {format_usd(position.collateral_value_usd)}\n"
                f"Debt: {format_usd(position.debt_usdt)}\n"
                f"\n"
                f"⚠️ Add collateral or repay debt immediately!"
            )
        elif not position.is_liquidatable:
            self._liquidation_alerted = False
