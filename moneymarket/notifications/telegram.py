"""Telegram notifications for settlement results."""
import logging
import ssl
from datetime import datetime, timezone

import aiohttp
import certifi

from ..config import TelegramConfig
from ..models import FlowStatus, SettlementResult

logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    FlowStatus.SUCCEEDED: "✅",
    FlowStatus.FAILED: "🚨",
    FlowStatus.REJECTED: "⛔",
    FlowStatus.COMPENSATED: "↩️",
}


def format_result(result: SettlementResult) -> str:
    """Render a terminal settlement result as a short Telegram message."""
    icon = _STATUS_ICONS.get(result.status, "")
    action = result.action.value.replace("_", " ")
    lines = [f"{icon} {action.upper()} {result.status.value}"]
    if result.account:
        lines.append(f"Account: {result.account}")
    if result.order_id is not None:
        lines.append(f"Order: #{result.order_id}")
    if result.returned:
        lines.append(f"Returned: {result.returned}")
    if result.error is not None:
        lines.append(f"Error [{result.error.code}]: {result.error.message}")
    elif result.detail:
        lines.append(result.detail)
    lines.append("")
    lines.append(f"{datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC")
    return "\n".join(lines)


class TelegramNotifier:
    """Settlement notifier over two Telegram bots.

    Failed, rejected and compensated chains go to the alert bot with sound on;
    routine successes go to the log bot, muted by default.
    """

    api_url = "https://api.telegram.org/bot{token}/sendMessage"
    max_length = 4096

    def __init__(self, config: TelegramConfig) -> None:
        self._config = config
        self._ssl_context = ssl.create_default_context(cafile=certifi.where())

    @property
    def configured(self) -> bool:
        return bool(self._config.chat_id)

    async def _post(self, token: str, text: str, silent: bool) -> bool:
        if not token or not self.configured:
            logger.warning("Telegram credentials not configured")
            return False

        if len(text) > self.max_length:
            text = text[: self.max_length - 1] + "…"
        payload = {
            "chat_id": self._config.chat_id,
            "text": text,
            "disable_notification": silent,
        }

        connector = aiohttp.TCPConnector(ssl=self._ssl_context)
        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(self.api_url.format(token=token), json=payload) as response:
                if response.status != 200:
                    logger.error("Telegram rejected message: HTTP %s", response.status)
                    return False
        return True

    async def send_alert(self, message: str, subject: str = "") -> bool:
        text = f"{subject}\n\n{message}" if subject else message
        sent = await self._post(self._config.alert_bot_token, text, silent=False)
        if sent:
            logger.info("Telegram alert sent: %s", subject or "settlement")
        return sent

    async def send_log(self, message: str, silent: bool = True) -> bool:
        sent = await self._post(self._config.log_bot_token, message, silent=silent)
        if sent:
            logger.debug("Telegram log sent")
        return sent
