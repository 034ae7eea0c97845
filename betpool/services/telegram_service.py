"""
Telegram Bot API client for the group chat announcements.

Posts an HTML message when a bet is created or changes status. Never raises: a
missing configuration or an unreachable API is logged and the caller carries on.
"""

import html
import logging
import os
from typing import Iterable, Optional

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
TELEGRAM_TIMEOUT_SECONDS = 15.0

STATUS_LABELS = {
    "active": "Active",
    "in-progress": "In Progress",
    "resolved": "Resolved",
}


def _get_config():
    """Read bot token, chat id and optional proxy from the environment."""
    return (
        os.environ.get("TELEGRAM_BOT_TOKEN"),
        os.environ.get("TELEGRAM_CHAT_ID"),
        os.environ.get("TELEGRAM_PROXY_URL") or None,
    )


def _bet_link(bet_id: int) -> Optional[str]:
    base_url = os.environ.get("APP_BASE_URL")
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}/bet/{bet_id}"


async def send_message(text: str) -> bool:
    """
    Send an HTML-formatted message to the configured chat.

    Args:
        text: Message body (Telegram HTML subset, already escaped)

    Returns:
        True if Telegram accepted the message, False otherwise.
    """
    bot_token, chat_id, proxy_url = _get_config()
    if not bot_token or not chat_id:
        logger.warning("TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID not set, skipping Telegram message")
        return False

    url = f"{TELEGRAM_API_URL}/bot{bot_token}/sendMessage"
    try:
        async with httpx.AsyncClient(timeout=TELEGRAM_TIMEOUT_SECONDS, proxy=proxy_url) as client:
            resp = await client.post(
                url,
                json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
            )
        if resp.status_code >= 400:
            logger.warning(
                "Telegram API error %s: %s (proxy: %s)",
                resp.status_code,
                resp.text[:200],
                "yes" if proxy_url else "none",
            )
            return False
        return True
    except httpx.TimeoutException:
        logger.warning("Telegram request timed out after %ss", TELEGRAM_TIMEOUT_SECONDS)
        return False
    except Exception:
        logger.warning(
            "Failed to send Telegram message (proxy: %s)",
            "yes" if proxy_url else "none",
            exc_info=True,
        )
        return False


def format_bet_created(
    bet_id: int, title: str, description: str, amount: int, options: Iterable[str]
) -> str:
    """Announcement for a newly created bet."""
    options_text = "\n".join(
        f"  {index}. {html.escape(option)}" for index, option in enumerate(options, start=1)
    )
    lines = [
        "<b>🎲 New Bet Created!</b>",
        "",
        f"<b>Bet #{bet_id}</b>",
        f"<b>Title:</b> {html.escape(title or '')}",
        f"<b>Description:</b> {html.escape(description or '')}",
        f"<b>Amount:</b> {amount:,}",
        "",
        "<b>Options:</b>",
        options_text,
    ]
    link = _bet_link(bet_id)
    if link:
        lines += ["", f'<a href="{html.escape(link)}">Open bet</a>']
    return "\n".join(lines)


def format_status_change(
    bet_id: int,
    title: str,
    status: str,
    participation_count: int,
    winning_option: Optional[str] = None,
) -> str:
    """Announcement for a bet status transition (winning option shown once resolved)."""
    lines = [
        "<b>Bet Status Updated</b>",
        "",
        f"<b>Bet #{bet_id}</b>",
        f"<b>Title:</b> {html.escape(title or '')}",
        f"<b>Status:</b> {STATUS_LABELS.get(status, status)}",
        f"<b>Participants:</b> {participation_count}",
    ]
    if status == "resolved" and winning_option:
        lines.append(f"<b>Winning Option:</b> {html.escape(winning_option)}")
    link = _bet_link(bet_id)
    if link:
        lines += ["", f'<a href="{html.escape(link)}">Open bet</a>']
    return "\n".join(lines)
