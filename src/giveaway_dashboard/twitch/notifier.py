"""Outbound chat notifications."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, Optional

import requests

from giveaway_dashboard.giveaway.errors import NotificationFailure
from giveaway_dashboard.twitch.chat_client import TwitchChatClient
from giveaway_dashboard.utils.config import get_config_value
from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)

NIGHTBOT_SEND_URL = "https://api.nightbot.tv/1/channel/send"


class NightbotNotifier:
    """Posts chat messages through Nightbot's channel send API."""

    def __init__(
        self,
        access_token: str,
        *,
        url: str = NIGHTBOT_SEND_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._access_token = access_token
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()
        # requests.Session is not thread-safe; to_thread workers share this one
        self._session_lock = threading.Lock()

    async def send(self, text: str) -> None:
        await asyncio.to_thread(self._post, text)

    def _post(self, text: str) -> None:
        try:
            with self._session_lock:
                response = self._session.post(
                    self._url,
                    headers={"Authorization": f"Bearer {self._access_token}"},
                    data={"message": text},
                    timeout=self._timeout,
                )
        except requests.RequestException as exc:
            raise NotificationFailure(f"Nightbot send failed: {exc}") from exc
        if not response.ok:
            raise NotificationFailure(f"Nightbot send failed: HTTP {response.status_code}")


class TwitchChatNotifier:
    """Posts chat messages as the bot account over its IRC connection."""

    def __init__(self, client: TwitchChatClient) -> None:
        self._client = client

    async def send(self, text: str) -> None:
        await self._client.say(text)


def build_notifier(config: Dict[str, Any], chat_client: TwitchChatClient) -> Any:
    """Nightbot when a token is configured, else the bot account."""
    token = get_config_value(config, "nightbot.access_token", "")
    if token:
        logger.info("Chat notifications go through Nightbot")
        return NightbotNotifier(token)
    logger.info("Chat notifications go through the bot account")
    return TwitchChatNotifier(chat_client)
