"""Tests for outbound chat notifiers."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from giveaway_dashboard.giveaway.errors import NotificationFailure
from giveaway_dashboard.twitch.notifier import (
    NIGHTBOT_SEND_URL,
    NightbotNotifier,
    TwitchChatNotifier,
    build_notifier,
)


def nightbot(status=200, error=None):
    session = MagicMock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = MagicMock(ok=status < 400, status_code=status)
    return NightbotNotifier("nb-token", session=session), session


class TestNightbotNotifier:
    @pytest.mark.asyncio
    async def test_posts_message_with_bearer_token(self):
        notifier, session = nightbot()

        await notifier.send("Winner is @alice! Respond in chat!")

        session.post.assert_called_once_with(
            NIGHTBOT_SEND_URL,
            headers={"Authorization": "Bearer nb-token"},
            data={"message": "Winner is @alice! Respond in chat!"},
            timeout=10.0,
        )

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        notifier, _ = nightbot(status=401)

        with pytest.raises(NotificationFailure):
            await notifier.send("hi")

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        notifier, _ = nightbot(error=requests.ConnectionError("down"))

        with pytest.raises(NotificationFailure):
            await notifier.send("hi")


class TestTwitchChatNotifier:
    @pytest.mark.asyncio
    async def test_delegates_to_chat_client(self):
        client = MagicMock()
        client.say = AsyncMock()

        await TwitchChatNotifier(client).send("Giveaway is now closed.")

        client.say.assert_awaited_once_with("Giveaway is now closed.")


class TestBuildNotifier:
    def test_prefers_nightbot_when_configured(self):
        notifier = build_notifier({"nightbot": {"access_token": "nb"}}, MagicMock())

        assert isinstance(notifier, NightbotNotifier)

    def test_falls_back_to_bot_account(self):
        notifier = build_notifier({}, MagicMock())

        assert isinstance(notifier, TwitchChatNotifier)
