"""Tests for the spreadsheet ledger webhook client."""

import asyncio
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from giveaway_dashboard.giveaway.errors import LedgerFailure
from giveaway_dashboard.giveaway.models import LedgerRecord
from giveaway_dashboard.ledger.client import DEFAULT_BACKOFF, SheetLedgerClient

RECORD = LedgerRecord(channel="streamer", winner="alice", amount=10.0, winner_msgs="hi | yo", mod="modbot")


def make_response(status=200, body=None):
    response = MagicMock()
    response.ok = 200 <= status < 400
    response.status_code = status
    response.text = "" if body is None else str(body)
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


def make_client(*responses, key=""):
    session = MagicMock()
    session.post.side_effect = list(responses)
    client = SheetLedgerClient("https://sheet.example/exec", key=key, backoff=[0, 0, 0], session=session)
    return client, session


class TestSubmit:
    """Webhook delivery and retries."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        client, session = make_client(make_response(200, {"ok": True, "row": 4}))

        reply = await client.submit(RECORD)

        assert reply == {"ok": True, "row": 4}
        session.post.assert_called_once_with(
            "https://sheet.example/exec",
            params=None,
            json=RECORD.to_payload(),
            timeout=10.0,
        )

    @pytest.mark.asyncio
    async def test_key_is_sent_as_query_parameter(self):
        client, session = make_client(make_response(200, {"ok": True}), key="s3cret")

        await client.submit(RECORD)

        assert session.post.call_args.kwargs["params"] == {"key": "s3cret"}

    @pytest.mark.asyncio
    async def test_payload_shape(self):
        client, session = make_client(make_response(200, {}))

        await client.submit(RECORD)

        assert session.post.call_args.kwargs["json"] == {
            "channel": "streamer",
            "winner": "alice",
            "amount": 10.0,
            "winner_msgs": "hi | yo",
            "mod": "modbot",
        }

    @pytest.mark.asyncio
    async def test_retries_after_http_error_and_body_not_ok(self):
        client, session = make_client(
            make_response(500),
            make_response(200, {"ok": False, "error": "sheet locked"}),
            make_response(200, {"ok": True}),
        )

        reply = await client.submit(RECORD)

        assert reply == {"ok": True}
        assert session.post.call_count == 3

    @pytest.mark.asyncio
    async def test_retries_after_network_error(self):
        client, session = make_client(
            requests.ConnectionError("boom"),
            make_response(200, {"ok": True}),
        )

        assert await client.submit(RECORD) == {"ok": True}
        assert session.post.call_count == 2

    @pytest.mark.asyncio
    async def test_raises_when_retries_exhausted(self):
        client, session = make_client(
            make_response(502),
            requests.Timeout("slow"),
            make_response(200, {"ok": False}),
        )

        with pytest.raises(LedgerFailure):
            await client.submit(RECORD)

        assert session.post.call_count == 3

    @pytest.mark.asyncio
    async def test_sleeps_each_backoff_delay(self, monkeypatch):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr("giveaway_dashboard.ledger.client.asyncio.sleep", fake_sleep)
        session = MagicMock()
        session.post.return_value = make_response(503)
        client = SheetLedgerClient("https://sheet.example/exec", session=session)

        with pytest.raises(LedgerFailure):
            await client.submit(RECORD)

        assert delays == list(DEFAULT_BACKOFF)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_submits_post_one_at_a_time(self):
        active = []
        overlap = []
        guard = threading.Lock()

        def post(*args, **kwargs):
            with guard:
                active.append(1)
                overlap.append(len(active))
            time.sleep(0.05)
            with guard:
                active.pop()
            return make_response(200, {"ok": True})

        session = MagicMock()
        session.post.side_effect = post
        client = SheetLedgerClient("https://sheet.example/exec", backoff=[0], session=session)

        await asyncio.gather(*(client.submit(RECORD) for _ in range(3)))

        assert session.post.call_count == 3
        assert max(overlap) == 1


class TestConstruction:
    def test_requires_webhook_url(self):
        with pytest.raises(ValueError):
            SheetLedgerClient("")

    def test_from_config(self):
        client = SheetLedgerClient.from_config(
            {"ledger": {"webhook": "https://sheet.example/exec", "key": "k", "backoff": "0.1,0.2"}}
        )

        assert client.webhook_url == "https://sheet.example/exec"
        assert client._backoff == [0.1, 0.2]
        assert client._key == "k"

    @pytest.mark.asyncio
    async def test_close_closes_session(self):
        client, session = make_client()

        await client.close()

        session.close.assert_called_once()
