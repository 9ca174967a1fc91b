"""Twitch IRC chat client feeding the giveaway and posting to chat."""

from __future__ import annotations

import asyncio
import re
import ssl
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from giveaway_dashboard.giveaway.errors import NotificationFailure
from giveaway_dashboard.utils.common import now_ms
from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)

TWITCH_IRC_HOST = "irc.chat.twitch.tv"
TWITCH_IRC_TLS_PORT = 6697

# Twitch may prepend IRCv3 tags to PRIVMSG lines.
PRIVMSG_RE = re.compile(
    r"^(?:@(?P<tags>[^\s]+)\s+)?:(?P<nick>[^!]+)![^ ]+ PRIVMSG #(?P<chan>[^ ]+) :(?P<msg>.*)$"
)
NOTICE_RE = re.compile(
    r"^(?:@(?P<tags>[^\s]+)\s+)?:(?P<server>[^ ]+)\s+NOTICE\s+(?P<target>[^ ]+)\s+:(?P<msg>.*)$"
)
RECONNECT_RE = re.compile(r"^(?:@(?P<tags>[^\s]+)\s+)?:(?P<server>[^ ]+)\s+RECONNECT\b")

AUTH_FAILURE_MARKERS = (
    "login authentication failed",
    "improperly formatted auth",
    "login unsuccessful",
    "authentication failed",
)

_TAG_ESCAPES = {"\\s": " ", "\\:": ";", "\\\\": "\\", "\\r": "\r", "\\n": "\n"}
_TAG_ESCAPE_RE = re.compile(r"\\[s:\\rn]")

OnMessage = Callable[[str, str, int], object]


class ChatAuthError(RuntimeError):
    """Twitch refused the bot credentials; reconnecting will not help."""


class ChatReconnect(RuntimeError):
    """The server asked for, or forced, a fresh connection."""


@dataclass(frozen=True)
class ChatMessage:
    """A parsed PRIVMSG."""

    login: str
    channel: str
    text: str
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def identity(self) -> str:
        """Display name when Twitch sent one, else the login."""
        return (self.tags.get("display-name") or self.login or "").strip()


def parse_tags(raw: Optional[str]) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    if not raw:
        return tags
    for item in raw.split(";"):
        key, _, value = item.partition("=")
        tags[key] = _TAG_ESCAPE_RE.sub(lambda m: _TAG_ESCAPES[m.group(0)], value)
    return tags


def parse_privmsg(line: str) -> Optional[ChatMessage]:
    match = PRIVMSG_RE.match(line)
    if not match:
        return None
    return ChatMessage(
        login=match.group("nick"),
        channel=match.group("chan"),
        text=match.group("msg"),
        tags=parse_tags(match.group("tags")),
    )


class TwitchChatClient:
    """Reads one channel's chat and writes messages back to it.

    Every PRIVMSG not sent by the bot itself is passed to ``on_message`` as
    ``(identity, text, at_ms)`` on the event loop, in arrival order. The
    connection is re-established with capped exponential backoff until
    ``stop()`` is called or Twitch rejects the credentials.
    """

    def __init__(
        self,
        *,
        channel: str,
        nick: str,
        oauth_token: str,
        on_message: OnMessage,
        host: str = TWITCH_IRC_HOST,
        port: int = TWITCH_IRC_TLS_PORT,
        use_tls: bool = True,
        reconnect_max_delay: float = 60.0,
    ) -> None:
        if not oauth_token.startswith("oauth:"):
            raise ValueError("TWITCH_OAUTH must start with 'oauth:'")
        self.channel = channel.lstrip("#").lower()
        self.nick = nick.lower()
        self._oauth_token = oauth_token
        self._on_message = on_message
        self._host = host
        self._port = port
        self._use_tls = use_tls
        self._reconnect_max_delay = reconnect_max_delay

        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> asyncio.Task:
        """Start the background read loop and return its task."""
        if self._task is None:
            self._stop_event.clear()
            self._task = asyncio.create_task(self._run(), name="twitch-chat")
        return self._task

    async def stop(self) -> None:
        self._stop_event.set()
        await self._close_writer()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                logger.debug("Chat task ended with %s", exc)
            self._task = None

    async def say(self, text: str) -> None:
        """Post a message to the channel on the live connection."""
        writer = self._writer
        if writer is None or writer.is_closing():
            raise NotificationFailure("Bot say failed: not connected to Twitch chat")
        line = " ".join(text.splitlines())
        try:
            async with self._write_lock:
                writer.write(f"PRIVMSG #{self.channel} :{line}\r\n".encode("utf-8"))
                await writer.drain()
        except (OSError, ConnectionError) as exc:
            raise NotificationFailure(f"Bot say failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        delay = 1.0
        while not self._stop_event.is_set():
            try:
                await self._session()
                delay = 1.0
            except ChatAuthError:
                logger.error("❌ Twitch chat rejected the bot credentials")
                raise
            except (OSError, ConnectionError, ChatReconnect, asyncio.IncompleteReadError) as exc:
                logger.warning("Twitch chat connection lost: %s", exc)
            finally:
                await self._close_writer()

            if self._stop_event.is_set():
                break
            logger.info("Reconnecting to Twitch chat in %.0fs", delay)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                delay = min(delay * 2, self._reconnect_max_delay)

    async def _session(self) -> None:
        ssl_ctx = ssl.create_default_context() if self._use_tls else None
        reader, writer = await asyncio.open_connection(self._host, self._port, ssl=ssl_ctx)
        self._writer = writer

        await self._send("CAP REQ :twitch.tv/tags twitch.tv/commands")
        await self._send(f"PASS {self._oauth_token}")
        await self._send(f"NICK {self.nick}")
        await self._send(f"JOIN #{self.channel}")
        logger.info("✅ Connected to Twitch IRC as %s, listening in #%s", self.nick, self.channel)

        while not self._stop_event.is_set():
            raw = await reader.readline()
            if not raw:
                raise ChatReconnect("server closed the connection")
            reply = self._handle_line(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
            if reply:
                await self._send(reply)

    def _handle_line(self, line: str) -> Optional[str]:
        """Process one server line; returns a line to send back, if any."""
        if line.startswith("PING "):
            # Reply with exact payload
            return f"PONG {line.split(' ', 1)[1]}"

        notice = NOTICE_RE.match(line)
        if notice:
            msg = (notice.group("msg") or "").strip()
            if any(marker in msg.lower() for marker in AUTH_FAILURE_MARKERS):
                raise ChatAuthError(f"Twitch IRC auth failed: {msg}")
            logger.info("[IRC] %s", msg)
            return None

        if RECONNECT_RE.match(line):
            raise ChatReconnect("Twitch IRC requested reconnect")

        message = parse_privmsg(line)
        if message is None or message.login.lower() == self.nick:
            return None
        try:
            self._on_message(message.identity, message.text, now_ms())
        except Exception as exc:
            logger.error("Chat handler failed for %s: %s", message.identity, exc)
        return None

    async def _send(self, line: str) -> None:
        if self._writer is None:
            raise ConnectionError("not connected")
        async with self._write_lock:
            self._writer.write((line + "\r\n").encode("utf-8"))
            await self._writer.drain()

    async def _close_writer(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ConnectionError):
            pass
