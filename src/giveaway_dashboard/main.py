#!/usr/bin/env python3
"""
Giveaway Dashboard Application

Main entry point: connects to Twitch chat, serves the dashboard API and keeps
the in-memory giveaway state for the lifetime of the process.
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load .env from the working directory before logging reads LOG_LEVEL
load_dotenv(Path.cwd() / ".env")

from giveaway_dashboard.giveaway.dispatcher import AsyncioTaskDispatcher  # noqa: E402
from giveaway_dashboard.giveaway.entrants import EntrantSet  # noqa: E402
from giveaway_dashboard.giveaway.message_store import MessageRingStore  # noqa: E402
from giveaway_dashboard.giveaway.state_machine import GiveawayStateMachine  # noqa: E402
from giveaway_dashboard.ledger.client import SheetLedgerClient  # noqa: E402
from giveaway_dashboard.twitch.chat_client import TwitchChatClient  # noqa: E402
from giveaway_dashboard.twitch.notifier import build_notifier  # noqa: E402
from giveaway_dashboard.utils.common import mask_secret  # noqa: E402
from giveaway_dashboard.utils.config import (  # noqa: E402
    ConfigError,
    get_config_value,
    get_int,
    load_config,
    validate_config,
)
from giveaway_dashboard.utils.logger import get_logger  # noqa: E402
from giveaway_dashboard.web_server import GiveawayWebServer  # noqa: E402

logger = get_logger(__name__)

PRUNE_INTERVAL_SECONDS = 60.0


class GiveawayApp:
    """Giveaway dashboard application.

    Responsible for initializing and orchestrating the Twitch chat client,
    the giveaway state machine and the FastAPI web server. Handles graceful
    shutdown and drains pending notifications and ledger submissions.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else load_config()
        validate_config(self.config)
        self.dispatcher = AsyncioTaskDispatcher()
        self.chat_client: Optional[TwitchChatClient] = None
        self.ledger: Optional[SheetLedgerClient] = None
        self.machine: Optional[GiveawayStateMachine] = None
        self.web_server: Optional[GiveawayWebServer] = None
        self.running = True

        logger.info("🎁 Giveaway Dashboard Application initialized")

    def _display_config_summary(self):
        """Display key configuration options for diagnostics."""
        logger.info("=" * 60)
        logger.info("📋 CONFIGURATION SUMMARY")
        logger.info("=" * 60)
        logger.info(f"📺 Channel: {get_config_value(self.config, 'twitch.channel')}")
        logger.info(f"🤖 Bot: {get_config_value(self.config, 'twitch.bot')}")
        logger.info(f"🔑 OAuth: {mask_secret(get_config_value(self.config, 'twitch.oauth'))}")
        logger.info(f"📒 Webhook: {mask_secret(get_config_value(self.config, 'ledger.webhook'))}")
        logger.info(f"💬 Nightbot: {mask_secret(get_config_value(self.config, 'nightbot.access_token'))}")
        logger.info(f"🛡️  Admin token: {mask_secret(get_config_value(self.config, 'server.admin_token'))}")
        logger.info(f"👥 Max entrants: {get_int(self.config, 'giveaway.max_entrants', 7500)}")
        logger.info(f"🌍 Server: {self._host}:{self._port}")
        logger.info("=" * 60)

    @property
    def _host(self) -> str:
        return get_config_value(self.config, "server.host", "0.0.0.0")

    @property
    def _port(self) -> int:
        return get_int(self.config, "server.port", 8080)

    def initialize(self) -> None:
        """Build the chat client, collaborators, state machine and web server."""
        self._display_config_summary()
        cfg = self.config

        self.chat_client = TwitchChatClient(
            channel=get_config_value(cfg, "twitch.channel"),
            nick=get_config_value(cfg, "twitch.bot"),
            oauth_token=get_config_value(cfg, "twitch.oauth"),
            on_message=self._on_chat_message,
        )
        self.ledger = SheetLedgerClient.from_config(cfg)

        self.machine = GiveawayStateMachine(
            notifier=build_notifier(cfg, self.chat_client),
            ledger=self.ledger,
            dispatcher=self.dispatcher,
            channel=get_config_value(cfg, "twitch.channel"),
            default_mod=get_config_value(cfg, "giveaway.mod_name", "") or "",
            entrants=EntrantSet(get_int(cfg, "giveaway.max_entrants", 7500)),
            messages=MessageRingStore(
                max_per_user=get_int(cfg, "giveaway.max_per_user", 50),
                keep_window_ms=get_int(cfg, "giveaway.keep_window_ms", 5 * 60 * 1000),
            ),
            history_limit=get_int(cfg, "giveaway.history_limit", 50),
        )

        static_dir = Path(get_config_value(cfg, "server.static_dir", "web"))
        self.web_server = GiveawayWebServer(cfg, self.machine, static_dir=static_dir)
        logger.info("🎉 Application initialization completed")

    def _on_chat_message(self, identity: str, text: str, at: int) -> None:
        if self.machine is None:
            return
        self.machine.handle_chat(identity, text, at)

    async def _prune_loop(self) -> None:
        while self.running:
            await asyncio.sleep(PRUNE_INTERVAL_SECONDS)
            if self.machine is not None:
                forgotten = self.machine.prune_messages()
                if forgotten:
                    logger.debug("Pruned chat buffers of %d idle user(s)", forgotten)

    async def start(self):
        """Start services and run until a shutdown signal is received."""
        self.dispatcher.bind(asyncio.get_running_loop())
        try:
            self.initialize()

            chat_task = await self.chat_client.start()
            prune_task = asyncio.create_task(self._prune_loop(), name="message-prune")
            server_task = asyncio.create_task(self.web_server.start(host=self._host, port=self._port))

            # Give the server a moment to attempt bind
            await asyncio.sleep(0.2)

            while self.running:
                for task, label in ((server_task, "Web server"), (chat_task, "Chat client")):
                    if task.done():
                        exc = task.exception() if not task.cancelled() else None
                        if exc:
                            logger.error(f"❌ {label} failed: {exc}")
                            raise exc
                        logger.info(f"{label} exited")
                        self.running = False
                await asyncio.sleep(1)

            logger.info("🛑 Shutdown signal received, stopping application...")
            prune_task.cancel()
        finally:
            await self.stop()

    async def stop(self):
        """Stop all services and drain detached tasks."""
        self.running = False
        logger.info("🛑 Stopping Giveaway Dashboard Application")

        if self.web_server:
            await self.web_server.stop()
            logger.info("✅ Web server stopped")

        await self.dispatcher.drain()

        if self.chat_client:
            await self.chat_client.stop()
            logger.info("✅ Twitch chat client stopped")

        if self.ledger:
            await self.ledger.close()

        logger.info("🟢 Giveaway Dashboard Application stopped")

    def _handle_signal(self, signum, frame):
        logger.info(f"📡 Received signal {signum}, initiating graceful shutdown...")
        self.running = False


async def run() -> None:
    try:
        app = GiveawayApp()
    except ConfigError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)

    signal.signal(signal.SIGINT, app._handle_signal)
    signal.signal(signal.SIGTERM, app._handle_signal)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("🛑 Application interrupted by user")
    except Exception as e:
        logger.exception(f"❌ Application failed: {e}")
        sys.exit(1)


def main() -> None:
    """Console entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
