"""FastAPI web server for the giveaway dashboard."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from giveaway_dashboard.giveaway.errors import GiveawayError
from giveaway_dashboard.giveaway.models import ChatLine, GiveawaySnapshot, HistoryEntry
from giveaway_dashboard.giveaway.state_machine import GiveawayStateMachine
from giveaway_dashboard.utils.config import get_config_value
from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)

USER_MESSAGES_LIMIT = 50


class StartRequest(BaseModel):
    keyword: Optional[str] = None


class ConfirmRequest(BaseModel):
    winner: Optional[str] = None
    amount: Optional[Union[float, str]] = None
    note: Optional[str] = None
    mod: Optional[str] = None


class GiveawayWebServer:
    """HTTP gateway between the dashboard and the giveaway state machine."""

    def __init__(
        self,
        config: Dict[str, Any],
        machine: GiveawayStateMachine,
        static_dir: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.machine = machine
        self._admin_token: str = get_config_value(config, "server.admin_token", "") or ""
        self._static_dir = static_dir
        self._server = None

        self.app = FastAPI(
            title="Giveaway Dashboard API",
            description="Live chat giveaway state and operator commands",
            version="1.0.0",
        )

        self._setup_middleware()
        self._setup_error_handlers()
        self._setup_routes()
        self._setup_static_files()

    # ------------------------------------------------------------------
    # FastAPI scaffolding
    # ------------------------------------------------------------------
    def _setup_middleware(self) -> None:
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(GiveawayError)
        async def giveaway_error(_: Request, exc: GiveawayError) -> JSONResponse:
            return JSONResponse(status_code=400, content={"error": exc.public_message})

        @self.app.exception_handler(StarletteHTTPException)
        async def http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
            # Unknown paths and wrong methods on known paths both answer 404
            if exc.status_code in (404, 405):
                return JSONResponse(status_code=404, content={"error": "not found"})
            return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    def _setup_static_files(self) -> None:
        # Mounted last so the API routes take precedence over "/"
        if self._static_dir and self._static_dir.is_dir():
            self.app.mount("/", StaticFiles(directory=str(self._static_dir), html=True), name="dashboard")
            logger.info("Dashboard static files mounted from %s", self._static_dir)
        else:
            logger.info("Dashboard directory not found; API-only mode")

    def _require_admin(self, request: Request) -> None:
        if not self._admin_token:
            return
        token = request.headers.get("x-admin-token") or request.query_params.get("token")
        if token != self._admin_token:
            raise HTTPException(status_code=401, detail="unauthorized")

    def _setup_routes(self) -> None:
        admin = [Depends(self._require_admin)]

        # ------------------------------------------------------------------
        # Health & status
        # ------------------------------------------------------------------
        @self.app.get("/ping", response_class=PlainTextResponse)
        async def ping() -> str:
            return "pong"

        @self.app.get("/status")
        async def status() -> Dict[str, Any]:
            return self._serialize_status(self.machine.snapshot())

        @self.app.get("/session-total")
        async def session_total() -> Dict[str, Any]:
            return {"ok": True, "total": self.machine.session_total}

        @self.app.get("/user-messages")
        async def user_messages(user: str = "", since: str = "") -> Any:
            user = user.strip()
            if not user:
                return JSONResponse(status_code=400, content={"ok": False, "error": "missing user"})
            lines = self.machine.recent_messages(
                user,
                since=self._parse_since(since),
                limit=USER_MESSAGES_LIMIT,
            )
            return {"ok": True, "user": user, "messages": self._serialize_lines(lines)}

        # ------------------------------------------------------------------
        # Operator commands
        # ------------------------------------------------------------------
        @self.app.post("/start", dependencies=admin)
        async def start(request: Optional[StartRequest] = None) -> Dict[str, Any]:
            keyword = self.machine.start(request.keyword if request else None)
            return {"ok": True, "keyword": keyword}

        @self.app.post("/close", dependencies=admin)
        async def close() -> Dict[str, Any]:
            self.machine.stop()
            return {"ok": True}

        @self.app.post("/roll", dependencies=admin)
        async def roll() -> Dict[str, Any]:
            result = self.machine.roll()
            return {"ok": True, "pendingWinner": result.winner.to_dict() if result.winner else None}

        @self.app.post("/reroll", dependencies=admin)
        async def reroll() -> Dict[str, Any]:
            result = self.machine.reroll()
            return {"ok": True, "pendingWinner": result.winner.to_dict() if result.winner else None}

        @self.app.post("/cancel", dependencies=admin)
        async def cancel() -> Dict[str, Any]:
            self.machine.cancel()
            return {"ok": True}

        @self.app.post("/confirm", dependencies=admin)
        async def confirm(request: Optional[ConfirmRequest] = None) -> Dict[str, Any]:
            body = request or ConfirmRequest()
            amount = body.amount
            if amount is None or (isinstance(amount, str) and not amount.strip()):
                amount = 0
            result = self.machine.confirm(winner=body.winner, amount=amount, mod=body.mod)
            return {"ok": True, "sessionTotal": result.session_total, "deduped": result.deduped}

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    async def start(self, host: str = "0.0.0.0", port: int = 8080) -> None:
        import uvicorn

        logger.info("Starting giveaway web server on %s:%s", host, port)
        config = uvicorn.Config(self.app, host=host, port=port, log_level="info", access_log=True)
        self._server = uvicorn.Server(config)
        try:
            await self._server.serve()
        finally:
            logger.info("Giveaway web server stopped")

    async def stop(self) -> None:
        if self._server is None:
            return
        logger.info("Stopping giveaway web server")
        self._server.should_exit = True

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------
    def _serialize_status(self, snapshot: GiveawaySnapshot) -> Dict[str, Any]:
        pending = snapshot.pending_winner
        return {
            "channel": self.machine.channel,
            "open": snapshot.is_open,
            "keyword": snapshot.keyword,
            "entrantCount": len(snapshot.entrants),
            "entrants": snapshot.entrants,
            "pendingWinner": pending.to_dict() if pending else None,
            "pendingSince": pending.since if pending else None,
            "history": self._serialize_history(snapshot.history),
            "maxEntrants": snapshot.max_entrants,
            "maxReached": snapshot.max_reached,
            "sessionTotal": snapshot.session_total,
        }

    @staticmethod
    def _parse_since(raw: str) -> Optional[int]:
        """Epoch-ms filter from the query string; blank or non-numeric means no filter."""
        try:
            value = float(raw)
        except ValueError:
            return None
        if not math.isfinite(value) or value <= 0:
            return None
        return int(value)

    def _serialize_history(self, history: List[HistoryEntry]) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in history]

    def _serialize_lines(self, lines: List[ChatLine]) -> List[Dict[str, Any]]:
        return [line.to_dict() for line in lines]
