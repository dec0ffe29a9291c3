from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WsHub:
    """Fan-out of state messages to connected overlay/controller pages."""

    def __init__(self) -> None:
        self._conns: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._conns)

    async def add(self, ws: WebSocket) -> None:
        async with self._lock:
            self._conns.add(ws)
        logger.debug("ws client connected (%d total)", len(self._conns))

    async def remove(self, ws: WebSocket) -> None:
        async with self._lock:
            self._conns.discard(ws)

    async def broadcast(self, kind: str, payload: dict[str, Any]) -> None:
        msg = json.dumps({"type": kind, **payload}, ensure_ascii=False)
        async with self._lock:
            conns = list(self._conns)
        if not conns:
            return
        await asyncio.gather(*(self._safe_send(ws, msg) for ws in conns), return_exceptions=True)

    async def _safe_send(self, ws: WebSocket, msg: str) -> None:
        try:
            await ws.send_text(msg)
        except Exception:
            logger.debug("dropping ws client after failed send")
            await self.remove(ws)
