import asyncio
import json
from queue import Empty, Queue
from typing import Any, Dict, Set

from fastapi import WebSocket

class FeedManager:
    """Live feed of new samples and command transitions.

    ``publish`` only touches a thread-safe queue, so simulator ticks and
    request handlers can call it from anywhere; ``forward`` drains the queue
    to every connected websocket on the event loop.
    """

    def __init__(self) -> None:
        self.active_connections: Set[WebSocket] = set()
        self.outbox: "Queue[str]" = Queue()
        self._lock = asyncio.Lock()

    def publish(self, kind: str, record: Dict[str, Any]) -> None:
        self.outbox.put(json.dumps({"kind": kind, "data": record}, ensure_ascii=False))

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self.active_connections.discard(websocket)

    async def broadcast_text(self, message: str):
        async with self._lock:
            targets = list(self.active_connections)
        if targets:
            await asyncio.gather(*(self._safe_send(ws, message) for ws in targets), return_exceptions=True)

    async def _safe_send(self, ws: WebSocket, message: str):
        try:
            await ws.send_text(message)
        except Exception:
            await self.disconnect(ws)

    async def forward(self):
        while True:
            try:
                msg = self.outbox.get_nowait()
            except Empty:
                await asyncio.sleep(0.1)
                continue
            await self.broadcast_text(msg)
