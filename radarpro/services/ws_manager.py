"""WebSocket connection manager for real-time report and notification fan-out.

Connections are grouped by channel name: ``reports`` carries raw change
events, ``user:{id}`` carries one user's relayed view events and
notifications.
"""

from __future__ import annotations

import json
from fastapi import WebSocket


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


class ConnectionManager:
    def __init__(self):
        self._connections: dict[str, list[WebSocket]] = {}

    async def connect(self, channel: str, websocket: WebSocket):
        await websocket.accept()
        self._connections.setdefault(channel, []).append(websocket)

    def disconnect(self, channel: str, websocket: WebSocket):
        conns = self._connections.get(channel, [])
        if websocket in conns:
            conns.remove(websocket)

    def connection_count(self, channel: str) -> int:
        return len(self._connections.get(channel, []))

    async def broadcast(self, channel: str, message: dict) -> int:
        """Send a JSON message to all clients on a channel. Returns deliveries."""
        conns = self._connections.get(channel, [])
        dead = []
        sent = 0
        for ws in list(conns):
            try:
                await ws.send_text(json.dumps(message, default=str))
                sent += 1
            except Exception:
                dead.append(ws)
        for ws in dead:
            if ws in conns:
                conns.remove(ws)
        return sent


ws_manager = ConnectionManager()
