from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from radarpro.services.ws_manager import ws_manager

router = APIRouter(tags=["websocket"])


@router.websocket("/api/ws/{channel}")
async def websocket_endpoint(websocket: WebSocket, channel: str):
    # "reports" carries raw change events, "user:{id}" one user's view and notifications
    await ws_manager.connect(channel, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_manager.disconnect(channel, websocket)
