from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

router = APIRouter()


class WebSocketManager:
    """Fan out UI events to every connected front-end."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)

    async def broadcast(self, payload: dict) -> None:
        async with self._lock:
            connections = list(self._connections)
        if not connections:
            return
        stale: list[WebSocket] = []
        for websocket in connections:
            try:
                await websocket.send_json(payload)
            except Exception:  # noqa: BLE001
                stale.append(websocket)
        for websocket in stale:
            await self.disconnect(websocket)


def get_ws_manager(websocket: WebSocket) -> WebSocketManager:
    """Dependency to access the WebSocket manager from app state."""

    return websocket.app.state.ws_manager


@router.websocket("/ws/ui")
async def ws_ui(
    websocket: WebSocket,
    manager: WebSocketManager = Depends(get_ws_manager),
) -> None:
    """WebSocket endpoint streaming action effects to the UI."""

    await manager.connect(websocket)
    state = websocket.app.state.conversation_manager.get_state()
    await websocket.send_json(
        {"event": "conversation_state", "state": state.model_dump(mode="json", by_alias=True)}
    )
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await manager.disconnect(websocket)
