from __future__ import annotations

from fastapi import Request, WebSocket

from applytrack.services.realtime import ConnectionRegistry


def get_realtime(request: Request) -> ConnectionRegistry:
    return request.app.state.realtime


def get_ws_realtime(websocket: WebSocket) -> ConnectionRegistry:
    return websocket.app.state.realtime
