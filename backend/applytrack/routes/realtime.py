from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from applytrack.core.database import get_session_factory
from applytrack.dependencies.auth import InvalidCredentials, user_from_access_token
from applytrack.dependencies.realtime import get_ws_realtime
from applytrack.services.realtime import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ws", tags=["realtime"])


def _token_from_headers(websocket: WebSocket) -> str | None:
    auth = websocket.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def _resolve_user_id(session_factory: sessionmaker, token: str) -> int:
    with session_factory() as db:
        return user_from_access_token(db, token).id


@router.websocket("/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    session_factory: sessionmaker = Depends(get_session_factory),
    realtime: ConnectionRegistry = Depends(get_ws_realtime),
):
    """
    Joins the caller's room. The room is always the authenticated user's id;
    the client never names it.
    """
    raw = token or _token_from_headers(websocket)
    if not raw:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        user_id = await run_in_threadpool(_resolve_user_id, session_factory, raw)
    except InvalidCredentials as e:
        logger.info("Realtime connection rejected: %s", e.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    realtime.join(user_id, websocket)
    try:
        await websocket.send_json({"event": "connected", "data": {"userId": user_id}})
        # Client frames are ignored; reading keeps the socket alive and surfaces disconnects.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        realtime.leave(user_id, websocket)
