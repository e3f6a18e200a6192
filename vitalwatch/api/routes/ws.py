"""WebSocket endpoint joining the caller to their private alert room.

Clients connect to ``/ws`` and receive ``alert:new`` and
``alert:unread-count`` events as ``{"event": ..., "data": ...}`` JSON.

Browsers cannot set custom headers on the upgrade request, so the API
key and forwarded identity arrive as query parameters.
"""

import json
import logging

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from vitalwatch.api.auth import is_valid_api_key, resolve_scope
from vitalwatch.api.dependencies import get_broadcaster
from vitalwatch.config.settings import get_settings
from vitalwatch.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def ws_alerts(
    ws: WebSocket,
    api_key: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    role: str | None = Query(default=None),
) -> None:
    """Real-time alert channel for one authenticated user.

    Query parameters:
        api_key: API key for authentication.
        user_id: Caller id forwarded by the auth gateway.
        role: Caller role forwarded by the auth gateway.
    """
    settings = get_settings()

    if not settings.ws_enabled:
        await ws.close(code=1008, reason="WebSocket alerts not enabled")
        return

    if not is_valid_api_key(api_key):
        await ws.close(code=1008, reason="Invalid or missing API key")
        return

    try:
        scope = resolve_scope(user_id, role)
    except HTTPException as e:
        await ws.close(code=1008, reason=str(e.detail))
        return

    broadcaster = get_broadcaster()
    await ws.accept()

    if not broadcaster.join(ws, scope.user_id):
        await ws.close(code=1008, reason="Max connections reached")
        return

    metrics = get_metrics()
    metrics.set_ws_connections(broadcaster.active_connections)

    try:
        while True:
            try:
                raw = await ws.receive_text()
                try:
                    msg = json.loads(raw)
                    if msg.get("event") == "ping":
                        await ws.send_text(json.dumps({"event": "pong", "data": {}}))
                except (json.JSONDecodeError, TypeError, AttributeError):
                    pass
            except WebSocketDisconnect:
                break
    finally:
        broadcaster.leave(ws)
        metrics.set_ws_connections(broadcaster.active_connections)
