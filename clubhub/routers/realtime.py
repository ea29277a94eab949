from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from clubhub.services.realtime import hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Live"])


@router.websocket("/ws")
async def live_updates(ws: WebSocket):
    await hub.connect(ws)
    try:
        while True:
            msg = await ws.receive_json()
            action = msg.get("action") if isinstance(msg, dict) else None
            room = msg.get("room") if isinstance(msg, dict) else None
            if not room or action not in ("subscribe", "unsubscribe"):
                await ws.send_json({"error": "expected {action: subscribe|unsubscribe, room}"})
                continue
            if action == "subscribe":
                hub.join(ws, str(room))
            else:
                hub.leave(ws, str(room))
            await ws.send_json({"ok": True, "action": action, "room": room})
    except WebSocketDisconnect:
        pass
    except ValueError:
        logger.warning("[live] non-JSON frame, closing")
    finally:
        hub.disconnect(ws)
