"""WebSocket routes for real-time updates."""

import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)
router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, client_id: Optional[str] = Query(None)):
    """WebSocket endpoint for real-time updates.

    On connect the client receives a ``connected`` message followed by a
    ``snapshot`` of every stream, and is subscribed to the ``streams`` topic:
    - stream_status: status transitions of any stream
    - stream_progress: progress samples, on ``stream:<id>`` after subscribing

    Args:
        websocket: WebSocket connection.
        client_id: Optional client identifier.
    """
    manager = websocket.app.state.connections
    service = websocket.app.state.service

    if not client_id:
        client_id = str(uuid.uuid4())

    await manager.connect(websocket, client_id)

    await manager.send_personal_message(
        {
            "type": "connected",
            "data": {"client_id": client_id, "message": "Connected to stream engine WebSocket"},
        },
        websocket,
    )
    await manager.send_personal_message(
        {"type": "snapshot", "data": {"streams": service.list_streams()}},
        websocket,
    )

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)

                if message.get("type") == "subscribe":
                    topic = message.get("topic")
                    if topic:
                        manager.subscribe(websocket, topic)
                        await manager.send_personal_message(
                            {"type": "subscribed", "data": {"topic": topic}}, websocket
                        )

                elif message.get("type") == "unsubscribe":
                    topic = message.get("topic")
                    if topic:
                        manager.unsubscribe(websocket, topic)
                        await manager.send_personal_message(
                            {"type": "unsubscribed", "data": {"topic": topic}}, websocket
                        )

                elif message.get("type") == "ping":
                    await manager.send_personal_message({"type": "pong", "data": {}}, websocket)

            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from client {client_id}")

    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error for {client_id}: {e}")
        manager.disconnect(websocket)
