"""WebSocket manager for real-time updates."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Set

from fastapi import WebSocket, WebSocketDisconnect

from stream_engine.broadcaster import STATUS_TOPIC

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and fans engine events out to them.

    Every connection is subscribed to the stream status topic on connect;
    per-stream progress topics are opt-in.
    """

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self.connection_ids: Dict[WebSocket, str] = {}
        self.subscriptions: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, client_id: str):
        """Accept and register a new WebSocket connection.

        Args:
            websocket: WebSocket connection.
            client_id: Unique client identifier.
        """
        await websocket.accept()
        self.active_connections.append(websocket)
        self.connection_ids[websocket] = client_id
        self.subscribe(websocket, STATUS_TOPIC)
        logger.info(f"WebSocket connected: {client_id}")

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection.

        Args:
            websocket: WebSocket connection to remove.
        """
        if websocket in self.active_connections:
            client_id = self.connection_ids.get(websocket, "unknown")
            self.active_connections.remove(websocket)
            del self.connection_ids[websocket]

            # Remove from all subscriptions
            for subscribers in self.subscriptions.values():
                subscribers.discard(websocket)

            logger.info(f"WebSocket disconnected: {client_id}")

    def subscribe(self, websocket: WebSocket, topic: str):
        """Subscribe a client to a topic.

        Args:
            websocket: WebSocket connection.
            topic: Topic to subscribe to.
        """
        self.subscriptions.setdefault(topic, set()).add(websocket)

    def unsubscribe(self, websocket: WebSocket, topic: str):
        """Unsubscribe a client from a topic.

        Args:
            websocket: WebSocket connection.
            topic: Topic to unsubscribe from.
        """
        if topic in self.subscriptions:
            self.subscriptions[topic].discard(websocket)

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send a message to a specific client.

        Args:
            message: Message to send.
            websocket: Target WebSocket connection.
        """
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        """Send a payload to every subscriber of a topic.

        Clients that fail to receive are disconnected.

        Args:
            topic: Topic the payload belongs to.
            payload: JSON-serialisable event.
        """
        if "timestamp" not in payload:
            payload["timestamp"] = datetime.utcnow().isoformat()

        recipients = list(self.subscriptions.get(topic, ()))

        disconnected = []
        for connection in recipients:
            try:
                await connection.send_json(payload)
            except WebSocketDisconnect:
                disconnected.append(connection)
            except Exception as e:
                logger.error(f"Error broadcasting to client: {e}")
                disconnected.append(connection)

        # Clean up disconnected clients
        for connection in disconnected:
            self.disconnect(connection)
