import asyncio
import json
import logging
from datetime import datetime, timezone

from fastapi import WebSocket, WebSocketDisconnect

from room_inventory.notifications.events import Event

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WebSocketBroadcaster:
    """Pushes every event to the connected admin/calendar pages."""

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self.clients: set[WebSocket] = set()

    @property
    def client_count(self) -> int:
        return len(self.clients)

    async def serve(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.clients.add(websocket)
        logger.info("websocket client connected (%d total)", self.client_count)
        await websocket.send_json({"type": "connected", "timestamp": _now()})
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("ignoring malformed websocket message")
                    continue
                if isinstance(message, dict) and message.get("type") == "subscribe":
                    await websocket.send_json(
                        {"type": "subscribed", "channel": message.get("channel"), "timestamp": _now()}
                    )
        except WebSocketDisconnect:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info("websocket client disconnected (%d left)", self.client_count)

    async def _send(self, client: WebSocket, message: dict) -> None:
        try:
            await asyncio.wait_for(client.send_json(message), timeout=self.send_timeout)
        except Exception:
            logger.warning("dropping websocket client after failed send", exc_info=True)
            self.clients.discard(client)

    async def __call__(self, event: Event) -> None:
        message = event.model_dump(mode="json")
        message["type"] = event.event_type
        await asyncio.gather(*(self._send(client, message) for client in list(self.clients)))
