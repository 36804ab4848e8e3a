"""WebSocket connection management for storyboard session updates."""

from fastapi import WebSocket


class WebSocketManager:
    """Manages WebSocket connections grouped by session id."""

    def __init__(self):
        self.connections: dict[str, list[WebSocket]] = {}

    async def connect(self, key: str, websocket: WebSocket) -> None:
        """Accept a WebSocket connection and add it to the connection pool.

        Args:
            key: Session id
            websocket: The WebSocket connection to add
        """
        await websocket.accept()
        self.connections.setdefault(key, []).append(websocket)

    async def broadcast(self, key: str, message: dict) -> None:
        """Send a message to every WebSocket watching a session.

        Sockets that fail to receive are dropped from the pool.
        """
        disconnected = []
        for ws in list(self.connections.get(key, [])):
            try:
                await ws.send_json(message)
            except Exception:
                disconnected.append(ws)

        for ws in disconnected:
            self.disconnect(key, ws)

    def disconnect(self, key: str, websocket: WebSocket) -> None:
        if key in self.connections and websocket in self.connections[key]:
            self.connections[key].remove(websocket)
