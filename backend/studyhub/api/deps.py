from fastapi.requests import HTTPConnection

from studyhub.websocket.hub import RealtimeHub


def get_hub(conn: HTTPConnection) -> RealtimeHub:
    """Return the application's realtime hub (HTTP and WebSocket routes alike)."""
    return conn.app.state.hub
