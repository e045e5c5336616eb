from .handler import websocket_realtime

__all__ = ["websocket_realtime"]
