"""HTTP and WebSocket surface of the delivery service."""

from .router import api_router
from .websocket import router as websocket_router

__all__ = ["api_router", "websocket_router"]
