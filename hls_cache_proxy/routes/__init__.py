from .health import health_router
from .stream import stream_router

__all__ = ["health_router", "stream_router"]
