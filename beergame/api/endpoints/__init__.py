from .game import router as game_router
from .health import router as health_router
from .websocket import router as websocket_router

# Export all routers
__all__ = [
    'game_router',
    'health_router',
    'websocket_router',
]
