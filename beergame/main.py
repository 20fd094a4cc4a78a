"""FastAPI application: REST commands/queries plus the live WebSocket channels."""
import random
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from beergame.api.api_v1.api import api_router
from beergame.api.endpoints import websocket_router
from beergame.core.config import Settings, settings as default_settings
from beergame.core.logging import setup_logging
from beergame.services.coordinator import GameCoordinator, SessionRegistry
from beergame.websockets import ConnectionManager


def create_app(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[SessionRegistry] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Build an application with its own registry, gateway and coordinator."""
    settings = settings or default_settings
    logger = setup_logging("beergame")

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, debug=settings.DEBUG)

    # CORS (allow credentials from the frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    connection_manager = ConnectionManager()
    app.state.connection_manager = connection_manager
    app.state.coordinator = GameCoordinator(registry or SessionRegistry(), connection_manager, rng=rng)

    app.include_router(api_router, prefix=settings.API_V1_STR)
    app.include_router(websocket_router)

    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} ready (api prefix {settings.API_V1_STR})")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("beergame.main:app", host=default_settings.HOST, port=default_settings.PORT)
