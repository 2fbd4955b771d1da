'''
FastAPI application for the SportsBook platform.

The app exposes the caller-scoped endpoints of a sports-facility booking
platform and a Socket.IO channel for presence.

Available endpoints:
- /api/auth: register, login, me, forgot and reset password.
- /api/users: profile, avatar, bookings, financial aid, donation history.
- /api/users/favorites: list, add and remove favorite facilities.

Realtime:
- /socket.io: clients emit ``authenticate`` with their token and get
  ``authenticated`` back, or are disconnected.
'''

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from Database.db import SportsBookDB
from Database.storage import AvatarStorage
from Realtime.gateway import RealtimeGateway
from Realtime.registry import PresenceRegistry
from Realtime.socket_server import SocketServer
from settings import Settings, configure_logging, get_settings
from Users.auth import CredentialVerifier, TokenService

# routers
from api.auth_routes import auth_router
from api.favorite_routes import favorite_router
from api.user_routes import user_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    db: Any = None,
    storage: Optional[AvatarStorage] = None,
) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        settings: Configuration; read from the environment when omitted.
        db: Supabase client; created at startup when omitted.
        storage: Avatar storage; built on the Supabase client when omitted.
    """

    settings = settings or get_settings()
    socket_server = SocketServer(cors_allowed_origins=[settings.frontend_url])

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- Startup ---
        app.state.db = db if db is not None else SportsBookDB(settings).client   # create ONCE
        app.state.storage = storage or AvatarStorage(app.state.db, settings.avatar_bucket)

        verifier = CredentialVerifier(
            app.state.db, TokenService(settings.jwt_secret, settings.jwt_expire_days)
        )
        gateway = RealtimeGateway(
            verifier,
            PresenceRegistry(),
            socket_server,
            auth_timeout=settings.socket_auth_timeout,
        )
        socket_server.attach(gateway)
        app.state.gateway = gateway
        logger.info("SportsBook API started")
        yield
        # --- Shutdown ---
        socket_server.detach()
        await gateway.shutdown()
        logger.info("SportsBook API stopped")

    app = FastAPI(title="SportsBook API", version="1.0.0", lifespan=lifespan)
    app.state.socket_server = socket_server
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(favorite_router, prefix="/api/users/favorites", tags=["Favorites"])
    app.include_router(user_router, prefix="/api/users", tags=["Users"])

    @app.get("/")
    async def root():
        return {"message": "SportsBook API running"}

    return app


def create_asgi_app(settings: Optional[Settings] = None) -> socketio.ASGIApp:
    '''HTTP app with the Socket.IO server mounted in front of it.'''
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    return socketio.ASGIApp(app.state.socket_server.sio, other_asgi_app=app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:create_asgi_app",
        factory=True,
        host="localhost",
        port=get_settings().port,
        reload=True,
    )
