"""
studyhub — FastAPI backend entry point.

REST endpoints live under /api; all realtime traffic (group calls, WebRTC
signaling, study sessions, group chat) goes over the single /ws socket.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studyhub.api import health, presence, sessions
from studyhub.api.deps import get_hub
from studyhub.config import settings
from studyhub.database import SessionLocal, create_tables
from studyhub.websocket.handlers import realtime_ws_handler
from studyhub.websocket.hub import RealtimeHub, create_hub

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    app.state.hub = create_hub(SessionLocal)
    logger.info("Realtime hub ready")
    yield
    logger.info("Shutting down with %d open connection(s)", app.state.hub.lifecycle.open_connections)


app = FastAPI(
    title="studyhub",
    description="Study-group calls, sessions and chat",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
# allow_origins=["*"] is incompatible with allow_credentials=True; a wildcard
# entry switches to allow_origin_regex=".*" instead.
_cors_origins = [o for o in settings.CORS_ORIGINS if o != "*"]
_cors_regex = ".*" if len(_cors_origins) < len(settings.CORS_ORIGINS) else None

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_origin_regex=_cors_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(health.router)
app.include_router(presence.router, prefix="/api")
app.include_router(sessions.router, prefix="/api")

# ---------------------------------------------------------------------------
# WebSocket endpoint
# ---------------------------------------------------------------------------


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, hub: RealtimeHub = Depends(get_hub)) -> None:
    await realtime_ws_handler(websocket, hub)


# ---------------------------------------------------------------------------
# Custom exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})
