"""
Liveness probe: database reachability plus the realtime hub's in-memory load.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studyhub.api.deps import get_hub
from studyhub.database import get_db
from studyhub.websocket.hub import RealtimeHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _realtime_stats(hub: RealtimeHub) -> dict:
    return {
        "connections": hub.lifecycle.open_connections,
        "activeCalls": len(hub.call_registry),
        "activeSessions": len(hub.session_registry),
    }


@router.get("/health")
async def health_check(db: Session = Depends(get_db), hub: RealtimeHub = Depends(get_hub)) -> dict:
    realtime = _realtime_stats(hub)
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check: database unreachable: %s", exc)
        return {"status": "unhealthy", "database": "disconnected", "error": str(exc), "realtime": realtime}
    return {"status": "healthy", "database": "connected", "realtime": realtime}
