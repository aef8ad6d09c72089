"""
Session state REST endpoint.

GET /api/sessions/{session_id}  → lifecycle fields of one study session
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from studyhub.database import get_db
from studyhub.models.study_session import StudySession
from studyhub.schemas.session import SessionResponse

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, db: Session = Depends(get_db)) -> SessionResponse:
    session = db.query(StudySession).filter(StudySession.id == session_id).first()
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionResponse.from_model(session)
