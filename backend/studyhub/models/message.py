from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from studyhub.database import Base
from studyhub.schemas.events import ID_MAX_LENGTH


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(String(2000), nullable=False)
    group_id = Column(String(ID_MAX_LENGTH), nullable=False, index=True)
    user_id = Column(String(ID_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
