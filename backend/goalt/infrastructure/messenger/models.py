from sqlalchemy import Column, DateTime, Integer, String, func

from goalt.core.database import Base


class ProcessedMessage(Base):
    """
    Platform message ids already handled. A redelivered webhook (no 200 within 20s)
    carries the same mid and is skipped instead of logging progress twice.
    """

    __tablename__ = "processed_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mid = Column(String(255), nullable=False, unique=True, index=True)
    sender_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
