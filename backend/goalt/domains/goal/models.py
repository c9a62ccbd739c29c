from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, UniqueConstraint, func

from goalt.core.database import Base


class Goal(Base):
    """
    A tracked objective owned by one user.
    streak counts the current run of consecutive days, total counts every progress log;
    last_update_ts / last_update_day are read and written only by the streak engine.
    """

    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)  # users.sender_id
    name = Column(String(100), nullable=False)
    streak = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    log = Column(JSON, nullable=False, default=list)  # [{"date": "M/D", "text": ...}], newest first
    last_update_ts = Column(Float, nullable=False)  # epoch seconds
    last_update_day = Column(Integer, nullable=False)  # 0=Mon ... 6=Sun
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_goal_owner_name"),)
