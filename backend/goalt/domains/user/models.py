from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from goalt.core.database import Base
from goalt.domains.user.modes import ConversationMode, from_columns, to_columns


class User(Base):
    """A Messenger user, created lazily on first contact and never deleted."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(String(64), unique=True, index=True, nullable=False)  # page-scoped id
    mode = Column(String(32), nullable=False, default="idle")
    mode_goal_id = Column(Integer, nullable=True)  # set only for logging_progress
    goal_count = Column(Integer, nullable=False, default=0)  # 0~5
    finished_goals = Column(JSON, nullable=False, default=list)  # newest first
    last_motivation_index = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def conversation_mode(self) -> ConversationMode:
        return from_columns(self.mode, self.mode_goal_id)

    @conversation_mode.setter
    def conversation_mode(self, value: ConversationMode) -> None:
        self.mode, self.mode_goal_id = to_columns(value)
