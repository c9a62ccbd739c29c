"""
Conversational mode of a user: what the next plain-text message will be read as.
Stored as two columns (mode, mode_goal_id); the rest of the code only sees these variants.
"""
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Idle:
    name = "idle"


@dataclass(frozen=True)
class NamingGoal:
    name = "naming_goal"


@dataclass(frozen=True)
class LoggingProgress:
    goal_id: int
    name = "logging_progress"


ConversationMode = Union[Idle, NamingGoal, LoggingProgress]

IDLE = Idle()
NAMING_GOAL = NamingGoal()


def to_columns(mode: ConversationMode) -> tuple[str, Optional[int]]:
    if isinstance(mode, LoggingProgress):
        return mode.name, mode.goal_id
    return mode.name, None


def from_columns(name: Optional[str], goal_id: Optional[int]) -> ConversationMode:
    """Unknown or half-written rows fall back to Idle."""
    if name == NamingGoal.name:
        return NAMING_GOAL
    if name == LoggingProgress.name and goal_id is not None:
        return LoggingProgress(goal_id)
    return IDLE
