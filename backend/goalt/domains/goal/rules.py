"""
Pure goal-lifecycle rules: name normalization, input validation, log entries and
the summary string a finished goal leaves on its owner.
"""
from datetime import datetime
from typing import Any

from goalt.core.errors import ValidationError
from goalt.domains.goal.constants import (
    FINISHED_SUMMARY_MARK,
    GOAL_NAME_MAX_LENGTH,
    LOG_TEXT_MAX_LENGTH,
    MAX_GOALS_PER_USER,
)

GOAL_LIMIT_MESSAGE = (
    "You have reached the maximum number of goals. "
    "Finish one or delete one to add more! Going to home..."
)
NAME_TOO_LONG_MESSAGE = "That goal name is too long. Try another name."
NAME_EMPTY_MESSAGE = "Your goal needs a name. Try again."
NAME_TAKEN_MESSAGE = "Goal with that name has already been created. Try another name."
LOG_TOO_LONG_MESSAGE = "That goal log is too long. Try another log."
LOG_EMPTY_MESSAGE = "Your log is empty. Tell me what you did today!"


def normalize_goal_name(text: str) -> str:
    """'  rUN daily ' -> 'Run daily'. Uniqueness is checked on this form."""
    lowered = text.strip().lower()
    return lowered[:1].upper() + lowered[1:]


def check_goal_capacity(goal_count: int) -> None:
    if goal_count >= MAX_GOALS_PER_USER:
        raise ValidationError(GOAL_LIMIT_MESSAGE)


def validate_goal_name(text: str) -> str:
    name = normalize_goal_name(text)
    if not name:
        raise ValidationError(NAME_EMPTY_MESSAGE)
    if len(name) > GOAL_NAME_MAX_LENGTH:
        raise ValidationError(NAME_TOO_LONG_MESSAGE)
    return name


def validate_log_text(text: str) -> str:
    stripped = text.strip()
    if not stripped:
        raise ValidationError(LOG_EMPTY_MESSAGE)
    if len(stripped) > LOG_TEXT_MAX_LENGTH:
        raise ValidationError(LOG_TOO_LONG_MESSAGE)
    return stripped


def make_log_entry(text: str, when: datetime) -> dict[str, Any]:
    return {"date": f"{when.month}/{when.day}", "text": text}


def format_log_entry(entry: dict[str, Any]) -> str:
    return f"{entry.get('date', '')} {entry.get('text', '')}".strip()


def finished_summary(name: str, total: int) -> str:
    return f"{name} {FINISHED_SUMMARY_MARK}{total}"
