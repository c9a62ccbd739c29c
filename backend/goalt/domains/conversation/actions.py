"""
Typed postback / quick-reply actions and their Messenger payload strings.
Payloads are parsed once at the webhook boundary; handlers only see Action values.

Wire grammar (prefix + fixed-width separator + goal id):
    "Payload new goal" | "Payload view" | "Payload progress" | "Payload finished"
    "Payload start" | "home"
    "view <id>" | "prog <id>" | "logs <id>" | "logs<index>!<id>"
    "dele <id>" | "finish <id>" | "yes  <id>" | "no   <id>" | "yef  <id>" | "nf   <id>"
"""
import enum
import re
from dataclasses import dataclass
from typing import Optional


class ActionKind(str, enum.Enum):
    NEW_GOAL = "new_goal"
    LIST_VIEW = "list_view"
    LIST_PROGRESS = "list_progress"
    LIST_FINISHED = "list_finished"
    GET_STARTED = "get_started"
    HOME = "home"
    VIEW_GOAL = "view_goal"
    PICK_PROGRESS = "pick_progress"
    VIEW_LOGS = "view_logs"
    ASK_DELETE = "ask_delete"
    ASK_FINISH = "ask_finish"
    CONFIRM_DELETE = "confirm_delete"
    CANCEL_DELETE = "cancel_delete"
    CONFIRM_FINISH = "confirm_finish"
    CANCEL_FINISH = "cancel_finish"


_FIXED_PAYLOADS = {
    ActionKind.NEW_GOAL: "Payload new goal",
    ActionKind.LIST_VIEW: "Payload view",
    ActionKind.LIST_PROGRESS: "Payload progress",
    ActionKind.LIST_FINISHED: "Payload finished",
    ActionKind.GET_STARTED: "Payload start",
    ActionKind.HOME: "home",
}
_FIXED_BY_PAYLOAD = {payload: kind for kind, payload in _FIXED_PAYLOADS.items()}

# prefix as written on the wire, including its separator
_GOAL_PREFIXES = {
    ActionKind.VIEW_GOAL: "view ",
    ActionKind.PICK_PROGRESS: "prog ",
    ActionKind.ASK_DELETE: "dele ",
    ActionKind.ASK_FINISH: "finish ",
    ActionKind.CONFIRM_DELETE: "yes  ",
    ActionKind.CANCEL_DELETE: "no   ",
    ActionKind.CONFIRM_FINISH: "yef  ",
    ActionKind.CANCEL_FINISH: "nf   ",
}

_LOGS_PAGE = re.compile(r"^logs(?P<index>\d{1,18})!(?P<goal_id>\d{1,18})$")
_LOGS_FIRST = re.compile(r"^logs (?P<goal_id>\d{1,18})$")
_GOAL_ID = re.compile(r"^\d{1,18}$")


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    goal_id: Optional[int] = None
    index: int = 0

    @property
    def is_goal_scoped(self) -> bool:
        return self.goal_id is not None

    def to_payload(self) -> str:
        if self.kind in _FIXED_PAYLOADS:
            return _FIXED_PAYLOADS[self.kind]
        if self.goal_id is None:
            raise ValueError(f"{self.kind.value} needs a goal id")
        if self.kind is ActionKind.VIEW_LOGS:
            return f"logs{self.index}!{self.goal_id}"
        return f"{_GOAL_PREFIXES[self.kind]}{self.goal_id}"


def parse_payload(payload: Optional[str]) -> Optional[Action]:
    """Decode a payload string. Returns None for anything outside the grammar."""
    if not payload:
        return None
    if payload in _FIXED_BY_PAYLOAD:
        return Action(_FIXED_BY_PAYLOAD[payload])
    match = _LOGS_PAGE.match(payload)
    if match:
        return Action(ActionKind.VIEW_LOGS, int(match["goal_id"]), int(match["index"]))
    match = _LOGS_FIRST.match(payload)
    if match:
        return Action(ActionKind.VIEW_LOGS, int(match["goal_id"]), 0)
    for kind, prefix in _GOAL_PREFIXES.items():
        if payload.startswith(prefix):
            rest = payload[len(prefix):]
            if _GOAL_ID.match(rest):
                return Action(kind, int(rest))
            return None
    return None
