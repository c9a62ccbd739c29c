"""
Builders for every message the bot sends. Each returns an OutboundMessage ready for the gateway.
"""
from collections.abc import Sequence
from typing import Optional

from goalt.domains.conversation.actions import Action, ActionKind
from goalt.domains.goal.constants import FINISHED_SUMMARY_MARK, LOGS_PAGE_SIZE
from goalt.domains.goal.models import Goal
from goalt.domains.goal.rules import format_log_entry
from goalt.infrastructure.messenger.schemas import (
    Attachment,
    Button,
    Element,
    ImagePayload,
    MessageBody,
    OutboundMessage,
    QuickReply,
    Recipient,
    TemplatePayload,
)

# Messenger limits
MAX_QUICK_REPLIES = 11
QUICK_REPLY_TITLE_MAX = 20

METADATA = "DEVELOPER_DEFINED_METADATA"

WELCOME_NEW_USER = "Welcome, here is the home screen:"
WELCOME_GET_STARTED = (
    "Welcome to Goalt, your own goal tracker. Click on New Goal to start. "
    "Continue to add progress to achieve your goals!"
)
HELP_TEXT = (
    "Tap New Goal to start tracking something, Add Progress every day to build your streak, "
    "and View Goals to see how you are doing."
)
ASK_GOAL_NAME = "What is the name of your goal?"
ASK_LOG_TEXT = "Add a log message to your goal!"
NO_GOALS = "No goals yet, start one from home!"
NO_FINISHED_GOALS = "You have not finished any goals yet. Keep going!"
GOAL_MISSING = "That goal no longer exists, going to home..."
DELETE_CANCELED = "Deleting canceled, going to home..."
FINISH_CANCELED = "Finishing canceled, going to home..."
GOAL_DELETED = "Goal deleted! Going to home..."
LOG_ADDED = "Log Added! Great job today! Here's your daily dose of motivation from /r/GetMotivated:"


def _recipient(sender_id: str) -> Recipient:
    return Recipient(id=sender_id)


def _title(text: str) -> str:
    if len(text) <= QUICK_REPLY_TITLE_MAX:
        return text
    return text[: QUICK_REPLY_TITLE_MAX - 1] + "…"


def _home_quick_reply() -> QuickReply:
    return QuickReply(title="Home", payload=Action(ActionKind.HOME).to_payload())


def streak_label(goal) -> str:
    return f"{goal.name}  {FINISHED_SUMMARY_MARK}{goal.streak}"


def text(sender_id: str, message: str) -> OutboundMessage:
    return OutboundMessage(
        recipient=_recipient(sender_id),
        message=MessageBody(text=message, metadata=METADATA),
    )


def text_with_home(sender_id: str, message: str) -> OutboundMessage:
    return OutboundMessage(
        recipient=_recipient(sender_id),
        message=MessageBody(text=message, metadata=METADATA, quick_replies=[_home_quick_reply()]),
    )


def home_menu(sender_id: str, server_url: str) -> OutboundMessage:
    element = Element(
        title="GoalT: A Goal Tracker For You",
        subtitle="Type anything or press 👍 to return Home",
        image_url=f"{server_url}/assets/home.png" if server_url else None,
        buttons=[
            Button(title="New Goal", payload=Action(ActionKind.NEW_GOAL).to_payload()),
            Button(title="View Goals", payload=Action(ActionKind.LIST_VIEW).to_payload()),
            Button(title="Add Progress", payload=Action(ActionKind.LIST_PROGRESS).to_payload()),
        ],
    )
    return _generic(sender_id, [element])


def goal_list(
    sender_id: str,
    goals: Sequence[Goal],
    pick: ActionKind,
    has_finished: bool = False,
) -> OutboundMessage:
    """
    Numbered goal list with one quick reply per goal. pick is VIEW_GOAL or PICK_PROGRESS;
    the view list also offers the finished goals when there are any.
    """
    lines = ["Here are your goals:"]
    quick: list[QuickReply] = []
    for number, goal in enumerate(goals, start=1):
        lines.append(f"{number}. {streak_label(goal)}")
        quick.append(QuickReply(title=_title(goal.name), payload=Action(pick, goal.id).to_payload()))
    if pick is ActionKind.VIEW_GOAL:
        lines.append("Tap on a goal below to view more details.")
        if has_finished:
            quick.append(
                QuickReply(title="Finished Goals", payload=Action(ActionKind.LIST_FINISHED).to_payload())
            )
    else:
        lines.append("Tap on a goal below to add progress to it!")
    return OutboundMessage(
        recipient=_recipient(sender_id),
        message=MessageBody(text="\n".join(lines), quick_replies=quick[:MAX_QUICK_REPLIES]),
    )


def goal_card(sender_id: str, goal: Goal) -> OutboundMessage:
    element = Element(
        title=streak_label(goal),
        subtitle=f"Total progress: {goal.total}",
        buttons=[
            Button(title="View Logs", payload=Action(ActionKind.VIEW_LOGS, goal.id).to_payload()),
            Button(title="Finish Goal", payload=Action(ActionKind.ASK_FINISH, goal.id).to_payload()),
            Button(title="Delete Goal", payload=Action(ActionKind.ASK_DELETE, goal.id).to_payload()),
        ],
    )
    return _generic(sender_id, [element])


def log_page(sender_id: str, goal: Goal, index: int) -> OutboundMessage:
    log = list(goal.log or [])
    index = max(0, min(index, max(0, len(log) - 1)))
    index -= index % LOGS_PAGE_SIZE
    page = index // LOGS_PAGE_SIZE + 1
    lines = [f"Here are your logs for {goal.name} (Page {page})"]
    entries = log[index: index + LOGS_PAGE_SIZE]
    if entries:
        lines.extend(format_log_entry(entry) for entry in entries)
    else:
        lines.append("No logs yet.")
    quick = [_home_quick_reply()]
    if index + LOGS_PAGE_SIZE < len(log):
        quick.insert(
            0,
            QuickReply(
                title="View Next Logs",
                payload=Action(ActionKind.VIEW_LOGS, goal.id, index + LOGS_PAGE_SIZE).to_payload(),
            ),
        )
    if index - LOGS_PAGE_SIZE >= 0:
        quick.insert(
            0,
            QuickReply(
                title="View Previous Logs",
                payload=Action(ActionKind.VIEW_LOGS, goal.id, index - LOGS_PAGE_SIZE).to_payload(),
            ),
        )
    return OutboundMessage(
        recipient=_recipient(sender_id),
        message=MessageBody(text="\n".join(lines), quick_replies=quick),
    )


def confirm_delete(sender_id: str, goal: Goal) -> OutboundMessage:
    return _yes_no(
        sender_id,
        f"Are you sure you want to delete {goal.name}? This cannot be undone.",
        Action(ActionKind.CONFIRM_DELETE, goal.id),
        Action(ActionKind.CANCEL_DELETE, goal.id),
    )


def confirm_finish(sender_id: str, goal: Goal) -> OutboundMessage:
    return _yes_no(
        sender_id,
        f"Are you sure you want to finish {goal.name}? This cannot be undone. "
        "Finishing a goal will stop you from adding to it, "
        "but it will be saved in your finished section forever",
        Action(ActionKind.CONFIRM_FINISH, goal.id),
        Action(ActionKind.CANCEL_FINISH, goal.id),
    )


def goal_added(sender_id: str, name: str) -> OutboundMessage:
    return text(
        sender_id,
        f"Goal {name} Added. Be sure to add progress to it every day to build up your goal streak! "
        "Going to home...",
    )


def goal_finished(sender_id: str, name: str) -> OutboundMessage:
    return text(
        sender_id,
        f"CONGRATS on finishing your goal: {name}! You did an absolutely fantastic job. :) "
        "Your goal has been moved to the finished section in View Goals. Going to home...",
    )


def finished_list(sender_id: str, finished: Sequence[str]) -> OutboundMessage:
    if not finished:
        return text_with_home(sender_id, NO_FINISHED_GOALS)
    lines = ["Here are your finished goals:"]
    lines.extend(f"{number}. {summary}" for number, summary in enumerate(finished, start=1))
    return text_with_home(sender_id, "\n".join(lines))


def image(sender_id: str, url: str) -> OutboundMessage:
    return OutboundMessage(
        recipient=_recipient(sender_id),
        message=MessageBody(
            attachment=Attachment(type="image", payload=ImagePayload(url=url)),
            quick_replies=[_home_quick_reply()],
        ),
    )


def demo_generic(sender_id: str, server_url: str) -> OutboundMessage:
    """Sample two-bubble carousel answered to the 'generic' keyword."""

    def bubble(name: str, subtitle: str, url: str) -> Element:
        return Element(
            title=name,
            subtitle=subtitle,
            item_url=url,
            image_url=f"{server_url}/assets/{name}.png" if server_url else None,
            buttons=[
                Button(type="web_url", title="Open Web URL", url=url),
                Button(title="Go Home", payload=Action(ActionKind.HOME).to_payload()),
            ],
        )

    return _generic(
        sender_id,
        [
            bubble("streak", "Add progress every day to grow it", "https://www.messenger.com/"),
            bubble("finish", "Finished goals are kept forever", "https://www.messenger.com/"),
        ],
    )


def _generic(sender_id: str, elements: list[Element]) -> OutboundMessage:
    return OutboundMessage(
        recipient=_recipient(sender_id),
        message=MessageBody(
            attachment=Attachment(type="template", payload=TemplatePayload(elements=elements)),
        ),
    )


def _yes_no(sender_id: str, question: str, yes: Action, no: Action) -> OutboundMessage:
    return OutboundMessage(
        recipient=_recipient(sender_id),
        message=MessageBody(
            text=question,
            quick_replies=[
                QuickReply(title="Yes", payload=yes.to_payload()),
                QuickReply(title="No", payload=no.to_payload()),
            ],
        ),
    )


def keyword_reply(sender_id: str, keyword: str, server_url: str) -> Optional[OutboundMessage]:
    """Fixed answers to a few Idle keywords; None when the text is not one of them."""
    if keyword == "generic":
        return demo_generic(sender_id, server_url)
    if keyword == "image":
        if not server_url:
            # no public host for the asset; a relative url is rejected by the Send API
            return home_menu(sender_id, server_url)
        return image(sender_id, f"{server_url}/assets/home.png")
    if keyword == "help":
        return text_with_home(sender_id, HELP_TEXT)
    return None
