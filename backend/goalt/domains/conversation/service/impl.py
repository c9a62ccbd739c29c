"""
Conversation state machine.

Every inbound event first makes sure the sender has a user row (greeting new users with
the home menu), then is dispatched on the user's mode (plain text) or on the typed action
(postbacks and quick replies). Handlers build the replies; they are sent in order once the
event's store writes are done.

    Idle             + text            -> keyword reply or home menu            -> Idle
    Idle             + new goal        -> ask for a name (cap 5)                -> NamingGoal
    NamingGoal       + text            -> create goal                           -> Idle
    Idle             + prog <id>       -> streak VIEW, ask for a log line       -> LoggingProgress(id)
    LoggingProgress  + text            -> streak PROGRESS + log, motivation     -> Idle
    *                + dele/finish     -> yes/no quick replies (state lives in the payload)
    *                + yes/yef <id>    -> delete / finish goal                  -> Idle
"""
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from goalt.core.config import get_settings
from goalt.core.errors import NotFoundError, ValidationError
from goalt.core.locks import KeyedLock, get_locks
from goalt.domains.conversation import replies
from goalt.domains.conversation.actions import Action, ActionKind, parse_payload
from goalt.domains.goal.repository import GoalRepository
from goalt.domains.goal.rules import (
    GOAL_LIMIT_MESSAGE,
    check_goal_capacity,
    make_log_entry,
    validate_log_text,
)
from goalt.domains.user.models import User
from goalt.domains.user.modes import IDLE, NAMING_GOAL, Idle, LoggingProgress, NamingGoal
from goalt.domains.user.repository import UserRepository
from goalt.infrastructure.messenger.gateway import MessagingGateway, send_all
from goalt.infrastructure.messenger.repository import ProcessedMessageRepository
from goalt.infrastructure.messenger.schemas import OutboundMessage
from goalt.infrastructure.motivation.feed import MotivationFeed, pick_post
from goalt.infrastructure.streak.engine import Instant, StreakEngine, StreakEvent, local_now

logger = logging.getLogger(__name__)

Replies = list[OutboundMessage]


class ConversationServiceImpl:
    def __init__(
        self,
        gateway: MessagingGateway,
        feed: MotivationFeed,
        engine: Optional[StreakEngine] = None,
        clock: Callable[[], datetime] = local_now,
        locks: Optional[KeyedLock] = None,
        server_url: Optional[str] = None,
    ):
        self._gateway = gateway
        self._feed = feed
        self._locks = locks or get_locks()
        self._engine = engine or StreakEngine(self._locks)
        self._clock = clock
        self._server_url = server_url if server_url is not None else get_settings().server_url

    # ── entry points ────────────────────────────────────────────

    async def handle_text(self, sender_id: str, text: str, mid: Optional[str] = None) -> None:
        if not await self._first_delivery(sender_id, mid):
            return
        user, out = await self._identify(sender_id)
        if out:
            # a new user's first text would only be answered with the home menu again
            await self._send(out)
            return
        out = await self._dispatch_text(user, text)
        await self._send(out)

    async def handle_payload(self, sender_id: str, payload: Optional[str], mid: Optional[str] = None) -> None:
        if not await self._first_delivery(sender_id, mid):
            return
        user, out = await self._identify(sender_id)
        action = parse_payload(payload)
        if action is None:
            logger.info("unrecognized payload %r from sender_id=%s", payload, sender_id)
            out.append(self._home(sender_id))
        else:
            out.extend(await self._dispatch_action(user, action))
        await self._send(out)

    async def handle_attachment(self, sender_id: str, mid: Optional[str] = None) -> None:
        if not await self._first_delivery(sender_id, mid):
            return
        _, out = await self._identify(sender_id)
        if not out:
            out.append(self._home(sender_id))
        await self._send(out)

    async def handle_optin(self, sender_id: str, ref: Optional[str] = None) -> None:
        logger.info("authentication received sender_id=%s ref=%r", sender_id, ref)
        await self._send([replies.text(sender_id, "Authentication successful")])

    # ── plumbing ────────────────────────────────────────────────

    async def _first_delivery(self, sender_id: str, mid: Optional[str]) -> bool:
        if not mid:
            return True
        return await ProcessedMessageRepository.claim(mid, sender_id)

    async def _identify(self, sender_id: str) -> tuple[User, Replies]:
        user, created = await UserRepository.get_or_create(sender_id)
        if not created:
            return user, []
        return user, [replies.text(sender_id, replies.WELCOME_NEW_USER), self._home(sender_id)]

    async def _send(self, out: Replies) -> None:
        if out:
            await send_all(self._gateway, out)

    def _home(self, sender_id: str) -> OutboundMessage:
        return replies.home_menu(sender_id, self._server_url)

    def _to_home(self, sender_id: str, message: str) -> Replies:
        return [replies.text(sender_id, message), self._home(sender_id)]

    # ── text ────────────────────────────────────────────────────

    async def _dispatch_text(self, user: User, text: str) -> Replies:
        mode = user.conversation_mode
        if isinstance(mode, NamingGoal):
            return await self._name_goal(user, text)
        if isinstance(mode, LoggingProgress):
            return await self._log_progress(user, mode.goal_id, text)
        keyword = text.strip().lower()
        reply = replies.keyword_reply(user.sender_id, keyword, self._server_url)
        if reply is not None:
            return [reply]
        logger.debug("no keyword match for sender_id=%s, sending home", user.sender_id)
        return [self._home(user.sender_id)]

    async def _name_goal(self, user: User, text: str) -> Replies:
        sender_id = user.sender_id
        instant = Instant.from_datetime(self._clock())
        async with self._locks.hold("user", sender_id):
            try:
                goal = await GoalRepository.create(
                    sender_id, text, instant.timestamp, instant.day_of_week
                )
            except ValidationError as e:
                logger.info("goal name rejected sender_id=%s: %s", sender_id, e.user_message)
                if e.user_message == GOAL_LIMIT_MESSAGE:
                    # the cap was reached while this user was naming; nothing left to name
                    await UserRepository.set_mode(sender_id, IDLE)
                    return self._to_home(sender_id, e.user_message)
                return [replies.text(sender_id, e.user_message)]
            await UserRepository.set_mode(sender_id, IDLE)
        return [replies.goal_added(sender_id, goal.name), self._home(sender_id)]

    async def _log_progress(self, user: User, goal_id: int, text: str) -> Replies:
        sender_id = user.sender_id
        try:
            log_text = validate_log_text(text)
        except ValidationError as e:
            return [replies.text(sender_id, e.user_message)]
        now = self._clock()
        try:
            applied = await self._engine.apply(
                sender_id, goal_id, StreakEvent.PROGRESS, now, log_entry=make_log_entry(log_text, now)
            )
        except NotFoundError:
            await UserRepository.set_mode(sender_id, IDLE)
            return self._to_home(sender_id, replies.GOAL_MISSING)
        await UserRepository.set_mode(sender_id, IDLE)
        logger.info(
            "progress logged sender_id=%s goal_id=%s streak=%s total=%s",
            sender_id, goal_id, applied.streak, applied.total,
        )
        out = [replies.text(sender_id, replies.LOG_ADDED)]
        out.extend(await self._motivation(user))
        return out

    async def _motivation(self, user: User) -> Replies:
        sender_id = user.sender_id
        posts = await self._feed.fetch_posts()
        picked = pick_post(posts, user.last_motivation_index or 0)
        if picked is None:
            logger.info("no motivation post available for sender_id=%s", sender_id)
            return [self._home(sender_id)]
        post, next_cursor = picked
        await UserRepository.set_motivation_index(sender_id, next_cursor)
        return [replies.text(sender_id, post.caption), replies.image(sender_id, post.url)]

    # ── actions ─────────────────────────────────────────────────

    async def _dispatch_action(self, user: User, action: Action) -> Replies:
        sender_id = user.sender_id
        if not isinstance(user.conversation_mode, Idle) and action.kind is not ActionKind.PICK_PROGRESS:
            # tapping a button abandons a pending name / log prompt
            await UserRepository.set_mode(sender_id, IDLE)
        try:
            return await self._run_action(user, action)
        except NotFoundError as e:
            logger.info("%s for sender_id=%s action=%s, going home", e, sender_id, action.kind.value)
            if action.kind is ActionKind.PICK_PROGRESS and not isinstance(user.conversation_mode, Idle):
                await UserRepository.set_mode(sender_id, IDLE)
            return self._to_home(sender_id, replies.GOAL_MISSING)

    async def _run_action(self, user: User, action: Action) -> Replies:
        sender_id = user.sender_id
        kind = action.kind

        if kind is ActionKind.HOME:
            return [self._home(sender_id)]
        if kind is ActionKind.GET_STARTED:
            return [replies.text(sender_id, replies.WELCOME_GET_STARTED), self._home(sender_id)]
        if kind is ActionKind.NEW_GOAL:
            return await self._start_naming(user)
        if kind in (ActionKind.LIST_VIEW, ActionKind.LIST_PROGRESS):
            return await self._goal_list(user, kind)
        if kind is ActionKind.LIST_FINISHED:
            return [replies.finished_list(sender_id, list(user.finished_goals or []))]
        if kind is ActionKind.CANCEL_DELETE:
            return self._to_home(sender_id, replies.DELETE_CANCELED)
        if kind is ActionKind.CANCEL_FINISH:
            return self._to_home(sender_id, replies.FINISH_CANCELED)

        goal_id = action.goal_id
        if kind is ActionKind.VIEW_GOAL:
            await self._engine.apply(sender_id, goal_id, StreakEvent.VIEW, self._clock())
            goal = await GoalRepository.get_owned(sender_id, goal_id)
            return [replies.goal_card(sender_id, goal)]
        if kind is ActionKind.PICK_PROGRESS:
            applied = await self._engine.apply(sender_id, goal_id, StreakEvent.VIEW, self._clock())
            await UserRepository.set_mode(sender_id, LoggingProgress(goal_id))
            logger.info("sender_id=%s logging progress on goal_id=%s", sender_id, goal_id)
            return [
                replies.text(sender_id, replies.streak_label(applied)),
                replies.text(sender_id, replies.ASK_LOG_TEXT),
            ]
        if kind is ActionKind.VIEW_LOGS:
            goal = await GoalRepository.get_owned(sender_id, goal_id)
            return [replies.log_page(sender_id, goal, action.index)]
        if kind is ActionKind.ASK_DELETE:
            goal = await GoalRepository.get_owned(sender_id, goal_id)
            return [replies.confirm_delete(sender_id, goal)]
        if kind is ActionKind.ASK_FINISH:
            goal = await GoalRepository.get_owned(sender_id, goal_id)
            return [replies.confirm_finish(sender_id, goal)]
        if kind is ActionKind.CONFIRM_DELETE:
            async with self._locks.hold("user", sender_id), self._locks.hold("goal", goal_id):
                await GoalRepository.delete(sender_id, goal_id)
            return self._to_home(sender_id, replies.GOAL_DELETED)
        if kind is ActionKind.CONFIRM_FINISH:
            async with self._locks.hold("user", sender_id), self._locks.hold("goal", goal_id):
                finished = await GoalRepository.finish(sender_id, goal_id)
            return [replies.goal_finished(sender_id, finished.name), self._home(sender_id)]

        logger.warning("unhandled action %s", kind.value)
        return [self._home(sender_id)]

    async def _start_naming(self, user: User) -> Replies:
        sender_id = user.sender_id
        try:
            check_goal_capacity(user.goal_count or 0)
        except ValidationError as e:
            return self._to_home(sender_id, e.user_message)
        await UserRepository.set_mode(sender_id, NAMING_GOAL)
        return [replies.text(sender_id, replies.ASK_GOAL_NAME)]

    async def _goal_list(self, user: User, kind: ActionKind) -> Replies:
        sender_id = user.sender_id
        goals = await self._engine.refresh_all(sender_id, self._clock())
        if not goals:
            return self._to_home(sender_id, replies.NO_GOALS)
        pick = ActionKind.VIEW_GOAL if kind is ActionKind.LIST_VIEW else ActionKind.PICK_PROGRESS
        return [replies.goal_list(sender_id, goals, pick, has_finished=bool(user.finished_goals))]
