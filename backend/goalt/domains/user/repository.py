"""
User persistence. Every call opens its own short session so one webhook event never
holds a transaction across a Send API round trip.
"""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from goalt.core.database import get_session_factory
from goalt.core.errors import NotFoundError
from goalt.domains.user.models import User
from goalt.domains.user.modes import IDLE, ConversationMode, to_columns

logger = logging.getLogger(__name__)


class UserRepository:
    @staticmethod
    async def get(sender_id: str) -> Optional[User]:
        session_factory = get_session_factory()
        async with session_factory() as session:
            result = await session.execute(select(User).where(User.sender_id == sender_id))
            return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create(sender_id: str) -> tuple[User, bool]:
        """
        Return (user, created). Two deliveries racing on first contact both try the
        insert; the loser hits the unique constraint and reads the winner's row.
        """
        existing = await UserRepository.get(sender_id)
        if existing is not None:
            return existing, False
        session_factory = get_session_factory()
        async with session_factory() as session:
            mode, mode_goal_id = to_columns(IDLE)
            user = User(
                sender_id=sender_id,
                mode=mode,
                mode_goal_id=mode_goal_id,
                goal_count=0,
                finished_goals=[],
                last_motivation_index=0,
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("user %s created concurrently, reusing row", sender_id)
                winner = await UserRepository.get(sender_id)
                if winner is None:
                    raise
                return winner, False
        logger.info("new user created sender_id=%s", sender_id)
        return user, True

    @staticmethod
    async def set_mode(sender_id: str, mode: ConversationMode) -> None:
        name, goal_id = to_columns(mode)
        session_factory = get_session_factory()
        async with session_factory() as session:
            result = await session.execute(
                update(User)
                .where(User.sender_id == sender_id)
                .values(mode=name, mode_goal_id=goal_id)
            )
            await session.commit()
            if result.rowcount == 0:
                raise NotFoundError("user", sender_id)
        logger.debug("mode sender_id=%s -> %s goal=%s", sender_id, name, goal_id)

    @staticmethod
    async def set_motivation_index(sender_id: str, index: int) -> None:
        session_factory = get_session_factory()
        async with session_factory() as session:
            await session.execute(
                update(User).where(User.sender_id == sender_id).values(last_motivation_index=index)
            )
            await session.commit()
