"""
Goal persistence and the lifecycle transactions that also touch the owning user
(create / delete / finish keep users.goal_count in step with the live goal set).
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from goalt.core.database import get_session_factory
from goalt.core.errors import NotFoundError, StaleWriteError, ValidationError
from goalt.domains.goal.models import Goal
from goalt.domains.goal.rules import (
    NAME_TAKEN_MESSAGE,
    check_goal_capacity,
    finished_summary,
    validate_goal_name,
)
from goalt.domains.user.models import User

logger = logging.getLogger(__name__)


@dataclass
class FinishedGoal:
    name: str
    total: int
    summary: str


class GoalRepository:
    @staticmethod
    async def get(goal_id: int) -> Optional[Goal]:
        session_factory = get_session_factory()
        async with session_factory() as session:
            return await session.get(Goal, goal_id)

    @staticmethod
    async def get_owned(owner_id: str, goal_id: int) -> Goal:
        """Goal by id, restricted to its owner. Someone else's goal is reported as missing."""
        goal = await GoalRepository.get(goal_id)
        if goal is None or goal.owner_id != owner_id:
            raise NotFoundError("goal", goal_id)
        return goal

    @staticmethod
    async def list_for_owner(owner_id: str) -> list[Goal]:
        session_factory = get_session_factory()
        async with session_factory() as session:
            result = await session.execute(
                select(Goal).where(Goal.owner_id == owner_id).order_by(Goal.id.asc())
            )
            return list(result.scalars().all())

    @staticmethod
    async def create(owner_id: str, raw_name: str, last_update_ts: float, last_update_day: int) -> Goal:
        """
        Validate and insert a goal, incrementing the owner's goal_count in the same
        transaction. Raises ValidationError (nothing written) on cap, length or duplicate name.
        """
        name = validate_goal_name(raw_name)
        session_factory = get_session_factory()
        async with session_factory() as session:
            user = (
                await session.execute(select(User).where(User.sender_id == owner_id))
            ).scalar_one_or_none()
            if user is None:
                raise NotFoundError("user", owner_id)
            check_goal_capacity(user.goal_count)
            duplicate = (
                await session.execute(
                    select(Goal.id).where(Goal.owner_id == owner_id, Goal.name == name).limit(1)
                )
            ).first()
            if duplicate is not None:
                raise ValidationError(NAME_TAKEN_MESSAGE)
            goal = Goal(
                owner_id=owner_id,
                name=name,
                streak=0,
                total=0,
                log=[],
                last_update_ts=last_update_ts,
                last_update_day=last_update_day,
                version=0,
            )
            session.add(goal)
            user.goal_count = user.goal_count + 1
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise ValidationError(NAME_TAKEN_MESSAGE)
            logger.info(
                "goal created owner=%s goal_id=%s name=%r goal_count=%s",
                owner_id, goal.id, name, user.goal_count,
            )
            return goal

    @staticmethod
    async def save_progress(
        goal_id: int,
        expected_version: int,
        values: dict[str, Any],
    ) -> None:
        """
        Compare-and-swap update: applies values only if the row still carries
        expected_version, bumping the version. Raises StaleWriteError on a lost race.
        """
        session_factory = get_session_factory()
        async with session_factory() as session:
            result = await session.execute(
                update(Goal)
                .where(Goal.id == goal_id, Goal.version == expected_version)
                .values(version=expected_version + 1, **values)
            )
            await session.commit()
            if result.rowcount == 1:
                return
            exists = await session.get(Goal, goal_id)
        if exists is None:
            raise NotFoundError("goal", goal_id)
        raise StaleWriteError(f"goal {goal_id} changed since version {expected_version}")

    @staticmethod
    async def delete(owner_id: str, goal_id: int) -> str:
        """Delete a goal and decrement goal_count. Returns the deleted goal's name."""
        session_factory = get_session_factory()
        async with session_factory() as session:
            goal = await session.get(Goal, goal_id)
            if goal is None or goal.owner_id != owner_id:
                raise NotFoundError("goal", goal_id)
            name = goal.name
            await session.execute(delete(Goal).where(Goal.id == goal_id))
            await GoalRepository._decrement_goal_count(session, owner_id)
            await session.commit()
        logger.info("goal deleted owner=%s goal_id=%s", owner_id, goal_id)
        return name

    @staticmethod
    async def finish(owner_id: str, goal_id: int) -> FinishedGoal:
        """
        Move a goal into the owner's finished list (newest first), then delete it
        and decrement goal_count, all in one transaction.
        """
        session_factory = get_session_factory()
        async with session_factory() as session:
            goal = await session.get(Goal, goal_id)
            if goal is None or goal.owner_id != owner_id:
                raise NotFoundError("goal", goal_id)
            user = (
                await session.execute(select(User).where(User.sender_id == owner_id))
            ).scalar_one_or_none()
            if user is None:
                raise NotFoundError("user", owner_id)
            summary = finished_summary(goal.name, goal.total)
            finished = FinishedGoal(name=goal.name, total=goal.total, summary=summary)
            user.finished_goals = [summary] + list(user.finished_goals or [])
            user.goal_count = max(0, (user.goal_count or 0) - 1)
            await session.execute(delete(Goal).where(Goal.id == goal_id))
            await session.commit()
        logger.info("goal finished owner=%s goal_id=%s summary=%r", owner_id, goal_id, summary)
        return finished

    @staticmethod
    async def _decrement_goal_count(session, owner_id: str) -> None:
        user = (
            await session.execute(select(User).where(User.sender_id == owner_id))
        ).scalar_one_or_none()
        if user is not None:
            user.goal_count = max(0, (user.goal_count or 0) - 1)
