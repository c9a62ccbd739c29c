"""
Streak engine: decides whether an event extends, holds or resets a goal's streak
and persists the result under a per-goal lock with a versioned write.

- PROGRESS adds 1 to the provisional streak, bumps total and moves the goal's clock.
- VIEW adds nothing; it writes only when the decision is RESET, so a goal list shows
  decayed streaks without crediting activity. Repeating a VIEW with the same clock is a no-op.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from goalt.core.config import get_settings
from goalt.core.errors import NotFoundError, StaleWriteError
from goalt.core.locks import KeyedLock, get_locks
from goalt.domains.goal.models import Goal
from goalt.domains.goal.repository import GoalRepository
from goalt.infrastructure.streak.constants import (
    MAX_WRITE_ATTEMPTS,
    NEXT_DAY_DELTAS,
    STREAK_WINDOW_SECONDS,
)

logger = logging.getLogger(__name__)


class StreakEvent(str, enum.Enum):
    VIEW = "view"
    PROGRESS = "progress"

    @property
    def increment(self) -> int:
        return 1 if self is StreakEvent.PROGRESS else 0


class StreakDecision(str, enum.Enum):
    EXTEND = "extend"
    HOLD = "hold"
    RESET = "reset"


@dataclass(frozen=True)
class Instant:
    """A point in time as the engine sees it: epoch seconds plus local day of week (0=Mon)."""

    timestamp: float
    day_of_week: int

    @classmethod
    def from_datetime(cls, when: datetime) -> "Instant":
        return cls(timestamp=when.timestamp(), day_of_week=when.weekday())


def local_now() -> datetime:
    return datetime.now(ZoneInfo(get_settings().timezone))


@dataclass(frozen=True)
class StreakOutcome:
    decision: StreakDecision
    previous_streak: int
    streak: int
    total: int
    last_update_ts: float
    last_update_day: int
    changed: bool

    def values(self) -> dict[str, Any]:
        return {
            "streak": self.streak,
            "total": self.total,
            "last_update_ts": self.last_update_ts,
            "last_update_day": self.last_update_day,
        }


def decide(day_delta: int, elapsed_seconds: float) -> StreakDecision:
    """
    next weekday within 48h -> EXTEND, same weekday -> HOLD (however long ago), anything else -> RESET.
    """
    if day_delta in NEXT_DAY_DELTAS and elapsed_seconds < STREAK_WINDOW_SECONDS:
        return StreakDecision.EXTEND
    if day_delta == 0:
        return StreakDecision.HOLD
    return StreakDecision.RESET


def compute(
    streak: int,
    total: int,
    last_update_ts: float,
    last_update_day: int,
    event: StreakEvent,
    now: Instant,
) -> StreakOutcome:
    """Pure streak transition for one goal. Never returns negative counters."""
    streak = max(0, streak or 0)
    total = max(0, total or 0)
    increment = event.increment
    day_delta = now.day_of_week - last_update_day
    elapsed = now.timestamp - last_update_ts
    decision = decide(day_delta, elapsed)

    if decision is StreakDecision.EXTEND:
        new_streak = streak + increment
    elif decision is StreakDecision.HOLD:
        new_streak = max(increment, streak)
    else:
        new_streak = increment

    if event is StreakEvent.PROGRESS:
        return StreakOutcome(
            decision=decision,
            previous_streak=streak,
            streak=new_streak,
            total=total + increment,
            last_update_ts=now.timestamp,
            last_update_day=now.day_of_week,
            changed=True,
        )
    # views only ever surface a reset
    visible = new_streak if decision is StreakDecision.RESET else streak
    return StreakOutcome(
        decision=decision,
        previous_streak=streak,
        streak=visible,
        total=total,
        last_update_ts=last_update_ts,
        last_update_day=last_update_day,
        changed=visible != streak,
    )


@dataclass
class AppliedStreak:
    goal_id: int
    name: str
    outcome: StreakOutcome

    @property
    def streak(self) -> int:
        return self.outcome.streak

    @property
    def total(self) -> int:
        return self.outcome.total


class StreakEngine:
    def __init__(self, locks: Optional[KeyedLock] = None):
        self._locks = locks or get_locks()

    async def apply(
        self,
        owner_id: str,
        goal_id: int,
        event: StreakEvent,
        now: Optional[datetime] = None,
        log_entry: Optional[dict[str, Any]] = None,
    ) -> AppliedStreak:
        """
        Load, compute and persist one goal's streak. A log_entry (PROGRESS only) is
        prepended to the goal log in the same write. Raises NotFoundError if the goal
        is gone or belongs to someone else.
        """
        instant = Instant.from_datetime(now or local_now())
        async with self._locks.hold("goal", goal_id):
            for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
                goal = await GoalRepository.get_owned(owner_id, goal_id)
                outcome = compute(
                    goal.streak, goal.total, goal.last_update_ts, goal.last_update_day, event, instant
                )
                values = outcome.values() if outcome.changed else {}
                if log_entry is not None and event is StreakEvent.PROGRESS:
                    values["log"] = [log_entry] + list(goal.log or [])
                if not values:
                    return AppliedStreak(goal_id=goal.id, name=goal.name, outcome=outcome)
                try:
                    await GoalRepository.save_progress(goal.id, goal.version, values)
                except StaleWriteError:
                    # another process wrote between our read and write
                    logger.warning(
                        "stale streak write goal_id=%s attempt=%s/%s", goal_id, attempt, MAX_WRITE_ATTEMPTS
                    )
                    continue
                logger.info(
                    "streak %s goal_id=%s event=%s previous=%s new=%s total=%s",
                    outcome.decision.value, goal_id, event.value,
                    outcome.previous_streak, outcome.streak, outcome.total,
                )
                return AppliedStreak(goal_id=goal.id, name=goal.name, outcome=outcome)
        raise StaleWriteError(f"goal {goal_id} kept changing, gave up after {MAX_WRITE_ATTEMPTS} attempts")

    async def refresh_all(self, owner_id: str, now: Optional[datetime] = None) -> list[Goal]:
        """
        Apply VIEW to every live goal of the owner and return the goals as stored afterwards.
        Goals deleted while refreshing are skipped.
        """
        now = now or local_now()
        for goal in await GoalRepository.list_for_owner(owner_id):
            try:
                await self.apply(owner_id, goal.id, StreakEvent.VIEW, now)
            except NotFoundError:
                logger.info("goal_id=%s vanished during refresh owner=%s", goal.id, owner_id)
        return await GoalRepository.list_for_owner(owner_id)
