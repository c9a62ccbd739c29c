import pytest

from goalt.core.errors import NotFoundError, ValidationError
from goalt.domains.goal.constants import MAX_GOALS_PER_USER
from goalt.domains.goal.repository import GoalRepository
from goalt.domains.goal.rules import (
    GOAL_LIMIT_MESSAGE,
    LOG_TOO_LONG_MESSAGE,
    NAME_TAKEN_MESSAGE,
    NAME_TOO_LONG_MESSAGE,
    normalize_goal_name,
    validate_log_text,
)
from goalt.domains.user.modes import IDLE, NAMING_GOAL, LoggingProgress, from_columns, to_columns
from goalt.domains.user.repository import UserRepository

TS = 1_790_000_000.0


class TestRules:
    def test_normalize_goal_name(self):
        assert normalize_goal_name("run") == "Run"
        assert normalize_goal_name("  RUN every Day ") == "Run every day"
        assert normalize_goal_name("") == ""

    def test_log_text_length(self):
        assert validate_log_text("x" * 96) == "x" * 96
        with pytest.raises(ValidationError) as exc:
            validate_log_text("x" * 97)
        assert exc.value.user_message == LOG_TOO_LONG_MESSAGE


class TestModes:
    def test_columns(self):
        assert to_columns(IDLE) == ("idle", None)
        assert to_columns(LoggingProgress(8)) == ("logging_progress", 8)
        assert from_columns("naming_goal", None) == NAMING_GOAL
        assert from_columns("logging_progress", 8) == LoggingProgress(8)

    def test_half_written_mode_falls_back_to_idle(self):
        assert from_columns("logging_progress", None) == IDLE
        assert from_columns("null", None) == IDLE


@pytest.mark.usefixtures("database")
class TestUserRepository:
    async def test_get_or_create_is_lazy_and_single(self):
        user, created = await UserRepository.get_or_create("s1")
        again, created_again = await UserRepository.get_or_create("s1")
        assert created is True
        assert created_again is False
        assert again.id == user.id
        assert user.conversation_mode == IDLE
        assert user.goal_count == 0
        assert user.finished_goals == []

    async def test_set_mode_on_unknown_user(self):
        with pytest.raises(NotFoundError):
            await UserRepository.set_mode("ghost", NAMING_GOAL)


@pytest.mark.usefixtures("database")
class TestGoalLifecycle:
    async def test_create_increments_goal_count(self):
        await UserRepository.get_or_create("s1")
        goal = await GoalRepository.create("s1", "run", TS, 0)
        user = await UserRepository.get("s1")
        assert goal.name == "Run"
        assert goal.streak == 0
        assert goal.total == 0
        assert user.goal_count == 1

    async def test_duplicate_name_is_case_insensitive(self):
        await UserRepository.get_or_create("s1")
        await GoalRepository.create("s1", "run", TS, 0)
        with pytest.raises(ValidationError) as exc:
            await GoalRepository.create("s1", "Run", TS, 0)
        assert exc.value.user_message == NAME_TAKEN_MESSAGE
        assert (await UserRepository.get("s1")).goal_count == 1
        assert len(await GoalRepository.list_for_owner("s1")) == 1

    async def test_same_name_for_different_owners(self):
        await UserRepository.get_or_create("s1")
        await UserRepository.get_or_create("s2")
        await GoalRepository.create("s1", "run", TS, 0)
        await GoalRepository.create("s2", "run", TS, 0)
        assert len(await GoalRepository.list_for_owner("s2")) == 1

    async def test_name_too_long(self):
        await UserRepository.get_or_create("s1")
        with pytest.raises(ValidationError) as exc:
            await GoalRepository.create("s1", "a" * 101, TS, 0)
        assert exc.value.user_message == NAME_TOO_LONG_MESSAGE
        await GoalRepository.create("s1", "a" * 100, TS, 0)

    async def test_sixth_goal_rejected_without_mutation(self):
        await UserRepository.get_or_create("s1")
        for i in range(MAX_GOALS_PER_USER):
            await GoalRepository.create("s1", f"goal {i}", TS, 0)
        with pytest.raises(ValidationError) as exc:
            await GoalRepository.create("s1", "one too many", TS, 0)
        assert exc.value.user_message == GOAL_LIMIT_MESSAGE
        assert (await UserRepository.get("s1")).goal_count == MAX_GOALS_PER_USER
        assert len(await GoalRepository.list_for_owner("s1")) == MAX_GOALS_PER_USER

    async def test_finish_moves_summary_to_owner(self):
        await UserRepository.get_or_create("s1")
        first = await GoalRepository.create("s1", "read", TS, 0)
        goal = await GoalRepository.create("s1", "run", TS, 0)
        await GoalRepository.save_progress(goal.id, goal.version, {"total": 4, "streak": 2})
        await GoalRepository.finish("s1", first.id)
        finished = await GoalRepository.finish("s1", goal.id)
        user = await UserRepository.get("s1")
        assert finished.summary == "Run 🔥4"
        assert user.finished_goals == ["Run 🔥4", "Read 🔥0"]
        assert user.goal_count == 0
        assert await GoalRepository.list_for_owner("s1") == []

    async def test_delete_twice_is_not_found(self):
        await UserRepository.get_or_create("s1")
        goal = await GoalRepository.create("s1", "run", TS, 0)
        assert await GoalRepository.delete("s1", goal.id) == "Run"
        with pytest.raises(NotFoundError):
            await GoalRepository.delete("s1", goal.id)
        assert (await UserRepository.get("s1")).goal_count == 0

    async def test_cannot_delete_someone_elses_goal(self):
        await UserRepository.get_or_create("s1")
        await UserRepository.get_or_create("s2")
        goal = await GoalRepository.create("s1", "run", TS, 0)
        with pytest.raises(NotFoundError):
            await GoalRepository.delete("s2", goal.id)
        assert await GoalRepository.get(goal.id) is not None
