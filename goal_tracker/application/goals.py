"""
Goal use cases - business logic for savings goal operations over the local store
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from goal_tracker.domain.goal import (
    GOAL_FIELD_NAMES,
    MAX_PRIORITY,
    MIN_PRIORITY,
    Goal,
    GoalCategory,
    GoalMilestone,
)
from goal_tracker.infrastructure.storage.local_store import LocalGoalStore
from goal_tracker.utils.validation import ensure_aware

logger = logging.getLogger(__name__)


class GoalValidationError(ValueError):
    """Ошибка валидации цели"""
    pass


class GoalNotFoundError(GoalValidationError):
    """Цель не найдена в локальном хранилище"""
    pass


def _now(now: Optional[datetime]) -> datetime:
    return ensure_aware(now) if now is not None else datetime.now(timezone.utc)


def validate_goal(goal: Goal) -> None:
    """
    Проверить бизнес-правила цели перед сохранением

    Raises:
        GoalValidationError: при нарушении правил
    """
    if not goal.id.strip():
        raise GoalValidationError("id цели не может быть пустым")
    if not goal.title.strip():
        raise GoalValidationError("Название цели не может быть пустым")
    if goal.target_amount <= 0:
        raise GoalValidationError("Целевая сумма должна быть больше нуля")
    if not MIN_PRIORITY <= goal.priority <= MAX_PRIORITY:
        raise GoalValidationError(
            f"Приоритет должен быть от {MIN_PRIORITY} до {MAX_PRIORITY}, получено {goal.priority}"
        )
    if not re.fullmatch(r"[A-Z]{3}", goal.currency):
        raise GoalValidationError(
            f"Неверный код валюты: «{goal.currency}». Используйте 3 заглавные буквы (например NPR, USD, EUR)"
        )
    milestone_ids = [m.id for m in goal.milestones]
    if len(milestone_ids) != len(set(milestone_ids)):
        raise GoalValidationError("Дублирующийся id этапа")


class _GoalUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.store = LocalGoalStore(db)

    def _get_goal(self, goal_id: str) -> Goal:
        goal = self.store.get_goal_by_id(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Цель {goal_id} не найдена")
        return goal

    def _save(self, goal: Goal) -> Goal:
        validate_goal(goal)
        self.store.save_goal(goal)
        self.db.commit()
        return goal


class AddGoalUseCase(_GoalUseCase):
    """Use case: Добавить новую цель"""

    def execute(self, goal: Goal) -> Goal:
        """
        Args:
            goal: Полностью заполненная цель (id задаёт вызывающий код)

        Returns:
            Сохранённая цель

        Raises:
            GoalValidationError: цель невалидна или id уже занят
        """
        if self.store.get_goal_by_id(goal.id) is not None:
            raise GoalValidationError(f"Цель с id {goal.id} уже существует")

        self._save(goal)
        logger.info("Goal created: id=%s user_id=%s", goal.id, goal.user_id)
        return goal


class UpdateGoalUseCase(_GoalUseCase):
    """Use case: Обновить поля цели"""

    def execute(self, goal_id: str, now: Optional[datetime] = None, **changes: Any) -> Goal:
        unknown = set(changes) - set(GOAL_FIELD_NAMES)
        if unknown:
            raise GoalValidationError(f"Неизвестные поля цели: {', '.join(sorted(unknown))}")
        if "id" in changes and changes["id"] != goal_id:
            raise GoalValidationError("Нельзя изменить id цели")

        goal = self._get_goal(goal_id)
        changes.setdefault("updated_at", _now(now))
        try:
            updated = goal.copy_with(**changes)
        except ValueError as exc:
            raise GoalValidationError(f"Некорректное значение поля цели: {exc}") from exc
        self._save(updated)
        logger.info("Goal updated: id=%s fields=%s", goal_id, sorted(changes))
        return updated


class DeleteGoalUseCase(_GoalUseCase):
    """Use case: Удалить цель"""

    def execute(self, goal_id: str) -> bool:
        deleted = self.store.delete_goal(goal_id)
        self.db.commit()
        if deleted:
            logger.info("Goal deleted: id=%s", goal_id)
        return deleted


class BulkDeleteGoalsUseCase(_GoalUseCase):
    """Use case: Удалить несколько целей одной транзакцией"""

    def execute(self, goal_ids: Iterable[str]) -> int:
        count = self.store.delete_goals(goal_ids)
        self.db.commit()
        logger.info("Goals deleted: %d", count)
        return count


class UpdateGoalProgressUseCase(_GoalUseCase):
    """
    Use case: Установить накопленную сумму

    Цель считается выполненной, когда сумма достигла target_amount.
    """

    def execute(self, goal_id: str, amount: float, now: Optional[datetime] = None) -> Goal:
        goal = self._get_goal(goal_id)
        updated = goal.copy_with(
            current_amount=amount,
            is_completed=amount >= goal.target_amount,
            updated_at=_now(now),
        )
        self._save(updated)
        logger.info("Goal progress: id=%s amount=%s completed=%s", goal_id, amount, updated.is_completed)
        return updated


class AddGoalProgressUseCase(_GoalUseCase):
    """Use case: Добавить взнос к накопленной сумме"""

    def execute(self, goal_id: str, amount: float, now: Optional[datetime] = None) -> Goal:
        goal = self._get_goal(goal_id)
        return UpdateGoalProgressUseCase(self.db).execute(goal_id, goal.current_amount + amount, now=now)


class CompleteGoalUseCase(_GoalUseCase):
    """Use case: Отметить цель выполненной (сумма = target_amount)"""

    def execute(self, goal_id: str, now: Optional[datetime] = None) -> Goal:
        goal = self._get_goal(goal_id)
        updated = goal.copy_with(
            is_completed=True,
            current_amount=goal.target_amount,
            updated_at=_now(now),
        )
        self._save(updated)
        logger.info("Goal completed: id=%s", goal_id)
        return updated


class AddMilestoneUseCase(_GoalUseCase):
    """Use case: Добавить этап в конец списка"""

    def execute(self, goal_id: str, milestone: GoalMilestone, now: Optional[datetime] = None) -> Goal:
        goal = self._get_goal(goal_id)
        if not milestone.title.strip():
            raise GoalValidationError("Название этапа не может быть пустым")
        if any(m.id == milestone.id for m in goal.milestones):
            raise GoalValidationError(f"Этап {milestone.id} уже существует")

        updated = goal.copy_with(
            milestones=goal.milestones + (milestone,),
            updated_at=_now(now),
        )
        return self._save(updated)


class CompleteMilestoneUseCase(_GoalUseCase):
    """Use case: Отметить этап выполненным"""

    def execute(self, goal_id: str, milestone_id: str, now: Optional[datetime] = None) -> Goal:
        goal = self._get_goal(goal_id)
        if not any(m.id == milestone_id for m in goal.milestones):
            raise GoalValidationError(f"Этап {milestone_id} не найден в цели {goal_id}")

        now = _now(now)
        milestones = tuple(
            m.complete(now) if m.id == milestone_id else m
            for m in goal.milestones
        )
        updated = self._save(goal.copy_with(milestones=milestones, updated_at=now))
        logger.info("Milestone completed: goal_id=%s milestone_id=%s", goal_id, milestone_id)
        return updated


class SyncGoalRecordsUseCase(_GoalUseCase):
    """
    Use case: Записать в локальное хранилище цели, полученные от бэкенда

    Все записи декодируются и проверяются до первой записи в хранилище:
    одна битая или невалидная запись отменяет всю синхронизацию.
    """

    def execute(
        self,
        user_id: str,
        records: Iterable[Mapping[str, Any]],
        now: Optional[datetime] = None,
    ) -> List[Goal]:
        goals = [Goal.from_record(record) for record in records]
        foreign = [g.id for g in goals if g.user_id != user_id]
        if foreign:
            raise GoalValidationError(f"Цели другого пользователя: {', '.join(foreign)}")
        for goal in goals:
            validate_goal(goal)

        self.store.save_goals(goals)
        self.store.set_last_sync_time(_now(now))
        self.db.commit()
        logger.info("Synced %d goal(s) for user_id=%s", len(goals), user_id)
        return goals


@dataclass(frozen=True)
class GoalsProgressSummary:
    total_goals: int
    active_goals: int
    completed_goals: int
    overdue_goals: int
    on_track_goals: int
    total_target_amount: float
    total_current_amount: float
    average_progress: float

    @property
    def completion_rate(self) -> float:
        if self.total_goals <= 0:
            return 0.0
        return self.completed_goals / self.total_goals * 100

    @property
    def on_track_rate(self) -> float:
        if self.active_goals <= 0:
            return 0.0
        return self.on_track_goals / self.active_goals * 100

    @property
    def progress_rate(self) -> float:
        if self.total_target_amount <= 0:
            return 0.0
        return self.total_current_amount / self.total_target_amount * 100


class GoalQueries:
    """
    Read-side запросы по целям пользователя из локального хранилища
    """

    def __init__(self, db: Session):
        self.store = LocalGoalStore(db)

    def list_goals(self, user_id: str) -> List[Goal]:
        """Все цели: сначала высокий приоритет, затем более старые"""
        goals = self.store.get_goals_by_user_id(user_id)
        return sorted(goals, key=lambda g: (-g.priority, g.created_at))

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self.store.get_goal_by_id(goal_id)

    def active_goals(self, user_id: str) -> List[Goal]:
        goals = [g for g in self.store.get_goals_by_user_id(user_id) if g.is_active and not g.is_completed]
        return sorted(goals, key=lambda g: (-g.priority, g.target_date))

    def completed_goals(self, user_id: str) -> List[Goal]:
        goals = [g for g in self.store.get_goals_by_user_id(user_id) if g.is_completed]
        return sorted(goals, key=lambda g: g.updated_at, reverse=True)

    def goals_by_category(self, user_id: str, category: GoalCategory) -> List[Goal]:
        return [g for g in self.list_goals(user_id) if g.category == category]

    def overdue_goals(self, user_id: str, now: Optional[datetime] = None) -> List[Goal]:
        now = _now(now)
        return [g for g in self.active_goals(user_id) if g.is_overdue(now)]

    def search_goals(self, user_id: str, query: str) -> List[Goal]:
        needle = query.lower()
        return [
            g for g in self.list_goals(user_id)
            if needle in g.title.lower() or needle in g.description.lower()
        ]

    def progress_summary(self, user_id: str, now: Optional[datetime] = None) -> GoalsProgressSummary:
        """
        Сводка прогресса; суммы и средний прогресс считаются по активным целям
        """
        now = _now(now)
        goals = self.list_goals(user_id)
        active = [g for g in goals if g.is_active and not g.is_completed]

        average = sum(g.progress_percentage for g in active) / len(active) if active else 0.0

        return GoalsProgressSummary(
            total_goals=len(goals),
            active_goals=len(active),
            completed_goals=sum(1 for g in goals if g.is_completed),
            overdue_goals=sum(1 for g in goals if g.is_overdue(now)),
            on_track_goals=sum(1 for g in active if g.is_on_track(now)),
            total_target_amount=sum(g.target_amount for g in active),
            total_current_amount=sum(g.current_amount for g in active),
            average_progress=average,
        )

    def recommended_monthly_savings(self, user_id: str, now: Optional[datetime] = None) -> float:
        now = _now(now)
        return sum(g.required_monthly_savings(now) for g in self.active_goals(user_id))
