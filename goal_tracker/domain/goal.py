"""
Goal domain entity - savings/debt/investment goal with milestones

Goal is an immutable value. Changes are made with copy_with(), which returns
a new Goal. Derived metrics take an explicit reference instant (`now`) and
fall back to the real UTC clock only when it is omitted.
"""
import copy
import math
import types
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from goal_tracker.utils.validation import (
    JsonValue,
    MalformedRecord,
    ensure_aware,
    format_timestamp,
    optional_bool,
    optional_int,
    optional_json_object,
    optional_number,
    optional_str,
    optional_timestamp,
    require_number,
    require_str,
    require_timestamp,
)

DEFAULT_CURRENCY = "NPR"
DEFAULT_PRIORITY = 3
MIN_PRIORITY = 1
MAX_PRIORITY = 5

# Average month length used for required monthly savings
DAYS_PER_MONTH = 30.44
# Goal is "on track" at 90% of the expected linear progress
ON_TRACK_TOLERANCE = 0.9

_ONE_DAY = timedelta(days=1)


class GoalCategory(str, Enum):
    EMERGENCY = "emergency"
    TRAVEL = "travel"
    HOUSE = "house"
    CAR = "car"
    EDUCATION = "education"
    INVESTMENT = "investment"
    RETIREMENT = "retirement"
    WEDDING = "wedding"
    HEALTH = "health"
    BUSINESS = "business"
    GADGETS = "gadgets"
    VACATION = "vacation"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Any) -> "GoalCategory":
        """Неизвестная или отсутствующая категория -> OTHER"""
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class GoalType(str, Enum):
    SAVINGS = "savings"
    DEBT_PAYOFF = "debtPayoff"
    INVESTMENT = "investment"
    PURCHASE = "purchase"
    EMERGENCY = "emergency"

    @classmethod
    def from_value(cls, value: Any) -> "GoalType":
        """Неизвестный или отсутствующий тип -> SAVINGS"""
        try:
            return cls(value)
        except ValueError:
            return cls.SAVINGS


def _resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return ensure_aware(now)


def whole_days(delta: timedelta) -> int:
    """Целое число суток в интервале, с отбрасыванием дробной части к нулю"""
    return int(delta / _ONE_DAY)


@dataclass(frozen=True)
class GoalMilestone:
    """
    Milestone - промежуточная цель внутри Goal

    Имеет собственные сумму, срок и статус выполнения.
    """
    id: str
    title: str
    description: str
    target_amount: float
    target_date: datetime
    created_at: datetime
    is_completed: bool = False
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "target_date", ensure_aware(self.target_date))
        object.__setattr__(self, "created_at", ensure_aware(self.created_at))
        if self.completed_at is not None:
            object.__setattr__(self, "completed_at", ensure_aware(self.completed_at))

    def copy_with(self, **changes: Any) -> "GoalMilestone":
        """Вернуть копию с изменёнными полями (исходный объект не меняется)"""
        return replace(self, **changes)

    def complete(self, now: Optional[datetime] = None) -> "GoalMilestone":
        return self.copy_with(is_completed=True, completed_at=_resolve_now(now))

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "targetAmount": self.target_amount,
            "targetDate": format_timestamp(self.target_date),
            "isCompleted": self.is_completed,
            "completedAt": format_timestamp(self.completed_at) if self.completed_at else None,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any], prefix: str = "") -> "GoalMilestone":
        """
        Восстановить milestone из JSON-записи

        Raises:
            MalformedRecord: обязательное поле отсутствует или неверного типа
        """
        if not isinstance(record, Mapping):
            raise MalformedRecord(prefix or "milestone", "ожидался объект")
        return cls(
            id=require_str(record, "id", prefix),
            title=require_str(record, "title", prefix),
            description=require_str(record, "description", prefix),
            target_amount=require_number(record, "targetAmount", prefix),
            target_date=require_timestamp(record, "targetDate", prefix),
            created_at=require_timestamp(record, "createdAt", prefix),
            is_completed=optional_bool(record, "isCompleted", False),
            completed_at=optional_timestamp(record, "completedAt"),
        )


@dataclass(frozen=True)
class Goal:
    """
    Goal domain entity

    Хранимое значение current_amount не ограничивается (может быть
    отрицательным или больше target_amount), а производные метрики
    всегда возвращают ограниченные значения.

    Уникальность id в рамках коллекции пользователя обеспечивает хранилище.
    """
    id: str
    user_id: str
    title: str
    description: str
    target_amount: float
    start_date: datetime
    target_date: datetime
    category: GoalCategory
    goal_type: GoalType
    created_at: datetime
    updated_at: datetime
    current_amount: float = 0.0
    is_completed: bool = False
    is_active: bool = True
    image_url: Optional[str] = None
    # read-only view over a private deep copy
    metadata: Optional[Mapping[str, JsonValue]] = field(default=None, hash=False)
    milestones: Tuple[GoalMilestone, ...] = field(default_factory=tuple)
    monthly_contribution: Optional[float] = None
    currency: str = DEFAULT_CURRENCY
    priority: int = DEFAULT_PRIORITY  # 1-5, 5 = highest

    def __post_init__(self):
        for name in ("start_date", "target_date", "created_at", "updated_at"):
            object.__setattr__(self, name, ensure_aware(getattr(self, name)))
        object.__setattr__(self, "milestones", tuple(self.milestones))
        # ValueError on a value outside the enum
        object.__setattr__(self, "category", GoalCategory(self.category))
        object.__setattr__(self, "goal_type", GoalType(self.goal_type))
        if self.metadata is not None:
            object.__setattr__(self, "metadata", types.MappingProxyType(copy.deepcopy(dict(self.metadata))))

    # ------------------------------------------------------------------
    # Derived metrics
    # ------------------------------------------------------------------

    @property
    def progress_percentage(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return min(max(self.current_amount / self.target_amount * 100, 0.0), 100.0)

    @property
    def remaining_amount(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return min(max(self.target_amount - self.current_amount, 0.0), self.target_amount)

    @property
    def clamped_current_amount(self) -> float:
        """Накопленная сумма для отображения, в пределах [0, target_amount]"""
        if self.target_amount <= 0:
            return 0.0
        return min(max(self.current_amount, 0.0), self.target_amount)

    @property
    def total_days(self) -> int:
        # Zero or negative when target_date is not after start_date
        return whole_days(self.target_date - self.start_date)

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        now = _resolve_now(now)
        if now > self.target_date:
            return 0
        return whole_days(self.target_date - now)

    def elapsed_days(self, now: Optional[datetime] = None) -> int:
        return whole_days(_resolve_now(now) - self.start_date)

    def expected_progress(self, now: Optional[datetime] = None) -> float:
        """
        Ожидаемый процент прогресса при линейном накоплении

        Если total_days <= 0 (срок не позже старта), период считается
        полностью прошедшим: 100.0.
        """
        total = self.total_days
        if total <= 0:
            return 100.0
        return self.elapsed_days(now) / total * 100

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        return _resolve_now(now) > self.target_date and not self.is_completed

    def is_on_track(self, now: Optional[datetime] = None) -> bool:
        return self.progress_percentage >= self.expected_progress(now) * ON_TRACK_TOLERANCE

    def required_monthly_savings(self, now: Optional[datetime] = None) -> float:
        """
        Сколько нужно откладывать в месяц, чтобы успеть к target_date

        Если срок наступил (месяцев <= 0), вся оставшаяся сумма нужна сразу.
        """
        days_until_target = whole_days(self.target_date - _resolve_now(now))
        remaining_months = math.ceil(days_until_target / DAYS_PER_MONTH)
        if remaining_months <= 0:
            return self.remaining_amount
        return self.remaining_amount / remaining_months

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def copy_with(self, **changes: Any) -> "Goal":
        """
        Вернуть новую цель с изменёнными полями

        Не указанные поля сохраняют значения. Milestones заменяются только
        целиком. Неизвестное имя поля -> TypeError.
        """
        return replace(self, **changes)

    # ------------------------------------------------------------------
    # JSON records
    # ------------------------------------------------------------------

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "targetAmount": self.target_amount,
            "currentAmount": self.current_amount,
            "startDate": format_timestamp(self.start_date),
            "targetDate": format_timestamp(self.target_date),
            "category": self.category.value,
            "type": self.goal_type.value,
            "isCompleted": self.is_completed,
            "isActive": self.is_active,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "imageUrl": self.image_url,
            "metadata": copy.deepcopy(dict(self.metadata)) if self.metadata is not None else None,
            "milestones": [m.to_record() for m in self.milestones],
            "monthlyContribution": self.monthly_contribution,
            "currency": self.currency,
            "priority": self.priority,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Goal":
        """
        Восстановить цель из JSON-записи (ответ бэкенда или локальное хранилище)

        Необязательные поля получают значения по умолчанию, неизвестные
        category/type заменяются на OTHER/SAVINGS.

        Raises:
            MalformedRecord: обязательное поле отсутствует или неверного типа
        """
        if not isinstance(record, Mapping):
            raise MalformedRecord("goal", "ожидался объект")

        raw_milestones = record.get("milestones")
        milestones: Tuple[GoalMilestone, ...] = ()
        if isinstance(raw_milestones, list):
            milestones = tuple(
                GoalMilestone.from_record(item, prefix=f"milestones[{i}]")
                for i, item in enumerate(raw_milestones)
            )

        return cls(
            id=require_str(record, "id"),
            user_id=require_str(record, "userId"),
            title=require_str(record, "title"),
            description=require_str(record, "description"),
            target_amount=require_number(record, "targetAmount"),
            current_amount=optional_number(record, "currentAmount", 0.0),
            start_date=require_timestamp(record, "startDate"),
            target_date=require_timestamp(record, "targetDate"),
            category=GoalCategory.from_value(record.get("category")),
            goal_type=GoalType.from_value(record.get("type")),
            is_completed=optional_bool(record, "isCompleted", False),
            is_active=optional_bool(record, "isActive", True),
            created_at=require_timestamp(record, "createdAt"),
            updated_at=require_timestamp(record, "updatedAt"),
            image_url=optional_str(record, "imageUrl"),
            metadata=optional_json_object(record, "metadata"),
            milestones=milestones,
            monthly_contribution=optional_number(record, "monthlyContribution"),
            currency=optional_str(record, "currency", DEFAULT_CURRENCY),
            priority=optional_int(record, "priority", DEFAULT_PRIORITY),
        )


GOAL_FIELD_NAMES = tuple(f.name for f in fields(Goal))
