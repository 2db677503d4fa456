"""
GoalRecordAdapter - tagged binary records for the local goal store

Envelope layout (UTF-8 JSON):

    {"typeId": 4, "fields": {"0": "goal-1", "1": "user-1", ...}}

Field keys are the stable tags from field_tags, enum values are stored as
variant tags, milestones as nested envelopes with typeId 5.
"""
import json
from typing import Any, Dict, Mapping

from goal_tracker.domain.goal import (
    DEFAULT_CURRENCY,
    DEFAULT_PRIORITY,
    Goal,
    GoalCategory,
    GoalMilestone,
    GoalType,
)
from goal_tracker.infrastructure.storage.field_tags import (
    GOAL_CATEGORY_TAGS,
    GOAL_FIELD_TAGS,
    GOAL_REQUIRED_TAGS,
    GOAL_TYPE_ID,
    GOAL_TYPE_TAGS,
    MILESTONE_FIELD_TAGS,
    MILESTONE_REQUIRED_TAGS,
    MILESTONE_TYPE_ID,
    enum_tag,
)
from goal_tracker.utils.validation import (
    MalformedRecord,
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


class StoredRecordError(MalformedRecord):
    """Сохранённая запись повреждена или не соответствует таблице тегов"""
    pass


def _envelope(type_id: int, tags: Dict[int, str], values: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "typeId": type_id,
        "fields": {str(tag): values[attr] for tag, attr in tags.items()},
    }


def _open_envelope(
    envelope: Any,
    type_id: int,
    tags: Dict[int, str],
    required: frozenset,
    prefix: str,
) -> Dict[str, Any]:
    """
    Распаковать конверт в словарь {имя_атрибута: значение}

    Неизвестные теги игнорируются (запись от более новой версии схемы).
    """
    if not isinstance(envelope, Mapping):
        raise StoredRecordError(prefix, "ожидался объект-конверт")
    if envelope.get("typeId") != type_id:
        raise StoredRecordError(prefix, f"неверный typeId: {envelope.get('typeId')!r}, ожидался {type_id}")
    raw_fields = envelope.get("fields")
    if not isinstance(raw_fields, Mapping):
        raise StoredRecordError(prefix, "поле fields отсутствует")

    values: Dict[str, Any] = {}
    for key, value in raw_fields.items():
        try:
            tag = int(key)
        except (TypeError, ValueError):
            continue
        attr = tags.get(tag)
        if attr is not None:
            values[attr] = value

    for tag in sorted(required):
        if values.get(tags[tag]) is None:
            raise StoredRecordError(f"{prefix}.{tag}", f"обязательный тег {tags[tag]} отсутствует")
    return values


def _variant(tags: Dict[int, Any], value: Any, default):
    # Unknown or non-integer variant tag -> fallback variant
    if isinstance(value, int) and not isinstance(value, bool):
        return tags.get(value, default)
    return default


class GoalRecordAdapter:
    """
    Persistence adapter: Goal <-> bytes

    Сущность Goal ничего не знает о хранилище; вся схема тегов живёт здесь.
    """

    def encode(self, goal: Goal) -> bytes:
        return json.dumps(self.to_envelope(goal), ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    def decode(self, payload: bytes) -> Goal:
        """
        Raises:
            StoredRecordError: байты не декодируются или запись неполная
        """
        try:
            envelope = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoredRecordError("payload", f"не удалось декодировать запись: {exc}") from exc
        return self.from_envelope(envelope)

    def to_envelope(self, goal: Goal) -> Dict[str, Any]:
        values = {
            "id": goal.id,
            "user_id": goal.user_id,
            "title": goal.title,
            "description": goal.description,
            "target_amount": goal.target_amount,
            "current_amount": goal.current_amount,
            "start_date": format_timestamp(goal.start_date),
            "target_date": format_timestamp(goal.target_date),
            "category": enum_tag(GOAL_CATEGORY_TAGS, goal.category),
            "goal_type": enum_tag(GOAL_TYPE_TAGS, goal.goal_type),
            "is_completed": goal.is_completed,
            "is_active": goal.is_active,
            "created_at": format_timestamp(goal.created_at),
            "updated_at": format_timestamp(goal.updated_at),
            "image_url": goal.image_url,
            "metadata": dict(goal.metadata) if goal.metadata is not None else None,
            "milestones": [self._milestone_envelope(m) for m in goal.milestones],
            "monthly_contribution": goal.monthly_contribution,
            "currency": goal.currency,
            "priority": goal.priority,
        }
        return _envelope(GOAL_TYPE_ID, GOAL_FIELD_TAGS, values)

    def from_envelope(self, envelope: Any) -> Goal:
        try:
            values = _open_envelope(envelope, GOAL_TYPE_ID, GOAL_FIELD_TAGS, GOAL_REQUIRED_TAGS, "goal")
            raw_milestones = values.get("milestones")
            milestones = ()
            if isinstance(raw_milestones, list):
                milestones = tuple(
                    self._milestone_from_envelope(item, f"goal.milestones[{i}]")
                    for i, item in enumerate(raw_milestones)
                )

            return Goal(
                id=require_str(values, "id", "goal"),
                user_id=require_str(values, "user_id", "goal"),
                title=require_str(values, "title", "goal"),
                description=require_str(values, "description", "goal"),
                target_amount=require_number(values, "target_amount", "goal"),
                current_amount=optional_number(values, "current_amount", 0.0),
                start_date=require_timestamp(values, "start_date", "goal"),
                target_date=require_timestamp(values, "target_date", "goal"),
                category=_variant(GOAL_CATEGORY_TAGS, values.get("category"), GoalCategory.OTHER),
                goal_type=_variant(GOAL_TYPE_TAGS, values.get("goal_type"), GoalType.SAVINGS),
                is_completed=optional_bool(values, "is_completed", False),
                is_active=optional_bool(values, "is_active", True),
                created_at=require_timestamp(values, "created_at", "goal"),
                updated_at=require_timestamp(values, "updated_at", "goal"),
                image_url=optional_str(values, "image_url"),
                metadata=optional_json_object(values, "metadata"),
                milestones=milestones,
                monthly_contribution=optional_number(values, "monthly_contribution"),
                currency=optional_str(values, "currency", DEFAULT_CURRENCY),
                priority=optional_int(values, "priority", DEFAULT_PRIORITY),
            )
        except StoredRecordError:
            raise
        except MalformedRecord as exc:
            raise StoredRecordError(exc.field, exc.reason) from exc

    def _milestone_envelope(self, milestone: GoalMilestone) -> Dict[str, Any]:
        values = {
            "id": milestone.id,
            "title": milestone.title,
            "description": milestone.description,
            "target_amount": milestone.target_amount,
            "target_date": format_timestamp(milestone.target_date),
            "is_completed": milestone.is_completed,
            "completed_at": format_timestamp(milestone.completed_at) if milestone.completed_at else None,
            "created_at": format_timestamp(milestone.created_at),
        }
        return _envelope(MILESTONE_TYPE_ID, MILESTONE_FIELD_TAGS, values)

    def _milestone_from_envelope(self, envelope: Any, prefix: str) -> GoalMilestone:
        values = _open_envelope(envelope, MILESTONE_TYPE_ID, MILESTONE_FIELD_TAGS, MILESTONE_REQUIRED_TAGS, prefix)
        return GoalMilestone(
            id=require_str(values, "id", prefix),
            title=require_str(values, "title", prefix),
            description=require_str(values, "description", prefix),
            target_amount=require_number(values, "target_amount", prefix),
            target_date=require_timestamp(values, "target_date", prefix),
            created_at=require_timestamp(values, "created_at", prefix),
            is_completed=optional_bool(values, "is_completed", False),
            completed_at=optional_timestamp(values, "completed_at"),
        )
