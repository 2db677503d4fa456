"""
Local Goal Store - embedded key-value store for goals

Each goal is stored under its id as a tagged binary record (GoalRecordAdapter).
The store does not commit; the calling use case owns the transaction.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from goal_tracker.domain.goal import Goal
from goal_tracker.infrastructure.db.models import GoalBoxEntry, LocalSetting
from goal_tracker.infrastructure.storage.record_adapter import GoalRecordAdapter, StoredRecordError
from goal_tracker.utils.validation import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

LAST_SYNC_TIME_KEY = "last_sync_time"


class LocalGoalStore:
    """
    Repository для локального хранилища целей

    Уникальность goal.id обеспечивается ключом goal_box.key:
    повторное сохранение перезаписывает запись.
    """

    def __init__(self, db: Session, adapter: Optional[GoalRecordAdapter] = None):
        self.db = db
        self.adapter = adapter or GoalRecordAdapter()

    def save_goal(self, goal: Goal) -> None:
        """
        Сохранить цель (insert или overwrite по id)

        Args:
            goal: Цель для сохранения
        """
        payload = self.adapter.encode(goal)
        entry = self.db.get(GoalBoxEntry, goal.id)
        if entry is None:
            self.db.add(GoalBoxEntry(key=goal.id, user_id=goal.user_id, payload=payload))
        else:
            entry.user_id = goal.user_id
            entry.payload = payload
        self.db.flush()

    def save_goals(self, goals: Iterable[Goal]) -> int:
        """Сохранить несколько целей, вернуть их количество"""
        count = 0
        for goal in goals:
            self.save_goal(goal)
            count += 1
        return count

    def get_goal_by_id(self, goal_id: str) -> Optional[Goal]:
        """
        Получить цель по id

        Returns:
            Goal или None если не найдена

        Raises:
            StoredRecordError: если запись повреждена
        """
        entry = self.db.get(GoalBoxEntry, goal_id)
        if entry is None:
            return None
        return self.adapter.decode(entry.payload)

    def get_all_goals(self) -> List[Goal]:
        entries = self.db.query(GoalBoxEntry).order_by(GoalBoxEntry.key.asc()).all()
        return self._decode_entries(entries)

    def get_goals_by_user_id(self, user_id: str) -> List[Goal]:
        entries = (
            self.db.query(GoalBoxEntry)
            .filter(GoalBoxEntry.user_id == user_id)
            .order_by(GoalBoxEntry.key.asc())
            .all()
        )
        return self._decode_entries(entries)

    def delete_goal(self, goal_id: str) -> bool:
        """
        Удалить цель

        Returns:
            True если запись существовала
        """
        entry = self.db.get(GoalBoxEntry, goal_id)
        if entry is None:
            return False
        self.db.delete(entry)
        self.db.flush()
        return True

    def delete_goals(self, goal_ids: Iterable[str]) -> int:
        return sum(1 for goal_id in goal_ids if self.delete_goal(goal_id))

    def clear_goals(self) -> int:
        count = self.db.query(GoalBoxEntry).delete()
        self.db.flush()
        return count

    def count_goals(self, user_id: Optional[str] = None) -> int:
        query = self.db.query(GoalBoxEntry)
        if user_id is not None:
            query = query.filter(GoalBoxEntry.user_id == user_id)
        return query.count()

    def set_last_sync_time(self, synced_at: datetime) -> None:
        setting = self.db.get(LocalSetting, LAST_SYNC_TIME_KEY)
        value = format_timestamp(synced_at)
        if setting is None:
            self.db.add(LocalSetting(key=LAST_SYNC_TIME_KEY, value=value))
        else:
            setting.value = value
        self.db.flush()

    def get_last_sync_time(self) -> Optional[datetime]:
        setting = self.db.get(LocalSetting, LAST_SYNC_TIME_KEY)
        if setting is None or not setting.value:
            return None
        return parse_timestamp(setting.value)

    def _decode_entries(self, entries: List[GoalBoxEntry]) -> List[Goal]:
        goals = []
        for entry in entries:
            try:
                goals.append(self.adapter.decode(entry.payload))
            except StoredRecordError as exc:
                logger.warning("Skipping corrupted goal record key=%s: %s", entry.key, exc)
        return goals
