"""
Импортировать цели пользователя из JSON-файла (ответ бэкенда) в локальное хранилище

Usage:
    python import_goals.py <user_id> <goals.json>
"""
import json
import logging
import sys

from goal_tracker.application.goals import GoalQueries, SyncGoalRecordsUseCase
from goal_tracker.config import configure_logging
from goal_tracker.infrastructure.db.session import create_tables, get_db

logger = logging.getLogger("import_goals")


def main(argv: list[str]) -> int:
    if len(argv) != 3:
        print(__doc__)
        return 2

    configure_logging()
    user_id, path = argv[1], argv[2]

    with open(path, encoding="utf-8") as f:
        records = json.load(f)

    create_tables()
    db = next(get_db())
    try:
        goals = SyncGoalRecordsUseCase(db).execute(user_id, records)
        print(f"✓ Импортировано целей: {len(goals)}")

        summary = GoalQueries(db).progress_summary(user_id)
        print(f"  активных: {summary.active_goals}, выполнено: {summary.completed_goals}, "
              f"просрочено: {summary.overdue_goals}, средний прогресс: {summary.average_progress:.1f}%")
    except ValueError:
        logger.exception("Import failed for user_id=%s", user_id)
        return 1
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
