"""
Pytest fixtures for testing
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from goal_tracker.domain.goal import Goal, GoalCategory, GoalMilestone, GoalType
from goal_tracker.infrastructure.db.session import create_tables


@pytest.fixture
def db_engine():
    """Create in-memory SQLite engine for tests"""
    engine = create_engine("sqlite:///:memory:")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_user_id():
    """Sample user ID for tests"""
    return "user-1"


@pytest.fixture
def fixed_now():
    """Опорный момент времени для детерминированных метрик"""
    return datetime(2024, 4, 1, tzinfo=timezone.utc)


@pytest.fixture
def make_milestone():
    def _make(milestone_id="ms-1", **overrides):
        fields = dict(
            id=milestone_id,
            title="Первый взнос",
            description="Половина суммы",
            target_amount=60000.0,
            target_date=datetime(2024, 4, 1, tzinfo=timezone.utc),
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        fields.update(overrides)
        return GoalMilestone(**fields)
    return _make


@pytest.fixture
def make_goal(sample_user_id):
    """Фабрика целей: сценарий 120000 NPR с 2024-01-01 по 2024-07-01"""
    def _make(goal_id="goal-1", **overrides):
        fields = dict(
            id=goal_id,
            user_id=sample_user_id,
            title="Ноутбук",
            description="Накопить на новый ноутбук",
            target_amount=120000.0,
            current_amount=30000.0,
            start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            target_date=datetime(2024, 7, 1, tzinfo=timezone.utc),
            category=GoalCategory.GADGETS,
            goal_type=GoalType.PURCHASE,
            created_at=datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc),
            updated_at=datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc),
        )
        fields.update(overrides)
        return Goal(**fields)
    return _make
