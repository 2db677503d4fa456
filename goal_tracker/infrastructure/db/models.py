"""
SQLAlchemy ORM models for the local on-device store
"""
from datetime import datetime
from sqlalchemy import String, LargeBinary, Text, TIMESTAMP, func
from sqlalchemy.orm import Mapped, mapped_column

from goal_tracker.infrastructure.db.session import Base


class GoalBoxEntry(Base):
    """
    Key-value запись цели: key = goal.id, payload = тегированная запись

    user_id дублируется из payload для выборки без декодирования.
    """
    __tablename__ = "goal_box"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    stored_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


class LocalSetting(Base):
    """Настройки локального хранилища (например, время последней синхронизации)"""
    __tablename__ = "local_settings"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
