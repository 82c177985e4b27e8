"""Personal records. Derived from sets; recomputed inside set-logging transactions."""
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from gym_tracker.db.database import Base


class PersonalRecord(Base):
    """Current best per (user, exercise, record_type)."""

    __tablename__ = "personal_records"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    exercise_id = Column(Integer, ForeignKey("exercises.id", ondelete="CASCADE"), primary_key=True)
    record_type = Column(String(64), primary_key=True)
    value = Column(Float, nullable=False)
    achieved_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    set_id = Column(Integer, ForeignKey("sets.id", ondelete="SET NULL"), nullable=True)


class PRHistory(Base):
    """Append-only timeline of every record improvement."""

    __tablename__ = "pr_history"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    exercise_id = Column(Integer, ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False)
    record_type = Column(String(64), nullable=False)
    value = Column(Float, nullable=False)
    achieved_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    set_id = Column(Integer, ForeignKey("sets.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        Index("ix_pr_history_user_exercise_type", "user_id", "exercise_id", "record_type", "achieved_at"),
    )
