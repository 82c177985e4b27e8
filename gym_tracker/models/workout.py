"""Logged workouts: sessions, the exercises performed in them, and their sets."""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY

from gym_tracker.db.database import Base


class WorkoutSession(Base):
    """One workout instance. At most one per user may be open (ended_at NULL)."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    program_version_id = Column(Integer, ForeignKey("program_versions.id", ondelete="SET NULL"), nullable=True)
    program_day_id = Column(Integer, ForeignKey("program_days.id", ondelete="SET NULL"), nullable=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(ARRAY(Text), nullable=False, server_default="{}")
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    is_validated = Column(Boolean, nullable=False, server_default="true")

    __table_args__ = (
        Index("ix_sessions_user_started", "user_id", "started_at"),
    )


class SessionExerciseGroup(Base):
    __tablename__ = "session_exercise_groups"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    # program_exercise_groups.id this row was copied from; no FK, programs can be hard-deleted
    source_id = Column(Integer, nullable=True)
    group_type = Column(String(20), nullable=False)
    label = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    rest_seconds = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "sort_order", name="uq_session_groups_session_sort"),
        CheckConstraint("group_type IN ('superset', 'paired', 'circuit')", name="ck_session_groups_type"),
    )


class SessionSection(Base):
    __tablename__ = "session_sections"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    # program_sections.id this row was copied from
    source_id = Column(Integer, nullable=True)
    label = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "sort_order", name="uq_session_sections_session_sort"),
    )


class SessionExercise(Base):
    __tablename__ = "session_exercises"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=False)
    sort_order = Column(Integer, nullable=False, server_default="0")
    notes = Column(Text, nullable=True)
    rest_seconds = Column(Integer, nullable=True)
    group_id = Column(Integer, ForeignKey("session_exercise_groups.id", ondelete="SET NULL"), nullable=True)
    section_id = Column(Integer, ForeignKey("session_sections.id", ondelete="SET NULL"), nullable=True)


class ExerciseSet(Base):
    __tablename__ = "sets"

    id = Column(Integer, primary_key=True)
    session_exercise_id = Column(
        Integer, ForeignKey("session_exercises.id", ondelete="CASCADE"), nullable=False, index=True
    )
    set_number = Column(Integer, nullable=False)
    set_type = Column(String(20), nullable=False, server_default="working")
    reps = Column(Integer, nullable=False)
    weight = Column(Float, nullable=True)
    rpe = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    logged_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("set_type IN ('warmup', 'working', 'drop', 'failure')", name="ck_sets_set_type"),
    )
