"""Versioned training programs.

Program -> ProgramVersion -> ProgramDay -> (ProgramExerciseGroup | ProgramSection)
-> ProgramDayExercise. Versions are immutable once superseded: every structural
edit inserts a new version cloned from the previous one. The latest version is
always MAX(version_number) for the program; there is no stored pointer.
"""
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
from sqlalchemy.orm import relationship

from gym_tracker.db.database import Base


class Program(Base):
    __tablename__ = "programs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    versions = relationship(
        "ProgramVersion",
        back_populates="program",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProgramVersion.version_number",
    )


class ProgramVersion(Base):
    __tablename__ = "program_versions"

    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(Integer, ForeignKey("programs.id", ondelete="CASCADE"), nullable=False)
    version_number = Column(Integer, nullable=False)
    change_description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    program = relationship("Program", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("program_id", "version_number", name="uq_program_versions_number"),
    )


class ProgramDay(Base):
    __tablename__ = "program_days"

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(Integer, ForeignKey("program_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    day_label = Column(String(100), nullable=False)
    # ISO weekdays, 1=Mon..7=Sun
    weekdays = Column(ARRAY(Integer), nullable=True)
    sort_order = Column(Integer, nullable=False, server_default="0")


class ProgramExerciseGroup(Base):
    __tablename__ = "program_exercise_groups"

    id = Column(Integer, primary_key=True)
    day_id = Column(Integer, ForeignKey("program_days.id", ondelete="CASCADE"), nullable=False)
    group_type = Column(String(20), nullable=False)
    label = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    rest_seconds = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False)

    __table_args__ = (
        # sort_order is the correlation key when groups are batch-cloned
        UniqueConstraint("day_id", "sort_order", name="uq_program_groups_day_sort"),
        CheckConstraint("group_type IN ('superset', 'paired', 'circuit')", name="ck_program_groups_type"),
    )


class ProgramSection(Base):
    __tablename__ = "program_sections"

    id = Column(Integer, primary_key=True)
    day_id = Column(Integer, ForeignKey("program_days.id", ondelete="CASCADE"), nullable=False)
    label = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("day_id", "sort_order", name="uq_program_sections_day_sort"),
    )


class ProgramDayExercise(Base):
    __tablename__ = "program_day_exercises"

    id = Column(Integer, primary_key=True)
    day_id = Column(Integer, ForeignKey("program_days.id", ondelete="CASCADE"), nullable=False)
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=False)
    sort_order = Column(Integer, nullable=False, server_default="0")
    target_sets = Column(Integer, nullable=False, server_default="3")
    target_reps = Column(Integer, nullable=False, server_default="10")
    target_weight = Column(Float, nullable=True)
    target_rpe = Column(Float, nullable=True)
    target_reps_per_set = Column(ARRAY(Integer), nullable=True)
    target_weight_per_set = Column(ARRAY(Float), nullable=True)
    rest_seconds = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    group_id = Column(Integer, ForeignKey("program_exercise_groups.id", ondelete="SET NULL"), nullable=True)
    section_id = Column(Integer, ForeignKey("program_sections.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        Index("ix_program_day_exercises_day_sort", "day_id", "sort_order"),
    )
