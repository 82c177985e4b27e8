"""Exercise catalog: global entries (user_id NULL) and user-owned entries."""
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from gym_tracker.db.database import Base


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    names = Column(JSONB, nullable=True, comment='Localized names, e.g. {"en": "Squat", "es": "Sentadilla"}')
    muscle_group = Column(String(100), nullable=True)
    equipment = Column(String(100), nullable=True)
    rep_type = Column(String(20), nullable=False, server_default="reps")
    exercise_type = Column(String(20), nullable=False, server_default="strength")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    aliases = relationship("ExerciseAlias", back_populates="exercise", passive_deletes=True)

    __table_args__ = (
        CheckConstraint(
            "rep_type IN ('reps', 'seconds', 'meters', 'calories')",
            name="ck_exercises_rep_type",
        ),
        CheckConstraint(
            "exercise_type IN ('strength', 'mobility', 'cardio', 'warmup')",
            name="ck_exercises_exercise_type",
        ),
    )

    @property
    def is_global(self) -> bool:
        return self.user_id is None


class ExerciseAlias(Base):
    __tablename__ = "exercise_aliases"

    id = Column(Integer, primary_key=True)
    exercise_id = Column(Integer, ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False, index=True)
    alias = Column(String(200), nullable=False)

    exercise = relationship("Exercise", back_populates="aliases")


# Unique per owner scope, case-insensitive. Global rows share the 0 bucket.
Index(
    "uq_exercises_owner_lower_name",
    func.coalesce(Exercise.user_id, 0),
    func.lower(Exercise.name),
    unique=True,
)
Index(
    "uq_exercise_aliases_lower_alias",
    ExerciseAlias.exercise_id,
    func.lower(ExerciseAlias.alias),
    unique=True,
)
