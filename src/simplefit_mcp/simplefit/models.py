"""SimpleFit data models."""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, computed_field, model_validator


def now_ms() -> int:
    return int(time.time() * 1000)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def level(self) -> int:
        return {"beginner": 1, "intermediate": 2, "advanced": 3}[self.value]


def _coerce_difficulty(value):
    if isinstance(value, str):
        value = value.strip().lower()
        if value not in {d.value for d in Difficulty}:
            return None
    return value


DifficultyTag = Annotated[Difficulty | None, BeforeValidator(_coerce_difficulty)]


class Exercise(BaseModel):
    """An exercise in the catalog. Never mutated once loaded."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    muscle_groups: list[str] = []
    primary_muscle_group: str | None = None
    equipment: str = ""
    difficulty: DifficultyTag = Difficulty.INTERMEDIATE
    compound: bool = False
    image_url: str | None = None
    instruction_url: str | None = None


class RoutineExercise(BaseModel):
    """Target prescription for one exercise inside a routine."""
    exercise_id: str
    sets: int = 0
    reps_per_set: int = 0
    weight: float = 0.0
    note: str | None = None
    rest_seconds: int = 60
    use_bodyweight: bool = False
    order: int = 0
    muscle_group_id: str | None = None

    def __eq__(self, other) -> bool:
        if not isinstance(other, RoutineExercise):
            return NotImplemented
        return (self.exercise_id, self.order) == (other.exercise_id, other.order)

    def __hash__(self) -> int:
        return hash((self.exercise_id, self.order))

    @property
    def sets_reps_string(self) -> str:
        return f"{self.sets} x {self.reps_per_set}"

    def formatted_weight(self, use_kg: bool = True) -> str:
        if self.use_bodyweight:
            return "Body weight"
        if self.weight <= 0:
            return "-"
        return f"{self.weight} {'kg' if use_kg else 'lbs'}"


class Routine(BaseModel):
    """A reusable workout template."""
    id: str | None = None
    user_id: str | None = None
    name: str
    description: str = ""
    difficulty: DifficultyTag = None
    estimated_duration: int = 0
    target_muscle_group: str | None = None
    all_muscle_groups: list[str] = []
    exercises: list[RoutineExercise] = []
    times_completed: int = 0
    category: str | None = None
    is_public: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def exercise_count(self) -> int:
        return len(self.exercises)

    @property
    def total_sets(self) -> int:
        return sum(max(e.sets, 0) for e in self.exercises)

    @property
    def difficulty_level(self) -> int:
        return self.difficulty.level if self.difficulty else 0

    def sorted_exercises(self) -> list[RoutineExercise]:
        # sorted() is stable, so equal orders keep insertion order
        return sorted(self.exercises, key=lambda e: e.order)

    def add_exercise(self, exercise: RoutineExercise) -> None:
        self.exercises.append(exercise)

    def remove_exercise(self, position: int) -> RoutineExercise | None:
        if 0 <= position < len(self.exercises):
            return self.exercises.pop(position)
        return None

    def move_exercise(self, from_position: int, to_position: int) -> bool:
        size = len(self.exercises)
        if not (0 <= from_position < size and 0 <= to_position < size):
            return False
        exercise = self.exercises.pop(from_position)
        self.exercises.insert(to_position, exercise)
        return True

    def update_exercise(self, position: int, exercise: RoutineExercise) -> bool:
        if 0 <= position < len(self.exercises):
            self.exercises[position] = exercise
            return True
        return False

    def renumber(self) -> None:
        """Make `order` contiguous from 0 following the current list order."""
        for i, exercise in enumerate(self.exercises):
            exercise.order = i

    def refresh_muscle_groups(self, catalog: dict[str, Exercise] | None = None) -> list[str]:
        groups: list[str] = []
        for exercise in self.exercises:
            tags = [exercise.muscle_group_id] if exercise.muscle_group_id else []
            if catalog and exercise.exercise_id in catalog:
                tags.extend(catalog[exercise.exercise_id].muscle_groups)
            for tag in tags:
                if tag and tag not in groups:
                    groups.append(tag)
        self.all_muscle_groups = groups
        return groups

    def increment_times_completed(self) -> None:
        self.times_completed += 1

    def copy_for(self, user_id: str, name: str | None = None) -> "Routine":
        return Routine(
            name=name or f"{self.name} (Copy)",
            user_id=user_id,
            description=self.description,
            difficulty=self.difficulty,
            estimated_duration=self.estimated_duration,
            target_muscle_group=self.target_muscle_group,
            all_muscle_groups=list(self.all_muscle_groups),
            exercises=[e.model_copy() for e in self.exercises],
            category=self.category,
            times_completed=0,
        )


class WorkoutSet(BaseModel):
    """A single planned or performed set.

    `completed_timestamp` is epoch milliseconds and is non-zero exactly when
    the set is completed.
    """
    set_number: int = 1
    target_reps: int = 0
    reps: int = 0
    weight: float = 0.0
    completed: bool = False
    drop_set: bool = False
    failure_set: bool = False
    completed_timestamp: int = 0
    note: str | None = None

    @model_validator(mode="after")
    def _sync_timestamp(self) -> "WorkoutSet":
        if not self.completed:
            self.completed_timestamp = 0
        elif not self.completed_timestamp:
            self.completed_timestamp = now_ms()
        return self

    def set_completed(self, completed: bool, now: int | None = None) -> None:
        """Toggle completion using whatever reps and weight are staged."""
        self.completed = completed
        if completed:
            if not self.completed_timestamp:
                self.completed_timestamp = now if now is not None else now_ms()
        else:
            self.completed_timestamp = 0

    def complete(self, reps: int, weight: float, now: int | None = None) -> None:
        self.reps = reps
        self.weight = weight
        self.set_completed(True, now=now)

    def uncomplete(self) -> None:
        self.set_completed(False)

    @property
    def volume(self) -> float:
        return self.reps * self.weight

    @property
    def is_target_reached(self) -> bool:
        return self.completed and self.reps >= self.target_reps

    def display_string(self, use_kg: bool = True) -> str:
        unit = "kg" if use_kg else "lbs"
        text = f"Set {self.set_number}: "
        if self.completed:
            text += f"{self.reps} reps at {self.weight} {unit}"
            if self.failure_set:
                text += " (failure)"
            if self.drop_set:
                text += " (drop set)"
        else:
            weight = f"{self.weight} {unit}" if self.weight > 0 else "--"
            text += f"planned {self.target_reps} reps at {weight}"
        return text


class WorkoutExercise(BaseModel):
    """An exercise being performed inside a workout. Owns its sets."""
    exercise_id: str
    exercise_name: str = "Unknown Exercise"
    sets: list[WorkoutSet] = []
    note: str | None = None
    order: int = 0
    rest_seconds: int = 60
    muscle_groups: list[str] = []

    @computed_field
    @property
    def completed(self) -> bool:
        return bool(self.sets) and all(s.completed for s in self.sets)

    @property
    def completed_sets(self) -> int:
        return sum(1 for s in self.sets if s.completed)

    @property
    def volume(self) -> float:
        return sum(s.volume for s in self.sets if s.completed)

    @property
    def total_reps(self) -> int:
        return sum(s.reps for s in self.sets if s.completed)

    @property
    def completion_percentage(self) -> int:
        if not self.sets:
            return 0
        return self.completed_sets * 100 // len(self.sets)

    def add_set(self, workout_set: WorkoutSet) -> WorkoutSet:
        workout_set.set_number = len(self.sets) + 1
        self.sets.append(workout_set)
        return workout_set

    def add_empty_set(self) -> WorkoutSet:
        new_set = WorkoutSet()
        if self.sets:
            last = self.sets[-1]
            new_set.weight = last.weight
            new_set.target_reps = last.target_reps
        return self.add_set(new_set)

    def remove_set(self, position: int) -> WorkoutSet | None:
        if not 0 <= position < len(self.sets):
            return None
        removed = self.sets.pop(position)
        for i, workout_set in enumerate(self.sets):
            workout_set.set_number = i + 1
        return removed


class Workout(BaseModel):
    """A dated training session, materialized from a routine or ad hoc."""
    id: str | None = None
    user_id: str | None = None
    routine_id: str | None = None
    routine_name: str | None = None
    date: datetime = Field(default_factory=utcnow)
    exercises: list[WorkoutExercise] = []
    duration_minutes: int = 0
    note: str | None = None
    rating: float = Field(default=0, ge=0, le=5)
    total_volume: float = 0
    total_reps: int = 0
    completed: bool = False
    muscle_groups_worked: list[str] = []
    created_at: datetime | None = None

    @property
    def exercise_count(self) -> int:
        return len(self.exercises)

    @property
    def exercise_ids(self) -> list[str]:
        return [e.exercise_id for e in self.exercises]

    @property
    def is_in_progress(self) -> bool:
        return not self.completed and any(e.completed_sets for e in self.exercises)

    def add_exercise(self, exercise: WorkoutExercise) -> None:
        self.exercises.append(exercise)

    def add_muscle_group_worked(self, muscle_group: str) -> None:
        if muscle_group and muscle_group not in self.muscle_groups_worked:
            self.muscle_groups_worked.append(muscle_group)


class WorkoutStatistics(BaseModel):
    """Account-level rollup, always reproducible from workout history."""
    total_workouts: int = 0
    total_minutes: int = 0
    total_sets: int = 0
    total_weight: float = 0.0
